"""
Tickets API: customers open tickets and watch their list; admins accept
them, which hands the ticket off to a live chat.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status

from supportdesk.deps import Services, actor_from_headers, get_actor, get_admin, get_services, get_socket_services
from supportdesk.models.live_chat import Role
from supportdesk.models.ticket import NewTicket
from supportdesk.modules.handoff.machine import Actor
from supportdesk.modules.handoff.observers import TicketListObserver
from supportdesk.modules.handoff.outcome import outcome_payload
from supportdesk.modules.handoff.sockets import stream_frames

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_ticket(
    body: NewTicket,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Open a ticket (status pending) for the calling customer."""
    if actor.role != Role.CUSTOMER:
        raise HTTPException(status_code=403, detail="Only customers open tickets")
    if not body.title.strip():
        raise HTTPException(status_code=422, detail="Title is required")

    ticket = await services.tickets.create(actor.user_id, body)
    logger.info("Ticket %s opened by %s", ticket.id, actor.user_id)
    return ticket.model_dump(mode="json")


@router.get("")
async def list_tickets(
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Newest first. Customers see their own tickets, admins see all."""
    customer_id = None if actor.is_admin else actor.user_id
    tickets = await services.tickets.list(customer_id=customer_id)
    return [t.model_dump(mode="json") for t in tickets]


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: UUID,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    ticket = await services.tickets.get(ticket_id)
    if not ticket or (not actor.is_admin and ticket.customer_id != actor.user_id):
        raise HTTPException(status_code=404, detail=f"Ticket {ticket_id} not found")
    return ticket.model_dump(mode="json")


@router.post("/{ticket_id}/accept")
async def accept_ticket(
    ticket_id: UUID,
    actor: Actor = Depends(get_admin),
    services: Services = Depends(get_services),
):
    """Accept a pending ticket and start (or join) its live chat."""
    outcome = await services.coordinator.accept(ticket_id, actor)
    return outcome_payload(outcome)


@router.websocket("/ws")
async def watch_tickets(
    websocket: WebSocket,
    view: str | None = Query(None),
):
    """Live ticket list. The client reports view changes as {"view": "..."}."""
    services = get_socket_services(websocket)
    try:
        actor = actor_from_headers(websocket.headers)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    observer = TicketListObserver(services.tickets, services.feed, actor, current_view=view)
    await stream_frames(websocket, observer.frames(), on_client_message=lambda msg: _track_view(observer, msg))


def _track_view(observer: TicketListObserver, message: dict) -> None:
    if "view" in message:
        observer.current_view = message["view"]
