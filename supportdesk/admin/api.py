"""
Admin API: ticket maintenance and dashboard metrics for consultants.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from supportdesk.deps import Services, get_admin, get_services
from supportdesk.models.ticket import TicketEdit, TicketStatus
from supportdesk.modules.handoff.machine import Actor

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Tickets ---

@router.patch("/tickets/{ticket_id}")
async def edit_ticket(
    ticket_id: UUID,
    body: TicketEdit,
    actor: Actor = Depends(get_admin),
    services: Services = Depends(get_services),
):
    """Edit title, description or priority.

    Body: any subset, e.g. {"priority": "high"}. Status is not editable here.
    """
    if body.title is not None and not body.title.strip():
        raise HTTPException(status_code=422, detail="Title cannot be empty")

    ticket = await services.tickets.edit(ticket_id, body)
    if not ticket:
        raise HTTPException(status_code=404, detail=f"Ticket {ticket_id} not found")

    logger.info("Ticket %s edited by %s: %s", ticket_id, actor.user_id, list(body.model_dump(exclude_none=True)))
    return ticket.model_dump(mode="json")


@router.delete("/tickets/{ticket_id}", status_code=204)
async def delete_ticket(
    ticket_id: UUID,
    actor: Actor = Depends(get_admin),
    services: Services = Depends(get_services),
):
    deleted = await services.tickets.delete(ticket_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Ticket {ticket_id} not found")
    logger.info("Ticket %s deleted by %s", ticket_id, actor.user_id)


# --- Metrics ---

@router.get("/metrics")
async def get_metrics(
    actor: Actor = Depends(get_admin),
    services: Services = Depends(get_services),
):
    """Dashboard counts: open work, today's resolutions, upcoming meetings."""
    now = datetime.now(timezone.utc)
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    tickets = await services.tickets.list()
    return {
        "total_tickets": len(tickets),
        "pending": sum(1 for t in tickets if t.status == TicketStatus.PENDING),
        "in_progress": sum(1 for t in tickets if t.status == TicketStatus.IN_PROGRESS),
        "resolved_today": sum(
            1 for t in tickets
            if t.status == TicketStatus.RESOLVED and t.resolved_at and t.resolved_at >= start_of_today
        ),
        "upcoming_meetings": await services.meetings.count_upcoming(now),
    }
