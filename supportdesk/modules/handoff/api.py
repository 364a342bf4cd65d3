"""
Live Chat API: open a session, exchange messages, and end the chat.
Hand-off failures are rendered by the HandoffError handler in main.py.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status

from supportdesk.deps import Services, actor_from_headers, get_actor, get_services, get_socket_services
from supportdesk.models.live_chat import NewMessage
from supportdesk.modules.handoff.machine import Actor
from supportdesk.modules.handoff.observers import SessionObserver
from supportdesk.modules.handoff.outcome import outcome_payload
from supportdesk.modules.handoff.sockets import stream_frames

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{session_id}")
async def open_live_chat(
    session_id: UUID,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Session plus its messages, oldest first. An admin opening an unstaffed chat joins it."""
    outcome = await services.coordinator.open_session(session_id, actor)
    return outcome_payload(outcome)


@router.post("/{session_id}/messages", status_code=201)
async def send_message(
    session_id: UUID,
    body: NewMessage,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    if not body.text.strip():
        raise HTTPException(status_code=422, detail="Message text is empty")
    outcome = await services.coordinator.send_message(session_id, actor, body.text)
    return outcome_payload(outcome)


@router.post("/{session_id}/end")
async def end_chat(
    session_id: UUID,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Close the chat and resolve its ticket. Admin only."""
    outcome = await services.coordinator.end_chat(session_id, actor)
    return outcome_payload(outcome)


@router.websocket("/{session_id}/ws")
async def watch_live_chat(websocket: WebSocket, session_id: UUID):
    """Live session view. Ends with a navigate frame if the chat disappears or access is denied."""
    services = get_socket_services(websocket)
    try:
        actor = actor_from_headers(websocket.headers)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    observer = SessionObserver(services.coordinator, services.feed, session_id, actor)
    await stream_frames(websocket, observer.frames())
