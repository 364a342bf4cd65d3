"""
Meetings API: a consultant books a follow-up meeting from a live chat;
both participants can list their meetings.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from supportdesk.deps import Services, get_actor, get_admin, get_services
from supportdesk.models.meeting import MeetingStatus, NewMeeting
from supportdesk.modules.handoff.errors import NotFound
from supportdesk.modules.handoff.machine import Actor, check_access

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/live-chats/{session_id}/meetings", status_code=201)
async def schedule_meeting(
    session_id: UUID,
    body: NewMeeting,
    actor: Actor = Depends(get_admin),
    services: Services = Depends(get_services),
):
    """Schedule a meeting with the customer of this chat. Consultant only."""
    session = await services.sessions.get(session_id)
    if session is None:
        raise NotFound("The live chat session does not exist or has been deleted.")
    check_access(session, actor)

    meeting = await services.meetings.create(
        body,
        consultant_id=actor.user_id,
        customer_id=session.customer_id,
        session_id=session.id,
    )
    logger.info("Meeting %s scheduled by %s for %s", meeting.id, actor.user_id, session.customer_id)
    return meeting.model_dump(mode="json")


@router.get("/meetings")
async def list_meetings(
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Meetings where the caller is consultant or customer, soonest first."""
    meetings = await services.meetings.list_for_user(actor.user_id)
    return [m.model_dump(mode="json") for m in meetings]


@router.post("/meetings/{meeting_id}/cancel")
async def cancel_meeting(
    meeting_id: UUID,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    meeting = await services.meetings.get(meeting_id)
    if not meeting or actor.user_id not in (meeting.consultant_id, meeting.customer_id):
        raise HTTPException(status_code=404, detail=f"Meeting {meeting_id} not found")
    if meeting.status != MeetingStatus.UPCOMING:
        raise HTTPException(status_code=409, detail=f"Meeting is already {meeting.status.value}")

    cancelled = await services.meetings.cancel(meeting_id)
    if cancelled is None:
        raise HTTPException(status_code=409, detail="Meeting could not be cancelled")
    logger.info("Meeting %s cancelled by %s", meeting_id, actor.user_id)
    return cancelled.model_dump(mode="json")
