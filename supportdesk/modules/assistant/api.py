"""
Assistant API: AI chat for customers, with ticket creation on confirmation.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from supportdesk.deps import Services, get_actor, get_services
from supportdesk.modules.assistant.client import TicketSuggestion
from supportdesk.modules.assistant.conversation import confirm_ticket, handle_user_message
from supportdesk.modules.handoff.machine import Actor

logger = logging.getLogger(__name__)

router = APIRouter()


class UserTurn(BaseModel):
    text: str


class ConfirmedTicket(BaseModel):
    title: str
    description: str
    customer_name: str | None = None
    customer_email: str | None = None


@router.post("/conversations", status_code=201)
async def start_conversation(
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    conversation = await services.conversations.create(actor.user_id)
    return conversation.model_dump(mode="json")


@router.get("/conversations/{conversation_id}/messages")
async def get_conversation(
    conversation_id: UUID,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    await _owned_conversation(services, conversation_id, actor)
    history = await services.conversations.history(
        conversation_id, limit=services.settings.assistant_history_limit,
    )
    return [m.model_dump(mode="json") for m in history]


@router.post("/conversations/{conversation_id}/messages")
async def send_to_assistant(
    conversation_id: UUID,
    body: UserTurn,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Ask the assistant. Returns either {"type": "message"} or {"type": "action"} with a ticket suggestion."""
    text = body.text.strip()
    if not text:
        raise HTTPException(status_code=422, detail="Message text is empty")
    await _owned_conversation(services, conversation_id, actor)

    reply = await handle_user_message(
        services.conversations,
        services.assistant,
        conversation_id,
        text,
        history_limit=services.settings.assistant_history_limit,
    )
    if isinstance(reply, TicketSuggestion):
        return {
            "type": "action",
            "action": {"action": "create_ticket", "title": reply.title, "description": reply.description},
        }
    return {"type": "message", "text": reply.text}


@router.post("/tickets", status_code=201)
async def create_suggested_ticket(
    body: ConfirmedTicket,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """The customer confirmed the assistant's suggestion: open it as a pending ticket."""
    if actor.is_admin:
        raise HTTPException(status_code=403, detail="Only customers open tickets")
    if not body.title.strip() or not body.description.strip():
        raise HTTPException(status_code=422, detail="Title and description are required")

    ticket = await confirm_ticket(
        services.tickets,
        actor.user_id,
        TicketSuggestion(title=body.title.strip(), description=body.description.strip()),
        customer_name=body.customer_name,
        customer_email=body.customer_email,
    )
    return ticket.model_dump(mode="json")


async def _owned_conversation(services: Services, conversation_id: UUID, actor: Actor):
    conversation = await services.conversations.get(conversation_id)
    if not conversation or conversation.user_id != actor.user_id:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    return conversation
