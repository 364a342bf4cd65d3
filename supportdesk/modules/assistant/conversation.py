"""
Assistant conversations: persists each turn and turns a confirmed
suggestion into a real ticket.
"""

import logging
from uuid import UUID

from supportdesk.models.ticket import NewTicket, Ticket, TicketPriority
from supportdesk.modules.assistant.client import AssistantReply, SupportAssistant, TextReply, TicketSuggestion
from supportdesk.modules.stores.base import ConversationStore, TicketStore

logger = logging.getLogger(__name__)


async def handle_user_message(
    conversations: ConversationStore,
    assistant: SupportAssistant,
    conversation_id: UUID,
    text: str,
    history_limit: int = 20,
) -> AssistantReply:
    """Save the user's turn, ask the assistant, and save its answer.

    A ticket suggestion is returned to the caller for confirmation and is
    not stored as an assistant turn.
    """
    history = await conversations.history(conversation_id, limit=history_limit)
    await conversations.add_message(conversation_id, "user", text)

    reply = await assistant.ask(history, text)
    if isinstance(reply, TextReply):
        await conversations.add_message(conversation_id, "assistant", reply.text)
    return reply


async def confirm_ticket(
    tickets: TicketStore,
    customer_id: str,
    suggestion: TicketSuggestion,
    customer_name: str | None = None,
    customer_email: str | None = None,
) -> Ticket:
    """Materialize a confirmed suggestion as a pending ticket."""
    ticket = await tickets.create(
        customer_id,
        NewTicket(
            title=suggestion.title,
            description=suggestion.description,
            priority=TicketPriority.MEDIUM,
            customer_name=customer_name,
            customer_email=customer_email,
        ),
    )
    logger.info("Assistant ticket %s created for %s", ticket.id, customer_id)
    return ticket
