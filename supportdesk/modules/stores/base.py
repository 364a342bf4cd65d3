"""
Store interfaces the hand-off coordinator and the API depend on.
The PostgreSQL implementations live in stores/postgres.py; tests use in-memory ones.
Every method returns validated models, never raw rows.
"""

from datetime import datetime
from typing import AsyncIterator, Protocol
from uuid import UUID

from supportdesk.models.assistant import AssistantConversation, AssistantMessage
from supportdesk.models.live_chat import ChatMessage, LiveChatSession, Role
from supportdesk.models.meeting import Meeting, NewMeeting
from supportdesk.models.ticket import NewTicket, Ticket, TicketEdit

TICKETS_CHANNEL = "tickets"
SESSIONS_CHANNEL = "live_chats"
MESSAGES_CHANNEL = "live_chat_messages"


class TicketStore(Protocol):

    async def create(self, customer_id: str, ticket: NewTicket) -> Ticket:
        ...

    async def get(self, ticket_id: UUID) -> Ticket | None:
        ...

    async def list(self, customer_id: str | None = None) -> list[Ticket]:
        """Newest first; narrowed to one customer when customer_id is given."""
        ...

    async def link_session(self, ticket_id: UUID, session_id: UUID) -> Ticket | None:
        """Set status in-progress and session_id, unless the ticket is already resolved."""
        ...

    async def resolve(self, ticket_id: UUID, resolved_at: datetime) -> Ticket | None:
        ...

    async def edit(self, ticket_id: UUID, changes: TicketEdit) -> Ticket | None:
        ...

    async def delete(self, ticket_id: UUID) -> bool:
        ...


class SessionStore(Protocol):

    async def create(self, ticket_id: UUID, customer_id: str) -> LiveChatSession | None:
        """Create an open, unstaffed session. Returns None if the ticket already has a live one."""
        ...

    async def get(self, session_id: UUID) -> LiveChatSession | None:
        ...

    async def find_live_by_ticket(self, ticket_id: UUID) -> LiveChatSession | None:
        """The non-closed session for a ticket, if any."""
        ...

    async def assign_consultant(
        self, session_id: UUID, consultant_id: str, started_at: datetime,
    ) -> LiveChatSession | None:
        """Attach a consultant to an open session that has none. None if that no longer holds."""
        ...

    async def close(self, session_id: UUID, closed_at: datetime) -> LiveChatSession | None:
        """Close a non-closed session. None if it was already closed or is gone."""
        ...

    async def touch(self, session_id: UUID, last_message_at: datetime) -> None:
        ...


class MessageStore(Protocol):

    async def append(
        self,
        session_id: UUID,
        sender_id: str,
        sender_role: Role,
        text: str,
        timestamp: datetime,
    ) -> ChatMessage:
        ...

    async def list(self, session_id: UUID) -> list[ChatMessage]:
        """Oldest first."""
        ...


class MeetingStore(Protocol):

    async def create(
        self,
        meeting: NewMeeting,
        consultant_id: str,
        customer_id: str,
        session_id: UUID | None = None,
    ) -> Meeting:
        ...

    async def get(self, meeting_id: UUID) -> Meeting | None:
        ...

    async def list_for_user(self, user_id: str) -> list[Meeting]:
        ...

    async def cancel(self, meeting_id: UUID) -> Meeting | None:
        ...

    async def count_upcoming(self, after: datetime) -> int:
        ...


class ConversationStore(Protocol):

    async def create(self, user_id: str, title: str = "New chat") -> AssistantConversation:
        ...

    async def get(self, conversation_id: UUID) -> AssistantConversation | None:
        ...

    async def history(self, conversation_id: UUID, limit: int = 20) -> list[AssistantMessage]:
        ...

    async def add_message(self, conversation_id: UUID, role: str, content: str) -> AssistantMessage:
        ...


class Subscription(Protocol):
    """A live query: async iterator of change events, stopped by close()."""

    def __aiter__(self) -> AsyncIterator[dict]:
        ...

    async def close(self) -> None:
        ...


class ChangeFeed(Protocol):

    async def subscribe(self, channel: str, key: str | None = None) -> Subscription:
        """Subscribe to change events on a channel, optionally for a single document key."""
        ...

    async def close(self) -> None:
        ...
