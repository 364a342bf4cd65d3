"""
PostgreSQL stores (asyncpg). Status updates carry WHERE guards so a write
can only move a document forward, never back.
"""

import asyncio
import json
import logging
from datetime import datetime
from uuid import UUID

import asyncpg

from supportdesk.models.assistant import AssistantConversation, AssistantMessage
from supportdesk.models.live_chat import ChatMessage, LiveChatSession, Role
from supportdesk.models.meeting import Meeting, NewMeeting
from supportdesk.models.ticket import NewTicket, Ticket, TicketEdit

logger = logging.getLogger(__name__)


class PostgresTicketStore:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(self, customer_id: str, ticket: NewTicket) -> Ticket:
        row = await self.pool.fetchrow(
            """
            INSERT INTO tickets (title, description, priority, customer_id, customer_name, customer_email, status)
            VALUES ($1, $2, $3, $4, $5, $6, 'pending')
            RETURNING *
            """,
            ticket.title,
            ticket.description,
            ticket.priority.value,
            customer_id,
            ticket.customer_name,
            ticket.customer_email,
        )
        return Ticket.model_validate(dict(row))

    async def get(self, ticket_id: UUID) -> Ticket | None:
        row = await self.pool.fetchrow("SELECT * FROM tickets WHERE id = $1", ticket_id)
        return Ticket.model_validate(dict(row)) if row else None

    async def list(self, customer_id: str | None = None) -> list[Ticket]:
        if customer_id:
            rows = await self.pool.fetch(
                "SELECT * FROM tickets WHERE customer_id = $1 ORDER BY created_at DESC",
                customer_id,
            )
        else:
            rows = await self.pool.fetch("SELECT * FROM tickets ORDER BY created_at DESC")
        return [Ticket.model_validate(dict(r)) for r in rows]

    async def link_session(self, ticket_id: UUID, session_id: UUID) -> Ticket | None:
        row = await self.pool.fetchrow(
            """
            UPDATE tickets
            SET status = 'in-progress', session_id = $2
            WHERE id = $1 AND status <> 'resolved'
            RETURNING *
            """,
            ticket_id,
            session_id,
        )
        return Ticket.model_validate(dict(row)) if row else None

    async def resolve(self, ticket_id: UUID, resolved_at: datetime) -> Ticket | None:
        row = await self.pool.fetchrow(
            """
            UPDATE tickets
            SET status = 'resolved', resolved_at = COALESCE(resolved_at, $2)
            WHERE id = $1
            RETURNING *
            """,
            ticket_id,
            resolved_at,
        )
        return Ticket.model_validate(dict(row)) if row else None

    async def edit(self, ticket_id: UUID, changes: TicketEdit) -> Ticket | None:
        fields = changes.model_dump(exclude_none=True, mode="json")
        if not fields:
            return await self.get(ticket_id)

        set_clauses = []
        params: list = [ticket_id]
        for i, (field, value) in enumerate(fields.items(), start=2):
            set_clauses.append(f"{field} = ${i}")
            params.append(value)

        row = await self.pool.fetchrow(
            f"UPDATE tickets SET {', '.join(set_clauses)} WHERE id = $1 RETURNING *",
            *params,
        )
        return Ticket.model_validate(dict(row)) if row else None

    async def delete(self, ticket_id: UUID) -> bool:
        result = await self.pool.execute("DELETE FROM tickets WHERE id = $1", ticket_id)
        return result.endswith(" 1")


class PostgresSessionStore:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(self, ticket_id: UUID, customer_id: str) -> LiveChatSession | None:
        row = await self.pool.fetchrow(
            """
            INSERT INTO live_chats (ticket_id, customer_id, status)
            VALUES ($1, $2, 'open')
            ON CONFLICT (ticket_id) WHERE status <> 'closed' DO NOTHING
            RETURNING *
            """,
            ticket_id,
            customer_id,
        )
        return LiveChatSession.model_validate(dict(row)) if row else None

    async def get(self, session_id: UUID) -> LiveChatSession | None:
        row = await self.pool.fetchrow("SELECT * FROM live_chats WHERE id = $1", session_id)
        return LiveChatSession.model_validate(dict(row)) if row else None

    async def find_live_by_ticket(self, ticket_id: UUID) -> LiveChatSession | None:
        row = await self.pool.fetchrow(
            "SELECT * FROM live_chats WHERE ticket_id = $1 AND status <> 'closed' LIMIT 1",
            ticket_id,
        )
        return LiveChatSession.model_validate(dict(row)) if row else None

    async def assign_consultant(
        self, session_id: UUID, consultant_id: str, started_at: datetime,
    ) -> LiveChatSession | None:
        row = await self.pool.fetchrow(
            """
            UPDATE live_chats
            SET consultant_id = $2, started_at = $3, status = 'in-progress'
            WHERE id = $1 AND status = 'open' AND consultant_id IS NULL
            RETURNING *
            """,
            session_id,
            consultant_id,
            started_at,
        )
        return LiveChatSession.model_validate(dict(row)) if row else None

    async def close(self, session_id: UUID, closed_at: datetime) -> LiveChatSession | None:
        row = await self.pool.fetchrow(
            """
            UPDATE live_chats
            SET status = 'closed', closed_at = $2
            WHERE id = $1 AND status <> 'closed'
            RETURNING *
            """,
            session_id,
            closed_at,
        )
        return LiveChatSession.model_validate(dict(row)) if row else None

    async def touch(self, session_id: UUID, last_message_at: datetime) -> None:
        await self.pool.execute(
            "UPDATE live_chats SET last_message_at = GREATEST(COALESCE(last_message_at, $2), $2) WHERE id = $1",
            session_id,
            last_message_at,
        )


class PostgresMessageStore:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def append(
        self,
        session_id: UUID,
        sender_id: str,
        sender_role: Role,
        text: str,
        timestamp: datetime,
    ) -> ChatMessage:
        row = await self.pool.fetchrow(
            """
            INSERT INTO live_chat_messages (session_id, sender_id, sender_role, text, timestamp)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id, session_id, sender_id, sender_role, text, timestamp
            """,
            session_id,
            sender_id,
            sender_role.value,
            text,
            timestamp,
        )
        return ChatMessage.model_validate(dict(row))

    async def list(self, session_id: UUID) -> list[ChatMessage]:
        rows = await self.pool.fetch(
            """
            SELECT id, session_id, sender_id, sender_role, text, timestamp
            FROM live_chat_messages
            WHERE session_id = $1
            ORDER BY timestamp ASC, seq ASC
            """,
            session_id,
        )
        return [ChatMessage.model_validate(dict(r)) for r in rows]


class PostgresMeetingStore:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(
        self,
        meeting: NewMeeting,
        consultant_id: str,
        customer_id: str,
        session_id: UUID | None = None,
    ) -> Meeting:
        row = await self.pool.fetchrow(
            """
            INSERT INTO meetings (title, description, date, duration_minutes, location, type,
                                  status, consultant_id, customer_id, session_id)
            VALUES ($1, $2, $3, $4, $5, $6, 'upcoming', $7, $8, $9)
            RETURNING *
            """,
            meeting.title.strip(),
            meeting.description.strip(),
            meeting.date,
            meeting.duration_minutes,
            meeting.location.strip(),
            meeting.type.value,
            consultant_id,
            customer_id,
            session_id,
        )
        return Meeting.model_validate(dict(row))

    async def get(self, meeting_id: UUID) -> Meeting | None:
        row = await self.pool.fetchrow("SELECT * FROM meetings WHERE id = $1", meeting_id)
        return Meeting.model_validate(dict(row)) if row else None

    async def list_for_user(self, user_id: str) -> list[Meeting]:
        rows = await self.pool.fetch(
            "SELECT * FROM meetings WHERE consultant_id = $1 OR customer_id = $1 ORDER BY date ASC",
            user_id,
        )
        return [Meeting.model_validate(dict(r)) for r in rows]

    async def cancel(self, meeting_id: UUID) -> Meeting | None:
        row = await self.pool.fetchrow(
            "UPDATE meetings SET status = 'cancelled' WHERE id = $1 AND status = 'upcoming' RETURNING *",
            meeting_id,
        )
        return Meeting.model_validate(dict(row)) if row else None

    async def count_upcoming(self, after: datetime) -> int:
        return await self.pool.fetchval(
            "SELECT COUNT(*) FROM meetings WHERE status = 'upcoming' AND date >= $1",
            after,
        )


class PostgresConversationStore:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(self, user_id: str, title: str = "New chat") -> AssistantConversation:
        row = await self.pool.fetchrow(
            "INSERT INTO assistant_conversations (user_id, title) VALUES ($1, $2) RETURNING *",
            user_id,
            title,
        )
        return AssistantConversation.model_validate(dict(row))

    async def get(self, conversation_id: UUID) -> AssistantConversation | None:
        row = await self.pool.fetchrow("SELECT * FROM assistant_conversations WHERE id = $1", conversation_id)
        return AssistantConversation.model_validate(dict(row)) if row else None

    async def history(self, conversation_id: UUID, limit: int = 20) -> list[AssistantMessage]:
        rows = await self.pool.fetch(
            """
            SELECT id, conversation_id, role, content, created_at
            FROM assistant_messages
            WHERE conversation_id = $1
            ORDER BY created_at DESC, seq DESC
            LIMIT $2
            """,
            conversation_id,
            limit,
        )
        return [AssistantMessage.model_validate(dict(r)) for r in reversed(rows)]

    async def add_message(self, conversation_id: UUID, role: str, content: str) -> AssistantMessage:
        row = await self.pool.fetchrow(
            """
            INSERT INTO assistant_messages (conversation_id, role, content)
            VALUES ($1, $2, $3)
            RETURNING id, conversation_id, role, content, created_at
            """,
            conversation_id,
            role,
            content,
        )
        return AssistantMessage.model_validate(dict(row))


class PostgresSubscription:
    """Change events on one channel (optionally one document key), until close()."""

    def __init__(self, feed: "PostgresChangeFeed", channel: str, key: str | None = None):
        self.feed = feed
        self.channel = channel
        self.key = key
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def deliver(self, event: dict) -> None:
        if not self._closed and (self.key is None or event.get("key") == self.key):
            self._queue.put_nowait(event)

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        if self._closed:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.feed.unsubscribe(self)
        self._queue.put_nowait(None)
        logger.debug("Unsubscribed from %s (key=%s)", self.channel, self.key)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()


class PostgresChangeFeed:
    """LISTEN/NOTIFY on one dedicated connection, kept out of the request pool.

    A channel is LISTENed on the first time someone subscribes to it, and each
    notification is fanned out to the queues of that channel's subscribers.
    """

    def __init__(self, dsn: str):
        self.dsn = dsn
        self._conn: asyncpg.Connection | None = None
        self._lock = asyncio.Lock()
        self._subscribers: dict[str, set[PostgresSubscription]] = {}

    async def subscribe(self, channel: str, key: str | None = None) -> PostgresSubscription:
        async with self._lock:
            conn = await self._connection()
            if channel not in self._subscribers:
                await conn.add_listener(channel, self._on_notify)
                self._subscribers[channel] = set()
            subscription = PostgresSubscription(self, channel, key)
            self._subscribers[channel].add(subscription)
        logger.debug("Subscribed to %s (key=%s)", channel, key)
        return subscription

    def unsubscribe(self, subscription: PostgresSubscription) -> None:
        self._subscribers.get(subscription.channel, set()).discard(subscription)

    async def close(self) -> None:
        for subscriptions in self._subscribers.values():
            for subscription in list(subscriptions):
                await subscription.close()
        if self._conn is not None and not self._conn.is_closed():
            await self._conn.close()
        self._conn = None

    async def _connection(self) -> asyncpg.Connection:
        if self._conn is None or self._conn.is_closed():
            self._conn = await asyncpg.connect(self.dsn)
            # a new connection has no LISTENs yet
            for channel in self._subscribers:
                await self._conn.add_listener(channel, self._on_notify)
            logger.info("Change feed connected (%d channels)", len(self._subscribers))
        return self._conn

    def _on_notify(self, connection, pid, channel, payload) -> None:
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed notification on %s: %r", channel, payload)
            return
        for subscription in list(self._subscribers.get(channel, ())):
            subscription.deliver(event)
