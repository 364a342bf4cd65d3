"""
In-memory stores with the same contracts as the PostgreSQL ones.
Reads and writes yield to the event loop first, so concurrent coroutines
interleave at the same points they would against a real database.
"""

import asyncio
from datetime import datetime, timezone
from uuid import UUID, uuid4

from supportdesk.models.assistant import AssistantConversation, AssistantMessage
from supportdesk.models.live_chat import ChatMessage, LiveChatSession, Role, SessionStatus
from supportdesk.models.meeting import Meeting, MeetingStatus, NewMeeting
from supportdesk.models.ticket import NewTicket, Ticket, TicketEdit, TicketStatus
from supportdesk.modules.stores.base import MESSAGES_CHANNEL, SESSIONS_CHANNEL, TICKETS_CHANNEL


def now() -> datetime:
    return datetime.now(timezone.utc)


class FakeSubscription:

    def __init__(self, feed: "FakeFeed", channel: str, key: str | None):
        self.feed = feed
        self.channel = channel
        self.key = key
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        if self.closed:
            raise StopAsyncIteration
        event = await self.queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.feed.subscriptions.remove(self)
            self.queue.put_nowait(None)


class FakeFeed:

    def __init__(self):
        self.subscriptions: list[FakeSubscription] = []

    async def subscribe(self, channel: str, key: str | None = None) -> FakeSubscription:
        sub = FakeSubscription(self, channel, key)
        self.subscriptions.append(sub)
        return sub

    async def close(self) -> None:
        for sub in list(self.subscriptions):
            await sub.close()

    def publish(self, channel: str, op: str, doc_id, key=None) -> None:
        event = {"op": op, "id": str(doc_id), "key": str(key or doc_id)}
        for sub in list(self.subscriptions):
            if sub.channel == channel and (sub.key is None or sub.key == event["key"]):
                sub.queue.put_nowait(event)


class FakeTicketStore:

    def __init__(self, feed: FakeFeed | None = None):
        self.feed = feed or FakeFeed()
        self.docs: dict[UUID, Ticket] = {}
        self.history: dict[UUID, list[TicketStatus]] = {}
        self.fail_on: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise ConnectionError(f"simulated failure in tickets.{op}")

    def _save(self, ticket: Ticket, op: str = "update") -> Ticket:
        self.docs[ticket.id] = ticket
        statuses = self.history.setdefault(ticket.id, [])
        if not statuses or statuses[-1] != ticket.status:
            statuses.append(ticket.status)
        self.feed.publish(TICKETS_CHANNEL, op, ticket.id)
        return ticket

    async def create(self, customer_id: str, ticket: NewTicket) -> Ticket:
        await asyncio.sleep(0)
        self._check("create")
        return self._save(
            Ticket(id=uuid4(), customer_id=customer_id, created_at=now(), **ticket.model_dump()),
            op="insert",
        )

    async def get(self, ticket_id: UUID) -> Ticket | None:
        await asyncio.sleep(0)
        self._check("get")
        return self.docs.get(ticket_id)

    async def list(self, customer_id: str | None = None) -> list[Ticket]:
        await asyncio.sleep(0)
        self._check("list")
        tickets = [t for t in self.docs.values() if customer_id is None or t.customer_id == customer_id]
        return sorted(tickets, key=lambda t: t.created_at, reverse=True)

    async def link_session(self, ticket_id: UUID, session_id: UUID) -> Ticket | None:
        await asyncio.sleep(0)
        self._check("link_session")
        ticket = self.docs.get(ticket_id)
        if ticket is None or ticket.status == TicketStatus.RESOLVED:
            return None
        return self._save(ticket.model_copy(update={"status": TicketStatus.IN_PROGRESS, "session_id": session_id}))

    async def resolve(self, ticket_id: UUID, resolved_at: datetime) -> Ticket | None:
        await asyncio.sleep(0)
        self._check("resolve")
        ticket = self.docs.get(ticket_id)
        if ticket is None:
            return None
        return self._save(ticket.model_copy(update={
            "status": TicketStatus.RESOLVED,
            "resolved_at": ticket.resolved_at or resolved_at,
        }))

    async def edit(self, ticket_id: UUID, changes: TicketEdit) -> Ticket | None:
        await asyncio.sleep(0)
        self._check("edit")
        ticket = self.docs.get(ticket_id)
        if ticket is None:
            return None
        return self._save(ticket.model_copy(update=changes.model_dump(exclude_none=True)))

    async def delete(self, ticket_id: UUID) -> bool:
        await asyncio.sleep(0)
        self._check("delete")
        if self.docs.pop(ticket_id, None) is None:
            return False
        self.feed.publish(TICKETS_CHANNEL, "delete", ticket_id)
        return True


class FakeSessionStore:

    def __init__(self, feed: FakeFeed | None = None):
        self.feed = feed or FakeFeed()
        self.docs: dict[UUID, LiveChatSession] = {}
        self.history: dict[UUID, list[SessionStatus]] = {}
        self.fail_on: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise ConnectionError(f"simulated failure in sessions.{op}")

    def _save(self, session: LiveChatSession, op: str = "update") -> LiveChatSession:
        self.docs[session.id] = session
        statuses = self.history.setdefault(session.id, [])
        if not statuses or statuses[-1] != session.status:
            statuses.append(session.status)
        self.feed.publish(SESSIONS_CHANNEL, op, session.id)
        return session

    def delete(self, session_id: UUID) -> None:
        self.docs.pop(session_id, None)
        self.feed.publish(SESSIONS_CHANNEL, "delete", session_id)

    def for_ticket(self, ticket_id: UUID) -> list[LiveChatSession]:
        return [s for s in self.docs.values() if s.ticket_id == ticket_id]

    async def create(self, ticket_id: UUID, customer_id: str) -> LiveChatSession | None:
        await asyncio.sleep(0)
        self._check("create")
        # check and insert without yielding: stands in for the partial unique index
        if any(s.status != SessionStatus.CLOSED for s in self.for_ticket(ticket_id)):
            return None
        return self._save(
            LiveChatSession(id=uuid4(), ticket_id=ticket_id, customer_id=customer_id, created_at=now()),
            op="insert",
        )

    async def get(self, session_id: UUID) -> LiveChatSession | None:
        await asyncio.sleep(0)
        self._check("get")
        return self.docs.get(session_id)

    async def find_live_by_ticket(self, ticket_id: UUID) -> LiveChatSession | None:
        await asyncio.sleep(0)
        for session in self.for_ticket(ticket_id):
            if session.status != SessionStatus.CLOSED:
                return session
        return None

    async def assign_consultant(
        self, session_id: UUID, consultant_id: str, started_at: datetime,
    ) -> LiveChatSession | None:
        await asyncio.sleep(0)
        self._check("assign_consultant")
        session = self.docs.get(session_id)
        if session is None or session.status != SessionStatus.OPEN or session.consultant_id is not None:
            return None
        return self._save(session.model_copy(update={
            "consultant_id": consultant_id,
            "started_at": started_at,
            "status": SessionStatus.IN_PROGRESS,
        }))

    async def close(self, session_id: UUID, closed_at: datetime) -> LiveChatSession | None:
        await asyncio.sleep(0)
        self._check("close")
        session = self.docs.get(session_id)
        if session is None or session.status == SessionStatus.CLOSED:
            return None
        return self._save(session.model_copy(update={"status": SessionStatus.CLOSED, "closed_at": closed_at}))

    async def touch(self, session_id: UUID, last_message_at: datetime) -> None:
        await asyncio.sleep(0)
        session = self.docs.get(session_id)
        if session is not None:
            latest = max(filter(None, [session.last_message_at, last_message_at]))
            self._save(session.model_copy(update={"last_message_at": latest}))


class FakeMessageStore:

    def __init__(self, feed: FakeFeed | None = None):
        self.feed = feed or FakeFeed()
        self.rows: list[tuple[int, ChatMessage]] = []
        self.fail_on: set[str] = set()

    async def append(
        self,
        session_id: UUID,
        sender_id: str,
        sender_role: Role,
        text: str,
        timestamp: datetime,
    ) -> ChatMessage:
        await asyncio.sleep(0)
        if "append" in self.fail_on:
            raise ConnectionError("simulated failure in messages.append")
        message = ChatMessage(
            id=uuid4(),
            session_id=session_id,
            sender_id=sender_id,
            sender_role=sender_role,
            text=text,
            timestamp=timestamp,
        )
        self.rows.append((len(self.rows), message))
        self.feed.publish(MESSAGES_CHANNEL, "insert", message.id, key=session_id)
        return message

    async def list(self, session_id: UUID) -> list[ChatMessage]:
        await asyncio.sleep(0)
        rows = [(seq, m) for seq, m in self.rows if m.session_id == session_id]
        return [m for _, m in sorted(rows, key=lambda r: (r[1].timestamp, r[0]))]


class FakeMeetingStore:

    def __init__(self):
        self.docs: dict[UUID, Meeting] = {}

    async def create(
        self,
        meeting: NewMeeting,
        consultant_id: str,
        customer_id: str,
        session_id: UUID | None = None,
    ) -> Meeting:
        doc = Meeting(
            id=uuid4(),
            consultant_id=consultant_id,
            customer_id=customer_id,
            session_id=session_id,
            created_at=now(),
            **meeting.model_dump(),
        )
        self.docs[doc.id] = doc
        return doc

    async def get(self, meeting_id: UUID) -> Meeting | None:
        return self.docs.get(meeting_id)

    async def list_for_user(self, user_id: str) -> list[Meeting]:
        mine = [m for m in self.docs.values() if user_id in (m.consultant_id, m.customer_id)]
        return sorted(mine, key=lambda m: m.date)

    async def cancel(self, meeting_id: UUID) -> Meeting | None:
        meeting = self.docs.get(meeting_id)
        if meeting is None or meeting.status != MeetingStatus.UPCOMING:
            return None
        self.docs[meeting_id] = meeting.model_copy(update={"status": MeetingStatus.CANCELLED})
        return self.docs[meeting_id]

    async def count_upcoming(self, after: datetime) -> int:
        return sum(1 for m in self.docs.values() if m.status == MeetingStatus.UPCOMING and m.date >= after)


class FakeConversationStore:

    def __init__(self):
        self.conversations: dict[UUID, AssistantConversation] = {}
        self.messages: list[AssistantMessage] = []

    async def create(self, user_id: str, title: str = "New chat") -> AssistantConversation:
        conversation = AssistantConversation(id=uuid4(), user_id=user_id, title=title, created_at=now())
        self.conversations[conversation.id] = conversation
        return conversation

    async def get(self, conversation_id: UUID) -> AssistantConversation | None:
        return self.conversations.get(conversation_id)

    async def history(self, conversation_id: UUID, limit: int = 20) -> list[AssistantMessage]:
        return [m for m in self.messages if m.conversation_id == conversation_id][-limit:]

    async def add_message(self, conversation_id: UUID, role: str, content: str) -> AssistantMessage:
        message = AssistantMessage(
            id=uuid4(), conversation_id=conversation_id, role=role, content=content, created_at=now(),
        )
        self.messages.append(message)
        return message
