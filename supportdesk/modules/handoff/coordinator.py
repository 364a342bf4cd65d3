"""
Hand-off Coordinator: reads the current ticket/session documents, asks the
state machine what to do, and performs the resulting writes.

Holds no state between calls. Every store call is a suspension point, so the
documents it acts on may already be stale; the writes are guarded in the
stores and the reuse path of Accept repairs earlier partial attempts.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

import asyncpg

from supportdesk.models.live_chat import ChatMessage, LiveChatSession
from supportdesk.models.ticket import Ticket
from supportdesk.modules.handoff.effects import (
    AppendMessage,
    AssignConsultant,
    CloseSession,
    CreateSession,
    Effect,
    LinkTicket,
    Navigate,
    Notice,
    Notify,
    OpenLiveChat,
    ResolveTicket,
    live_chat_view,
)
from supportdesk.modules.handoff.errors import (
    HandoffError,
    NotFound,
    PartialCascadeFailure,
    ReadFailed,
    WriteFailed,
)
from supportdesk.modules.handoff.machine import (
    Accept,
    Actor,
    ConsultantJoins,
    EndChat,
    Event,
    HandoffSnapshot,
    HandoffState,
    SendMessage,
    check_access,
    derive_state,
    transition,
)
from supportdesk.modules.stores.base import MessageStore, SessionStore, TicketStore

logger = logging.getLogger(__name__)

# Failures a store call can raise: database errors and network errors.
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Outcome:
    """What an operation did, for the caller to render."""
    state: HandoffState
    ticket: Ticket | None = None
    session: LiveChatSession | None = None
    message: ChatMessage | None = None
    messages: list[ChatMessage] = field(default_factory=list)
    navigate: str | None = None
    notices: list[Notice] = field(default_factory=list)


class HandoffCoordinator:

    def __init__(
        self,
        tickets: TicketStore,
        sessions: SessionStore,
        messages: MessageStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.tickets = tickets
        self.sessions = sessions
        self.messages = messages
        self.clock = clock

    async def accept(self, ticket_id: UUID, actor: Actor) -> Outcome:
        """Admin accepts a ticket: find-or-create its session, then link the ticket."""
        ticket = await self._read(self.tickets.get(ticket_id))
        session = None
        if ticket is not None:
            session = await self._read(self.sessions.find_live_by_ticket(ticket.id))
            if session is None and ticket.session_id is not None:
                session = await self._read(self.sessions.get(ticket.session_id))

        snapshot = HandoffSnapshot(ticket=ticket, session=session)
        decision = transition(snapshot, Accept(actor), self.clock())
        outcome = Outcome(state=decision.state, ticket=ticket, session=session)
        await self._apply(decision.effects, outcome)
        logger.info(
            "Ticket %s accepted by %s -> session %s",
            ticket_id, actor.user_id, outcome.session.id if outcome.session else None,
        )
        return outcome

    async def open_session(self, session_id: UUID, actor: Actor) -> Outcome:
        """Load a session for viewing. An admin opening an unstaffed session joins it first."""
        session = await self._load_session(session_id)
        snapshot = HandoffSnapshot(session=session)

        decision = transition(snapshot, ConsultantJoins(actor), self.clock())
        outcome = Outcome(state=decision.state, session=session)
        await self._apply(decision.effects, outcome)

        check_access(outcome.session, actor)
        outcome.messages = await self._read(self.messages.list(session_id))
        return outcome

    async def send_message(self, session_id: UUID, actor: Actor, text: str) -> Outcome:
        session = await self._load_session(session_id)
        return await self._run(HandoffSnapshot(session=session), SendMessage(actor, text))

    async def end_chat(self, session_id: UUID, actor: Actor) -> Outcome:
        session = await self._load_session(session_id)
        ticket = None
        if session.ticket_id is not None:
            ticket = await self._read(self.tickets.get(session.ticket_id))
        outcome = await self._run(HandoffSnapshot(ticket=ticket, session=session), EndChat(actor))
        logger.info("Live chat %s ended by %s", session_id, actor.user_id)
        return outcome

    async def _run(self, snapshot: HandoffSnapshot, event: Event) -> Outcome:
        decision = transition(snapshot, event, self.clock())
        outcome = Outcome(state=decision.state, ticket=snapshot.ticket, session=snapshot.session)
        await self._apply(decision.effects, outcome)
        return outcome

    async def _load_session(self, session_id: UUID) -> LiveChatSession:
        session = await self._read(self.sessions.get(session_id))
        if session is None:
            raise NotFound("The live chat session does not exist or has been deleted.")
        return session

    async def _read(self, call):
        try:
            return await call
        except STORE_ERRORS as e:
            logger.error("Store read failed: %s", e)
            raise ReadFailed("Could not load the latest data. Please try again.") from e

    async def _apply(self, effects: tuple[Effect, ...], outcome: Outcome) -> None:
        closed_session = False
        for effect in effects:
            try:
                await self._perform(effect, outcome)
            except HandoffError:
                raise
            except STORE_ERRORS as e:
                logger.error("Hand-off write %s failed: %s", type(effect).__name__, e)
                if isinstance(effect, ResolveTicket) and closed_session:
                    raise PartialCascadeFailure(
                        "The chat was closed, but the ticket could not be marked resolved. "
                        "End the chat again to retry."
                    ) from e
                raise WriteFailed(_write_failure_text(effect)) from e
            if isinstance(effect, CloseSession):
                closed_session = True

    async def _perform(self, effect: Effect, outcome: Outcome) -> None:
        if isinstance(effect, CreateSession):
            session = await self.sessions.create(effect.ticket_id, effect.customer_id)
            if session is None:
                # another admin created it between our query and our insert
                session = await self.sessions.find_live_by_ticket(effect.ticket_id)
                if session is None:
                    raise WriteFailed("Failed to start live chat. Please try again.")
                logger.info("Ticket %s: reusing session %s created concurrently", effect.ticket_id, session.id)
            else:
                logger.info("Ticket %s: created session %s", effect.ticket_id, session.id)
            outcome.session = session

        elif isinstance(effect, LinkTicket):
            session_id = effect.session_id or outcome.session.id
            ticket = await self.tickets.link_session(effect.ticket_id, session_id)
            if ticket is None:
                raise NotFound("The ticket no longer exists or was resolved in the meantime.")
            outcome.ticket = ticket

        elif isinstance(effect, AssignConsultant):
            session = await self.sessions.assign_consultant(
                effect.session_id, effect.consultant_id, effect.started_at,
            )
            if session is None:
                # someone else joined first; act on what the store holds now
                session = await self._load_session(effect.session_id)
            else:
                logger.info("Consultant %s joined session %s", effect.consultant_id, effect.session_id)
            outcome.session = session
            outcome.state = derive_state(HandoffSnapshot(ticket=outcome.ticket, session=session))

        elif isinstance(effect, AppendMessage):
            outcome.message = await self.messages.append(
                effect.session_id, effect.sender_id, effect.sender_role, effect.text, effect.timestamp,
            )
            await self.sessions.touch(effect.session_id, effect.timestamp)

        elif isinstance(effect, CloseSession):
            session = await self.sessions.close(effect.session_id, effect.closed_at)
            if session is None:
                session = await self._load_session(effect.session_id)
            outcome.session = session

        elif isinstance(effect, ResolveTicket):
            ticket = await self.tickets.resolve(effect.ticket_id, self.clock())
            if ticket is None:
                logger.warning("Ticket %s vanished before it could be resolved", effect.ticket_id)
            outcome.ticket = ticket

        elif isinstance(effect, OpenLiveChat):
            session_id = effect.session_id or outcome.session.id
            outcome.navigate = live_chat_view(session_id)

        elif isinstance(effect, Navigate):
            outcome.navigate = effect.view

        elif isinstance(effect, Notify):
            outcome.notices.append(effect.notice)

        else:
            raise TypeError(f"Unknown hand-off effect: {effect!r}")


def _write_failure_text(effect: Effect) -> str:
    if isinstance(effect, CreateSession):
        return "Failed to start live chat."
    if isinstance(effect, LinkTicket):
        return "Failed to update ticket status in database."
    if isinstance(effect, AppendMessage):
        return "Failed to send message."
    if isinstance(effect, CloseSession):
        return "Failed to end chat session."
    return "Failed to save changes."
