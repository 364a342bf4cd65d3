"""
Hand-off State Machine: the ticket → live-chat workflow as a pure function.

transition(snapshot, event, now) looks at the latest ticket/session documents
and returns the state the hand-off will be in plus the effects to perform.
It never touches a store, so it can be re-evaluated on every snapshot.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from supportdesk.models.live_chat import LiveChatSession, Role, SessionStatus
from supportdesk.models.ticket import Ticket, TicketStatus
from supportdesk.modules.handoff.effects import (
    DASHBOARD_VIEW,
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
)
from supportdesk.modules.handoff.errors import AccessDenied, InvalidTransition, NotFound


class HandoffState(str, Enum):
    AWAITING_ACCEPTANCE = "awaiting_acceptance"
    SESSION_OPEN_UNSTAFFED = "session_open_unstaffed"
    SESSION_ACTIVE = "session_active"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class HandoffSnapshot:
    ticket: Ticket | None = None
    session: LiveChatSession | None = None


@dataclass(frozen=True)
class Accept:
    actor: Actor


@dataclass(frozen=True)
class ConsultantJoins:
    actor: Actor


@dataclass(frozen=True)
class SendMessage:
    actor: Actor
    text: str


@dataclass(frozen=True)
class EndChat:
    actor: Actor


Event = Accept | ConsultantJoins | SendMessage | EndChat


@dataclass(frozen=True)
class Decision:
    state: HandoffState
    effects: tuple[Effect, ...] = ()


def derive_state(snapshot: HandoffSnapshot) -> HandoffState:
    """Collapse a ticket×session view into the states that matter for hand-off.

    Either document may lag the other; both orders map to a valid state.
    """
    session = snapshot.session
    ticket = snapshot.ticket

    if session is None:
        if ticket is None or ticket.status == TicketStatus.PENDING:
            return HandoffState.AWAITING_ACCEPTANCE
        if ticket.status == TicketStatus.RESOLVED:
            return HandoffState.RESOLVED
        # ticket already points at a session this observer has not seen yet
        return HandoffState.SESSION_OPEN_UNSTAFFED

    if session.status == SessionStatus.CLOSED:
        return HandoffState.RESOLVED
    if session.status == SessionStatus.OPEN and session.consultant_id is None:
        return HandoffState.SESSION_OPEN_UNSTAFFED
    return HandoffState.SESSION_ACTIVE


def check_access(session: LiveChatSession, actor: Actor) -> None:
    if not session.is_participant(actor.user_id):
        raise AccessDenied("You do not have permission to view this chat session.")


def needs_resolution(snapshot: HandoffSnapshot) -> bool:
    """True when the session is closed but its ticket never reached resolved."""
    return (
        snapshot.session is not None
        and snapshot.session.status == SessionStatus.CLOSED
        and snapshot.ticket is not None
        and snapshot.ticket.status != TicketStatus.RESOLVED
    )


def transition(snapshot: HandoffSnapshot, event: Event, now: datetime) -> Decision:
    if isinstance(event, Accept):
        return _accept(snapshot, event)
    if isinstance(event, ConsultantJoins):
        return _consultant_joins(snapshot, event, now)
    if isinstance(event, SendMessage):
        return _send_message(snapshot, event, now)
    if isinstance(event, EndChat):
        return _end_chat(snapshot, event, now)
    raise TypeError(f"Unknown hand-off event: {event!r}")


def _accept(snapshot: HandoffSnapshot, event: Accept) -> Decision:
    ticket = snapshot.ticket
    session = snapshot.session

    if not event.actor.is_admin:
        raise InvalidTransition("Only a consultant can accept tickets.")
    if ticket is None:
        raise NotFound("The ticket does not exist or has been deleted.")
    if ticket.status == TicketStatus.RESOLVED:
        raise InvalidTransition(f"Ticket #{ticket.id} is already resolved.")

    if session is not None and session.status == SessionStatus.CLOSED:
        raise InvalidTransition(
            f"The live chat for ticket #{ticket.id} is closed. End the chat again to resolve the ticket."
        )

    if session is None:
        return Decision(
            state=HandoffState.SESSION_OPEN_UNSTAFFED,
            effects=(
                CreateSession(ticket_id=ticket.id, customer_id=ticket.customer_id),
                LinkTicket(ticket_id=ticket.id),
                Notify(Notice("Ticket Accepted!", f"Live chat started for ticket #{ticket.id}.", "success")),
                OpenLiveChat(),
            ),
        )

    # Reuse path: the ticket write is always reissued so a ticket whose earlier
    # update failed catches up with its session.
    return Decision(
        state=derive_state(HandoffSnapshot(ticket=ticket, session=session)),
        effects=(
            LinkTicket(ticket_id=ticket.id, session_id=session.id),
            Notify(Notice("Chat Already Active", "A live chat for this ticket already exists. Joining existing chat.")),
            OpenLiveChat(session_id=session.id),
        ),
    )


def _consultant_joins(snapshot: HandoffSnapshot, event: ConsultantJoins, now: datetime) -> Decision:
    session = snapshot.session
    if session is None:
        raise NotFound("The live chat session does not exist or has been deleted.")

    if (
        event.actor.is_admin
        and session.status == SessionStatus.OPEN
        and session.consultant_id is None
    ):
        return Decision(
            state=HandoffState.SESSION_ACTIVE,
            effects=(
                AssignConsultant(session_id=session.id, consultant_id=event.actor.user_id, started_at=now),
            ),
        )
    return Decision(state=derive_state(snapshot))


def _send_message(snapshot: HandoffSnapshot, event: SendMessage, now: datetime) -> Decision:
    session = snapshot.session
    if session is None:
        raise NotFound("The live chat session does not exist or has been deleted.")
    check_access(session, event.actor)
    if session.status == SessionStatus.CLOSED:
        raise InvalidTransition("This chat is closed.")

    text = event.text.strip()
    if not text:
        return Decision(state=derive_state(snapshot))

    return Decision(
        state=derive_state(snapshot),
        effects=(
            AppendMessage(
                session_id=session.id,
                sender_id=event.actor.user_id,
                sender_role=event.actor.role,
                text=text,
                timestamp=now,
            ),
        ),
    )


def _end_chat(snapshot: HandoffSnapshot, event: EndChat, now: datetime) -> Decision:
    session = snapshot.session
    if session is None:
        raise NotFound("The live chat session does not exist or has been deleted.")
    check_access(session, event.actor)
    if not event.actor.is_admin:
        raise InvalidTransition("Only a consultant can close this chat.")

    if session.status == SessionStatus.CLOSED:
        if needs_resolution(snapshot):
            return Decision(
                state=HandoffState.RESOLVED,
                effects=(
                    ResolveTicket(ticket_id=session.ticket_id),
                    Notify(Notice("Ticket Resolved", f"Ticket #{session.ticket_id} has been resolved.", "success")),
                ),
            )
        raise InvalidTransition("This chat is already closed.")

    effects: list[Effect] = [CloseSession(session_id=session.id, closed_at=now)]
    if session.ticket_id is not None:
        effects.append(ResolveTicket(ticket_id=session.ticket_id))
    effects.append(Notify(Notice("Chat Ended!", "Live chat session has been closed and ticket resolved.", "success")))
    effects.append(Navigate(DASHBOARD_VIEW))
    return Decision(state=HandoffState.RESOLVED, effects=tuple(effects))
