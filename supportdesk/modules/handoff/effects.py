"""
Effects the hand-off state machine asks the coordinator to perform,
plus the user-facing notices and navigation targets they carry.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supportdesk.models.live_chat import Role

TICKET_LIST_VIEW = "ticket-list"
DASHBOARD_VIEW = "dashboard"


def live_chat_view(session_id: UUID | str) -> str:
    return f"live-chat/{session_id}"


@dataclass(frozen=True)
class Notice:
    """A toast-style message surfaced to the acting user."""
    title: str
    description: str
    variant: str = "info"  # info, success, warning, destructive


@dataclass(frozen=True)
class CreateSession:
    ticket_id: UUID
    customer_id: str


@dataclass(frozen=True)
class LinkTicket:
    """Move a ticket to in-progress and point it at its session.

    session_id None means "the session created by the preceding CreateSession".
    """
    ticket_id: UUID
    session_id: UUID | None = None


@dataclass(frozen=True)
class AssignConsultant:
    session_id: UUID
    consultant_id: str
    started_at: datetime


@dataclass(frozen=True)
class AppendMessage:
    session_id: UUID
    sender_id: str
    sender_role: Role
    text: str
    timestamp: datetime


@dataclass(frozen=True)
class CloseSession:
    session_id: UUID
    closed_at: datetime


@dataclass(frozen=True)
class ResolveTicket:
    ticket_id: UUID


@dataclass(frozen=True)
class Navigate:
    view: str


@dataclass(frozen=True)
class OpenLiveChat:
    """Navigate to the session; None means the one created by CreateSession."""
    session_id: UUID | None = None


@dataclass(frozen=True)
class Notify:
    notice: Notice


Effect = (
    CreateSession | LinkTicket | AssignConsultant | AppendMessage
    | CloseSession | ResolveTicket | Navigate | OpenLiveChat | Notify
)
