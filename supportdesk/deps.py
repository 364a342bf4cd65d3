"""
Request dependencies: the acting user and the services built at startup.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request, WebSocket
from starlette.datastructures import Headers

from supportdesk.config import Settings
from supportdesk.models.live_chat import Role
from supportdesk.modules.assistant.client import SupportAssistant
from supportdesk.modules.handoff.coordinator import HandoffCoordinator
from supportdesk.modules.handoff.machine import Actor
from supportdesk.modules.stores.base import (
    ChangeFeed,
    ConversationStore,
    MeetingStore,
    MessageStore,
    SessionStore,
    TicketStore,
)


@dataclass
class Services:
    settings: Settings
    tickets: TicketStore
    sessions: SessionStore
    messages: MessageStore
    meetings: MeetingStore
    conversations: ConversationStore
    feed: ChangeFeed
    assistant: SupportAssistant

    @property
    def coordinator(self) -> HandoffCoordinator:
        return HandoffCoordinator(self.tickets, self.sessions, self.messages)


def actor_from_headers(headers: Headers) -> Actor:
    """The upstream auth provider forwards the verified user as X-User-Id / X-User-Role."""
    user_id = headers.get("x-user-id", "").strip()
    role = headers.get("x-user-role", "").strip().lower()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return Actor(user_id=user_id, role=Role(role))
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid X-User-Role '{role}'")


def get_actor(request: Request) -> Actor:
    return actor_from_headers(request.headers)


def get_admin(request: Request) -> Actor:
    actor = actor_from_headers(request.headers)
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return actor


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_socket_services(websocket: WebSocket) -> Services:
    return websocket.app.state.services
