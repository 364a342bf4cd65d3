from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class SessionStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    CLOSED = "closed"


class LiveChatSession(BaseModel):
    id: UUID
    ticket_id: UUID | None = None
    customer_id: str
    consultant_id: str | None = None  # null until an admin joins, then fixed
    status: SessionStatus = SessionStatus.OPEN
    created_at: datetime
    started_at: datetime | None = None
    closed_at: datetime | None = None
    last_message_at: datetime | None = None

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.customer_id, self.consultant_id)


class ChatMessage(BaseModel):
    id: UUID
    session_id: UUID
    sender_id: str
    sender_role: Role
    text: str
    timestamp: datetime


class NewMessage(BaseModel):
    text: str
