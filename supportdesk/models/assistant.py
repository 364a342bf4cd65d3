from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AssistantConversation(BaseModel):
    id: UUID
    user_id: str
    title: str = "New chat"
    created_at: datetime


class AssistantMessage(BaseModel):
    id: UUID
    conversation_id: UUID
    role: str  # user, assistant
    content: str
    created_at: datetime
