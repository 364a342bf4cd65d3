from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class TicketStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Ticket(BaseModel):
    id: UUID
    title: str
    description: str = ""
    status: TicketStatus = TicketStatus.PENDING
    priority: TicketPriority = TicketPriority.MEDIUM
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    session_id: UUID | None = None  # set on accept, never cleared
    created_at: datetime
    resolved_at: datetime | None = None


class NewTicket(BaseModel):
    title: str
    description: str = ""
    priority: TicketPriority = TicketPriority.MEDIUM
    customer_name: str | None = None
    customer_email: str | None = None


class TicketEdit(BaseModel):
    """Fields an admin may edit by hand. Status belongs to the hand-off workflow."""
    title: str | None = None
    description: str | None = None
    priority: TicketPriority | None = None
