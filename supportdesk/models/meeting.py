from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class MeetingType(str, Enum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in-person"


class MeetingStatus(str, Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Meeting(BaseModel):
    id: UUID
    title: str
    description: str = ""
    date: datetime
    duration_minutes: int = 30
    location: str
    type: MeetingType = MeetingType.VIDEO
    status: MeetingStatus = MeetingStatus.UPCOMING
    consultant_id: str
    customer_id: str
    session_id: UUID | None = None
    created_at: datetime


class NewMeeting(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    date: datetime
    duration_minutes: int = Field(default=30, gt=0)
    location: str = Field(min_length=1)
    type: MeetingType = MeetingType.VIDEO
