from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.coordination import MeetingStatus, MeetingType


class MeetingRequestCreate(BaseModel):
    external_party_id: UUID
    internal_party_id: UUID | None = None
    meeting_type: str = Field(default="virtual", pattern="^(virtual|physical)$")
    proposed_start: datetime
    note: str | None = None


class MeetingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    matter_id: UUID
    internal_party_id: UUID | None = None
    external_party_id: UUID
    meeting_type: MeetingType
    status: MeetingStatus
    proposed_start: datetime
    confirmed_start: datetime | None = None
    confirmed_end: datetime | None = None
    video_meeting_link: str | None = None
    video_provider: str | None = None
    external_note: str | None = None
    internal_note: str | None = None
    created_at: datetime
    updated_at: datetime


class MeetingAcceptRequest(BaseModel):
    confirmed_start: datetime | None = None
    confirmed_end: datetime | None = None
    video_link: str | None = None
    video_provider: str | None = None


class MeetingRescheduleRequest(BaseModel):
    proposed_start: datetime
    note: str = Field(min_length=1)
