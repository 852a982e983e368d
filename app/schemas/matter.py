from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.coordination import AssignmentRole, MatterLifecycleState


# ---------------------------------------------------------------------------
# Matter
# ---------------------------------------------------------------------------


class MatterCreate(BaseModel):
    firm_id: UUID
    pipeline_id: UUID
    title: str = Field(min_length=1, max_length=500)
    internal_notes: dict[str, Any] | None = None


class MatterRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    firm_id: UUID
    title: str
    lifecycle_state: MatterLifecycleState
    pipeline_id: UUID
    current_stage_id: UUID | None = None
    assigned_associate_id: UUID | None = None
    assigned_case_manager_id: UUID | None = None
    internal_notes: dict[str, Any] | None = None
    version: int
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class StageTransitionRequest(BaseModel):
    stage_id: UUID
    expected_version: int | None = Field(default=None, ge=1)


class MatterStatusChangeRequest(BaseModel):
    status: str = Field(pattern="^(submitted|under_review|in_progress)$")
    note: str | None = None


class MatterCloseRequest(BaseModel):
    note: str | None = None


class MatterProgressRead(BaseModel):
    matter_id: UUID
    current_stage_id: UUID | None = None
    stage_count: int
    progress: float


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


class AssignmentRequest(BaseModel):
    role: str = Field(pattern="^(associate|case_manager)$")
    user_id: UUID | None = None


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    matter_id: UUID
    role: AssignmentRole
    user_id: UUID | None = None
    assigned_by_id: UUID
    superseded_at: datetime | None = None
    created_at: datetime


class CurrentAssigneeRead(BaseModel):
    matter_id: UUID
    role: AssignmentRole
    user_id: UUID | None = None
