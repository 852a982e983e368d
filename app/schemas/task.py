from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.coordination import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    stage_id: UUID | None = None
    priority: str = Field(default="medium", pattern="^(low|medium|high|urgent)$")
    due_date: date | None = None
    is_client_visible: bool = False
    required_for_stage_completion: bool = False
    assigned_to_id: UUID | None = None


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    matter_id: UUID
    stage_id: UUID | None = None
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None = None
    is_client_visible: bool
    required_for_stage_completion: bool
    assigned_to_id: UUID | None = None
    created_by_id: UUID | None = None
    template_id: UUID | None = None
    origin: str
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TaskStatusUpdate(BaseModel):
    status: str = Field(
        pattern="^(pending|in_progress|under_review|completed|blocked)$"
    )


class TaskVisibilityUpdate(BaseModel):
    is_client_visible: bool


class MaterializeRequest(BaseModel):
    stage_id: UUID


class MaterializeResult(BaseModel):
    matter_id: UUID
    stage_id: UUID
    created_count: int
    task_ids: list[UUID]
