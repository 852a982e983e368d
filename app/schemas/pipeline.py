from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.coordination import TaskPriority


# ---------------------------------------------------------------------------
# TaskTemplate
# ---------------------------------------------------------------------------


class TaskTemplateCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    default_priority: str = Field(
        default="medium", pattern="^(low|medium|high|urgent)$"
    )
    is_client_visible_by_default: bool = False
    required_by_default: bool = False


class TaskTemplateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    stage_id: UUID
    title: str
    description: str | None = None
    default_priority: TaskPriority
    is_client_visible_by_default: bool
    required_by_default: bool
    position: int


# ---------------------------------------------------------------------------
# Stage
# ---------------------------------------------------------------------------


class StageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    description: str | None = None
    position: int = Field(ge=0)
    icon_name: str | None = None
    color: str | None = None
    templates: list[TaskTemplateCreate] = Field(default_factory=list)


class StageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pipeline_id: UUID
    name: str
    description: str | None = None
    position: int
    icon_name: str | None = None
    color: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class PipelineCreate(BaseModel):
    pipeline_id: UUID | None = None
    stages: list[StageCreate] = Field(min_length=1)


class PipelineRead(BaseModel):
    pipeline_id: UUID
    stages: list[StageRead]
