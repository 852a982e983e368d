import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums — Matters
# ---------------------------------------------------------------------------


class MatterLifecycleState(enum.Enum):
    submitted = "submitted"
    under_review = "under_review"
    in_progress = "in_progress"
    closed = "closed"


class AssignmentRole(enum.Enum):
    associate = "associate"
    case_manager = "case_manager"


# ---------------------------------------------------------------------------
# Enums — Tasks
# ---------------------------------------------------------------------------


class TaskStatus(enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    under_review = "under_review"
    completed = "completed"
    blocked = "blocked"


class TaskPriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# ---------------------------------------------------------------------------
# Enums — Meetings
# ---------------------------------------------------------------------------


class MeetingType(enum.Enum):
    virtual = "virtual"
    physical = "physical"


class MeetingStatus(enum.Enum):
    requested = "requested"
    accepted = "accepted"
    completed = "completed"
    cancelled = "cancelled"


# ---------------------------------------------------------------------------
# Enums — History
# ---------------------------------------------------------------------------


class HistoryAction(enum.Enum):
    matter_opened = "matter_opened"
    status_changed = "status_changed"
    stage_transitioned = "stage_transitioned"
    tasks_materialized = "tasks_materialized"
    task_created = "task_created"
    task_status_changed = "task_status_changed"
    task_visibility_changed = "task_visibility_changed"
    meeting_requested = "meeting_requested"
    meeting_accepted = "meeting_accepted"
    meeting_rescheduled = "meeting_rescheduled"
    meeting_cancelled = "meeting_cancelled"
    meeting_completed = "meeting_completed"
    case_assigned = "case_assigned"
    matter_closed = "matter_closed"


# ---------------------------------------------------------------------------
# Configuration — Stages & Task Templates (read-only to the engine)
# ---------------------------------------------------------------------------


class Stage(Base):
    __tablename__ = "stages"
    __table_args__ = (
        UniqueConstraint("pipeline_id", "position", name="uq_stages_pipeline_position"),
        Index("ix_stages_pipeline_id", "pipeline_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    pipeline_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    icon_name: Mapped[str | None] = mapped_column(String(80))
    color: Mapped[str | None] = mapped_column(String(32))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    templates = relationship(
        "TaskTemplate", back_populates="stage", order_by="TaskTemplate.position"
    )


class TaskTemplate(Base):
    __tablename__ = "task_templates"
    __table_args__ = (Index("ix_task_templates_stage_id", "stage_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    stage_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stages.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    default_priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority), default=TaskPriority.medium
    )
    is_client_visible_by_default: Mapped[bool] = mapped_column(Boolean, default=False)
    required_by_default: Mapped[bool] = mapped_column(Boolean, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    stage = relationship("Stage", back_populates="templates")


# ---------------------------------------------------------------------------
# Matters
# ---------------------------------------------------------------------------


class Matter(Base):
    __tablename__ = "matters"
    __table_args__ = (
        Index("ix_matters_firm_id", "firm_id"),
        Index("ix_matters_lifecycle_state", "lifecycle_state"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    lifecycle_state: Mapped[MatterLifecycleState] = mapped_column(
        Enum(MatterLifecycleState), default=MatterLifecycleState.submitted
    )
    pipeline_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    current_stage_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("stages.id")
    )

    # Mirrors of the assignment registry's current holders
    assigned_associate_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    assigned_case_manager_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Owned by the note-editing collaborator; stored as-is
    internal_notes: Mapped[dict | None] = mapped_column(JSON)

    # Optimistic concurrency counter, bumped by every mutating operation
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    current_stage = relationship("Stage", foreign_keys=[current_stage_id])
    tasks = relationship("Task", back_populates="matter")
    meetings = relationship("Meeting", back_populates="matter")

    @property
    def is_closed(self) -> bool:
        return self.lifecycle_state == MatterLifecycleState.closed


class Assignment(Base):
    __tablename__ = "matter_assignments"
    __table_args__ = (
        Index("ix_matter_assignments_matter_role", "matter_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matters.id"), nullable=False
    )
    role: Mapped[AssignmentRole] = mapped_column(Enum(AssignmentRole), nullable=False)
    # None records an explicit clear of the role
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    assigned_by_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

MANUAL_ORIGIN = "manual"
TEMPLATE_ORIGIN_PREFIX = "materialized-from-template:"


class Task(Base):
    __tablename__ = "matter_tasks"
    __table_args__ = (
        UniqueConstraint(
            "matter_id",
            "stage_id",
            "template_id",
            name="uq_matter_tasks_matter_stage_template",
        ),
        Index("ix_matter_tasks_matter_stage", "matter_id", "stage_id"),
        Index("ix_matter_tasks_assigned_to_id", "assigned_to_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matters.id"), nullable=False
    )
    stage_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("stages.id"))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus), default=TaskStatus.pending
    )
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority), default=TaskPriority.medium
    )
    due_date: Mapped[date | None] = mapped_column(Date)
    is_client_visible: Mapped[bool] = mapped_column(Boolean, default=False)
    required_for_stage_completion: Mapped[bool] = mapped_column(Boolean, default=False)
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("task_templates.id")
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    matter = relationship("Matter", back_populates="tasks")
    stage = relationship("Stage")

    @property
    def origin(self) -> str:
        if self.template_id is None:
            return MANUAL_ORIGIN
        return f"{TEMPLATE_ORIGIN_PREFIX}{self.template_id}"


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------


class Meeting(Base):
    __tablename__ = "case_meetings"
    __table_args__ = (
        Index("ix_case_meetings_matter_id", "matter_id"),
        Index("ix_case_meetings_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matters.id"), nullable=False
    )
    internal_party_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    external_party_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    meeting_type: Mapped[MeetingType] = mapped_column(
        Enum(MeetingType), default=MeetingType.virtual
    )
    status: Mapped[MeetingStatus] = mapped_column(
        Enum(MeetingStatus), default=MeetingStatus.requested
    )
    proposed_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    confirmed_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    video_meeting_link: Mapped[str | None] = mapped_column(String(1024))
    video_provider: Mapped[str | None] = mapped_column(String(40))
    external_note: Mapped[str | None] = mapped_column(Text)
    internal_note: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    matter = relationship("Matter", back_populates="meetings")


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class HistoryEvent(Base):
    __tablename__ = "matter_history"
    __table_args__ = (
        UniqueConstraint("matter_id", "position", name="uq_matter_history_position"),
        Index("ix_matter_history_matter_created", "matter_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matters.id"), nullable=False
    )
    # Per-matter insertion sequence, starting at 1
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[HistoryAction] = mapped_column(Enum(HistoryAction), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
