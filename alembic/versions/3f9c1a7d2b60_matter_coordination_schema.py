"""matter coordination schema

Revision ID: 3f9c1a7d2b60
Revises:
Create Date: 2026-10-18 09:12:40.118214

"""

from alembic import op
import sqlalchemy as sa

revision = "3f9c1a7d2b60"
down_revision = None
branch_labels = None
depends_on = None

_PRIORITY = ("low", "medium", "high", "urgent")


def upgrade() -> None:
    # Configuration tables
    op.create_table(
        "stages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("pipeline_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("icon_name", sa.String(length=80), nullable=True),
        sa.Column("color", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "pipeline_id", "position", name="uq_stages_pipeline_position"
        ),
    )
    op.create_index("ix_stages_pipeline_id", "stages", ["pipeline_id"])

    op.create_table(
        "task_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("stage_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "default_priority",
            sa.Enum(*_PRIORITY, name="taskpriority"),
            nullable=True,
        ),
        sa.Column("is_client_visible_by_default", sa.Boolean(), nullable=True),
        sa.Column("required_by_default", sa.Boolean(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["stage_id"], ["stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_templates_stage_id", "task_templates", ["stage_id"])

    # Matters
    op.create_table(
        "matters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("firm_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column(
            "lifecycle_state",
            sa.Enum(
                "submitted",
                "under_review",
                "in_progress",
                "closed",
                name="matterlifecyclestate",
            ),
            nullable=True,
        ),
        sa.Column("pipeline_id", sa.Uuid(), nullable=False),
        sa.Column("current_stage_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_associate_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_case_manager_id", sa.Uuid(), nullable=True),
        sa.Column("internal_notes", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["current_stage_id"], ["stages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_matters_firm_id", "matters", ["firm_id"])
    op.create_index("ix_matters_lifecycle_state", "matters", ["lifecycle_state"])

    op.create_table(
        "matter_assignments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("matter_id", sa.Uuid(), nullable=False),
        sa.Column(
            "role",
            sa.Enum("associate", "case_manager", name="assignmentrole"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_by_id", sa.Uuid(), nullable=False),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["matter_id"], ["matters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_matter_assignments_matter_role",
        "matter_assignments",
        ["matter_id", "role"],
    )

    # Tasks
    op.create_table(
        "matter_tasks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("matter_id", sa.Uuid(), nullable=False),
        sa.Column("stage_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "in_progress",
                "under_review",
                "completed",
                "blocked",
                name="taskstatus",
            ),
            nullable=True,
        ),
        sa.Column(
            "priority",
            sa.Enum(*_PRIORITY, name="taskpriority", create_type=False),
            nullable=True,
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("is_client_visible", sa.Boolean(), nullable=True),
        sa.Column("required_for_stage_completion", sa.Boolean(), nullable=True),
        sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=True),
        sa.Column("template_id", sa.Uuid(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["matter_id"], ["matters.id"]),
        sa.ForeignKeyConstraint(["stage_id"], ["stages.id"]),
        sa.ForeignKeyConstraint(["template_id"], ["task_templates.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "matter_id",
            "stage_id",
            "template_id",
            name="uq_matter_tasks_matter_stage_template",
        ),
    )
    op.create_index(
        "ix_matter_tasks_matter_stage", "matter_tasks", ["matter_id", "stage_id"]
    )
    op.create_index(
        "ix_matter_tasks_assigned_to_id", "matter_tasks", ["assigned_to_id"]
    )

    # Meetings
    op.create_table(
        "case_meetings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("matter_id", sa.Uuid(), nullable=False),
        sa.Column("internal_party_id", sa.Uuid(), nullable=True),
        sa.Column("external_party_id", sa.Uuid(), nullable=False),
        sa.Column(
            "meeting_type",
            sa.Enum("virtual", "physical", name="meetingtype"),
            nullable=True,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "requested", "accepted", "completed", "cancelled", name="meetingstatus"
            ),
            nullable=True,
        ),
        sa.Column("proposed_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("video_meeting_link", sa.String(length=1024), nullable=True),
        sa.Column("video_provider", sa.String(length=40), nullable=True),
        sa.Column("external_note", sa.Text(), nullable=True),
        sa.Column("internal_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["matter_id"], ["matters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_meetings_matter_id", "case_meetings", ["matter_id"])
    op.create_index("ix_case_meetings_status", "case_meetings", ["status"])

    # History
    op.create_table(
        "matter_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("matter_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "matter_opened",
                "status_changed",
                "stage_transitioned",
                "tasks_materialized",
                "task_created",
                "task_status_changed",
                "task_visibility_changed",
                "meeting_requested",
                "meeting_accepted",
                "meeting_rescheduled",
                "meeting_cancelled",
                "meeting_completed",
                "case_assigned",
                "matter_closed",
                name="historyaction",
            ),
            nullable=False,
        ),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["matter_id"], ["matters.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "matter_id", "position", name="uq_matter_history_position"
        ),
    )
    op.create_index(
        "ix_matter_history_matter_created",
        "matter_history",
        ["matter_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_matter_history_matter_created", table_name="matter_history")
    op.drop_table("matter_history")
    op.drop_index("ix_case_meetings_status", table_name="case_meetings")
    op.drop_index("ix_case_meetings_matter_id", table_name="case_meetings")
    op.drop_table("case_meetings")
    op.drop_index("ix_matter_tasks_assigned_to_id", table_name="matter_tasks")
    op.drop_index("ix_matter_tasks_matter_stage", table_name="matter_tasks")
    op.drop_table("matter_tasks")
    op.drop_index("ix_matter_assignments_matter_role", table_name="matter_assignments")
    op.drop_table("matter_assignments")
    op.drop_index("ix_matters_lifecycle_state", table_name="matters")
    op.drop_index("ix_matters_firm_id", table_name="matters")
    op.drop_table("matters")
    op.drop_index("ix_task_templates_stage_id", table_name="task_templates")
    op.drop_table("task_templates")
    op.drop_index("ix_stages_pipeline_id", table_name="stages")
    op.drop_table("stages")

    for enum_name in (
        "historyaction",
        "meetingstatus",
        "meetingtype",
        "taskstatus",
        "taskpriority",
        "assignmentrole",
        "matterlifecyclestate",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
