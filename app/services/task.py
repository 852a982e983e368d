from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.coordination import (
    HistoryAction,
    Task,
    TaskPriority,
    TaskStatus,
)
from app.schemas.task import TaskCreate
from app.services.authorization import Capability
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.concurrency import claim_matter, matter_transaction
from app.services.errors import InvalidTransition, NotFound
from app.services.history import history
from app.services.matter import get_matter, load_open_matter
from app.services.pipeline import pipelines
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _existing_keys(
    db: Session, matter_id: uuid.UUID, stage_id: uuid.UUID
) -> tuple[set[uuid.UUID], set[str]]:
    """Template ids and titles already materialized for (matter, stage)."""
    rows = db.execute(
        select(Task.template_id, Task.title).where(
            Task.matter_id == matter_id, Task.stage_id == stage_id
        )
    ).all()
    template_ids = {row.template_id for row in rows if row.template_id is not None}
    titles = {row.title for row in rows}
    return template_ids, titles


def _get_task(db: Session, task_id) -> Task:
    task = db.get(Task, coerce_uuid(task_id))
    if not task:
        raise NotFound("Task not found")
    return task


class Tasks(ListResponseMixin):
    @staticmethod
    def materialize(
        db: Session, matter_id: str, stage_id: str, actor_id: str
    ) -> list[Task]:
        """Create the stage's template tasks that the matter does not have yet.

        Re-running is harmless: templates already materialized are skipped,
        and the (matter, stage, template) unique constraint turns a lost
        race into a retryable ``Conflict`` instead of a duplicate. Every
        call records one ``tasks_materialized`` event, including calls
        that create nothing.
        """
        matter = load_open_matter(db, matter_id, actor_id, Capability.materialize_tasks)
        stage = pipelines.require_stage_in_pipeline(db, matter.pipeline_id, stage_id)
        templates = pipelines.templates_for_stage(db, stage.id)
        actor_uuid = coerce_uuid(actor_id)

        with matter_transaction(db):
            claim_matter(db, matter)
            template_ids, titles = _existing_keys(db, matter.id, stage.id)
            created: list[Task] = []
            for template in templates:
                if template.id in template_ids:
                    continue
                if settings.legacy_title_dedup and template.title in titles:
                    continue
                created.append(
                    Task(
                        matter_id=matter.id,
                        stage_id=stage.id,
                        title=template.title,
                        description=template.description,
                        priority=template.default_priority,
                        is_client_visible=template.is_client_visible_by_default,
                        required_for_stage_completion=template.required_by_default,
                        template_id=template.id,
                        created_by_id=actor_uuid,
                        status=TaskStatus.pending,
                    )
                )
            if created:
                db.add_all(created)
                db.flush()
            event = history.append(
                db,
                matter.id,
                HistoryAction.tasks_materialized,
                actor_id,
                {
                    "stage_id": stage.id,
                    "task_ids": [task.id for task in created],
                    "created_count": len(created),
                    "template_count": len(templates),
                },
            )
        logger.info(
            "Materialized %d of %d templates for matter %s stage %s",
            len(created),
            len(templates),
            matter.id,
            stage.id,
        )
        history.publish(event, entity_id=stage.id)
        return created

    @staticmethod
    def materialize_for_stage(
        db: Session, matter_id: str, stage_id: str, actor_id: str
    ) -> int:
        return len(Tasks.materialize(db, matter_id, stage_id, actor_id))

    @staticmethod
    def create(db: Session, matter_id: str, payload: TaskCreate, actor_id: str) -> Task:
        matter = load_open_matter(db, matter_id, actor_id, Capability.manage_tasks)
        if payload.stage_id is not None:
            pipelines.require_stage_in_pipeline(db, matter.pipeline_id, payload.stage_id)
        data = payload.model_dump()
        data["priority"] = TaskPriority(data["priority"])
        with matter_transaction(db):
            claim_matter(db, matter)
            task = Task(
                matter_id=matter.id,
                created_by_id=coerce_uuid(actor_id),
                status=TaskStatus.pending,
                **data,
            )
            db.add(task)
            db.flush()
            event = history.append(
                db,
                matter.id,
                HistoryAction.task_created,
                actor_id,
                {"task_id": task.id, "title": task.title, "stage_id": task.stage_id},
            )
        db.refresh(task)
        logger.info("Created task %s on matter %s", task.id, matter.id)
        history.publish(event, entity_id=task.id)
        return task

    @staticmethod
    def get(db: Session, task_id: str) -> Task:
        return _get_task(db, task_id)

    @staticmethod
    def list(
        db: Session,
        matter_id: str,
        stage_id: str | None,
        status: str | None,
        assigned_to_id: str | None,
        is_client_visible: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Task]:
        get_matter(db, matter_id)
        query = db.query(Task).filter(Task.matter_id == coerce_uuid(matter_id))
        if stage_id is not None:
            query = query.filter(Task.stage_id == coerce_uuid(stage_id))
        if status is not None:
            query = query.filter(Task.status == TaskStatus(status))
        if assigned_to_id is not None:
            query = query.filter(Task.assigned_to_id == coerce_uuid(assigned_to_id))
        if is_client_visible is not None:
            query = query.filter(Task.is_client_visible == is_client_visible)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Task.created_at,
                "due_date": Task.due_date,
                "title": Task.title,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update_status(db: Session, task_id: str, status: str, actor_id: str) -> Task:
        task = _get_task(db, task_id)
        matter = load_open_matter(db, task.matter_id, actor_id, Capability.manage_tasks)
        new_status = TaskStatus(status)
        if task.status == new_status:
            raise InvalidTransition(
                f"Task is already {new_status.value}",
                details={"status": new_status.value},
            )
        previous_status = task.status
        with matter_transaction(db):
            claim_matter(db, matter)
            task.status = new_status
            task.completed_at = (
                datetime.now(timezone.utc)
                if new_status == TaskStatus.completed
                else None
            )
            event = history.append(
                db,
                matter.id,
                HistoryAction.task_status_changed,
                actor_id,
                {
                    "task_id": task.id,
                    "previous_status": previous_status,
                    "new_status": new_status,
                },
            )
        db.refresh(task)
        logger.info(
            "Task %s status %s -> %s", task.id, previous_status.value, new_status.value
        )
        history.publish(event, entity_id=task.id)
        return task

    @staticmethod
    def set_visibility(
        db: Session, task_id: str, visible: bool, actor_id: str
    ) -> Task:
        task = _get_task(db, task_id)
        matter = load_open_matter(db, task.matter_id, actor_id, Capability.manage_tasks)
        with matter_transaction(db):
            claim_matter(db, matter)
            task.is_client_visible = visible
            event = history.append(
                db,
                matter.id,
                HistoryAction.task_visibility_changed,
                actor_id,
                {"task_id": task.id, "is_client_visible": visible},
            )
        db.refresh(task)
        logger.info("Task %s client visibility set to %s", task.id, visible)
        history.publish(event, entity_id=task.id)
        return task


tasks = Tasks()
