from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.models.coordination import HistoryAction, Matter, MatterLifecycleState
from app.schemas.matter import MatterCreate
from app.services.authorization import Capability, ensure_can_act
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.concurrency import claim_matter, matter_transaction
from app.services.errors import InvalidTransition, MatterClosed, NotFound
from app.services.history import history
from app.services.pipeline import pipelines
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_OPEN_STATES = (
    MatterLifecycleState.submitted,
    MatterLifecycleState.under_review,
    MatterLifecycleState.in_progress,
)


def get_matter(db: Session, matter_id) -> Matter:
    matter = db.get(Matter, coerce_uuid(matter_id))
    if not matter:
        raise NotFound("Matter not found")
    return matter


def load_open_matter(db: Session, matter_id, actor_id, capability: Capability) -> Matter:
    """Fetch a matter that the actor may change, refusing closed matters."""
    matter = get_matter(db, matter_id)
    if matter.is_closed:
        raise MatterClosed(details={"matter_id": str(matter.id)})
    ensure_can_act(db, actor_id, matter, capability)
    return matter


class Matters(ListResponseMixin):
    @staticmethod
    def open(db: Session, payload: MatterCreate, actor_id) -> Matter:
        pipelines.validate_pipeline(db, payload.pipeline_id)
        with matter_transaction(db):
            matter = Matter(
                firm_id=payload.firm_id,
                title=payload.title,
                pipeline_id=payload.pipeline_id,
                internal_notes=payload.internal_notes,
                lifecycle_state=MatterLifecycleState.submitted,
            )
            db.add(matter)
            db.flush()
            event = history.append(
                db,
                matter.id,
                HistoryAction.matter_opened,
                actor_id,
                {"title": matter.title, "pipeline_id": matter.pipeline_id},
            )
        db.refresh(matter)
        logger.info("Opened matter %s on pipeline %s", matter.id, matter.pipeline_id)
        history.publish(event, entity_id=matter.id)
        return matter

    @staticmethod
    def get(db: Session, matter_id: str) -> Matter:
        return get_matter(db, matter_id)

    @staticmethod
    def list(
        db: Session,
        firm_id: str | None,
        lifecycle_state: str | None,
        pipeline_id: str | None,
        assignee_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Matter]:
        query = db.query(Matter)
        if firm_id is not None:
            query = query.filter(Matter.firm_id == coerce_uuid(firm_id))
        if lifecycle_state is not None:
            query = query.filter(
                Matter.lifecycle_state == MatterLifecycleState(lifecycle_state)
            )
        if pipeline_id is not None:
            query = query.filter(Matter.pipeline_id == coerce_uuid(pipeline_id))
        if assignee_id is not None:
            assignee_uuid = coerce_uuid(assignee_id)
            query = query.filter(
                (Matter.assigned_associate_id == assignee_uuid)
                | (Matter.assigned_case_manager_id == assignee_uuid)
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Matter.created_at,
                "updated_at": Matter.updated_at,
                "title": Matter.title,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def transition(
        db: Session,
        matter_id: str,
        stage_id: str,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Matter:
        """Move a matter to any stage of its pipeline.

        Stages need not be adjacent; backwards moves are allowed. The move,
        the version bump and the ``stage_transitioned`` event commit
        together or not at all.
        """
        matter = load_open_matter(db, matter_id, actor_id, Capability.transition_stage)
        target = pipelines.require_stage_in_pipeline(db, matter.pipeline_id, stage_id)
        previous_stage_id = matter.current_stage_id
        with matter_transaction(db):
            claim_matter(db, matter, expected_version)
            matter.current_stage_id = target.id
            event = history.append(
                db,
                matter.id,
                HistoryAction.stage_transitioned,
                actor_id,
                {
                    "from": previous_stage_id,
                    "to": target.id,
                    "to_name": target.name,
                    "actor": actor_id,
                },
            )
        db.refresh(matter)
        logger.info(
            "Transitioned matter %s from stage %s to %s",
            matter.id,
            previous_stage_id,
            target.id,
        )
        history.publish(event, entity_id=matter.id)
        return matter

    @staticmethod
    def progress(db: Session, matter_id: str) -> dict:
        matter = get_matter(db, matter_id)
        infos = pipelines.stage_infos(db, matter.pipeline_id)
        return {
            "matter_id": matter.id,
            "current_stage_id": matter.current_stage_id,
            "stage_count": len(infos),
            "progress": pipelines.progress(
                db, matter.pipeline_id, matter.current_stage_id
            ),
        }

    @staticmethod
    def change_status(
        db: Session,
        matter_id: str,
        status: str,
        actor_id: str,
        note: str | None = None,
    ) -> Matter:
        matter = load_open_matter(db, matter_id, actor_id, Capability.manage_lifecycle)
        new_state = MatterLifecycleState(status)
        if new_state not in _OPEN_STATES:
            raise InvalidTransition("Use close to close a matter")
        if new_state == matter.lifecycle_state:
            raise InvalidTransition(
                f"Matter is already {new_state.value}",
                details={"status": new_state.value},
            )
        previous_state = matter.lifecycle_state
        with matter_transaction(db):
            claim_matter(db, matter)
            matter.lifecycle_state = new_state
            event = history.append(
                db,
                matter.id,
                HistoryAction.status_changed,
                actor_id,
                {
                    "previous_status": previous_state,
                    "new_status": new_state,
                    "note": note,
                },
            )
        db.refresh(matter)
        logger.info(
            "Changed matter %s status %s -> %s",
            matter.id,
            previous_state.value,
            new_state.value,
        )
        history.publish(event, entity_id=matter.id)
        return matter

    @staticmethod
    def close(
        db: Session, matter_id: str, actor_id: str, note: str | None = None
    ) -> Matter:
        matter = load_open_matter(db, matter_id, actor_id, Capability.manage_lifecycle)
        previous_state = matter.lifecycle_state
        with matter_transaction(db):
            claim_matter(db, matter)
            matter.lifecycle_state = MatterLifecycleState.closed
            matter.closed_at = datetime.now(timezone.utc)
            event = history.append(
                db,
                matter.id,
                HistoryAction.matter_closed,
                actor_id,
                {"previous_status": previous_state, "note": note},
            )
        db.refresh(matter)
        logger.info("Closed matter %s", matter.id)
        history.publish(event, entity_id=matter.id)
        return matter


matters = Matters()
