from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.coordination import Assignment, AssignmentRole, HistoryAction, Matter
from app.services.authorization import Capability
from app.services.common import coerce_uuid
from app.services.concurrency import claim_matter, matter_transaction
from app.services.history import history
from app.services.matter import get_matter, load_open_matter

logger = logging.getLogger(__name__)

_MATTER_COLUMNS = {
    AssignmentRole.associate: "assigned_associate_id",
    AssignmentRole.case_manager: "assigned_case_manager_id",
}


def _capability_for(role) -> Capability:
    if role in (AssignmentRole.case_manager, AssignmentRole.case_manager.value):
        return Capability.assign_case_manager
    return Capability.assign


def _current_row(db: Session, matter_id: uuid.UUID, role: AssignmentRole) -> Assignment | None:
    return db.scalars(
        select(Assignment)
        .where(
            Assignment.matter_id == matter_id,
            Assignment.role == role,
            Assignment.superseded_at.is_(None),
        )
        .order_by(Assignment.created_at.desc())
        .limit(1)
    ).first()


class Assignments:
    @staticmethod
    def assign(
        db: Session, matter_id: str, role: str, user_id: str | None, actor_id: str
    ) -> Assignment:
        """Make ``user_id`` the holder of ``role``; ``None`` clears the role.

        Repeating the current holder is allowed and still audited.
        """
        matter = load_open_matter(db, matter_id, actor_id, _capability_for(role))
        role_enum = AssignmentRole(role)
        user_uuid = coerce_uuid(user_id)
        now = datetime.now(timezone.utc)

        with matter_transaction(db):
            claim_matter(db, matter)
            current = _current_row(db, matter.id, role_enum)
            previous_user_id = current.user_id if current else None
            if current is not None:
                current.superseded_at = now
            row = Assignment(
                matter_id=matter.id,
                role=role_enum,
                user_id=user_uuid,
                assigned_by_id=coerce_uuid(actor_id),
            )
            db.add(row)
            setattr(matter, _MATTER_COLUMNS[role_enum], user_uuid)
            db.flush()
            event = history.append(
                db,
                matter.id,
                HistoryAction.case_assigned,
                actor_id,
                {
                    "role": role_enum,
                    "user_id": user_uuid,
                    "previous_user_id": previous_user_id,
                    "assignment_id": row.id,
                },
            )
        db.refresh(row)
        logger.info(
            "Assigned %s on matter %s to %s (was %s)",
            role_enum.value,
            matter.id,
            user_uuid,
            previous_user_id,
        )
        history.publish(event, entity_id=matter.id)
        return row

    @staticmethod
    def current_assignee(db: Session, matter_id: str, role: str) -> uuid.UUID | None:
        matter = get_matter(db, matter_id)
        current = _current_row(db, matter.id, AssignmentRole(role))
        return current.user_id if current else None

    @staticmethod
    def assignment_history(
        db: Session, matter_id: str, role: str | None = None
    ) -> list[Assignment]:
        matter: Matter = get_matter(db, matter_id)
        query = db.query(Assignment).filter(Assignment.matter_id == matter.id)
        if role is not None:
            query = query.filter(Assignment.role == AssignmentRole(role))
        return query.order_by(Assignment.created_at.desc()).all()


assignments = Assignments()
