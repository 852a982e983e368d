from __future__ import annotations

import enum
import json
import logging
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.coordination import HistoryAction, HistoryEvent, Matter
from app.services.common import apply_pagination, coerce_uuid
from app.services.errors import InvalidRequest, NotFound
from app.services.event import event_for_action, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _jsonable(payload: dict | None) -> dict:
    # UUIDs, datetimes and enums collapse to strings
    return json.loads(json.dumps(payload or {}, default=_encode))


def _encode(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return str(value)


class History(ListResponseMixin):
    @staticmethod
    def append(
        db: Session,
        matter_id,
        action: HistoryAction,
        actor_id,
        payload: dict | None = None,
    ) -> HistoryEvent:
        """Append an event inside the caller's transaction.

        The event is flushed but not committed; the caller commits it
        together with the mutation it records, so neither can land alone.
        """
        matter_uuid = coerce_uuid(matter_id)
        last_position = db.scalar(
            select(func.max(HistoryEvent.position)).where(
                HistoryEvent.matter_id == matter_uuid
            )
        )
        event = HistoryEvent(
            matter_id=matter_uuid,
            position=(last_position or 0) + 1,
            actor_id=coerce_uuid(actor_id),
            action=action,
            payload=_jsonable(payload),
        )
        db.add(event)
        db.flush()
        logger.debug(
            "Appended %s at position %d on matter %s",
            action.value,
            event.position,
            matter_uuid,
        )
        return event

    @staticmethod
    def publish(event: HistoryEvent, entity_id=None) -> None:
        """Hand a committed event to the notification hook."""
        event_type, entity_type = event_for_action(event.action)
        publish_event(
            event_type,
            entity_type=entity_type,
            entity_id=entity_id or event.matter_id,
            actor_id=event.actor_id,
            matter_id=event.matter_id,
            payload=event.payload,
        )

    @staticmethod
    def list(
        db: Session,
        matter_id: str,
        action: str | None,
        limit: int | None,
        offset: int,
    ) -> list[HistoryEvent]:
        matter_uuid = coerce_uuid(matter_id)
        if not db.get(Matter, matter_uuid):
            raise NotFound("Matter not found")
        query = db.query(HistoryEvent).filter(HistoryEvent.matter_id == matter_uuid)
        if action is not None:
            try:
                action_enum = HistoryAction(action)
            except ValueError as exc:
                raise InvalidRequest(f"Unknown history action: {action}") from exc
            query = query.filter(HistoryEvent.action == action_enum)
        query = query.order_by(
            HistoryEvent.created_at.desc(), HistoryEvent.position.desc()
        )
        if limit is None:
            return query.offset(offset).all()
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def timeline(db: Session, matter_id: str) -> list[HistoryEvent]:
        return History.list(db, matter_id, None, None, 0)


history = History()
