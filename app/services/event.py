import enum
import logging
import uuid

from app.models.coordination import HistoryAction

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    matter_opened = "matter.opened"
    matter_status_changed = "matter.status_changed"
    matter_stage_transitioned = "matter.stage_transitioned"
    matter_assigned = "matter.assigned"
    matter_closed = "matter.closed"

    tasks_materialized = "task.materialized"
    task_created = "task.created"
    task_status_changed = "task.status_changed"
    task_visibility_changed = "task.visibility_changed"

    meeting_requested = "meeting.requested"
    meeting_accepted = "meeting.accepted"
    meeting_rescheduled = "meeting.rescheduled"
    meeting_cancelled = "meeting.cancelled"
    meeting_completed = "meeting.completed"


_ACTION_EVENTS = {
    HistoryAction.matter_opened: (EventType.matter_opened, "matter"),
    HistoryAction.status_changed: (EventType.matter_status_changed, "matter"),
    HistoryAction.stage_transitioned: (EventType.matter_stage_transitioned, "matter"),
    HistoryAction.case_assigned: (EventType.matter_assigned, "matter"),
    HistoryAction.matter_closed: (EventType.matter_closed, "matter"),
    HistoryAction.tasks_materialized: (EventType.tasks_materialized, "stage"),
    HistoryAction.task_created: (EventType.task_created, "task"),
    HistoryAction.task_status_changed: (EventType.task_status_changed, "task"),
    HistoryAction.task_visibility_changed: (EventType.task_visibility_changed, "task"),
    HistoryAction.meeting_requested: (EventType.meeting_requested, "meeting"),
    HistoryAction.meeting_accepted: (EventType.meeting_accepted, "meeting"),
    HistoryAction.meeting_rescheduled: (EventType.meeting_rescheduled, "meeting"),
    HistoryAction.meeting_cancelled: (EventType.meeting_cancelled, "meeting"),
    HistoryAction.meeting_completed: (EventType.meeting_completed, "meeting"),
}


def event_for_action(action: HistoryAction) -> tuple[EventType, str]:
    """Return the published event type and entity type for a history action."""
    return _ACTION_EVENTS[action]


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    matter_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task for fan-out to the notification collaborator.
    Never raises. Failures are logged and skipped, so a committed mutation is
    never undone by a delivery problem.
    """
    try:
        from app.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            matter_id=str(matter_id) if matter_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
