import uuid
from unittest.mock import MagicMock, patch

from app.models.coordination import HistoryAction
from app.services.event import EventType, event_for_action, publish_event


class TestEventType:
    def test_all_event_types_have_dotted_values(self) -> None:
        for et in EventType:
            assert "." in et.value, f"{et.name} value should contain a dot"

    def test_every_history_action_maps_to_an_event(self) -> None:
        for action in HistoryAction:
            event_type, entity_type = event_for_action(action)
            assert isinstance(event_type, EventType)
            assert entity_type in {"matter", "stage", "task", "meeting"}

    def test_matter_events(self) -> None:
        assert EventType.matter_stage_transitioned.value == "matter.stage_transitioned"
        assert event_for_action(HistoryAction.case_assigned) == (
            EventType.matter_assigned,
            "matter",
        )

    def test_meeting_events(self) -> None:
        assert EventType.meeting_accepted.value == "meeting.accepted"
        assert EventType.meeting_rescheduled.value == "meeting.rescheduled"


class TestPublishEvent:
    def test_publish_event_calls_delay(self, published_events: MagicMock) -> None:
        entity_id = uuid.uuid4()
        actor_id = uuid.uuid4()
        matter_id = uuid.uuid4()
        publish_event(
            EventType.task_created,
            entity_type="task",
            entity_id=entity_id,
            actor_id=actor_id,
            matter_id=matter_id,
            payload={"title": "Draft"},
        )
        published_events.assert_called_once_with(
            event_type="task.created",
            entity_type="task",
            entity_id=str(entity_id),
            actor_id=str(actor_id),
            matter_id=str(matter_id),
            payload={"title": "Draft"},
        )

    def test_optional_fields_default_to_none(self, published_events: MagicMock) -> None:
        publish_event(EventType.matter_closed, entity_type="matter", entity_id="m1")
        kwargs = published_events.call_args.kwargs
        assert kwargs["actor_id"] is None
        assert kwargs["matter_id"] is None
        assert kwargs["payload"] == {}

    def test_broker_failure_is_swallowed(self, published_events: MagicMock) -> None:
        published_events.side_effect = ConnectionError("broker down")
        publish_event(EventType.matter_opened, entity_type="matter", entity_id="m1")


class TestProcessEvent:
    @patch("app.tasks.notifications.dispatch_notification.delay")
    def test_fans_out_to_notifications(self, mock_dispatch: MagicMock) -> None:
        from app.tasks.events import process_event

        process_event.run(
            event_type="meeting.requested",
            entity_type="meeting",
            entity_id="meet-1",
            matter_id="matter-1",
        )
        mock_dispatch.assert_called_once_with(
            event_type="meeting.requested",
            entity_type="meeting",
            entity_id="meet-1",
            actor_id=None,
            matter_id="matter-1",
            payload={},
        )

    @patch("app.tasks.notifications.dispatch_notification.delay")
    def test_fanout_failure_is_logged(self, mock_dispatch: MagicMock) -> None:
        from app.tasks.events import process_event

        mock_dispatch.side_effect = ConnectionError("broker down")
        process_event.run(event_type="matter.closed", entity_type="matter", entity_id="m1")
