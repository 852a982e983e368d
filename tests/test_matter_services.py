import uuid

import pytest
from sqlalchemy import text

from app.models.coordination import HistoryAction, MatterLifecycleState
from app.schemas.matter import MatterCreate
from app.schemas.pipeline import PipelineCreate
from app.services.concurrency import with_conflict_retry
from app.services.errors import (
    Conflict,
    InvalidStageForPipeline,
    InvalidTransition,
    MatterClosed,
    NotFound,
)
from app.services.history import history
from app.services.matter import matters
from app.services.pipeline import pipelines


class TestOpenMatter:
    def test_open_starts_submitted_without_stage(self, db_session, pipeline_id, actor_id):
        matter = matters.open(
            db_session,
            MatterCreate(firm_id=uuid.uuid4(), pipeline_id=pipeline_id, title="Estate"),
            actor_id,
        )
        assert matter.lifecycle_state == MatterLifecycleState.submitted
        assert matter.current_stage_id is None
        assert matter.version == 1
        events = history.timeline(db_session, matter.id)
        assert [e.action for e in events] == [HistoryAction.matter_opened]

    def test_open_on_unknown_pipeline(self, db_session, actor_id):
        with pytest.raises(NotFound):
            matters.open(
                db_session,
                MatterCreate(firm_id=uuid.uuid4(), pipeline_id=uuid.uuid4(), title="X"),
                actor_id,
            )


class TestTransition:
    def test_transition_sets_stage_and_bumps_version(
        self, db_session, matter, pipeline, actor_id
    ):
        updated = matters.transition(
            db_session, matter.id, pipeline["Intake"].id, actor_id
        )
        assert updated.current_stage_id == pipeline["Intake"].id
        assert updated.version == 2

        (event,) = history.timeline(db_session, matter.id)
        assert event.action == HistoryAction.stage_transitioned
        assert event.payload["from"] is None
        assert event.payload["to"] == str(pipeline["Intake"].id)
        assert event.payload["actor"] == str(actor_id)

    def test_backwards_and_skipping_moves_allowed(
        self, db_session, matter, pipeline, actor_id
    ):
        matters.transition(db_session, matter.id, pipeline["Filing"].id, actor_id)
        updated = matters.transition(
            db_session, matter.id, pipeline["Intake"].id, actor_id
        )
        assert updated.current_stage_id == pipeline["Intake"].id

        events = history.timeline(db_session, matter.id)
        assert events[0].payload["from"] == str(pipeline["Filing"].id)

    def test_transition_to_same_stage_is_recorded(
        self, db_session, matter, pipeline, actor_id
    ):
        matters.transition(db_session, matter.id, pipeline["Review"].id, actor_id)
        matters.transition(db_session, matter.id, pipeline["Review"].id, actor_id)
        assert len(history.timeline(db_session, matter.id)) == 2

    def test_stage_from_another_pipeline(self, db_session, matter, actor_id):
        other = pipelines.register(
            db_session, PipelineCreate(stages=[{"name": "Elsewhere", "position": 0}])
        )
        with pytest.raises(InvalidStageForPipeline):
            matters.transition(db_session, matter.id, other[0].id, actor_id)
        db_session.refresh(matter)
        assert matter.current_stage_id is None
        assert matter.version == 1
        assert history.timeline(db_session, matter.id) == []

    def test_unknown_stage(self, db_session, matter, actor_id):
        with pytest.raises(NotFound):
            matters.transition(db_session, matter.id, uuid.uuid4(), actor_id)

    def test_unknown_matter(self, db_session, pipeline, actor_id):
        with pytest.raises(NotFound):
            matters.transition(db_session, uuid.uuid4(), pipeline["Intake"].id, actor_id)

    def test_closed_matter_refused(self, db_session, closed_matter, pipeline, actor_id):
        with pytest.raises(MatterClosed):
            matters.transition(
                db_session, closed_matter.id, pipeline["Intake"].id, actor_id
            )
        assert history.timeline(db_session, closed_matter.id) == []

    def test_stale_expected_version_conflicts(
        self, db_session, matter, pipeline, actor_id
    ):
        matters.transition(db_session, matter.id, pipeline["Intake"].id, actor_id)
        with pytest.raises(Conflict):
            matters.transition(
                db_session,
                matter.id,
                pipeline["Review"].id,
                actor_id,
                expected_version=1,
            )
        db_session.refresh(matter)
        assert matter.current_stage_id == pipeline["Intake"].id
        assert len(history.timeline(db_session, matter.id)) == 1

    def test_concurrent_writer_conflicts(
        self, db_session, engine, matter, pipeline, actor_id
    ):
        # Another writer bumps the version between our read and our claim
        with engine.begin() as conn:
            conn.execute(
                text("UPDATE matters SET version = version + 1 WHERE id = :id"),
                {"id": matter.id.hex},
            )
        with pytest.raises(Conflict):
            matters.transition(db_session, matter.id, pipeline["Intake"].id, actor_id)

    def test_conflict_retry_recovers(self, db_session, engine, matter, pipeline, actor_id):
        with engine.begin() as conn:
            conn.execute(
                text("UPDATE matters SET version = version + 1 WHERE id = :id"),
                {"id": matter.id.hex},
            )
        updated = with_conflict_retry(
            matters.transition, db_session, matter.id, pipeline["Intake"].id, actor_id
        )
        assert updated.current_stage_id == pipeline["Intake"].id
        assert updated.version == 3


class TestProgress:
    def test_progress_follows_current_stage(self, db_session, matter, pipeline, actor_id):
        assert matters.progress(db_session, matter.id)["progress"] == 0.0
        matters.transition(db_session, matter.id, pipeline["Review"].id, actor_id)
        result = matters.progress(db_session, matter.id)
        assert result["stage_count"] == 3
        assert result["progress"] == pytest.approx(2 / 3)


class TestLifecycle:
    def test_change_status(self, db_session, matter, actor_id):
        updated = matters.change_status(
            db_session, matter.id, "under_review", actor_id, note="Docs received"
        )
        assert updated.lifecycle_state == MatterLifecycleState.under_review
        (event,) = history.timeline(db_session, matter.id)
        assert event.payload == {
            "previous_status": "submitted",
            "new_status": "under_review",
            "note": "Docs received",
        }

    def test_change_to_same_status(self, db_session, matter, actor_id):
        with pytest.raises(InvalidTransition):
            matters.change_status(db_session, matter.id, "submitted", actor_id)

    def test_close_then_everything_refused(self, db_session, matter, pipeline, actor_id):
        closed = matters.close(db_session, matter.id, actor_id, note="Settled")
        assert closed.lifecycle_state == MatterLifecycleState.closed
        assert closed.closed_at is not None

        with pytest.raises(MatterClosed):
            matters.close(db_session, matter.id, actor_id)
        with pytest.raises(MatterClosed):
            matters.change_status(db_session, matter.id, "in_progress", actor_id)
        with pytest.raises(MatterClosed):
            matters.transition(db_session, matter.id, pipeline["Review"].id, actor_id)

        actions = [e.action for e in history.timeline(db_session, matter.id)]
        assert actions == [HistoryAction.matter_closed]


class TestListMatters:
    def test_filters(self, db_session, make_matter, actor_id):
        firm_id = uuid.uuid4()
        mine = make_matter(firm_id=firm_id, assigned_associate_id=actor_id)
        make_matter(firm_id=firm_id)
        make_matter()

        by_firm = matters.list(
            db_session, str(firm_id), None, None, None, "created_at", "asc", 50, 0
        )
        assert len(by_firm) == 2

        by_assignee = matters.list(
            db_session, None, None, None, str(actor_id), "created_at", "asc", 50, 0
        )
        assert [m.id for m in by_assignee] == [mine.id]

    def test_list_response_shape(self, db_session, matter):
        result = matters.list_response(
            db_session, None, "submitted", None, None, "created_at", "desc", 10, 0
        )
        assert result["count"] == 1
        assert result["limit"] == 10
        assert result["offset"] == 0
