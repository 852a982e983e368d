import uuid

import pytest

from app.models.coordination import Stage, TaskPriority
from app.schemas.pipeline import PipelineCreate
from app.services.errors import InvalidRequest, InvalidStageForPipeline, NotFound
from app.services.pipeline import pipelines


class TestRegister:
    def test_stages_ordered_by_position(self, db_session, pipeline, pipeline_id):
        stages = pipelines.list_stages(db_session, pipeline_id)
        assert [s.name for s in stages] == ["Intake", "Review", "Filing"]
        assert [s.position for s in stages] == [0, 1, 2]

    def test_templates_keep_payload_order_and_defaults(self, db_session, pipeline):
        templates = pipelines.templates_for_stage(db_session, pipeline["Intake"].id)
        assert [t.title for t in templates] == [
            "Collect client documents",
            "Send engagement letter",
        ]
        assert templates[0].default_priority == TaskPriority.high
        assert templates[1].is_client_visible_by_default is True
        assert templates[1].required_by_default is True

    def test_rejects_gap_in_positions(self, db_session):
        payload = PipelineCreate(
            stages=[{"name": "A", "position": 0}, {"name": "B", "position": 2}]
        )
        with pytest.raises(InvalidStageForPipeline):
            pipelines.register(db_session, payload)
        assert db_session.query(Stage).count() == 0

    def test_rejects_duplicate_registration(self, db_session, pipeline_id):
        payload = PipelineCreate(
            pipeline_id=pipeline_id, stages=[{"name": "Again", "position": 0}]
        )
        with pytest.raises(InvalidRequest):
            pipelines.register(db_session, payload)


class TestCatalogReads:
    def test_get_stage_not_found(self, db_session):
        with pytest.raises(NotFound):
            pipelines.get_stage(db_session, uuid.uuid4())

    def test_validate_unknown_pipeline(self, db_session):
        with pytest.raises(NotFound):
            pipelines.validate_pipeline(db_session, uuid.uuid4())

    def test_validate_detects_non_contiguous_rows(self, db_session):
        pipeline_id = uuid.uuid4()
        db_session.add_all(
            [
                Stage(pipeline_id=pipeline_id, name="First", position=0),
                Stage(pipeline_id=pipeline_id, name="Third", position=2),
            ]
        )
        db_session.commit()
        with pytest.raises(InvalidStageForPipeline):
            pipelines.validate_pipeline(db_session, pipeline_id)

    def test_require_stage_from_other_pipeline(self, db_session, pipeline_id):
        other = pipelines.register(
            db_session, PipelineCreate(stages=[{"name": "Other", "position": 0}])
        )
        with pytest.raises(InvalidStageForPipeline) as exc:
            pipelines.require_stage_in_pipeline(db_session, pipeline_id, other[0].id)
        assert exc.value.detail["code"] == "invalid_stage_for_pipeline"

    def test_require_missing_stage_is_not_found(self, db_session, pipeline_id):
        with pytest.raises(NotFound):
            pipelines.require_stage_in_pipeline(db_session, pipeline_id, uuid.uuid4())


class TestProgress:
    def test_progress_per_stage(self, db_session, pipeline, pipeline_id):
        assert pipelines.progress(db_session, pipeline_id, None) == 0.0
        assert pipelines.progress(
            db_session, pipeline_id, pipeline["Intake"].id
        ) == pytest.approx(1 / 3)
        assert pipelines.progress(db_session, pipeline_id, pipeline["Filing"].id) == 1.0

    def test_empty_pipeline_is_zero(self, db_session):
        assert pipelines.progress(db_session, uuid.uuid4(), uuid.uuid4()) == 0.0


class TestStageCache:
    def test_cached_until_invalidated(self, db_session, pipeline_id):
        first = pipelines.stage_infos(db_session, pipeline_id)
        db_session.add(Stage(pipeline_id=pipeline_id, name="Appeal", position=3))
        db_session.commit()

        assert pipelines.stage_infos(db_session, pipeline_id) == first

        pipelines.invalidate(pipeline_id)
        refreshed = pipelines.stage_infos(db_session, pipeline_id)
        assert [info.name for info in refreshed][-1] == "Appeal"
