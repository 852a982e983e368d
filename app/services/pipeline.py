from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from threading import Lock
from time import monotonic

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.coordination import Stage, TaskPriority, TaskTemplate
from app.schemas.pipeline import PipelineCreate
from app.services.common import coerce_uuid
from app.services.errors import InvalidRequest, InvalidStageForPipeline, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageInfo:
    id: uuid.UUID
    pipeline_id: uuid.UUID
    name: str
    position: int


_STAGE_CACHE: dict[uuid.UUID, tuple[float, list[StageInfo]]] = {}
_STAGE_CACHE_LOCK = Lock()


def _check_contiguous(pipeline_id, positions: list[int]) -> None:
    if sorted(positions) != list(range(len(positions))):
        raise InvalidStageForPipeline(
            f"Stage positions for pipeline {pipeline_id} must be unique and "
            "contiguous from 0",
            details={"positions": sorted(positions)},
        )


class Pipelines:
    @staticmethod
    def invalidate(pipeline_id=None) -> None:
        with _STAGE_CACHE_LOCK:
            if pipeline_id is None:
                _STAGE_CACHE.clear()
            else:
                _STAGE_CACHE.pop(coerce_uuid(pipeline_id), None)

    @staticmethod
    def stage_infos(db: Session, pipeline_id) -> list[StageInfo]:
        """Ordered stages of a pipeline, served from a short-lived cache."""
        pipeline_uuid = coerce_uuid(pipeline_id)
        now = monotonic()
        with _STAGE_CACHE_LOCK:
            cached = _STAGE_CACHE.get(pipeline_uuid)
            if cached and now - cached[0] < settings.pipeline_cache_ttl_seconds:
                return cached[1]
        rows = db.scalars(
            select(Stage)
            .where(Stage.pipeline_id == pipeline_uuid)
            .order_by(Stage.position.asc())
        ).all()
        infos = [
            StageInfo(
                id=row.id,
                pipeline_id=row.pipeline_id,
                name=row.name,
                position=row.position,
            )
            for row in rows
        ]
        with _STAGE_CACHE_LOCK:
            _STAGE_CACHE[pipeline_uuid] = (now, infos)
        return infos

    @staticmethod
    def list_stages(db: Session, pipeline_id) -> list[Stage]:
        return db.scalars(
            select(Stage)
            .where(Stage.pipeline_id == coerce_uuid(pipeline_id))
            .order_by(Stage.position.asc())
        ).all()

    @staticmethod
    def get_stage(db: Session, stage_id) -> Stage:
        stage = db.get(Stage, coerce_uuid(stage_id))
        if not stage:
            raise NotFound("Stage not found")
        return stage

    @staticmethod
    def require_stage_in_pipeline(db: Session, pipeline_id, stage_id) -> StageInfo:
        stage_uuid = coerce_uuid(stage_id)
        for info in Pipelines.stage_infos(db, pipeline_id):
            if info.id == stage_uuid:
                return info
        # Distinguish a missing stage from one that belongs elsewhere
        stage = Pipelines.get_stage(db, stage_uuid)
        raise InvalidStageForPipeline(
            details={
                "stage_id": str(stage.id),
                "stage_pipeline_id": str(stage.pipeline_id),
                "pipeline_id": str(pipeline_id),
            }
        )

    @staticmethod
    def templates_for_stage(db: Session, stage_id) -> list[TaskTemplate]:
        return db.scalars(
            select(TaskTemplate)
            .where(TaskTemplate.stage_id == coerce_uuid(stage_id))
            .order_by(TaskTemplate.position.asc(), TaskTemplate.created_at.asc())
        ).all()

    @staticmethod
    def validate_pipeline(db: Session, pipeline_id) -> None:
        infos = Pipelines.stage_infos(db, pipeline_id)
        if not infos:
            raise NotFound("Pipeline has no stages")
        _check_contiguous(pipeline_id, [info.position for info in infos])

    @staticmethod
    def progress(db: Session, pipeline_id, current_stage_id) -> float:
        if current_stage_id is None:
            return 0.0
        infos = Pipelines.stage_infos(db, pipeline_id)
        for info in infos:
            if info.id == current_stage_id:
                return (info.position + 1) / len(infos)
        return 0.0

    @staticmethod
    def register(db: Session, payload: PipelineCreate) -> list[Stage]:
        """Seed a pipeline's stages and their task templates."""
        pipeline_uuid = payload.pipeline_id or uuid.uuid4()
        if db.scalar(select(Stage.id).where(Stage.pipeline_id == pipeline_uuid)):
            raise InvalidRequest(f"Pipeline {pipeline_uuid} is already registered")
        _check_contiguous(pipeline_uuid, [s.position for s in payload.stages])

        stages = []
        for stage_payload in payload.stages:
            stage = Stage(
                pipeline_id=pipeline_uuid,
                name=stage_payload.name,
                description=stage_payload.description,
                position=stage_payload.position,
                icon_name=stage_payload.icon_name,
                color=stage_payload.color,
            )
            db.add(stage)
            db.flush()
            for index, template in enumerate(stage_payload.templates):
                db.add(
                    TaskTemplate(
                        stage_id=stage.id,
                        title=template.title,
                        description=template.description,
                        default_priority=TaskPriority(template.default_priority),
                        is_client_visible_by_default=template.is_client_visible_by_default,
                        required_by_default=template.required_by_default,
                        position=index,
                    )
                )
            stages.append(stage)
        db.commit()
        for stage in stages:
            db.refresh(stage)
        Pipelines.invalidate(pipeline_uuid)
        logger.info(
            "Registered pipeline %s with %d stages", pipeline_uuid, len(stages)
        )
        return sorted(stages, key=lambda s: s.position)


pipelines = Pipelines()
