from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.pipeline import (
    PipelineCreate,
    PipelineRead,
    StageRead,
    TaskTemplateRead,
)
from app.services.pipeline import pipelines

router = APIRouter(prefix="/pipelines", tags=["pipelines"])


@router.post("", response_model=PipelineRead, status_code=status.HTTP_201_CREATED)
def register_pipeline(payload: PipelineCreate, db: Session = Depends(get_db)):
    stages = pipelines.register(db, payload)
    return {"pipeline_id": stages[0].pipeline_id, "stages": stages}


@router.get("/{pipeline_id}", response_model=PipelineRead)
def get_pipeline(pipeline_id: str, db: Session = Depends(get_db)):
    pipelines.validate_pipeline(db, pipeline_id)
    return {"pipeline_id": pipeline_id, "stages": pipelines.list_stages(db, pipeline_id)}


@router.get("/stages/{stage_id}", response_model=StageRead)
def get_stage(stage_id: str, db: Session = Depends(get_db)):
    return pipelines.get_stage(db, stage_id)


@router.get("/stages/{stage_id}/templates", response_model=list[TaskTemplateRead])
def list_stage_templates(stage_id: str, db: Session = Depends(get_db)):
    pipelines.get_stage(db, stage_id)
    return pipelines.templates_for_stage(db, stage_id)
