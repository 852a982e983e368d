from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor_id, get_db
from app.schemas.common import ListResponse
from app.schemas.task import (
    MaterializeRequest,
    MaterializeResult,
    TaskCreate,
    TaskRead,
    TaskStatusUpdate,
    TaskVisibilityUpdate,
)
from app.services.concurrency import with_conflict_retry
from app.services.task import tasks

router = APIRouter(tags=["tasks"])


@router.post(
    "/matters/{matter_id}/tasks",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
)
def create_task(
    matter_id: str,
    payload: TaskCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(tasks.create, db, matter_id, payload, actor_id)


@router.get("/matters/{matter_id}/tasks", response_model=ListResponse[TaskRead])
def list_tasks(
    matter_id: str,
    stage_id: str | None = None,
    status: str | None = Query(
        default=None,
        pattern="^(pending|in_progress|under_review|completed|blocked)$",
    ),
    assigned_to_id: str | None = None,
    is_client_visible: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return tasks.list_response(
        db,
        matter_id,
        stage_id,
        status,
        assigned_to_id,
        is_client_visible,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/matters/{matter_id}/tasks/materialize", response_model=MaterializeResult)
def materialize_tasks(
    matter_id: str,
    payload: MaterializeRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    created = with_conflict_retry(
        tasks.materialize, db, matter_id, str(payload.stage_id), actor_id
    )
    return {
        "matter_id": matter_id,
        "stage_id": payload.stage_id,
        "created_count": len(created),
        "task_ids": [task.id for task in created],
    }


@router.get("/tasks/{task_id}", response_model=TaskRead)
def get_task(task_id: str, db: Session = Depends(get_db)):
    return tasks.get(db, task_id)


@router.patch("/tasks/{task_id}/status", response_model=TaskRead)
def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(
        tasks.update_status, db, task_id, payload.status, actor_id
    )


@router.patch("/tasks/{task_id}/visibility", response_model=TaskRead)
def update_task_visibility(
    task_id: str,
    payload: TaskVisibilityUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(
        tasks.set_visibility, db, task_id, payload.is_client_visible, actor_id
    )
