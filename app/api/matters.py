from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor_id, get_db
from app.models.coordination import HistoryAction
from app.schemas.common import ListResponse
from app.schemas.history import HistoryEventRead
from app.schemas.matter import (
    AssignmentRead,
    AssignmentRequest,
    CurrentAssigneeRead,
    MatterCloseRequest,
    MatterCreate,
    MatterProgressRead,
    MatterRead,
    MatterStatusChangeRequest,
    StageTransitionRequest,
)
from app.services.assignment import assignments
from app.services.concurrency import with_conflict_retry
from app.services.errors import InvalidRequest
from app.services.history import history
from app.services.matter import matters

router = APIRouter(prefix="/matters", tags=["matters"])

_HISTORY_ACTION_PATTERN = "^(" + "|".join(a.value for a in HistoryAction) + ")$"


# ------------------------------------------------------------------
# Matter lifecycle
# ------------------------------------------------------------------


@router.post("", response_model=MatterRead, status_code=status.HTTP_201_CREATED)
def open_matter(
    payload: MatterCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return matters.open(db, payload, actor_id)


@router.get("/{matter_id}", response_model=MatterRead)
def get_matter(matter_id: str, db: Session = Depends(get_db)):
    return matters.get(db, matter_id)


@router.get("", response_model=ListResponse[MatterRead])
def list_matters(
    firm_id: str | None = None,
    lifecycle_state: str | None = Query(
        default=None, pattern="^(submitted|under_review|in_progress|closed)$"
    ),
    pipeline_id: str | None = None,
    assignee_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return matters.list_response(
        db,
        firm_id,
        lifecycle_state,
        pipeline_id,
        assignee_id,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/{matter_id}/status", response_model=MatterRead)
def change_matter_status(
    matter_id: str,
    payload: MatterStatusChangeRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(
        matters.change_status, db, matter_id, payload.status, actor_id, payload.note
    )


@router.post("/{matter_id}/close", response_model=MatterRead)
def close_matter(
    matter_id: str,
    payload: MatterCloseRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(matters.close, db, matter_id, actor_id, payload.note)


# ------------------------------------------------------------------
# Stage transitions
# ------------------------------------------------------------------


@router.post("/{matter_id}/transition", response_model=MatterRead)
def transition_matter(
    matter_id: str,
    payload: StageTransitionRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    if payload.expected_version is not None:
        # The caller pinned a version; a conflict is theirs to resolve
        return matters.transition(
            db, matter_id, str(payload.stage_id), actor_id, payload.expected_version
        )
    return with_conflict_retry(
        matters.transition, db, matter_id, str(payload.stage_id), actor_id
    )


@router.get("/{matter_id}/progress", response_model=MatterProgressRead)
def get_matter_progress(matter_id: str, db: Session = Depends(get_db)):
    return matters.progress(db, matter_id)


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------


@router.get("/{matter_id}/timeline", response_model=ListResponse[HistoryEventRead])
def get_matter_timeline(
    matter_id: str,
    action: str | None = Query(default=None, pattern=_HISTORY_ACTION_PATTERN),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return history.list_response(db, matter_id, action, limit, offset)


# ------------------------------------------------------------------
# Assignments
# ------------------------------------------------------------------


@router.post("/{matter_id}/assignments", response_model=AssignmentRead)
def assign_matter(
    matter_id: str,
    payload: AssignmentRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    user_id = str(payload.user_id) if payload.user_id else None
    return with_conflict_retry(
        assignments.assign, db, matter_id, payload.role, user_id, actor_id
    )


@router.get("/{matter_id}/assignments", response_model=list[AssignmentRead])
def list_matter_assignments(
    matter_id: str,
    role: str | None = Query(default=None, pattern="^(associate|case_manager)$"),
    db: Session = Depends(get_db),
):
    return assignments.assignment_history(db, matter_id, role)


@router.get(
    "/{matter_id}/assignments/{role}",
    response_model=CurrentAssigneeRead,
)
def get_current_assignee(matter_id: str, role: str, db: Session = Depends(get_db)):
    if role not in ("associate", "case_manager"):
        raise InvalidRequest(f"Unknown role: {role}")
    return {
        "matter_id": matter_id,
        "role": role,
        "user_id": assignments.current_assignee(db, matter_id, role),
    }
