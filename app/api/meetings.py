from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor_id, get_db
from app.schemas.common import ListResponse
from app.schemas.meeting import (
    MeetingAcceptRequest,
    MeetingRead,
    MeetingRequestCreate,
    MeetingRescheduleRequest,
)
from app.services.concurrency import with_conflict_retry
from app.services.meeting import meetings

router = APIRouter(tags=["meetings"])


@router.post(
    "/matters/{matter_id}/meetings",
    response_model=MeetingRead,
    status_code=status.HTTP_201_CREATED,
)
def request_meeting(
    matter_id: str,
    payload: MeetingRequestCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(meetings.request, db, matter_id, payload, actor_id)


@router.get("/matters/{matter_id}/meetings", response_model=ListResponse[MeetingRead])
def list_meetings(
    matter_id: str,
    status: str | None = Query(
        default=None, pattern="^(requested|accepted|completed|cancelled)$"
    ),
    order_by: str = Query(default="proposed_start"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return meetings.list_response(
        db, matter_id, status, order_by, order_dir, limit, offset
    )


@router.get("/meetings/{meeting_id}", response_model=MeetingRead)
def get_meeting(meeting_id: str, db: Session = Depends(get_db)):
    return meetings.get(db, meeting_id)


@router.post("/meetings/{meeting_id}/accept", response_model=MeetingRead)
def accept_meeting(
    meeting_id: str,
    payload: MeetingAcceptRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(
        meetings.accept,
        db,
        meeting_id,
        payload.confirmed_start,
        payload.video_link,
        actor_id,
        confirmed_end=payload.confirmed_end,
        video_provider=payload.video_provider,
    )


@router.post("/meetings/{meeting_id}/reschedule", response_model=MeetingRead)
def reschedule_meeting(
    meeting_id: str,
    payload: MeetingRescheduleRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(
        meetings.reschedule,
        db,
        meeting_id,
        payload.proposed_start,
        payload.note,
        actor_id,
    )


@router.post("/meetings/{meeting_id}/cancel", response_model=MeetingRead)
def cancel_meeting(
    meeting_id: str,
    note: str | None = Body(default=None, embed=True),
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(meetings.cancel, db, meeting_id, actor_id, note)


@router.post("/meetings/{meeting_id}/complete", response_model=MeetingRead)
def complete_meeting(
    meeting_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
):
    return with_conflict_retry(meetings.complete, db, meeting_id, actor_id)
