from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from app.config import settings
from app.models.coordination import (
    HistoryAction,
    Matter,
    Meeting,
    MeetingStatus,
    MeetingType,
)
from app.schemas.meeting import MeetingRequestCreate
from app.services.authorization import Capability
from app.services.common import apply_ordering, apply_pagination, as_utc, coerce_uuid
from app.services.concurrency import claim_matter, matter_transaction
from app.services.errors import InvalidRequest, InvalidTransition, NotFound
from app.services.history import history
from app.services.matter import get_matter, load_open_matter
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_CANCELLABLE = (MeetingStatus.requested, MeetingStatus.accepted)

_VIDEO_PROVIDERS = {
    "zoom.us": "zoom",
    "teams.microsoft.com": "teams",
    "meet.google.com": "google_meet",
    "webex.com": "webex",
}


def _provider_for(link: str | None) -> str | None:
    if not link:
        return None
    host = (urlparse(link).hostname or "").lower()
    for domain, provider in _VIDEO_PROVIDERS.items():
        if host == domain or host.endswith("." + domain):
            return provider
    return "other"


def _get_meeting(db: Session, meeting_id) -> Meeting:
    meeting = db.get(Meeting, coerce_uuid(meeting_id))
    if not meeting:
        raise NotFound("Meeting not found")
    return meeting


def _load_for_update(db: Session, meeting_id, actor_id) -> tuple[Meeting, Matter]:
    meeting = _get_meeting(db, meeting_id)
    matter = load_open_matter(
        db, meeting.matter_id, actor_id, Capability.negotiate_meeting
    )
    return meeting, matter


def _require_status(meeting: Meeting, allowed: tuple, action: str) -> None:
    if meeting.status not in allowed:
        raise InvalidTransition(
            f"Cannot {action} a meeting that is {meeting.status.value}",
            details={
                "meeting_id": str(meeting.id),
                "status": meeting.status.value,
                "allowed": [status.value for status in allowed],
            },
        )


class Meetings(ListResponseMixin):
    @staticmethod
    def request(
        db: Session, matter_id: str, payload: MeetingRequestCreate, actor_id: str
    ) -> Meeting:
        """Record an external party's proposal for a meeting time."""
        matter = load_open_matter(db, matter_id, actor_id, Capability.negotiate_meeting)
        with matter_transaction(db):
            claim_matter(db, matter)
            meeting = Meeting(
                matter_id=matter.id,
                external_party_id=payload.external_party_id,
                internal_party_id=payload.internal_party_id
                or matter.assigned_associate_id,
                meeting_type=MeetingType(payload.meeting_type),
                status=MeetingStatus.requested,
                proposed_start=as_utc(payload.proposed_start),
                external_note=payload.note,
            )
            db.add(meeting)
            db.flush()
            event = history.append(
                db,
                matter.id,
                HistoryAction.meeting_requested,
                actor_id,
                {
                    "meeting_id": meeting.id,
                    "meeting_type": meeting.meeting_type,
                    "proposed_start": meeting.proposed_start,
                },
            )
        db.refresh(meeting)
        logger.info("Meeting %s requested on matter %s", meeting.id, matter.id)
        history.publish(event, entity_id=meeting.id)
        return meeting

    @staticmethod
    def get(db: Session, meeting_id: str) -> Meeting:
        return _get_meeting(db, meeting_id)

    @staticmethod
    def list(
        db: Session,
        matter_id: str,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Meeting]:
        get_matter(db, matter_id)
        query = db.query(Meeting).filter(Meeting.matter_id == coerce_uuid(matter_id))
        if status is not None:
            query = query.filter(Meeting.status == MeetingStatus(status))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "proposed_start": Meeting.proposed_start,
                "created_at": Meeting.created_at,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def accept(
        db: Session,
        meeting_id: str,
        confirmed_start: datetime | None,
        video_link: str | None,
        actor_id: str,
        confirmed_end: datetime | None = None,
        video_provider: str | None = None,
    ) -> Meeting:
        meeting, matter = _load_for_update(db, meeting_id, actor_id)
        _require_status(meeting, (MeetingStatus.requested,), "accept")

        start = as_utc(confirmed_start or meeting.proposed_start)
        if confirmed_end is not None:
            end = as_utc(confirmed_end)
            if end <= start:
                raise InvalidRequest("Confirmed end must be after the confirmed start")
        else:
            end = start + timedelta(minutes=settings.meeting_session_minutes)

        link = (video_link or "").strip() or None
        if meeting.meeting_type == MeetingType.virtual and not link:
            if not settings.allow_placeholder_video_link:
                raise InvalidRequest(
                    "A video link is required to accept a virtual meeting",
                    details={"meeting_id": str(meeting.id)},
                )
            link = settings.placeholder_video_link

        with matter_transaction(db):
            claim_matter(db, matter)
            meeting.status = MeetingStatus.accepted
            meeting.confirmed_start = start
            meeting.confirmed_end = end
            meeting.video_meeting_link = link
            meeting.video_provider = video_provider or _provider_for(link)
            if meeting.internal_party_id is None:
                meeting.internal_party_id = coerce_uuid(actor_id)
            event = history.append(
                db,
                matter.id,
                HistoryAction.meeting_accepted,
                actor_id,
                {
                    "meeting_id": meeting.id,
                    "confirmed_start": start,
                    "confirmed_end": end,
                    "video_meeting_link": link,
                },
            )
        db.refresh(meeting)
        logger.info("Meeting %s accepted for %s", meeting.id, start.isoformat())
        history.publish(event, entity_id=meeting.id)
        return meeting

    @staticmethod
    def reschedule(
        db: Session,
        meeting_id: str,
        proposed_start: datetime,
        note: str,
        actor_id: str,
    ) -> Meeting:
        """Counter-propose a new time; the external party acts next."""
        meeting, matter = _load_for_update(db, meeting_id, actor_id)
        _require_status(meeting, (MeetingStatus.requested,), "reschedule")
        note = (note or "").strip()
        if not note:
            raise InvalidRequest("A note explaining the reschedule is required")
        previous_start = meeting.proposed_start
        new_start = as_utc(proposed_start)

        with matter_transaction(db):
            claim_matter(db, matter)
            meeting.proposed_start = new_start
            meeting.internal_note = note
            meeting.status = MeetingStatus.requested
            event = history.append(
                db,
                matter.id,
                HistoryAction.meeting_rescheduled,
                actor_id,
                {
                    "meeting_id": meeting.id,
                    "previous_start": as_utc(previous_start),
                    "proposed_start": new_start,
                    "note": note,
                },
            )
        db.refresh(meeting)
        logger.info("Meeting %s re-proposed for %s", meeting.id, new_start.isoformat())
        history.publish(event, entity_id=meeting.id)
        return meeting

    @staticmethod
    def cancel(
        db: Session, meeting_id: str, actor_id: str, note: str | None = None
    ) -> Meeting:
        meeting, matter = _load_for_update(db, meeting_id, actor_id)
        _require_status(meeting, _CANCELLABLE, "cancel")
        previous_status = meeting.status

        with matter_transaction(db):
            claim_matter(db, matter)
            meeting.status = MeetingStatus.cancelled
            # confirmed times only describe accepted or completed meetings
            meeting.confirmed_start = None
            meeting.confirmed_end = None
            if note:
                meeting.internal_note = note
            event = history.append(
                db,
                matter.id,
                HistoryAction.meeting_cancelled,
                actor_id,
                {
                    "meeting_id": meeting.id,
                    "previous_status": previous_status,
                    "note": note,
                },
            )
        db.refresh(meeting)
        logger.info("Meeting %s cancelled", meeting.id)
        history.publish(event, entity_id=meeting.id)
        return meeting

    @staticmethod
    def complete(
        db: Session, meeting_id: str, actor_id: str, now: datetime | None = None
    ) -> Meeting:
        meeting, matter = _load_for_update(db, meeting_id, actor_id)
        _require_status(meeting, (MeetingStatus.accepted,), "complete")
        now = as_utc(now or datetime.now(timezone.utc))
        if now < as_utc(meeting.confirmed_start):
            raise InvalidTransition(
                "Meeting cannot be completed before its confirmed start",
                details={"confirmed_start": as_utc(meeting.confirmed_start).isoformat()},
            )

        with matter_transaction(db):
            claim_matter(db, matter)
            meeting.status = MeetingStatus.completed
            event = history.append(
                db,
                matter.id,
                HistoryAction.meeting_completed,
                actor_id,
                {"meeting_id": meeting.id, "completed_at": now},
            )
        db.refresh(meeting)
        logger.info("Meeting %s completed", meeting.id)
        history.publish(event, entity_id=meeting.id)
        return meeting


meetings = Meetings()
