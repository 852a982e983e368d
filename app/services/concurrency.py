"""Per-matter serialization boundary.

Every mutating operation claims the matter by bumping its version with a
guarded UPDATE. A writer that read an older version updates zero rows and
gets ``Conflict``; callers may retry through ``with_conflict_retry``.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings
from app.models.coordination import Matter
from app.services.errors import Conflict

logger = logging.getLogger(__name__)


def claim_matter(
    db: Session, matter: Matter, expected_version: int | None = None
) -> int:
    """Bump the matter version, failing if it moved since it was read."""
    seen = matter.version
    if expected_version is not None and expected_version != seen:
        db.rollback()
        raise Conflict(
            details={"expected_version": expected_version, "current_version": seen}
        )
    result = db.execute(
        update(Matter)
        .where(Matter.id == matter.id, Matter.version == seen)
        .values(version=seen + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("Version conflict on matter %s at version %s", matter.id, seen)
        raise Conflict(details={"seen_version": seen})
    set_committed_value(matter, "version", seen + 1)
    return seen + 1


@contextmanager
def matter_transaction(db: Session):
    """Commit the enclosed mutation and its history event together.

    A unique-constraint violation means a concurrent writer got there first
    and surfaces as a retryable ``Conflict``; any other failure rolls back.
    """
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info("Constraint conflict, rolled back: %s", e.orig)
        raise Conflict(details={"reason": "concurrent_write"}) from e
    except Exception:
        db.rollback()
        raise


def with_conflict_retry(func, *args, attempts: int | None = None, **kwargs):
    """Run ``func`` and retry it on ``Conflict`` with exponential backoff."""
    retrying = Retrying(
        stop=stop_after_attempt(attempts or settings.conflict_retry_attempts),
        wait=wait_exponential(
            multiplier=0.05, max=settings.conflict_retry_max_wait
        ),
        retry=retry_if_exception_type(Conflict),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
    return retrying(func, *args, **kwargs)
