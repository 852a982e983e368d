import enum
import logging
import uuid
from typing import Callable

from sqlalchemy.orm import Session

from app.config import settings
from app.models.coordination import Matter
from app.services.common import coerce_uuid
from app.services.errors import Unauthorized

logger = logging.getLogger(__name__)


class Capability(enum.Enum):
    transition_stage = "transition_stage"
    materialize_tasks = "materialize_tasks"
    manage_tasks = "manage_tasks"
    negotiate_meeting = "negotiate_meeting"
    assign = "assign"
    assign_case_manager = "assign_case_manager"
    manage_lifecycle = "manage_lifecycle"


Authorizer = Callable[[Session, uuid.UUID, Matter, Capability], bool]

_external_authorizer: Authorizer | None = None


def register_authorizer(authorizer: Authorizer | None) -> None:
    """Install the platform's capability check, or ``None`` to use AUTHZ_MODE."""
    global _external_authorizer
    _external_authorizer = authorizer


def _assignment_policy(
    db: Session, actor_id: uuid.UUID, matter: Matter, capability: Capability
) -> bool:
    holders = {matter.assigned_associate_id, matter.assigned_case_manager_id}
    holders.discard(None)
    if actor_id in holders:
        return True
    # An unstaffed matter still needs its first case manager
    return capability == Capability.assign_case_manager and not holders


def can_act(db: Session, actor_id, matter: Matter, capability: Capability) -> bool:
    actor_uuid = coerce_uuid(actor_id)
    if _external_authorizer is not None:
        return bool(_external_authorizer(db, actor_uuid, matter, capability))
    if settings.authz_mode == "assignment":
        return _assignment_policy(db, actor_uuid, matter, capability)
    return True


def ensure_can_act(db: Session, actor_id, matter: Matter, capability: Capability) -> None:
    if not can_act(db, actor_id, matter, capability):
        logger.warning(
            "Actor %s denied %s on matter %s", actor_id, capability.value, matter.id
        )
        raise Unauthorized(details={"capability": capability.value})
