from uuid import UUID

from fastapi import Header

from app.db import SessionLocal
from app.services.errors import InvalidRequest


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(x_actor_id: str = Header(...)) -> str:
    """The acting user, supplied by the identity platform in front of the API."""
    try:
        return str(UUID(x_actor_id))
    except ValueError:
        raise InvalidRequest("X-Actor-Id must be a UUID")


__all__ = ["get_actor_id", "get_db"]
