from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.coordination import HistoryAction


class HistoryEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    matter_id: UUID
    position: int
    actor_id: UUID
    action: HistoryAction
    payload: dict[str, Any] | None = None
    created_at: datetime
