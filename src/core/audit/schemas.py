"""Schemas for audit log listing."""

from datetime import datetime
from typing import Any

from src.shared.schemas.base import BaseSchema


class AuditEntryResponse(BaseSchema):
    """Single audit log entry."""

    id: int
    user_id: int | None
    user_name: str | None
    action: str
    entity_type: str
    entity_id: int | None
    changes: dict[str, Any] | None
    comment: str | None
    created_at: datetime
