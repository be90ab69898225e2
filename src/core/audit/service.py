import logging
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction(StrEnum):
    """Standard audit actions."""

    INBOUND_CREATED = "INBOUND_CREATED"
    INBOUND_UPDATED = "INBOUND_UPDATED"
    INBOUND_DELETED = "INBOUND_DELETED"


class AuditService:
    """Writes audit entries on a best-effort basis.

    Audit rows never decide the fate of the operation they describe: the
    caller commits its own work first, then hands the entries to ``record``.
    A failed write is rolled back, logged and counted in ``failures``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.failures = 0

    @staticmethod
    def entry(
        action: str | AuditAction,
        entity_type: str,
        entity_id: int | None,
        user_id: int | None = None,
        user_name: str | None = None,
        changes: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog:
        """Build an (unsaved) audit entry."""
        return AuditLog(
            user_id=user_id,
            user_name=user_name,
            action=str(action),
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            comment=comment,
        )

    async def _write(self, entries: list[AuditLog]) -> None:
        self.db.add_all(entries)
        await self.db.commit()

    async def record(self, entries: list[AuditLog]) -> int:
        """Persist entries; returns how many were written (0 on failure)."""
        if not entries:
            return 0
        try:
            await self._write(entries)
        except SQLAlchemyError:
            await self.db.rollback()
            self.failures += len(entries)
            logger.warning(
                "Audit write failed, %d entr%s dropped (action=%s)",
                len(entries),
                "y" if len(entries) == 1 else "ies",
                entries[0].action,
                exc_info=True,
            )
            return 0
        return len(entries)


async def list_audit_entries(
    session: AsyncSession,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """
    List audit log entries with optional filters, newest first.
    Returns (entries, total_count).
    """
    q = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    count_q = select(func.count()).select_from(AuditLog)
    filters = []
    if date_from is not None:
        filters.append(AuditLog.created_at >= date_from)
    if date_to is not None:
        filters.append(AuditLog.created_at <= date_to)
    if user_id is not None:
        filters.append(AuditLog.user_id == user_id)
    if entity_type is not None:
        filters.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        filters.append(AuditLog.entity_id == entity_id)
    if action is not None:
        filters.append(AuditLog.action == action)
    for condition in filters:
        q = q.where(condition)
        count_q = count_q.where(condition)

    total_result = await session.execute(count_q)
    total = total_result.scalar_one()

    q = q.offset((page - 1) * limit).limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all()), total
