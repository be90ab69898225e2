"""Read-only lookup of active bins."""

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import RegistryUnavailableError
from src.modules.bins.models import Bin, normalize_bin_name

logger = logging.getLogger(__name__)


class BinRegistry:
    """Snapshot access to the active bin set."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_bins(self) -> list[Bin]:
        result = await self.db.execute(
            select(Bin).where(Bin.is_active.is_(True)).order_by(Bin.name)
        )
        return list(result.scalars().all())

    async def load_active_bin_names(self, only: Iterable[str] | None = None) -> frozenset[str]:
        """Return normalized names of active bins.

        Loaded once per batch and shared by every row validation. With ``only``
        the lookup is restricted to those names (single submissions).
        Raises RegistryUnavailableError if the registry cannot be read.
        """
        query = select(Bin.name).where(Bin.is_active.is_(True))
        if only is not None:
            wanted = sorted({normalize_bin_name(name) for name in only if name})
            if not wanted:
                return frozenset()
            query = query.where(Bin.name.in_(wanted))
        try:
            result = await self.db.execute(query)
            names = frozenset(normalize_bin_name(name) for name in result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to load active bins: %s", exc)
            raise RegistryUnavailableError() from exc
        logger.debug("Loaded %d active bins", len(names))
        return names
