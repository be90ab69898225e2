"""Service for the inventory ledger."""

import logging
from collections.abc import Mapping

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    LedgerMissingError,
    PersistenceError,
    ValidationError,
    WouldGoNegativeError,
)
from src.modules.inventory.models import InventoryEntry

logger = logging.getLogger(__name__)

LedgerKey = tuple[str, str]  # (sku_id, bin)


class LedgerService:
    """Additive adjustments and reads on the (SKU, bin) ledger.

    Every adjustment is one SQL statement evaluated by the database against
    the current row (``quantity = quantity + delta``), so concurrent
    adjustments of the same key serialize on the row lock and none is lost;
    different keys touch different rows. Transaction boundaries belong to
    the caller.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _dialect(self) -> str:
        return self.db.get_bind().dialect.name

    async def get_entry(self, sku_id: str, bin_name: str) -> InventoryEntry | None:
        """Read the current entry, bypassing stale identity-map state."""
        result = await self.db.execute(
            select(InventoryEntry)
            .where(InventoryEntry.sku_id == sku_id, InventoryEntry.bin == bin_name)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_quantity(self, sku_id: str, bin_name: str) -> int | None:
        entry = await self.get_entry(sku_id, bin_name)
        return entry.quantity if entry else None

    async def _increment(self, sku_id: str, bin_name: str, delta: int) -> None:
        """Add a positive delta, creating the entry on first receipt."""
        dialect = self._dialect()
        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert_fn(InventoryEntry).values(sku_id=sku_id, bin=bin_name, quantity=delta)
            stmt = stmt.on_conflict_do_update(
                index_elements=["sku_id", "bin"],
                set_={
                    "quantity": InventoryEntry.quantity + stmt.excluded.quantity,
                    "updated_at": func.now(),
                },
            )
            await self.db.execute(stmt)
            return

        # Other backends: update, insert when missing, retry once on a lost insert race
        for _ in range(2):
            result = await self.db.execute(
                update(InventoryEntry)
                .where(InventoryEntry.sku_id == sku_id, InventoryEntry.bin == bin_name)
                .values(quantity=InventoryEntry.quantity + delta, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                return
            try:
                async with self.db.begin_nested():
                    self.db.add(InventoryEntry(sku_id=sku_id, bin=bin_name, quantity=delta))
                return
            except IntegrityError:
                continue
        raise PersistenceError(f"Could not create inventory entry for {sku_id} in {bin_name}")

    async def _decrement(self, sku_id: str, bin_name: str, delta: int) -> None:
        """Apply a negative delta only if the result stays >= 0."""
        result = await self.db.execute(
            update(InventoryEntry)
            .where(
                InventoryEntry.sku_id == sku_id,
                InventoryEntry.bin == bin_name,
                InventoryEntry.quantity + delta >= 0,
            )
            .values(quantity=InventoryEntry.quantity + delta, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

        entry = await self.get_entry(sku_id, bin_name)
        if entry is None:
            raise LedgerMissingError(sku_id, bin_name)
        raise WouldGoNegativeError(sku_id, bin_name, current=entry.quantity, removing=-delta)

    async def adjust_stock(self, sku_id: str, bin_name: str, delta: int) -> InventoryEntry:
        """Atomically add ``delta`` to the (sku_id, bin) entry and return it.

        A positive delta creates the entry when missing; a negative delta never
        creates one (LedgerMissingError) and never drives it below zero
        (WouldGoNegativeError, no change applied). Storage failures surface as
        PersistenceError. Does not commit.
        """
        if delta == 0:
            raise ValidationError("Stock adjustment must be non-zero", field="quantity")

        try:
            if delta > 0:
                await self._increment(sku_id, bin_name, delta)
            else:
                await self._decrement(sku_id, bin_name, delta)
            entry = await self.get_entry(sku_id, bin_name)
        except SQLAlchemyError as exc:
            logger.error("Ledger adjust failed for %s/%s (delta=%d): %s", sku_id, bin_name, delta, exc)
            raise PersistenceError() from exc

        if entry is None:
            raise PersistenceError(f"Inventory entry for {sku_id} in {bin_name} vanished after adjust")
        logger.debug("Ledger %s/%s %+d -> %d", sku_id, bin_name, delta, entry.quantity)
        return entry

    async def apply_deltas(self, deltas: Mapping[LedgerKey, int]) -> dict[LedgerKey, int]:
        """Apply several per-key deltas; returns resulting quantity per key.

        Keys are applied in sorted order so concurrent batches lock rows in the
        same sequence. Zero deltas are skipped. Does not commit.
        """
        resulting: dict[LedgerKey, int] = {}
        for key in sorted(deltas):
            delta = deltas[key]
            if delta == 0:
                continue
            entry = await self.adjust_stock(key[0], key[1], delta)
            resulting[key] = entry.quantity
        return resulting

    async def list_entries(
        self,
        sku_id: str | None = None,
        bin_name: str | None = None,
        include_zero: bool = False,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[InventoryEntry], int]:
        """List ledger entries with optional filters."""
        query = select(InventoryEntry).order_by(InventoryEntry.sku_id, InventoryEntry.bin)

        if sku_id:
            query = query.where(InventoryEntry.sku_id == sku_id.strip().upper())
        if bin_name:
            query = query.where(InventoryEntry.bin == bin_name.strip().upper())
        if not include_zero:
            query = query.where(InventoryEntry.quantity > 0)

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        offset = (page - 1) * limit
        query = query.offset(offset).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_bins_by_sku(self, sku_id: str) -> list[InventoryEntry]:
        """All bins holding stock for a SKU, largest quantity first."""
        result = await self.db.execute(
            select(InventoryEntry)
            .where(InventoryEntry.sku_id == sku_id.strip().upper())
            .where(InventoryEntry.quantity > 0)
            .order_by(InventoryEntry.quantity.desc(), InventoryEntry.bin)
        )
        return list(result.scalars().all())

    async def snapshot(self) -> dict[LedgerKey, int]:
        """Quantity for every key in the ledger."""
        result = await self.db.execute(
            select(InventoryEntry.sku_id, InventoryEntry.bin, InventoryEntry.quantity)
        )
        return {(row[0], row[1]): int(row[2]) for row in result.all()}
