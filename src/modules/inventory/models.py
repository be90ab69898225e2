"""Inventory ledger model: aggregate stock per (SKU, bin)."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, BigIntPK


class InventoryEntry(Base):
    """Current stock for one SKU in one bin.

    Mutated only through LedgerService.adjust_stock / apply_deltas, never
    written directly. quantity equals the sum of recorded movements for
    the key and must stay >= 0.
    """

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("sku_id", "bin", name="uq_inventory_sku_id_bin"),
        CheckConstraint("quantity >= 0", name="quantity_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    sku_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    bin: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )  # lastUpdated
