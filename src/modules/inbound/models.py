"""Inbound movement (inset) model."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class InsetSource(StrEnum):
    """How an inbound movement entered the system."""

    MANUAL = "manual"  # Single submission (scanner / form)
    BATCH = "batch"  # Programmatic batch (inbound cart)
    EXCEL = "excel"  # Spreadsheet upload


class Inset(Base):
    """One inbound stock event: quantity of a SKU received into a bin.

    Append-only from the ledger's point of view: changed only by the update
    and delete flows, each of which corrects the ledger in the same
    transaction.
    """

    __tablename__ = "insets"
    __table_args__ = (CheckConstraint("quantity > 0", name="quantity_positive"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    sku_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    bin: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True, index=True
    )
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)  # Denormalized for display
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    source: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InsetSource.MANUAL.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user: Mapped["User | None"] = relationship("User")

    @property
    def key(self) -> tuple[str, str]:
        return (self.sku_id, self.bin)


# Import at the end to avoid circular imports
from src.core.auth.models import User  # noqa: E402
