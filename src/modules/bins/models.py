"""Bin (storage location) model.

The bin registry is owned by the location-management service; this
service only reads names and the active flag.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from src.core.database.base import BaseModel


def normalize_bin_name(value: str) -> str:
    """Canonical bin name: trimmed, uppercase."""
    return value.strip().upper()


class Bin(BaseModel):
    """Storage location."""

    __tablename__ = "bins"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    @validates("name")
    def _normalize_name(self, key: str, value: str) -> str:
        return normalize_bin_name(value)
