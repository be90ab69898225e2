"""Schemas for Inbound module."""

from datetime import datetime
from typing import Union

from pydantic import Field, StrictBool

from src.core.exceptions import AppException
from src.modules.inbound.validation import RawRow
from src.shared.schemas.base import BaseSchema, CamelSchema

# Quantities arrive as numbers from the scanner/cart and as text from files;
# the row validator decides what is acceptable. Booleans stay booleans so
# they are rejected instead of being coerced to 1 or "True".
RawValue = Union[StrictBool, str, int, float, None]


# --- Requests ---


class InsetCreate(CamelSchema):
    """Single inbound movement (accepts skuId or sku_id)."""

    sku_id: RawValue = None
    bin: RawValue = None
    quantity: RawValue = None

    def to_raw_row(self, row: int = 1) -> RawRow:
        return RawRow(row=row, sku=self.sku_id, bin=self.bin, quantity=self.quantity)


class InsetUpdate(InsetCreate):
    """Corrected values for an existing movement."""


class BatchRowIn(InsetCreate):
    """One row of a programmatic batch."""


class BatchSubmitRequest(CamelSchema):
    rows: list[BatchRowIn] = Field(default_factory=list)
    batch_id: str | None = Field(None, max_length=64)


# --- Responses ---


class InsetResponse(BaseSchema):
    id: int
    sku_id: str
    bin: str
    quantity: int
    user_id: int | None = None
    user_name: str
    batch_id: str | None = None
    source: str
    created_at: datetime
    updated_at: datetime


class DeletedInset(BaseSchema):
    id: int
    sku_id: str
    bin: str
    quantity: int


class InventoryUpdate(BaseSchema):
    sku_id: str
    bin: str
    old_quantity: int
    new_quantity: int
    reversed: int


class InsetDeleteResponse(BaseSchema):
    deleted_inset: DeletedInset
    inventory_update: InventoryUpdate


# --- Batch report (camelCase wire contract) ---


class RowErrorOut(CamelSchema):
    row: int
    message: str
    type: str


class FailedEntryOut(CamelSchema):
    row: int
    sku: str = ""
    bin: str = ""
    quantity: str = ""
    reason: str
    error_type: str | None = None


class SummaryRowOut(CamelSchema):
    row: int
    sku: str
    bin: str
    quantity: int
    status: str = "SUCCESS"


class WarningOut(CamelSchema):
    row: int
    sku: str
    bin: str
    message: str
    type: str


class BatchStats(CamelSchema):
    success_rate: str = "0%"
    warning_count: int = 0
    failed_entries_count: int = 0


def format_success_rate(success_count: int, total_rows: int) -> str:
    """successCount / totalRows as a percentage with one decimal ("33.3%")."""
    if total_rows <= 0:
        return "0%"
    return f"{success_count / total_rows * 100:.1f}%"


class BatchResult(CamelSchema):
    """Per-invocation import report. Not persisted."""

    success: bool
    message: str
    batch_id: str | None = None
    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    warnings: list[WarningOut] = Field(default_factory=list)
    errors: list[RowErrorOut] = Field(default_factory=list)
    failed_entries: list[FailedEntryOut] = Field(default_factory=list)
    # Inbound imports never create bins; kept for client compatibility
    created_bins: list[str] = Field(default_factory=list)
    summary: list[SummaryRowOut] = Field(default_factory=list)
    stats: BatchStats = Field(default_factory=BatchStats)

    @property
    def http_status(self) -> int:
        """200 all rows applied, 207 mixed, 400 nothing applied."""
        if self.error_count > 0 and self.success_count == 0:
            return 400
        if self.error_count > 0:
            return 207
        return 200

    @classmethod
    def from_error(cls, exc: AppException) -> "BatchResult":
        """Report for a batch aborted before any row was applied."""
        return cls(
            success=False,
            message=exc.message,
            error_count=1,
            errors=[RowErrorOut(row=0, message=exc.message, type=exc.error_type)],
        )


class FailedEntriesExportRequest(CamelSchema):
    failed_entries: list[FailedEntryOut] = Field(..., min_length=1)
