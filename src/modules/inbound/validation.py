"""Row validation and header resolution for inbound movements.

Everything here is pure: no I/O, no shared state. A row's outcome depends
only on the row and the bin snapshot it is checked against, so rows can be
validated in any order.
"""

import re
from collections.abc import Sequence, Set
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from enum import StrEnum
from typing import Any, Union

from src.core.exceptions import MissingHeadersError

# Upper bound of the Integer quantity columns
MAX_QUANTITY = 2_147_483_647
# Width of the sku_id / bin String columns
MAX_CODE_LENGTH = 100

_NON_NUMERIC = re.compile(r"[^\d.\-]")
_LEADING_NUMBER = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")


class RowErrorType(StrEnum):
    MISSING_FIELD = "MissingField"
    INVALID_QUANTITY = "InvalidQuantity"
    UNKNOWN_BIN = "UnknownBin"
    INVALID_FIELD = "InvalidField"


@dataclass(frozen=True)
class RawRow:
    """One proposed movement as submitted, before any cleanup."""

    row: int
    sku: Any
    bin: Any
    quantity: Any


@dataclass(frozen=True)
class NormalizedMovement:
    row: int
    sku_id: str
    bin: str
    quantity: int
    raw_quantity: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.sku_id, self.bin)

    @property
    def quantity_adjusted(self) -> bool:
        """True when the submitted quantity text was not already the integer used."""
        return self.raw_quantity != str(self.quantity)


@dataclass(frozen=True)
class RowError:
    """Rejected row; carries the cleaned original values for corrective files."""

    row: int
    error_type: RowErrorType
    message: str
    sku: str
    bin: str
    quantity: str
    field: str | None = None


RowResult = Union[NormalizedMovement, RowError]


def clean_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_quantity(raw: str) -> int | None:
    """Parse a quantity cell; None when no number can be read.

    Characters other than digits, '.' and '-' are discarded, the leading
    number is taken and floored: "12 pcs" -> 12, "3.9" -> 3, "-3" -> -3.
    """
    cleaned = _NON_NUMERIC.sub("", raw)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        number = Decimal(match.group())
    except InvalidOperation:
        return None
    return int(number.to_integral_value(rounding=ROUND_FLOOR))


def validate_row(row: RawRow, bin_names: Set[str]) -> RowResult:
    """Accept or reject one row against the active bin snapshot.

    Bins are never created here: a bin missing from ``bin_names`` rejects
    the row. SKUs are not checked for existence.
    """
    sku = clean_value(row.sku)
    bin_value = clean_value(row.bin)
    quantity_raw = clean_value(row.quantity)

    def reject(error_type: RowErrorType, message: str, field: str | None = None) -> RowError:
        return RowError(
            row=row.row,
            error_type=error_type,
            message=message,
            sku=sku,
            bin=bin_value,
            quantity=quantity_raw,
            field=field,
        )

    if not sku:
        return reject(RowErrorType.MISSING_FIELD, "SKU is required", "sku")
    if not bin_value:
        return reject(RowErrorType.MISSING_FIELD, "BIN LOCATION is required", "bin")
    if not quantity_raw:
        return reject(RowErrorType.MISSING_FIELD, "QUANTITY is required", "quantity")

    if isinstance(row.sku, bool):
        return reject(RowErrorType.INVALID_FIELD, f"Invalid SKU: {sku}", "sku")
    if isinstance(row.bin, bool):
        return reject(RowErrorType.INVALID_FIELD, f"Invalid bin: {bin_value}", "bin")
    if len(sku) > MAX_CODE_LENGTH:
        return reject(
            RowErrorType.INVALID_FIELD,
            f"SKU exceeds maximum length of {MAX_CODE_LENGTH} characters",
            "sku",
        )

    quantity = parse_quantity(quantity_raw)
    if quantity is None or quantity <= 0:
        return reject(
            RowErrorType.INVALID_QUANTITY, f"Invalid quantity: {quantity_raw}", "quantity"
        )
    if quantity > MAX_QUANTITY:
        return reject(
            RowErrorType.INVALID_QUANTITY,
            f"Invalid quantity: {quantity_raw} exceeds maximum of {MAX_QUANTITY}",
            "quantity",
        )

    bin_name = bin_value.upper()
    if bin_name not in bin_names:
        return reject(
            RowErrorType.UNKNOWN_BIN,
            f'Bin "{bin_name}" does not exist in database. Please create the bin first.',
            "bin",
        )

    return NormalizedMovement(
        row=row.row,
        sku_id=sku.upper(),
        bin=bin_name,
        quantity=quantity,
        raw_quantity=quantity_raw,
    )


# --- Header resolution ---


class Column(StrEnum):
    SKU = "sku"
    BIN = "bin"
    QUANTITY = "quantity"


# Label reported when a required column cannot be found
COLUMN_LABELS = {
    Column.SKU: "SKU",
    Column.BIN: "BIN NO./BIN LOCATION",
    Column.QUANTITY: "QUANTITY/BALANCE",
}

_QUANTITY_TOKENS = ("quantity", "qty", "balance")


def _column_for(header: str) -> Column | None:
    text = header.lower()
    if "sku" in text:
        return Column.SKU
    if "bin" in text:
        return Column.BIN
    if any(token in text for token in _QUANTITY_TOKENS):
        return Column.QUANTITY
    return None


@dataclass(frozen=True)
class HeaderMap:
    """Resolved column index per role."""

    sku: int
    bin: int
    quantity: int

    def extract(self, cells: Sequence[Any], row: int) -> RawRow:
        def cell(index: int) -> Any:
            return cells[index] if index < len(cells) else None

        return RawRow(row=row, sku=cell(self.sku), bin=cell(self.bin), quantity=cell(self.quantity))


@dataclass(frozen=True)
class MissingColumns:
    missing: list[str]
    found: list[str]


HeaderResolution = Union[HeaderMap, MissingColumns]


def resolve_headers(header_row: Sequence[Any]) -> HeaderResolution:
    """Map header cells to column roles by fuzzy name match.

    The first header matching a role wins; later matches are ignored.
    """
    indexes: dict[Column, int] = {}
    found: list[str] = []
    for index, raw in enumerate(header_row):
        header = clean_value(raw)
        if not header:
            continue
        found.append(header)
        column = _column_for(header)
        if column is not None and column not in indexes:
            indexes[column] = index

    missing = [COLUMN_LABELS[c] for c in Column if c not in indexes]
    if missing:
        return MissingColumns(missing=missing, found=found)
    return HeaderMap(
        sku=indexes[Column.SKU],
        bin=indexes[Column.BIN],
        quantity=indexes[Column.QUANTITY],
    )


def require_headers(header_row: Sequence[Any]) -> HeaderMap:
    """resolve_headers, raising MissingHeadersError when a role is unresolved."""
    resolution = resolve_headers(header_row)
    if isinstance(resolution, MissingColumns):
        raise MissingHeadersError(resolution.missing, resolution.found)
    return resolution
