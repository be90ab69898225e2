"""Tests for inbound row validation and header resolution."""

import pytest

from src.core.exceptions import MissingHeadersError
from src.modules.inbound.validation import (
    MAX_CODE_LENGTH,
    MAX_QUANTITY,
    HeaderMap,
    MissingColumns,
    NormalizedMovement,
    RawRow,
    RowError,
    RowErrorType,
    clean_value,
    parse_quantity,
    require_headers,
    resolve_headers,
    validate_row,
)

BINS = frozenset({"A-01", "B-01"})


class TestParseQuantity:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("5", 5),
            ("12 pcs", 12),
            ("3.9", 3),
            ("1,000", 1000),
            ("-3", -3),
            ("0", 0),
            (".5", 0),
        ],
    )
    def test_parses_leading_number(self, raw: str, expected: int):
        assert parse_quantity(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", "-", "."])
    def test_unreadable_returns_none(self, raw: str):
        assert parse_quantity(raw) is None


class TestCleanValue:
    def test_none_is_empty(self):
        assert clean_value(None) == ""

    def test_integral_float_drops_decimal(self):
        assert clean_value(10.0) == "10"

    def test_strips_whitespace(self):
        assert clean_value("  A-01 ") == "A-01"

    def test_bool_rendered_as_text(self):
        assert clean_value(True) == "true"
        assert clean_value(False) == "false"


class TestValidateRow:
    def test_valid_row_is_normalized(self):
        result = validate_row(RawRow(row=2, sku=" abc-1 ", bin="a-01", quantity="5"), BINS)

        assert isinstance(result, NormalizedMovement)
        assert result.row == 2
        assert result.sku_id == "ABC-1"
        assert result.bin == "A-01"
        assert result.quantity == 5
        assert result.key == ("ABC-1", "A-01")
        assert result.quantity_adjusted is False

    def test_numeric_quantity_accepted(self):
        result = validate_row(RawRow(row=1, sku="ABC", bin="B-01", quantity=7), BINS)

        assert isinstance(result, NormalizedMovement)
        assert result.quantity == 7
        assert result.quantity_adjusted is False

    def test_cleaned_quantity_flags_adjustment(self):
        result = validate_row(RawRow(row=1, sku="ABC", bin="A-01", quantity="4.7 units"), BINS)

        assert isinstance(result, NormalizedMovement)
        assert result.quantity == 4
        assert result.raw_quantity == "4.7 units"
        assert result.quantity_adjusted is True

    def test_missing_sku(self):
        result = validate_row(RawRow(row=3, sku="", bin="A-01", quantity="5"), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.MISSING_FIELD
        assert result.message == "SKU is required"
        assert result.row == 3

    def test_missing_bin(self):
        result = validate_row(RawRow(row=3, sku="ABC", bin=None, quantity="5"), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.MISSING_FIELD
        assert result.message == "BIN LOCATION is required"

    def test_missing_quantity(self):
        result = validate_row(RawRow(row=3, sku="ABC", bin="A-01", quantity="  "), BINS)

        assert isinstance(result, RowError)
        assert result.message == "QUANTITY is required"

    def test_missing_fields_checked_in_order(self):
        result = validate_row(RawRow(row=1, sku=None, bin=None, quantity=None), BINS)

        assert isinstance(result, RowError)
        assert result.message == "SKU is required"

    @pytest.mark.parametrize("quantity", ["0", "-3", "abc", "0.4"])
    def test_invalid_quantity(self, quantity: str):
        result = validate_row(RawRow(row=5, sku="ABC", bin="A-01", quantity=quantity), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_QUANTITY
        assert result.message == f"Invalid quantity: {quantity}"
        assert result.quantity == quantity

    def test_quantity_above_column_limit(self):
        result = validate_row(
            RawRow(row=1, sku="ABC", bin="A-01", quantity=str(MAX_QUANTITY + 1)), BINS
        )

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_QUANTITY

    @pytest.mark.parametrize("quantity", [True, False])
    def test_boolean_quantity_rejected(self, quantity: bool):
        result = validate_row(RawRow(row=1, sku="ABC", bin="A-01", quantity=quantity), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_QUANTITY
        assert result.message == f"Invalid quantity: {str(quantity).lower()}"

    def test_boolean_sku_rejected(self):
        result = validate_row(RawRow(row=1, sku=True, bin="A-01", quantity="3"), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_FIELD
        assert result.field == "sku"

    def test_boolean_bin_rejected(self):
        result = validate_row(RawRow(row=1, sku="ABC", bin=True, quantity="3"), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_FIELD
        assert result.field == "bin"

    def test_sku_at_column_width_accepted(self):
        result = validate_row(
            RawRow(row=1, sku="S" * MAX_CODE_LENGTH, bin="A-01", quantity="1"), BINS
        )

        assert isinstance(result, NormalizedMovement)

    def test_sku_longer_than_column_rejected(self):
        result = validate_row(
            RawRow(row=1, sku="S" * (MAX_CODE_LENGTH + 1), bin="A-01", quantity="1"), BINS
        )

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_FIELD
        assert result.field == "sku"
        assert result.message == "SKU exceeds maximum length of 100 characters"

    def test_quantity_checked_before_bin(self):
        result = validate_row(RawRow(row=1, sku="ABC", bin="NOPE", quantity="0"), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.INVALID_QUANTITY

    def test_unknown_bin(self):
        result = validate_row(RawRow(row=4, sku="abc", bin="zz-99", quantity="2"), BINS)

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.UNKNOWN_BIN
        assert result.message == 'Bin "ZZ-99" does not exist in database. Please create the bin first.'
        # Original (cleaned) values kept for the corrective file
        assert result.sku == "abc"
        assert result.bin == "zz-99"
        assert result.quantity == "2"

    def test_empty_snapshot_rejects_every_bin(self):
        result = validate_row(RawRow(row=1, sku="ABC", bin="A-01", quantity="1"), frozenset())

        assert isinstance(result, RowError)
        assert result.error_type == RowErrorType.UNKNOWN_BIN


class TestResolveHeaders:
    def test_exact_headers(self):
        result = resolve_headers(["SKU", "BIN LOCATION", "QUANTITY"])

        assert result == HeaderMap(sku=0, bin=1, quantity=2)

    def test_fuzzy_headers_any_order(self):
        result = resolve_headers(["Balance", "Item SKU", "Notes", "Bin No."])

        assert result == HeaderMap(sku=1, bin=3, quantity=0)

    def test_qty_alias(self):
        result = resolve_headers(["sku", "bin", "Qty Received"])

        assert isinstance(result, HeaderMap)
        assert result.quantity == 2

    def test_first_match_wins(self):
        result = resolve_headers(["SKU", "Old SKU", "BIN", "QTY", "Quantity"])

        assert result == HeaderMap(sku=0, bin=2, quantity=3)

    def test_missing_columns_reported(self):
        result = resolve_headers(["SKU", "Location", "", "Count"])

        assert isinstance(result, MissingColumns)
        assert result.missing == ["BIN NO./BIN LOCATION", "QUANTITY/BALANCE"]
        assert result.found == ["SKU", "Location", "Count"]

    def test_require_headers_raises(self):
        with pytest.raises(MissingHeadersError) as exc_info:
            require_headers(["Product", "Amount"])

        message = exc_info.value.message
        assert message.startswith("Missing required headers: SKU, BIN NO./BIN LOCATION, QUANTITY/BALANCE")
        assert "Found headers: Product, Amount" in message
        assert exc_info.value.status_code == 400

    def test_extract_pads_short_rows(self):
        header_map = HeaderMap(sku=0, bin=1, quantity=4)

        raw = header_map.extract(["ABC", "A-01"], row=7)

        assert raw == RawRow(row=7, sku="ABC", bin="A-01", quantity=None)
