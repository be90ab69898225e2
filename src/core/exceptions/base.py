from typing import Any


class AppException(Exception):
    """Base application exception."""

    error_type: str = "ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    error_type = "NotFound"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    error_type = "ValidationError"

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Not authorized to perform action."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message=message, status_code=403)


# --- Batch / import errors (fatal: abort before any row is applied) ---


class MissingHeadersError(AppException):
    """Spreadsheet header row lacks one or more required columns."""

    error_type = "MissingHeaders"

    def __init__(self, missing: list[str], found: list[str]):
        message = (
            f"Missing required headers: {', '.join(missing)}. "
            f"Found headers: {', '.join(found)}"
        )
        super().__init__(
            message=message,
            status_code=400,
            details={"missing": missing, "found": found},
        )


class EmptyBatchError(AppException):
    """Nothing to process: no rows submitted or no data rows in the file."""

    error_type = "MissingField"

    def __init__(self, message: str = "Batch must contain at least one row"):
        super().__init__(message=message, status_code=400)


class UnsupportedFileError(AppException):
    """Upload is not a readable spreadsheet."""

    error_type = "UnsupportedFile"

    def __init__(self, message: str = "Invalid file type. Please upload an Excel (.xlsx) or CSV file"):
        super().__init__(message=message, status_code=400)


class FileTooLargeError(AppException):
    """Upload exceeds the configured size limit."""

    error_type = "FileTooLarge"

    def __init__(self, limit_mb: int):
        super().__init__(
            message=f"File too large. Maximum size is {limit_mb}MB.",
            status_code=413,
            details={"limit_mb": limit_mb},
        )


class RegistryUnavailableError(AppException):
    """Active bin set could not be loaded."""

    error_type = "RegistryUnavailable"

    def __init__(self, message: str = "Failed to fetch valid bins from database"):
        super().__init__(message=message, status_code=503)


class PersistenceError(AppException):
    """Storage failed while applying ledger and movement changes."""

    error_type = "PersistenceError"

    def __init__(self, message: str = "Failed to apply stock changes"):
        super().__init__(message=message, status_code=500)


class BatchTimeoutError(AppException):
    """Batch did not reach its commit point before the deadline."""

    error_type = "Timeout"

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"Batch did not complete within {timeout_seconds:g}s; no changes were applied",
            status_code=504,
            details={"timeout_seconds": timeout_seconds},
        )


# --- Row / movement errors ---


class RowValidationError(AppException):
    """A single submitted movement failed validation."""

    def __init__(self, error_type: str, message: str, field: str | None = None):
        self.error_type = error_type
        details: dict[str, Any] = {"type": error_type}
        if field:
            details["field"] = field
        super().__init__(message=message, status_code=400, details=details)


class LedgerMissingError(AppException):
    """No ledger entry exists for the key a negative adjustment targets."""

    error_type = "LedgerMissing"

    def __init__(self, sku_id: str, bin_name: str):
        super().__init__(
            message=f"Inventory record not found for SKU {sku_id} in bin {bin_name}",
            status_code=400,
            details={"skuId": sku_id, "bin": bin_name},
        )


class WouldGoNegativeError(AppException):
    """Adjustment would drive a ledger entry below zero."""

    error_type = "WouldGoNegative"

    def __init__(self, sku_id: str, bin_name: str, current: int, removing: int):
        self.current = current
        self.removing = removing
        resulting = current - removing
        super().__init__(
            message=(
                f"Reversal would result in negative inventory for SKU {sku_id} in bin {bin_name}. "
                f"Current stock: {current}, inbound quantity: {removing}"
            ),
            status_code=400,
            details={
                "currentStock": current,
                "inboundQuantity": removing,
                "resultingStock": resulting,
                "deficit": -resulting,
            },
        )
