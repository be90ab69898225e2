from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    MissingHeadersError,
    EmptyBatchError,
    UnsupportedFileError,
    FileTooLargeError,
    RegistryUnavailableError,
    PersistenceError,
    BatchTimeoutError,
    RowValidationError,
    LedgerMissingError,
    WouldGoNegativeError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "MissingHeadersError",
    "EmptyBatchError",
    "UnsupportedFileError",
    "FileTooLargeError",
    "RegistryUnavailableError",
    "PersistenceError",
    "BatchTimeoutError",
    "RowValidationError",
    "LedgerMissingError",
    "WouldGoNegativeError",
]
