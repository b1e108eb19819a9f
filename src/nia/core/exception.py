"""Custom exceptions for the Nia store"""

from pathlib import Path


class NiaException(Exception):
    """Base exception for all Nia store errors

    Attributes:
        message: Human-readable error message, shown to the operator
        code: Error code (e.g., "MIGRATION_FAILED", "STORE_UNAVAILABLE")
    """

    def __init__(self, message: str, code: str):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidMigrationSequence(NiaException):
    """Migration list is not strictly increasing by one

    Raised before any script runs, e.g. for [1, 1] or [1, 3].
    """

    def __init__(self, message: str):
        super().__init__(message, "INVALID_MIGRATION_SEQUENCE")


class MigrationError(NiaException):
    """A migration script failed against the current store state

    The failing step has been rolled back and is not recorded in the ledger.

    Attributes:
        version: Version of the failing migration
        description: Description of the failing migration
    """

    def __init__(self, version: int, description: str, reason: str):
        self.version = version
        self.description = description
        super().__init__(
            f"Migration {version} ({description}) failed: {reason}",
            "MIGRATION_FAILED",
        )


class StoreUnavailable(NiaException):
    """The database file cannot be opened or locked"""

    def __init__(self, path: Path | str, reason: str):
        self.path = path
        super().__init__(
            f"Store unavailable at {path}: {reason}", "STORE_UNAVAILABLE"
        )


class ValidationError(NiaException):
    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, "VALIDATION_ERROR")
