"""Exception taxonomy for the Stockpile persistence core.

Defines a small hierarchy of exceptions used across the storage, migration
and import layers. All exceptions accept a human-readable message and
``str(exception)`` returns the message unchanged.

The load path never lets these escape; import paths raise them so the caller
can report or retry the user action.
"""

from __future__ import annotations

from enum import StrEnum


class StockpileError(Exception):
    """Base exception for Stockpile-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ParseError(StockpileError):
    """Raised when an external payload is not well-formed JSON."""


class StorageError(StockpileError):
    """Raised when the underlying key-value store fails."""


class ValidationError(StockpileError):
    """Raised when input payloads fail validation or violate invariants."""


class InvalidVersionFormatError(StockpileError):
    """Raised when a schema version is not a strict ``x.y.z`` string."""


class MigrationErrorKind(StrEnum):
    """Why a migration was refused or failed."""

    UNSUPPORTED = "unsupported"
    STEP_FAILED = "step_failed"


class MigrationError(StockpileError):
    """Raised when a document cannot be brought to the current schema."""

    kind: MigrationErrorKind = MigrationErrorKind.STEP_FAILED

    def __init__(self, message: str, *, from_version: str, to_version: str) -> None:
        super().__init__(message)
        self.from_version = from_version
        self.to_version = to_version


class UnsupportedVersionError(MigrationError):
    """Raised when a document is older than the minimum supported version."""

    kind = MigrationErrorKind.UNSUPPORTED


class MigrationStepError(MigrationError):
    """Raised when a registered migration step fails.

    The original exception is attached as ``__cause__``.
    """

    kind = MigrationErrorKind.STEP_FAILED
