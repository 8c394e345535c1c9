"""Custom exception hierarchy for inkbook."""

from __future__ import annotations

from typing import Any, Optional


class InkbookError(Exception):
    """Base class for all custom errors raised by inkbook."""


# --- 3-layer hierarchy ---

class DomainError(InkbookError):
    """Base class for domain-level errors."""


class InfrastructureError(InkbookError):
    """Base class for infrastructure-level errors."""


class ApplicationError(InkbookError):
    """Base class for application-level errors."""


# --- Domain errors ---

class CustomerNotFoundError(DomainError):
    """Raised when the requested customer cannot be located."""


class BookingNotFoundError(DomainError):
    """Raised when the requested booking cannot be located."""


class ValidationError(DomainError):
    """Raised when a create/update payload fails validation.

    ``field`` names the offending input so forms can highlight it.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


# --- Infrastructure errors ---

class DatabaseError(InfrastructureError):
    """Raised when a database operation fails."""


class ConnectionPoolExhausted(InfrastructureError):
    """Raised when no connections are available in the pool."""


# --- List core errors ---

class ListCoreError(ApplicationError):
    """Base class for errors raised by the list-management core."""


class InvalidArgument(ListCoreError, ValueError):
    """Raised on caller misuse (bad page size, unknown row, bad range)."""


class FetchFailed(ListCoreError):
    """Raised when the fetch collaborator fails; the caller may retry."""

    def __init__(self, cause: BaseException, cursor: Any = None) -> None:
        super().__init__(f"Fetch failed: {cause}")
        self.cause = cause
        self.cursor = cursor


class MutationFailed(ListCoreError):
    """Reported when a remote mutation fails and the local change is rolled back."""

    def __init__(self, kind: Any, target_id: Any, cause: BaseException) -> None:
        kind_name = getattr(kind, "value", kind)
        super().__init__(f"{kind_name} of row {target_id!r} failed: {cause}")
        self.kind = kind
        self.target_id = target_id
        self.cause = cause


class MutationTimeout(ListCoreError, TimeoutError):
    """Raised when a remote mutation does not resolve within the timeout."""


class MutationConflict(ListCoreError):
    """Raised when a row already has a pending mutation."""

    def __init__(self, target_id: Any, pending_id: Optional[str] = None) -> None:
        super().__init__(f"Row {target_id!r} already has a pending mutation")
        self.target_id = target_id
        self.pending_id = pending_id


class RollbackTargetMissing(ListCoreError):
    """Raised when a rollback target was removed by a confirmed server change."""

    def __init__(self, target_id: Any) -> None:
        super().__init__(f"Cannot roll back row {target_id!r}: removed by the server")
        self.target_id = target_id


# --- DI-specific errors ---

class CircularDependencyError(InkbookError):
    """Raised when a circular dependency is detected during resolution."""


class ResolutionError(InkbookError):
    """Raised when a dependency cannot be resolved."""


# --- Settings ---

class SettingsError(InkbookError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""
