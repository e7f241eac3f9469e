"""Exception hierarchy for Sardis social recovery.

All recovery exceptions inherit from RecoveryException, enabling:
- Consistent error handling for registry and coordinator callers
- HTTP status code mapping for whichever API layer fronts the registry
- Structured error responses with error codes

Usage:
    from sardis_recovery.exceptions import (
        RecoveryException,
        GuardianNotFoundError,
        LedgerUnavailableError,
    )

    try:
        record = await registry.set_status(guardian_id, "active", requester)
    except GuardianAuthorizationError as e:
        return e.to_dict(), e.http_status

All exceptions have:
- error_code: Machine-readable error code (e.g., "NOT_FOUND")
- http_status: Appropriate HTTP status code for API responses
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to API response format
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Type

logger = logging.getLogger(__name__)


class RecoveryException(Exception):
    """Base exception for all social recovery errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "RECOVERY_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Ledger Errors
# =============================================================================

class LedgerUnavailableError(RecoveryException):
    """A ledger read or write failed (network, RPC, reverted transaction)."""

    error_code = "LEDGER_UNAVAILABLE"
    http_status = 503

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if key:
            details["key"] = key
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)


class IndexConflictError(RecoveryException):
    """The guardian index could not be extended without losing a concurrent write."""

    error_code = "INDEX_CONFLICT"
    http_status = 409

    def __init__(
        self,
        guardian_id: str,
        attempts: int,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["orphaned_guardian_id"] = guardian_id
        details["attempts"] = attempts
        super().__init__(
            f"Guardian index append for '{guardian_id}' lost to concurrent writers "
            f"after {attempts} attempts",
            details=details,
        )
        self.guardian_id = guardian_id


# =============================================================================
# Record Errors
# =============================================================================

class GuardianDecodeError(RecoveryException):
    """A stored guardian record (or the index) is malformed."""

    error_code = "DECODE_ERROR"
    http_status = 422

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if key:
            details["key"] = key
        super().__init__(message, details=details)


class GuardianNotFoundError(RecoveryException):
    """Requested guardian is not live in the index."""

    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(
        self,
        guardian_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["resource_type"] = "guardian"
        details["resource_id"] = guardian_id
        super().__init__(f"Guardian '{guardian_id}' not found", details=details)


class GuardianAuthorizationError(RecoveryException):
    """Requester is not the owner of the guardian record."""

    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class InvalidTransitionError(RecoveryException):
    """Requested status change is not a permitted lifecycle edge."""

    error_code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(
        self,
        current: str,
        requested: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["current_status"] = current
        details["requested_status"] = requested
        super().__init__(
            f"Cannot transition guardian from '{current}' to '{requested}'",
            details=details,
        )


class GuardianValidationError(RecoveryException):
    """Invalid input for a registry operation."""

    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


# =============================================================================
# Coordination Errors
# =============================================================================

class RecoveryNotReadyError(RecoveryException):
    """Recovery was requested before enough guardians are active."""

    error_code = "NOT_READY"
    http_status = 409

    def __init__(
        self,
        active_count: int,
        threshold: int,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["active_count"] = active_count
        details["threshold"] = threshold
        super().__init__(
            f"Recovery requires {threshold} active guardians, {active_count} active",
            details=details,
        )


class RecoveryConfigurationError(RecoveryException):
    """Missing or invalid configuration."""

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# Exception Registry
# =============================================================================

_EXCEPTION_REGISTRY: dict[str, Type[RecoveryException]] = {
    cls.error_code: cls
    for cls in (
        LedgerUnavailableError,
        IndexConflictError,
        GuardianDecodeError,
        GuardianNotFoundError,
        GuardianAuthorizationError,
        InvalidTransitionError,
        GuardianValidationError,
        RecoveryNotReadyError,
        RecoveryConfigurationError,
    )
}


def get_exception_class(error_code: str) -> Type[RecoveryException]:
    """Get exception class for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        Exception class (defaults to RecoveryException if not found)
    """
    return _EXCEPTION_REGISTRY.get(error_code, RecoveryException)


__all__ = [
    "RecoveryException",
    "LedgerUnavailableError",
    "IndexConflictError",
    "GuardianDecodeError",
    "GuardianNotFoundError",
    "GuardianAuthorizationError",
    "InvalidTransitionError",
    "GuardianValidationError",
    "RecoveryNotReadyError",
    "RecoveryConfigurationError",
    "get_exception_class",
]
