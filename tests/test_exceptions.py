"""
Tests for sardis_recovery.exceptions.
"""
from __future__ import annotations

import pytest

from sardis_recovery.exceptions import (
    GuardianAuthorizationError,
    GuardianDecodeError,
    GuardianNotFoundError,
    GuardianValidationError,
    IndexConflictError,
    InvalidTransitionError,
    LedgerUnavailableError,
    RecoveryConfigurationError,
    RecoveryException,
    RecoveryNotReadyError,
    get_exception_class,
)


class TestRecoveryException:
    def test_to_dict_without_details(self):
        exc = RecoveryException("boom")
        assert exc.to_dict() == {"error": "RECOVERY_ERROR", "message": "boom"}
        assert exc.http_status == 500

    def test_custom_error_code(self):
        exc = RecoveryException("boom", error_code="CUSTOM", details={"a": 1})
        assert exc.to_dict() == {"error": "CUSTOM", "message": "boom", "details": {"a": 1}}

    @pytest.mark.parametrize(
        "exc,code,status",
        [
            (LedgerUnavailableError("down"), "LEDGER_UNAVAILABLE", 503),
            (GuardianDecodeError("bad"), "DECODE_ERROR", 422),
            (GuardianNotFoundError("g1"), "NOT_FOUND", 404),
            (GuardianAuthorizationError("no"), "AUTHORIZATION_ERROR", 403),
            (InvalidTransitionError("pending", "inactive"), "INVALID_TRANSITION", 409),
            (RecoveryNotReadyError(1, 3), "NOT_READY", 409),
            (GuardianValidationError("bad"), "VALIDATION_ERROR", 400),
            (IndexConflictError("g1", 5), "INDEX_CONFLICT", 409),
            (RecoveryConfigurationError("cfg"), "CONFIGURATION_ERROR", 500),
        ],
    )
    def test_codes_and_statuses(self, exc, code, status):
        assert isinstance(exc, RecoveryException)
        assert exc.error_code == code
        assert exc.http_status == status
        assert get_exception_class(code) is type(exc)


class TestStructuredDetails:
    def test_ledger_unavailable(self):
        exc = LedgerUnavailableError("down", key="guardian_keys", operation="put")
        assert exc.details == {"key": "guardian_keys", "operation": "put"}

    def test_not_found(self):
        exc = GuardianNotFoundError("g1")
        assert exc.message == "Guardian 'g1' not found"
        assert exc.details == {"resource_type": "guardian", "resource_id": "g1"}

    def test_not_ready_message(self):
        exc = RecoveryNotReadyError(2, 3)
        assert str(exc) == "Recovery requires 3 active guardians, 2 active"

    def test_index_conflict(self):
        exc = IndexConflictError("g1", 5)
        assert exc.guardian_id == "g1"
        assert exc.details == {"orphaned_guardian_id": "g1", "attempts": 5}

    def test_validation_field(self):
        assert GuardianValidationError("bad", field="owner").details == {"field": "owner"}


def test_unknown_code_falls_back_to_base():
    assert get_exception_class("NOPE") is RecoveryException
