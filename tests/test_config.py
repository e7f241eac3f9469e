"""
Tests for sardis_recovery.config.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from sardis_recovery.config import RecoverySettings, load_settings
from sardis_recovery.models import ThresholdPolicy


class TestRecoverySettings:
    """Tests for RecoverySettings."""

    def test_defaults(self):
        settings = RecoverySettings(_env_file=None)

        assert settings.ledger_backend == "memory"
        assert settings.default_recovery_threshold == 3
        assert settings.threshold_policy == ThresholdPolicy.MAXIMUM
        assert settings.recovery_delay_hours == 0
        assert settings.index_append_max_attempts == 5
        assert settings.check_ledger_availability is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SARDIS_RECOVERY_THRESHOLD_POLICY", "newest")
        monkeypatch.setenv("SARDIS_RECOVERY_RECOVERY_DELAY_HOURS", "72")
        monkeypatch.setenv("SARDIS_RECOVERY_DEFAULT_RECOVERY_THRESHOLD", "5")

        settings = RecoverySettings(_env_file=None)

        assert settings.threshold_policy == ThresholdPolicy.NEWEST
        assert settings.recovery_delay_hours == 72
        assert settings.default_recovery_threshold == 5

    def test_contract_backend_requires_address(self):
        with pytest.raises(ValidationError):
            RecoverySettings(ledger_backend="contract", _env_file=None)

    def test_contract_backend_with_address(self):
        settings = RecoverySettings(
            ledger_backend="contract",
            contract_address="0x" + "11" * 20,
            _env_file=None,
        )
        assert settings.contract_address.startswith("0x")

    @pytest.mark.parametrize("hours", [1, 12, 48])
    def test_rejects_unlisted_delay(self, hours):
        with pytest.raises(ValidationError):
            RecoverySettings(recovery_delay_hours=hours, _env_file=None)

    def test_default_threshold_cannot_exceed_max(self):
        with pytest.raises(ValidationError):
            RecoverySettings(
                default_recovery_threshold=9,
                max_recovery_threshold=5,
                _env_file=None,
            )

    @pytest.mark.parametrize(
        "field", ["index_append_max_attempts", "default_recovery_threshold", "max_recovery_threshold"]
    )
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValidationError):
            RecoverySettings(**{field: 0}, _env_file=None)

    def test_rejects_negative_read_retries(self):
        with pytest.raises(ValidationError):
            RecoverySettings(ledger_read_retries=-1, _env_file=None)

    def test_unknown_policy(self):
        with pytest.raises(ValidationError):
            RecoverySettings(threshold_policy="median", _env_file=None)


class TestLoadSettings:
    def test_cached(self):
        load_settings.cache_clear()
        assert load_settings() is load_settings()
        load_settings.cache_clear()
