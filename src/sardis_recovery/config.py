"""Configuration surface for Sardis social recovery."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from .constants import RecoveryDefaults, RetryDefaults
from .models import ThresholdPolicy


class RecoverySettings(BaseSettings):
    """Guardian registry and recovery coordination configuration."""

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    # Ledger backend - in-memory by default for local development
    ledger_backend: Literal["memory", "contract"] = "memory"
    rpc_url: str = "https://sepolia.base.org"
    chain_id: int = 84532
    contract_address: str = ""
    operator_private_key: str = ""
    check_ledger_availability: bool = True
    ledger_read_retries: int = RetryDefaults.LEDGER_READ_MAX_RETRIES

    # Guardian index append
    index_append_max_attempts: int = RetryDefaults.INDEX_APPEND_MAX_ATTEMPTS
    index_append_base_delay: float = RetryDefaults.INDEX_APPEND_BASE_DELAY

    # Recovery thresholds
    default_recovery_threshold: int = RecoveryDefaults.RECOVERY_THRESHOLD
    max_recovery_threshold: int = RecoveryDefaults.MAX_RECOVERY_THRESHOLD
    threshold_policy: ThresholdPolicy = ThresholdPolicy.MAXIMUM
    recovery_delay_hours: int = 0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_prefix = "SARDIS_RECOVERY_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("index_append_max_attempts", "default_recovery_threshold", "max_recovery_threshold")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("ledger_read_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("ledger_read_retries cannot be negative")
        return v

    @field_validator("recovery_delay_hours")
    @classmethod
    def validate_delay(cls, v: int) -> int:
        if v not in RecoveryDefaults.RECOVERY_DELAY_OPTIONS:
            raise ValueError(
                f"recovery_delay_hours must be one of {RecoveryDefaults.RECOVERY_DELAY_OPTIONS}"
            )
        return v

    @model_validator(mode="after")
    def validate_backend(self) -> "RecoverySettings":
        if self.default_recovery_threshold > self.max_recovery_threshold:
            raise ValueError("default_recovery_threshold cannot exceed max_recovery_threshold")
        if self.ledger_backend == "contract" and not self.contract_address:
            raise ValueError(
                "SARDIS_RECOVERY_CONTRACT_ADDRESS is required when ledger_backend is 'contract'"
            )
        return self


@lru_cache
def load_settings(env_file: str | None = None) -> RecoverySettings:
    """Load RecoverySettings once per process."""
    env_path = Path(env_file) if env_file else None
    return RecoverySettings(_env_file=env_path)
