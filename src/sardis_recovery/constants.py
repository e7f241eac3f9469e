"""
Centralized constants for Sardis social recovery.

Usage:
    from sardis_recovery.constants import LedgerKeys, RecoveryDefaults
"""
from __future__ import annotations

from typing import Final


# =============================================================================
# Ledger Key Layout
# =============================================================================

class LedgerKeys:
    """Key layout inside the guardian ledger.

    These names are shared with the deployed web front-end and must not change.
    """

    GUARDIAN_INDEX: Final[str] = "guardian_keys"
    GUARDIAN_PREFIX: Final[str] = "guardian_"

    @classmethod
    def guardian(cls, guardian_id: str) -> str:
        """Key holding the record blob for a guardian."""
        return f"{cls.GUARDIAN_PREFIX}{guardian_id}"


# =============================================================================
# Recovery Defaults
# =============================================================================

class RecoveryDefaults:
    """Default values for guardian records and recovery coordination."""

    # Applied when a stored record predates the recoveryThreshold field
    RECOVERY_THRESHOLD: Final[int] = 3
    MAX_RECOVERY_THRESHOLD: Final[int] = 32

    # Delay options offered by the recovery settings screen (hours)
    RECOVERY_DELAY_OPTIONS: Final[tuple[int, ...]] = (0, 24, 72, 168)

    GUARDIAN_ID_SUFFIX_LENGTH: Final[int] = 7


# =============================================================================
# Retry Configuration
# =============================================================================

class RetryDefaults:
    """Retry configuration for ledger operations."""

    MAX_DELAY: Final[float] = 10.0
    JITTER: Final[float] = 0.1

    # Ledger reads (idempotent)
    LEDGER_READ_MAX_RETRIES: Final[int] = 2
    LEDGER_READ_BASE_DELAY: Final[float] = 0.5

    # KeyIndex re-read-and-merge loop
    INDEX_APPEND_MAX_ATTEMPTS: Final[int] = 5
    INDEX_APPEND_BASE_DELAY: Final[float] = 0.05
    INDEX_APPEND_MAX_DELAY: Final[float] = 2.0


# =============================================================================
# Logging
# =============================================================================

class LoggingConfig:
    """Logging-related constants."""

    SENSITIVE_FIELDS: Final[frozenset[str]] = frozenset({
        "encrypted_share",
        "encryptedShare",
        "private_key",
        "privateKey",
        "operator_private_key",
        "secret",
        "secret_key",
    })

    MASK_PATTERN: Final[str] = "***MASKED***"
