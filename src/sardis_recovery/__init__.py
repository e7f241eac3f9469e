"""
Sardis Recovery - Guardian registry and social recovery coordination.

This package provides:
- A guardian registry stored in a key-value ledger (on-chain or in-memory)
- Owner-gated guardian lifecycle (pending -> active <-> inactive)
- Threshold-based recovery readiness and time-locked recovery requests

Example usage:
    from sardis_recovery import (
        GuardianRegistry,
        InMemoryLedger,
        RecoveryCoordinator,
        GuardianStatus,
    )

    registry = GuardianRegistry(InMemoryLedger())
    guardian = await registry.add("0xAAA...", encrypted_share, recovery_threshold=3)
    await registry.activate(guardian.guardian_id, requester="0xAAA...")

    coordinator = RecoveryCoordinator(registry)
    readiness = await coordinator.readiness(threshold=3)
"""

# Configuration
from .config import (
    RecoverySettings,
    load_settings,
)

# Exceptions
from .exceptions import (
    RecoveryException,
    LedgerUnavailableError,
    IndexConflictError,
    GuardianDecodeError,
    GuardianNotFoundError,
    GuardianAuthorizationError,
    InvalidTransitionError,
    GuardianValidationError,
    RecoveryNotReadyError,
    RecoveryConfigurationError,
    get_exception_class,
)

# Records and snapshots
from .models import (
    GuardianStatus,
    ThresholdPolicy,
    GuardianRecord,
    GuardianSnapshot,
    LoadDiagnostic,
    RecoverySummary,
    generate_guardian_id,
)

# Ledger
from .ledger import (
    LedgerGateway,
    InMemoryLedger,
    ContractLedgerGateway,
    create_ledger,
)

# Ownership
from .ownership import (
    is_owner,
    permitted_transitions,
)

# Registry
from .registry import GuardianRegistry

# Coordination
from .coordinator import (
    summarize,
    is_recovery_ready,
    resolve_threshold,
    RecoveryReadiness,
    RecoveryRequest,
    RecoveryCoordinator,
)

# Logging
from .logging_config import (
    LogContext,
    configure_logging,
    setup_logging,
)


__all__ = [
    # Configuration
    "RecoverySettings",
    "load_settings",

    # Exceptions
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

    # Records and snapshots
    "GuardianStatus",
    "ThresholdPolicy",
    "GuardianRecord",
    "GuardianSnapshot",
    "LoadDiagnostic",
    "RecoverySummary",
    "generate_guardian_id",

    # Ledger
    "LedgerGateway",
    "InMemoryLedger",
    "ContractLedgerGateway",
    "create_ledger",

    # Ownership
    "is_owner",
    "permitted_transitions",

    # Registry
    "GuardianRegistry",

    # Coordination
    "summarize",
    "is_recovery_ready",
    "resolve_threshold",
    "RecoveryReadiness",
    "RecoveryRequest",
    "RecoveryCoordinator",

    # Logging
    "LogContext",
    "configure_logging",
    "setup_logging",
]
