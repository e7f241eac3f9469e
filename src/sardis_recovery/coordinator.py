"""
Recovery coordination over the guardian registry.

Each guardian record carries its own ``recovery_threshold``, but readiness is a
single registry-wide decision. The threshold used for that decision is either
passed explicitly or derived by a named ``ThresholdPolicy``:

- NEWEST: threshold of the most recently created guardian
- MAXIMUM: largest threshold across guardians (satisfies every record)
- CONFIGURED: ``settings.default_recovery_threshold``, records ignored

An empty registry always falls back to the configured threshold.

Only the coordination signal is produced here; reconstructing the secret from
shares is done by the external recovery scheme.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from .config import RecoverySettings
from .exceptions import GuardianValidationError, RecoveryNotReadyError
from .logging_config import LogContext
from .models import (
    GuardianRecord,
    GuardianStatus,
    RecoverySummary,
    ThresholdPolicy,
)
from .registry import GuardianRegistry

logger = logging.getLogger(__name__)


def summarize(records: Iterable[GuardianRecord]) -> RecoverySummary:
    """Partition guardians by status."""
    counts = {status: 0 for status in GuardianStatus}
    total = 0
    for record in records:
        counts[record.status] += 1
        total += 1
    return RecoverySummary(
        total=total,
        active_count=counts[GuardianStatus.ACTIVE],
        inactive_count=counts[GuardianStatus.INACTIVE],
        pending_count=counts[GuardianStatus.PENDING],
    )


def _require_threshold(threshold: int) -> None:
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
        raise GuardianValidationError(
            "Recovery threshold must be a positive integer", field="threshold"
        )


def is_recovery_ready(records: Iterable[GuardianRecord], threshold: int) -> bool:
    """True iff at least ``threshold`` guardians are ACTIVE."""
    _require_threshold(threshold)
    return summarize(records).active_count >= threshold


def resolve_threshold(
    records: Iterable[GuardianRecord],
    policy: Union[ThresholdPolicy, str],
    configured: int,
) -> int:
    """Derive the registry-wide threshold from per-record thresholds."""
    policy = ThresholdPolicy(policy)
    records = list(records)

    if policy is ThresholdPolicy.CONFIGURED or not records:
        return configured

    if policy is ThresholdPolicy.MAXIMUM:
        return max(r.recovery_threshold for r in records)

    # NEWEST: on equal timestamps the later entry wins
    newest = records[0]
    for record in records[1:]:
        if record.timestamp >= newest.timestamp:
            newest = record
    return newest.recovery_threshold


@dataclass(frozen=True)
class RecoveryReadiness:
    """Outcome of the readiness gate for one snapshot."""
    summary: RecoverySummary
    threshold: int
    ready: bool
    policy: Optional[ThresholdPolicy] = None  # None when the caller passed a threshold

    @property
    def shortfall(self) -> int:
        """Additional active guardians needed."""
        return max(0, self.threshold - self.summary.active_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.summary.to_dict(),
            "threshold": self.threshold,
            "ready": self.ready,
            "shortfall": self.shortfall,
            "policy": self.policy.value if self.policy else None,
        }


@dataclass(frozen=True)
class RecoveryRequest:
    """A recovery that passed the readiness gate."""
    recovery_id: str
    threshold: int
    guardian_ids: Tuple[str, ...]  # Guardians active when the request was made
    initiated_at: datetime
    executable_at: datetime  # initiated_at + configured recovery delay
    requested_by: Optional[str] = None

    def is_time_lock_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the recovery delay has elapsed."""
        now = now or datetime.now(timezone.utc)
        return now >= self.executable_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recovery_id": self.recovery_id,
            "threshold": self.threshold,
            "guardian_ids": list(self.guardian_ids),
            "initiated_at": self.initiated_at.isoformat(),
            "executable_at": self.executable_at.isoformat(),
            "requested_by": self.requested_by,
            "can_execute": self.is_time_lock_expired(),
        }


class RecoveryCoordinator:
    """
    Derives recovery readiness from registry snapshots and gates recovery start.

    Features:
    - Status summary for dashboards
    - Threshold resolution by explicit value or named policy
    - Time-locked recovery requests
    """

    def __init__(
        self,
        registry: GuardianRegistry,
        settings: Optional[RecoverySettings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._registry = registry
        self._settings = settings or registry.settings
        self._clock = clock or time.time

    def evaluate(
        self,
        records: Iterable[GuardianRecord],
        threshold: Optional[int] = None,
        policy: Optional[Union[ThresholdPolicy, str]] = None,
    ) -> RecoveryReadiness:
        """Apply the readiness gate to records the caller already holds."""
        records = list(records)
        resolved_policy: Optional[ThresholdPolicy] = None

        if threshold is None:
            resolved_policy = ThresholdPolicy(policy or self._settings.threshold_policy)
            threshold = resolve_threshold(
                records, resolved_policy, self._settings.default_recovery_threshold
            )

        return RecoveryReadiness(
            summary=summarize(records),
            threshold=threshold,
            ready=is_recovery_ready(records, threshold),
            policy=resolved_policy,
        )

    async def readiness(
        self,
        threshold: Optional[int] = None,
        policy: Optional[Union[ThresholdPolicy, str]] = None,
    ) -> RecoveryReadiness:
        """Load a fresh snapshot and evaluate the readiness gate."""
        snapshot = await self._registry.load()
        return self.evaluate(snapshot, threshold=threshold, policy=policy)

    async def initiate_recovery(
        self,
        requester: Optional[str] = None,
        threshold: Optional[int] = None,
        policy: Optional[Union[ThresholdPolicy, str]] = None,
    ) -> RecoveryRequest:
        """
        Start a recovery if enough guardians are active.

        Raises:
            RecoveryNotReadyError: If fewer than ``threshold`` guardians are active
            LedgerUnavailableError: If the registry cannot be loaded
        """
        with LogContext(principal=requester):
            snapshot = await self._registry.load()
            readiness = self.evaluate(snapshot, threshold=threshold, policy=policy)

            if not readiness.ready:
                logger.warning(
                    f"Recovery refused: {readiness.summary.active_count} of "
                    f"{readiness.threshold} required guardians active"
                )
                raise RecoveryNotReadyError(
                    readiness.summary.active_count,
                    readiness.threshold,
                )

            initiated_at = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            request = RecoveryRequest(
                recovery_id=f"recovery_{secrets.token_hex(12)}",
                threshold=readiness.threshold,
                guardian_ids=tuple(r.guardian_id for r in snapshot if r.is_active()),
                initiated_at=initiated_at,
                executable_at=initiated_at + timedelta(
                    hours=self._settings.recovery_delay_hours
                ),
                requested_by=requester,
            )

            logger.info(
                f"Recovery {request.recovery_id} initiated with "
                f"{len(request.guardian_ids)} active guardians "
                f"(threshold {request.threshold})"
            )
            return request


__all__ = [
    "summarize",
    "is_recovery_ready",
    "resolve_threshold",
    "RecoveryReadiness",
    "RecoveryRequest",
    "RecoveryCoordinator",
]
