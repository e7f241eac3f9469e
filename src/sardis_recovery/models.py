"""
Guardian records, ledger codec and registry snapshots.

Guardian records are stored in the ledger as compact UTF-8 JSON under
``guardian_<id>``; the ordered list of live ids is stored under
``guardian_keys``. Both layouts are shared with the web front-end, so the
wire field names stay camelCase while the Python attributes are snake_case.
"""
from __future__ import annotations

import json
import secrets
import string
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import LedgerKeys, RecoveryDefaults
from .exceptions import GuardianDecodeError


class GuardianStatus(str, Enum):
    """Lifecycle state of a guardian record."""
    PENDING = "pending"  # Added, awaiting owner activation
    ACTIVE = "active"
    INACTIVE = "inactive"

    def can_transition_to(self, target: "GuardianStatus") -> bool:
        """Check whether ``self -> target`` is a permitted lifecycle edge."""
        return target in ALLOWED_TRANSITIONS[self]


# There is no edge back to PENDING.
ALLOWED_TRANSITIONS: Dict[GuardianStatus, frozenset[GuardianStatus]] = {
    GuardianStatus.PENDING: frozenset({GuardianStatus.ACTIVE}),
    GuardianStatus.ACTIVE: frozenset({GuardianStatus.INACTIVE}),
    GuardianStatus.INACTIVE: frozenset({GuardianStatus.ACTIVE}),
}


class ThresholdPolicy(str, Enum):
    """How a single registry-wide threshold is derived from per-record thresholds."""
    NEWEST = "newest"  # Threshold of the most recently created record
    MAXIMUM = "maximum"  # Largest threshold across records
    CONFIGURED = "configured"  # Registry-level setting, records ignored


@dataclass(frozen=True)
class GuardianRecord:
    """A guardian holding one encrypted share of the recovery secret."""
    guardian_id: str
    encrypted_share: str  # Opaque ciphertext, never inspected
    timestamp: int  # Unix seconds, set once at creation
    owner: str
    status: GuardianStatus = GuardianStatus.PENDING
    recovery_threshold: int = RecoveryDefaults.RECOVERY_THRESHOLD

    # Unknown wire fields, carried through status updates untouched
    extra_fields: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def ledger_key(self) -> str:
        return LedgerKeys.guardian(self.guardian_id)

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    def is_active(self) -> bool:
        """Check if guardian counts towards the recovery threshold."""
        return self.status == GuardianStatus.ACTIVE

    def with_status(self, status: GuardianStatus) -> "GuardianRecord":
        """Copy of this record with only ``status`` changed."""
        return replace(self, status=status)

    def to_ledger_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase, as stored in the ledger)."""
        payload = dict(self.extra_fields)
        payload.update({
            "encryptedShare": self.encrypted_share,
            "timestamp": self.timestamp,
            "owner": self.owner,
            "status": self.status.value,
            "recoveryThreshold": self.recovery_threshold,
        })
        return payload

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (safe for client, share omitted)."""
        return {
            "guardian_id": self.guardian_id,
            "owner": self.owner,
            "status": self.status.value,
            "recovery_threshold": self.recovery_threshold,
            "timestamp": self.timestamp,
            "created_at": self.created_at.isoformat(),
        }


class GuardianPayload(BaseModel):
    """Validation model for a stored guardian record blob."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    encrypted_share: str = Field(alias="encryptedShare")
    timestamp: int
    owner: str
    status: GuardianStatus = GuardianStatus.PENDING
    recovery_threshold: int = Field(
        default=RecoveryDefaults.RECOVERY_THRESHOLD,
        alias="recoveryThreshold",
        gt=0,
    )

    # Older front-end writes may carry null/zero here; they read back as defaults.
    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        return v or GuardianStatus.PENDING

    @field_validator("recovery_threshold", mode="before")
    @classmethod
    def default_threshold(cls, v: Any) -> Any:
        return v or RecoveryDefaults.RECOVERY_THRESHOLD


# =============================================================================
# Codec
# =============================================================================

def _dumps(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def encode_record(record: GuardianRecord) -> bytes:
    """Encode a guardian record for ``guardian_<id>``."""
    return _dumps(record.to_ledger_dict())


def decode_record(guardian_id: str, raw: bytes) -> GuardianRecord:
    """
    Decode a ``guardian_<id>`` blob.

    Raises:
        GuardianDecodeError: If the blob is empty, not JSON, or misses fields
    """
    key = LedgerKeys.guardian(guardian_id)
    if not raw:
        raise GuardianDecodeError(f"No record stored for guardian {guardian_id}", key=key)

    try:
        payload = GuardianPayload.model_validate_json(raw)
    except ValidationError as e:
        raise GuardianDecodeError(
            f"Malformed record for guardian {guardian_id}",
            key=key,
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e

    return GuardianRecord(
        guardian_id=guardian_id,
        encrypted_share=payload.encrypted_share,
        timestamp=payload.timestamp,
        owner=payload.owner,
        status=payload.status,
        recovery_threshold=payload.recovery_threshold,
        extra_fields=dict(payload.model_extra or {}),
    )


def encode_index(guardian_ids: Sequence[str]) -> bytes:
    """Encode the KeyIndex for ``guardian_keys``."""
    return _dumps(list(guardian_ids))


def decode_index(raw: bytes) -> list[str]:
    """
    Decode the KeyIndex.

    Absent (empty) index decodes to an empty list. Duplicate ids are dropped,
    keeping the first occurrence.

    Raises:
        GuardianDecodeError: If the stored index is not a JSON array of strings
    """
    if not raw:
        return []

    try:
        value = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise GuardianDecodeError(
            "Guardian index is not valid JSON", key=LedgerKeys.GUARDIAN_INDEX
        ) from e

    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise GuardianDecodeError(
            "Guardian index must be a JSON array of strings",
            key=LedgerKeys.GUARDIAN_INDEX,
        )

    return list(dict.fromkeys(value))


_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_guardian_id(now_ms: Optional[int] = None) -> str:
    """Generate a new guardian id: ``<unix-ms>-<random base36 suffix>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(
        secrets.choice(_ID_ALPHABET)
        for _ in range(RecoveryDefaults.GUARDIAN_ID_SUFFIX_LENGTH)
    )
    return f"{now_ms}-{suffix}"


# =============================================================================
# Snapshots
# =============================================================================

@dataclass(frozen=True)
class LoadDiagnostic:
    """A guardian that was skipped while loading the registry."""
    guardian_id: Optional[str]  # None when the index itself was unreadable
    reason: str  # "missing" | "decode_error" | "index_decode_error"
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guardian_id": self.guardian_id,
            "reason": self.reason,
            "message": self.message,
        }


@dataclass(frozen=True)
class GuardianSnapshot(Sequence):
    """
    Point-in-time view of the registry returned by ``GuardianRegistry.load()``.

    Records are ordered newest first. The snapshot belongs to the caller and is
    never refreshed in place; call ``load()`` again for a new one.
    """
    records: Tuple[GuardianRecord, ...] = ()
    diagnostics: Tuple[LoadDiagnostic, ...] = ()
    key_index: Tuple[str, ...] = ()  # Index order as read, including skipped ids
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, item):
        return self.records[item]

    def __iter__(self) -> Iterator[GuardianRecord]:
        return iter(self.records)

    @property
    def is_partial(self) -> bool:
        """True when some indexed guardians could not be read."""
        return bool(self.diagnostics)

    def get(self, guardian_id: str) -> Optional[GuardianRecord]:
        for record in self.records:
            if record.guardian_id == guardian_id:
                return record
        return None

    def by_status(self, status: GuardianStatus) -> list[GuardianRecord]:
        return [r for r in self.records if r.status == status]

    def search(self, term: str) -> list[GuardianRecord]:
        """Case-insensitive substring match on id, owner or status."""
        needle = term.strip().lower()
        if not needle:
            return list(self.records)
        return [
            r for r in self.records
            if needle in r.guardian_id.lower()
            or needle in r.owner.lower()
            or needle in r.status.value
        ]


@dataclass(frozen=True)
class RecoverySummary:
    """Guardian counts partitioned by status."""
    total: int = 0
    active_count: int = 0
    inactive_count: int = 0
    pending_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "active_count": self.active_count,
            "inactive_count": self.inactive_count,
            "pending_count": self.pending_count,
        }


__all__ = [
    "GuardianStatus",
    "ALLOWED_TRANSITIONS",
    "ThresholdPolicy",
    "GuardianRecord",
    "GuardianPayload",
    "encode_record",
    "decode_record",
    "encode_index",
    "decode_index",
    "generate_guardian_id",
    "LoadDiagnostic",
    "GuardianSnapshot",
    "RecoverySummary",
]
