"""Ownership checks for guardian records."""
from __future__ import annotations

from typing import Optional

from .models import ALLOWED_TRANSITIONS, GuardianRecord, GuardianStatus


def is_owner(candidate: Optional[str], owner: Optional[str]) -> bool:
    """Case-insensitive address comparison. Empty identities never match."""
    if not candidate or not owner:
        return False
    return candidate.strip().lower() == owner.strip().lower()


def permitted_transitions(
    record: GuardianRecord,
    principal: Optional[str],
) -> tuple[GuardianStatus, ...]:
    """Statuses ``principal`` may move ``record`` to (used to gate UI actions)."""
    if not is_owner(principal, record.owner):
        return ()
    return tuple(
        status for status in GuardianStatus
        if status in ALLOWED_TRANSITIONS[record.status]
    )
