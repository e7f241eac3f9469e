"""
Guardian registry over the guardian ledger.

The registry owns the KeyIndex (``guardian_keys``), the ordered list of
guardian ids that defines which records exist, and CRUD-style operations over
the individual ``guardian_<id>`` record blobs.

The ledger has no multi-key transactions, so ``add`` is two independent
writes: the record blob first, then the index. The index append uses
compare-and-put when the ledger offers it, and otherwise a bounded
re-read-and-merge loop with read-back verification. A failure between the two
writes leaves an orphaned blob that ``reindex`` can repair.

Without compare-and-put one race remains: a writer whose stale index read
predates our verified write can still overwrite it afterwards. That writer
verifies only its own id.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Union

from .config import RecoverySettings
from .constants import LedgerKeys, RetryDefaults
from .exceptions import (
    GuardianAuthorizationError,
    GuardianDecodeError,
    GuardianNotFoundError,
    GuardianValidationError,
    IndexConflictError,
    InvalidTransitionError,
    LedgerUnavailableError,
)
from .ledger import LedgerGateway
from .logging_config import LogContext
from .models import (
    GuardianRecord,
    GuardianSnapshot,
    GuardianStatus,
    LoadDiagnostic,
    decode_index,
    decode_record,
    encode_index,
    encode_record,
    generate_guardian_id,
)
from .ownership import is_owner
from .retry import RetryConfig

logger = logging.getLogger(__name__)


class GuardianRegistry:
    """
    Guardian records and their index, stored in a LedgerGateway.

    The registry holds no cache: every call reads the ledger, and ``load()``
    returns a fresh caller-owned snapshot.
    """

    def __init__(
        self,
        ledger: LedgerGateway,
        settings: Optional[RecoverySettings] = None,
        clock: Optional[Callable[[], float]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self._ledger = ledger
        self._settings = settings or RecoverySettings()
        self._clock = clock or time.time
        self._id_factory = id_factory or generate_guardian_id
        self._append_backoff = RetryConfig(
            max_retries=self._settings.index_append_max_attempts - 1,
            base_delay=self._settings.index_append_base_delay,
            max_delay=RetryDefaults.INDEX_APPEND_MAX_DELAY,
        )

    @property
    def ledger(self) -> LedgerGateway:
        return self._ledger

    @property
    def settings(self) -> RecoverySettings:
        return self._settings

    # ==================== Reads ====================

    async def _read_index(self) -> tuple[bytes, list[str]]:
        raw = await self._ledger.get(LedgerKeys.GUARDIAN_INDEX)
        return raw, decode_index(raw)

    async def load(self) -> GuardianSnapshot:
        """
        Load every live guardian, newest first.

        Missing or malformed records are skipped and reported in
        ``snapshot.diagnostics``; only ledger failures abort the load.

        Raises:
            LedgerUnavailableError: If the ledger cannot be reached
        """
        if self._settings.check_ledger_availability and not await self._ledger.is_available():
            raise LedgerUnavailableError(
                "Guardian ledger is not available", operation="is_available"
            )

        raw_index = await self._ledger.get(LedgerKeys.GUARDIAN_INDEX)
        try:
            guardian_ids = decode_index(raw_index)
        except GuardianDecodeError as e:
            logger.warning(f"Guardian index unreadable, loading as empty: {e.message}")
            return GuardianSnapshot(
                diagnostics=(LoadDiagnostic(None, "index_decode_error", e.message),),
            )

        records: list[GuardianRecord] = []
        diagnostics: list[LoadDiagnostic] = []

        for guardian_id in guardian_ids:
            raw = await self._ledger.get(LedgerKeys.guardian(guardian_id))
            if not raw:
                message = f"Guardian {guardian_id} is indexed but has no record"
                logger.warning(message)
                diagnostics.append(LoadDiagnostic(guardian_id, "missing", message))
                continue
            try:
                records.append(decode_record(guardian_id, raw))
            except GuardianDecodeError as e:
                logger.warning(f"Skipping guardian {guardian_id}: {e.message}")
                diagnostics.append(LoadDiagnostic(guardian_id, "decode_error", e.message))

        # Stable sort: equal timestamps keep index order
        records.sort(key=lambda r: r.timestamp, reverse=True)

        return GuardianSnapshot(
            records=tuple(records),
            diagnostics=tuple(diagnostics),
            key_index=tuple(guardian_ids),
        )

    async def get(self, guardian_id: str) -> GuardianRecord:
        """
        Read one live guardian.

        Raises:
            GuardianNotFoundError: If the id is not indexed or its record is unreadable
            GuardianDecodeError: If the index itself is malformed
        """
        _, guardian_ids = await self._read_index()
        if guardian_id not in guardian_ids:
            raise GuardianNotFoundError(guardian_id)

        raw = await self._ledger.get(LedgerKeys.guardian(guardian_id))
        if not raw:
            raise GuardianNotFoundError(guardian_id, details={"reason": "missing"})
        try:
            return decode_record(guardian_id, raw)
        except GuardianDecodeError as e:
            raise GuardianNotFoundError(
                guardian_id, details={"reason": "decode_error"}
            ) from e

    # ==================== Writes ====================

    def _validate_new_guardian(
        self,
        owner: str,
        encrypted_share: str,
        recovery_threshold: int,
    ) -> None:
        if not isinstance(owner, str):
            raise GuardianValidationError("Owner address must be a string", field="owner")
        if not owner.strip():
            raise GuardianValidationError("Owner address is required", field="owner")
        # Shares are stored as JSON strings; callers encode binary ciphertext first
        if not isinstance(encrypted_share, str):
            raise GuardianValidationError(
                "Encrypted share must be a string", field="encrypted_share"
            )
        if not encrypted_share:
            raise GuardianValidationError(
                "Encrypted share data is required", field="encrypted_share"
            )
        if isinstance(recovery_threshold, bool) or not isinstance(recovery_threshold, int):
            raise GuardianValidationError(
                "Recovery threshold must be an integer", field="recovery_threshold"
            )
        if not 1 <= recovery_threshold <= self._settings.max_recovery_threshold:
            raise GuardianValidationError(
                f"Recovery threshold must be between 1 and "
                f"{self._settings.max_recovery_threshold}",
                field="recovery_threshold",
            )

    async def add(
        self,
        owner: str,
        encrypted_share: str,
        recovery_threshold: Optional[int] = None,
    ) -> GuardianRecord:
        """
        Register a new guardian in PENDING state.

        Args:
            owner: Address allowed to change the guardian's status
            encrypted_share: Opaque ciphertext of the guardian's share
            recovery_threshold: Per-record threshold (settings default if omitted)

        Returns:
            The created GuardianRecord

        Raises:
            GuardianValidationError: On invalid input (nothing written)
            LedgerUnavailableError: If a write fails; when the index write fails
                ``details["orphaned_guardian_id"]`` names the unindexed record
            IndexConflictError: If concurrent writers kept winning the index
        """
        if recovery_threshold is None:
            recovery_threshold = self._settings.default_recovery_threshold
        self._validate_new_guardian(owner, encrypted_share, recovery_threshold)

        record = GuardianRecord(
            guardian_id=self._id_factory(),
            encrypted_share=encrypted_share,
            timestamp=int(self._clock()),
            owner=owner,
            status=GuardianStatus.PENDING,
            recovery_threshold=recovery_threshold,
        )

        await self._ledger.put(record.ledger_key, encode_record(record))

        try:
            await self._append_to_index(record.guardian_id)
        except (LedgerUnavailableError, GuardianDecodeError) as e:
            e.details["orphaned_guardian_id"] = record.guardian_id
            logger.warning(
                f"Guardian {record.guardian_id} stored but not indexed; "
                f"call reindex() to repair: {e.message}"
            )
            raise

        logger.info(
            f"Guardian {record.guardian_id} added for {owner} "
            f"(threshold {recovery_threshold})"
        )
        return record

    async def _append_to_index(self, guardian_id: str) -> list[str]:
        """Merge ``guardian_id`` into the KeyIndex without dropping concurrent entries."""
        max_attempts = self._settings.index_append_max_attempts

        for attempt in range(max_attempts):
            raw, guardian_ids = await self._read_index()
            if guardian_id in guardian_ids:
                return guardian_ids

            merged = [*guardian_ids, guardian_id]

            if self._ledger.supports_compare_and_put:
                if await self._ledger.compare_and_put(
                    LedgerKeys.GUARDIAN_INDEX, raw, encode_index(merged)
                ):
                    return merged
                logger.info(
                    f"Guardian index changed during append of {guardian_id} "
                    f"(attempt {attempt + 1}/{max_attempts})"
                )
            else:
                await self._ledger.put(LedgerKeys.GUARDIAN_INDEX, encode_index(merged))
                _, confirmed = await self._read_index()
                if guardian_id in confirmed:
                    return confirmed
                logger.warning(
                    f"Guardian index entry {guardian_id} overwritten by a concurrent "
                    f"writer (attempt {attempt + 1}/{max_attempts})"
                )

            if attempt + 1 < max_attempts:
                await asyncio.sleep(self._append_backoff.calculate_delay(attempt))

        raise IndexConflictError(guardian_id, max_attempts)

    async def reindex(self, guardian_id: str) -> GuardianRecord:
        """
        Re-attach a stored but unindexed guardian record to the KeyIndex.

        Safe to call for an already indexed guardian.

        Raises:
            GuardianNotFoundError: If no record blob exists for the id
            GuardianDecodeError: If the blob is malformed
        """
        raw = await self._ledger.get(LedgerKeys.guardian(guardian_id))
        if not raw:
            raise GuardianNotFoundError(guardian_id, details={"reason": "missing"})
        record = decode_record(guardian_id, raw)

        await self._append_to_index(guardian_id)
        logger.info(f"Guardian {guardian_id} reindexed")
        return record

    async def set_status(
        self,
        guardian_id: str,
        new_status: Union[GuardianStatus, str],
        requester: str,
    ) -> GuardianRecord:
        """
        Change a guardian's status on behalf of its owner.

        Raises:
            GuardianValidationError: If ``new_status`` is not a known status
            GuardianNotFoundError: If the guardian is not live
            GuardianAuthorizationError: If ``requester`` is not the owner
            InvalidTransitionError: If the change is not a permitted edge
        """
        try:
            target = GuardianStatus(new_status)
        except ValueError as e:
            raise GuardianValidationError(
                f"Unknown guardian status '{new_status}'", field="status"
            ) from e

        with LogContext(principal=requester, guardian_id=guardian_id):
            record = await self.get(guardian_id)

            if not is_owner(requester, record.owner):
                raise GuardianAuthorizationError(
                    f"{requester} is not the owner of guardian {guardian_id}",
                    details={"guardian_id": guardian_id},
                )

            if not record.status.can_transition_to(target):
                raise InvalidTransitionError(
                    record.status.value,
                    target.value,
                    details={"guardian_id": guardian_id},
                )

            updated = record.with_status(target)
            await self._ledger.put(updated.ledger_key, encode_record(updated))

            logger.info(
                f"Guardian {guardian_id} status {record.status.value} -> {target.value}"
            )
            return updated

    async def activate(self, guardian_id: str, requester: str) -> GuardianRecord:
        return await self.set_status(guardian_id, GuardianStatus.ACTIVE, requester)

    async def deactivate(self, guardian_id: str, requester: str) -> GuardianRecord:
        return await self.set_status(guardian_id, GuardianStatus.INACTIVE, requester)


__all__ = [
    "GuardianRegistry",
]
