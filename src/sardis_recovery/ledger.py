"""
Ledger gateways for guardian storage.

The guardian ledger is a plain key -> bytes store. It serializes individual
writes but offers no cross-key atomicity. Everything above this module talks
to the ledger only through ``LedgerGateway``.

Backends:
- InMemoryLedger: dict-backed, supports compare-and-put (dev and tests)
- ContractLedgerGateway: on-chain key-value contract via web3.py
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from eth_account import Account
from web3 import Web3

from .exceptions import LedgerUnavailableError, RecoveryConfigurationError
from .retry import RetryConfig, RetryExhausted, retry_async

if TYPE_CHECKING:
    from .config import RecoverySettings

logger = logging.getLogger(__name__)


class LedgerGateway(ABC):
    """
    Adapter over the external guardian ledger.

    ``get`` returns empty bytes for an absent key. Any transport failure is
    raised as ``LedgerUnavailableError``.
    """

    @property
    def supports_compare_and_put(self) -> bool:
        """Whether ``compare_and_put`` is available on this backend."""
        return False

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Read a key; empty bytes when absent."""

    @abstractmethod
    async def put(self, key: str, value: bytes) -> None:
        """Write a key; returns once the ledger acknowledges the write."""

    async def is_available(self) -> bool:
        """Liveness probe."""
        return True

    async def compare_and_put(self, key: str, expected: bytes, value: bytes) -> bool:
        """Write ``value`` only if the key currently holds ``expected``."""
        raise NotImplementedError(f"{type(self).__name__} does not support compare_and_put")


class InMemoryLedger(LedgerGateway):
    """
    Dict-backed ledger.

    Each write is serialized by an asyncio lock, mirroring the guarantee of the
    real ledger. ``set_available(False)`` simulates an outage.
    """

    def __init__(
        self,
        initial: Optional[Mapping[str, bytes]] = None,
        compare_and_put_enabled: bool = True,
    ):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = asyncio.Lock()
        self._available = True
        self._cas_enabled = compare_and_put_enabled

    @property
    def supports_compare_and_put(self) -> bool:
        return self._cas_enabled

    def set_available(self, available: bool) -> None:
        self._available = available

    def _ensure_available(self, key: str, operation: str) -> None:
        if not self._available:
            raise LedgerUnavailableError(
                f"Ledger unavailable during {operation} of {key}",
                key=key,
                operation=operation,
            )

    async def get(self, key: str) -> bytes:
        self._ensure_available(key, "get")
        return self._data.get(key, b"")

    async def put(self, key: str, value: bytes) -> None:
        self._ensure_available(key, "put")
        async with self._lock:
            self._data[key] = bytes(value)

    async def is_available(self) -> bool:
        return self._available

    async def compare_and_put(self, key: str, expected: bytes, value: bytes) -> bool:
        if not self._cas_enabled:
            return await super().compare_and_put(key, expected, value)
        self._ensure_available(key, "compare_and_put")
        async with self._lock:
            if self._data.get(key, b"") != expected:
                return False
            self._data[key] = bytes(value)
            return True

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys (inspection helper, not part of the gateway contract)."""
        return sorted(k for k in self._data if k.startswith(prefix))


# Key-value contract ABI (getData / setData / isAvailable)
GUARDIAN_LEDGER_ABI = json.loads('''[
    {"inputs":[{"internalType":"string","name":"key","type":"string"}],
     "name":"getData","outputs":[{"internalType":"bytes","name":"","type":"bytes"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[{"internalType":"string","name":"key","type":"string"},
               {"internalType":"bytes","name":"value","type":"bytes"}],
     "name":"setData","outputs":[],
     "stateMutability":"nonpayable","type":"function"},
    {"inputs":[],"name":"isAvailable","outputs":[{"internalType":"bool","name":"","type":"bool"}],
     "stateMutability":"view","type":"function"}
]''')


class ContractLedgerGateway(LedgerGateway):
    """
    Guardian ledger backed by an on-chain key-value contract.

    web3.py is synchronous; calls run in a worker thread so the event loop is
    only suspended at ledger I/O. Reads are retried, writes are not.

    Writes through one gateway are serialized by a lock held from nonce
    selection to receipt, and the next nonce is tracked locally so a node that
    lags on its pending count cannot hand out a nonce twice.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        read_retry: Optional[RetryConfig] = None,
        receipt_timeout: float = 120.0,
        w3: Optional[Web3] = None,
        account: Optional[Any] = None,
    ):
        self._w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=GUARDIAN_LEDGER_ABI,
        )
        if account is None and private_key:
            account = Account.from_key(private_key)
        self._account = account
        self._chain_id = chain_id
        self._receipt_timeout = receipt_timeout
        self._read_retry = read_retry or RetryConfig()
        self._write_lock = asyncio.Lock()
        self._next_nonce: Optional[int] = None  # None forces a resync from the node

    @classmethod
    def from_settings(cls, settings: "RecoverySettings") -> "ContractLedgerGateway":
        return cls(
            rpc_url=settings.rpc_url,
            contract_address=settings.contract_address,
            private_key=settings.operator_private_key or None,
            chain_id=settings.chain_id,
            read_retry=RetryConfig(max_retries=settings.ledger_read_retries),
        )

    @property
    def is_read_only(self) -> bool:
        return self._account is None

    # ==================== Reads ====================

    def _get_data(self, key: str) -> bytes:
        try:
            return bytes(self._contract.functions.getData(key).call())
        except Exception as e:
            raise LedgerUnavailableError(
                f"getData failed for {key}: {e}", key=key, operation="get"
            ) from e

    async def _get_once(self, key: str) -> bytes:
        return await asyncio.to_thread(self._get_data, key)

    async def get(self, key: str) -> bytes:
        try:
            return await retry_async(self._get_once, key, config=self._read_retry)
        except RetryExhausted as e:
            raise LedgerUnavailableError(
                f"getData failed for {key} after {e.attempts} attempts",
                key=key,
                operation="get",
            ) from e.last_error

    async def is_available(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self._contract.functions.isAvailable().call))
        except Exception as e:
            logger.warning(f"Guardian ledger availability check failed: {e}")
            return False

    # ==================== Writes ====================

    def _reserve_nonce(self, key: str) -> int:
        """Next nonce for the operator: the node's pending count or our own, whichever is ahead."""
        try:
            pending = self._w3.eth.get_transaction_count(self._account.address, "pending")
        except Exception as e:
            raise LedgerUnavailableError(
                f"Nonce lookup failed for {key}: {e}", key=key, operation="put"
            ) from e
        if self._next_nonce is not None and self._next_nonce > pending:
            return self._next_nonce
        return pending

    def _set_data(self, key: str, value: bytes, nonce: int) -> None:
        account = self._account
        try:
            params: Dict[str, Any] = {"from": account.address, "nonce": nonce}
            if self._chain_id:
                params["chainId"] = self._chain_id
            tx = self._contract.functions.setData(key, value).build_transaction(params)
            signed = account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise LedgerUnavailableError(
                f"setData failed for {key}: {e}", key=key, operation="put"
            ) from e

        # Accepted by the node: the nonce is spent even if the receipt wait fails
        self._next_nonce = nonce + 1

        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except Exception as e:
            raise LedgerUnavailableError(
                f"setData receipt wait failed for {key}: {e}",
                key=key,
                operation="put",
                details={"tx_hash": tx_hash.hex()},
            ) from e

        if receipt["status"] != 1:
            raise LedgerUnavailableError(
                f"setData reverted for {key}",
                key=key,
                operation="put",
                details={"tx_hash": tx_hash.hex()},
            )

        logger.debug(f"setData {key} confirmed in block {receipt['blockNumber']} (nonce {nonce})")

    async def put(self, key: str, value: bytes) -> None:
        if self.is_read_only:
            raise RecoveryConfigurationError(
                "Guardian ledger is read-only: no operator key configured"
            )
        async with self._write_lock:
            nonce = await asyncio.to_thread(self._reserve_nonce, key)
            try:
                await asyncio.to_thread(self._set_data, key, bytes(value), nonce)
            except LedgerUnavailableError:
                if self._next_nonce is None or self._next_nonce <= nonce:
                    # Never reached the node; resync before the next write
                    self._next_nonce = None
                raise




def create_ledger(settings: "RecoverySettings") -> LedgerGateway:
    """Build the ledger backend named by ``settings.ledger_backend``."""
    if settings.ledger_backend == "contract":
        return ContractLedgerGateway.from_settings(settings)
    return InMemoryLedger()


__all__ = [
    "LedgerGateway",
    "InMemoryLedger",
    "ContractLedgerGateway",
    "GUARDIAN_LEDGER_ABI",
    "create_ledger",
]
