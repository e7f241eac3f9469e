"""
Pytest configuration for sardis-recovery tests.
"""
from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("SARDIS_RECOVERY_ENVIRONMENT", "dev")

from sardis_recovery.config import RecoverySettings
from sardis_recovery.exceptions import LedgerUnavailableError
from sardis_recovery.ledger import InMemoryLedger
from sardis_recovery.registry import GuardianRegistry


OWNER_A = "0xAAA"
OWNER_B = "0xBBB"


class TickingClock:
    """Clock returning a new second on every call."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        current = self.now
        self.now += 1.0
        return current


class FlakyLedger(InMemoryLedger):
    """In-memory ledger with per-key write failures and silently dropped writes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_puts_for: set[str] = set()
        self.drop_puts_for: set[str] = set()
        self.put_calls: list[str] = []

    async def put(self, key: str, value: bytes) -> None:
        self.put_calls.append(key)
        if key in self.fail_puts_for:
            raise LedgerUnavailableError(f"write to {key} failed", key=key, operation="put")
        if key in self.drop_puts_for:
            return
        await super().put(key, value)

    async def compare_and_put(self, key: str, expected: bytes, value: bytes) -> bool:
        self.put_calls.append(key)
        if key in self.fail_puts_for:
            raise LedgerUnavailableError(f"write to {key} failed", key=key, operation="put")
        return await super().compare_and_put(key, expected, value)


class YieldingLedger(InMemoryLedger):
    """In-memory ledger that yields to the event loop before every operation."""

    async def get(self, key: str) -> bytes:
        await asyncio.sleep(0)
        return await super().get(key)

    async def put(self, key: str, value: bytes) -> None:
        await asyncio.sleep(0)
        await super().put(key, value)

    async def compare_and_put(self, key: str, expected: bytes, value: bytes) -> bool:
        await asyncio.sleep(0)
        return await super().compare_and_put(key, expected, value)


@pytest.fixture
def settings():
    """Settings with no backoff delay so conflict loops run instantly."""
    return RecoverySettings(index_append_base_delay=0.0, _env_file=None)


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def registry(ledger, settings, clock):
    return GuardianRegistry(ledger, settings=settings, clock=clock)
