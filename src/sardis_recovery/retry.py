"""
Backoff for guardian ledger access.

Two callers share one policy type:
- ContractLedgerGateway retries idempotent ledger reads with ``retry_async``
- GuardianRegistry spaces index-append attempts with ``calculate_delay``

Ledger writes are never passed through ``retry_async``: a write whose receipt
wait failed may still have landed.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Type, TypeVar

from .constants import RetryDefaults
from .exceptions import LedgerUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Exponential backoff policy.

    Attributes:
        max_retries: Retries after the first attempt (0 means a single attempt)
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        jitter: Fraction of the delay randomly added or removed
        retry_on: Exception types worth another attempt
    """

    max_retries: int = RetryDefaults.LEDGER_READ_MAX_RETRIES
    base_delay: float = RetryDefaults.LEDGER_READ_BASE_DELAY
    max_delay: float = RetryDefaults.MAX_DELAY
    jitter: float = RetryDefaults.JITTER
    retry_on: tuple[Type[BaseException], ...] = (LedgerUnavailableError,)

    def calculate_delay(self, attempt: int) -> float:
        """Delay after the given 0-based attempt: doubled each time, capped."""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter > 0:
            spread = delay * self.jitter
            delay += random.uniform(-spread, spread)
        return max(0.0, delay)

    def should_retry(self, exception: BaseException) -> bool:
        return isinstance(exception, self.retry_on)


class RetryExhausted(Exception):
    """Every attempt of a retried ledger call failed."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{operation} failed after {attempts} attempts: {last_error}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    config: Optional[RetryConfig] = None,
    **kwargs,
) -> T:
    """Await ``func(*args, **kwargs)``, retrying failures listed in ``config.retry_on``.

    Other exceptions propagate on the first occurrence.

    Raises:
        RetryExhausted: If the last allowed attempt also failed
    """
    config = config or RetryConfig()
    operation = getattr(func, "__name__", repr(func))

    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not config.should_retry(e):
                raise
            if attempt >= config.max_retries:
                raise RetryExhausted(operation, attempt + 1, e) from e

            delay = config.calculate_delay(attempt)
            logger.warning(
                f"{operation} attempt {attempt + 1}/{config.max_retries + 1} failed "
                f"({type(e).__name__}: {e}); retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
            attempt += 1
