"""Retry with exponential backoff for model calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .config import Settings
from .errors import DigestError, ModelCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.5
    factor: float = 1.8
    max_delay: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_attempts,
            base_delay=settings.backoff_base_seconds,
            factor=settings.backoff_factor,
            max_delay=settings.backoff_max_seconds,
        )

    def delays(self):
        """Yield the wait before each retry (one fewer than max_attempts)."""
        delay = self.base_delay
        for _ in range(self.max_attempts - 1):
            yield min(delay, self.max_delay)
            delay = min(delay * self.factor, self.max_delay)


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def is_retriable(exc: BaseException) -> bool:
    """429, any 5xx, or no status at all (transport failure) are worth retrying."""
    if isinstance(exc, ModelCallError):
        return exc.retriable
    if isinstance(exc, DigestError):
        return False
    status = _status_code(exc)
    return status is None or status == 429 or status >= 500


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Await ``operation`` until it succeeds, retrying transient failures.

    Fatal failures and the last failure after ``max_attempts`` are re-raised
    with ``label`` attached as an exception note.
    """
    active = policy or RetryPolicy()
    delays = active.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            delay = next(delays, None) if is_retriable(exc) else None
            if delay is None:
                status = _status_code(exc)
                logger.error(
                    "%s failed after %d attempt(s) (status=%s, retriable=%s): %s",
                    label,
                    attempt,
                    status if status is not None else "none",
                    is_retriable(exc),
                    exc,
                )
                exc.add_note(f"while running {label}")
                raise
            logger.warning(
                "%s: transient error (%r); retrying in %.1fs", label, exc, delay
            )
            await sleep(delay)
