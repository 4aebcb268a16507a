# comic_captions/lib/retry.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from comic_captions.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")

FATAL = "fatal"          # auth / quota: retrying cannot help
RETRYABLE = "retryable"  # transient server-side or network trouble
PERMANENT = "permanent"  # anything else: fail now

_RETRYABLE_STATUS = {500, 502, 503, 504}
_FATAL_STATUS = {401, 403, 429}
_FATAL_HINTS = ("api key", "unauthenticated", "permission denied", "quota", "expired",
                "requested entity was not found", "limit: 0")
_RETRYABLE_HINTS = ("internal", "overloaded", "timeout", "timed out", "temporarily unavailable")


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        val = getattr(exc, attr, None)
        if isinstance(val, int):
            return val
    return None


def classify_error(exc: BaseException) -> str:
    status = _status_of(exc)
    msg = str(exc).lower()

    if status in _FATAL_STATUS or (status == 400 and ("api key" in msg or "expired" in msg)):
        return FATAL
    if any(h in msg for h in _FATAL_HINTS):
        return FATAL
    if status in _RETRYABLE_STATUS:
        return RETRYABLE
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return RETRYABLE
    # openai maps transport failures to these names; avoid importing the sdk here
    if type(exc).__name__ in {"APITimeoutError", "APIConnectionError", "InternalServerError"}:
        return RETRYABLE
    if any(h in msg for h in _RETRYABLE_HINTS):
        return RETRYABLE
    return PERMANENT


@dataclass
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    `retries` counts extra attempts after the first one, so the call is made at
    most `retries + 1` times. Only errors classified as retryable are retried.
    """
    retries: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    classify: Callable[[BaseException], str] = field(default=classify_error, repr=False)

    def delays(self):
        delay = self.base_delay
        for _ in range(self.retries):
            yield delay
            delay *= self.factor

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str = "operation") -> T:
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn()
            except Exception as e:
                kind = self.classify(e)
                if kind != RETRYABLE:
                    if kind == FATAL:
                        log.error(f"{label}: fatal error, not retrying: {e}")
                    raise
                delay = next(delays, None)
                if delay is None:
                    log.warning(f"{label}: giving up after {attempt} attempts: {e}")
                    raise
                log.warning(f"{label}: attempt {attempt} failed ({e}); retrying in {delay:.1f}s")
                await self.sleep(delay)
