"""Bounded retry loop for geocoding calls.

The geocoding client never raises, so retries are driven by the
``error_kind`` of the returned result rather than by exceptions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Collection, Optional, Protocol, TypeVar

from .geocoding.base import TRANSIENT_ERROR_KINDS, GeocodeErrorKind

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class _HasErrorKind(Protocol):
    @property
    def success(self) -> bool: ...

    @property
    def error_kind(self) -> GeocodeErrorKind: ...


R = TypeVar("R", bound=_HasErrorKind)


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    """Return ``delay(attempt) = base_delay * attempt``."""

    def delay(attempt: int) -> float:
        return base_delay * attempt

    return delay


async def retry_geocode(
    op_name: str,
    func: Callable[[], Awaitable[R]],
    *,
    max_attempts: int,
    delay: Callable[[int], float],
    retry_on: Collection[GeocodeErrorKind] = TRANSIENT_ERROR_KINDS,
    sleep: Sleep = asyncio.sleep,
    should_continue: Optional[Callable[[], bool]] = None,
) -> R:
    """
    Call ``func`` until it succeeds, fails with a non-retryable kind, or
    ``max_attempts`` calls have been made. Returns the last result.

    ``should_continue`` is checked before every retry so a superseded
    session can stop early; the last result is returned in that case.
    """

    attempt = 1
    while True:
        result = await func()
        if result.success or result.error_kind not in retry_on or attempt >= max_attempts:
            return result
        if should_continue is not None and not should_continue():
            return result

        wait = delay(attempt)
        logger.warning(
            "Transient geocoding failure, retrying",
            extra={
                "event": "geocode_retry",
                "op": op_name,
                "attempt": attempt,
                "delay": wait,
                "error_kind": result.error_kind.value,
            },
        )
        await sleep(wait)
        if should_continue is not None and not should_continue():
            return result
        attempt += 1
