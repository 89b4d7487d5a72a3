"""Bounded polling for eventually-consistent backend state.

The service populates restore points and dropped-database records some time
after the triggering operation completes. ``poll_until`` probes at a fixed
interval until a predicate holds or the attempt budget runs out. Running out
is reported through ``PollOutcome.satisfied`` rather than raised; an
exception raised by the probe itself is propagated on the first occurrence.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from sqlrecovery.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PollOutcome(Generic[T]):
    satisfied: bool
    value: T | None
    attempts: int


def _last_result(state: RetryCallState) -> object:
    outcome = state.outcome
    return outcome.result() if outcome is not None else None


async def poll_until(
    probe: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    interval: float,
    predicate: Callable[[T], bool] = bool,
    sleep: Sleep = asyncio.sleep,
    description: str = "condition",
) -> PollOutcome[T]:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempts = 0

    async def _attempt() -> T:
        nonlocal attempts
        attempts += 1
        return await probe()

    def _log_retry(state: RetryCallState) -> None:
        logger.info(
            "poll.waiting",
            target=description,
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            next_in_s=interval,
        )

    retrying = AsyncRetrying(
        sleep=sleep,
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda value: not predicate(value)),
        before_sleep=_log_retry,
        retry_error_callback=_last_result,
    )
    value = await retrying(_attempt)
    satisfied = predicate(value)
    if satisfied:
        logger.info("poll.satisfied", target=description, attempts=attempts)
    else:
        logger.warning("poll.exhausted", target=description, attempts=attempts)
    return PollOutcome(satisfied=satisfied, value=value, attempts=attempts)
