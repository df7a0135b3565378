"""Backoff policies for apply retries and readiness polling."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from kubedeploy.errors import TransientError
from kubedeploy.models.config import RetryConfig
from kubedeploy.observability.logging import get_logger

_logger = get_logger("engine.retry")


def _log_before_sleep(node_id: str):  # type: ignore[no-untyped-def]
    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        _logger.warning(
            "apply_retry_scheduled",
            node=node_id,
            attempt=retry_state.attempt_number,
            sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else 0.0,
            error=str(exc),
        )

    return _before_sleep


def cancellable_sleep(cancel: asyncio.Event | None) -> Callable[[float], Awaitable[None]]:
    """Return a sleep function that wakes early once *cancel* is set."""

    async def _sleep(seconds: float) -> None:
        if cancel is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except TimeoutError:
            pass

    return _sleep


def apply_retrying(policy: RetryConfig, node_id: str, cancel: asyncio.Event | None = None) -> AsyncRetrying:
    """Build the retry controller for one node's apply call.

    Only :class:`TransientError` is retried. Waits grow exponentially from
    ``base_delay`` and are capped at ``max_delay``; the last error is
    re-raised once ``max_attempts`` is reached or *cancel* is set. Setting
    *cancel* also cuts a pending backoff sleep short; callers check it
    before starting the next attempt.
    """
    stop = stop_after_attempt(policy.max_attempts)
    if cancel is not None:
        stop = stop | stop_when_event_set(cancel)  # type: ignore[arg-type]
    return AsyncRetrying(
        sleep=cancellable_sleep(cancel),
        stop=stop,
        wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
        before_sleep=_log_before_sleep(node_id),
    )


def poll_intervals(initial: float, cap: float) -> Iterator[float]:
    """Yield doubling poll intervals: initial, 2*initial, ... capped at *cap*."""
    interval = initial
    while True:
        yield min(interval, cap)
        interval = min(interval * 2, cap) if interval > 0 else 0.0
