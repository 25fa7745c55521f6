from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..models.config_models import RetryPolicy

"""Linear retry discipline shared by page fetches and submissions.

``retries`` additional attempts follow the first one; before attempt ``n + 1``
the caller waits ``backoff_seconds * n``. Any ``httpx.HTTPError`` (transport
failure, timeout, non-2xx status raised by ``raise_for_status``) is retried;
after the last attempt the error propagates unchanged.
"""

__all__ = [
    "retrying",
    "call_with_retry",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _before_sleep(description: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        wait = state.next_action.sleep if state.next_action else 0
        logger.warning(
            f"{description} failed ({type(exc).__name__}: {exc}); "
            f"retrying in {wait:g}s (retry {state.attempt_number}/{policy.retries})"
        )
    return _log


def retrying(policy: RetryPolicy, description: str = "request") -> AsyncRetrying:
    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_incrementing(start=policy.backoff_seconds, increment=policy.backoff_seconds),
        retry=retry_if_exception_type(httpx.HTTPError),
        before_sleep=_before_sleep(description, policy),
        reraise=True,
    )


async def call_with_retry(
    policy: RetryPolicy,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    description: str = "request",
    **kwargs: Any,
) -> T:
    async for attempt in retrying(policy, description):
        with attempt:
            return await fn(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover
