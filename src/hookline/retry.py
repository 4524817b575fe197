"""Retry decorators for transient infrastructure faults.

Delivery attempts are retried by the task queue with the configured backoff
(see :mod:`hookline.webhooks.retry`). This module covers the other kind of
retry: a Qdrant call or an enqueue that failed for a reason worth trying
again a moment later, within the same attempt.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hookline.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _before_sleep(operation: str) -> Callable[[RetryCallState], None]:
    def log_retry(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying transient failure",
            operation=operation,
            attempt=retry_state.attempt_number,
            fn_name=retry_state.fn.__name__ if retry_state.fn else "unknown",
            exception=str(exception) if exception else None,
        )

    return log_retry


def transient_retry(
    *exception_types: type[BaseException],
    operation: str,
    attempts: int = 3,
    multiplier: float = 1,
    min_wait: float = 1,
    max_wait: float = 10,
) -> Callable[[F], F]:
    """Build a tenacity decorator retrying only ``exception_types``.

    Args:
        *exception_types: Exceptions treated as transient.
        operation: Label logged with every retry.
        attempts: Total tries, including the first.
        multiplier: Exponential backoff multiplier in seconds.
        min_wait: Lower bound of a single wait.
        max_wait: Upper bound of a single wait.

    The last exception is re-raised once ``attempts`` is spent.
    """
    if not exception_types:
        raise ValueError("transient_retry needs at least one exception type")

    return retry(  # type: ignore[return-value]
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exception_types),
        before_sleep=_before_sleep(operation),
        reraise=True,
    )
