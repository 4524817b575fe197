"""Retry decorator for queue producers."""

from __future__ import annotations

from hookline.exceptions import QueueError
from hookline.retry import transient_retry

enqueue_retry = transient_retry(
    QueueError,
    operation="enqueue",
    multiplier=0.1,
    min_wait=0.1,
    max_wait=1,
)
