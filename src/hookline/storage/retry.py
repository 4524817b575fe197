"""Retry decorator for Qdrant calls."""

from __future__ import annotations

import httpx
from qdrant_client.http.exceptions import UnexpectedResponse

from hookline.retry import transient_retry

# Network and server faults only; 4xx responses surface immediately
qdrant_retry = transient_retry(
    httpx.ConnectError,
    httpx.TimeoutException,
    UnexpectedResponse,
    operation="qdrant",
)
