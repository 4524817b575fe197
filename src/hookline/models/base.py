"""Base helpers shared by Hookline models."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import uuid4

# Injectable "now" source. Components take one so tests can pin time.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: current time in UTC."""
    return datetime.now(UTC)


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("sub") -> "sub_a1b2c3d4e5f6"
        generate_id("dlv") -> "dlv_a1b2c3d4e5f6"
    """
    return f"{prefix}_{uuid4().hex[:12]}"
