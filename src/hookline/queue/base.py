"""Task queue interface.

The dispatcher only needs ``enqueue``; workers use ``claim``, ``extend``
and ``complete``. ``claim`` must never hand out a task whose delivery id is
already leased to another worker, so at most one attempt per delivery is
in flight. Workers renew the lease with ``extend`` while an attempt runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hookline.models import DeliveryTask


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, delivery_id: str, delay_ms: int = 0) -> DeliveryTask: ...

    async def claim(self, worker_id: str, lease_seconds: float) -> DeliveryTask | None: ...

    async def extend(self, task: DeliveryTask, lease_seconds: float) -> bool: ...

    async def complete(self, task: DeliveryTask) -> None: ...

    async def size(self) -> int: ...


__all__ = ["TaskQueue"]
