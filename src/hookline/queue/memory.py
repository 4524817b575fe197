"""In-process delayed task queue with lease-based claiming.

Tasks sit in a heap ordered by ``run_at``. A worker claims a task by taking
a lease on it; while the lease is live no other task for the same delivery
id can be claimed. A lease that expires without ``complete`` (a crashed or
hung worker) is reclaimed and its task becomes claimable again.

Only suitable for a single process. Everything lives in memory and is lost
on restart.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta

from hookline.exceptions import QueueError
from hookline.logging import get_logger
from hookline.models import DeliveryTask
from hookline.models.base import Clock, utc_now

logger = get_logger(__name__)


@dataclass
class _Lease:
    task: DeliveryTask
    worker_id: str
    lease_until: datetime


class InProcessTaskQueue:
    """asyncio delayed queue implementing :class:`~hookline.queue.TaskQueue`.

    Example:
        ```python
        queue = InProcessTaskQueue()
        await queue.enqueue("dlv_abc123", delay_ms=60_000)

        task = await queue.claim("worker-1", lease_seconds=120)
        if task is not None:
            ...
            await queue.complete(task)
        ```
    """

    def __init__(self, name: str = "webhooks", clock: Clock | None = None) -> None:
        self.name = name
        self._clock = clock or utc_now
        self._heap: list[tuple[datetime, int, DeliveryTask]] = []
        self._counter = itertools.count()
        self._leases: dict[str, _Lease] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    async def enqueue(self, delivery_id: str, delay_ms: int = 0) -> DeliveryTask:
        """Schedule an attempt of ``delivery_id`` after ``delay_ms``.

        Raises:
            QueueError: If the queue is closed or the delay is negative.
        """
        if self._closed:
            raise QueueError(f"Queue {self.name!r} is closed")
        if delay_ms < 0:
            raise QueueError(f"delay_ms must be >= 0, got {delay_ms}")

        task = DeliveryTask.create(delivery_id, delay_ms, self._clock())
        async with self._lock:
            self._push(task, task.run_at)

        logger.debug(
            "Task enqueued",
            queue=self.name,
            task_id=task.id,
            delivery_id=delivery_id,
            delay_ms=delay_ms,
        )
        return task

    async def claim(self, worker_id: str, lease_seconds: float) -> DeliveryTask | None:
        """Claim the earliest runnable task whose delivery id is not leased.

        Returns:
            The claimed task, or None when nothing is runnable yet.
        """
        now = self._clock()
        async with self._lock:
            self._reclaim_expired(now)

            leased = {lease.task.delivery_id for lease in self._leases.values()}
            deferred: list[tuple[datetime, int, DeliveryTask]] = []
            claimed: DeliveryTask | None = None

            while self._heap and self._heap[0][0] <= now:
                entry = heapq.heappop(self._heap)
                task = entry[2]
                if task.delivery_id in leased:
                    deferred.append(entry)
                    continue
                claimed = task
                break

            for entry in deferred:
                heapq.heappush(self._heap, entry)

            if claimed is None:
                return None

            self._leases[claimed.id] = _Lease(
                task=claimed,
                worker_id=worker_id,
                lease_until=now + timedelta(seconds=lease_seconds),
            )
            return claimed

    async def extend(self, task: DeliveryTask, lease_seconds: float) -> bool:
        """Push the lease on ``task`` to ``now + lease_seconds``.

        Returns:
            False if the task holds no lease (completed or already reclaimed).
        """
        now = self._clock()
        async with self._lock:
            lease = self._leases.get(task.id)
            if lease is None:
                return False
            lease.lease_until = now + timedelta(seconds=lease_seconds)
            return True

    async def complete(self, task: DeliveryTask) -> None:
        """Release the lease held on ``task``."""
        async with self._lock:
            if self._leases.pop(task.id, None) is None:
                logger.warning(
                    "Completed task held no lease",
                    queue=self.name,
                    task_id=task.id,
                    delivery_id=task.delivery_id,
                )

    async def size(self) -> int:
        """Tasks waiting plus tasks currently leased."""
        async with self._lock:
            return len(self._heap) + len(self._leases)

    def close(self) -> None:
        """Refuse further enqueues. Pending tasks are kept."""
        self._closed = True

    def _push(self, task: DeliveryTask, run_at: datetime) -> None:
        heapq.heappush(self._heap, (run_at, next(self._counter), task))

    def _reclaim_expired(self, now: datetime) -> None:
        expired = [task_id for task_id, lease in self._leases.items() if lease.lease_until <= now]
        for task_id in expired:
            lease = self._leases.pop(task_id)
            logger.warning(
                "Task lease expired, requeueing",
                queue=self.name,
                task_id=task_id,
                delivery_id=lease.task.delivery_id,
                worker_id=lease.worker_id,
            )
            self._push(lease.task, now)
