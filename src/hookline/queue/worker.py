"""Delivery worker pool.

Each worker loops: claim a task, run the delivery attempt, release the
lease. The lease is renewed every third of its length while the attempt
runs, so a slow endpoint never lets a second worker pick the task up. A
failing attempt is logged and never stops the loop.

Usage::

    worker = DeliveryWorker(queue, dispatcher, concurrency=10)
    await worker.start()
    ...
    await worker.stop()
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from hookline.logging import delivery_context, get_logger

if TYPE_CHECKING:
    from hookline.config import Settings
    from hookline.models import DeliveryTask
    from hookline.webhooks.dispatcher import WebhookDispatcher

    from .base import TaskQueue

logger = get_logger(__name__)


class DeliveryWorker:
    """Pool of asyncio workers draining a :class:`TaskQueue`."""

    def __init__(
        self,
        queue: TaskQueue,
        dispatcher: WebhookDispatcher,
        concurrency: int = 10,
        poll_interval_seconds: float = 1.0,
        lease_seconds: float = 120,
        name: str = "worker",
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._queue = queue
        self._dispatcher = dispatcher
        self._concurrency = concurrency
        self._poll_interval = poll_interval_seconds
        self._lease_seconds = lease_seconds
        self._name = name
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        queue: TaskQueue,
        dispatcher: WebhookDispatcher,
    ) -> DeliveryWorker:
        return cls(
            queue=queue,
            dispatcher=dispatcher,
            concurrency=settings.worker_concurrency,
            poll_interval_seconds=settings.worker_poll_interval_seconds,
            lease_seconds=settings.queue_lease_seconds,
            name=settings.queue_name,
        )

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self) -> None:
        """Spawn the worker loops. Calling start twice is a no-op."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._loop(f"{self._name}-{i}"), name=f"{self._name}-{i}")
            for i in range(self._concurrency)
        ]
        logger.info(
            "delivery_worker started",
            concurrency=self._concurrency,
            poll_interval_seconds=self._poll_interval,
        )

    async def stop(self) -> None:
        """Cancel the worker loops and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("delivery_worker stopped")

    async def run_once(self, worker_id: str = "worker-0") -> bool:
        """Claim and process a single task.

        Returns:
            True if a task was processed, False if none was runnable.
        """
        task = await self._queue.claim(worker_id, self._lease_seconds)
        if task is None:
            return False
        await self._process(task, worker_id)
        return True

    async def _process(self, task: DeliveryTask, worker_id: str) -> None:
        with delivery_context(task.delivery_id, worker_id=worker_id):
            heartbeat = asyncio.create_task(self._renew_lease(task))
            try:
                await self._dispatcher.run(task.delivery_id)
            except Exception:
                logger.exception("delivery_task failed", task_id=task.id)
            finally:
                heartbeat.cancel()
                await asyncio.gather(heartbeat, return_exceptions=True)
                await self._queue.complete(task)

    async def _renew_lease(self, task: DeliveryTask) -> None:
        """Keep the lease alive for as long as the attempt runs."""
        interval = self._lease_seconds / 3
        while True:
            await asyncio.sleep(interval)
            if not await self._queue.extend(task, self._lease_seconds):
                logger.warning("delivery_task lease lost while in flight", task_id=task.id)
                return

    async def _loop(self, worker_id: str) -> None:
        while True:
            try:
                processed = await self.run_once(worker_id)
                if not processed:
                    await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("delivery_worker poll failed", worker_id=worker_id)
                await asyncio.sleep(self._poll_interval)
