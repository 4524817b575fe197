"""Delivery task queue and worker pool."""

from .base import TaskQueue
from .memory import InProcessTaskQueue
from .worker import DeliveryWorker

__all__ = ["DeliveryWorker", "InProcessTaskQueue", "TaskQueue"]
