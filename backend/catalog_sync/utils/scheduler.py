"""
Tick scheduler — arms one delayed follow-up invocation.

The sync driver only knows the Scheduler protocol. In production the
callback is a Celery task name sent with a countdown, so pending ticks
survive process restarts in the broker.
Version: 1.0.0
"""
import logging
from typing import Protocol

from celery import Celery

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def arm(self, delay: float, callback: str) -> None:
        """Run callback once, no sooner than delay seconds from now."""
        ...


class CeleryScheduler:
    """Arms ticks by sending a Celery task with a countdown."""

    def __init__(self, app: Celery, queue: str = "default") -> None:
        self._app = app
        self._queue = queue

    def arm(self, delay: float, callback: str) -> None:
        result = self._app.send_task(callback, countdown=delay, queue=self._queue)
        logger.info(f"Armed {callback} in {delay}s (task_id={getattr(result, 'id', None)})")
