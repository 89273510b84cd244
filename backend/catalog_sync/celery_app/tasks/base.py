"""
Base task class — common logging, async helper, and lazy DI.

Provides:
- Lazy dependency lookup (worker-local, resolved after fork)
- Standardized success / failure logging
Version: 1.0.0
"""
import asyncio
import logging
from celery import Task

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task with common functionality for all workers."""

    # Don't create abstract tasks
    abstract = True

    # Sync tasks never retry: a failed batch fails the whole job and the
    # next scheduled run resumes from whatever is still stale.
    max_retries = 0

    # Track task state
    track_started = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails."""
        logger.error(f"Task {self.name}[{task_id}] failed: {exc}")

    def on_success(self, retval, task_id, args, kwargs):
        """Called when task succeeds."""
        logger.info(f"Task {self.name}[{task_id}] succeeded")


# ============================================
# Async Helper
# ============================================
def run_async(coro):
    """
    Run async function in sync context.

    Use this to call async methods from Celery tasks.
    Each call creates a new event loop to avoid conflicts.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ============================================
# Dependency helpers (lazy loading, worker-local)
# ============================================
def get_sync_driver():
    """Get the sync driver instance."""
    # Lazy import: circular dependency avoidance
    from catalog_sync.container import get_sync_driver as _get_sync_driver
    return _get_sync_driver()
