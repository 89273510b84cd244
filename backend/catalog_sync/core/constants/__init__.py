"""
Constants package — re-exports from domain-specific modules.

Usage:
    from catalog_sync.core.constants.sync import BATCH_SIZE
    # or
    from catalog_sync.core.constants import BATCH_SIZE
Version: 1.0.0
"""

from catalog_sync.core.constants import sync
from catalog_sync.core.constants.sync import (
    BATCH_SIZE,
    DIRECT_SYNC_THRESHOLD,
    STALENESS_WINDOW_MINUTES,
    DESCRIPTION_MAX_LENGTH,
    PUBLISHABLE_STATUS,
    JOB_STATUS_IDLE,
    JOB_STATUS_RUNNING,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    PROCESS_NEXT_BATCH_TASK,
)

__all__ = [
    "sync",
    "BATCH_SIZE",
    "DIRECT_SYNC_THRESHOLD",
    "STALENESS_WINDOW_MINUTES",
    "DESCRIPTION_MAX_LENGTH",
    "PUBLISHABLE_STATUS",
    "JOB_STATUS_IDLE",
    "JOB_STATUS_RUNNING",
    "JOB_STATUS_COMPLETED",
    "JOB_STATUS_FAILED",
    "PROCESS_NEXT_BATCH_TASK",
]
