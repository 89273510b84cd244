"""
Celery task exports — catalog sync tasks.

Version: 1.0.0
"""
from catalog_sync.celery_app.tasks.catalog_sync import (
    start_sync,
    process_next_batch,
    sync_single_item,
    delete_item,
)

__all__ = [
    "start_sync",
    "process_next_batch",
    "sync_single_item",
    "delete_item",
]
