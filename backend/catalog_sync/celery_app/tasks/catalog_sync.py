"""
Catalog sync tasks — scheduled start, background ticks, single-item hooks.

Tasks:
- start_sync: Beat entry point (also callable manually); picks direct or background mode
- process_next_batch: One background tick; re-arms itself while the job runs
- sync_single_item: Push one changed catalog item right away
- delete_item: Remove one catalog item from the recommendation service

Tasks return status dicts instead of raising so a failed batch is recorded
on the job rather than retried by Celery. A missing credential or endpoint
is the exception: it raises ConfigurationError to the caller. Any other
failure of a direct run (remote, catalog query, bad row) comes back as a
failed status once the driver has recorded it.
Version: 1.0.0
"""
import logging
from typing import Any, Dict

from catalog_sync.celery_app.celery_config import celery_app
from catalog_sync.celery_app.tasks.base import BaseTask, run_async, get_sync_driver
from catalog_sync.core.exceptions import ConfigurationError, RemoteError

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.catalog_sync.start_sync",
    max_retries=0
)
def start_sync(self) -> Dict[str, Any]:
    """Start a sync run (direct or background)."""
    driver = get_sync_driver()
    try:
        handle = run_async(driver.start_sync())
    except ConfigurationError:
        raise
    except RemoteError as e:
        logger.error(f"Direct sync failed: {e}")
        return {"status": "failed", "error": str(e)}
    except Exception as e:
        logger.exception(f"Direct sync crashed: {e}")
        return {"status": "failed", "error": str(e) or e.__class__.__name__}

    logger.info(f"start_sync -> {handle.status} (mode={handle.mode}, total={handle.total})")
    return handle.model_dump()


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.catalog_sync.process_next_batch",
    max_retries=0
)
def process_next_batch(self) -> Dict[str, Any]:
    """Advance the running background job by one batch."""
    driver = get_sync_driver()
    result = run_async(driver.process_next_batch())
    return result.model_dump()


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.catalog_sync.sync_single_item",
    max_retries=0
)
def sync_single_item(self, item_id: int) -> Dict[str, Any]:
    """Sync one item after it changed in the catalog."""
    driver = get_sync_driver()
    return run_async(driver.sync_item(item_id))


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.catalog_sync.delete_item",
    max_retries=0
)
def delete_item(self, item_id: int) -> Dict[str, Any]:
    """Remove a trashed or deleted catalog item from the remote catalog."""
    driver = get_sync_driver()
    return run_async(driver.delete_item(driver.external_id_for(item_id)))
