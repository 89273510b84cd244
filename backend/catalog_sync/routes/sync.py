"""
Sync routes — manual triggers, status, stats, and connection test.

Version: 1.0.0
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from catalog_sync.container import get_sync_driver
from catalog_sync.core.exceptions import ConfigurationError, RemoteError
from catalog_sync.schemas.sync import (
    JobHandle,
    SyncStatsResponse,
    SyncStatusResponse,
    TickResult,
)
from catalog_sync.services.sync_driver import SyncDriver

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/start", response_model=JobHandle)
async def start_sync(driver: SyncDriver = Depends(get_sync_driver)):
    """
    Start a sync run.

    Small candidate sets finish inside this request (direct mode); larger
    ones return a running background job.
    """
    try:
        return await driver.start_sync()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RemoteError as e:
        logger.error(f"Sync start failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.exception(f"Sync start crashed: {e}")
        raise HTTPException(status_code=502, detail=f"Sync failed: {e}")


@router.post("/tick", response_model=TickResult)
async def process_next_batch(driver: SyncDriver = Depends(get_sync_driver)):
    """Advance the running background job by one batch."""
    return await driver.process_next_batch()


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(driver: SyncDriver = Depends(get_sync_driver)):
    return driver.get_status()


@router.post("/cancel", response_model=SyncStatusResponse)
async def cancel_sync(driver: SyncDriver = Depends(get_sync_driver)):
    return driver.cancel_sync()


@router.get("/stats", response_model=SyncStatsResponse)
async def get_sync_stats(driver: SyncDriver = Depends(get_sync_driver)):
    """Published vs. synced item counts plus last successful sync time."""
    try:
        return await driver.get_stats()
    except Exception as e:
        logger.error(f"Error getting sync stats: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/test-connection")
async def test_connection(driver: SyncDriver = Depends(get_sync_driver)):
    try:
        await driver.test_connection()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RemoteError as e:
        raise HTTPException(status_code=502, detail=f"Connection failed: {e}")
    return {"status": "ok", "message": "Connection successful"}


@router.post("/items/{item_id}")
async def sync_item(item_id: int, driver: SyncDriver = Depends(get_sync_driver)):
    """Push one catalog item right away."""
    return await driver.sync_item(item_id)


@router.delete("/items/{external_id}")
async def delete_item(external_id: str, driver: SyncDriver = Depends(get_sync_driver)):
    """Remove one record from the recommendation service."""
    try:
        return await driver.delete_item(external_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
