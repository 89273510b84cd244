"""
Sync schemas — persisted job, job handle and status responses.

Version: 1.0.0
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from catalog_sync.core.constants.sync import (
    JOB_STATUS_IDLE,
    JOB_STATUS_RUNNING,
    SYNC_MODE_BACKGROUND,
)


class SyncJob(BaseModel):
    """
    Singleton job record kept in the progress store between ticks.

    processed and batch_index only move forward, and only after a batch
    was accepted by the remote service. cursor is the highest item id
    selected so far; the next page starts after it. version is bumped on
    every save.
    """
    job_id: str
    mode: str = SYNC_MODE_BACKGROUND
    total: int
    processed: int = 0
    batch_index: int = 0
    cursor: Optional[int] = None
    status: str = JOB_STATUS_RUNNING
    started_at: datetime
    finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
    synced: int = 0
    rejected: int = 0
    category_filter: List[int] = []
    version: int = 0

    @property
    def is_running(self) -> bool:
        return self.status == JOB_STATUS_RUNNING


class JobHandle(BaseModel):
    """Returned to whoever triggered a sync."""
    job_id: Optional[str] = None
    mode: Optional[str] = None
    status: str
    total: int = 0
    processed: int = 0
    message: str = ""
    reason: Optional[str] = None


class SyncStatusResponse(BaseModel):
    job_id: Optional[str] = None
    mode: Optional[str] = None
    total: int = 0
    processed: int = 0
    status: str = JOB_STATUS_IDLE
    last_error: Optional[str] = None
    message: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    elapsed_seconds: Optional[float] = None


class SyncStatsResponse(BaseModel):
    total: int
    synced: int
    pending: int
    last_sync: Optional[datetime] = None
    status: str = ""


class TickResult(BaseModel):
    """Outcome of one background tick."""
    status: str
    job_id: Optional[str] = None
    processed: int = 0
    total: int = 0
    batch_index: int = 0
    rejected: int = 0
    error: Optional[str] = None
