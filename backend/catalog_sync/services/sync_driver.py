"""
Sync driver — incremental catalog sync state machine.

States:
    idle -> (direct | background running) -> completed | failed

- Direct mode: fewer than DIRECT_SYNC_THRESHOLD candidates. Every batch runs
  inside the triggering call.
- Background mode: one follow-up tick is armed. Each tick loads the job,
  runs one batch starting after the job cursor, saves, and arms the next tick.

Both modes persist the SyncJob before the first batch, so a start that
arrives mid-run finds it and returns it instead of starting another run.
A process restart between background ticks loses nothing because the job
lives in the progress store.

A batch is only counted (processed / batch_index) after the remote service
accepted it. Any failure ends the job as failed; there is no retry, and
items marked by earlier batches keep their marks, so a fresh start only
picks up what is still stale.
Version: 1.0.0
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from catalog_sync.clients.recommendation_client import RecommendationClient
from catalog_sync.core.config import Settings
from catalog_sync.core.constants.sync import (
    BATCH_SIZE,
    DIRECT_SYNC_THRESHOLD,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_IDLE,
    JOB_STATUS_RUNNING,
    PROCESS_NEXT_BATCH_TASK,
    SYNC_MODE_BACKGROUND,
    SYNC_MODE_DIRECT,
)
from catalog_sync.core.exceptions import (
    ConfigurationError,
    ProgressConflictError,
    RecordValidationError,
    RemoteError,
)
from catalog_sync.db.catalog_store import CatalogStore
from catalog_sync.db.progress_store import ProgressStore
from catalog_sync.schemas.catalog import CatalogItem, MappedRecord
from catalog_sync.schemas.sync import (
    JobHandle,
    SyncJob,
    SyncStatsResponse,
    SyncStatusResponse,
    TickResult,
)
from catalog_sync.services.item_mapper import ItemMapper
from catalog_sync.services.staleness_selector import StalenessSelector
from catalog_sync.utils.scheduler import Scheduler

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "Cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BatchOutcome:
    size: int = 0
    dispatched: int = 0
    rejected: List[RecordValidationError] = field(default_factory=list)
    exhausted: bool = False


def status_message(job: SyncJob) -> str:
    """Human-readable status line for a job."""
    if job.status == JOB_STATUS_RUNNING:
        return f"Syncing... {job.processed} of {job.total} items processed"
    if job.status == JOB_STATUS_COMPLETED:
        message = f"Synced {job.synced} items"
        if job.rejected:
            message += f" ({job.rejected} rejected by validation)"
        return message
    if job.status == JOB_STATUS_FAILED:
        return f"Sync failed: {job.last_error}"
    return "Idle"


class SyncDriver:
    """Orchestrates selection, mapping, dispatch and progress for catalog sync."""

    def __init__(
        self,
        settings: Settings,
        selector: StalenessSelector,
        mapper: ItemMapper,
        gateway: RecommendationClient,
        catalog_store: CatalogStore,
        progress_store: ProgressStore,
        scheduler: Scheduler,
        batch_size: int = BATCH_SIZE,
        direct_threshold: int = DIRECT_SYNC_THRESHOLD,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._selector = selector
        self._mapper = mapper
        self._gateway = gateway
        self._catalog = catalog_store
        self._progress = progress_store
        self._scheduler = scheduler
        self._batch_size = batch_size
        self._direct_threshold = direct_threshold
        self._sleep = sleep
        self._clock = clock

    # ── Guards ────────────────────────────────────────────────────

    def _require_configuration(self) -> None:
        missing = []
        if not self._settings.recommendation_api_key:
            missing.append("RECOMMENDATION_API_KEY")
        if not self._settings.recommendation_api_url:
            missing.append("RECOMMENDATION_API_URL")
        if missing:
            raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")

    @property
    def _category_filter(self) -> List[int]:
        return list(self._settings.sync_categories or [])

    # ── Entry points ──────────────────────────────────────────────

    async def start_sync(self) -> JobHandle:
        """
        Start a sync run.

        Raises:
            ConfigurationError: credential or endpoint missing (no state created)
            RemoteError: direct-mode batch rejected by the remote service

        Any other error from a direct batch (catalog query, bad row) is also
        re-raised once the failed run has been recorded.
        """
        self._require_configuration()

        if not self._settings.sync_enabled:
            logger.info("Catalog sync is disabled (SYNC_ENABLED=false), skipping")
            return JobHandle(status="skipped", reason="sync_disabled", message="Sync is disabled")

        existing = self._progress.load()
        if existing is not None and existing.is_running:
            logger.info(f"Sync job {existing.job_id} already running, returning it")
            return self._handle_for(existing, reason="already_running")

        started_at = self._clock()
        category_filter = self._category_filter
        total = await self._selector.count_all(category_filter, as_of=started_at)
        logger.info(f"Found {total} items to sync (categories={category_filter or 'all'})")

        if total == 0:
            self._discard_finished(existing)
            self._record_summary({
                "status": JOB_STATUS_IDLE,
                "total": 0,
                "processed": 0,
                "message": "No items to sync",
            })
            return JobHandle(status=JOB_STATUS_IDLE, message="No items to sync", reason="nothing_to_sync")

        job = SyncJob(
            job_id=str(uuid.uuid4()),
            mode=SYNC_MODE_DIRECT if total < self._direct_threshold else SYNC_MODE_BACKGROUND,
            total=total,
            started_at=started_at,
            category_filter=category_filter,
        )

        # Both modes hold the job slot while they run.
        try:
            job = self._progress.save(job, expected_version=existing.version if existing else None)
        except ProgressConflictError as e:
            logger.warning(f"Another start won the race for the sync job: {e}")
            current = self._progress.load()
            if current is None:
                return JobHandle(status=JOB_STATUS_IDLE, reason="already_running")
            return self._handle_for(current, reason="already_running")

        if job.mode == SYNC_MODE_DIRECT:
            return await self._run_direct(job)

        self._scheduler.arm(self._settings.sync_tick_delay_seconds, PROCESS_NEXT_BATCH_TASK)
        logger.info(f"Background sync job {job.job_id} created: total={total}")
        return self._handle_for(job)

    async def process_next_batch(self) -> TickResult:
        """One background tick. A no-op unless a background job is running."""
        job = self._progress.load()
        if job is None or not job.is_running or job.mode != SYNC_MODE_BACKGROUND:
            logger.info("No running background sync job, ignoring tick")
            return TickResult(
                status="ignored",
                job_id=job.job_id if job else None,
                processed=job.processed if job else 0,
                total=job.total if job else 0,
            )

        expected_version = job.version
        try:
            outcome = await self._run_batch(job)
        except Exception as e:
            return self._fail_background(job, expected_version, e)

        if outcome.exhausted:
            return self._complete_background(job, outcome)

        try:
            job = self._progress.save(job, expected_version=expected_version)
        except ProgressConflictError as e:
            logger.warning(f"Sync job {job.job_id} changed during tick, not re-arming: {e}")
            return TickResult(status="conflict", job_id=job.job_id, error=str(e))

        self._scheduler.arm(self._settings.sync_tick_delay_seconds, PROCESS_NEXT_BATCH_TASK)
        logger.info(
            f"Sync job {job.job_id}: batch {job.batch_index} done, "
            f"{job.processed}/{job.total} processed"
        )
        return TickResult(
            status=JOB_STATUS_RUNNING,
            job_id=job.job_id,
            processed=job.processed,
            total=job.total,
            batch_index=job.batch_index,
            rejected=len(outcome.rejected),
        )

    def get_status(self) -> SyncStatusResponse:
        job = self._progress.load()
        if job is not None:
            return SyncStatusResponse(
                job_id=job.job_id,
                mode=job.mode,
                total=job.total,
                processed=job.processed,
                status=job.status,
                last_error=job.last_error,
                message=status_message(job),
                started_at=job.started_at,
                finished_at=job.finished_at,
                elapsed_seconds=self._elapsed(job),
            )

        summary = self._progress.load_summary()
        if summary:
            return SyncStatusResponse.model_validate(summary)
        return SyncStatusResponse(status=JOB_STATUS_IDLE, message="No sync has run yet")

    async def get_stats(self) -> SyncStatsResponse:
        total = await self._catalog.count_published()
        synced = await self._catalog.count_synced()
        summary = self._progress.load_summary() or {}
        return SyncStatsResponse(
            total=total,
            synced=synced,
            pending=max(total - synced, 0),
            last_sync=summary.get("last_sync"),
            status=self.get_status().message,
        )

    def cancel_sync(self) -> SyncStatusResponse:
        """Stop a running job; its next tick or direct batch does not run."""
        job = self._progress.load()
        if job is None or not job.is_running:
            return self.get_status()

        expected_version = job.version
        job.status = JOB_STATUS_FAILED
        job.last_error = CANCELLED_ERROR
        job.finished_at = self._clock()
        try:
            self._progress.save(job, expected_version=expected_version)
        except ProgressConflictError as e:
            logger.warning(f"Sync job {job.job_id} changed while cancelling, leaving it as is: {e}")
            return self.get_status()
        self._record_summary(self._summary_for(job))
        logger.info(f"Sync job {job.job_id} cancelled at {job.processed}/{job.total}")
        return self.get_status()

    async def sync_item(self, item_id: int) -> Dict[str, Any]:
        """Push one changed item right away. Remote failures are reported, not raised."""
        if not self._settings.sync_enabled:
            return {"status": "skipped", "reason": "sync_disabled"}
        if not self._settings.is_remote_configured:
            return {"status": "skipped", "reason": "not_configured"}

        item = await self._catalog.get_item(item_id)
        if item is None:
            return {"status": "skipped", "reason": "not_found", "item_id": item_id}

        if not self._selector.is_candidate(item, self._category_filter, ignore_staleness=True):
            return {"status": "skipped", "reason": "not_eligible", "item_id": item_id}

        result = self._mapper.map(item)
        if not result.ok:
            return {"status": "rejected", "item_id": item_id, "errors": result.errors}

        try:
            await self._gateway.sync_record(result.record.to_wire())
        except RemoteError as e:
            logger.error(f"Single-item sync failed for {item_id}: {e}")
            return {"status": "failed", "item_id": item_id, "error": str(e)}

        await self._catalog.mark_synced([item.id], self._clock())
        logger.info(f"Item {item_id} synced as {result.record.external_id}")
        return {"status": "synced", "item_id": item_id, "external_id": result.record.external_id}

    async def delete_item(self, external_id: str) -> Dict[str, Any]:
        """Remove one record from the remote catalog."""
        if not self._settings.sync_enabled:
            return {"status": "skipped", "reason": "sync_disabled"}
        self._require_configuration()

        try:
            await self._gateway.delete([external_id])
        except RemoteError as e:
            logger.error(f"Delete failed for {external_id}: {e}")
            return {"status": "failed", "external_id": external_id, "error": str(e)}

        logger.info(f"Deleted {external_id} from recommendation service")
        return {"status": "deleted", "external_id": external_id}

    def external_id_for(self, item_id: int) -> str:
        return self._mapper.external_id_for(item_id)

    async def test_connection(self) -> bool:
        self._require_configuration()
        return await self._gateway.test_connection()


    # ── Batch algorithm ───────────────────────────────────────────

    def _map_batch(self, items: List[CatalogItem]) -> Tuple[List[MappedRecord], List[RecordValidationError]]:
        records: List[MappedRecord] = []
        rejected: List[RecordValidationError] = []
        for item in items:
            result = self._mapper.map(item)
            if result.ok:
                records.append(result.record)
            else:
                rejected.append(result.error)
        return records, rejected

    async def _run_batch(self, job: SyncJob) -> BatchOutcome:
        """
        Select, map, dispatch and mark one batch, advancing job in place.

        The page starts after job.cursor, so items that stop or start being
        candidates mid-job never shift the rest of the ordering.

        Raises whatever the gateway or catalog raises; job counters are
        untouched in that case.
        """
        remaining = job.total - job.processed
        if remaining <= 0:
            return BatchOutcome(exhausted=True)

        offset = job.batch_index * self._batch_size
        limit = min(self._batch_size, remaining)
        batch = await self._selector.select(
            offset, limit, job.category_filter, as_of=job.started_at, after_id=job.cursor
        )
        if batch.is_empty:
            logger.info(f"Sync job {job.job_id}: no candidates left after id {job.cursor}")
            return BatchOutcome(exhausted=True)

        records, rejected = self._map_batch(batch.items)
        if rejected:
            logger.warning(
                f"Sync job {job.job_id}: {len(rejected)} items dropped by validation "
                f"in batch {job.batch_index}: {sorted(e.item_id for e in rejected)}"
            )

        if records:
            await self._gateway.bulk_sync([record.to_wire() for record in records])
            logger.info(f"Sync job {job.job_id}: dispatched {len(records)} records (batch {job.batch_index})")

        # Rejected items count as attempted; they come back after the staleness window.
        await self._catalog.mark_synced([item.id for item in batch.items], self._clock())

        job.processed += batch.size
        job.batch_index += 1
        job.cursor = batch.last_id
        job.synced += len(records)
        job.rejected += len(rejected)

        outcome = BatchOutcome(
            size=batch.size,
            dispatched=len(records),
            rejected=rejected,
            exhausted=job.processed >= job.total,
        )
        if not outcome.exhausted:
            await self._sleep(self._settings.sync_batch_delay_seconds)
        return outcome

    async def _run_direct(self, job: SyncJob) -> JobHandle:
        """
        Run every batch of a small job inside the triggering call.

        The job record is saved after each batch and cleared at the end.
        A version conflict means the job was cancelled or replaced, and the
        run stops without touching the record.
        """
        logger.info(f"Direct sync {job.job_id}: {job.total} items")
        try:
            while True:
                outcome = await self._run_batch(job)
                if outcome.exhausted:
                    break
                job = self._progress.save(job, expected_version=job.version)
        except ProgressConflictError as e:
            logger.warning(f"Direct sync {job.job_id} stopped at {job.processed}/{job.total}: {e}")
            current = self._progress.load()
            return self._handle_for(current or job, reason="interrupted")
        except Exception as e:
            job.status = JOB_STATUS_FAILED
            job.last_error = str(e) or e.__class__.__name__
            job.finished_at = self._clock()
            self._record_summary(self._summary_for(job))
            self._clear_job(job)
            logger.error(f"Direct sync {job.job_id} failed at {job.processed}/{job.total}: {e}")
            raise

        job.status = JOB_STATUS_COMPLETED
        job.finished_at = self._clock()
        self._record_summary(self._summary_for(job))
        self._clear_job(job)
        logger.info(
            f"Direct sync {job.job_id} completed: {job.synced} synced, "
            f"{job.rejected} rejected in {self._elapsed(job):.1f}s"
        )
        return self._handle_for(job)

    # ── Background terminal transitions ───────────────────────────

    def _fail_background(self, job: SyncJob, expected_version: int, error: Exception) -> TickResult:
        if isinstance(error, RemoteError):
            logger.error(f"Sync job {job.job_id} failed on batch {job.batch_index}: {error}")
        else:
            logger.exception(f"Sync job {job.job_id} crashed on batch {job.batch_index}: {error}")

        job.status = JOB_STATUS_FAILED
        job.last_error = str(error) or error.__class__.__name__
        job.finished_at = self._clock()
        try:
            self._progress.save(job, expected_version=expected_version)
        except ProgressConflictError as e:
            logger.warning(f"Could not persist failure of job {job.job_id}: {e}")
        self._record_summary(self._summary_for(job))

        return TickResult(
            status=JOB_STATUS_FAILED,
            job_id=job.job_id,
            processed=job.processed,
            total=job.total,
            batch_index=job.batch_index,
            error=job.last_error,
        )

    def _complete_background(self, job: SyncJob, outcome: BatchOutcome) -> TickResult:
        job.status = JOB_STATUS_COMPLETED
        job.finished_at = self._clock()
        self._record_summary(self._summary_for(job))
        self._clear_job(job)

        logger.info(
            f"Sync job {job.job_id} completed: {job.processed}/{job.total} processed, "
            f"{job.synced} synced, {job.rejected} rejected in {self._elapsed(job):.1f}s"
        )
        return TickResult(
            status=JOB_STATUS_COMPLETED,
            job_id=job.job_id,
            processed=job.processed,
            total=job.total,
            batch_index=job.batch_index,
            rejected=len(outcome.rejected),
        )

    # ── Persistence helpers ───────────────────────────────────────

    def _handle_for(self, job: SyncJob, reason: Optional[str] = None) -> JobHandle:
        return JobHandle(
            job_id=job.job_id,
            mode=job.mode,
            status=job.status,
            total=job.total,
            processed=job.processed,
            message=status_message(job),
            reason=reason,
        )

    def _clear_job(self, job: SyncJob) -> None:
        try:
            self._progress.clear(expected_version=job.version)
        except ProgressConflictError as e:
            logger.warning(f"Job {job.job_id} changed before it could be cleared: {e}")

    def _discard_finished(self, existing: Optional[SyncJob]) -> None:
        """Drop a completed or failed job record so status reflects the new run."""
        if existing is None or existing.is_running:
            return
        self._clear_job(existing)

    def _elapsed(self, job: SyncJob) -> float:
        end = job.finished_at or self._clock()
        return (end - job.started_at).total_seconds()

    def _summary_for(self, job: SyncJob) -> Dict[str, Any]:
        return {
            "job_id": job.job_id,
            "mode": job.mode,
            "status": job.status,
            "total": job.total,
            "processed": job.processed,
            "last_error": job.last_error,
            "message": status_message(job),
            "started_at": job.started_at.isoformat(),
            "finished_at": job.finished_at.isoformat() if job.finished_at else None,
            "elapsed_seconds": self._elapsed(job),
        }

    def _record_summary(self, summary: Dict[str, Any]) -> None:
        """Save the run summary, carrying the last successful sync time forward."""
        previous = self._progress.load_summary() or {}
        last_sync = previous.get("last_sync")
        if summary.get("status") == JOB_STATUS_COMPLETED:
            last_sync = summary.get("finished_at")
        summary["last_sync"] = last_sync
        self._progress.save_summary(summary)
