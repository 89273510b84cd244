"""
Progress store — Redis-backed record of the current sync job.

This is the only state carried between background ticks. The job is one
JSON document; every save is a compare-and-swap on its version
(WATCH / MULTI / EXEC), so two ticks racing on load-modify-save cannot
both win.

Keys:
    catalog_sync:job       current SyncJob (absent when idle)
    catalog_sync:last_run  summary of the last finished run
Version: 1.0.0
"""
import json
import logging
from typing import Any, Dict, Optional

import redis

from catalog_sync.core.config import settings
from catalog_sync.core.exceptions import ProgressConflictError
from catalog_sync.schemas.sync import SyncJob

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "catalog_sync"


def _get_redis(redis_url: str | None = None) -> redis.Redis:
    """Create a Redis client from the configured URL."""
    url = redis_url or settings.redis_url
    return redis.Redis.from_url(url, decode_responses=True)


class ProgressStore:
    """Load / save / clear the singleton sync job."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        key_prefix: str = REDIS_KEY_PREFIX,
    ):
        self._redis = redis_client or _get_redis()
        self._job_key = f"{key_prefix}:job"
        self._summary_key = f"{key_prefix}:last_run"

    @staticmethod
    def _decode(raw: Optional[str]) -> Optional[SyncJob]:
        if not raw:
            return None
        return SyncJob.model_validate_json(raw)

    def load(self) -> Optional[SyncJob]:
        """Current job, or None when no job is recorded."""
        return self._decode(self._redis.get(self._job_key))

    def save(self, job: SyncJob, expected_version: Optional[int] = None) -> SyncJob:
        """
        Persist the job if the stored version still matches.

        Args:
            job: Job state to write
            expected_version: Version read before modifying; None means
                no job may be stored yet

        Returns:
            The stored job, with version incremented

        Raises:
            ProgressConflictError: stored version differs, or the key
                changed during the transaction
        """
        with self._redis.pipeline() as pipe:
            try:
                pipe.watch(self._job_key)
                current = self._decode(pipe.get(self._job_key))
                current_version = current.version if current else None
                if current_version != expected_version:
                    raise ProgressConflictError(expected_version, current_version)

                stored = job.model_copy(update={"version": (current_version or 0) + 1})
                pipe.multi()
                pipe.set(self._job_key, stored.model_dump_json())
                pipe.execute()
            except redis.WatchError:
                raise ProgressConflictError(expected_version, None)

        logger.debug(f"Saved sync job {stored.job_id} v{stored.version} status={stored.status}")
        return stored

    def clear(self, expected_version: Optional[int] = None) -> None:
        """
        Delete the job record.

        With expected_version set, only deletes when the stored version matches.
        """
        if expected_version is None:
            self._redis.delete(self._job_key)
            return

        with self._redis.pipeline() as pipe:
            try:
                pipe.watch(self._job_key)
                current = self._decode(pipe.get(self._job_key))
                current_version = current.version if current else None
                if current_version != expected_version:
                    raise ProgressConflictError(expected_version, current_version)
                pipe.multi()
                pipe.delete(self._job_key)
                pipe.execute()
            except redis.WatchError:
                raise ProgressConflictError(expected_version, None)

    def save_summary(self, summary: Dict[str, Any]) -> None:
        """Keep the outcome of the last finished run for status reads."""
        self._redis.set(self._summary_key, json.dumps(summary, default=str))

    def load_summary(self) -> Optional[Dict[str, Any]]:
        raw = self._redis.get(self._summary_key)
        if not raw:
            return None
        return json.loads(raw)
