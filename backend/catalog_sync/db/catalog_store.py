"""
Catalog store — read candidates from and write sync marks to the catalog table.

Uses Supabase/PostgreSQL through the supabase-py query builder.

Candidate predicate (relative to a snapshot time ``as_of``):
    status = 'publish'
    AND (last_synced_at IS NULL OR last_synced_at < as_of - window)
    AND (no category filter OR category_ids && filter)

Pages are keyset-paginated on ``id`` (``id > after_id ORDER BY id``), so
rows that enter or leave the predicate behind the cursor never shift
later pages.
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from postgrest.exceptions import APIError
from supabase import Client

from catalog_sync.core.config import settings
from catalog_sync.core.constants.sync import PUBLISHABLE_STATUS
from catalog_sync.clients.supabase_client import SupabaseClient
from catalog_sync.schemas.catalog import CatalogItem

logger = logging.getLogger("catalog_store")


def _ts(value: datetime) -> str:
    """PostgREST-safe UTC timestamp (no '+' in the filter string)."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CatalogStore:
    """Database operations against the host catalog."""

    def __init__(
        self,
        supabase_client: Optional[SupabaseClient] = None,
        table: Optional[str] = None,
    ):
        self._supabase_client = supabase_client
        self.table = table or settings.catalog_table

    @property
    def client(self) -> Client:
        """Get or create Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = SupabaseClient(settings)
        return self._supabase_client.client

    def _candidate_query(
        self,
        columns: str,
        staleness_window: timedelta,
        as_of: datetime,
        category_filter: Sequence[int] | None,
        count: Optional[str] = None,
    ):
        cutoff = as_of - staleness_window
        if count:
            query = self.client.table(self.table).select(columns, count=count)
        else:
            query = self.client.table(self.table).select(columns)
        query = query.eq("status", PUBLISHABLE_STATUS).or_(
            f"last_synced_at.is.null,last_synced_at.lt.{_ts(cutoff)}"
        )
        if category_filter:
            query = query.overlaps("category_ids", list(category_filter))
        return query

    async def get_item(self, item_id: int) -> Optional[CatalogItem]:
        """Look up one item by id."""
        try:
            result = self.client.table(self.table) \
                .select("*") \
                .eq("id", item_id) \
                .execute()
        except APIError as e:
            logger.error("supabase error table=%s detail=%s", self.table, str(e))
            raise
        if not result.data:
            return None
        return CatalogItem.model_validate(result.data[0])

    async def select_candidates(
        self,
        offset: int,
        limit: int,
        staleness_window: timedelta,
        as_of: datetime,
        category_filter: Sequence[int] | None = None,
        after_id: Optional[int] = None,
    ) -> List[CatalogItem]:
        """
        Candidate page ordered by id.

        Args:
            offset: Rows to skip; ignored when after_id is given
            limit: Maximum rows to return
            staleness_window: Minimum age of a previous sync
            as_of: Snapshot time (job start)
            category_filter: Category ids; empty means all
            after_id: Keyset cursor, only ids strictly greater are returned
        """
        if limit <= 0:
            return []
        query = self._candidate_query("*", staleness_window, as_of, category_filter)
        if after_id is not None:
            query = query.gt("id", after_id).order("id").limit(limit)
        else:
            query = query.order("id").range(offset, offset + limit - 1)
        try:
            result = query.execute()
        except APIError as e:
            logger.error("supabase error table=%s detail=%s", self.table, str(e))
            raise
        return [CatalogItem.model_validate(row) for row in (result.data or [])]

    async def count_candidates(
        self,
        staleness_window: timedelta,
        as_of: datetime,
        category_filter: Sequence[int] | None = None,
    ) -> int:
        try:
            result = self._candidate_query(
                "id", staleness_window, as_of, category_filter, count="exact"
            ).execute()
        except APIError as e:
            logger.error("supabase error table=%s detail=%s", self.table, str(e))
            raise
        return result.count or 0

    async def mark_synced(self, item_ids: List[int], synced_at: datetime) -> None:
        """Write last_synced_at for every id. Safe to repeat."""
        if not item_ids:
            return
        payload: Dict[str, Any] = {"last_synced_at": synced_at.isoformat()}
        try:
            self.client.table(self.table) \
                .update(payload) \
                .in_("id", item_ids) \
                .execute()
        except APIError as e:
            logger.error("supabase error table=%s detail=%s", self.table, str(e))
            raise
        logger.debug(f"Marked {len(item_ids)} items synced at {synced_at.isoformat()}")

    async def count_published(self) -> int:
        result = self.client.table(self.table) \
            .select("id", count="exact") \
            .eq("status", PUBLISHABLE_STATUS) \
            .execute()
        return result.count or 0

    async def count_synced(self) -> int:
        """Published items that have been synced at least once."""
        result = self.client.table(self.table) \
            .select("id", count="exact") \
            .eq("status", PUBLISHABLE_STATUS) \
            .not_.is_("last_synced_at", "null") \
            .execute()
        return result.count or 0
