"""
Staleness selector — which catalog items need to go upstream.

An item is a candidate when it is published, was never synced or was
synced longer ago than the staleness window, and (with a category filter)
shares a category with the filter. An optional eligibility predicate can
veto individual items after the database query.
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from catalog_sync.core.constants.sync import PUBLISHABLE_STATUS, STALENESS_WINDOW_MINUTES
from catalog_sync.db.catalog_store import CatalogStore
from catalog_sync.schemas.catalog import CatalogItem

logger = logging.getLogger(__name__)

EligibilityPredicate = Callable[[CatalogItem], bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Batch:
    """
    One page of the candidate ordering.

    items are the eligible candidates; skipped_ids were returned by the
    query but vetoed by the eligibility predicate. Both count towards the
    page size, and last_id covers both so the job cursor moves past
    vetoed rows too.
    """
    offset: int
    items: List[CatalogItem] = field(default_factory=list)
    skipped_ids: List[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.items) + len(self.skipped_ids)

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    @property
    def last_id(self) -> Optional[int]:
        ids = [item.id for item in self.items] + self.skipped_ids
        return max(ids) if ids else None


class StalenessSelector:
    """Paginated access to sync candidates."""

    def __init__(
        self,
        catalog_store: CatalogStore,
        staleness_window: timedelta = timedelta(minutes=STALENESS_WINDOW_MINUTES),
        eligibility: Optional[EligibilityPredicate] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog_store
        self._window = staleness_window
        self._eligibility = eligibility
        self._clock = clock

    @property
    def staleness_window(self) -> timedelta:
        return self._window

    async def select(
        self,
        offset: int,
        limit: int,
        category_filter: Sequence[int] | None = None,
        as_of: Optional[datetime] = None,
        after_id: Optional[int] = None,
    ) -> Batch:
        """
        Candidates at [offset, offset + limit) in id order.

        With after_id the page starts after that id instead, and offset only
        labels the batch. A job passes its start time as as_of and the last
        id it selected as after_id, so pages never skip or repeat an item
        when other rows change between ticks.
        """
        as_of = as_of or self._clock()
        rows = await self._catalog.select_candidates(
            offset, limit, self._window, as_of, category_filter, after_id=after_id
        )

        batch = Batch(offset=offset)
        for item in rows:
            if self._eligibility is not None and not self._eligibility(item):
                batch.skipped_ids.append(item.id)
                continue
            batch.items.append(item)

        if batch.skipped_ids:
            logger.info(f"Eligibility predicate skipped {len(batch.skipped_ids)} items at offset {offset}")
        return batch

    async def count_all(
        self,
        category_filter: Sequence[int] | None = None,
        as_of: Optional[datetime] = None,
    ) -> int:
        return await self._catalog.count_candidates(
            self._window, as_of or self._clock(), category_filter
        )

    def is_candidate(
        self,
        item: CatalogItem,
        category_filter: Sequence[int] | None = None,
        as_of: Optional[datetime] = None,
        ignore_staleness: bool = False,
    ) -> bool:
        """In-memory form of the candidate predicate, for single-item paths."""
        if item.status != PUBLISHABLE_STATUS:
            return False

        if not ignore_staleness and item.last_synced_at is not None:
            now = as_of or self._clock()
            last = item.last_synced_at
            if last.tzinfo is None:
                last = last.replace(tzinfo=timezone.utc)
            if last >= now - self._window:
                return False

        if category_filter and not set(item.category_ids) & set(category_filter):
            return False

        if self._eligibility is not None and not self._eligibility(item):
            return False
        return True
