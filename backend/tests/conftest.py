"""
Pytest configuration and shared fixtures for catalog sync tests.

Provides in-memory stand-ins for the catalog table, the Redis progress
store, the recommendation service and the tick scheduler, plus sample
catalog items and a SyncDriver wired to all of them.
Version: 1.0.0
"""
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import AsyncMock

from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import ProgressConflictError, RemoteError
from catalog_sync.schemas.catalog import CatalogItem
from catalog_sync.schemas.sync import SyncJob
from catalog_sync.services.item_mapper import ItemMapper
from catalog_sync.services.staleness_selector import StalenessSelector
from catalog_sync.services.sync_driver import SyncDriver

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

class FakeClock:
    """Controllable clock; call it to read, advance() to move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCatalogStore:
    """Catalog table held in a dict, with the same candidate predicate as the SQL query."""

    def __init__(self, items=()):
        self.items: Dict[int, CatalogItem] = {item.id: item for item in items}
        self.select_calls: List[tuple] = []
        self.mark_calls: List[List[int]] = []

    def add(self, *items: CatalogItem) -> None:
        for item in items:
            self.items[item.id] = item

    def _candidates(self, staleness_window, as_of, category_filter) -> List[CatalogItem]:
        cutoff = as_of - staleness_window
        result = []
        for item in sorted(self.items.values(), key=lambda i: i.id):
            if item.status != "publish":
                continue
            last = item.last_synced_at
            if last is not None and last >= cutoff:
                continue
            if category_filter and not set(item.category_ids) & set(category_filter):
                continue
            result.append(item)
        return result

    async def get_item(self, item_id: int) -> Optional[CatalogItem]:
        return self.items.get(item_id)

    async def select_candidates(
        self, offset, limit, staleness_window, as_of, category_filter=None, after_id=None
    ):
        self.select_calls.append((offset, limit, after_id))
        if limit <= 0:
            return []
        candidates = self._candidates(staleness_window, as_of, category_filter)
        if after_id is not None:
            return [item for item in candidates if item.id > after_id][:limit]
        return candidates[offset:offset + limit]

    async def count_candidates(self, staleness_window, as_of, category_filter=None) -> int:
        return len(self._candidates(staleness_window, as_of, category_filter))

    async def mark_synced(self, item_ids, synced_at) -> None:
        self.mark_calls.append(list(item_ids))
        for item_id in item_ids:
            if item_id in self.items:
                self.items[item_id] = self.items[item_id].model_copy(
                    update={"last_synced_at": synced_at}
                )

    async def count_published(self) -> int:
        return len([i for i in self.items.values() if i.status == "publish"])

    async def count_synced(self) -> int:
        return len([
            i for i in self.items.values()
            if i.status == "publish" and i.last_synced_at is not None
        ])


class FakeProgressStore:
    """Progress store with the same versioned compare-and-swap rules as the Redis one."""

    def __init__(self):
        self._job: Optional[str] = None
        self._summary: Optional[str] = None
        self.saves = 0

    def load(self) -> Optional[SyncJob]:
        return SyncJob.model_validate_json(self._job) if self._job else None

    def _current_version(self) -> Optional[int]:
        current = self.load()
        return current.version if current else None

    def save(self, job: SyncJob, expected_version: Optional[int] = None) -> SyncJob:
        current_version = self._current_version()
        if current_version != expected_version:
            raise ProgressConflictError(expected_version, current_version)
        stored = job.model_copy(update={"version": (current_version or 0) + 1})
        self._job = stored.model_dump_json()
        self.saves += 1
        return stored

    def clear(self, expected_version: Optional[int] = None) -> None:
        if expected_version is not None:
            current_version = self._current_version()
            if current_version != expected_version:
                raise ProgressConflictError(expected_version, current_version)
        self._job = None

    def save_summary(self, summary: Dict[str, Any]) -> None:
        self._summary = json.dumps(summary, default=str)

    def load_summary(self) -> Optional[Dict[str, Any]]:
        return json.loads(self._summary) if self._summary else None


class RecordingGateway:
    """Recommendation service stand-in that records every call."""

    def __init__(self):
        self.batches: List[List[Dict[str, Any]]] = []
        self.single: List[Dict[str, Any]] = []
        self.deleted: List[List[str]] = []
        self.bulk_calls = 0
        self.fail_on_call: Optional[int] = None
        self.error: Exception = RemoteError("Service unavailable", 503)

    async def bulk_sync(self, records):
        self.bulk_calls += 1
        if self.fail_on_call is not None and self.bulk_calls >= self.fail_on_call:
            raise self.error
        self.batches.append(records)
        return {"success": True, "count": len(records)}

    async def sync_record(self, record):
        if self.fail_on_call is not None:
            raise self.error
        self.single.append(record)
        return {"success": True}

    async def delete(self, external_ids):
        if self.fail_on_call is not None:
            raise self.error
        self.deleted.append(list(external_ids))
        return {"success": True}

    async def test_connection(self):
        if self.fail_on_call is not None:
            raise self.error
        return True

    @property
    def sent_ids(self) -> List[str]:
        return [record["externalId"] for batch in self.batches for record in batch]


class RecordingScheduler:
    def __init__(self):
        self.armed: List[tuple] = []

    def arm(self, delay, callback) -> None:
        self.armed.append((delay, callback))


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

def make_item(item_id: int, **overrides) -> CatalogItem:
    """A valid, published, never-synced catalog item."""
    data = {
        "id": item_id,
        "name": f"Item {item_id}",
        "description": f"<p>Description for item {item_id}</p>",
        "status": "publish",
        "sku": f"SKU-{item_id}",
        "price": "19.99",
        "regular_price": "24.99",
        "sale_price": "19.99",
        "stock_quantity": 5,
        "image": {"url": f"https://shop.test/img/{item_id}.jpg", "alt": f"Item {item_id}"},
        "categories": [{"id": 7, "name": "Shoes", "slug": "shoes"}],
        "attributes": [{"name": "Color", "values": ["Red", "Blue"]}],
    }
    data.update(overrides)
    return CatalogItem.model_validate(data)


def make_items(count: int, start: int = 1, **overrides) -> List[CatalogItem]:
    return [make_item(i, **overrides) for i in range(start, start + count)]


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def items_factory():
    return make_items


@pytest.fixture
def sample_item():
    return make_item(101)


# ---------------------------------------------------------------------------
# Settings and driver wiring
# ---------------------------------------------------------------------------

@pytest.fixture
def test_settings():
    """Settings with credentials present and sync enabled."""
    return Settings(
        recommendation_api_key="test-key",
        recommendation_api_url="https://api.reco.test/api/v1",
        recommendation_api_timeout=5,
        catalog_tenant_id="site_1",
        default_currency="USD",
        sync_custom_fields=["featured"],
        sync_enabled=True,
        sync_categories=[],
        sync_staleness_minutes=60,
        sync_batch_delay_seconds=0,
        sync_tick_delay_seconds=10,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog_store():
    return FakeCatalogStore()


@pytest.fixture
def progress_store():
    return FakeProgressStore()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def mapper(test_settings):
    return ItemMapper(
        tenant_id=test_settings.catalog_tenant_id,
        default_currency=test_settings.default_currency,
        custom_fields=test_settings.sync_custom_fields,
    )


@pytest.fixture
def selector(catalog_store, clock):
    return StalenessSelector(catalog_store, staleness_window=timedelta(minutes=60), clock=clock)


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def driver(test_settings, selector, mapper, gateway, catalog_store, progress_store, scheduler, sleep, clock):
    return SyncDriver(
        settings=test_settings,
        selector=selector,
        mapper=mapper,
        gateway=gateway,
        catalog_store=catalog_store,
        progress_store=progress_store,
        scheduler=scheduler,
        sleep=sleep,
        clock=clock,
    )
