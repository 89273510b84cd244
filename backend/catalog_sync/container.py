"""
Lazy DI container — singleton access to clients, stores, and the sync driver.

Works in both FastAPI (async) and Celery (sync) contexts.
Import individual getters to avoid circular imports.
Version: 1.0.0
"""

from datetime import timedelta
from functools import lru_cache

from catalog_sync.core.config import settings
from catalog_sync.clients.supabase_client import SupabaseClient
from catalog_sync.clients.recommendation_client import RecommendationClient
from catalog_sync.db.catalog_store import CatalogStore
from catalog_sync.db.progress_store import ProgressStore
from catalog_sync.services.item_mapper import ItemMapper
from catalog_sync.services.staleness_selector import StalenessSelector
from catalog_sync.services.sync_driver import SyncDriver
from catalog_sync.utils.scheduler import CeleryScheduler


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings)


@lru_cache(maxsize=1)
def get_recommendation_client():
    return RecommendationClient(settings)


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_catalog_store():
    return CatalogStore(get_supabase_client(), settings.catalog_table)


@lru_cache(maxsize=1)
def get_progress_store():
    return ProgressStore()


# -- Services --------------------------------------------------------------

@lru_cache(maxsize=1)
def get_item_mapper():
    return ItemMapper(
        tenant_id=settings.catalog_tenant_id,
        default_currency=settings.default_currency,
        custom_fields=settings.sync_custom_fields,
    )


@lru_cache(maxsize=1)
def get_staleness_selector():
    return StalenessSelector(
        get_catalog_store(),
        staleness_window=timedelta(minutes=settings.sync_staleness_minutes),
    )


@lru_cache(maxsize=1)
def get_scheduler():
    # Lazy import: the Celery app pulls in the worker configuration
    from catalog_sync.celery_app.celery_config import celery_app, SYNC_QUEUE
    return CeleryScheduler(celery_app, queue=SYNC_QUEUE)


@lru_cache(maxsize=1)
def get_sync_driver():
    return SyncDriver(
        settings=settings,
        selector=get_staleness_selector(),
        mapper=get_item_mapper(),
        gateway=get_recommendation_client(),
        catalog_store=get_catalog_store(),
        progress_store=get_progress_store(),
        scheduler=get_scheduler(),
    )
