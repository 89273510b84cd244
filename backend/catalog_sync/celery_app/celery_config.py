"""
Celery configuration — broker, task routes, beat schedule.

Configures the Redis broker, the catalog sync queue and the periodic
start_sync schedule. Background sync jobs advance one batch per
process_next_batch task; each tick arms the next one with a countdown.

=============================================================================
RUNNING WORKERS
=============================================================================

    Worker:
        celery -A catalog_sync.celery_app worker -Q catalog_sync,default -l info -n sync@%h

    Beat (periodic full sync):
        celery -A catalog_sync.celery_app beat -l info

Ticks must run one at a time, so keep a single worker (or --concurrency=1)
on the catalog_sync queue.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================
    SYNC_ENABLED: "true" or "false" — master on/off for scheduled sync (default: false)
    SYNC_FREQUENCY: "hourly", "twicedaily" or "daily" (default: hourly)
    SYNC_TICK_DELAY_SECONDS: Delay before each background tick (default: 10)
Version: 1.0.0
"""
import logging
import platform

from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from catalog_sync.core.config import settings

logger = logging.getLogger(__name__)

IS_WINDOWS = platform.system() == "Windows"

REDIS_URL = settings.redis_url
SYNC_ENABLED = settings.sync_enabled
SYNC_FREQUENCY = settings.sync_frequency

SYNC_QUEUE = "catalog_sync"

_FREQUENCY_TO_CRONTAB = {
    "hourly": {"minute": 0},
    "twicedaily": {"minute": 0, "hour": "0,12"},
    "daily": {"minute": 0, "hour": 0},
}


def _resolve_frequency(frequency: str) -> dict:
    """Convert SYNC_FREQUENCY to crontab keyword arguments."""
    normalized = frequency.strip().lower()
    resolved = _FREQUENCY_TO_CRONTAB.get(normalized)
    if resolved is not None:
        return resolved
    logger.warning(f"Invalid SYNC_FREQUENCY '{frequency}', defaulting to hourly")
    return _FREQUENCY_TO_CRONTAB["hourly"]


def _build_beat_schedule() -> dict:
    """Build Celery Beat schedule based on sync enabled/frequency settings."""
    if not SYNC_ENABLED:
        return {}

    return {
        "scheduled-catalog-sync": {
            "task": "tasks.catalog_sync.start_sync",
            "schedule": crontab(**_resolve_frequency(SYNC_FREQUENCY)),
            "options": {"queue": SYNC_QUEUE},
        },
    }


def _log_sync_config():
    """Log sync scheduler configuration at startup."""
    border = "=" * 60
    print(f"\n{border}")
    if not SYNC_ENABLED:
        print("  CATALOG SYNC SCHEDULER: DISABLED")
        print(border)
        print("  Scheduled sync is turned off (SYNC_ENABLED=false).")
        print("  Manual triggers still validate configuration.")
        print(border)
        return

    print("  CATALOG SYNC SCHEDULER: ENABLED")
    print(border)
    print(f"  Frequency: {SYNC_FREQUENCY.upper()}")
    print(f"  Categories: {settings.sync_categories or 'all'}")
    print(f"  Tick delay: {settings.sync_tick_delay_seconds}s")
    print(f"  Batch delay: {settings.sync_batch_delay_seconds}s")
    print(border)


_log_sync_config()

celery_app = Celery(
    "catalog_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "catalog_sync.celery_app.tasks.catalog_sync",
    ]
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_queues=(
        Queue(SYNC_QUEUE),
        Queue("default"),
    ),
    task_routes={
        "tasks.catalog_sync.*": {"queue": SYNC_QUEUE},
    },

    beat_schedule=_build_beat_schedule(),

    # Result expiration
    result_expires=3600,  # 1 hour

    worker_pool="solo" if IS_WINDOWS else "prefork",

    broker_transport_options={"visibility_timeout": 3600},

    # Custom log format
    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s] [%(task_name)s] %(message)s",
)
