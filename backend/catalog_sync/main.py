"""
FastAPI application — catalog sync API and optional Celery auto-start.

Run:
    uvicorn catalog_sync.main:app --reload

Set AUTO_START_CELERY=true to spawn a local worker and beat alongside the API
(development only; run them as separate processes otherwise).
Version: 1.0.0
"""
import asyncio
import logging
import os
import platform
import signal
import subprocess
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_sync.core.config import settings
from catalog_sync.routes import v1_router, health_router

logger = logging.getLogger(__name__)

# Track Celery subprocesses for cleanup
_celery_processes: List[subprocess.Popen] = []

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _spawn_celery(args: List[str], label: str) -> Optional[subprocess.Popen]:
    """Start a Celery command as a subprocess from the backend directory."""
    cmd = [sys.executable, "-m", "celery", "-A", "catalog_sync.celery_app", *args]

    kwargs = {"cwd": _BACKEND_DIR}
    if platform.system() == "Windows":
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            **kwargs
        )
        logger.info(f"Celery {label} started (PID: {process.pid})")
        return process
    except OSError as e:
        logger.error(f"Failed to start Celery {label}: {e}")
        return None


def _start_celery_worker() -> Optional[subprocess.Popen]:
    pool_type = "solo" if platform.system() == "Windows" else "prefork"
    return _spawn_celery(
        ["worker", f"--pool={pool_type}", "-Q", "catalog_sync,default", "-l", "info", "--concurrency=1"],
        "worker",
    )


def _start_celery_beat() -> Optional[subprocess.Popen]:
    return _spawn_celery(["beat", "-l", "info"], "Beat")


def _stop_celery_processes():
    """Stop all Celery subprocesses."""
    for process in _celery_processes:
        if process and process.poll() is None:  # Still running
            try:
                logger.info(f"Stopping Celery process (PID: {process.pid})...")
                if platform.system() == "Windows":
                    process.terminate()
                else:
                    process.send_signal(signal.SIGTERM)
                process.wait(timeout=10)
                logger.info(f"Celery process {process.pid} stopped")
            except subprocess.TimeoutExpired:
                logger.warning(f"Force killing Celery process {process.pid}")
                process.kill()

    _celery_processes.clear()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler.

    On startup:
    - Start Celery worker and Beat subprocesses when AUTO_START_CELERY=true

    On shutdown:
    - Stop Celery subprocesses
    """
    logger.info("=== Catalog Sync Starting ===")

    auto_start_celery = os.getenv("AUTO_START_CELERY", "false").lower() == "true"

    if auto_start_celery:
        worker_process = _start_celery_worker()
        if worker_process:
            _celery_processes.append(worker_process)

        # Small delay before starting beat
        await asyncio.sleep(2)

        beat_process = _start_celery_beat()
        if beat_process:
            _celery_processes.append(beat_process)

        logger.info(f"Started {len(_celery_processes)} Celery processes")
    else:
        logger.info("Celery auto-start off; run the worker and beat separately")

    if not settings.is_remote_configured:
        logger.warning("Recommendation service credentials missing; sync triggers will be rejected")
    logger.info(
        f"Sync {'enabled' if settings.sync_enabled else 'disabled'} "
        f"(frequency={settings.sync_frequency}, tenant={settings.catalog_tenant_id})"
    )

    logger.info("=== Catalog Sync Ready ===")

    yield

    logger.info("=== Catalog Sync Shutting Down ===")
    if _celery_processes:
        _stop_celery_processes()
    logger.info("Shutdown complete")


app = FastAPI(title="Catalog Sync Backend", lifespan=lifespan)
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(v1_router)
