"""
Celery application package — task registration and exports.

Exports the main Celery app instance.
Version: 1.0.0
"""
from catalog_sync.celery_app.celery_config import celery_app

__all__ = ["celery_app"]
