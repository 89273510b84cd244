import json
import os
from typing import List, Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # Recommendation service
    recommendation_api_key: Optional[str] = os.getenv("RECOMMENDATION_API_KEY")
    recommendation_api_url: Optional[str] = os.getenv(
        "RECOMMENDATION_API_URL",
        "https://api.cloa.ai/api/v1",
    )
    recommendation_api_timeout: float = float(os.getenv("RECOMMENDATION_API_TIMEOUT", "30"))

    # Catalog namespace. External ids are "{catalog_tenant_id}_{item_id}" so several
    # catalogs can share one remote account.
    catalog_tenant_id: str = os.getenv("CATALOG_TENANT_ID", "site_1")
    catalog_table: str = os.getenv("CATALOG_TABLE", "catalog_items")
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")

    # Custom fields copied into the record metadata block
    # Example: ["featured", "visibility", "product_version"]
    sync_custom_fields: List[str] = json.loads(
        os.getenv("SYNC_CUSTOM_FIELDS", '["featured", "visibility", "product_version"]')
    )

    # Sync behaviour
    sync_enabled: bool = _env_flag("SYNC_ENABLED")
    sync_frequency: str = os.getenv("SYNC_FREQUENCY", "hourly")
    sync_categories: List[int] = json.loads(os.getenv("SYNC_CATEGORIES", "[]"))
    sync_staleness_minutes: int = int(os.getenv("SYNC_STALENESS_MINUTES", "60"))
    sync_batch_delay_seconds: float = float(os.getenv("SYNC_BATCH_DELAY_SECONDS", "1"))
    sync_tick_delay_seconds: int = int(os.getenv("SYNC_TICK_DELAY_SECONDS", "10"))

    # Supabase (catalog storage)
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_service_role_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Redis (progress store + Celery broker)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    @property
    def is_remote_configured(self) -> bool:
        """Credential and endpoint are both present."""
        return bool(self.recommendation_api_key) and bool(self.recommendation_api_url)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
