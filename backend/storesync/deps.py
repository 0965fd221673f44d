"""Dependency providers and settings management.

Long-lived services are built once by the app lifespan (storesync.main) and
parked on app.state; the providers below hand them to route handlers.
"""

from functools import lru_cache
from typing import List, Optional

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict

from .services.metrics_service import MetricsService
from .services.notifier import ChangeNotifier
from .services.shopify_sync_service import ShopifySyncService
from .services.webhook_service import ShopifyWebhookIngestor
from .stores import EntityStore


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    DATABASE_URL: str = "sqlite:///./storesync.db"
    # Dev/tests only; production schema is managed by Alembic
    DATABASE_CREATE_TABLES: bool = False

    # Shopify store the sync endpoint pulls from
    SHOPIFY_STORE_DOMAIN: Optional[str] = None
    SHOPIFY_ADMIN_ACCESS_TOKEN: Optional[str] = None
    SHOPIFY_STORE_NAME: Optional[str] = None
    # Missing secret rejects every webhook
    SHOPIFY_WEBHOOK_SECRET: Optional[str] = None
    SHOPIFY_API_VERSION: str = "2024-07"
    SHOPIFY_HTTP_TIMEOUT: float = 30.0
    SHOPIFY_MIN_REQUEST_INTERVAL: float = 0.5  # seconds between upstream calls

    # Comma-separated list of dashboard origins
    FRONTEND_URL: str = "http://localhost:3000"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.FRONTEND_URL.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with (may differ from env in tests)."""
    return request.app.state.settings


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.notifier


def get_sync_service(request: Request) -> ShopifySyncService:
    return request.app.state.sync_service


def get_webhook_ingestor(request: Request) -> ShopifyWebhookIngestor:
    return request.app.state.webhook_ingestor


def get_metrics_service(request: Request) -> MetricsService:
    return request.app.state.metrics_service
