"""FastAPI application entrypoint.

Configures logging and CORS, builds the long-lived services in the lifespan,
includes routers, and exposes a healthcheck endpoint.

Service wiring (all on app.state):
    engine / session factory -> EntityStore
    httpx.AsyncClient -> ShopifyClient factory -> ShopifySyncService
    ChangeNotifier -> ShopifyWebhookIngestor (publisher) + /ws (subscribers)
    EntityStore -> MetricsService
"""

import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .database import create_db_engine, create_session_factory, create_tables
from .deps import Settings, get_settings
from .routers import metrics as metrics_router
from .routers import realtime as realtime_router
from .routers import sync as sync_router
from .routers import webhooks as webhooks_router
from .services.metrics_service import MetricsService
from .services.notifier import ChangeNotifier
from .services.shopify_client import ShopifyClient
from .services.shopify_sync_service import ShopifySyncService
from .services.webhook_service import ShopifyWebhookIngestor
from .stores import EntityStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Defaults to the cached environment settings
        upstream_transport: Optional httpx transport for Shopify calls
            (tests pass an httpx.MockTransport)
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(settings.DATABASE_URL)
        if settings.DATABASE_CREATE_TABLES:
            create_tables(engine)

        store = EntityStore(create_session_factory(engine))
        notifier = ChangeNotifier()
        http_client = httpx.AsyncClient(
            timeout=settings.SHOPIFY_HTTP_TIMEOUT,
            transport=upstream_transport,
        )
        client_factory = partial(
            ShopifyClient,
            http_client=http_client,
            api_version=settings.SHOPIFY_API_VERSION,
            min_request_interval=settings.SHOPIFY_MIN_REQUEST_INTERVAL,
        )

        app.state.settings = settings
        app.state.store = store
        app.state.notifier = notifier
        app.state.sync_service = ShopifySyncService(store, client_factory)
        app.state.webhook_ingestor = ShopifyWebhookIngestor(
            store, notifier, settings.SHOPIFY_WEBHOOK_SECRET
        )
        app.state.metrics_service = MetricsService(store)

        if not settings.SHOPIFY_WEBHOOK_SECRET:
            logger.warning("[STARTUP] SHOPIFY_WEBHOOK_SECRET not set; all webhooks will be rejected")
        logger.info("[STARTUP] StoreSync API ready")

        try:
            yield
        finally:
            await http_client.aclose()
            engine.dispose()
            logger.info("[SHUTDOWN] StoreSync API stopped")

    app = FastAPI(
        title="StoreSync API",
        version=__version__,
        description="Shopify store mirror with live dashboard metrics.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["Health"])
    def healthcheck():
        return {"status": "ok"}

    app.include_router(webhooks_router.router)
    app.include_router(sync_router.router)
    app.include_router(metrics_router.router)
    app.include_router(realtime_router.router)

    return app
