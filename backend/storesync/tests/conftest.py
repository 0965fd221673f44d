"""Pytest configuration for storesync tests

WHAT: Shared fixtures for store, service and HTTP endpoint tests
WHY: Every test gets a fresh in-memory database and a fake Shopify upstream,
     so nothing touches the network or a real Postgres
REFERENCES:
    - storesync/main.py: create_app (lifespan wiring)
    - storesync/database.py: engine/session configuration
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from storesync.database import create_db_engine, create_session_factory, create_tables
from storesync.deps import Settings
from storesync.main import create_app
from storesync.services.webhook_verification import compute_webhook_signature
from storesync.stores import EntityStore


WEBHOOK_SECRET = "test-webhook-secret"
SHOP_DOMAIN = "test-shop.myshopify.com"
ACCESS_TOKEN = "shpat_test_token"


# ============================================================================
# Helpers
# ============================================================================

def make_order(order_id: int, total_price: str = "10.00", created_at: Optional[str] = "2024-03-01T10:00:00Z",
               currency: str = "USD") -> Dict[str, Any]:
    order: Dict[str, Any] = {"id": order_id, "total_price": total_price, "currency": currency}
    if created_at is not None:
        order["created_at"] = created_at
    return order


def signed_webhook(payload: Any, topic: str = "orders/create", shop: str = SHOP_DOMAIN,
                   secret: str = WEBHOOK_SECRET) -> Dict[str, Any]:
    """Body + headers for a webhook delivery signed the way Shopify signs it."""
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return {
        "content": body,
        "headers": {
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": compute_webhook_signature(body, secret),
            "X-Shopify-Topic": topic,
            "X-Shopify-Shop-Domain": shop,
        },
    }


def shopify_transport(
    pages: Dict[str, List[Dict[str, Any]]],
    requests: Optional[List[httpx.Request]] = None,
) -> httpx.MockTransport:
    """Fake Shopify Admin REST API.

    pages maps a resource ("products") to its page bodies; every page but the
    last carries a Link rel="next" header pointing at the following one.
    Unknown resources return 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)

        resource = request.url.path.rsplit("/", 1)[-1].removesuffix(".json")
        bodies = pages.get(resource)
        if bodies is None:
            return httpx.Response(404, json={"errors": "Not Found"})

        index = int(request.url.params.get("page_info", "0"))
        headers = {}
        if index + 1 < len(bodies):
            next_url = f"https://{request.url.host}{request.url.path}?limit=250&page_info={index + 1}"
            headers["Link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(200, json=bodies[index], headers=headers)

    return httpx.MockTransport(handler)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_db_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> EntityStore:
    return EntityStore(create_session_factory(engine))


@pytest.fixture
def tenant(store):
    return store.upsert_tenant(SHOP_DOMAIN, ACCESS_TOKEN, name="Test Shop")


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        DATABASE_CREATE_TABLES=True,
        SHOPIFY_STORE_DOMAIN=SHOP_DOMAIN,
        SHOPIFY_ADMIN_ACCESS_TOKEN=ACCESS_TOKEN,
        SHOPIFY_STORE_NAME="Test Shop",
        SHOPIFY_WEBHOOK_SECRET=WEBHOOK_SECRET,
        SHOPIFY_MIN_REQUEST_INTERVAL=0,
        _env_file=None,
    )


@pytest.fixture
def upstream_pages() -> Dict[str, List[Dict[str, Any]]]:
    """Default fake store contents; tests may mutate before using `client`."""
    return {
        "products": [
            {"products": [{"id": 101, "title": "Mug", "variants": [{"price": "12.50"}]}]},
            {"products": [{"id": 102, "title": "Gift card", "variants": []}]},
        ],
        "customers": [
            {"customers": [
                {"id": 201, "email": "a@example.com", "first_name": "Ada", "total_spent": "90.00"},
                {"id": 202, "email": "b@example.com", "total_spent": None},
            ]},
        ],
        "orders": [
            {"orders": [make_order(301, "50.00"), make_order(302, "30.00")]},
        ],
    }


@pytest.fixture
def client(settings, upstream_pages):
    """TestClient with lifespan running (services live on app.state)."""
    app = create_app(settings, upstream_transport=shopify_transport(upstream_pages))
    with TestClient(app) as test_client:
        yield test_client
