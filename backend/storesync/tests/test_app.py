"""HTTP and websocket endpoint tests against the full app (lifespan running)."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from storesync.main import create_app
from storesync.routers.realtime import dashboard_socket
from storesync.services.notifier import ChangeNotifier

from .conftest import ACCESS_TOKEN, SHOP_DOMAIN, make_order, signed_webhook


def _create_tenant(client):
    return client.app.state.store.upsert_tenant(SHOP_DOMAIN, ACCESS_TOKEN)


def test_healthcheck(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestWebhookEndpoint:

    def test_valid_order_webhook(self, client):
        tenant = _create_tenant(client)

        response = client.post("/api/webhooks/shopify", **signed_webhook(make_order(1001, "42.00")))

        assert response.status_code == 200
        assert response.json()["outcome"] == "applied"
        assert client.app.state.store.total_revenue(tenant.id) == Decimal("42.00")

    def test_bad_signature_is_401(self, client):
        tenant = _create_tenant(client)
        request = signed_webhook(make_order(1001), secret="not-the-secret")

        response = client.post("/api/webhooks/shopify", **request)

        assert response.status_code == 401
        assert client.app.state.store.count_orders(tenant.id) == 0

    def test_missing_signature_is_401(self, client):
        _create_tenant(client)
        request = signed_webhook(make_order(1001))
        del request["headers"]["X-Shopify-Hmac-Sha256"]

        assert client.post("/api/webhooks/shopify", **request).status_code == 401

    def test_out_of_range_order_id_is_400(self, client):
        tenant = _create_tenant(client)

        response = client.post("/api/webhooks/shopify", **signed_webhook(make_order(2**64)))

        assert response.status_code == 400
        assert client.app.state.store.count_orders(tenant.id) == 0

    def test_malformed_payload_is_400(self, client):
        tenant = _create_tenant(client)

        response = client.post(
            "/api/webhooks/shopify",
            **signed_webhook({"id": 1001, "total_price": "abc", "currency": "USD"}),
        )

        assert response.status_code == 400
        assert client.app.state.store.count_orders(tenant.id) == 0

    def test_other_topic_acknowledged(self, client):
        response = client.post(
            "/api/webhooks/shopify",
            **signed_webhook({"id": 5, "title": "Mug"}, topic="products/update"),
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored_topic"

    def test_unknown_shop_acknowledged(self, client):
        response = client.post("/api/webhooks/shopify", **signed_webhook(make_order(1001)))

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored_unknown_tenant"


class TestSyncEndpoint:

    def test_out_of_range_item_skipped(self, client, upstream_pages):
        upstream_pages["orders"] = [{"orders": [make_order(301, "50.00"), make_order(2**64, "10.00")]}]

        response = client.post("/api/tenants/sync")

        assert response.status_code == 200
        assert response.json()["orders"] == 1
        assert response.json()["skipped"] == 1

    def test_unexpected_error_keeps_json_contract(self, client):
        def exploding_factory(shop_domain, access_token):
            raise ValueError("bad shop domain")

        client.app.state.sync_service.client_factory = exploding_factory

        response = client.post("/api/tenants/sync")

        assert response.status_code == 500
        assert response.json() == {"message": "Sync failed"}

    def test_sync_returns_counts(self, client):
        response = client.post("/api/tenants/sync")

        assert response.status_code == 200
        assert response.json() == {
            "message": "Sync completed successfully!",
            "products": 2,
            "customers": 2,
            "orders": 2,
            "skipped": 0,
        }

    def test_sync_upstream_failure_is_500(self, client, upstream_pages):
        upstream_pages.pop("orders")

        response = client.post("/api/tenants/sync")

        assert response.status_code == 500
        assert response.json() == {"message": "Sync failed"}

    def test_sync_without_credentials_is_500(self, settings):
        unconfigured = settings.model_copy(update={"SHOPIFY_ADMIN_ACCESS_TOKEN": None})

        with TestClient(create_app(unconfigured)) as client:
            response = client.post("/api/tenants/sync")

        assert response.status_code == 500
        assert response.json() == {"message": "Sync failed"}


class TestMetricsEndpoints:

    def test_404_before_any_tenant(self, client):
        for path in ("/api/metrics/overview", "/api/metrics/orders-by-date", "/api/metrics/top-customers"):
            assert client.get(path).status_code == 404

    def test_metrics_after_sync(self, client):
        client.post("/api/tenants/sync")

        overview = client.get("/api/metrics/overview").json()
        assert overview == {"totalCustomers": 2, "totalOrders": 2, "totalRevenue": 80.0}

        by_date = client.get("/api/metrics/orders-by-date").json()
        assert by_date == [{"date": "2024-03-01", "orders": 2, "revenue": 80.0}]

        top = client.get("/api/metrics/top-customers", params={"limit": 1}).json()
        assert len(top) == 1
        assert top[0]["shopifyCustomerId"] == 201
        assert top[0]["firstName"] == "Ada"
        assert top[0]["totalSpent"] == 90.0

    def test_top_customers_limit_validated(self, client):
        _create_tenant(client)
        assert client.get("/api/metrics/top-customers", params={"limit": 101}).status_code == 422


class TestRealtimeChannel:

    def test_websocket_receives_one_update_per_change(self, client):
        _create_tenant(client)

        with client.websocket_connect("/ws") as websocket:
            assert websocket.receive_json()["type"] == "connected"

            response = client.post("/api/webhooks/shopify", **signed_webhook(make_order(1001)))
            assert response.status_code == 200

            assert websocket.receive_json() == {"type": "data_updated"}
            # Next frame is the pong, so no duplicate update was queued
            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

    def test_rejected_webhook_sends_nothing(self, client):
        _create_tenant(client)

        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            client.post("/api/webhooks/shopify", **signed_webhook(make_order(1001), secret="wrong"))

            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"


@pytest.mark.asyncio
async def test_failed_handshake_leaves_no_registration():
    notifier = ChangeNotifier()
    websocket = MagicMock()
    websocket.app.state.notifier = notifier
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock(side_effect=RuntimeError("socket closed"))

    with pytest.raises(RuntimeError):
        await dashboard_socket(websocket)

    assert notifier.connection_count() == 0
