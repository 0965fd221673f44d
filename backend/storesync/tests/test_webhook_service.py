"""Tests for ShopifyWebhookIngestor outcomes and side effects."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from storesync.services.webhook_service import (
    ShopifyWebhookIngestor,
    WebhookOutcome,
    normalize_topic,
)
from storesync.services.webhook_verification import compute_webhook_signature

from .conftest import SHOP_DOMAIN, WEBHOOK_SECRET, make_order


def _body(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


def _sign(body: bytes) -> str:
    return compute_webhook_signature(body, WEBHOOK_SECRET)


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.publish = AsyncMock()
    return notifier


@pytest.fixture
def ingestor(store, notifier):
    return ShopifyWebhookIngestor(store, notifier, WEBHOOK_SECRET)


async def _deliver(ingestor, body: bytes, topic="orders/create", shop=SHOP_DOMAIN, signature=None):
    return await ingestor.ingest(body, signature or _sign(body), topic, shop)


class TestWebhookIngestor:

    @pytest.mark.asyncio
    async def test_order_created_applied_and_published(self, ingestor, store, tenant, notifier):
        result = await _deliver(ingestor, _body(make_order(1001, "50.00")))

        assert result.outcome == WebhookOutcome.applied
        assert result.acknowledged
        assert result.external_id == 1001
        assert store.count_orders(tenant.id) == 1
        notifier.publish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redelivery_converges_to_one_row(self, ingestor, store, tenant):
        await _deliver(ingestor, _body(make_order(1001, "50.00")))
        await _deliver(ingestor, _body(make_order(1001, "55.00")))

        orders = store.list_orders(tenant.id)
        assert len(orders) == 1
        assert orders[0].total_price == Decimal("55.00")

    @pytest.mark.asyncio
    async def test_bad_signature_rejected_without_mutation(self, ingestor, store, tenant, notifier):
        body = _body(make_order(1001))
        result = await _deliver(ingestor, body, signature=compute_webhook_signature(body, "wrong"))

        assert result.outcome == WebhookOutcome.rejected_signature
        assert not result.acknowledged
        assert store.count_orders(tenant.id) == 0
        notifier.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_secret_rejects(self, store, tenant, notifier):
        ingestor = ShopifyWebhookIngestor(store, notifier, None)
        result = await _deliver(ingestor, _body(make_order(1001)))

        assert result.outcome == WebhookOutcome.rejected_signature
        assert store.count_orders(tenant.id) == 0

    @pytest.mark.asyncio
    async def test_unhandled_topic_acknowledged_and_ignored(self, ingestor, store, tenant, notifier):
        result = await _deliver(ingestor, _body({"id": 5, "title": "Mug"}), topic="products/update")

        assert result.outcome == WebhookOutcome.ignored_topic
        assert result.acknowledged
        assert store.count_orders(tenant.id) == 0
        notifier.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_topic_match_is_case_insensitive(self, ingestor, store, tenant):
        result = await _deliver(ingestor, _body(make_order(1001)), topic=" Orders/Create ")

        assert result.outcome == WebhookOutcome.applied
        assert store.count_orders(tenant.id) == 1

    @pytest.mark.asyncio
    async def test_unknown_shop_acknowledged_without_rows(self, ingestor, store, tenant, notifier):
        result = await _deliver(ingestor, _body(make_order(1001)), shop="stranger.myshopify.com")

        assert result.outcome == WebhookOutcome.ignored_unknown_tenant
        assert result.acknowledged
        assert store.count_orders(tenant.id) == 0
        notifier.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_order_rejected(self, ingestor, store, tenant, notifier):
        result = await _deliver(ingestor, _body({"id": 1001, "total_price": "abc", "currency": "USD"}))

        assert result.outcome == WebhookOutcome.rejected_malformed
        assert not result.acknowledged
        assert result.external_id == 1001
        assert store.count_orders(tenant.id) == 0
        notifier.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_json_rejected(self, ingestor, tenant):
        result = await _deliver(ingestor, b"{not json")
        assert result.outcome == WebhookOutcome.rejected_malformed

    @pytest.mark.asyncio
    async def test_store_failure_reported_as_failed(self, notifier):
        store = MagicMock()
        store.get_tenant_by_domain.return_value = MagicMock(id="tenant-1")
        store.upsert_order.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        ingestor = ShopifyWebhookIngestor(store, notifier, WEBHOOK_SECRET)

        result = await _deliver(ingestor, _body(make_order(1001)))

        assert result.outcome == WebhookOutcome.failed
        assert not result.acknowledged
        notifier.publish.assert_not_awaited()


def test_normalize_topic():
    assert normalize_topic("  ORDERS/create ") == "orders/create"
    assert normalize_topic(None) == ""


@pytest.mark.asyncio
async def test_order_id_beyond_bigint_is_malformed(ingestor, store, tenant, notifier):
    result = await _deliver(ingestor, _body(make_order(2**64)))

    assert result.outcome == WebhookOutcome.rejected_malformed
    assert store.count_orders(tenant.id) == 0
    notifier.publish.assert_not_awaited()
