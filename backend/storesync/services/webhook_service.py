"""Shopify webhook ingestion.

WHAT:
    Applies one inbound webhook delivery to the store:

        received -> signature check -> decode -> topic dispatch -> validate
                 -> tenant lookup -> order upsert -> notify

WHY:
    - Shopify retries any non-2xx response, so the outcome decides whether a
      delivery is retried: auth/parse/store failures are non-2xx, ignored
      topics and unknown shops are acknowledged
    - The order write is a single upsert: redelivery of the same event
      converges to the same row, and a failure commits nothing

REFERENCES:
    - storesync/services/webhook_verification.py (HMAC)
    - storesync/routers/webhooks.py (HTTP status mapping)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import MalformedPayloadError
from ..schemas import ShopifyOrderPayload, parse_json_body, parse_record
from ..stores import EntityStore
from .notifier import ChangeNotifier
from .webhook_verification import verify_webhook_signature

logger = logging.getLogger(__name__)


ORDERS_CREATE_TOPIC = "orders/create"


class WebhookOutcome(str, enum.Enum):
    applied = "applied"
    ignored_topic = "ignored_topic"
    ignored_unknown_tenant = "ignored_unknown_tenant"
    rejected_signature = "rejected_signature"
    rejected_malformed = "rejected_malformed"
    failed = "failed"


@dataclass
class WebhookResult:
    outcome: WebhookOutcome
    detail: str = ""
    external_id: Optional[int] = None

    @property
    def acknowledged(self) -> bool:
        """True when Shopify should consider the delivery done."""
        return self.outcome in (
            WebhookOutcome.applied,
            WebhookOutcome.ignored_topic,
            WebhookOutcome.ignored_unknown_tenant,
        )


def normalize_topic(topic: Optional[str]) -> str:
    return (topic or "").strip().lower()


class ShopifyWebhookIngestor:
    """Validates, parses and applies single webhook deliveries.

    Safe to run concurrently with other deliveries and with a full sync:
    the store upsert is the only shared write.
    """

    def __init__(self, store: EntityStore, notifier: ChangeNotifier, secret: Optional[str]):
        self.store = store
        self.notifier = notifier
        self._secret = secret

    async def ingest(
        self,
        raw_body: bytes,
        signature: Optional[str],
        topic: Optional[str],
        shop_domain: Optional[str],
    ) -> WebhookResult:
        """Process one delivery.

        Args:
            raw_body: Untouched request body bytes
            signature: X-Shopify-Hmac-Sha256 header
            topic: X-Shopify-Topic header
            shop_domain: X-Shopify-Shop-Domain header

        Returns:
            WebhookResult. Store errors map to a failed outcome; anything
            else unexpected propagates to the router.
        """
        if not verify_webhook_signature(raw_body, self._secret, signature):
            logger.warning("[SHOPIFY_WEBHOOK] Webhook verification failed (shop=%s)", shop_domain)
            return WebhookResult(WebhookOutcome.rejected_signature, "Invalid webhook signature")

        normalized_topic = normalize_topic(topic)

        try:
            payload = parse_json_body(raw_body)
            if normalized_topic != ORDERS_CREATE_TOPIC:
                logger.info("[SHOPIFY_WEBHOOK] Ignoring topic %r (shop=%s)", topic, shop_domain)
                return WebhookResult(WebhookOutcome.ignored_topic, f"Topic {topic!r} not handled")
            order = parse_record(ShopifyOrderPayload, payload)
        except MalformedPayloadError as e:
            logger.error("[SHOPIFY_WEBHOOK] Malformed %r payload: %s", topic, e.message)
            return WebhookResult(WebhookOutcome.rejected_malformed, e.message, external_id=e.external_id)

        try:
            tenant = self.store.get_tenant_by_domain(shop_domain) if shop_domain else None
            if tenant is None:
                logger.warning(
                    "[SHOPIFY_WEBHOOK] No tenant for shop %r, ignoring order %s",
                    shop_domain, order.id,
                )
                return WebhookResult(
                    WebhookOutcome.ignored_unknown_tenant,
                    "Unknown shop",
                    external_id=order.id,
                )

            self.store.upsert_order(tenant.id, order)

        except SQLAlchemyError:
            logger.exception("[SHOPIFY_WEBHOOK] Store failure while applying order %s", order.id)
            return WebhookResult(WebhookOutcome.failed, "Store failure", external_id=order.id)

        logger.info("[SHOPIFY_WEBHOOK] Processed new order webhook: %s", order.id)
        await self.notifier.publish()

        return WebhookResult(WebhookOutcome.applied, external_id=order.id)
