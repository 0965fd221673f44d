"""Shopify webhook receiver.

WHAT:
    POST /api/webhooks/shopify: hands the raw body and Shopify headers to the
    webhook ingestor and maps its outcome to an HTTP status.

WHY:
    - The HMAC is computed over the exact bytes Shopify sent, so the body is
      read raw and never parsed by FastAPI first
    - Shopify retries non-2xx deliveries; only applied and deliberately
      ignored events are acknowledged with 200

Status mapping:
    applied / ignored_topic / ignored_unknown_tenant -> 200
    rejected_signature -> 401
    rejected_malformed -> 400
    failed (or any unexpected error) -> 500

REFERENCES:
    - storesync/services/webhook_service.py
    - https://shopify.dev/docs/apps/build/webhooks
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..deps import get_webhook_ingestor
from ..services.webhook_service import ShopifyWebhookIngestor, WebhookOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Shopify Webhooks"])


_ERROR_STATUS = {
    WebhookOutcome.rejected_signature: status.HTTP_401_UNAUTHORIZED,
    WebhookOutcome.rejected_malformed: status.HTTP_400_BAD_REQUEST,
    WebhookOutcome.failed: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("/shopify")
async def receive_shopify_webhook(
    request: Request,
    ingestor: ShopifyWebhookIngestor = Depends(get_webhook_ingestor),
):
    """Receive one Shopify webhook delivery.

    Headers:
        X-Shopify-Hmac-Sha256: base64 HMAC of the raw body
        X-Shopify-Topic: e.g. "orders/create"
        X-Shopify-Shop-Domain: e.g. "mystore.myshopify.com"
    """
    raw_body = await request.body()
    topic = request.headers.get("X-Shopify-Topic")

    try:
        result = await ingestor.ingest(
            raw_body,
            signature=request.headers.get("X-Shopify-Hmac-Sha256"),
            topic=topic,
            shop_domain=request.headers.get("X-Shopify-Shop-Domain"),
        )
    except Exception:
        logger.exception("[SHOPIFY_WEBHOOK] Unexpected error processing %r", topic)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    if not result.acknowledged:
        raise HTTPException(status_code=_ERROR_STATUS[result.outcome], detail=result.detail)

    return {"status": "ok", "outcome": result.outcome.value}
