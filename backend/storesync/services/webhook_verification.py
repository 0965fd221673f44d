"""Shopify webhook HMAC verification.

WHAT: Validates the X-Shopify-Hmac-Sha256 header against the raw body
WHY: Prevent unauthorized webhook calls from malicious actors

The digest MUST be computed over the untouched request bytes. Parsing the
JSON and serializing it again changes whitespace/key order and breaks the
signature, so routers pass `await request.body()` straight through.

REFERENCES:
    - https://shopify.dev/docs/apps/build/webhooks/subscribe/https#step-5-verify-the-webhook
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    """base64(HMAC-SHA256(secret, raw_body)), the format Shopify sends."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_signature(
    raw_body: bytes,
    secret: Optional[str],
    signature: Optional[str],
) -> bool:
    """Verify that a webhook request came from Shopify.

    Args:
        raw_body: Raw request body bytes, exactly as received
        secret: Shared webhook secret; missing means reject everything
        signature: X-Shopify-Hmac-Sha256 header value

    Returns:
        True if signature is valid, False otherwise (never raises)
    """
    if not secret:
        logger.error("[SHOPIFY_WEBHOOK] SHOPIFY_WEBHOOK_SECRET not configured, rejecting")
        return False

    if not signature:
        logger.warning("[SHOPIFY_WEBHOOK] Missing HMAC header")
        return False

    computed = compute_webhook_signature(raw_body, secret)

    # Constant-time comparison; compare bytes so non-ASCII header values
    # are simply a mismatch instead of a TypeError
    is_valid = hmac.compare_digest(
        computed.encode("utf-8"),
        signature.strip().encode("utf-8", errors="replace"),
    )

    if not is_valid:
        logger.warning("[SHOPIFY_WEBHOOK] Invalid HMAC signature")

    return is_valid
