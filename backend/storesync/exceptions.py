"""
Ingestion Exceptions
====================

Error types shared by the webhook ingestor and the sync engine.

Failure classes and where they surface:
- MalformedPayloadError: body or item failed validation. Webhook -> 400,
  sync item -> recorded skip, the rest of the collection continues.
- ShopifyAPIError (storesync.services.shopify_client): upstream unavailable.
  Aborts a sync run.
- sqlalchemy.exc.SQLAlchemyError: store failure. Webhook -> 500, sync -> abort.

Authentication failures are not exceptions: the signature verifier returns
False and the ingestor maps that to a rejected outcome.
"""

from typing import Any, List, Optional


class IngestionError(Exception):
    """Base exception for ingestion failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedPayloadError(IngestionError):
    """
    Payload could not be turned into a typed record.

    WHAT:
        Raised by the parse helpers in storesync.schemas when JSON decoding or
        schema validation fails (missing fields, non-numeric prices,
        unparseable timestamps).

    WHY:
        Keeps unvalidated dicts away from store writes. Callers decide whether
        the failure is fatal (webhook) or a per-item skip (sync).
    """

    def __init__(
        self,
        message: str,
        external_id: Optional[Any] = None,
        errors: Optional[List[dict]] = None,
    ):
        super().__init__(message)
        self.external_id = external_id
        self.errors = errors or []
