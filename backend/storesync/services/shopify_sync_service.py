"""Shopify full-sync service.

WHAT:
    Reconciles the local store with Shopify for one tenant:
    tenant -> products -> customers -> orders, every item upserted by its
    Shopify id.

WHY:
    - Webhooks can be missed; a full sync is the pull-based safety net
    - Every step is an upsert, so re-running after a failure is safe and
      converges to the same rows
    - The tenant must exist first because every owned row needs its id

FAILURE MODEL:
    - One item failing validation (bad price, missing id) is recorded and
      skipped; the rest of the collection continues
    - ShopifyAPIError (network/API) or a store error aborts the run; rows
      already upserted stay committed
    - Anything else unexpected also aborts the run with success=False, so
      callers always get a ShopifySyncResponse

REFERENCES:
    - storesync/services/shopify_client.py (API client)
    - storesync/stores/entity_store.py (upserts)
    - storesync/routers/sync.py (HTTP trigger)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import MalformedPayloadError
from ..schemas import (
    ShopifyCustomerPayload,
    ShopifyOrderPayload,
    ShopifyProductPayload,
    parse_record,
)
from ..stores import EntityStore
from .shopify_client import ShopifyAPIError, ShopifyClient

logger = logging.getLogger(__name__)


# (shop_domain, access_token) -> client bound to that tenant
ShopifyClientFactory = Callable[[str, str], ShopifyClient]


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

@dataclass
class SyncItemError:
    """One collection item that was skipped."""
    kind: str
    external_id: Optional[Any]
    reason: str


@dataclass
class ShopifySyncStats:
    """Statistics from a Shopify sync operation."""
    products_synced: int = 0
    products_skipped: int = 0
    customers_synced: int = 0
    customers_skipped: int = 0
    orders_synced: int = 0
    orders_skipped: int = 0
    duration_seconds: float = 0.0

    @property
    def total_skipped(self) -> int:
        return self.products_skipped + self.customers_skipped + self.orders_skipped


@dataclass
class ShopifySyncResponse:
    """Response from a Shopify sync operation."""
    success: bool
    stats: ShopifySyncStats
    item_errors: List[SyncItemError] = field(default_factory=list)
    message: str = ""
    tenant_id: Optional[UUID] = None


# =============================================================================
# SERVICE
# =============================================================================

class ShopifySyncService:
    """Full sync orchestrator.

    Usage:
        service = ShopifySyncService(store, client_factory)
        result = await service.sync_all("mystore.myshopify.com", "shpat_xxx")
    """

    def __init__(self, store: EntityStore, client_factory: ShopifyClientFactory):
        self.store = store
        self.client_factory = client_factory

    def _upsert_collection(
        self,
        kind: str,
        items: List[Dict[str, Any]],
        model: Type[BaseModel],
        upsert: Callable[[UUID, Any], None],
        tenant_id: UUID,
        errors: List[SyncItemError],
    ) -> tuple[int, int]:
        """Validate and upsert each item independently.

        Returns:
            (synced, skipped)

        Store errors propagate: they are not a property of the item.
        """
        synced = 0
        skipped = 0

        for raw in items:
            try:
                record = parse_record(model, raw)
            except MalformedPayloadError as e:
                skipped += 1
                errors.append(SyncItemError(kind=kind, external_id=e.external_id, reason=e.message))
                logger.warning(
                    "[SHOPIFY_SYNC] Skipping %s %s: %s", kind, e.external_id, e.message
                )
                continue

            upsert(tenant_id, record)
            synced += 1

        return synced, skipped

    async def sync_products(self, client: ShopifyClient, tenant_id: UUID,
                            stats: ShopifySyncStats, errors: List[SyncItemError]) -> None:
        products = await client.get_all_products()
        stats.products_synced, stats.products_skipped = self._upsert_collection(
            "product", products, ShopifyProductPayload, self.store.upsert_product, tenant_id, errors
        )
        logger.info(
            "[SHOPIFY_SYNC] Synced %d products (%d skipped)",
            stats.products_synced, stats.products_skipped,
        )

    async def sync_customers(self, client: ShopifyClient, tenant_id: UUID,
                             stats: ShopifySyncStats, errors: List[SyncItemError]) -> None:
        customers = await client.get_all_customers()
        stats.customers_synced, stats.customers_skipped = self._upsert_collection(
            "customer", customers, ShopifyCustomerPayload, self.store.upsert_customer, tenant_id, errors
        )
        logger.info(
            "[SHOPIFY_SYNC] Synced %d customers (%d skipped)",
            stats.customers_synced, stats.customers_skipped,
        )

    async def sync_orders(self, client: ShopifyClient, tenant_id: UUID,
                          stats: ShopifySyncStats, errors: List[SyncItemError]) -> None:
        orders = await client.get_all_orders(status="any")
        stats.orders_synced, stats.orders_skipped = self._upsert_collection(
            "order", orders, ShopifyOrderPayload, self.store.upsert_order, tenant_id, errors
        )
        logger.info(
            "[SHOPIFY_SYNC] Synced %d orders (%d skipped)",
            stats.orders_synced, stats.orders_skipped,
        )

    async def sync_all(
        self,
        shop_domain: str,
        access_token: str,
        shop_name: Optional[str] = None,
    ) -> ShopifySyncResponse:
        """Run full Shopify sync: tenant -> products -> customers -> orders.

        Args:
            shop_domain: Shopify store domain (e.g., "mystore.myshopify.com")
            access_token: Admin API access token for that store
            shop_name: Display name used when the tenant is first created

        Returns:
            ShopifySyncResponse; success=False means the run was aborted
        """
        start_time = datetime.utcnow()
        stats = ShopifySyncStats()
        item_errors: List[SyncItemError] = []
        tenant_id: Optional[UUID] = None

        logger.info("[SHOPIFY_SYNC] Sync process started for %s", shop_domain)

        try:
            # 1. Tenant first: every owned row needs its id
            tenant = self.store.upsert_tenant(shop_domain, access_token, name=shop_name)
            tenant_id = tenant.id

            client = self.client_factory(tenant.shopify_domain, tenant.shopify_access_token)

            # 2-4. Strict order
            await self.sync_products(client, tenant_id, stats, item_errors)
            await self.sync_customers(client, tenant_id, stats, item_errors)
            await self.sync_orders(client, tenant_id, stats, item_errors)

            self.store.mark_tenant_synced(tenant_id)

        except ShopifyAPIError as e:
            logger.error(
                "[SHOPIFY_SYNC] Sync failed: Shopify API error: %s (status=%s, body=%s)",
                e, e.status_code, e.body,
            )
            return self._failed(stats, item_errors, tenant_id, start_time, "Shopify API unavailable")

        except SQLAlchemyError:
            logger.exception("[SHOPIFY_SYNC] Sync failed: store error")
            return self._failed(stats, item_errors, tenant_id, start_time, "Store failure")

        except Exception:
            logger.exception("[SHOPIFY_SYNC] Sync failed: unexpected error")
            return self._failed(stats, item_errors, tenant_id, start_time, "Unexpected error")

        stats.duration_seconds = (datetime.utcnow() - start_time).total_seconds()

        logger.info(
            "[SHOPIFY_SYNC] Sync complete: products=%d, customers=%d, orders=%d, skipped=%d, duration=%.2fs",
            stats.products_synced, stats.customers_synced, stats.orders_synced,
            stats.total_skipped, stats.duration_seconds,
        )

        return ShopifySyncResponse(
            success=True,
            stats=stats,
            item_errors=item_errors,
            message="Sync completed successfully!",
            tenant_id=tenant_id,
        )

    @staticmethod
    def _failed(
        stats: ShopifySyncStats,
        item_errors: List[SyncItemError],
        tenant_id: Optional[UUID],
        start_time: datetime,
        reason: str,
    ) -> ShopifySyncResponse:
        stats.duration_seconds = (datetime.utcnow() - start_time).total_seconds()
        return ShopifySyncResponse(
            success=False,
            stats=stats,
            item_errors=item_errors,
            message=f"Sync failed: {reason}",
            tenant_id=tenant_id,
        )
