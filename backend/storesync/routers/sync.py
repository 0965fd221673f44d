"""Shopify full-sync trigger.

WHAT:
    POST /api/tenants/sync: runs a full sync for the configured store.

WHY:
    - Router handles config checks and response shaping only
    - The sync itself lives in ShopifySyncService so it can be reused by
      scripts or a scheduler

REFERENCES:
    - storesync/services/shopify_sync_service.py
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..deps import Settings, get_app_settings, get_sync_service
from ..schemas import SyncCountsResponse
from ..services.shopify_sync_service import ShopifySyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants", tags=["Shopify Sync"])


@router.post(
    "/sync",
    response_model=SyncCountsResponse,
    responses={500: {"description": "Sync failed or store not configured"}},
)
async def sync_tenant(
    settings: Settings = Depends(get_app_settings),
    service: ShopifySyncService = Depends(get_sync_service),
):
    """Pull products, customers and orders for the configured store.

    Returns per-kind upsert counts. Re-running is safe; every write is an
    upsert keyed by Shopify id.
    """
    if not settings.SHOPIFY_STORE_DOMAIN or not settings.SHOPIFY_ADMIN_ACCESS_TOKEN:
        logger.error("[SHOPIFY_SYNC] SHOPIFY_STORE_DOMAIN / SHOPIFY_ADMIN_ACCESS_TOKEN not configured")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Sync failed"},
        )

    result = await service.sync_all(
        settings.SHOPIFY_STORE_DOMAIN,
        settings.SHOPIFY_ADMIN_ACCESS_TOKEN,
        shop_name=settings.SHOPIFY_STORE_NAME,
    )

    if not result.success:
        logger.error("[SHOPIFY_SYNC] %s", result.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Sync failed"},
        )

    return SyncCountsResponse(
        message=result.message,
        products=result.stats.products_synced,
        customers=result.stats.customers_synced,
        orders=result.stats.orders_synced,
        skipped=result.stats.total_skipped,
    )
