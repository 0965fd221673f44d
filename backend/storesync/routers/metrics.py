"""Dashboard metrics endpoints.

All three read the active tenant (the oldest one) and return 404 until a
first sync has created it.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_metrics_service
from ..schemas import MetricsOverviewResponse, OrdersByDatePoint, TopCustomerResponse
from ..services.metrics_service import DEFAULT_TOP_CUSTOMERS, MAX_TOP_CUSTOMERS, MetricsService

router = APIRouter(prefix="/api/metrics", tags=["Metrics"])


def _require_tenant(service: MetricsService) -> UUID:
    tenant_id = service.active_tenant_id()
    if tenant_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No tenant found")
    return tenant_id


@router.get("/overview", response_model=MetricsOverviewResponse)
def get_overview(service: MetricsService = Depends(get_metrics_service)):
    return service.overview(_require_tenant(service))


@router.get("/orders-by-date", response_model=List[OrdersByDatePoint])
def get_orders_by_date(service: MetricsService = Depends(get_metrics_service)):
    """Daily order count and revenue, oldest day first. Undated orders are excluded."""
    return service.orders_by_date(_require_tenant(service))


@router.get("/top-customers", response_model=List[TopCustomerResponse])
def get_top_customers(
    limit: int = Query(DEFAULT_TOP_CUSTOMERS, ge=1, le=MAX_TOP_CUSTOMERS),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.top_customers(_require_tenant(service), limit)
