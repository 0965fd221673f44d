"""Dashboard metrics projector.

WHAT:
    Read-only aggregates over the active tenant's stored data:
    - overview: customer count, order count, total revenue
    - orders by date: per-UTC-day order count and revenue, ascending
    - top customers: highest total_spent first

WHY:
    - Aggregation reads committed rows only, so a figure never reflects a
      half-applied sync or webhook
    - Bucketing is a pure function so the rules (undated orders excluded,
      UTC day boundaries) are testable without a database

REFERENCES:
    - storesync/stores/entity_store.py (read queries)
    - storesync/routers/metrics.py (HTTP surface)
"""

import logging
from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from ..schemas import MetricsOverviewResponse, OrdersByDatePoint, TopCustomerResponse
from ..stores import EntityStore

logger = logging.getLogger(__name__)


DEFAULT_TOP_CUSTOMERS = 5
MAX_TOP_CUSTOMERS = 100


def bucket_orders_by_date(
    orders: Iterable[Tuple[Optional[datetime], Decimal]],
) -> List[OrdersByDatePoint]:
    """Group (created_at, total_price) pairs into one point per calendar day.

    created_at values are naive UTC. Orders without a date are skipped.
    Output is sorted by date ascending regardless of input order.
    """
    buckets: "OrderedDict[date, List]" = OrderedDict()

    for created_at, total_price in sorted(
        (o for o in orders if o[0] is not None), key=lambda o: o[0]
    ):
        day = created_at.date()
        bucket = buckets.setdefault(day, [0, Decimal("0")])
        bucket[0] += 1
        bucket[1] += Decimal(total_price)

    return [
        OrdersByDatePoint(date=day, orders=count, revenue=float(revenue))
        for day, (count, revenue) in buckets.items()
    ]


class MetricsService:
    """Projections for the active tenant's dashboard."""

    def __init__(self, store: EntityStore):
        self.store = store

    def active_tenant_id(self) -> Optional[UUID]:
        tenant = self.store.get_active_tenant()
        return tenant.id if tenant else None

    def overview(self, tenant_id: UUID) -> MetricsOverviewResponse:
        return MetricsOverviewResponse(
            total_customers=self.store.count_customers(tenant_id),
            total_orders=self.store.count_orders(tenant_id),
            total_revenue=float(self.store.total_revenue(tenant_id)),
        )

    def orders_by_date(self, tenant_id: UUID) -> List[OrdersByDatePoint]:
        return bucket_orders_by_date(self.store.list_dated_orders(tenant_id))

    def top_customers(self, tenant_id: UUID, limit: int = DEFAULT_TOP_CUSTOMERS) -> List[TopCustomerResponse]:
        limit = max(1, min(limit, MAX_TOP_CUSTOMERS))
        return [
            TopCustomerResponse(
                id=c.id,
                shopify_customer_id=c.shopify_customer_id,
                email=c.email,
                first_name=c.first_name,
                last_name=c.last_name,
                total_spent=float(c.total_spent or 0),
            )
            for c in self.store.top_customers(tenant_id, limit)
        ]
