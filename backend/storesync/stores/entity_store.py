"""Entity store: keyed, transactional persistence for tenants and their data.

WHAT:
    - get-by-unique-key lookups (tenant by domain)
    - atomic upsert-by-external-id for products, customers, orders
    - read-only queries consumed by the metrics projector

WHY:
    Every write is a single INSERT ... ON CONFLICT DO UPDATE statement in its
    own transaction. Concurrent webhook deliveries and an in-flight sync can
    hit the same external id; the unique constraint plus ON CONFLICT is the
    only serialization point, so there is never a read-then-insert window
    that could produce duplicate rows. Last writer wins on field values.

REFERENCES:
    - storesync/models.py (unique constraints used as conflict targets)
    - storesync/services/shopify_sync_service.py, webhook_service.py (writers)
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from ..database import session_scope
from ..models import Customer, Order, Product, Tenant
from ..schemas import ShopifyCustomerPayload, ShopifyOrderPayload, ShopifyProductPayload

logger = logging.getLogger(__name__)


# Dialects with native INSERT ... ON CONFLICT support
_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def normalize_shop_domain(shop_domain: str) -> str:
    """Shop domains are case-insensitive hostnames; store them lowercased."""
    return shop_domain.strip().lower()


class EntityStore:
    """Persistence interface for Tenant, Product, Customer and Order.

    Usage:
        store = EntityStore(SessionLocal)
        tenant = store.upsert_tenant("mystore.myshopify.com", "shpat_xxx")
        store.upsert_order(tenant.id, order_payload)
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # =========================================================================
    # UPSERT PRIMITIVE
    # =========================================================================

    def _insert_for(self, db: Session, model):
        dialect = db.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect](model)
        except KeyError:
            raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}") from None

    def _upsert(
        self,
        db: Session,
        model,
        conflict_column: str,
        values: Dict[str, Any],
        update_columns: Iterable[str],
    ) -> None:
        stmt = self._insert_for(db, model).values(**values)
        set_ = {column: getattr(stmt.excluded, column) for column in update_columns}
        set_["updated_at"] = datetime.utcnow()
        stmt = stmt.on_conflict_do_update(index_elements=[conflict_column], set_=set_)
        db.execute(stmt)

    # =========================================================================
    # TENANTS
    # =========================================================================

    def upsert_tenant(
        self,
        shop_domain: str,
        access_token: str,
        name: Optional[str] = None,
    ) -> Tenant:
        """Create the tenant or refresh its access token (credential rotation).

        The display name is only set on creation.
        """
        domain = normalize_shop_domain(shop_domain)
        with session_scope(self._session_factory) as db:
            self._upsert(
                db,
                Tenant,
                "shopify_domain",
                values={
                    "name": name or domain,
                    "shopify_domain": domain,
                    "shopify_access_token": access_token,
                },
                update_columns=["shopify_access_token"],
            )
            return db.execute(
                select(Tenant).where(Tenant.shopify_domain == domain)
            ).scalar_one()

    def get_tenant_by_domain(self, shop_domain: str) -> Optional[Tenant]:
        domain = normalize_shop_domain(shop_domain)
        with session_scope(self._session_factory) as db:
            return db.execute(
                select(Tenant).where(Tenant.shopify_domain == domain)
            ).scalar_one_or_none()

    def get_active_tenant(self) -> Optional[Tenant]:
        """The single active tenant the dashboard reads from (oldest first)."""
        with session_scope(self._session_factory) as db:
            return db.execute(
                select(Tenant).order_by(Tenant.created_at.asc()).limit(1)
            ).scalar_one_or_none()

    def mark_tenant_synced(self, tenant_id: UUID) -> None:
        with session_scope(self._session_factory) as db:
            db.execute(
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(last_synced_at=datetime.utcnow())
            )

    # =========================================================================
    # OWNED ENTITIES
    # =========================================================================
    # tenant_id is only written on insert; a row never moves between tenants.

    def upsert_product(self, tenant_id: UUID, product: ShopifyProductPayload) -> None:
        with session_scope(self._session_factory) as db:
            self._upsert(
                db,
                Product,
                "shopify_product_id",
                values={
                    "tenant_id": tenant_id,
                    "shopify_product_id": product.id,
                    "title": product.title,
                    "price": product.price,
                },
                update_columns=["title", "price"],
            )

    def upsert_customer(self, tenant_id: UUID, customer: ShopifyCustomerPayload) -> None:
        with session_scope(self._session_factory) as db:
            self._upsert(
                db,
                Customer,
                "shopify_customer_id",
                values={
                    "tenant_id": tenant_id,
                    "shopify_customer_id": customer.id,
                    "email": customer.email,
                    "first_name": customer.first_name,
                    "last_name": customer.last_name,
                    "total_spent": customer.total_spent,
                },
                update_columns=["email", "first_name", "last_name", "total_spent"],
            )

    def upsert_order(self, tenant_id: UUID, order: ShopifyOrderPayload) -> None:
        with session_scope(self._session_factory) as db:
            self._upsert(
                db,
                Order,
                "shopify_order_id",
                values={
                    "tenant_id": tenant_id,
                    "shopify_order_id": order.id,
                    "total_price": order.total_price,
                    "currency": order.currency,
                    "shopify_created_at": order.created_at,
                },
                update_columns=["total_price", "currency", "shopify_created_at"],
            )

    # =========================================================================
    # READ QUERIES (metrics projector)
    # =========================================================================

    def count_customers(self, tenant_id: UUID) -> int:
        with session_scope(self._session_factory) as db:
            return db.execute(
                select(func.count(Customer.id)).where(Customer.tenant_id == tenant_id)
            ).scalar_one()

    def count_orders(self, tenant_id: UUID) -> int:
        with session_scope(self._session_factory) as db:
            return db.execute(
                select(func.count(Order.id)).where(Order.tenant_id == tenant_id)
            ).scalar_one()

    def total_revenue(self, tenant_id: UUID) -> Decimal:
        with session_scope(self._session_factory) as db:
            total = db.execute(
                select(func.sum(Order.total_price)).where(Order.tenant_id == tenant_id)
            ).scalar_one()
        return Decimal(total) if total is not None else Decimal("0")

    def list_dated_orders(self, tenant_id: UUID) -> List[Tuple[datetime, Decimal]]:
        """(shopify_created_at, total_price) for orders that have a date, oldest first."""
        with session_scope(self._session_factory) as db:
            rows = db.execute(
                select(Order.shopify_created_at, Order.total_price)
                .where(
                    Order.tenant_id == tenant_id,
                    Order.shopify_created_at.is_not(None),
                )
                .order_by(Order.shopify_created_at.asc())
            ).all()
        return [(row[0], row[1]) for row in rows]

    def top_customers(self, tenant_id: UUID, limit: int) -> List[Customer]:
        with session_scope(self._session_factory) as db:
            return list(
                db.execute(
                    select(Customer)
                    .where(Customer.tenant_id == tenant_id)
                    .order_by(Customer.total_spent.desc())
                    .limit(limit)
                ).scalars()
            )

    def list_orders(self, tenant_id: UUID) -> List[Order]:
        with session_scope(self._session_factory) as db:
            return list(
                db.execute(
                    select(Order)
                    .where(Order.tenant_id == tenant_id)
                    .order_by(Order.shopify_order_id.asc())
                ).scalars()
            )
