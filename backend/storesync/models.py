"""SQLAlchemy ORM models.

Four tables, all owned by a tenant:

    tenants ──┬── products   (shopify_product_id unique)
              ├── customers  (shopify_customer_id unique)
              └── orders     (shopify_order_id unique)

The Shopify ids are the reconciliation keys for both the full sync and the
webhook stream. Every write goes through an ON CONFLICT upsert on those
columns (see storesync.stores.entity_store), so the unique constraints here are
what makes redelivery and re-sync idempotent.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship


# Single Base used by the entire application
Base = declarative_base()


class Tenant(Base):
    """One connected Shopify storefront.

    WHAT: Root of the ownership tree; holds the Admin API credential
    WHY: Products, customers and orders are only ever written against a
         resolved tenant, so a webhook for an unknown shop cannot orphan rows
    """
    __tablename__ = "tenants"
    __table_args__ = (
        UniqueConstraint("shopify_domain", name="uq_tenant_shopify_domain"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    shopify_domain = Column(String, nullable=False)  # e.g., "mystore.myshopify.com"
    shopify_access_token = Column(String, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_synced_at = Column(DateTime, nullable=True)

    products = relationship("Product", back_populates="tenant")
    customers = relationship("Customer", back_populates="tenant")
    orders = relationship("Order", back_populates="tenant")

    def __str__(self):
        return f"{self.name} ({self.shopify_domain})"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("shopify_product_id", name="uq_product_shopify_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)

    shopify_product_id = Column(BigInteger, nullable=False)
    title = Column(String, nullable=False)
    price = Column(Numeric(18, 4), nullable=True)  # First variant price; NULL when no variants

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="products")

    def __str__(self):
        return f"{self.title} (${self.price})"


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("shopify_customer_id", name="uq_customer_shopify_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)

    shopify_customer_id = Column(BigInteger, nullable=False)

    # PII - handle with care
    email = Column(String, nullable=True)  # May be null for guest checkouts
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)

    total_spent = Column(Numeric(18, 4), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="customers")

    def __str__(self):
        return self.email or f"Customer {self.shopify_customer_id}"


class Order(Base):
    """Order facts used for revenue metrics.

    WHAT: One row per Shopify order, written by both sync and webhooks
    WHY: shopify_created_at drives the orders-by-date view; it stays NULL
         when Shopify did not send one so undated orders never land in a
         made-up bucket
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("shopify_order_id", name="uq_order_shopify_id"),
        Index("ix_orders_tenant_created", "tenant_id", "shopify_created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)

    shopify_order_id = Column(BigInteger, nullable=False)
    total_price = Column(Numeric(18, 4), nullable=False)
    currency = Column(String, nullable=False)
    shopify_created_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="orders")

    def __str__(self):
        return f"Order {self.shopify_order_id} ({self.total_price} {self.currency})"
