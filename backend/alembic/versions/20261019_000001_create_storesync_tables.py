"""Create StoreSync tables (tenants, products, customers, orders)

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 09:00:00.000000

WHAT:
    - tenants: one row per Shopify store, unique by shop domain
    - products / customers / orders: tenant-owned mirrors of Shopify records,
      each unique by its Shopify id

WHY:
    The unique constraints are the conflict targets of the upserts in
    storesync/stores/entity_store.py. Without them concurrent webhook and
    sync writes could produce duplicate rows.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '20261019_000001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # tenants
    # =========================================================================
    op.create_table(
        'tenants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('shopify_domain', sa.String(), nullable=False),
        sa.Column('shopify_access_token', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('shopify_domain', name='uq_tenant_shopify_domain'),
    )

    # =========================================================================
    # products
    # =========================================================================
    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('shopify_product_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(18, 4), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('shopify_product_id', name='uq_product_shopify_id'),
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])

    # =========================================================================
    # customers
    # =========================================================================
    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('shopify_customer_id', sa.BigInteger(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('total_spent', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('shopify_customer_id', name='uq_customer_shopify_id'),
    )
    op.create_index('ix_customers_tenant_id', 'customers', ['tenant_id'])

    # =========================================================================
    # orders
    # =========================================================================
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('shopify_order_id', sa.BigInteger(), nullable=False),
        sa.Column('total_price', sa.Numeric(18, 4), nullable=False),
        sa.Column('currency', sa.String(), nullable=False),
        sa.Column('shopify_created_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('shopify_order_id', name='uq_order_shopify_id'),
    )
    op.create_index('ix_orders_tenant_id', 'orders', ['tenant_id'])
    # Metrics bucket orders by date
    op.create_index('ix_orders_tenant_created', 'orders', ['tenant_id', 'shopify_created_at'])


def downgrade() -> None:
    op.drop_index('ix_orders_tenant_created', table_name='orders')
    op.drop_index('ix_orders_tenant_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_customers_tenant_id', table_name='customers')
    op.drop_table('customers')
    op.drop_index('ix_products_tenant_id', table_name='products')
    op.drop_table('products')
    op.drop_table('tenants')
