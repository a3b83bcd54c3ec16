"""Create storefront checkout schema

Revision ID: 20261019_storefront_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision = '20261019_storefront_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Products with stock counters
    op.create_table(
        'products',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True, unique=True, index=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('compare_price', sa.Numeric(12, 2), nullable=True,
                  comment='Strike-through price, must exceed price'),
        sa.Column('inventory', sa.Integer, nullable=False, server_default='0',
                  comment='On-hand quantity'),
        sa.Column('reserved_quantity', sa.Integer, nullable=False, server_default='0',
                  comment='Quantity held by unshipped orders'),
        sa.Column('low_stock_threshold', sa.Integer, nullable=False, server_default='5'),
        sa.Column('reorder_point', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reorder_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('version', sa.Integer, nullable=False, server_default='0',
                  comment='Incremented by every stock mutation'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.CheckConstraint('inventory >= 0', name='ck_products_inventory_non_negative'),
        sa.CheckConstraint('reserved_quantity >= 0', name='ck_products_reserved_non_negative'),
        sa.CheckConstraint('reserved_quantity <= inventory', name='ck_products_reserved_within_inventory'),
        sa.CheckConstraint('compare_price IS NULL OR compare_price > price',
                           name='ck_products_compare_price_above_price'),
    )

    # Coupons
    op.create_table(
        'coupons',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('code', sa.String(50), unique=True, nullable=False, index=True,
                  comment='Unique coupon code, stored upper-case'),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='PERCENTAGE',
                  comment='PERCENTAGE, FIXED'),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('min_purchase', sa.Numeric(12, 2), nullable=True),
        sa.Column('max_discount', sa.Numeric(12, 2), nullable=True,
                  comment='Cap on discount for PERCENTAGE type'),
        sa.Column('usage_limit', sa.Integer, nullable=True),
        sa.Column('usage_per_user', sa.Integer, nullable=True),
        sa.Column('usage_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('valid_to', sa.DateTime(timezone=True), nullable=True,
                  comment='Expiry (null = never expires)'),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.CheckConstraint('discount_value > 0', name='ck_coupons_discount_value_positive'),
        sa.CheckConstraint("discount_type <> 'PERCENTAGE' OR discount_value <= 100",
                           name='ck_coupons_percentage_at_most_100'),
        sa.CheckConstraint('usage_limit IS NULL OR usage_count <= usage_limit',
                           name='ck_coupons_usage_within_limit'),
    )

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_number', sa.String(30), unique=True, nullable=False,
                  comment='ORD-YYYYMMDD-XXXXXXXX, suffix from the order id'),
        sa.Column('status', sa.String(20), nullable=False, server_default='CREATED'),
        sa.Column('customer_id', sa.String(100), nullable=True,
                  comment='Null for guest checkouts'),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(30), nullable=False),
        sa.Column('shipping_address', sa.Text, nullable=False),
        sa.Column('shipping_city', sa.String(100), nullable=False),
        sa.Column('shipping_postal_code', sa.String(20), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(12, 2), nullable=False,
                  comment='Tax rate percent applied at checkout'),
        sa.Column('coupon_id', UUID(as_uuid=True),
                  sa.ForeignKey('coupons.id', ondelete='SET NULL'), nullable=True),
        sa.Column('coupon_code', sa.String(50), nullable=True),
        sa.Column('payment_url', sa.Text, nullable=True),
        sa.Column('cancel_reason', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_orders_customer_status', 'orders', ['customer_id', 'status'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('variant_id', sa.String(100), nullable=True),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('product_sku', sa.String(100), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
    )

    op.create_table(
        'stock_reservations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True,
                  comment='Null once the order is paid'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_stock_reservation_order_product'),
    )
    op.create_index('ix_stock_reservations_status_expires', 'stock_reservations', ['status', 'expires_at'])

    # Coupon redemption ledger
    op.create_table(
        'coupon_redemptions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('coupon_id', UUID(as_uuid=True),
                  sa.ForeignKey('coupons.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('customer_id', sa.String(100), nullable=True),
        sa.Column('order_id', UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('sequence', sa.Integer, nullable=False, server_default='1'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.UniqueConstraint('coupon_id', 'customer_id', 'sequence', name='uq_coupon_redemption_slot'),
    )
    op.create_index('ix_coupon_redemptions_coupon_customer', 'coupon_redemptions', ['coupon_id', 'customer_id'])

    # Inventory alerts and log
    op.create_table(
        'inventory_alerts',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('threshold', sa.Integer, nullable=False, server_default='0'),
        sa.Column('available_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acknowledged', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('acknowledged_by', sa.String(100), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'uq_inventory_alerts_active',
        'inventory_alerts',
        ['product_id', 'kind'],
        unique=True,
        postgresql_where=sa.text('resolved_at IS NULL'),
        sqlite_where=sa.text('resolved_at IS NULL'),
    )
    op.create_index('ix_inventory_alerts_created', 'inventory_alerts', ['created_at'])

    op.create_table(
        'inventory_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, index=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('previous_qty', sa.Integer, nullable=False),
        sa.Column('new_qty', sa.Integer, nullable=False),
        sa.Column('previous_reserved', sa.Integer, nullable=False, server_default='0'),
        sa.Column('new_reserved', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reason', sa.Text, nullable=True),
        sa.Column('reference', sa.String(100), nullable=True,
                  comment='Order or reservation id'),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_inventory_logs_product_created', 'inventory_logs', ['product_id', 'created_at'])

    # Outbox
    op.create_table(
        'outbox_messages',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('topic', sa.String(100), nullable=False),
        sa.Column('payload', sa.JSON, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('attempts', sa.Integer, nullable=False, server_default='0'),
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('last_error', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_outbox_messages_status_next_attempt', 'outbox_messages', ['status', 'next_attempt_at'])

    # Store settings (single row)
    op.create_table(
        'store_settings',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('tax_rate_percent', sa.Numeric(12, 2), nullable=False),
        sa.Column('shipping_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('free_shipping_threshold', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('currency_symbol', sa.String(5), nullable=False),
        sa.Column('admin_notification_email', sa.String(255), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('store_settings')
    op.drop_index('ix_outbox_messages_status_next_attempt', table_name='outbox_messages')
    op.drop_table('outbox_messages')
    op.drop_index('ix_inventory_logs_product_created', table_name='inventory_logs')
    op.drop_table('inventory_logs')
    op.drop_index('ix_inventory_alerts_created', table_name='inventory_alerts')
    op.drop_index('uq_inventory_alerts_active', table_name='inventory_alerts')
    op.drop_table('inventory_alerts')
    op.drop_index('ix_coupon_redemptions_coupon_customer', table_name='coupon_redemptions')
    op.drop_table('coupon_redemptions')
    op.drop_index('ix_stock_reservations_status_expires', table_name='stock_reservations')
    op.drop_table('stock_reservations')
    op.drop_table('order_items')
    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_customer_status', table_name='orders')
    op.drop_table('orders')
    op.drop_table('coupons')
    op.drop_table('products')
