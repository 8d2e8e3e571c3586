"""initial bakery schema: authz, catalog, orders, events, audit

Revision ID: 0001_initial_bakery
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_bakery'
down_revision = None
branch_labels = None
depends_on = None

STATUSES = [(1, 'pending'), (2, 'confirmed'), (3, 'closed'), (4, 'cancelled')]


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def _one_product(*columns):
    return ' + '.join(f'(CASE WHEN {c} IS NULL THEN 0 ELSE 1 END)' for c in columns) + ' = 1'


def _header_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('delivery_type', sa.String(length=32), nullable=False),
        sa.Column('delivery_address', sa.String(length=255)),
        sa.Column('notes', sa.Text()),
        sa.Column('item_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('final_total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status_id', sa.Integer(), sa.ForeignKey('statuses.id'), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    ]


def upgrade():
    # --- authorization ---
    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('module', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('slug', sa.String(length=130), nullable=False, unique=True),
        *_timestamps()
    )
    op.create_index('ix_permissions_module', 'permissions', ['module'])
    op.create_index('ix_permissions_slug', 'permissions', ['slug'])

    op.create_table('groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.String(length=255)),
        *_timestamps()
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps()
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('group_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id'), nullable=False),
        sa.UniqueConstraint('group_id', 'permission_id', name='uq_group_permission'),
    )
    op.create_index('ix_group_permissions_group_id', 'group_permissions', ['group_id'])
    op.create_index('ix_group_permissions_permission_id', 'group_permissions', ['permission_id'])

    op.create_table('user_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id'), nullable=False),
        sa.UniqueConstraint('user_id', 'group_id', name='uq_user_group'),
    )
    op.create_index('ix_user_groups_user_id', 'user_groups', ['user_id'])
    op.create_index('ix_user_groups_group_id', 'user_groups', ['group_id'])

    op.create_table('user_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id'), nullable=False),
        sa.UniqueConstraint('user_id', 'permission_id', name='uq_user_permission'),
    )
    op.create_index('ix_user_permissions_user_id', 'user_permissions', ['user_id'])
    op.create_index('ix_user_permissions_permission_id', 'user_permissions', ['permission_id'])

    # --- statuses ---
    statuses = op.create_table('statuses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('label', sa.String(length=32), nullable=False, unique=True),
    )
    op.bulk_insert(statuses, [{'id': i, 'label': label} for i, label in STATUSES])

    # --- catalog ---
    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('address', sa.String(length=255)),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])
    for table in ('cakes', 'trays'):
        op.create_table(table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        )
    op.create_table('rentable_articles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=64)),
        sa.Column('reusable', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('stock_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_available', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('rental_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.CheckConstraint('stock_available >= 0 AND stock_available <= stock_total', name='ck_article_stock_bounds'),
    )

    # --- orders / events ---
    op.create_table('orders', *_header_columns())
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_status_id', 'orders', ['status_id'])
    op.create_table('order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('cake_id', sa.Integer(), sa.ForeignKey('cakes.id')),
        sa.Column('tray_id', sa.Integer(), sa.ForeignKey('trays.id')),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint(_one_product('cake_id', 'tray_id'), name='ck_order_item_one_product'),
        sa.CheckConstraint('quantity > 0', name='ck_order_item_quantity'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table('events', *_header_columns())
    op.create_index('ix_events_customer_id', 'events', ['customer_id'])
    op.create_index('ix_events_status_id', 'events', ['status_id'])
    op.create_table('event_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('cake_id', sa.Integer(), sa.ForeignKey('cakes.id')),
        sa.Column('tray_id', sa.Integer(), sa.ForeignKey('trays.id')),
        sa.Column('article_id', sa.Integer(), sa.ForeignKey('rentable_articles.id')),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint(_one_product('cake_id', 'tray_id', 'article_id'), name='ck_event_item_one_product'),
        sa.CheckConstraint('quantity > 0', name='ck_event_item_quantity'),
    )
    op.create_index('ix_event_items_event_id', 'event_items', ['event_id'])
    op.create_index('ix_event_items_article_id', 'event_items', ['article_id'])

    # --- audit ---
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for table in (
        'audit_logs', 'event_items', 'events', 'order_items', 'orders',
        'rentable_articles', 'trays', 'cakes', 'customers', 'statuses',
        'user_permissions', 'user_groups', 'group_permissions', 'users', 'groups', 'permissions',
    ):
        op.drop_table(table)
