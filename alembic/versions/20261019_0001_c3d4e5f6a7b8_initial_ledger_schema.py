"""initial ledger and swap schema

Revision ID: c3d4e5f6a7b8
Revises:
Create Date: 2026-10-19

Creates:
  users        : identity + points_balance (CHECK >= 0)
  transactions : append-only points ledger; UNIQUE gateway order/payment ids
  items        : listed clothing, moderated pending → approved | rejected
  swap_requests: requester → owner offers; CASCADE on item delete,
                 at most one pending request per (item, requester)
  audit_logs   : admin action trail
"""
from alembic import op
import sqlalchemy as sa

revision = 'c3d4e5f6a7b8'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('points_balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('points_balance >= 0', name='ck_users_points_non_negative'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('counterparty_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'kind',
            sa.Enum('purchase', 'swap', 'refund', 'bonus', name='txn_kind'),
            nullable=False,
        ),
        sa.Column('points_amount', sa.Integer(), nullable=False),
        sa.Column('amount_inr', sa.Integer(), nullable=False, server_default='0'),
        sa.Column(
            'status',
            sa.Enum('pending', 'completed', 'failed', 'cancelled', name='txn_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column(
            'payment_method',
            sa.Enum('razorpay', 'upi', 'wallet', name='payment_method'),
            nullable=False,
            server_default='razorpay',
        ),
        sa.Column('external_order_id', sa.String(100), nullable=True, unique=True),
        sa.Column('external_payment_id', sa.String(100), nullable=True, unique=True),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('points_amount > 0', name='ck_transactions_points_positive'),
        sa.CheckConstraint('amount_inr >= 0', name='ck_transactions_amount_non_negative'),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_counterparty_id', 'transactions', ['counterparty_id'])
    op.create_index('ix_transactions_user_created', 'transactions', ['user_id', 'created_at'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])

    op.create_table(
        'items',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(150), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('size', sa.String(20), nullable=True),
        sa.Column('condition', sa.String(50), nullable=True),
        sa.Column('tags', sa.String(255), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('points_price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column(
            'status',
            sa.Enum('pending', 'approved', 'rejected', name='item_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('acquired_by_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('points_price >= 0', name='ck_items_points_price_non_negative'),
    )
    op.create_index('ix_items_owner_id', 'items', ['owner_id'])
    op.create_index('ix_items_status_available', 'items', ['status', 'is_available'])

    op.create_table(
        'swap_requests',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('item_id', sa.Uuid(), sa.ForeignKey('items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requester_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'approved', 'rejected', name='swap_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('requester_id <> owner_id', name='ck_swap_requests_not_self'),
    )
    op.create_index('ix_swap_requests_item_id', 'swap_requests', ['item_id'])
    op.create_index('ix_swap_requests_requester_id', 'swap_requests', ['requester_id'])
    op.create_index('ix_swap_requests_owner_id', 'swap_requests', ['owner_id'])
    op.create_index(
        'uq_swap_requests_pending_item_requester',
        'swap_requests',
        ['item_id', 'requester_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column('admin_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=True),
        sa.Column('target_id', sa.String(100), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_admin_id', 'audit_logs', ['admin_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_target_id', 'audit_logs', ['target_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('swap_requests')
    op.drop_table('items')
    op.drop_table('transactions')
    op.drop_table('users')

    # Postgres keeps enum types around after the tables are gone
    bind = op.get_bind()
    for enum_name in ('swap_status', 'item_status', 'payment_method', 'txn_status', 'txn_kind'):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
