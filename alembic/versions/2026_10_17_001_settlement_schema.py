"""Settlement schema: tables, sessions, orders, ledger and shop settings

Revision ID: 001_settlement_schema
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_settlement_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'tables',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_tables_name', 'tables', ['name'])
    op.create_index('ix_tables_status', 'tables', ['status'])
    op.create_index('ix_tables_is_active', 'tables', ['is_active'])

    op.create_table(
        'shop_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shop_name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('cover_charge', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('smac_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'table_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('table_id', sa.Uuid(), sa.ForeignKey('tables.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('covers', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('notes', sa.String(1000), nullable=True),
        sa.Column('total', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('closing_payment_method', sa.String(20), nullable=True),
        sa.Column('closing_smac_flag', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('opened_at', sa.DateTime(), nullable=False),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    )
    op.create_index('ix_table_sessions_table_id', 'table_sessions', ['table_id'])
    op.create_index('ix_table_sessions_status', 'table_sessions', ['status'])
    op.create_index('ix_table_sessions_opened_at', 'table_sessions', ['opened_at'])
    op.create_index('ix_table_sessions_closed_at', 'table_sessions', ['closed_at'])

    # At most one open session per table
    op.create_index(
        'uq_table_sessions_open_table',
        'table_sessions',
        ['table_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('table_sessions.id'), nullable=True),
        sa.Column('order_number', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.String(2000), nullable=True),
        sa.Column('total', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_orders_session_id', 'orders', ['session_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('menu_item_name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('notes', sa.String(500), nullable=True),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'session_payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('table_sessions.id'), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('smac_flag', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('paid_items', sa.JSON(), nullable=False),
    )
    op.create_index('ix_session_payments_session_id', 'session_payments', ['session_id'])
    op.create_index('ix_session_payments_payment_method', 'session_payments', ['payment_method'])
    op.create_index('ix_session_payments_paid_at', 'session_payments', ['paid_at'])

    op.create_table(
        'session_total_overrides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('table_sessions.id'), nullable=False),
        sa.Column('previous_total', sa.Numeric(10, 2), nullable=False),
        sa.Column('new_total', sa.Numeric(10, 2), nullable=False),
        sa.Column('reason', sa.String(500), nullable=False),
        sa.Column('performed_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_session_total_overrides_session_id', 'session_total_overrides', ['session_id'])
    op.create_index('ix_session_total_overrides_created_at', 'session_total_overrides', ['created_at'])


def downgrade() -> None:
    op.drop_table('session_total_overrides')
    op.drop_table('session_payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_index('uq_table_sessions_open_table', 'table_sessions')
    op.drop_table('table_sessions')
    op.drop_table('shop_settings')
    op.drop_table('tables')
