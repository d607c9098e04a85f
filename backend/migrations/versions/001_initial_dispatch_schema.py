"""
Alembic migration: Initial dispatch schema.

Creates customers, employees and vehicles (maintained by the CRUD screens),
orders with the optimistic concurrency version column, and the append-only
tracking_events ledger. Customers, fleet and orders carry the owning
account_id. Status and priority are plain string columns so the status
vocabulary can evolve without ALTER TYPE.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _account_column() -> sa.Column:
    return sa.Column('account_id', sa.String(length=255), nullable=False)


def _dispatch_columns() -> list[sa.Column]:
    return [
        sa.Column('last_dispatched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
    ]


def upgrade() -> None:
    """Create the dispatch tables, constraints and indexes."""
    op.create_table(
        'customers',
        *_base_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        _account_column(),
        sa.Column('address', sa.String(length=500), nullable=True),
    )
    op.create_index('ix_customers_account_id', 'customers', ['account_id'])

    op.create_table(
        'employees',
        *_base_columns(),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('position', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        *_dispatch_columns(),
        _account_column(),
    )
    op.create_index('ix_employees_account_id', 'employees', ['account_id'])

    op.create_table(
        'vehicles',
        *_base_columns(),
        sa.Column('unit_number', sa.String(length=50), nullable=False),
        sa.Column('make', sa.String(length=100), nullable=True),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('license_plate', sa.String(length=20), nullable=True, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', sa.String(length=32), nullable=False),
        *_dispatch_columns(),
        _account_column(),
    )
    op.create_index('ix_vehicles_unit_number', 'vehicles', ['unit_number'])
    op.create_index('ix_vehicles_account_id', 'vehicles', ['account_id'])

    op.create_table(
        'orders',
        *_base_columns(),
        sa.Column('order_number', sa.String(length=50), nullable=False, unique=True),
        sa.Column(
            'customer_id',
            sa.Uuid(),
            sa.ForeignKey('customers.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('customer_load_number', sa.String(length=100), nullable=True),
        sa.Column(
            'vehicle_id',
            sa.Uuid(),
            sa.ForeignKey('vehicles.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'driver_id',
            sa.Uuid(),
            sa.ForeignKey('employees.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'handler_id',
            sa.Uuid(),
            sa.ForeignKey('employees.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pickup_address', sa.String(length=500), nullable=False),
        sa.Column('pickup_postal_code', sa.String(length=10), nullable=False),
        sa.Column('delivery_address', sa.String(length=500), nullable=False),
        sa.Column('delivery_postal_code', sa.String(length=10), nullable=False),
        sa.Column('pickup_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('delivery_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('miles', sa.Float(), nullable=True),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('pieces', sa.Integer(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('load_pay', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('driver_pay', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=False),
        _account_column(),
        sa.CheckConstraint('pieces IS NULL OR pieces > 0', name='ck_orders_pieces_positive'),
        sa.CheckConstraint('weight IS NULL OR weight > 0', name='ck_orders_weight_positive'),
    )
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_account_id', 'orders', ['account_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_vehicle_status', 'orders', ['vehicle_id', 'status'])
    op.create_index('ix_orders_driver_status', 'orders', ['driver_id', 'status'])

    op.create_table(
        'tracking_events',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            'order_id',
            sa.Uuid(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('order_id', 'sequence', name='uq_tracking_events_order_sequence'),
    )
    op.create_index(
        'ix_tracking_events_order_timestamp',
        'tracking_events',
        ['order_id', 'timestamp', 'sequence'],
    )


def downgrade() -> None:
    """Drop the dispatch tables in reverse dependency order."""
    op.drop_index('ix_tracking_events_order_timestamp', table_name='tracking_events')
    op.drop_table('tracking_events')

    op.drop_index('ix_orders_driver_status', table_name='orders')
    op.drop_index('ix_orders_vehicle_status', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_account_id', table_name='orders')
    op.drop_index('ix_orders_customer_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_vehicles_account_id', table_name='vehicles')
    op.drop_index('ix_vehicles_unit_number', table_name='vehicles')
    op.drop_table('vehicles')
    op.drop_index('ix_employees_account_id', table_name='employees')
    op.drop_table('employees')
    op.drop_index('ix_customers_account_id', table_name='customers')
    op.drop_table('customers')
