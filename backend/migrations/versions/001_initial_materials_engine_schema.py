"""Initial materials engine schema

Revision ID: 001
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('materials',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('code', sa.String(length=50), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('unit', sa.String(length=20), nullable=False, server_default='EA'),
    sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_materials_id'), 'materials', ['id'], unique=False)
    op.create_index(op.f('ix_materials_code'), 'materials', ['code'], unique=True)

    op.create_table('products',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('code', sa.String(length=50), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('unit', sa.String(length=20), nullable=False, server_default='EA'),
    sa.Column('material_id', sa.Integer(), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
    op.create_index(op.f('ix_products_code'), 'products', ['code'], unique=True)
    op.create_index(op.f('ix_products_material_id'), 'products', ['material_id'], unique=True)

    op.create_table('bom_lines',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('product_id', sa.Integer(), nullable=False),
    sa.Column('material_id', sa.Integer(), nullable=False),
    sa.Column('quantity_per_unit', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('unit', sa.String(length=20), nullable=False, server_default='EA'),
    sa.Column('sequence', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.CheckConstraint('quantity_per_unit > 0', name='ck_bom_lines_quantity_positive'),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('product_id', 'material_id', name='uq_bom_lines_product_material')
    )
    op.create_index(op.f('ix_bom_lines_id'), 'bom_lines', ['id'], unique=False)
    op.create_index(op.f('ix_bom_lines_product_id'), 'bom_lines', ['product_id'], unique=False)
    op.create_index(op.f('ix_bom_lines_material_id'), 'bom_lines', ['material_id'], unique=False)

    op.create_table('work_orders',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('code', sa.String(length=50), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False, server_default='created'),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('created_by', sa.String(length=100), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_work_orders_id'), 'work_orders', ['id'], unique=False)
    op.create_index(op.f('ix_work_orders_code'), 'work_orders', ['code'], unique=True)
    op.create_index(op.f('ix_work_orders_status'), 'work_orders', ['status'], unique=False)

    op.create_table('work_order_lines',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('work_order_id', sa.Integer(), nullable=False),
    sa.Column('product_id', sa.Integer(), nullable=True),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.CheckConstraint('quantity > 0', name='ck_work_order_lines_quantity_positive'),
    sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_work_order_lines_id'), 'work_order_lines', ['id'], unique=False)
    op.create_index(op.f('ix_work_order_lines_work_order_id'), 'work_order_lines', ['work_order_id'], unique=False)
    op.create_index(op.f('ix_work_order_lines_product_id'), 'work_order_lines', ['product_id'], unique=False)

    op.create_table('inventory_locations',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('code', sa.String(length=50), nullable=False),
    sa.Column('type', sa.String(length=50), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('code')
    )
    op.create_index(op.f('ix_inventory_locations_id'), 'inventory_locations', ['id'], unique=False)

    op.create_table('inventory',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('material_id', sa.Integer(), nullable=False),
    sa.Column('location_id', sa.Integer(), nullable=False),
    sa.Column('on_hand_quantity', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('allocated_quantity', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.CheckConstraint('on_hand_quantity >= 0', name='ck_inventory_on_hand_non_negative'),
    sa.CheckConstraint('allocated_quantity >= 0', name='ck_inventory_allocated_non_negative'),
    sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ),
    sa.ForeignKeyConstraint(['location_id'], ['inventory_locations.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('material_id', 'location_id', name='uq_inventory_material_location')
    )
    op.create_index(op.f('ix_inventory_id'), 'inventory', ['id'], unique=False)
    op.create_index(op.f('ix_inventory_material_id'), 'inventory', ['material_id'], unique=False)

    op.create_table('inventory_transactions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('material_id', sa.Integer(), nullable=False),
    sa.Column('location_id', sa.Integer(), nullable=True),
    sa.Column('transaction_type', sa.String(length=50), nullable=False),
    sa.Column('reference_type', sa.String(length=50), nullable=True),
    sa.Column('reference_id', sa.Integer(), nullable=True),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('created_by', sa.String(length=100), nullable=True),
    sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ),
    sa.ForeignKeyConstraint(['location_id'], ['inventory_locations.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_inventory_transactions_id'), 'inventory_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_inventory_transactions_material_id'), 'inventory_transactions', ['material_id'], unique=False)

    op.create_table('material_reservations',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('work_order_id', sa.Integer(), nullable=False),
    sa.Column('material_id', sa.Integer(), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('consumed_quantity', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('released_quantity', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('status', sa.String(length=30), nullable=False, server_default='RESERVED'),
    sa.Column('priority', sa.String(length=20), nullable=False, server_default='NORMAL'),
    sa.Column('created_by', sa.String(length=100), nullable=False),
    sa.Column('reserved_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('released_at', sa.DateTime(), nullable=True),
    sa.Column('released_by', sa.String(length=100), nullable=True),
    sa.CheckConstraint('quantity > 0', name='ck_material_reservations_quantity_positive'),
    sa.CheckConstraint('consumed_quantity >= 0', name='ck_material_reservations_consumed_non_negative'),
    sa.CheckConstraint('released_quantity >= 0', name='ck_material_reservations_released_non_negative'),
    sa.CheckConstraint(
        'consumed_quantity + released_quantity <= quantity',
        name='ck_material_reservations_within_quantity',
    ),
    sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ),
    sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_material_reservations_id'), 'material_reservations', ['id'], unique=False)
    op.create_index(op.f('ix_material_reservations_work_order_id'), 'material_reservations', ['work_order_id'], unique=False)
    op.create_index(op.f('ix_material_reservations_material_id'), 'material_reservations', ['material_id'], unique=False)
    op.create_index(op.f('ix_material_reservations_status'), 'material_reservations', ['status'], unique=False)

    op.create_table('material_consumptions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('work_order_id', sa.Integer(), nullable=False),
    sa.Column('material_id', sa.Integer(), nullable=False),
    sa.Column('reservation_id', sa.Integer(), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('consumed_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('created_by', sa.String(length=100), nullable=False),
    sa.CheckConstraint('quantity > 0', name='ck_material_consumptions_quantity_positive'),
    sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ),
    sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ),
    sa.ForeignKeyConstraint(['reservation_id'], ['material_reservations.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_material_consumptions_id'), 'material_consumptions', ['id'], unique=False)
    op.create_index(op.f('ix_material_consumptions_work_order_id'), 'material_consumptions', ['work_order_id'], unique=False)
    op.create_index(op.f('ix_material_consumptions_material_id'), 'material_consumptions', ['material_id'], unique=False)
    op.create_index(op.f('ix_material_consumptions_reservation_id'), 'material_consumptions', ['reservation_id'], unique=False)

    op.create_table('audit_logs',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('actor', sa.String(length=100), nullable=False),
    sa.Column('action', sa.String(length=100), nullable=False),
    sa.Column('entity_type', sa.String(length=50), nullable=False),
    sa.Column('entity_id', sa.String(length=50), nullable=False),
    sa.Column('old_value', sa.JSON(), nullable=True),
    sa.Column('new_value', sa.JSON(), nullable=True),
    sa.Column('reference_id', sa.String(length=100), nullable=True),
    sa.Column('additional_data', sa.JSON(), nullable=True),
    sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_actor'), 'audit_logs', ['actor'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_timestamp'), 'audit_logs', ['timestamp'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('audit_logs')
    op.drop_table('material_consumptions')
    op.drop_table('material_reservations')
    op.drop_table('inventory_transactions')
    op.drop_table('inventory')
    op.drop_table('inventory_locations')
    op.drop_table('work_order_lines')
    op.drop_table('work_orders')
    op.drop_table('bom_lines')
    op.drop_table('products')
    op.drop_table('materials')
