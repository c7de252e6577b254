"""initial purchasing schema

Revision ID: pc001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the purchasing core:
- products / suppliers: catalog consumed by purchase orders
- purchase_orders / purchase_order_lines: order header and owned lines
- inventory_batches: append-only ledger, id is the FIFO key
- document_sequences: per-kind, per-day counters for order numbers
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'pc001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # products / suppliers
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('last_purchase_price', sa.Numeric(14, 4), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_products_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_suppliers_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_suppliers_code', 'suppliers', ['code'])

    # ============================================================================
    # purchase_orders / purchase_order_lines
    # ============================================================================
    op.create_table(
        'purchase_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('poid', sa.String(length=64), nullable=False),
        sa.Column('order_number', sa.String(length=80), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('bill_number', sa.String(length=128), nullable=True),
        sa.Column('bill_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='unpaid'),
        sa.Column('transaction_type', sa.String(length=16), nullable=False, server_default='purchase'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('organization_id', sa.String(length=64), nullable=True),
        sa.Column('selected_account_ids', sa.JSON(), nullable=True),
        sa.Column('accounting_entry_type', sa.String(length=32), nullable=True),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('transaction_group_id', sa.String(length=64), nullable=True),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('completed_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='uq_purchase_orders_order_number'),
        sa.UniqueConstraint('poid', name='uq_purchase_orders_poid'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_orders_status', 'purchase_orders', ['status'])
    op.create_index('ix_purchase_orders_supplier', 'purchase_orders', ['supplier_id'])
    op.create_index('ix_purchase_orders_organization_id', 'purchase_orders', ['organization_id'])

    op.create_table(
        'purchase_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Numeric(14, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 4), nullable=False),
        sa.Column('batch_number', sa.String(length=64), nullable=True),
        sa.Column('package_quantity', sa.Integer(), nullable=True),
        sa.Column('box_quantity', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_po_lines_order', 'purchase_order_lines', ['purchase_order_id'])
    op.create_index('ix_po_lines_product', 'purchase_order_lines', ['product_id'])

    # ============================================================================
    # inventory_batches: append-only ledger (id = FIFO order)
    # ============================================================================
    op.create_table(
        'inventory_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='purchase'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('unit_price', sa.Numeric(14, 4), nullable=True),
        sa.Column('source_type', sa.String(length=32), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('source_number', sa.String(length=80), nullable=True),
        sa.Column('batch_number', sa.String(length=64), nullable=True),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_batches_product_id_seq', 'inventory_batches', ['product_id', 'id'])
    op.create_index('ix_inventory_batches_source', 'inventory_batches', ['source_type', 'source_id'])

    # ============================================================================
    # document_sequences: storage-backed order number counters
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period_key', sa.String(length=16), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', 'period_key', name='uq_doc_sequences_type_period'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])


def downgrade():
    op.drop_table('document_sequences')
    op.drop_table('inventory_batches')
    op.drop_table('purchase_order_lines')
    op.drop_table('purchase_orders')
    op.drop_table('suppliers')
    op.drop_table('products')
