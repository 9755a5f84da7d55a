"""initial billing schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete backspace schema from scratch:
- customers, resources, inventory_items: master data
- active_sessions, inventory_consumptions: open sessions only
- invoices, invoice_lines, payments: billing documents (with session snapshot)
- subscriptions: prepaid plans
- app_settings: single settings document
- operation_records, document_sequences: activity log and numbering
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('human_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('customer_type', sa.String(length=16), nullable=False, server_default='visitor'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sessions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('total_sessions >= 0', name='ck_customers_total_sessions'),
        sa.CheckConstraint('total_spent >= 0', name='ck_customers_total_spent'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('human_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_human_id', 'customers', ['human_id'])
    op.create_index('ix_customers_name_phone', 'customers', ['name', 'phone'])
    op.create_index('ix_customers_created_at', 'customers', ['created_at'])

    # ============================================================================
    # resources
    # ============================================================================
    op.create_table(
        'resources',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('resource_type', sa.String(length=32), nullable=False),
        sa.Column('rate_per_hour', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('rate_per_hour >= 0', name='ck_resources_rate'),
        sa.CheckConstraint('max_price >= 0', name='ck_resources_max_price'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_resources_is_available', 'resources', ['is_available'])

    # ============================================================================
    # inventory_items
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='other'),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_items_quantity'),
        sa.CheckConstraint('min_stock >= 0', name='ck_inventory_items_min_stock'),
        sa.CheckConstraint('price >= 0', name='ck_inventory_items_price'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_name', 'inventory_items', ['name'])

    # ============================================================================
    # active_sessions: rows exist only while a session is open
    # ============================================================================
    op.create_table(
        'active_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('resource_name', sa.String(length=120), nullable=False),
        sa.Column('resource_rate', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('resource_max_price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_subscribed', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('resource_rate >= 0', name='ck_active_sessions_rate'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        # One open session per resource
        sa.UniqueConstraint('resource_id', name='uq_active_sessions_resource'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_active_sessions_customer_id', 'active_sessions', ['customer_id'])

    op.create_table(
        'inventory_consumptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('inventory_item_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_inventory_consumptions_quantity'),
        sa.CheckConstraint('price >= 0', name='ck_inventory_consumptions_price'),
        sa.ForeignKeyConstraint(['session_id'], ['active_sessions.id'], ),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_consumptions_session_id', 'inventory_consumptions', ['session_id'])
    op.create_index('ix_inventory_consumptions_inventory_item_id', 'inventory_consumptions', ['inventory_item_id'])
    op.create_index('ix_inventory_consumptions_session_item', 'inventory_consumptions',
                    ['session_id', 'inventory_item_id'])

    # ============================================================================
    # invoices, invoice_lines, payments
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('invoice_type', sa.String(length=16), nullable=False, server_default='sale'),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='unpaid'),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        # Session snapshot (sale invoices that closed a session)
        sa.Column('session_ref', sa.Integer(), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('resource_name', sa.String(length=120), nullable=True),
        sa.Column('session_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('session_ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('total >= 0', name='ck_invoices_total'),
        sa.CheckConstraint('paid_amount >= 0', name='ck_invoices_paid_amount'),
        sa.CheckConstraint('paid_amount <= total', name='ck_invoices_paid_not_over_total'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_invoice_type', 'invoices', ['invoice_type'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_session_ref', 'invoices', ['session_ref'])
    op.create_index('ix_invoices_resource_id', 'invoices', ['resource_id'])
    op.create_index('ix_invoices_customer_status', 'invoices', ['customer_id', 'status'])
    op.create_index('ix_invoices_created', 'invoices', ['created_at'])

    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('rate', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('inventory_item_id', sa.Integer(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_invoice_lines_quantity'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])
    op.create_index('ix_invoice_lines_kind', 'invoice_lines', ['kind'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('bulk_reference', sa.String(length=64), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])
    op.create_index('ix_payments_bulk_reference', 'payments', ['bulk_reference'])
    op.create_index('ix_payments_occurred', 'payments', ['occurred_at'])

    # ============================================================================
    # subscriptions
    # ============================================================================
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('plan_type', sa.String(length=16), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('price >= 0', name='ck_subscriptions_price'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_subscriptions_customer_id', 'subscriptions', ['customer_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_customer_status', 'subscriptions', ['customer_id', 'status'])

    # ============================================================================
    # app_settings, operation_records, document_sequences
    # ============================================================================
    op.create_table(
        'app_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('value_json', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'operation_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('operation_type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('session_ref', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_operation_records_operation_type', 'operation_records', ['operation_type'])
    op.create_index('ix_operation_records_customer_id', 'operation_records', ['customer_id'])
    op.create_index('ix_operation_records_resource_id', 'operation_records', ['resource_id'])
    op.create_index('ix_operation_records_invoice_id', 'operation_records', ['invoice_id'])
    op.create_index('ix_operation_records_occurred_at', 'operation_records', ['occurred_at'])
    op.create_index('ix_operation_records_type_occurred', 'operation_records',
                    ['operation_type', 'occurred_at'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])


def downgrade():
    op.drop_table('document_sequences')
    op.drop_table('operation_records')
    op.drop_table('app_settings')
    op.drop_table('subscriptions')
    op.drop_table('payments')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('inventory_consumptions')
    op.drop_table('active_sessions')
    op.drop_table('inventory_items')
    op.drop_table('resources')
    op.drop_table('customers')
