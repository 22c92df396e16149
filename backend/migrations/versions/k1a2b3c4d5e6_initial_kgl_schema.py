"""initial kgl schema

Revision ID: k1a2b3c4d5e6
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete KGL schema:
- branches, document_sequences: tenant boundary and per-branch numbering
- users, session_tokens: attribution and bearer sessions
- suppliers, produce: catalog and stock (current_stock >= 0 enforced)
- procurement_orders, procurement_order_lines: stock-in
- sales, credit_sales, credit_sale_payments: stock-out and payment trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'k1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # branches: tenant boundary
    # ============================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branches_code', 'branches', ['code'], unique=True)
    op.create_index('ix_branches_is_active', 'branches', ['is_active'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'document_type', name='uq_doc_sequences_branch_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_branch_id', 'document_sequences', ['branch_id'])
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])

    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_branch_id', 'users', ['branch_id'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # suppliers / produce
    # ============================================================================
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('contact_person', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('specialization', sa.String(length=100), nullable=True),
        sa.Column('rating', sa.Numeric(3, 1), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_suppliers_name', 'suppliers', ['name'], unique=True)

    op.create_table(
        'produce',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('current_stock', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('cost_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('sale_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('minimum_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('minimum_stock', sa.Numeric(12, 3), nullable=False),
        sa.Column('maximum_stock', sa.Numeric(12, 3), nullable=True),
        sa.Column('supplier_name', sa.String(length=100), nullable=True),
        sa.Column('supplier_phone', sa.String(length=32), nullable=True),
        sa.Column('supplier_email', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('last_restocked_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('current_stock >= 0', name='ck_produce_stock_non_negative'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_produce_branch_id', 'produce', ['branch_id'])
    op.create_index('ix_produce_status', 'produce', ['status'])
    op.create_index('ix_produce_branch_name', 'produce', ['branch_id', 'name'])
    op.create_index('ix_produce_branch_status', 'produce', ['branch_id', 'status'])

    # ============================================================================
    # procurement_orders / procurement_order_lines
    # ============================================================================
    op.create_table(
        'procurement_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expected_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('received_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by_user_id', sa.Integer(), nullable=False),
        sa.Column('received_by_user_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.ForeignKeyConstraint(['recorded_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['received_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['cancelled_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'order_number', name='uq_procurement_branch_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_procurement_orders_branch_id', 'procurement_orders', ['branch_id'])
    op.create_index('ix_procurement_orders_supplier_id', 'procurement_orders', ['supplier_id'])
    op.create_index('ix_procurement_orders_status', 'procurement_orders', ['status'])
    op.create_index('ix_procurement_branch_status_created', 'procurement_orders',
                    ['branch_id', 'status', 'created_at'])

    op.create_table(
        'procurement_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('produce_id', sa.Integer(), nullable=True),
        sa.Column('produce_name', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(14, 2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['procurement_orders.id']),
        sa.ForeignKeyConstraint(['produce_id'], ['produce.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_procurement_order_lines_order_id', 'procurement_order_lines', ['order_id'])
    op.create_index('ix_procurement_order_lines_produce_id', 'procurement_order_lines', ['produce_id'])

    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('produce_id', sa.Integer(), nullable=True),
        sa.Column('produce_name', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('discount', sa.Numeric(5, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('buyer_name', sa.String(length=100), nullable=False),
        sa.Column('buyer_phone', sa.String(length=32), nullable=True),
        sa.Column('buyer_email', sa.String(length=255), nullable=True),
        sa.Column('buyer_type', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('amount_paid', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('agent_user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reversed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reversed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reversal_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['produce_id'], ['produce.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['agent_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['reversed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_branch_id', 'sales', ['branch_id'])
    op.create_index('ix_sales_produce_id', 'sales', ['produce_id'])
    op.create_index('ix_sales_agent_user_id', 'sales', ['agent_user_id'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_branch_status_date', 'sales', ['branch_id', 'status', 'sale_date'])

    # ============================================================================
    # credit_sales / credit_sale_payments
    # ============================================================================
    op.create_table(
        'credit_sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('buyer_name', sa.String(length=100), nullable=False),
        sa.Column('buyer_national_id', sa.String(length=50), nullable=False),
        sa.Column('buyer_phone', sa.String(length=32), nullable=False),
        sa.Column('buyer_email', sa.String(length=255), nullable=True),
        sa.Column('buyer_address', sa.String(length=200), nullable=True),
        sa.Column('buyer_location', sa.String(length=100), nullable=True),
        sa.Column('buyer_trust_score', sa.Integer(), nullable=False),
        sa.Column('produce_id', sa.Integer(), nullable=True),
        sa.Column('produce_name', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('outstanding_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('interest_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('grace_period_days', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('agent_user_id', sa.Integer(), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('close_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['produce_id'], ['produce.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['agent_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_credit_sales_branch_id', 'credit_sales', ['branch_id'])
    op.create_index('ix_credit_sales_buyer_national_id', 'credit_sales', ['buyer_national_id'])
    op.create_index('ix_credit_sales_produce_id', 'credit_sales', ['produce_id'])
    op.create_index('ix_credit_sales_status', 'credit_sales', ['status'])
    op.create_index('ix_credit_sales_agent_user_id', 'credit_sales', ['agent_user_id'])
    op.create_index('ix_credit_sales_branch_status_due', 'credit_sales', ['branch_id', 'status', 'due_date'])

    op.create_table(
        'credit_sale_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('credit_sale_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.String(length=200), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_by_user_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_credit_payment_positive'),
        sa.ForeignKeyConstraint(['credit_sale_id'], ['credit_sales.id']),
        sa.ForeignKeyConstraint(['recorded_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_credit_sale_payments_credit_sale_id', 'credit_sale_payments', ['credit_sale_id'])


def downgrade():
    op.drop_table('credit_sale_payments')
    op.drop_table('credit_sales')
    op.drop_table('sales')
    op.drop_table('procurement_order_lines')
    op.drop_table('procurement_orders')
    op.drop_table('produce')
    op.drop_table('suppliers')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('document_sequences')
    op.drop_table('branches')
