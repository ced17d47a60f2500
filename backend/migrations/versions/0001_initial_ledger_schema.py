"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the aurum ledger from scratch:
- identity: users, session_tokens, system_audit_logs
- counterparties: vendors, external_shops
- stock: inventory_items, inventory_stock_logs, item_updates
- billing: sales, sale_items, sale_payments, sale_exchange_items
- balances: vendor_transactions, shop_transactions,
  shop_transaction_payments, shop_assets, general_expenses
- scrap/refinery: refinery_batches, old_metal_purchases, old_metal_items
- chits: chit_plans, chit_transactions, daily_rates
- document_sequences
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('CURRENT_TIMESTAMP')


def upgrade():
    # ============================================================================
    # identity
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])

    op.create_table(
        'system_audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('action_type', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_system_audit_logs_user_id', 'system_audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action_created', 'system_audit_logs', ['action_type', 'created_at'])

    # ============================================================================
    # counterparties
    # ============================================================================
    op.create_table(
        'vendors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=False),
        sa.Column('contact_number', sa.String(length=32), nullable=True),
        sa.Column('gst_number', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('balance_pure_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'external_shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=255), nullable=False),
        sa.Column('nick_id', sa.String(length=32), nullable=True),
        sa.Column('person_name', sa.String(length=255), nullable=True),
        sa.Column('mobile', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('balance_gold', sa.Float(), nullable=False, server_default='0'),
        sa.Column('balance_silver', sa.Float(), nullable=False, server_default='0'),
        sa.Column('balance_cash', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # stock
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('huid', sa.String(length=32), nullable=True),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('stock_type', sa.String(length=16), nullable=False, server_default='SINGLE'),
        sa.Column('gross_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('wastage_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('pure_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('making_charges', sa.Float(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='AVAILABLE'),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('source_type', sa.String(length=16), nullable=False, server_default='OWN'),
        sa.Column('vendor_id', sa.Integer(), nullable=True),
        sa.Column('neighbour_shop_id', sa.Integer(), nullable=True),
        sa.Column('image_ref', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['neighbour_shop_id'], ['external_shops.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_metal_type', 'inventory_items', ['metal_type'])
    op.create_index('ix_inventory_items_status', 'inventory_items', ['status'])
    op.create_index('ix_inventory_items_neighbour_shop_id', 'inventory_items', ['neighbour_shop_id'])
    op.create_index('ix_inventory_items_status_created', 'inventory_items', ['status', 'created_at'])
    op.create_index('ix_inventory_items_vendor', 'inventory_items', ['vendor_id'])

    op.create_table(
        'inventory_stock_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('weight_delta', sa.Float(), nullable=False, server_default='0'),
        sa.Column('quantity_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pure_weight_delta', sa.Float(), nullable=False, server_default='0'),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_stock_logs_action', 'inventory_stock_logs', ['action'])
    op.create_index('ix_inventory_stock_logs_reference', 'inventory_stock_logs', ['reference'])
    op.create_index('ix_stock_logs_item_created', 'inventory_stock_logs', ['item_id', 'created_at'])

    op.create_table(
        'item_updates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=False),
        sa.Column('update_comment', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_item_updates_item_id', 'item_updates', ['item_id'])

    # ============================================================================
    # billing
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('gross_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('discount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('taxable_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sgst_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cgst_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('round_off_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('exchange_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('final_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('is_gst_bill', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('balance_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='PARTIAL'),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_payment_status', 'sales', ['payment_status'])
    op.create_index('ix_sales_status_created', 'sales', ['payment_status', 'created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=True),
        sa.Column('stock_type', sa.String(length=16), nullable=True),
        sa.Column('sold_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sold_quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('sold_pure_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sold_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('making_charges_collected', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_item_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('neighbour_shop_id', sa.Integer(), nullable=True),
        sa.Column('debt_weight', sa.Float(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id'], ),
        sa.ForeignKeyConstraint(['neighbour_shop_id'], ['external_shops.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_item_id', 'sale_items', ['item_id'])

    op.create_table(
        'sale_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('payment_mode', sa.String(length=16), nullable=False, server_default='CASH'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_payments_sale_id', 'sale_payments', ['sale_id'])
    op.create_index('ix_sale_payments_payment_date', 'sale_payments', ['payment_date'])

    op.create_table(
        'sale_exchange_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('gross_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('less_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('less_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('net_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Float(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_exchange_items_sale_id', 'sale_exchange_items', ['sale_id'])

    # ============================================================================
    # balances and their ledgers
    # ============================================================================
    op.create_table(
        'vendor_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('pure_weight_delta', sa.Float(), nullable=False, server_default='0'),
        sa.Column('stock_pure_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('repaid_metal_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('repaid_cash_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('conversion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cash_converted_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('balance_after', sa.Float(), nullable=False, server_default='0'),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vendor_transactions_type', 'vendor_transactions', ['type'])
    op.create_index('ix_vendor_transactions_item_id', 'vendor_transactions', ['item_id'])
    op.create_index('ix_vendor_txn_vendor_created', 'vendor_transactions', ['vendor_id', 'created_at'])

    op.create_table(
        'shop_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('pure_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('silver_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cash_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('gross_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('wastage_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('making_charges', sa.Float(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('is_settled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['external_shops.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shop_txn_shop_type_settled', 'shop_transactions', ['shop_id', 'type', 'is_settled'])

    op.create_table(
        'shop_transaction_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('parent_txn_id', sa.Integer(), nullable=True),
        sa.Column('payment_mode', sa.String(length=16), nullable=False),
        sa.Column('gold_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('silver_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cash_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('metal_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('converted_metal_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['transaction_id'], ['shop_transactions.id'], ),
        sa.ForeignKeyConstraint(['parent_txn_id'], ['shop_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shop_transaction_payments_transaction_id', 'shop_transaction_payments', ['transaction_id'])
    op.create_index('ix_shop_transaction_payments_parent_txn_id', 'shop_transaction_payments', ['parent_txn_id'])

    op.create_table(
        'shop_assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cash_balance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('bank_balance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.execute("INSERT INTO shop_assets (id, cash_balance, bank_balance) VALUES (1, 0, 0)")

    op.create_table(
        'general_expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='EXPENSE'),
        sa.Column('payment_mode', sa.String(length=16), nullable=False, server_default='CASH'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_general_expenses_category', 'general_expenses', ['category'])
    op.create_index('ix_general_expenses_created_at', 'general_expenses', ['created_at'])

    # ============================================================================
    # scrap and refinery
    # ============================================================================
    op.create_table(
        'refinery_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_no', sa.String(length=32), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('gross_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('refined_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('touch', sa.Float(), nullable=False, server_default='0'),
        sa.Column('pure_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('used_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='SENT'),
        sa.Column('sent_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('received_date', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('batch_no'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_refinery_batches_status', 'refinery_batches', ['status'])

    op.create_table(
        'old_metal_purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('voucher_no', sa.String(length=64), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=False, server_default='DIRECT_PURCHASE'),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('mobile', sa.String(length=32), nullable=True),
        sa.Column('total_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('gst_deducted', sa.Float(), nullable=False, server_default='0'),
        sa.Column('net_payout', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_mode', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_old_metal_purchases_voucher_no', 'old_metal_purchases', ['voucher_no'])
    op.create_index('ix_old_metal_purchases_sale_id', 'old_metal_purchases', ['sale_id'])

    op.create_table(
        'old_metal_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('gross_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('less_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('less_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('net_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='AVAILABLE'),
        sa.Column('batch_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['purchase_id'], ['old_metal_purchases.id'], ),
        sa.ForeignKeyConstraint(['batch_id'], ['refinery_batches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_old_metal_items_purchase_id', 'old_metal_items', ['purchase_id'])
    op.create_index('ix_old_metal_items_batch_id', 'old_metal_items', ['batch_id'])
    op.create_index('ix_old_metal_items_metal_status', 'old_metal_items', ['metal_type', 'status'])

    # ============================================================================
    # chits and rates
    # ============================================================================
    op.create_table(
        'chit_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('plan_type', sa.String(length=16), nullable=False),
        sa.Column('plan_name', sa.String(length=255), nullable=False),
        sa.Column('monthly_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_chit_plans_customer_id', 'chit_plans', ['customer_id'])
    op.create_index('ix_chit_plans_status', 'chit_plans', ['status'])

    op.create_table(
        'chit_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('gold_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('gold_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('is_bonus', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['plan_id'], ['chit_plans.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_chit_transactions_plan_id', 'chit_transactions', ['plan_id'])

    op.create_table(
        'daily_rates',
        sa.Column('metal_type', sa.String(length=32), nullable=False),
        sa.Column('rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('metal_type')
    )

    # ============================================================================
    # document_sequences: barcode and batch counters
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sequence_key', sa.String(length=64), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence_key'),
        sqlite_autoincrement=True
    )


def downgrade():
    for table in (
        'document_sequences',
        'daily_rates',
        'chit_transactions',
        'chit_plans',
        'old_metal_items',
        'old_metal_purchases',
        'refinery_batches',
        'general_expenses',
        'shop_assets',
        'shop_transaction_payments',
        'shop_transactions',
        'vendor_transactions',
        'sale_exchange_items',
        'sale_payments',
        'sale_items',
        'sales',
        'item_updates',
        'inventory_stock_logs',
        'inventory_items',
        'external_shops',
        'vendors',
        'system_audit_logs',
        'session_tokens',
        'users',
    ):
        op.drop_table(table)
