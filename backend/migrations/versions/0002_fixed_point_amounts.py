"""fixed-point money and weights, invoice refs on shop rows, line returns

Revision ID: 0002_fixed_point_amounts
Revises: 0001_initial_ledger
Create Date: 2026-10-19 00:00:00.000000

- every FLOAT money / weight / percent column becomes NUMERIC
  (money 14,2; weights 12,3; chit gold 12,4; percentages 7,3)
- shop_transactions.invoice_ref: invoice a row was booked by or reversed for
- sale_items.returned_at: single-line returns
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_fixed_point_amounts'
down_revision = '0001_initial_ledger'
branch_labels = None
depends_on = None


MONEY = sa.Numeric(14, 2)
WEIGHT = sa.Numeric(12, 3)
FINE_WEIGHT = sa.Numeric(12, 4)
PERCENT = sa.Numeric(7, 3)

COLUMNS = {
    'vendors': {'balance_pure_weight': WEIGHT},
    'external_shops': {
        'balance_gold': WEIGHT,
        'balance_silver': WEIGHT,
        'balance_cash': MONEY,
    },
    'inventory_items': {
        'gross_weight': WEIGHT,
        'wastage_percent': PERCENT,
        'pure_weight': WEIGHT,
        'making_charges': MONEY,
    },
    'inventory_stock_logs': {
        'weight_delta': WEIGHT,
        'pure_weight_delta': WEIGHT,
    },
    'sales': {
        'gross_total': MONEY,
        'discount': MONEY,
        'taxable_amount': MONEY,
        'sgst_amount': MONEY,
        'cgst_amount': MONEY,
        'round_off_amount': MONEY,
        'exchange_total': MONEY,
        'final_amount': MONEY,
        'paid_amount': MONEY,
        'balance_amount': MONEY,
    },
    'sale_items': {
        'sold_weight': WEIGHT,
        'sold_pure_weight': WEIGHT,
        'sold_rate': MONEY,
        'making_charges_collected': MONEY,
        'total_item_price': MONEY,
        'debt_weight': WEIGHT,
    },
    'sale_payments': {'amount': MONEY},
    'sale_exchange_items': {
        'gross_weight': WEIGHT,
        'less_percent': PERCENT,
        'less_weight': WEIGHT,
        'net_weight': WEIGHT,
        'rate': MONEY,
        'total_amount': MONEY,
    },
    'vendor_transactions': {
        'pure_weight_delta': WEIGHT,
        'stock_pure_weight': WEIGHT,
        'repaid_metal_weight': WEIGHT,
        'repaid_cash_amount': MONEY,
        'conversion_rate': MONEY,
        'cash_converted_weight': WEIGHT,
        'balance_after': WEIGHT,
    },
    'shop_transactions': {
        'pure_weight': WEIGHT,
        'silver_weight': WEIGHT,
        'cash_amount': MONEY,
        'gross_weight': WEIGHT,
        'wastage_percent': PERCENT,
        'making_charges': MONEY,
    },
    'shop_transaction_payments': {
        'gold_weight': WEIGHT,
        'silver_weight': WEIGHT,
        'cash_amount': MONEY,
        'metal_rate': MONEY,
        'converted_metal_weight': WEIGHT,
    },
    'shop_assets': {
        'cash_balance': MONEY,
        'bank_balance': MONEY,
    },
    'general_expenses': {'amount': MONEY},
    'refinery_batches': {
        'gross_weight': WEIGHT,
        'refined_weight': WEIGHT,
        'touch': PERCENT,
        'pure_weight': WEIGHT,
        'used_weight': WEIGHT,
    },
    'old_metal_purchases': {
        'total_amount': MONEY,
        'gst_deducted': MONEY,
        'net_payout': MONEY,
    },
    'old_metal_items': {
        'gross_weight': WEIGHT,
        'less_percent': PERCENT,
        'less_weight': WEIGHT,
        'net_weight': WEIGHT,
        'rate': MONEY,
        'amount': MONEY,
    },
    'chit_plans': {'monthly_amount': MONEY},
    'chit_transactions': {
        'amount': MONEY,
        'gold_rate': MONEY,
        'gold_weight': FINE_WEIGHT,
    },
    'daily_rates': {'rate': MONEY},
}


def upgrade():
    for table, columns in COLUMNS.items():
        with op.batch_alter_table(table, schema=None) as batch_op:
            for name, numeric in columns.items():
                batch_op.alter_column(
                    name,
                    existing_type=sa.Float(),
                    type_=numeric,
                    existing_nullable=False,
                )

    with op.batch_alter_table('shop_transactions', schema=None) as batch_op:
        batch_op.add_column(sa.Column('invoice_ref', sa.String(length=64), nullable=True))
        batch_op.create_index('ix_shop_transactions_invoice_ref', ['invoice_ref'], unique=False)

    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.add_column(sa.Column('returned_at', sa.DateTime(timezone=True), nullable=True))

    # Rows booked by a bill before this revision keep their immutability
    op.execute(
        "UPDATE shop_transactions SET invoice_ref = "
        "(SELECT invoice_number FROM sales WHERE sales.id = shop_transactions.sale_id) "
        "WHERE sale_id IS NOT NULL"
    )


def downgrade():
    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.drop_column('returned_at')

    with op.batch_alter_table('shop_transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_shop_transactions_invoice_ref')
        batch_op.drop_column('invoice_ref')

    for table, columns in COLUMNS.items():
        with op.batch_alter_table(table, schema=None) as batch_op:
            for name, numeric in columns.items():
                batch_op.alter_column(
                    name,
                    existing_type=numeric,
                    type_=sa.Float(),
                    existing_nullable=False,
                )
