# Overview: Service-layer operations for vendors; metal-on-credit balances and their ledger.

"""
Vendor Service

A vendor's balance_pure_weight is how much fine metal the shop owes
them. Every change goes through post_vendor_delta(), which locks the
vendor row, applies the exact signed delta and appends a
VendorTransaction carrying that delta and the resulting balance. The
ledger can therefore be replayed: the deltas sum to the balance and the
newest balance_after equals it.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Vendor, VendorTransaction
from ..models.enums import PaymentMode, VendorTxnType
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_number,
    parse_weight,
    require_text,
    round_weight,
)
from .audit_service import Actor, log_action
from .balances import apply_asset_delta
from .concurrency import atomic, lock_for_update

# Replayed ledger and running balance may drift by float rounding only
LEDGER_TOLERANCE = 0.001


def create_vendor(
    business_name: str,
    contact_number: str | None = None,
    gst_number: str | None = None,
    address: str | None = None,
    actor: Actor | None = None,
) -> Vendor:
    business_name = require_text(business_name, "business_name")
    with atomic() as session:
        vendor = Vendor(
            business_name=business_name,
            contact_number=optional_text(contact_number, max_length=32),
            gst_number=optional_text(gst_number, max_length=32),
            address=optional_text(address, max_length=2000),
            balance_pure_weight=0,
        )
        session.add(vendor)
        session.flush()
        vendor_id = vendor.id

    log_action(actor, "VENDOR_CREATE", f"Created vendor {business_name}", vendor_id)
    return db.session.get(Vendor, vendor_id)


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def list_vendors(search: str | None = None) -> list[Vendor]:
    query = db.session.query(Vendor)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(Vendor.business_name.ilike(pattern) | Vendor.contact_number.ilike(pattern))
    return query.order_by(Vendor.business_name.asc()).all()


def post_vendor_delta(
    session,
    vendor_id: int,
    txn_type: VendorTxnType,
    delta: float,
    *,
    description: str | None = None,
    item_id: int | None = None,
    **fields,
) -> VendorTransaction:
    """
    Move a vendor balance by `delta` grams of fine metal.

    Must run inside the caller's atomic() scope. Extra keyword fields
    (stock_pure_weight, repaid_metal_weight, ...) are stored on the
    ledger row as-is.
    """
    vendor = lock_for_update(session.query(Vendor).filter_by(id=vendor_id)).first()
    if not vendor:
        raise NotFoundError(f"Vendor {vendor_id} not found")

    delta = round_weight(delta)
    vendor.balance_pure_weight = round_weight((vendor.balance_pure_weight or 0) + delta)

    txn = VendorTransaction(
        vendor_id=vendor.id,
        type=VendorTxnType(txn_type).value,
        pure_weight_delta=delta,
        balance_after=vendor.balance_pure_weight,
        item_id=item_id,
        description=description,
        **fields,
    )
    session.add(txn)
    session.flush()
    return txn


def record_transaction(
    vendor_id: int,
    txn_type,
    *,
    metal_weight=None,
    cash_amount=None,
    conversion_rate=None,
    payment_mode=None,
    description: str | None = None,
    actor: Actor | None = None,
) -> VendorTransaction:
    """
    Manual vendor entry.

    STOCK_ADDED adds metal owed. REPAYMENT removes metal returned plus
    cash converted at conversion_rate (grams = cash / rate); the cash
    leaves the account selected by payment_mode.
    """
    txn_type = parse_choice(txn_type, VendorTxnType, "type")
    if txn_type not in (VendorTxnType.STOCK_ADDED, VendorTxnType.REPAYMENT):
        raise ValidationError("Manual vendor transactions must be STOCK_ADDED or REPAYMENT")

    metal = parse_weight(metal_weight, "metal_weight", default=0)
    cash = parse_amount(cash_amount, "cash_amount", default=0)
    rate = parse_number(conversion_rate, "conversion_rate", default=0)
    mode = parse_choice(payment_mode, PaymentMode, "payment_mode", default=PaymentMode.CASH)

    if txn_type == VendorTxnType.STOCK_ADDED:
        if metal <= 0:
            raise ValidationError("metal_weight must be > 0 for STOCK_ADDED")
        delta = metal
        fields = {"stock_pure_weight": metal}
    else:
        if cash > 0 and rate <= 0:
            raise ValidationError("conversion_rate must be > 0 when repaying with cash")
        converted = round_weight(cash / rate) if cash > 0 else 0.0
        if metal <= 0 and converted <= 0:
            raise ValidationError("REPAYMENT needs metal_weight or cash_amount")
        delta = -(metal + converted)
        fields = {
            "repaid_metal_weight": metal,
            "repaid_cash_amount": cash,
            "conversion_rate": rate,
            "cash_converted_weight": converted,
        }

    with atomic() as session:
        txn = post_vendor_delta(
            session,
            vendor_id,
            txn_type,
            delta,
            description=optional_text(description),
            **fields,
        )
        if txn_type == VendorTxnType.REPAYMENT and cash > 0:
            apply_asset_delta(session, mode, -cash)
        txn_id = txn.id
        new_balance = txn.balance_after

    log_action(
        actor,
        "VENDOR_TXN",
        f"Vendor {vendor_id} {txn_type.value} {delta:+.3f}g, balance {new_balance:.3f}g",
        txn_id,
    )
    return db.session.get(VendorTransaction, txn_id)


def list_transactions(vendor_id: int) -> list[VendorTransaction]:
    get_vendor(vendor_id)
    return (
        db.session.query(VendorTransaction)
        .filter_by(vendor_id=vendor_id)
        .order_by(VendorTransaction.id.desc())
        .all()
    )


def verify_vendor_balance(vendor_id: int) -> dict:
    """Replay a vendor's ledger and compare it with the running balance."""
    vendor = get_vendor(vendor_id)
    rows = (
        db.session.query(VendorTransaction)
        .filter_by(vendor_id=vendor_id)
        .order_by(VendorTransaction.id.asc())
        .all()
    )
    ledger_sum = round_weight(sum(row.pure_weight_delta or 0 for row in rows))
    last_balance_after = rows[-1].balance_after if rows else 0.0
    balance = vendor.balance_pure_weight or 0

    return {
        "vendor_id": vendor.id,
        "balance_pure_weight": balance,
        "ledger_sum": ledger_sum,
        "last_balance_after": last_balance_after,
        "transaction_count": len(rows),
        "consistent": (
            abs(ledger_sum - balance) <= LEDGER_TOLERANCE
            and abs(last_balance_after - balance) <= LEDGER_TOLERANCE
        ),
    }
