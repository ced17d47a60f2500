# Overview: Service-layer operations for billing; bill creation, payments, returns and void.

"""
Billing Service

create_bill() is one atomic scope: lock every referenced item, re-price
the bill server-side, take the payments, take stock off the shelf, book
neighbour-shop debt and mirror exchange metal into scrap intake. Any
failure rolls the whole bill back.

void_bill() is the exact inverse, replayed from what each SaleItem
recorded at sale time (sold weight/quantity/pure weight, shop debt).
return_item() replays the same inverse for one line and re-prices the
bill around what is left.

PRICING:
    taxable   = sum of line totals (already discounted; never re-applied)
    sgst/cgst = 1.5% of taxable each, GST bills only
    raw_net   = taxable + sgst + cgst - exchange total
    net       = raw_net rounded half-up to a multiple of 10
    round_off = net - raw_net
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy import delete, update

from ..extensions import db
from ..models import (
    OldMetalItem,
    OldMetalPurchase,
    Sale,
    SaleExchangeItem,
    SaleItem,
    SalePayment,
    ShopTransaction,
)
from ..models.enums import (
    ItemStatus,
    MetalType,
    PaymentMode,
    PaymentStatus,
    RestoreMode,
    ScrapStatus,
    ShopTxnType,
    SourceType,
)
from ..validation import (
    ConflictError,
    IntegrityViolation,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_int,
    parse_number,
    parse_weight,
    require_text,
    round_money,
    round_weight,
)
from aurum.time_utils import time_derived_number, utcnow
from .audit_service import Actor, log_action
from .balances import ShopAmounts, apply_asset_delta
from .concurrency import atomic, lock_for_update
from .inventory_service import lock_item, return_to_item, sell_from_item, take_ownership
from .old_metal_service import ScrapLine, mirror_exchange, parse_scrap_line
from .shop_service import post_shop_transaction

GST_RATE = 0.015

# Client and server net payable may differ by float drift, not more
PRICE_TOLERANCE = 2.0

# A balance at or below this counts as fully paid
PAID_TOLERANCE = 0.1

# Slack when checking a payment against the outstanding balance
PAYMENT_EPSILON = 0.001


@dataclass(frozen=True)
class BillTotals:
    taxable_amount: float
    sgst_amount: float
    cgst_amount: float
    exchange_total: float
    raw_net: float
    net_payable: float
    round_off_amount: float


@dataclass(frozen=True)
class BillLine:
    item_id: int | None
    item_name: str
    metal_type: MetalType | None
    gross_weight: float
    quantity: int
    rate: float
    making_charges: float
    total: float
    neighbour_id: int | None


def round_to_ten(value: float) -> float:
    """Nearest multiple of 10, halves rounded up (1235 -> 1240, -1235 -> -1230)."""
    return float(math.floor(value / 10.0 + 0.5) * 10)


def compute_bill_totals(line_totals, exchange_total: float, include_gst: bool) -> BillTotals:
    taxable = round_money(sum(line_totals))
    sgst = round_money(taxable * GST_RATE) if include_gst else 0.0
    cgst = round_money(taxable * GST_RATE) if include_gst else 0.0
    exchange_total = round_money(exchange_total)
    raw_net = round_money(taxable + sgst + cgst - exchange_total)
    net = round_to_ten(raw_net)
    return BillTotals(
        taxable_amount=taxable,
        sgst_amount=sgst,
        cgst_amount=cgst,
        exchange_total=exchange_total,
        raw_net=raw_net,
        net_payable=net,
        round_off_amount=round_money(net - raw_net),
    )


def payment_status_for(balance: float) -> PaymentStatus:
    return PaymentStatus.PAID if balance <= PAID_TOLERANCE else PaymentStatus.PARTIAL


def _parse_line(raw: dict, index: int) -> BillLine:
    if not isinstance(raw, dict):
        raise ValidationError(f"Line {index + 1} must be an object")
    prefix = f"items[{index}]"

    item_id = raw.get("item_id")
    item_id = parse_int(item_id, f"{prefix}.item_id", minimum=1) if item_id not in (None, "", 0) else None
    neighbour_id = raw.get("neighbour_id")
    neighbour_id = (
        parse_int(neighbour_id, f"{prefix}.neighbour_id", minimum=1)
        if neighbour_id not in (None, "", 0) and item_id is None
        else None
    )

    metal = raw.get("metal_type")
    return BillLine(
        item_id=item_id,
        item_name=optional_text(raw.get("item_name")) or "Item",
        metal_type=parse_choice(metal, MetalType, f"{prefix}.metal_type") if metal else None,
        gross_weight=parse_weight(raw.get("gross_weight"), f"{prefix}.gross_weight", default=0),
        quantity=parse_int(raw.get("quantity"), f"{prefix}.quantity", default=0, minimum=0),
        rate=parse_amount(raw.get("rate"), f"{prefix}.rate", default=0),
        making_charges=parse_amount(raw.get("making_charges"), f"{prefix}.making_charges", default=0),
        total=parse_amount(raw.get("total"), f"{prefix}.total"),
        neighbour_id=neighbour_id,
    )


def _book_line(session, sale: Sale, line: BillLine, items_by_id: dict) -> SaleItem:
    sold_weight, sold_quantity, sold_pure = line.gross_weight, line.quantity or 1, 0.0
    metal = line.metal_type
    stock_type = None
    debt_shop_id = None

    if line.item_id is not None:
        item = items_by_id[line.item_id]
        sold_weight, sold_quantity, sold_pure = sell_from_item(
            session, item, line.gross_weight, line.quantity, sale.invoice_number
        )
        metal = MetalType(item.metal_type)
        stock_type = item.stock_type
        if item.source_type == SourceType.NEIGHBOUR.value and item.neighbour_shop_id:
            debt_shop_id = item.neighbour_shop_id
    elif line.neighbour_id is not None:
        debt_shop_id = line.neighbour_id

    metal = metal or MetalType.GOLD
    debt_weight = round_weight(sold_weight) if debt_shop_id else 0.0

    sale_item = SaleItem(
        sale_id=sale.id,
        item_id=line.item_id,
        item_name=line.item_name,
        metal_type=metal.value,
        stock_type=stock_type,
        sold_weight=round_weight(sold_weight),
        sold_quantity=sold_quantity,
        sold_pure_weight=round_weight(sold_pure),
        sold_rate=line.rate,
        making_charges_collected=line.making_charges,
        total_item_price=line.total,
        neighbour_shop_id=debt_shop_id if debt_weight > 0 else None,
        debt_weight=debt_weight,
    )
    session.add(sale_item)

    if debt_shop_id and debt_weight > 0:
        post_shop_transaction(
            session,
            debt_shop_id,
            ShopTxnType.BORROW_ADD,
            ShopAmounts.for_metal(metal, debt_weight),
            description=f"Sold Item: {line.item_name} ({sale.invoice_number})",
            sale_id=sale.id,
            invoice_ref=sale.invoice_number,
            gross_weight=sold_weight,
        )
    return sale_item


def create_bill(
    *,
    customer: dict | None,
    items: list,
    exchange_items: list | None = None,
    totals: dict | None = None,
    include_gst: bool = False,
    actor: Actor | None = None,
) -> Sale:
    """
    Create and settle a bill in one scope.

    Raises ConflictError when any referenced item is no longer available,
    IntegrityViolation when the client's net payable is off by more than
    the tolerance, ValidationError for malformed input.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Bill must have at least one item")
    customer = customer or {}
    totals = totals or {}

    lines = [_parse_line(raw, i) for i, raw in enumerate(items)]
    scrap: list[ScrapLine] = [parse_scrap_line(raw, i) for i, raw in enumerate(exchange_items or [])]

    client_net = parse_number(totals.get("net_payable"), "totals.net_payable", allow_negative=True)
    cash = parse_amount(totals.get("cash_received"), "totals.cash_received", default=0)
    online = parse_amount(totals.get("online_received"), "totals.online_received", default=0)
    online_mode = parse_choice(totals.get("online_mode"), PaymentMode, "totals.online_mode", default=PaymentMode.ONLINE)
    if online_mode == PaymentMode.CASH:
        raise ValidationError("totals.online_mode cannot be CASH")

    invoice_number = time_derived_number("INV")

    with atomic() as session:
        # Lock in id order so concurrent bills touching the same items cannot deadlock
        items_by_id = {
            item_id: lock_item(session, item_id)
            for item_id in sorted({line.item_id for line in lines if line.item_id is not None})
        }
        for item in items_by_id.values():
            if item.is_deleted or item.status != ItemStatus.AVAILABLE.value:
                raise ConflictError(
                    f"Item {item.barcode} is no longer available",
                    details={"item_id": item.id, "status": item.status},
                )

        bill = compute_bill_totals(
            [line.total for line in lines],
            sum(line.amount for line in scrap),
            include_gst,
        )
        if abs(bill.net_payable - client_net) > PRICE_TOLERANCE:
            raise IntegrityViolation(
                "Bill total mismatch: server computed a different net payable",
                details={"server_net_payable": bill.net_payable, "client_net_payable": client_net},
            )
        if bill.net_payable < 0:
            raise ValidationError("Exchange value exceeds the bill; record it as an old-metal purchase")

        paid = round_money(cash + online)
        if paid > bill.net_payable + PAID_TOLERANCE:
            raise ValidationError(
                "Payment exceeds the bill amount",
                details={"final_amount": bill.net_payable, "paid": paid},
            )
        balance = round_money(bill.net_payable - paid)

        sale = Sale(
            invoice_number=invoice_number,
            customer_name=optional_text(customer.get("name")),
            customer_phone=optional_text(customer.get("phone"), max_length=32),
            gross_total=parse_amount(totals.get("gross_total"), "totals.gross_total", default=bill.taxable_amount),
            discount=parse_amount(totals.get("discount"), "totals.discount", default=0),
            taxable_amount=bill.taxable_amount,
            sgst_amount=bill.sgst_amount,
            cgst_amount=bill.cgst_amount,
            round_off_amount=bill.round_off_amount,
            exchange_total=bill.exchange_total,
            final_amount=bill.net_payable,
            is_gst_bill=bool(include_gst),
            paid_amount=paid,
            balance_amount=balance,
            payment_status=payment_status_for(balance).value,
            last_payment_date=utcnow() if paid > 0 else None,
            created_by_user_id=actor.user_id if actor else None,
        )
        session.add(sale)
        session.flush()

        for mode, amount in ((PaymentMode.CASH, cash), (online_mode, online)):
            if amount > 0:
                session.add(SalePayment(
                    sale_id=sale.id,
                    amount=amount,
                    payment_mode=mode.value,
                    note="At billing",
                ))
                apply_asset_delta(session, mode, amount)

        for line in lines:
            _book_line(session, sale, line, items_by_id)

        for line in scrap:
            session.add(SaleExchangeItem(
                sale_id=sale.id,
                item_name=line.item_name,
                metal_type=line.metal_type.value,
                gross_weight=line.gross_weight,
                less_percent=line.less_percent,
                less_weight=line.less_weight,
                net_weight=line.net_weight,
                rate=line.rate,
                total_amount=line.amount,
            ))
        mirror_exchange(
            session,
            sale_id=sale.id,
            invoice_number=invoice_number,
            customer_name=sale.customer_name,
            mobile=sale.customer_phone,
            lines=scrap,
        )
        session.flush()
        sale_id = sale.id
        final_amount = sale.final_amount

    log_action(actor, "BILL_CREATE", f"Invoice {invoice_number} for {final_amount:.2f}", invoice_number)
    return db.session.get(Sale, sale_id)


def add_payment(
    sale_id: int,
    amount,
    payment_mode=None,
    note: str | None = None,
    actor: Actor | None = None,
) -> Sale:
    """Take a later payment against an outstanding bill."""
    amount = parse_amount(amount, "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    mode = parse_choice(payment_mode, PaymentMode, "payment_mode", default=PaymentMode.CASH)

    with atomic() as session:
        sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Bill not found")
        if amount > (sale.balance_amount or 0) + PAYMENT_EPSILON:
            raise ConflictError(
                "Amount exceeds balance",
                details={"balance_amount": sale.balance_amount, "amount": amount},
            )

        session.add(SalePayment(
            sale_id=sale.id,
            amount=amount,
            payment_mode=mode.value,
            note=optional_text(note),
        ))
        apply_asset_delta(session, mode, amount)

        sale.paid_amount = round_money((sale.paid_amount or 0) + amount)
        sale.balance_amount = round_money(sale.final_amount - sale.paid_amount)
        sale.payment_status = payment_status_for(sale.balance_amount).value
        sale.last_payment_date = utcnow()
        session.flush()
        invoice_number = sale.invoice_number
        new_balance = sale.balance_amount

    log_action(
        actor,
        "BILL_PAYMENT",
        f"Payment {amount:.2f} ({mode.value}) on {invoice_number}, balance {new_balance:.2f}",
        invoice_number,
    )
    return db.session.get(Sale, sale_id)


def _reverse_line(
    session,
    line: SaleItem,
    item,
    restore_mode: RestoreMode,
    invoice_number: str,
    label: str,
) -> None:
    """Put one billed line's stock back and settle the shop debt it booked."""
    if item is not None:
        return_to_item(
            session, item,
            line.sold_weight, line.sold_quantity, line.sold_pure_weight,
            invoice_number,
        )

    if line.neighbour_shop_id and line.debt_weight > 0:
        if restore_mode == RestoreMode.TAKE_OWNERSHIP and item is not None:
            take_ownership(session, item, invoice_number)
        else:
            post_shop_transaction(
                session,
                line.neighbour_shop_id,
                ShopTxnType.BORROW_REPAY,
                ShopAmounts.for_metal(line.metal_type or MetalType.GOLD, line.debt_weight),
                description=f"{label} {invoice_number}: {line.item_name}",
                invoice_ref=invoice_number,
                gross_weight=line.sold_weight,
            )


def void_bill(sale_id: int, restore_mode=None, actor: Actor | None = None) -> dict:
    """
    Void a bill and put everything back.

    DEFAULT gives neighbour-shop metal back (BORROW_REPAY of exactly the
    debt booked at sale time). TAKE_OWNERSHIP keeps the debt and turns
    the neighbour's item into our own stock; manual neighbour lines have
    no item to take, so their debt is always reversed. Lines already
    returned on their own were reversed at the time and are skipped.
    """
    restore_mode = parse_choice(restore_mode, RestoreMode, "restore_mode", default=RestoreMode.DEFAULT)

    with atomic() as session:
        sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Bill not found")
        invoice_number = sale.invoice_number

        lines = (
            session.query(SaleItem)
            .filter(SaleItem.sale_id == sale.id, SaleItem.returned_at.is_(None))
            .order_by(SaleItem.id.asc())
            .all()
        )
        items_by_id = {
            item_id: lock_item(session, item_id)
            for item_id in sorted({line.item_id for line in lines if line.item_id is not None})
        }

        purchase_ids = [
            pid for (pid,) in session.query(OldMetalPurchase.id).filter_by(sale_id=sale.id).all()
        ]
        if purchase_ids:
            processed = (
                session.query(OldMetalItem.id)
                .filter(
                    OldMetalItem.purchase_id.in_(purchase_ids),
                    OldMetalItem.status != ScrapStatus.AVAILABLE.value,
                )
                .first()
            )
            if processed:
                raise ConflictError("Cannot void: exchanged metal from this bill is already with the refinery")

        for line in lines:
            item = items_by_id.get(line.item_id) if line.item_id is not None else None
            _reverse_line(session, line, item, restore_mode, invoice_number, "Void")

        # Refunds from earlier line returns are negative rows and net out here
        payments = session.query(SalePayment).filter_by(sale_id=sale.id).all()
        refunded = 0.0
        for payment in payments:
            apply_asset_delta(session, PaymentMode(payment.payment_mode), -payment.amount)
            refunded += payment.amount

        session.execute(
            update(ShopTransaction)
            .where(ShopTransaction.sale_id == sale.id)
            .values(sale_id=None)
            .execution_options(synchronize_session="fetch")
        )
        if purchase_ids:
            session.execute(delete(OldMetalItem).where(OldMetalItem.purchase_id.in_(purchase_ids)))
            session.execute(delete(OldMetalPurchase).where(OldMetalPurchase.id.in_(purchase_ids)))
        session.execute(delete(SaleExchangeItem).where(SaleExchangeItem.sale_id == sale.id))
        session.execute(delete(SalePayment).where(SalePayment.sale_id == sale.id))
        session.execute(delete(SaleItem).where(SaleItem.sale_id == sale.id))
        session.execute(delete(Sale).where(Sale.id == sale.id))

    log_action(
        actor,
        "BILL_VOID",
        f"Voided {invoice_number} ({restore_mode.value}), refunded {refunded:.2f}",
        invoice_number,
    )
    return {
        "invoice_number": invoice_number,
        "restore_mode": restore_mode.value,
        "items_restored": len(items_by_id),
        "refunded": round_money(refunded),
    }


def return_item(
    sale_item_id: int,
    restore_mode=None,
    refund_mode=None,
    actor: Actor | None = None,
) -> dict:
    """
    Take one billed line back and keep the rest of the bill.

    The line's stock and shop debt are reversed the way a void would do
    it, and the bill is re-priced without the line. Money the customer
    paid beyond the new total is refunded from `refund_mode` (CASH by
    default) as a negative payment row, so paid + balance == final holds.
    """
    restore_mode = parse_choice(restore_mode, RestoreMode, "restore_mode", default=RestoreMode.DEFAULT)
    refund_mode = parse_choice(refund_mode, PaymentMode, "refund_mode", default=PaymentMode.CASH)

    with atomic() as session:
        sale_id = session.query(SaleItem.sale_id).filter_by(id=sale_item_id).scalar()
        if sale_id is None:
            raise NotFoundError("Bill line not found")
        sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
        line = session.get(SaleItem, sale_item_id)
        if line.returned_at is not None:
            raise ConflictError("Line has already been returned", details={"sale_item_id": line.id})

        item = lock_item(session, line.item_id) if line.item_id is not None else None
        invoice_number = sale.invoice_number
        _reverse_line(session, line, item, restore_mode, invoice_number, "Return")
        line.returned_at = utcnow()
        session.flush()

        kept = (
            session.query(SaleItem.total_item_price)
            .filter(SaleItem.sale_id == sale.id, SaleItem.returned_at.is_(None))
            .all()
        )
        bill = compute_bill_totals([total for (total,) in kept], sale.exchange_total or 0, sale.is_gst_bill)
        if bill.net_payable < 0:
            raise ConflictError("Exchange value would exceed what is left of the bill; void the bill instead")

        refund = round_money(max(0.0, (sale.paid_amount or 0) - bill.net_payable))
        if refund > 0:
            session.add(SalePayment(
                sale_id=sale.id,
                amount=-refund,
                payment_mode=refund_mode.value,
                note=f"Refund: returned {line.item_name}",
            ))
            apply_asset_delta(session, refund_mode, -refund)

        sale.taxable_amount = bill.taxable_amount
        sale.sgst_amount = bill.sgst_amount
        sale.cgst_amount = bill.cgst_amount
        sale.round_off_amount = bill.round_off_amount
        sale.final_amount = bill.net_payable
        sale.paid_amount = round_money((sale.paid_amount or 0) - refund)
        sale.balance_amount = round_money(sale.final_amount - sale.paid_amount)
        sale.payment_status = payment_status_for(sale.balance_amount).value
        session.flush()

        result = {
            "invoice_number": invoice_number,
            "sale_id": sale.id,
            "sale_item_id": line.id,
            "restore_mode": restore_mode.value,
            "refunded": refund,
            "final_amount": sale.final_amount,
            "balance_amount": sale.balance_amount,
            "payment_status": sale.payment_status,
        }
        item_name = line.item_name

    log_action(
        actor,
        "BILL_RETURN",
        f"Returned {item_name} from {invoice_number}, refunded {result['refunded']:.2f}",
        invoice_number,
    )
    return result


def get_invoice(invoice_number: str) -> dict:
    invoice_number = require_text(invoice_number, "invoice_number", max_length=64)
    sale = db.session.query(Sale).filter_by(invoice_number=invoice_number).first()
    if not sale:
        raise NotFoundError("Invoice not found")
    return {
        "sale": sale.to_dict(),
        "items": [line.to_dict() for line in sale.items],
        "payments": [payment.to_dict() for payment in sale.payments],
        "exchange_items": [row.to_dict() for row in sale.exchange_items],
    }


def list_payments(sale_id: int) -> list[SalePayment]:
    if not db.session.get(Sale, sale_id):
        raise NotFoundError("Bill not found")
    return (
        db.session.query(SalePayment)
        .filter_by(sale_id=sale_id)
        .order_by(SalePayment.payment_date.desc(), SalePayment.id.desc())
        .all()
    )
