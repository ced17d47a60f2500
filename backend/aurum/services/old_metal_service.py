# Overview: Service-layer operations for scrap intake; direct purchases and bill exchange mirroring.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import GeneralExpense, OldMetalItem, OldMetalPurchase
from ..models.enums import ExpenseCategory, MetalType, PaymentMode, PurchaseSource, ScrapStatus
from ..validation import (
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_number,
    parse_weight,
    round_money,
    round_weight,
)
from aurum.time_utils import time_derived_number
from .audit_service import Actor, log_action
from .balances import apply_asset_delta
from .concurrency import atomic


@dataclass(frozen=True)
class ScrapLine:
    item_name: str
    metal_type: MetalType
    gross_weight: float
    less_percent: float
    less_weight: float
    net_weight: float
    rate: float
    amount: float


def parse_scrap_line(raw: dict, index: int) -> ScrapLine:
    """
    Old-metal line as sent by the counter.

    less_weight defaults to gross x less% / 100, net_weight to gross minus
    less, and the amount to net x rate.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Scrap line {index + 1} must be an object")
    prefix = f"scrap[{index}]"

    name = optional_text(raw.get("item_name") or raw.get("name")) or "Old Metal"
    metal = parse_choice(raw.get("metal_type"), MetalType, f"{prefix}.metal_type", default=MetalType.GOLD)
    gross = parse_weight(raw.get("gross_weight"), f"{prefix}.gross_weight")
    if gross <= 0:
        raise ValidationError(f"{prefix}.gross_weight must be > 0")
    less_percent = parse_number(raw.get("less_percent"), f"{prefix}.less_percent", default=0)
    less_weight = parse_weight(
        raw.get("less_weight"), f"{prefix}.less_weight", default=round_weight(gross * less_percent / 100.0)
    )
    net = parse_weight(raw.get("net_weight"), f"{prefix}.net_weight", default=max(0.0, round_weight(gross - less_weight)))
    if net > gross:
        raise ValidationError(f"{prefix}.net_weight cannot exceed gross_weight")
    rate = parse_amount(raw.get("rate"), f"{prefix}.rate", default=0)

    amount_raw = raw.get("total") if raw.get("total") not in (None, "") else raw.get("amount")
    amount = parse_amount(amount_raw, f"{prefix}.amount", default=round_money(net * rate))

    return ScrapLine(
        item_name=name,
        metal_type=metal,
        gross_weight=gross,
        less_percent=less_percent,
        less_weight=less_weight,
        net_weight=net,
        rate=rate,
        amount=amount,
    )


def _scrap_items(session, purchase: OldMetalPurchase, lines: list[ScrapLine]) -> None:
    for line in lines:
        session.add(OldMetalItem(
            purchase_id=purchase.id,
            item_name=line.item_name,
            metal_type=line.metal_type.value,
            gross_weight=line.gross_weight,
            less_percent=line.less_percent,
            less_weight=line.less_weight,
            net_weight=line.net_weight,
            rate=line.rate,
            amount=line.amount,
            status=ScrapStatus.AVAILABLE.value,
        ))


def mirror_exchange(
    session,
    *,
    sale_id: int,
    invoice_number: str,
    customer_name: str | None,
    mobile: str | None,
    lines: list[ScrapLine],
) -> OldMetalPurchase | None:
    """
    Record bill-exchange metal as scrap intake under the invoice number.

    No money leaves the shop: the exchange value was netted off the bill.
    """
    if not lines:
        return None
    purchase = OldMetalPurchase(
        voucher_no=invoice_number,
        source=PurchaseSource.BILL_EXCHANGE.value,
        sale_id=sale_id,
        customer_name=customer_name,
        mobile=mobile,
        total_amount=round_money(sum(line.amount for line in lines)),
        gst_deducted=0,
        net_payout=0,
        payment_mode=None,
    )
    session.add(purchase)
    session.flush()
    _scrap_items(session, purchase, lines)
    session.flush()
    return purchase


def purchase(
    *,
    customer_name: str | None,
    mobile: str | None,
    items: list,
    gst_deducted=None,
    payment_mode=None,
    actor: Actor | None = None,
) -> OldMetalPurchase:
    """
    Buy scrap over the counter.

    The payout (total minus GST withheld) leaves the account selected by
    payment_mode and is booked as an OLD_METAL_PURCHASE expense.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    lines = [parse_scrap_line(raw, i) for i, raw in enumerate(items)]
    total = round_money(sum(line.amount for line in lines))
    gst = parse_amount(gst_deducted, "gst_deducted", default=0)
    if gst > total:
        raise ValidationError("gst_deducted cannot exceed the purchase total")
    payout = round_money(total - gst)
    mode = parse_choice(payment_mode, PaymentMode, "payment_mode", default=PaymentMode.CASH)

    voucher_no = time_derived_number("PUR")
    with atomic() as session:
        header = OldMetalPurchase(
            voucher_no=voucher_no,
            source=PurchaseSource.DIRECT_PURCHASE.value,
            customer_name=optional_text(customer_name),
            mobile=optional_text(mobile, max_length=32),
            total_amount=total,
            gst_deducted=gst,
            net_payout=payout,
            payment_mode=mode.value,
        )
        session.add(header)
        session.flush()
        _scrap_items(session, header, lines)

        if payout > 0:
            apply_asset_delta(session, mode, -payout)
            session.add(GeneralExpense(
                description=f"Bought Old Metal ({len(lines)} items) - Voucher {voucher_no}",
                amount=payout,
                category=ExpenseCategory.OLD_METAL_PURCHASE.value,
                payment_mode=mode.value,
            ))
        session.flush()
        purchase_id = header.id

    log_action(actor, "OLD_METAL_PURCHASE", f"Voucher {voucher_no}: {len(lines)} items, paid {payout}", purchase_id)
    return db.session.get(OldMetalPurchase, purchase_id)


def list_purchases(limit: int = 200) -> list[OldMetalPurchase]:
    return (
        db.session.query(OldMetalPurchase)
        .order_by(OldMetalPurchase.created_at.desc(), OldMetalPurchase.id.desc())
        .limit(limit)
        .all()
    )


def pending_scrap(metal_type: str | None = None) -> list[OldMetalItem]:
    """Scrap not yet sent for refining, oldest first."""
    query = db.session.query(OldMetalItem).filter(OldMetalItem.status == ScrapStatus.AVAILABLE.value)
    if metal_type:
        query = query.filter(OldMetalItem.metal_type == parse_choice(metal_type, MetalType, "metal_type").value)
    return query.order_by(OldMetalItem.id.asc()).all()
