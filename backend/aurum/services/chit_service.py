# Overview: Service-layer operations for customer savings plans (chits).

"""
Chit Service

AMOUNT plans collect rupees; a bonus instalment (worth one monthly
amount, no cash moved) matures them. GOLD plans convert each instalment
to fine gold at the current 'GOLD 999' daily rate, frozen on the
payment row so later rate changes never revalue history.

Every real instalment lands in the cash drawer.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import ChitPayment, ChitPlan, DailyRate
from ..models.enums import ChitPlanType, ChitStatus, PaymentMode
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_int,
    require_text,
    round_money,
)
from aurum.time_utils import utcnow
from .audit_service import Actor, log_action
from .balances import apply_asset_delta
from .concurrency import atomic, lock_for_update

GOLD_RATE_KEY = "GOLD 999"

GOLD_WEIGHT_PLACES = 4


def _lock_plan(session, plan_id: int) -> ChitPlan:
    plan = lock_for_update(session.query(ChitPlan).filter_by(id=plan_id)).first()
    if not plan:
        raise NotFoundError(f"Chit plan {plan_id} not found")
    return plan


def create_plan(
    *,
    customer_id=None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    plan_type=None,
    plan_name: str | None = None,
    monthly_amount=None,
    actor: Actor | None = None,
) -> ChitPlan:
    plan_type = parse_choice(plan_type, ChitPlanType, "plan_type")
    monthly = parse_amount(monthly_amount, "monthly_amount", default=0)
    if plan_type == ChitPlanType.AMOUNT and monthly <= 0:
        raise ValidationError("monthly_amount must be > 0 for AMOUNT plans")
    customer_id = parse_int(customer_id, "customer_id", minimum=1) if customer_id not in (None, "") else None
    if customer_id is None and not (customer_name or "").strip():
        raise ValidationError("customer_id or customer_name is required")

    with atomic() as session:
        plan = ChitPlan(
            customer_id=customer_id,
            customer_name=optional_text(customer_name),
            customer_phone=optional_text(customer_phone, max_length=32),
            plan_type=plan_type.value,
            plan_name=require_text(plan_name or f"{plan_type.value.title()} Plan", "plan_name"),
            monthly_amount=monthly,
            status=ChitStatus.ACTIVE.value,
        )
        session.add(plan)
        session.flush()
        plan_id = plan.id

    log_action(actor, "CHIT_CREATE", f"{plan_type.value} plan {plan_id} opened", plan_id)
    return db.session.get(ChitPlan, plan_id)


def current_gold_rate(session) -> float:
    rate = session.get(DailyRate, GOLD_RATE_KEY)
    return rate.rate if rate and rate.rate else 0.0


def pay(plan_id: int, amount, notes: str | None = None, actor: Actor | None = None) -> ChitPayment:
    """
    Take an instalment.

    GOLD plans need a positive 'GOLD 999' rate; without one nothing is
    written.
    """
    amount = parse_amount(amount, "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")

    with atomic() as session:
        plan = _lock_plan(session, plan_id)
        if plan.status != ChitStatus.ACTIVE.value:
            raise ConflictError(f"Chit plan {plan.id} is {plan.status}")

        gold_rate, gold_weight = 0.0, 0.0
        if plan.plan_type == ChitPlanType.GOLD.value:
            gold_rate = current_gold_rate(session)
            if gold_rate <= 0:
                raise ValidationError(f"Set today's {GOLD_RATE_KEY} rate before taking gold chit payments")
            gold_weight = round(amount / gold_rate, GOLD_WEIGHT_PLACES)

        payment = ChitPayment(
            plan_id=plan.id,
            amount=amount,
            gold_rate=gold_rate,
            gold_weight=gold_weight,
            is_bonus=False,
            notes=optional_text(notes),
        )
        session.add(payment)
        apply_asset_delta(session, PaymentMode.CASH, amount)
        session.flush()
        payment_id = payment.id

    log_action(actor, "CHIT_PAY", f"Plan {plan_id}: {amount:.2f} ({gold_weight}g)", plan_id)
    return db.session.get(ChitPayment, payment_id)


def add_bonus(plan_id: int, actor: Actor | None = None) -> ChitPlan:
    with atomic() as session:
        plan = _lock_plan(session, plan_id)
        if plan.plan_type != ChitPlanType.AMOUNT.value:
            raise ValidationError("Bonus applies to AMOUNT plans only")
        if plan.status != ChitStatus.ACTIVE.value:
            raise ConflictError(f"Chit plan {plan.id} is {plan.status}")

        session.add(ChitPayment(
            plan_id=plan.id,
            amount=plan.monthly_amount,
            is_bonus=True,
            notes="Maturity bonus",
        ))
        plan.status = ChitStatus.MATURED.value
        bonus = plan.monthly_amount

    log_action(actor, "CHIT_BONUS", f"Plan {plan_id} matured with bonus {bonus:.2f}", plan_id)
    return db.session.get(ChitPlan, plan_id)


def close_plan(plan_id: int, actor: Actor | None = None) -> ChitPlan:
    with atomic() as session:
        plan = _lock_plan(session, plan_id)
        if plan.status == ChitStatus.CLOSED.value:
            raise ConflictError(f"Chit plan {plan.id} is already closed")
        plan.status = ChitStatus.CLOSED.value
        plan.closed_at = utcnow()

    log_action(actor, "CHIT_CLOSE", f"Plan {plan_id} closed", plan_id)
    return db.session.get(ChitPlan, plan_id)


def get_details(plan_id: int) -> dict:
    plan = db.session.get(ChitPlan, plan_id)
    if not plan:
        raise NotFoundError(f"Chit plan {plan_id} not found")

    totals = (
        db.session.query(
            func.coalesce(func.sum(ChitPayment.amount), 0),
            func.coalesce(func.sum(ChitPayment.gold_weight), 0),
            func.count(ChitPayment.id),
        )
        .filter(ChitPayment.plan_id == plan.id)
        .one()
    )
    return {
        "plan": plan.to_dict(),
        "history": [payment.to_dict() for payment in plan.payments],
        "total_paid": round_money(totals[0]),
        "total_gold_weight": round(float(totals[1]), GOLD_WEIGHT_PLACES),
        "installments": totals[2],
    }
