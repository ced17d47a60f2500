# Overview: Service-layer operations for the shop's money accounts; expenses and manual adjustments.

"""
Ledger Service

Cash drawer and bank balances live on the ShopAssets singleton and only
move through balances.apply_asset_delta(). Every movement made here
also leaves a GeneralExpense row naming why the money moved.
"""

from __future__ import annotations

from ..extensions import db
from ..models import GeneralExpense, ShopAssets
from ..models.enums import AdjustmentType, ExpenseCategory, PaymentMode
from ..validation import ValidationError, optional_text, parse_amount, parse_choice, require_text
from .audit_service import Actor, log_action
from .balances import ASSETS_ROW_ID, apply_asset_delta, ensure_assets_row
from .concurrency import atomic

# Manual adjustments move the drawer or the bank only
ADJUSTABLE_MODES = (PaymentMode.CASH, PaymentMode.ONLINE)


def get_assets() -> dict:
    assets = db.session.get(ShopAssets, ASSETS_ROW_ID)
    if assets is None:
        return {"cash_balance": 0.0, "bank_balance": 0.0, "updated_at": None}
    return assets.to_dict()


def add_expense(description: str, amount, payment_mode=None, actor: Actor | None = None) -> GeneralExpense:
    description = require_text(description, "description")
    amount = parse_amount(amount, "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    mode = parse_choice(payment_mode, PaymentMode, "payment_mode", default=PaymentMode.CASH)

    with atomic() as session:
        expense = GeneralExpense(
            description=description,
            amount=amount,
            category=ExpenseCategory.EXPENSE.value,
            payment_mode=mode.value,
        )
        session.add(expense)
        apply_asset_delta(session, mode, -amount)
        session.flush()
        expense_id = expense.id

    log_action(actor, "EXPENSE", f"{description}: {amount:.2f} ({mode.value})", expense_id)
    return db.session.get(GeneralExpense, expense_id)


def adjust(adjustment_type, account, amount, note: str | None = None, actor: Actor | None = None) -> dict:
    """
    Manual correction of the drawer (CASH) or bank (ONLINE).

    ADD is booked as MANUAL_INCOME, SUBTRACT as MANUAL_EXPENSE.
    """
    adjustment_type = parse_choice(adjustment_type, AdjustmentType, "type")
    mode = parse_choice(account, PaymentMode, "account")
    if mode not in ADJUSTABLE_MODES:
        raise ValidationError("account must be CASH or ONLINE")
    amount = parse_amount(amount, "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")

    if adjustment_type == AdjustmentType.ADD:
        delta, category = amount, ExpenseCategory.MANUAL_INCOME
    else:
        delta, category = -amount, ExpenseCategory.MANUAL_EXPENSE
    note = optional_text(note) or f"Manual {adjustment_type.value.lower()} ({mode.value})"

    with atomic() as session:
        ensure_assets_row(session)
        apply_asset_delta(session, mode, delta)
        session.add(GeneralExpense(
            description=note,
            amount=amount,
            category=category.value,
            payment_mode=mode.value,
        ))

    log_action(actor, "ASSET_ADJUST", f"{adjustment_type.value} {amount:.2f} on {mode.value}: {note}")
    return get_assets()


def list_expenses(limit: int = 200) -> list[GeneralExpense]:
    return (
        db.session.query(GeneralExpense)
        .order_by(GeneralExpense.created_at.desc(), GeneralExpense.id.desc())
        .limit(limit)
        .all()
    )
