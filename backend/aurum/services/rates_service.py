# Overview: Service-layer operations for daily metal rates.

from __future__ import annotations

from ..extensions import db
from ..models import DailyRate
from ..validation import ValidationError, parse_number, require_text
from .audit_service import Actor, log_action
from .concurrency import atomic, lock_for_update


def list_rates() -> list[DailyRate]:
    return db.session.query(DailyRate).order_by(DailyRate.metal_type.asc()).all()


def set_rates(rates: dict, actor: Actor | None = None) -> list[DailyRate]:
    """Upsert rates given as {label: rate}, e.g. {"GOLD 999": 7250}."""
    if not isinstance(rates, dict) or not rates:
        raise ValidationError("rates must be a non-empty object of {metal label: rate}")
    parsed = {
        require_text(label, "metal_type", max_length=32): parse_number(value, f"rates[{label}]")
        for label, value in rates.items()
    }

    with atomic() as session:
        for label in sorted(parsed):
            row = lock_for_update(session.query(DailyRate).filter_by(metal_type=label)).first()
            if row is None:
                session.add(DailyRate(metal_type=label, rate=parsed[label]))
            else:
                row.rate = parsed[label]

    summary = ", ".join(f"{label}={rate}" for label, rate in sorted(parsed.items()))
    log_action(actor, "RATES_UPDATE", f"Daily rates: {summary}")
    return list_rates()
