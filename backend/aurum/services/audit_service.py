# Overview: Best-effort audit trail written after the business transaction commits.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import AuditLog


@dataclass(frozen=True)
class Actor:
    """Who is acting. Resolved once per request, before any scope opens."""
    user_id: int | None = None
    username: str = "SYSTEM/GUEST"
    ip_address: str | None = None


GUEST = Actor()


def log_action(actor: Actor | None, action_type: str, description: str, entity_id=None) -> None:
    """
    Append one audit row on a connection of its own.

    Never raises: the business event has already committed by the time
    this runs, so a failure here is logged and dropped.
    """
    actor = actor or GUEST
    if not current_app.config.get("AUDIT_LOG_ENABLED", True):
        return

    try:
        with db.engine.begin() as conn:
            conn.execute(
                AuditLog.__table__.insert().values(
                    user_id=actor.user_id,
                    username=actor.username,
                    action_type=action_type,
                    description=description,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    ip_address=actor.ip_address or "0.0.0.0",
                )
            )
        current_app.logger.info("AUDIT [%s] %s", action_type, description)
    except Exception:
        current_app.logger.exception("Audit log write failed for %s", action_type)
