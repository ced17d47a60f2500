from __future__ import annotations

from ..extensions import db
from aurum.time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Who did what, written after the business transaction commits.

    IMMUTABLE: Never update or delete. user_id is a plain integer so a
    guest/system actor (user_id 0) needs no users row.
    """
    __tablename__ = "system_audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_action_created", "action_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    username = db.Column(db.String(64), nullable=True)
    action_type = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    entity_id = db.Column(db.String(64), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "action_type": self.action_type,
            "description": self.description,
            "entity_id": self.entity_id,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
