from __future__ import annotations

from ..extensions import db


class DocumentSequence(db.Model):
    """
    Named counters for human-readable numbers.

    Keys look like "BARCODE:G:RN" (item barcodes per metal and name
    initials) or "REFINERY:G" (refinery batches per metal). The row is
    bumped under the caller's transaction so concurrent allocations
    serialize on it.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sequence_key = db.Column(db.String(64), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_key": self.sequence_key,
            "next_number": self.next_number,
        }
