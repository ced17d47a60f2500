from __future__ import annotations

from ..extensions import db
from .columns import Money, Percent, Weight
from aurum.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    A piece of metal stock on the shelf.

    SINGLE items are sold whole and flip AVAILABLE -> SOLD once.
    BULK items (chains by weight, coins by count) carry running
    gross_weight / quantity / pure_weight counters that sales decrement
    and voids or restocks add back.

    SOURCE DESIGN DECISION:
    - VENDOR items are on credit: their pure weight sits in the vendor's
      balance_pure_weight until repaid.
    - NEIGHBOUR items belong to an external shop; selling one creates
      shop debt in the matching metal.
    - OWN and REFINERY items carry no counter-party.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_status_created", "status", "created_at"),
        db.Index("ix_inventory_items_vendor", "vendor_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    barcode = db.Column(db.String(64), nullable=False, unique=True)
    item_name = db.Column(db.String(255), nullable=False)
    huid = db.Column(db.String(32), nullable=True)

    metal_type = db.Column(db.String(16), nullable=False, index=True)
    stock_type = db.Column(db.String(16), nullable=False, default="SINGLE")

    gross_weight = db.Column(Weight, nullable=False, default=0)
    # Fineness percent; the field name is historical
    wastage_percent = db.Column(Percent, nullable=False, default=0)
    pure_weight = db.Column(Weight, nullable=False, default=0)
    making_charges = db.Column(Money, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(16), nullable=False, default="AVAILABLE", index=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    source_type = db.Column(db.String(16), nullable=False, default="OWN")
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True)
    neighbour_shop_id = db.Column(db.Integer, db.ForeignKey("external_shops.id"), nullable=True, index=True)

    # Opaque key into external image storage
    image_ref = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("items", lazy=True))
    neighbour_shop = db.relationship("ExternalShop", backref=db.backref("items", lazy=True))

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} barcode={self.barcode!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "item_name": self.item_name,
            "huid": self.huid,
            "metal_type": self.metal_type,
            "stock_type": self.stock_type,
            "gross_weight": self.gross_weight,
            "wastage_percent": self.wastage_percent,
            "pure_weight": self.pure_weight,
            "making_charges": self.making_charges,
            "quantity": self.quantity,
            "status": self.status,
            "is_deleted": self.is_deleted,
            "source_type": self.source_type,
            "vendor_id": self.vendor_id,
            "neighbour_shop_id": self.neighbour_shop_id,
            "image_ref": self.image_ref,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockLog(db.Model):
    """
    Append-only record of every weight/quantity/status change on an item.

    Deltas are signed from the shelf's point of view: a SALE is negative,
    a RETURN of the same sale is the exact positive mirror.
    """
    __tablename__ = "inventory_stock_logs"
    __table_args__ = (
        db.Index("ix_stock_logs_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)

    action = db.Column(db.String(16), nullable=False, index=True)
    weight_delta = db.Column(Weight, nullable=False, default=0)
    quantity_delta = db.Column(db.Integer, nullable=False, default=0)
    pure_weight_delta = db.Column(Weight, nullable=False, default=0)

    reference = db.Column(db.String(64), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "action": self.action,
            "weight_delta": self.weight_delta,
            "quantity_delta": self.quantity_delta,
            "pure_weight_delta": self.pure_weight_delta,
            "reference": self.reference,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class ItemUpdate(db.Model):
    """Snapshot of an item taken before an edit."""
    __tablename__ = "item_updates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    old_values = db.Column(db.JSON, nullable=False)
    update_comment = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "old_values": self.old_values,
            "update_comment": self.update_comment,
            "created_at": to_utc_z(self.created_at),
        }
