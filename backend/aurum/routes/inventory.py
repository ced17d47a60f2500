# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import inventory_service
from ..validation import AurumError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}


@inventory_bp.post("/add")
@with_identity
def add_item_route():
    """
    Add an item to stock.

    Request body:
    {
        "item_name": "Ring",            // required
        "metal_type": "GOLD",           // required
        "stock_type": "SINGLE",         // SINGLE | BULK
        "gross_weight": 4.5,            // required, > 0
        "wastage_percent": 91.6,        // purity, 0-100
        "pure_weight": 4.122,           // optional override
        "quantity": 10,                 // BULK only
        "making_charges": 500,
        "source_type": "VENDOR",        // OWN | VENDOR | NEIGHBOUR
        "vendor_id": 3,
        "neighbour_shop_id": null,
        "huid": "...", "image_ref": "..."
    }

    Returns:
        Created item, barcode assigned as {G|S}-{initials}-{NNNN}
    """
    data = request.get_json(silent=True) or {}
    try:
        item = inventory_service.add_item(data, actor=g.actor)
        return jsonify({"success": True, "item": item.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add item")
        return jsonify(INTERNAL_ERROR), 500


@inventory_bp.get("/list")
def list_items_route():
    try:
        items = inventory_service.list_items(
            status=request.args.get("status"),
            metal_type=request.args.get("metal_type"),
        )
        return jsonify({"items": items, "count": len(items)})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/vendor/<int:vendor_id>")
def list_vendor_items_route(vendor_id: int):
    items = inventory_service.list_vendor_items(vendor_id)
    return jsonify({"items": [item.to_dict() for item in items]})


@inventory_bp.put("/update/<int:item_id>")
@with_identity
def update_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = inventory_service.update_item(item_id, data, actor=g.actor)
        return jsonify({"success": True, "item": item.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify(INTERNAL_ERROR), 500


@inventory_bp.delete("/<int:item_id>")
@with_identity
def delete_item_route(item_id: int):
    try:
        item = inventory_service.delete_item(item_id, actor=g.actor)
        return jsonify({"success": True, "item": item.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete item")
        return jsonify(INTERNAL_ERROR), 500


@inventory_bp.post("/<int:item_id>/restore")
@with_identity
def restore_item_route(item_id: int):
    try:
        item = inventory_service.restore_item(item_id, actor=g.actor)
        return jsonify({"success": True, "item": item.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restore item")
        return jsonify(INTERNAL_ERROR), 500


@inventory_bp.post("/restock/<int:item_id>")
@with_identity
def restock_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = inventory_service.restock(
            item_id,
            data.get("added_weight"),
            data.get("added_quantity"),
            actor=g.actor,
        )
        return jsonify({"success": True, "item": item.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restock item")
        return jsonify(INTERNAL_ERROR), 500


@inventory_bp.get("/<int:item_id>/stock-log")
def stock_log_route(item_id: int):
    try:
        rows = inventory_service.get_stock_log(item_id)
        return jsonify({"entries": [row.to_dict() for row in rows]})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
