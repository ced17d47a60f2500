# Overview: Flask API routes for refinery operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import old_metal_service, refinery_service
from ..validation import AurumError, first_present, parse_int

refinery_bp = Blueprint("refinery", __name__, url_prefix="/api/refinery")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}


@refinery_bp.get("/pending-scrap")
def pending_scrap_route():
    try:
        items = old_metal_service.pending_scrap(request.args.get("metal_type"))
        return jsonify({
            "items": [item.to_dict() for item in items],
            "totals": refinery_service.pending_weight_by_metal(),
        })
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code


@refinery_bp.post("/create-batch")
@with_identity
def create_batch_route():
    data = request.get_json(silent=True) or {}
    try:
        batch = refinery_service.create_batch(data.get("metal_type"), data.get("item_ids"), actor=g.actor)
        return jsonify({"success": True, "batch": batch.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create refinery batch")
        return jsonify(INTERNAL_ERROR), 500


@refinery_bp.get("/batches")
def list_batches_route():
    try:
        batches = refinery_service.list_batches(request.args.get("status"))
        return jsonify({"batches": [b.to_dict() for b in batches]})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code


@refinery_bp.post("/receive-refined")
@with_identity
def receive_refined_route():
    data = request.get_json(silent=True) or {}
    try:
        batch_id = parse_int(data.get("batch_id"), "batch_id", minimum=1)
        batch = refinery_service.receive_refined(
            batch_id, data.get("refined_weight"), data.get("touch"), actor=g.actor
        )
        return jsonify({"success": True, "batch": batch.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive refined metal")
        return jsonify(INTERNAL_ERROR), 500


@refinery_bp.post("/use-stock")
@with_identity
def use_stock_route():
    """
    Spend refined metal.

    Request body:
    {
        "batch_id": 2,
        "target": "VENDOR",     // or "transfer_to"; VENDOR | SHOP | INVENTORY
        "target_id": 3,         // or "recipient_id"; vendor or shop id
        "weight": 12.5,         // or "use_weight"
        "item_name": "...",     // INVENTORY only
        "note": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        batch_id = parse_int(data.get("batch_id"), "batch_id", minimum=1)
        result = refinery_service.use_stock(
            batch_id,
            first_present(data, "target", "transfer_to"),
            first_present(data, "weight", "use_weight"),
            target_id=first_present(data, "target_id", "recipient_id"),
            item_name=data.get("item_name"),
            note=data.get("note"),
            actor=g.actor,
        )
        return jsonify({"success": True, **result})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to use refined stock")
        return jsonify(INTERNAL_ERROR), 500
