# Overview: Flask API routes for old-metal purchases; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import old_metal_service
from ..validation import AurumError

old_metal_bp = Blueprint("old_metal", __name__, url_prefix="/api/old-metal")


@old_metal_bp.post("/purchase")
@with_identity
def purchase_route():
    data = request.get_json(silent=True) or {}
    try:
        purchase = old_metal_service.purchase(
            customer_name=data.get("customer_name"),
            mobile=data.get("mobile"),
            items=data.get("items"),
            gst_deducted=data.get("gst_deducted"),
            payment_mode=data.get("payment_mode"),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "voucher_no": purchase.voucher_no,
            "purchase": purchase.to_dict(include_items=True),
        }), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record old-metal purchase")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@old_metal_bp.get("/list")
def list_purchases_route():
    purchases = old_metal_service.list_purchases()
    return jsonify({"purchases": [p.to_dict(include_items=True) for p in purchases]})
