# Overview: Flask API routes for vendor operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import vendor_service
from ..validation import AurumError, parse_int

vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}


@vendors_bp.get("/list")
def list_vendors_route():
    vendors = vendor_service.list_vendors(request.args.get("search"))
    return jsonify({"vendors": [v.to_dict() for v in vendors]})


@vendors_bp.post("/add")
@with_identity
def add_vendor_route():
    data = request.get_json(silent=True) or {}
    try:
        vendor = vendor_service.create_vendor(
            data.get("business_name") or data.get("name"),
            contact_number=data.get("contact_number"),
            gst_number=data.get("gst_number"),
            address=data.get("address"),
            actor=g.actor,
        )
        return jsonify({"success": True, "vendor": vendor.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add vendor")
        return jsonify(INTERNAL_ERROR), 500


@vendors_bp.post("/transaction")
@with_identity
def vendor_transaction_route():
    """
    Manual vendor entry.

    Request body:
    {
        "vendor_id": 3,
        "type": "REPAYMENT",        // STOCK_ADDED | REPAYMENT
        "metal_weight": 5.0,
        "cash_amount": 14000,       // REPAYMENT only
        "conversion_rate": 7000,    // grams = cash / rate
        "payment_mode": "CASH",
        "description": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        vendor_id = parse_int(data.get("vendor_id"), "vendor_id", minimum=1)
        txn = vendor_service.record_transaction(
            vendor_id,
            data.get("type"),
            metal_weight=data.get("metal_weight"),
            cash_amount=data.get("cash_amount"),
            conversion_rate=data.get("conversion_rate"),
            payment_mode=data.get("payment_mode"),
            description=data.get("description"),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "transaction": txn.to_dict(),
            "new_balance": txn.balance_after,
        }), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record vendor transaction")
        return jsonify(INTERNAL_ERROR), 500


@vendors_bp.get("/<int:vendor_id>/transactions")
def vendor_transactions_route(vendor_id: int):
    try:
        vendor = vendor_service.get_vendor(vendor_id)
        rows = vendor_service.list_transactions(vendor_id)
        return jsonify({
            "vendor": vendor.to_dict(),
            "transactions": [row.to_dict() for row in rows],
        })
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code


@vendors_bp.get("/<int:vendor_id>/verify")
def verify_vendor_route(vendor_id: int):
    try:
        return jsonify(vendor_service.verify_vendor_balance(vendor_id))
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
