# Overview: Flask API routes for the shop's cash and bank accounts; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import ledger_service
from ..validation import AurumError

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}


@ledger_bp.get("/assets")
def assets_route():
    return jsonify(ledger_service.get_assets())


@ledger_bp.get("/expenses")
def expenses_route():
    return jsonify({"expenses": [row.to_dict() for row in ledger_service.list_expenses()]})


@ledger_bp.post("/expense")
@with_identity
def add_expense_route():
    data = request.get_json(silent=True) or {}
    try:
        expense = ledger_service.add_expense(
            data.get("description"),
            data.get("amount"),
            data.get("payment_mode"),
            actor=g.actor,
        )
        return jsonify({"success": True, "expense": expense.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return jsonify(INTERNAL_ERROR), 500


@ledger_bp.post("/adjust")
@with_identity
def adjust_route():
    """
    Manual correction.

    Request body:
    {"type": "ADD" | "SUBTRACT", "account": "CASH" | "ONLINE", "amount": 500, "note": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        assets = ledger_service.adjust(
            data.get("type"),
            data.get("account") or data.get("mode"),
            data.get("amount"),
            data.get("note"),
            actor=g.actor,
        )
        return jsonify({"success": True, "assets": assets})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust assets")
        return jsonify(INTERNAL_ERROR), 500
