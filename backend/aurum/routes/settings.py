# Overview: Flask API routes for shop settings (daily metal rates).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import rates_service
from ..validation import AurumError

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/rates")
def list_rates_route():
    return jsonify({"rates": [rate.to_dict() for rate in rates_service.list_rates()]})


@settings_bp.post("/rates")
@with_identity
def set_rates_route():
    """Body: {"rates": {"GOLD 999": 7250, "SILVER": 92}}"""
    data = request.get_json(silent=True) or {}
    try:
        rates = rates_service.set_rates(data.get("rates"), actor=g.actor)
        return jsonify({"success": True, "rates": [rate.to_dict() for rate in rates]})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update rates")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500
