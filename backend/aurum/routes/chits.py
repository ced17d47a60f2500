# Overview: Flask API routes for chit (savings plan) operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import chit_service
from ..validation import AurumError, first_present, parse_int

chits_bp = Blueprint("chits", __name__, url_prefix="/api/chits")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}


@chits_bp.post("/create")
@with_identity
def create_plan_route():
    data = request.get_json(silent=True) or {}
    try:
        plan = chit_service.create_plan(
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            plan_type=data.get("plan_type"),
            plan_name=data.get("plan_name"),
            monthly_amount=data.get("monthly_amount"),
            actor=g.actor,
        )
        return jsonify({"success": True, "plan": plan.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create chit plan")
        return jsonify(INTERNAL_ERROR), 500


@chits_bp.post("/pay")
@with_identity
def pay_route():
    data = request.get_json(silent=True) or {}
    try:
        plan_id = parse_int(first_present(data, "plan_id", "chit_id"), "plan_id", minimum=1)
        payment = chit_service.pay(plan_id, data.get("amount"), data.get("notes"), actor=g.actor)
        return jsonify({"success": True, "payment": payment.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to take chit payment")
        return jsonify(INTERNAL_ERROR), 500


@chits_bp.post("/add-bonus/<int:plan_id>")
@with_identity
def add_bonus_route(plan_id: int):
    try:
        plan = chit_service.add_bonus(plan_id, actor=g.actor)
        return jsonify({"success": True, "plan": plan.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add chit bonus")
        return jsonify(INTERNAL_ERROR), 500


@chits_bp.post("/close/<int:plan_id>")
@with_identity
def close_plan_route(plan_id: int):
    try:
        plan = chit_service.close_plan(plan_id, actor=g.actor)
        return jsonify({"success": True, "plan": plan.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close chit plan")
        return jsonify(INTERNAL_ERROR), 500


@chits_bp.get("/details/<int:plan_id>")
def plan_details_route(plan_id: int):
    try:
        return jsonify(chit_service.get_details(plan_id))
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
