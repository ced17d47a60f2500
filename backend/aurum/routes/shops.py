# Overview: Flask API routes for neighbour-shop operations; parses input and returns JSON responses.

"""
Shop Routes

Balances are signed from our side: positive means we owe the shop.
Transaction amounts are always sent as magnitudes; the action decides
the direction.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import shop_service
from ..validation import AurumError, parse_int

shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}


def _amount_fields(data: dict) -> dict:
    return {
        "pure_weight": data.get("pure_weight", data.get("gold_weight")),
        "silver_weight": data.get("silver_weight"),
        "cash_amount": data.get("cash_amount"),
        "description": data.get("description"),
        "gross_weight": data.get("gross_weight"),
        "wastage_percent": data.get("wastage_percent"),
        "making_charges": data.get("making_charges"),
    }


@shops_bp.post("/add")
@with_identity
def add_shop_route():
    data = request.get_json(silent=True) or {}
    try:
        shop = shop_service.create_shop(
            data.get("shop_name"),
            nick_id=data.get("nick_id"),
            person_name=data.get("person_name"),
            mobile=data.get("mobile"),
            address=data.get("address"),
            actor=g.actor,
        )
        return jsonify({"success": True, "shop": shop.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add shop")
        return jsonify(INTERNAL_ERROR), 500


@shops_bp.get("/list")
def list_shops_route():
    return jsonify({"shops": [shop.to_dict() for shop in shop_service.list_shops()]})


@shops_bp.get("/<int:shop_id>")
def shop_details_route(shop_id: int):
    try:
        return jsonify(shop_service.get_shop_details(shop_id))
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code


@shops_bp.delete("/<int:shop_id>")
@with_identity
def delete_shop_route(shop_id: int):
    try:
        shop_service.delete_shop(shop_id, actor=g.actor)
        return jsonify({"success": True})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete shop")
        return jsonify(INTERNAL_ERROR), 500


@shops_bp.post("/transaction")
@with_identity
def add_transaction_route():
    """
    Record a borrow/lend movement.

    Request body:
    {
        "shop_id": 4,
        "action": "BORROW_ADD",   // BORROW_ADD | BORROW_REPAY | LEND_ADD | LEND_COLLECT
        "pure_weight": 10.0,      // gold, grams
        "silver_weight": 0,
        "cash_amount": 0,
        "description": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shop_id = parse_int(data.get("shop_id"), "shop_id", minimum=1)
        txn = shop_service.apply_transaction(
            shop_id,
            data.get("action") or data.get("type"),
            actor=g.actor,
            **_amount_fields(data),
        )
        return jsonify({"success": True, "transaction": txn.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record shop transaction")
        return jsonify(INTERNAL_ERROR), 500


@shops_bp.put("/transaction/<int:txn_id>")
@with_identity
def update_transaction_route(txn_id: int):
    data = request.get_json(silent=True) or {}
    try:
        txn = shop_service.update_transaction(txn_id, actor=g.actor, **_amount_fields(data))
        return jsonify({"success": True, "transaction": txn.to_dict()})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit shop transaction")
        return jsonify(INTERNAL_ERROR), 500


@shops_bp.delete("/transaction/<int:txn_id>")
@with_identity
def delete_transaction_route(txn_id: int):
    try:
        shop_service.delete_transaction(txn_id, actor=g.actor)
        return jsonify({"success": True})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to undo shop transaction")
        return jsonify(INTERNAL_ERROR), 500


@shops_bp.post("/settle-item")
@with_identity
def settle_item_route():
    data = request.get_json(silent=True) or {}
    try:
        transaction_id = parse_int(data.get("transaction_id"), "transaction_id", minimum=1)
        settlement = shop_service.settle_item(
            transaction_id,
            payment_mode=data.get("payment_mode"),
            gold_val=data.get("gold_val"),
            silver_val=data.get("silver_val"),
            cash_val=data.get("cash_val"),
            metal_rate=data.get("metal_rate"),
            converted_weight=data.get("converted_weight"),
            description=data.get("description"),
            actor=g.actor,
        )
        return jsonify({"success": True, "settlement": settlement.to_dict()}), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle shop transaction")
        return jsonify(INTERNAL_ERROR), 500


@shops_bp.get("/transaction/<int:txn_id>/settlements")
def list_settlements_route(txn_id: int):
    rows = shop_service.list_settlements(txn_id)
    return jsonify({"settlements": [row.to_dict() for row in rows]})
