# Overview: Flask API routes for billing; parses input and returns JSON responses.

"""
Billing Routes

Identity is optional: a bearer token only annotates the audit trail.
Failures answer {"error": kind, "message": ...} with the error's status.
The counter front end sends camelCase names for some bill fields; both
spellings are accepted.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import with_identity
from ..services import billing_service, inventory_service
from ..validation import AurumError, first_present, parse_int

billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")

INTERNAL_ERROR = {"error": "INTERNAL_ERROR", "message": "Internal server error"}

TOTALS_ALIASES = {
    "net_payable": "netPayable",
    "gross_total": "grossTotal",
    "discount": "totalDiscount",
    "cash_received": "cashReceived",
    "online_received": "onlineReceived",
    "online_mode": "onlineMode",
}


def _bill_totals(raw):
    if not isinstance(raw, dict):
        return raw
    totals = dict(raw)
    for name, alias in TOTALS_ALIASES.items():
        if totals.get(name) is None and totals.get(alias) is not None:
            totals[name] = totals[alias]
    # A bare paidAmount carries no mode split; it was taken in cash
    if totals.get("cash_received") is None and totals.get("online_received") is None:
        totals["cash_received"] = totals.get("paidAmount")
    return totals


@billing_bp.post("/create-bill")
@with_identity
def create_bill_route():
    """
    Create a bill.

    Request body:
    {
        "customer": {"name": "...", "phone": "..."},
        "items": [{"item_id": 12, "gross_weight": 4.2, "quantity": 1,
                   "rate": 7200, "making_charges": 500, "total": 30740}, ...],
        "exchange_items": [{"name": "Old chain", "metal_type": "GOLD",   // or "exchangeItems"
                            "gross_weight": 5, "less_percent": 8, "rate": 6500}],
        "totals": {"net_payable": 30740, "cash_received": 10000,
                   "online_received": 0, "online_mode": "UPI"},
        "include_gst": false       // or "includeGST"
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = billing_service.create_bill(
            customer=data.get("customer"),
            items=data.get("items"),
            exchange_items=first_present(data, "exchange_items", "exchangeItems"),
            totals=_bill_totals(data.get("totals")),
            include_gst=bool(first_present(data, "include_gst", "includeGST")),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "invoice_id": sale.invoice_number,
            "sale_id": sale.id,
            "final_amount": sale.final_amount,
            "balance_amount": sale.balance_amount,
        }), 201
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create bill")
        return jsonify(INTERNAL_ERROR), 500


@billing_bp.post("/add-payment")
@with_identity
def add_payment_route():
    data = request.get_json(silent=True) or {}
    try:
        sale_id = parse_int(data.get("sale_id"), "sale_id", minimum=1)
        sale = billing_service.add_payment(
            sale_id,
            data.get("amount"),
            data.get("payment_mode") or data.get("mode"),
            data.get("note"),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "new_balance": sale.balance_amount,
            "payment_status": sale.payment_status,
        })
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify(INTERNAL_ERROR), 500


@billing_bp.delete("/delete/<int:sale_id>")
@with_identity
def void_bill_route(sale_id: int):
    try:
        result = billing_service.void_bill(sale_id, request.args.get("restore_mode"), actor=g.actor)
        return jsonify({"success": True, **result})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to void bill")
        return jsonify(INTERNAL_ERROR), 500


@billing_bp.post("/return-item")
@with_identity
def return_item_route():
    """
    Return one line of a bill.

    Request body:
    {
        "sale_item_id": 41,
        "restore_mode": "DEFAULT",   // or TAKE_OWNERSHIP for neighbour stock
        "refund_mode": "CASH"        // account any overpayment is refunded from
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        sale_item_id = parse_int(data.get("sale_item_id"), "sale_item_id", minimum=1)
        result = billing_service.return_item(
            sale_item_id,
            data.get("restore_mode"),
            data.get("refund_mode"),
            actor=g.actor,
        )
        return jsonify({"success": True, **result})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to return bill line")
        return jsonify(INTERNAL_ERROR), 500


@billing_bp.get("/invoice/<invoice_number>")
def get_invoice_route(invoice_number: str):
    try:
        return jsonify(billing_service.get_invoice(invoice_number))
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify(INTERNAL_ERROR), 500


@billing_bp.get("/payments/<int:sale_id>")
def list_payments_route(sale_id: int):
    try:
        payments = billing_service.list_payments(sale_id)
        return jsonify({"payments": [p.to_dict() for p in payments]})
    except AurumError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale payments")
        return jsonify(INTERNAL_ERROR), 500


@billing_bp.get("/search-item")
def search_item_route():
    items = inventory_service.search_available(request.args.get("q"))
    return jsonify({"items": [item.to_dict() for item in items]})
