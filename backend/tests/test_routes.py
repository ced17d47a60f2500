"""HTTP surface: status codes, error bodies and a full counter flow."""

from aurum.extensions import db
from aurum.models import AuditLog, ExternalShop
from aurum.services import billing_service, old_metal_service, refinery_service, session_service


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["timestamp"].endswith("Z")


def test_counter_flow(client):
    vendor = client.post("/api/vendors/add", json={"name": "Lakshmi Bullion"})
    assert vendor.status_code == 201
    vendor_id = vendor.get_json()["vendor"]["id"]

    added = client.post("/api/inventory/add", json={
        "item_name": "Gold Ring",
        "metal_type": "GOLD",
        "gross_weight": 10,
        "wastage_percent": 91.6,
        "making_charges": 500,
        "vendor_id": vendor_id,
    })
    assert added.status_code == 201
    item = added.get_json()["item"]
    assert item["barcode"] == "G-GR-0001"
    assert item["source_type"] == "VENDOR"

    search = client.get("/api/billing/search-item", query_string={"q": "G-GR-0001"})
    assert [row["id"] for row in search.get_json()["items"]] == [item["id"]]

    bill = client.post("/api/billing/create-bill", json={
        "customer": {"name": "Anita"},
        "items": [{"item_id": item["id"], "item_name": "Gold Ring", "total": 60000}],
        "totals": {"net_payable": 61800, "cash_received": 30000},
        "include_gst": True,
    })
    assert bill.status_code == 201
    created = bill.get_json()
    assert created["success"] is True
    assert created["final_amount"] == 61800
    assert created["balance_amount"] == 31800

    paid = client.post("/api/billing/add-payment", json={
        "sale_id": created["sale_id"], "amount": 31800, "mode": "CARD",
    })
    assert paid.status_code == 200
    assert paid.get_json() == {"success": True, "new_balance": 0, "payment_status": "PAID"}

    invoice = client.get(f"/api/billing/invoice/{created['invoice_id']}")
    assert invoice.status_code == 200
    assert invoice.get_json()["sale"]["payment_status"] == "PAID"

    payments = client.get(f"/api/billing/payments/{created['sale_id']}").get_json()["payments"]
    assert sorted(p["payment_mode"] for p in payments) == ["CARD", "CASH"]

    assets = client.get("/api/ledger/assets").get_json()
    assert assets["cash_balance"] == 30000
    assert assets["bank_balance"] == 31800

    voided = client.delete(f"/api/billing/delete/{created['sale_id']}")
    assert voided.status_code == 200
    assert voided.get_json()["refunded"] == 61800

    assert client.get(f"/api/billing/invoice/{created['invoice_id']}").status_code == 404
    listing = client.get("/api/inventory/list").get_json()
    assert listing["count"] == 1
    assert listing["items"][0]["vendor_name"] == "Lakshmi Bullion"

    verify = client.get(f"/api/vendors/{vendor_id}/verify").get_json()
    assert verify["consistent"] is True


def test_error_bodies(client):
    missing = client.get("/api/billing/invoice/INV-0-000")
    assert missing.status_code == 404
    assert missing.get_json() == {"error": "NOT_FOUND", "message": "Invoice not found"}

    invalid = client.post("/api/inventory/add", json={"item_name": "Ring", "metal_type": "GOLD", "gross_weight": -1})
    assert invalid.status_code == 400
    assert invalid.get_json()["error"] == "VALIDATION_ERROR"

    no_body = client.post("/api/billing/add-payment", data="not json", content_type="text/plain")
    assert no_body.status_code == 400

    item = client.post("/api/inventory/add", json={
        "item_name": "Gold Ring", "metal_type": "GOLD", "gross_weight": 10, "wastage_percent": 91.6,
    }).get_json()["item"]
    mismatch = client.post("/api/billing/create-bill", json={
        "items": [{"item_id": item["id"], "item_name": "Gold Ring", "total": 60000}],
        "totals": {"net_payable": 1000},
    })
    assert mismatch.status_code == 422
    body = mismatch.get_json()
    assert body["error"] == "INTEGRITY_VIOLATION"
    assert body["details"]["server_net_payable"] == 60000


def test_conflict_body(client):
    item = client.post("/api/inventory/add", json={
        "item_name": "Gold Ring", "metal_type": "GOLD", "gross_weight": 10, "wastage_percent": 91.6,
    }).get_json()["item"]
    bill = {
        "items": [{"item_id": item["id"], "item_name": "Gold Ring", "total": 50000}],
        "totals": {"net_payable": 50000},
    }
    assert client.post("/api/billing/create-bill", json=bill).status_code == 201

    again = client.post("/api/billing/create-bill", json=bill)
    assert again.status_code == 409
    assert again.get_json()["error"] == "CONFLICT"


def test_unexpected_failure_is_generic(client, monkeypatch):
    def boom(**kwargs):
        raise RuntimeError("secret stack detail")

    monkeypatch.setattr(billing_service, "create_bill", boom)

    response = client.post("/api/billing/create-bill", json={"items": []})

    assert response.status_code == 500
    assert response.get_json() == {"error": "INTERNAL_ERROR", "message": "Internal server error"}


def test_shop_routes(client):
    shop = client.post("/api/shops/add", json={"shop_name": "Sri Balaji Jewellers", "nick_id": "SBJ"})
    assert shop.status_code == 201
    shop_id = shop.get_json()["shop"]["id"]

    borrow = client.post("/api/shops/transaction", json={"shop_id": shop_id, "type": "BORROW_ADD", "gold_weight": 5})
    assert borrow.status_code == 201
    txn_id = borrow.get_json()["transaction"]["id"]

    settle = client.post("/api/shops/settle-item", json={"transaction_id": txn_id, "gold_val": 5})
    assert settle.status_code == 201

    details = client.get(f"/api/shops/{shop_id}").get_json()
    assert details["shop"]["balance_gold"] == 0
    assert details["transactions"][0]["is_settled"] is True

    blocked = client.delete(f"/api/shops/transaction/{txn_id}")
    assert blocked.status_code == 409

    assert client.delete(f"/api/shops/{shop_id}").status_code == 409
    assert client.get("/api/shops/999").status_code == 404


def test_rates_and_ledger_adjust(client):
    saved = client.post("/api/settings/rates", json={"rates": {"GOLD 999": 7250, "SILVER": 92}})
    assert saved.status_code == 200
    rates = {r["metal_type"]: r["rate"] for r in client.get("/api/settings/rates").get_json()["rates"]}
    assert rates == {"GOLD 999": 7250, "SILVER": 92}

    assert client.post("/api/settings/rates", json={"rates": {}}).status_code == 400

    adjusted = client.post("/api/ledger/adjust", json={"type": "ADD", "account": "CASH", "amount": 5000})
    assert adjusted.status_code == 200
    assert adjusted.get_json()["assets"]["cash_balance"] == 5000

    spent = client.post("/api/ledger/expense", json={"description": "Tea", "amount": 120})
    assert spent.status_code == 201
    assert client.get("/api/ledger/assets").get_json()["cash_balance"] == 4880

    categories = [e["category"] for e in client.get("/api/ledger/expenses").get_json()["expenses"]]
    assert sorted(categories) == ["EXPENSE", "MANUAL_INCOME"]

    bad_account = client.post("/api/ledger/adjust", json={"type": "ADD", "account": "UPI", "amount": 10})
    assert bad_account.status_code == 400


def test_chit_routes(client):
    plan = client.post("/api/chits/create", json={
        "customer_name": "Priya", "plan_type": "AMOUNT", "monthly_amount": 1500,
    })
    assert plan.status_code == 201
    plan_id = plan.get_json()["plan"]["id"]

    paid = client.post("/api/chits/pay", json={"plan_id": plan_id, "amount": 1500})
    assert paid.status_code == 201

    details = client.get(f"/api/chits/details/{plan_id}").get_json()
    assert details["total_paid"] == 1500
    assert details["installments"] == 1


def test_bearer_token_names_the_actor(client):
    user = session_service.create_user("counter1")
    _, token = session_service.create_session(user.id)

    response = client.post(
        "/api/shops/add",
        json={"shop_name": "Named Shop"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 201

    anonymous = client.post(
        "/api/shops/add",
        json={"shop_name": "Guest Shop"},
        headers={"Authorization": "Bearer stale"},
    )
    assert anonymous.status_code == 201

    rows = db.session.query(AuditLog).filter_by(action_type="SHOP_CREATE").order_by(AuditLog.id).all()
    assert [r.username for r in rows] == ["counter1", "SYSTEM/GUEST"]


def test_bill_accepts_counter_field_names(client, make_item, read_assets):
    item = make_item()

    bill = client.post("/api/billing/create-bill", json={
        "customer": {"name": "Ravi"},
        "items": [{"item_id": item.id, "item_name": "Gold Ring", "total": 50000}],
        "exchangeItems": [{"name": "Old Chain", "metal_type": "GOLD", "gross_weight": 5,
                           "less_percent": 10, "rate": 6000}],
        "totals": {"netPayable": 24500, "paidAmount": 24500},
        "includeGST": True,
    })

    assert bill.status_code == 201
    created = bill.get_json()
    assert created["final_amount"] == 24500
    assert created["balance_amount"] == 0
    assert read_assets() == (24500, 0)

    invoice = client.get(f"/api/billing/invoice/{created['invoice_id']}").get_json()
    assert invoice["sale"]["is_gst_bill"] is True
    assert invoice["sale"]["exchange_total"] == 27000
    assert len(invoice["exchange_items"]) == 1


def test_return_item_route(client, make_item, read_assets):
    ring = make_item()
    chain = make_item(item_name="Gold Chain", gross_weight=5)
    bill = client.post("/api/billing/create-bill", json={
        "items": [
            {"item_id": ring.id, "item_name": "Gold Ring", "total": 40000},
            {"item_id": chain.id, "item_name": "Gold Chain", "total": 20000},
        ],
        "totals": {"net_payable": 60000, "cash_received": 60000},
    }).get_json()
    invoice = client.get(f"/api/billing/invoice/{bill['invoice_id']}").get_json()
    line_id = next(line["id"] for line in invoice["items"] if line["item_name"] == "Gold Ring")

    returned = client.post("/api/billing/return-item", json={"sale_item_id": line_id})

    assert returned.status_code == 200
    body = returned.get_json()
    assert body["success"] is True
    assert body["refunded"] == 40000
    assert body["final_amount"] == 20000
    assert read_assets() == (20000, 0)

    again = client.post("/api/billing/return-item", json={"sale_item_id": line_id})
    assert again.status_code == 409
    assert client.post("/api/billing/return-item", json={"sale_item_id": 9999}).status_code == 404
    assert client.post("/api/billing/return-item", json={}).status_code == 400


def test_chit_payment_by_chit_id(client):
    plan_id = client.post("/api/chits/create", json={
        "customer_name": "Priya", "plan_type": "AMOUNT", "monthly_amount": 1500,
    }).get_json()["plan"]["id"]

    paid = client.post("/api/chits/pay", json={"chit_id": plan_id, "amount": 1500})

    assert paid.status_code == 201
    assert client.get(f"/api/chits/details/{plan_id}").get_json()["total_paid"] == 1500


def test_use_stock_accepts_transfer_names(client, shop):
    shop_id = shop.id
    old_metal_service.purchase(
        customer_name="Walk-in",
        mobile=None,
        items=[{"name": "Broken Chain", "metal_type": "GOLD", "gross_weight": 10, "rate": 5000}],
    )
    batch = refinery_service.create_batch("GOLD")
    batch_id = batch.id
    refinery_service.receive_refined(batch_id, 8, 99.5)

    used = client.post("/api/refinery/use-stock", json={
        "batch_id": batch_id,
        "transfer_to": "SHOP",
        "recipient_id": shop_id,
        "use_weight": 2,
    })

    assert used.status_code == 200
    body = used.get_json()
    assert body["target"] == "SHOP"
    assert body["batch"]["used_weight"] == 2
    db.session.expire_all()
    assert db.session.get(ExternalShop, shop_id).balance_gold == -2
