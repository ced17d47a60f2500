"""Later payments against an open bill."""

import pytest

from aurum.extensions import db
from aurum.models import Sale
from aurum.services import billing_service
from aurum.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def open_bill(make_item):
    item = make_item()
    return billing_service.create_bill(
        customer={"name": "Kavya"},
        items=[{"item_id": item.id, "item_name": item.item_name, "total": 10000}],
        totals={"net_payable": 10000, "cash_received": 4000},
    )


def test_partial_then_paid(open_bill, read_assets):
    assert open_bill.payment_status == "PARTIAL"
    assert open_bill.balance_amount == 6000
    assert read_assets() == (4000, 0)

    sale = billing_service.add_payment(open_bill.id, 6000, payment_mode="UPI", note="Balance via UPI")

    assert sale.paid_amount == 10000
    assert sale.balance_amount == 0
    assert sale.payment_status == "PAID"
    assert sale.last_payment_date is not None
    assert read_assets() == (4000, 6000)


def test_paid_plus_balance_is_final_after_each_payment(open_bill):
    for amount in (1000, 2500.5, 1.25):
        sale = billing_service.add_payment(open_bill.id, amount)
        assert sale.paid_amount + sale.balance_amount == pytest.approx(sale.final_amount)
    assert sale.payment_status == "PARTIAL"


def test_overpayment_is_rejected(open_bill, read_assets):
    with pytest.raises(ConflictError) as exc:
        billing_service.add_payment(open_bill.id, 6000.5)

    assert exc.value.details["balance_amount"] == 6000
    db.session.expire_all()
    assert db.session.get(Sale, open_bill.id).balance_amount == 6000
    assert read_assets() == (4000, 0)


@pytest.mark.parametrize("amount", [0, -50])
def test_non_positive_payment_is_rejected(open_bill, amount):
    with pytest.raises(ValidationError):
        billing_service.add_payment(open_bill.id, amount)


def test_payment_on_missing_bill(db_session):
    with pytest.raises(NotFoundError):
        billing_service.add_payment(999999, 100)


def test_overpaying_at_creation_is_rejected(make_item):
    item = make_item()
    with pytest.raises(ValidationError):
        billing_service.create_bill(
            customer={},
            items=[{"item_id": item.id, "item_name": item.item_name, "total": 10000}],
            totals={"net_payable": 10000, "cash_received": 6000, "online_received": 5000},
        )
    assert db.session.query(Sale).count() == 0


def test_list_payments_newest_first(open_bill):
    billing_service.add_payment(open_bill.id, 1000, payment_mode="CARD")

    payments = billing_service.list_payments(open_bill.id)

    assert [p.amount for p in payments] == [1000, 4000]
    assert payments[1].note == "At billing"
    assert payments[0].payment_mode == "CARD"


def test_list_payments_of_missing_bill(db_session):
    with pytest.raises(NotFoundError):
        billing_service.list_payments(424242)
