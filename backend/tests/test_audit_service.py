"""Audit trail and the bearer tokens that name its actors."""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from aurum.extensions import db
from aurum.models import AuditLog, SessionToken
from aurum.services import audit_service, billing_service, session_service, shop_service
from aurum.services.audit_service import Actor
from aurum.time_utils import utcnow
from aurum.validation import NotFoundError, ValidationError


def test_guest_entry(db_session):
    audit_service.log_action(None, "TEST_EVENT", "Something happened", 5)

    row = db.session.query(AuditLog).one()
    assert row.username == "SYSTEM/GUEST"
    assert row.user_id is None
    assert row.ip_address == "0.0.0.0"
    assert row.entity_id == "5"


def test_named_actor(db_session):
    actor = Actor(user_id=3, username="counter1", ip_address="10.0.0.7")
    shop = shop_service.create_shop("Arun Jewels", actor=actor)

    row = db.session.query(AuditLog).filter_by(action_type="SHOP_CREATE").one()
    assert row.username == "counter1"
    assert row.user_id == 3
    assert row.ip_address == "10.0.0.7"
    assert row.entity_id == str(shop.id)


def test_bill_entry_uses_invoice_number(make_item):
    item = make_item()
    sale = billing_service.create_bill(
        customer={},
        items=[{"item_id": item.id, "item_name": item.item_name, "total": 5000}],
        totals={"net_payable": 5000},
    )

    row = db.session.query(AuditLog).filter_by(action_type="BILL_CREATE").one()
    assert row.entity_id == sale.invoice_number


def test_disabled_audit_writes_nothing(app, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "AUDIT_LOG_ENABLED", False)

    shop_service.create_shop("Quiet Shop")

    assert db.session.query(AuditLog).count() == 0


def test_audit_failure_never_fails_the_operation(db_session, monkeypatch):
    monkeypatch.setattr(audit_service, "AuditLog", SimpleNamespace(__table__=None))

    shop = shop_service.create_shop("Still Saved")

    assert shop.shop_name == "Still Saved"
    assert db.session.query(AuditLog).count() == 0


def test_session_token_round_trip(db_session):
    user = session_service.create_user("counter1")
    record, token = session_service.create_session(user.id)

    assert len(token) == 64
    assert record.token_hash == session_service.hash_token(token)
    assert record.token_hash != token
    assert session_service.validate_session(token).username == "counter1"
    assert session_service.validate_session("not-a-token") is None
    assert session_service.validate_session("") is None


def test_expired_and_revoked_tokens(db_session):
    user = session_service.create_user("counter2")
    _, expired = session_service.create_session(user.id)
    _, revoked = session_service.create_session(user.id)

    rows = {r.token_hash: r for r in db.session.query(SessionToken)}
    rows[session_service.hash_token(expired)].expires_at = utcnow() - timedelta(minutes=1)
    rows[session_service.hash_token(revoked)].is_revoked = True
    db.session.commit()

    assert session_service.validate_session(expired) is None
    assert session_service.validate_session(revoked) is None


def test_user_rules(db_session):
    session_service.create_user("counter3")
    with pytest.raises(ValidationError):
        session_service.create_user("counter3")
    with pytest.raises(NotFoundError):
        session_service.create_session(987)
