"""
Pytest fixtures for aurum backend tests.

One in-memory SQLite app per test session; every test gets a fresh app
context with all rows wiped, plus small factories for the records most
tests start from.
"""

import pytest

from aurum import create_app
from aurum.extensions import db
from aurum.models import ShopAssets
from aurum.services import inventory_service, shop_service, vendor_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUDIT_LOG_ENABLED': True,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database (schema kept) inside an app context for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.add(ShopAssets(id=1, cash_balance=0, bank_balance=0))
        db.session.commit()

        yield db.session

        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Test client over a wiped database."""
    return app.test_client()


@pytest.fixture
def read_assets(db_session):
    """Current (cash, bank) read straight from the store."""
    def _read():
        db.session.expire_all()
        row = db.session.get(ShopAssets, 1)
        return row.cash_balance, row.bank_balance
    return _read


@pytest.fixture
def make_item(db_session):
    def _make(**overrides):
        data = {
            "item_name": "Gold Ring",
            "metal_type": "GOLD",
            "stock_type": "SINGLE",
            "gross_weight": 10,
            "wastage_percent": 91.6,
            "making_charges": 500,
        }
        data.update(overrides)
        return inventory_service.add_item(data)
    return _make


@pytest.fixture
def vendor(db_session):
    return vendor_service.create_vendor("Lakshmi Bullion", contact_number="9000000001")


@pytest.fixture
def shop(db_session):
    return shop_service.create_shop("Sri Balaji Jewellers", nick_id="SBJ", person_name="Ravi")
