"""
Pytest fixtures for posledger tests.

Provides the application on an in-memory database, a clean session per
test, and the branch/warehouse/catalog records most ledger tests start from.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.models import Branch, Customer, Supplier, Warehouse
from posledger.services import inventory_service, product_service


TODAY = date(2025, 1, 1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_PAYMENT_TERMS': 'Net 30',
        'EXPIRY_WARNING_DAYS': 30,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test, schema kept."""
    with app.app_context():
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def branch(db_session):
    branch = Branch(name="Main Branch", code="MAIN")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def warehouse(db_session, branch):
    warehouse = Warehouse(branch_id=branch.id, name="Main Warehouse")
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def second_warehouse(db_session, branch):
    warehouse = Warehouse(branch_id=branch.id, name="Overflow Warehouse")
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def product(db_session):
    """Cola sold per bottle (base) or per case of 24."""
    return product_service.create_product(
        name="Cola 330ml",
        base_uom="Bottle",
        base_price=Decimal("25.00"),
        shelf_life_days=180,
        min_stock_level=10,
        alternate_uoms=[
            {"name": "Case", "conversion_factor": Decimal("24"), "selling_price": Decimal("550.00")},
        ],
    )


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Corner Store", payment_terms="Net 15")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(company_name="Beverage Distributors Inc.", payment_terms="Net 30")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def add_batch(product, warehouse):
    """Receive `quantity` base units into the default warehouse."""
    def _add(quantity, unit_cost, *, expires_in=90, received=TODAY, product_id=None, warehouse_id=None, uom="Bottle"):
        return inventory_service.add_stock(
            product_id=product_id or product.id,
            warehouse_id=warehouse_id or warehouse.id,
            quantity=Decimal(str(quantity)),
            uom=uom,
            unit_cost=Decimal(str(unit_cost)),
            received_date=received,
            expiry_date=TODAY + timedelta(days=expires_in),
        )
    return _add
