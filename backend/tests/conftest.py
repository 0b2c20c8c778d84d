"""
Pytest fixtures for Inventario backend tests.

Provides an in-memory database app, per-test table wipe, two tenants
(org_a with two inventories, org_b with one), users for every role and
helpers for authenticated requests.
"""

from decimal import Decimal

import pytest

from inventario import create_app
from inventario.extensions import db
from inventario.models import Organization, Inventory, Product
from inventario.services.auth_service import create_user, grant_membership
from inventario.services.ledger_service import ensure_default_accounts


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_EXCHANGE_RATE': '50.00',
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before each test."""
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    org = Organization(name="Org A - Bodega Central", is_active=True)
    db_session.add(org)
    db_session.commit()
    ensure_default_accounts(org.id)
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    org = Organization(name="Org B - Abastos Norte", is_active=True)
    db_session.add(org)
    db_session.commit()
    ensure_default_accounts(org.id)
    return org


@pytest.fixture(scope='function')
def inventory_a(db_session, org_a):
    inventory = Inventory(organization_id=org_a.id, name="Principal")
    db_session.add(inventory)
    db_session.commit()
    return inventory


@pytest.fixture(scope='function')
def inventory_a2(db_session, org_a):
    inventory = Inventory(organization_id=org_a.id, name="Deposito")
    db_session.add(inventory)
    db_session.commit()
    return inventory


@pytest.fixture(scope='function')
def inventory_b(db_session, org_b):
    inventory = Inventory(organization_id=org_b.id, name="Principal")
    db_session.add(inventory)
    db_session.commit()
    return inventory


def make_user(username: str, org: Organization | None = None, role: str | None = None, superuser: bool = False):
    # Low bcrypt cost keeps the suite fast
    user = create_user(username, f"{username}@example.com", PASSWORD, is_superuser=superuser, rounds=4)
    if org is not None:
        grant_membership(user.id, org.id, role)
    return user


@pytest.fixture(scope='function')
def owner_a(db_session, org_a):
    return make_user("owner_a", org_a, "owner")


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    return make_user("admin_a", org_a, "admin")


@pytest.fixture(scope='function')
def employee_a(db_session, org_a):
    return make_user("employee_a", org_a, "employee")


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return make_user("admin_b", org_b, "admin")


@pytest.fixture(scope='function')
def superuser(db_session):
    return make_user("root", superuser=True)


def make_product(inventory, name="Harina PAN", quantity=50, units_per_box=12, unit_price="2.50", sku=None):
    product = Product(
        inventory_id=inventory.id,
        name=name,
        sku=sku,
        quantity=quantity,
        units_per_box=units_per_box,
        unit_price=Decimal(unit_price),
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, inventory_a):
    """50 units packed 12 per box at 2.50 USD."""
    return make_product(inventory_a)


@pytest.fixture(scope='function')
def product_b(db_session, inventory_b):
    return make_product(inventory_b, name="Arroz", quantity=30, units_per_box=1, unit_price="1.20")


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, inventory=None, organization=None) -> dict:
    """Authorization header plus optional tenant headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if inventory is not None:
        headers['X-Inventory-Id'] = str(inventory.id)
    if organization is not None:
        headers['X-Organization-Id'] = str(organization.id)
    return headers


@pytest.fixture(scope='function')
def admin_headers(client, admin_a, inventory_a):
    return auth_headers(get_auth_token(client, "admin_a"), inventory=inventory_a)


@pytest.fixture(scope='function')
def employee_headers(client, employee_a, inventory_a):
    return auth_headers(get_auth_token(client, "employee_a"), inventory=inventory_a)


@pytest.fixture(scope='function')
def owner_headers(client, owner_a, inventory_a):
    return auth_headers(get_auth_token(client, "owner_a"), inventory=inventory_a)
