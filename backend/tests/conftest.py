"""
Pytest fixtures for boutique POS backend tests.

Every test gets its own application and in-memory database, plus factories
for staff, products and customers.
"""

import pytest

from boutique_pos import create_app
from boutique_pos.config import TestConfig
from boutique_pos.extensions import db
from boutique_pos.services import customers_service, products_service
from boutique_pos.services.auth_service import create_user

PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
    return db.session


@pytest.fixture
def make_user(db_session):
    def _make(role: str, email: str | None = None, name: str | None = None):
        return create_user(
            db_session,
            name=name or role.replace("_", " ").title(),
            email=email or f"{role}@boutique.test",
            password=PASSWORD,
            role=role,
        )
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def manager(make_user):
    return make_user("manager")


@pytest.fixture
def cashier(make_user):
    return make_user("cashier")


@pytest.fixture
def stock_controller(make_user):
    return make_user("stock_controller")


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make(name: str = None, price: str = "100.00", stock: int = 10, **extra):
        counter["n"] += 1
        patch = {
            "name": name or f"Product {counter['n']}",
            "sku": extra.pop("sku", f"SKU-{counter['n']:04d}"),
            "selling_price": price,
            "initial_stock": stock,
        }
        patch.update(extra)
        return products_service.create_product(db_session, patch)
    return _make


@pytest.fixture
def make_customer(db_session):
    def _make(name: str = "Grace Wanjiru", **extra):
        return customers_service.create_customer(db_session, {"name": name, **extra})
    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def login(client):
    def _login(user) -> dict:
        token = get_auth_token(client, user.email)
        assert token, f"login failed for {user.email}"
        return auth_headers(token)
    return _login


@pytest.fixture
def admin_headers(admin, login):
    return login(admin)


@pytest.fixture
def manager_headers(manager, login):
    return login(manager)


@pytest.fixture
def cashier_headers(cashier, login):
    return login(cashier)


@pytest.fixture
def stock_headers(stock_controller, login):
    return login(stock_controller)
