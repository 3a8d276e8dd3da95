import pytest
from fastapi.testclient import TestClient

from pos_backend import catalog
from pos_backend.config import Settings
from pos_backend.main import create_app
from pos_backend.orders import OrderRepository

SERVICE_TOKEN = "service-token-123"
ADMIN_USERNAME = "boss"
ADMIN_PASSWORD = "hunter2"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'pos.db'}",
        secret_key="test-secret",
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        admin_token=SERVICE_TOKEN,
        timezone="UTC",
        public_base_url="https://pos.example.com",
        shop_name="Corner Cafe",
        shop_address1="1 Main St",
        shop_address2="Springfield",
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def products(db):
    """Espresso 2.50, Croissant 3.00, Bagel 4.25."""
    created = {
        "espresso": catalog.create_product(db, "Espresso", "2.50", "drink"),
        "croissant": catalog.create_product(db, "Croissant", "3.00", "pastry"),
        "bagel": catalog.create_product(db, "Bagel", "4.25", "food"),
    }
    return {key: product.id for key, product in created.items()}


@pytest.fixture
def repo(db):
    return OrderRepository(db)


@pytest.fixture
def staff_user(db):
    return catalog.create_user(db, "sam", "pass123")


@pytest.fixture
def stored_admin(db):
    return catalog.create_user(db, "alex", "secret99", is_admin=True)


def login(client, username, password):
    response = client.post("/login", data={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()["data"]["access_token"]


def place_order(repo, db, product_ids, created_at=None):
    """Create an order and optionally backdate it."""
    order = repo.create_order(product_ids)
    if created_at is not None:
        order.created_at = created_at
        db.commit()
    return order
