import os
import tempfile

# Settings are read at import time, so the environment has to be ready first
_db_dir = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'orders.db')}"
os.environ["OTEL_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SENDGRID_API_KEY"] = ""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.api import routes
from storefront.db import database
from storefront.main import app
from storefront.models.product import Product
from storefront.services.auth import AuthenticatedIdentity, Role, create_access_token
from storefront.services.errors import NotificationError


class RecordingNotifier:
    """Stands in for the mail provider and remembers confirmations"""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def is_enabled(self):
        return True

    async def send_order_confirmation(self, to, order_id, total):
        if self.fail:
            raise NotificationError("mail provider unavailable")
        self.sent.append((to, order_id, total))
        return True

    async def close(self):
        pass


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def clean_database(client):
    database.drop_tables()
    database.create_tables()
    yield


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    recorder = RecordingNotifier()
    app.dependency_overrides[routes.get_notifier] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(routes.get_notifier, None)


@pytest.fixture
def make_product(db):
    def _make(name="Widget", price="10.00", stock=5, is_active=True):
        product = Product(
            name=name,
            description=f"{name} description",
            category="Test",
            price=Decimal(price),
            stock=stock,
            is_active=is_active
        )
        db.add(product)
        db.commit()
        return product.id

    return _make


@pytest.fixture
def stock_of():
    def _stock(product_id):
        session = database.SessionLocal()
        try:
            return session.get(Product, product_id).stock
        finally:
            session.close()

    return _stock


def identity_for(user_id=1, role=Role.CUSTOMER):
    return AuthenticatedIdentity(id=user_id, email=f"user{user_id}@example.com", role=role)


def auth_headers(user_id=1, role=Role.CUSTOMER):
    token = create_access_token(identity_for(user_id, role))
    return {"Authorization": f"Bearer {token}"}


ADDRESS = {
    "street": "123 Test St",
    "city": "Test City",
    "state": "Test State",
    "zipCode": "12345",
    "country": "Test Country",
}
