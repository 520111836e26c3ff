import os

# Must be set before storefront.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.models  # noqa: F401
from storefront.config import settings
from storefront.database import Base, get_db
from storefront.models.delivery import DeliveryOption
from storefront.models.product import Product, ProductAttribute, ProductAttributeOption
from storefront.services.cache import TTLCache
from storefront.services.settings import SettingsService
from storefront.utils.api_client import BackendClient, get_backend_client


class FakeBackend:
    """Scripted stand-in for the backend API. Unknown routes answer 404."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, path, *responses):
        # Each call consumes the next response; the last one repeats
        self.routes[(method.upper(), path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        responses = self.routes.get((request.method, request.url.path))
        if not responses:
            return httpx.Response(404, json={"message": "Not found"})
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        status_code, body = response
        return httpx.Response(status_code, json=body)

    def calls_to(self, method, path):
        return [c for c in self.calls if c.method == method and c.url.path == path]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    return BackendClient(base_url="http://backend.test", transport=httpx.MockTransport(backend.handler))


@pytest.fixture
def settings_service(client, session_factory):
    return SettingsService(client, TTLCache(300), session_factory)


@pytest.fixture
def app(client, session_factory, settings_service):
    from storefront.main import create_app

    app = create_app()
    app.state.settings_service = settings_service

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_backend_client] = lambda: client
    return app


@pytest.fixture
def api(app):
    with TestClient(app) as test_client:
        yield test_client


def make_token(user_id="user-1", role="customer", email="ama@example.com"):
    claims = {"sub": user_id, "email": email, "app_metadata": {"role": role}}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(user_id="user-1", role="customer"):
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", "admin")


@pytest.fixture
def customer_headers():
    return auth_headers("user-1", "customer")


def add_product(db, name="Phone X", slug="phone-x", original_price=1000.0, discount_price=None,
                stock_quantity=10, attributes=None):
    """attributes: list of (name, [(value, modifier, stock), ...])"""
    product = Product(
        name=name,
        slug=slug,
        original_price=original_price,
        discount_price=discount_price,
        stock_quantity=stock_quantity,
        in_stock=stock_quantity > 0,
    )
    for order, (attr_name, options) in enumerate(attributes or []):
        attribute = ProductAttribute(name=attr_name, slug=attr_name.lower(), display_order=order, is_required=True)
        attribute.options = [
            ProductAttributeOption(value=value, label=value, price_modifier=modifier,
                                   stock_quantity=stock, display_order=i)
            for i, (value, modifier, stock) in enumerate(options)
        ]
        product.attributes.append(attribute)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def add_delivery_option(db, name="Standard", price=20.0, type="delivery"):
    option = DeliveryOption(name=name, price=price, type=type, is_active=True)
    db.add(option)
    db.commit()
    db.refresh(option)
    return option
