import mongomock
import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient

import database
from database import create_document
from schemas import Product
from security import hash_password


@pytest.fixture(autouse=True)
def env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("DELIVERY_FEE", "10")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)


@pytest.fixture
def db(monkeypatch):
    handle = mongomock.MongoClient()["tablet_store_test"]
    monkeypatch.setattr(database, "db", handle)
    database.ensure_indexes()
    return handle


@pytest.fixture
def client(db):
    from main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_product(db):
    def _make(name="iPad Air", price=599, category="Standard", bestseller=False, description="", **extra):
        product = Product(
            name=name,
            price=price,
            category=category,
            bestseller=bestseller,
            description=description or f"{name} tablet",
            images=[f"https://img.example/{name.replace(' ', '-')}.jpg"],
            sizes=["64GB", "128GB", "256GB"],
            **extra,
        )
        return create_document("product", product)
    return _make


@pytest.fixture
def make_user(db):
    def _make(email="alice@example.com", password="secret123", name="Alice", role="user"):
        from users import register
        return register(name, email, password, role=role)
    return _make


@pytest.fixture
def login(client):
    """Log in and return bearer headers; the auth cookie is dropped so tests stay header-driven."""
    def _login(email, password):
        res = client.post("/api/login", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {res.json()['token']}"}
    return _login


@pytest.fixture
def user_headers(make_user, login):
    make_user()
    return login("alice@example.com", "secret123")


@pytest.fixture
def admin_headers(make_user, login):
    make_user(email="admin@example.com", password="admin-pass", name="Admin", role="admin")
    return login("admin@example.com", "admin-pass")


@pytest.fixture
def user_id(db, user_headers):
    return str(db["user"].find_one({"email": "alice@example.com"})["_id"])


@pytest.fixture
def missing_id():
    return str(ObjectId())


@pytest.fixture
def shipping():
    return {
        "fullName": "Alice Doe",
        "address": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "phone": "555-0100",
    }
