from decimal import Decimal

import mongomock
import pytest
from fastapi.testclient import TestClient

from access import create_access_token
from database import ensure_indexes, get_db, now_utc, to_decimal128
from main import app
from schemas import Identity


@pytest.fixture
def db():
    database = mongomock.MongoClient()["nonnas_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def customer():
    return Identity(user_id="user-1", email="maria@example.com", role="user")


@pytest.fixture
def admin_user(db):
    db["profiles"].insert_one({"_id": "admin-1", "email": "admin@example.com", "full_name": "Admin User", "role": "admin"})
    return Identity(user_id="admin-1", email="admin@example.com", role="admin")


def add_product(db, name, price, category="pizza", featured=False):
    result = db["products"].insert_one({
        "name": name,
        "description": f"{name} from the wood-fired oven",
        "price": to_decimal128(Decimal(price)),
        "image_url": f"https://img.example.com/{name.lower().replace(' ', '-')}.jpg",
        "category": category,
        "is_featured": featured,
        "created_at": now_utc(),
        "updated_at": now_utc(),
    })
    return str(result.inserted_id)


@pytest.fixture
def margherita(db):
    return add_product(db, "Margherita Pizza", "16.99", featured=True)


@pytest.fixture
def garlic_bread(db):
    return add_product(db, "Garlic Bread", "8.99", category="appetizer")


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id, email="someone@example.com", full_name=""):
    return {"Authorization": f"Bearer {create_access_token(user_id, email, full_name)}"}
