"""Pytest configuration and fixtures"""
import os
from uuid import uuid4

import mongomock
import pytest

# Set test environment before any backend module reads it
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_NAME", None)
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DEFAULT_ADDRESS", "ADDRESS_NOT_SET")

import database  # noqa: E402
import user_service  # noqa: E402

REAL_ADDRESS = "221B Baker Street, London NW1 6XE"


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    """Fresh in-memory database for every test"""
    test_db = mongomock.MongoClient()[f"shop_test_{uuid4().hex}"]
    monkeypatch.setattr(database, "db", test_db)
    database.ensure_indexes()
    return test_db


@pytest.fixture
def products(mongo_db):
    """Product A costs 100, product B costs 50"""
    result = mongo_db["product"].insert_many([
        {"name": "Product A", "category": "Electronics", "cost": 100, "rating": 4, "image": None},
        {"name": "Product B", "category": "Books", "cost": 50, "rating": 5, "image": None},
    ])
    a_id, b_id = result.inserted_ids
    return {
        "a": mongo_db["product"].find_one({"_id": a_id}),
        "b": mongo_db["product"].find_one({"_id": b_id}),
    }


@pytest.fixture
def make_user(mongo_db):
    """Create a user through the service, then force address and wallet"""
    def _make(email="crio-user@gmail.com", address=REAL_ADDRESS, wallet_money=500):
        user = user_service.create_user({"name": "crio-user", "email": email, "password": "password123"})
        mongo_db["user"].update_one(
            {"_id": user["_id"]},
            {"$set": {"address": address, "wallet_money": wallet_money}},
        )
        return mongo_db["user"].find_one({"_id": user["_id"]})
    return _make


@pytest.fixture
def user(make_user):
    return make_user()
