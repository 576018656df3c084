"""
Tests for the user service
"""
import pytest
from bson import ObjectId

import user_service
from errors import AlreadyExistsError, NotFoundError
from settings import DEFAULT_ADDRESS, DEFAULT_WALLET_MONEY


class TestCreateUser:

    def test_create_user_defaults(self, mongo_db):
        user = user_service.create_user({"name": "Ann", "email": "ann@example.com", "password": "password123"})

        assert user["email"] == "ann@example.com"
        assert user["address"] == DEFAULT_ADDRESS
        assert user["wallet_money"] == DEFAULT_WALLET_MONEY
        assert mongo_db["user"].count_documents({}) == 1

    def test_password_is_hashed(self):
        user = user_service.create_user({"name": "Ann", "email": "ann@example.com", "password": "password123"})

        assert user["password_hash"] != "password123"
        assert user_service.is_password_match(user, "password123")
        assert not user_service.is_password_match(user, "wrong-password")

    def test_duplicate_email_rejected(self, mongo_db):
        body = {"name": "Ann", "email": "ann@example.com", "password": "password123"}
        user_service.create_user(body)

        with pytest.raises(AlreadyExistsError) as exc_info:
            user_service.create_user(body)

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Email already taken"
        assert mongo_db["user"].count_documents({}) == 1

    def test_concurrent_signup_hits_unique_index(self, mongo_db, monkeypatch):
        body = {"name": "Ann", "email": "ann@example.com", "password": "password123"}
        user_service.create_user(body)
        # the other signup passed the existence check before this one was stored
        monkeypatch.setattr(user_service, "is_email_taken", lambda email: False)

        with pytest.raises(AlreadyExistsError):
            user_service.create_user(body)

        assert mongo_db["user"].count_documents({"email": "ann@example.com"}) == 1


class TestLookups:

    def test_get_user_by_id(self, user):
        found = user_service.get_user_by_id(str(user["_id"]))
        assert found["email"] == user["email"]

    def test_get_user_by_id_missing(self):
        with pytest.raises(NotFoundError):
            user_service.get_user_by_id(str(ObjectId()))

    def test_get_user_by_id_malformed(self):
        with pytest.raises(NotFoundError):
            user_service.get_user_by_id("not-an-object-id")

    def test_get_user_by_email(self, user):
        assert user_service.get_user_by_email(user["email"])["_id"] == user["_id"]

    def test_get_user_by_email_missing_returns_none(self):
        assert user_service.get_user_by_email("nobody@example.com") is None


class TestAddress:

    def test_address_projection_full(self, user):
        res = user_service.get_user_address_by_id(user["_id"])
        assert res == {"id": str(user["_id"]), "address": user["address"], "email": user["email"]}

    def test_address_projection_only(self, user):
        res = user_service.get_user_address_by_id(user["_id"], project_only=True)
        assert res == {"address": user["address"]}

    def test_address_projection_missing_user(self):
        with pytest.raises(NotFoundError):
            user_service.get_user_address_by_id(ObjectId())

    def test_set_address_persists(self, user, mongo_db):
        new_address = "10 Downing Street, London SW1A 2AA"

        assert user_service.set_address(user, new_address) == new_address
        assert mongo_db["user"].find_one({"_id": user["_id"]})["address"] == new_address
        assert user["address"] == new_address

    def test_default_address_is_not_set(self, make_user):
        assert not user_service.has_set_non_default_address(make_user(address=DEFAULT_ADDRESS))
        assert not user_service.has_set_non_default_address({"address": ""})
        assert user_service.has_set_non_default_address(make_user(email="b@example.com"))
