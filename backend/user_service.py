from datetime import datetime, timezone
from typing import Optional

import bcrypt
from pymongo.errors import DuplicateKeyError

import database
from errors import ERROR_EMAIL_TAKEN, ERROR_USER_NOT_FOUND, AlreadyExistsError, NotFoundError
from log_config import get_logger, sanitize_string_for_logging
from schemas import User as UserSchema
from settings import BCRYPT_ROUNDS, DEFAULT_ADDRESS

logger = get_logger(__name__)


def _hash(pw: str) -> str:
    return bcrypt.hashpw(pw.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def is_password_match(user: dict, password: str) -> bool:
    stored = user.get("password_hash")
    if not stored:
        return False
    return bcrypt.checkpw(password.encode(), stored.encode())


def get_user_by_id(user_id) -> dict:
    oid = database.to_object_id(user_id)
    user = database.get_db()["user"].find_one({"_id": oid}) if oid else None
    if not user:
        raise NotFoundError(ERROR_USER_NOT_FOUND)
    return user


def get_user_by_email(email: str) -> Optional[dict]:
    """Absence is not an error here, callers decide what a missing user means."""
    return database.get_db()["user"].find_one({"email": email})


def is_email_taken(email: str) -> bool:
    return get_user_by_email(email) is not None


def create_user(body: dict) -> dict:
    email = body["email"]
    if is_email_taken(email):
        raise AlreadyExistsError(ERROR_EMAIL_TAKEN)
    user = UserSchema(name=body["name"], email=email, password_hash=_hash(body["password"]))
    try:
        uid = database.create_document("user", user)
    except DuplicateKeyError:
        # lost a race with a concurrent signup for the same email
        raise AlreadyExistsError(ERROR_EMAIL_TAKEN)
    logger.info("Created user %s", sanitize_string_for_logging(email))
    return get_user_by_id(uid)


def get_user_address_by_id(user_id, project_only: bool = False) -> dict:
    oid = database.to_object_id(user_id)
    user = None
    if oid:
        user = database.get_db()["user"].find_one({"_id": oid}, {"address": 1, "email": 1})
    if not user:
        raise NotFoundError(ERROR_USER_NOT_FOUND)
    if project_only:
        return {"address": user["address"]}
    return {"id": str(user["_id"]), "address": user["address"], "email": user["email"]}


def set_address(user: dict, new_address: str) -> str:
    database.get_db()["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"address": new_address, "updated_at": datetime.now(timezone.utc)}},
    )
    user["address"] = new_address
    return user["address"]


def has_set_non_default_address(user: dict) -> bool:
    address = user.get("address")
    return bool(address) and address != DEFAULT_ADDRESS
