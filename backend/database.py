"""
MongoDB access helpers.

Collections are named after the schema class, lowercased (`user`, `product`,
`cart`). `db` stays None when DATABASE_URL / DATABASE_NAME are not set.
"""
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

from errors import ERROR_DB_NOT_CONFIGURED, InternalError
from settings import DATABASE_NAME, DATABASE_URL

client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db():
    if db is None:
        raise InternalError(ERROR_DB_NOT_CONFIGURED)
    return db


def to_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = datetime.now(timezone.utc)
    doc["created_at"] = now
    doc["updated_at"] = now
    result = get_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: dict = None, limit: int = None):
    cursor = get_db()[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes():
    database = get_db()
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["cart"].create_index([("email", ASCENDING)], unique=True)


def to_public(doc):
    """Render a stored document for a response: `_id` becomes a string `id`,
    embedded documents are converted too and password hashes are dropped."""
    if isinstance(doc, list):
        return [to_public(d) for d in doc]
    if not isinstance(doc, dict):
        return str(doc) if isinstance(doc, ObjectId) else doc
    res = {}
    for key, value in doc.items():
        if key == "password_hash":
            continue
        if key == "_id":
            res["id"] = str(value)
        else:
            res[key] = to_public(value)
    return res
