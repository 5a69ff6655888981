"""
MongoDB access helpers.

Every helper takes the database handle explicitly; the handle is opened once
by the entrypoint and stored on ``app.state.db``.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import Settings

logger = logging.getLogger(__name__)


class ConstraintViolation(Exception):
    """A write broke a uniqueness constraint."""


class NotFound(Exception):
    """No document matched the filter."""


def now_utc():
    return datetime.now(timezone.utc)


def connect(settings: Settings) -> Database:
    """Open the client and ping the server; raises PyMongoError if unreachable."""
    client = MongoClient(
        settings.DATABASE_URL,
        serverSelectionTimeoutMS=settings.DB_TIMEOUT_MS,
        connectTimeoutMS=settings.DB_TIMEOUT_MS,
        socketTimeoutMS=settings.DB_TIMEOUT_MS,
        tz_aware=True,
    )
    client.admin.command("ping")
    logger.info("MongoDB connected (database=%s)", settings.DATABASE_NAME)
    return client[settings.DATABASE_NAME]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["darshanbooking"].create_index([("qrCode", ASCENDING)], unique=True)
    db["darshanbooking"].create_index([("user", ASCENDING)])


def get_db(request: Request) -> Database:
    return request.app.state.db


def parse_object_id(value: Union[str, ObjectId]) -> ObjectId:
    """Raises InvalidId for anything that is not a 24-char hex id."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidId(f"{value!r} is not a valid ObjectId")
    return ObjectId(value)


def _as_document(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True)
    return dict(data)


# -----------------------------
# CRUD
# -----------------------------

def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a record stamped with createdAt/updatedAt and return it with its _id."""
    doc = _as_document(data)
    doc["createdAt"] = now_utc()
    doc["updatedAt"] = doc["createdAt"]
    try:
        result = db[collection_name].insert_one(doc)
    except DuplicateKeyError as e:
        raise ConstraintViolation(f"Duplicate key in {collection_name}") from e
    doc["_id"] = result.inserted_id
    return doc


def find_document(db: Database, collection_name: str, filter_dict: dict) -> dict:
    doc = db[collection_name].find_one(filter_dict)
    if doc is None:
        raise NotFound(f"No {collection_name} matching {list(filter_dict)}")
    return doc


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    projection: Optional[dict] = None,
) -> list[dict]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(
    db: Database,
    collection_name: str,
    document_id: Union[str, ObjectId],
    fields: Union[BaseModel, dict],
) -> dict:
    """Apply a partial $set and return the updated document."""
    changes = _as_document(fields)
    changes["updatedAt"] = now_utc()
    doc = db[collection_name].find_one_and_update(
        {"_id": parse_object_id(document_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFound(f"No {collection_name} with _id {document_id}")
    return doc


def serialize_document(value: Any) -> Any:
    """Convert ObjectIds (at any depth) to strings for JSON responses."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_document(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_document(v) for v in value]
    return value
