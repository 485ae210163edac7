"""
Database Helper Functions

MongoDB access via pymongo.
- Connection built lazily from DATABASE_URL + DATABASE_NAME
- get_db() is the FastAPI dependency handlers use (tests override it)
- Helpers for ids, JSON serialization, uniqueness and reference population
"""

from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import get_logger, get_settings

logger = get_logger("database")

USERS = "users"
CATEGORIES = "categories"
POSTS = "posts"

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def init_db() -> Optional[Database]:
    """Connect to MongoDB if configured and reachable; returns None otherwise."""
    global _client, _db
    if _db is not None:
        return _db

    settings = get_settings()
    if not settings.database_url:
        logger.warning("DATABASE_URL is not set; database unavailable")
        return None

    try:
        client = MongoClient(settings.database_url, serverSelectionTimeoutMS=2000)
        client.admin.command("ping")  # ensure reachable now
    except PyMongoError as exc:
        logger.error("Could not connect to MongoDB: %s", exc)
        return None

    _client = client
    _db = client[settings.database_name]
    ensure_indexes(_db)
    logger.info("Connected to MongoDB database %s", settings.database_name)
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


def get_db() -> Database:
    db = init_db()
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(db: Database) -> None:
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[CATEGORIES].create_index([("name", ASCENDING)], unique=True)
    db[CATEGORIES].create_index([("slug", ASCENDING)], unique=True)
    db[POSTS].create_index([("slug", ASCENDING)], unique=True)
    db[POSTS].create_index([("created_at", ASCENDING)])


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(id_str: Union[str, ObjectId]) -> ObjectId:
    """Raises bson.errors.InvalidId on malformed ids; the error handler maps it to 404."""
    if isinstance(id_str, ObjectId):
        return id_str
    return ObjectId(id_str)


def format_datetime(value: datetime) -> str:
    """ISO 8601 in UTC at millisecond precision, the resolution BSON dates keep."""
    if value.tzinfo is None:
        # pymongo hands back naive datetimes that are already UTC
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds")


def serialize(value):
    """Make a stored document JSON friendly: _id -> id, ObjectId -> str, datetime -> UTC isoformat."""
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            out["id" if k == "_id" else k] = serialize(v)
        return out
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return format_datetime(value)
    return value


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> ObjectId:
    """Insert a single document, returning its id"""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    result = db[collection_name].insert_one(data_dict)
    return result.inserted_id


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[list] = None,
):
    """Get documents from a collection"""
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_unique(
    db: Database,
    collection_name: str,
    field: str,
    value,
    exclude_id: Optional[ObjectId] = None,
) -> None:
    """
    Raise DuplicateKeyError if another document already holds ``value``.

    The unique indexes enforce the same rule on a real server; checking here
    first lets the error name the offending field.
    """
    query = {field: value}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if db[collection_name].find_one(query, {"_id": 1}) is not None:
        raise DuplicateKeyError(
            f"E11000 duplicate key error collection: {collection_name} dup key: {{ {field}: {value!r} }}",
            11000,
            {"keyValue": {field: value}},
        )


def populate(
    db: Database,
    docs: Iterable[dict],
    field: str,
    collection_name: str,
    fields: Iterable[str],
) -> None:
    """
    Replace the ObjectId stored in ``doc[field]`` with a subset of the
    referenced document, in place. Missing references become None.
    """
    docs = [d for d in docs if d is not None and field in d]
    ids = {d[field] for d in docs if isinstance(d[field], ObjectId)}
    if not ids:
        return

    projection = {name: 1 for name in fields}
    refs = {
        ref["_id"]: ref
        for ref in db[collection_name].find({"_id": {"$in": list(ids)}}, projection)
    }
    for d in docs:
        if isinstance(d[field], ObjectId):
            d[field] = refs.get(d[field])
