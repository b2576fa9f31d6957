"""
Database helpers

Thin layer over pymongo shared by every route module:
- `db` is the database handle (tests swap it for a mongomock database
  before the app is imported)
- `create_document` / `get_documents` are the generic insert/find helpers
- `serialize` turns stored documents into JSON-ready dicts
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import settings

logger = logging.getLogger(__name__)

_client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=5000)
db = _client[settings.DATABASE_NAME]


def utcnow() -> datetime:
    # pymongo hands back naive UTC datetimes, so store them the same way
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def day_start(value: Optional[str] = None) -> datetime:
    """
    Midnight (UTC) of the given ISO date or datetime string, or of today when
    no value is given. Raises ValueError for anything unparseable.
    """
    if value is None:
        moment = utcnow()
    else:
        moment = naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id from a path or body. Returns None for anything malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with createdAt/updatedAt stamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True, exclude_none=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("createdAt", now)
    data_dict["updatedAt"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None, projection: Optional[dict] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(value: Any) -> Any:
    """Recursively convert ObjectIds to strings and datetimes to ISO strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def ensure_indexes() -> None:
    """Create the uniqueness constraints the data model relies on."""
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["user"].create_index([("preferences.distractoId", ASCENDING)], unique=True, sparse=True)
    db["screentime"].create_index([("userId", ASCENDING), ("date", ASCENDING)], unique=True)
    db["blockedsite"].create_index([("userId", ASCENDING)])
    db["timetable"].create_index([("userId", ASCENDING), ("date", ASCENDING)])
    db["chat"].create_index([("participants", ASCENDING)])
    logger.info("Indexes ensured on %s", db.name)
