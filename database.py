"""
MongoDB access helpers.

The handle returned by get_db() is injected into routes with FastAPI's
Depends so that tests (or alternative deployments) can override it.
"""

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import Config

logger = logging.getLogger(__name__)

ID_ALPHABET = string.ascii_uppercase + string.digits

_client: Optional[MongoClient] = None


def get_db() -> Database:
    """Return the shared database handle, connecting lazily."""
    global _client
    if _client is None:
        _client = MongoClient(Config.DATABASE_URL, tz_aware=True)
        logger.info("MongoDB client created for database %s", Config.DATABASE_NAME)
    return _client[Config.DATABASE_NAME]


def ensure_indexes(db: Database) -> None:
    db["bids"].create_index([("linkId", ASCENDING), ("amount_cents", DESCENDING), ("createdAt", ASCENDING)])
    db["bids"].create_index([("linkId", ASCENDING), ("createdAt", DESCENDING)])
    db["links"].create_index([("productId", ASCENDING)])
    db["orders"].create_index([("sellerId", ASCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes unless tz_aware is set; treat those as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_id(length: int = 7) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def create_document(db: Database, collection_name: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
    """Insert a document stamped with createdAt and return its id as a string"""
    doc = dict(data)
    doc.setdefault("createdAt", utcnow())
    if doc_id is not None:
        doc["_id"] = doc_id
    inserted_id = db[collection_name].insert_one(doc).inserted_id
    return str(inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: int = 20) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def clean(doc: Optional[dict], id_field: Optional[str] = None) -> Optional[dict]:
    """Strip the Mongo _id from a document, optionally exposing it under id_field"""
    if doc is None:
        return None
    out = dict(doc)
    _id = out.pop("_id", None)
    if id_field and _id is not None:
        out[id_field] = str(_id)
    return out
