"""
Database helpers

Thin wrapper around the hosted MongoDB deployment. Collections:
- dresses
- dress_availability
- profiles

``db`` stays ``None`` until DATABASE_URL and DATABASE_NAME are configured;
tests swap in their own handle through ``set_db``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel
from pymongo import MongoClient

from config import settings

_client = None
db = None

if settings.database_url and settings.database_name:
    _client = MongoClient(settings.database_url)
    db = _client[settings.database_name]


def get_db():
    if db is None:
        raise RuntimeError("Database not connected")
    return db


def set_db(handle) -> None:
    global db
    db = handle


def _as_dict(data: Union[BaseModel, dict]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return dict(data)


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at, return its id."""
    doc = _as_dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = get_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[dict]:
    cursor = get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(doc) for doc in cursor]


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc["_id"] = str(doc["_id"])  # stringify
    return doc
