"""
Data access for listings, availability records and profiles.

Each function is one round trip to the database; failures propagate to the
caller. Missing or malformed ids raise ``NotFoundError``.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

from database import create_document, get_db, get_documents, serialize
from errors import NotFoundError
from logging_config import get_logger, log_event
from schemas import Availability, Dress, DressFilters

LOGGER = get_logger(__name__)

DRESSES = "dresses"
AVAILABILITY = "dress_availability"
PROFILES = "profiles"


def _object_id(value: str, what: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{what} not found") from None


def _attach_availability(dresses: List[dict]) -> List[dict]:
    if not dresses:
        return dresses
    ids = [d["_id"] for d in dresses]
    by_dress: Dict[str, List[dict]] = {i: [] for i in ids}
    cursor = get_db()[AVAILABILITY].find({"dress_id": {"$in": ids}}).sort("start_date", 1)
    for record in cursor:
        by_dress[record["dress_id"]].append(serialize(record))
    for dress in dresses:
        dress["dress_availability"] = by_dress[dress["_id"]]
    return dresses


# ---------- Dresses ----------

def create_dress(dress: Dress) -> dict:
    dress_id = create_document(DRESSES, dress)
    log_event(LOGGER, logging.INFO, "dress.created", dress_id=dress_id, owner_id=dress.owner_id)
    return get_dress(dress_id)


def get_dress(dress_id: str) -> dict:
    doc = get_db()[DRESSES].find_one({"_id": _object_id(dress_id, "Dress")})
    if not doc:
        raise NotFoundError("Dress not found")
    return _attach_availability([serialize(doc)])[0]


def get_dresses(filters: Optional[DressFilters] = None) -> List[dict]:
    filters = filters or DressFilters()
    f: Dict[str, Any] = {"is_active": True}
    if filters.types:
        f["types"] = {"$all": filters.types}
    if filters.colors:
        f["colors"] = {"$all": filters.colors}
    if filters.sizes:
        f["size"] = {"$in": filters.sizes}
    price: Dict[str, float] = {}
    if filters.min_price:
        price["$gte"] = filters.min_price
    if filters.max_price:
        price["$lte"] = filters.max_price
    if price:
        f["price"] = price
    if filters.is_available:
        open_ids = get_db()[AVAILABILITY].distinct("dress_id", {"is_available": True})
        f["_id"] = {"$in": [ObjectId(i) for i in open_ids if ObjectId.is_valid(i)]}

    cursor = get_db()[DRESSES].find(f).sort("created_at", -1)
    return _attach_availability([serialize(doc) for doc in cursor])


def get_owner_dresses(owner_id: str, include_inactive: bool = False) -> List[dict]:
    f: Dict[str, Any] = {"owner_id": owner_id}
    if not include_inactive:
        f["is_active"] = True
    return get_documents(DRESSES, f, sort=[("created_at", -1)])


def update_dress(dress_id: str, updates: Dict[str, Any]) -> dict:
    updates = dict(updates)
    updates["updated_at"] = datetime.now(timezone.utc)
    result = get_db()[DRESSES].update_one({"_id": _object_id(dress_id, "Dress")}, {"$set": updates})
    if result.matched_count == 0:
        raise NotFoundError("Dress not found")
    log_event(LOGGER, logging.INFO, "dress.updated", dress_id=dress_id, fields=sorted(updates))
    return get_dress(dress_id)


def delete_dress(dress_id: str) -> None:
    """Soft delete: the listing disappears from browsing but the row stays."""
    result = get_db()[DRESSES].update_one(
        {"_id": _object_id(dress_id, "Dress")},
        {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Dress not found")
    log_event(LOGGER, logging.INFO, "dress.deactivated", dress_id=dress_id)


# ---------- Availability ----------

def create_availability(availability: Availability) -> dict:
    record_id = create_document(AVAILABILITY, availability)
    return serialize(get_db()[AVAILABILITY].find_one({"_id": ObjectId(record_id)}))


def get_dress_availability(dress_id: str) -> List[dict]:
    return get_documents(AVAILABILITY, {"dress_id": dress_id}, sort=[("start_date", 1)])


def get_availability(availability_id: str) -> dict:
    doc = get_db()[AVAILABILITY].find_one({"_id": _object_id(availability_id, "Availability record")})
    if not doc:
        raise NotFoundError("Availability record not found")
    return serialize(doc)


def update_availability(availability_id: str, updates: Dict[str, Any]) -> dict:
    updates = {k: v.isoformat() if isinstance(v, date) else v for k, v in updates.items()}
    result = get_db()[AVAILABILITY].update_one(
        {"_id": _object_id(availability_id, "Availability record")},
        {"$set": {**updates, "updated_at": datetime.now(timezone.utc)}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Availability record not found")
    return get_availability(availability_id)


def check_availability(dress_id: str, start: date, end: date) -> bool:
    """True when no blocking record overlaps ``[start, end]``."""
    blocking = get_db()[AVAILABILITY].find_one({
        "dress_id": dress_id,
        "is_available": False,
        "start_date": {"$lte": end.isoformat()},
        "end_date": {"$gte": start.isoformat()},
    })
    return blocking is None


def unavailable_dates(dress_id: str) -> List[str]:
    """Every blocked day of a dress as ``YYYY-MM-DD``, sorted."""
    days = set()
    for record in get_db()[AVAILABILITY].find({"dress_id": dress_id, "is_available": False}):
        day = date.fromisoformat(record["start_date"])
        last = date.fromisoformat(record["end_date"])
        while day <= last:
            days.add(day.isoformat())
            day += timedelta(days=1)
    return sorted(days)


# ---------- Profiles ----------

def find_profile(user_id: str) -> Optional[dict]:
    return serialize(get_db()[PROFILES].find_one({"_id": user_id}))


def get_profile(user_id: str) -> dict:
    profile = find_profile(user_id)
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def upsert_profile(user_id: str, fields: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> dict:
    """Write ``fields``; ``defaults`` only land when the profile is new."""
    now = datetime.now(timezone.utc)
    get_db()[PROFILES].update_one(
        {"_id": user_id},
        {"$set": {**fields, "updated_at": now}, "$setOnInsert": {**(defaults or {}), "created_at": now}},
        upsert=True,
    )
    log_event(LOGGER, logging.INFO, "profile.saved", user_id=user_id)
    return get_profile(user_id)
