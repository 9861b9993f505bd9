"""Shared fixtures: an in-memory database handle and GridFS double."""

from __future__ import annotations

from typing import Dict, Optional

import mongomock
import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

import database
from config import settings
from storage import ObjectStorage

BASE_URL = "http://testserver"


class FakeGridOut:
    def __init__(self, file_id: ObjectId, filename: str, data: bytes, metadata: Optional[dict]):
        self._id = file_id
        self.filename = filename
        self.metadata = metadata
        self._data = data

    def read(self) -> bytes:
        return self._data


class FakeGridFS:
    """Keeps files in a dict keyed by id; enough of the GridFS surface for storage.py."""

    def __init__(self) -> None:
        self.files: Dict[ObjectId, FakeGridOut] = {}
        self.put_calls = 0

    def find_one(self, filter_dict: dict) -> Optional[FakeGridOut]:
        for grid_out in self.files.values():
            if grid_out.filename == filter_dict.get("filename"):
                return grid_out
        return None

    def put(self, data: bytes, filename: str, metadata: Optional[dict] = None) -> ObjectId:
        self.put_calls += 1
        file_id = ObjectId()
        self.files[file_id] = FakeGridOut(file_id, filename, data, metadata)
        return file_id

    def delete(self, file_id: ObjectId) -> None:
        self.files.pop(file_id, None)


class FailingGridFS(FakeGridFS):
    """Accepts ``fail_after`` uploads, then every put raises."""

    def __init__(self, fail_after: int = 0) -> None:
        super().__init__()
        self.fail_after = fail_after

    def put(self, data: bytes, filename: str, metadata: Optional[dict] = None) -> ObjectId:
        if self.put_calls >= self.fail_after:
            self.put_calls += 1
            raise PyMongoError("storage unavailable")
        return super().put(data, filename, metadata)


@pytest.fixture
def db():
    handle = mongomock.MongoClient().marketplace
    database.set_db(handle)
    yield handle
    database.set_db(None)


@pytest.fixture
def dress_bucket() -> ObjectStorage:
    return ObjectStorage("dresses", fs=FakeGridFS(), base_url=BASE_URL)


@pytest.fixture
def avatar_bucket() -> ObjectStorage:
    return ObjectStorage("avatars", fs=FakeGridFS(), base_url=BASE_URL)


@pytest.fixture(autouse=True)
def rental_settings(monkeypatch):
    monkeypatch.setattr(settings, "allowed_email_domain", "berkeley.edu")
    monkeypatch.setattr(settings, "min_rental_days", 1)
    monkeypatch.setattr(settings, "max_rental_days", 7)
    monkeypatch.setattr(settings, "max_upload_bytes", 10 * 1024 * 1024)
    monkeypatch.setattr(settings, "jwt_secret", "test-secret")
