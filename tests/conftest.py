"""Shared test fixtures for SmartFinance backend tests."""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from smartfinance.services.auth.session_collection import as_utc


# ─────────────────────────────────────────────────────────────────
# Mock collections
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_user_id():
    return str(ObjectId())


@pytest.fixture
def mock_collection():
    collection = AsyncMock()
    # Motor's find() returns a cursor synchronously (not a coroutine),
    # so use MagicMock for it. Async methods like find_one, update_one
    # etc. stay as AsyncMock.
    collection.find = MagicMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db


# ─────────────────────────────────────────────────────────────────
# Clock
# ─────────────────────────────────────────────────────────────────


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def now():
    return datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FakeClock(now)


# ─────────────────────────────────────────────────────────────────
# In-memory users collection
# ─────────────────────────────────────────────────────────────────


def _matches(doc: dict, query: dict) -> bool:
    for key, expected in query.items():
        if key == "activeSessions.deviceId":
            if not any(s.get("deviceId") == expected for s in doc.get("activeSessions", [])):
                return False
        elif key == "activeSessions.lastActive":
            cutoff = expected["$lt"]
            if not any(as_utc(s.get("lastActive")) < cutoff for s in doc.get("activeSessions", [])):
                return False
        elif doc.get(key) != expected:
            return False
    return True


def _set_matched_session(doc: dict, query: dict, key: str, value) -> None:
    field = key.rsplit(".", 1)[1]
    for session in doc.get("activeSessions", []):
        if session.get("deviceId") == query["activeSessions.deviceId"]:
            session[field] = copy.deepcopy(value)
            return


class FakeUsersCollection:
    """
    Just enough of a Motor collection for the users documents.

    Supports the query shapes the services use: lookup by _id / email /
    embedded deviceId, whole-field and positional $set, and the
    stale-session $pull. Every call yields to the event loop first, the way
    a round trip to the server does, so concurrent callers interleave.
    """

    def __init__(self):
        self.docs = {}

    def add_user(self, **fields) -> dict:
        doc = {
            "_id": ObjectId(),
            "username": "user",
            "email": f"user-{len(self.docs)}@example.com",
            "passwordHash": "",
            "activeSessions": [],
        }
        doc.update(fields)
        self.docs[doc["_id"]] = doc
        return doc

    async def find_one(self, query, projection=None):
        await asyncio.sleep(0)
        for doc in self.docs.values():
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, doc):
        await asyncio.sleep(0)
        doc.setdefault("_id", ObjectId())
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, update):
        await asyncio.sleep(0)
        for doc in self.docs.values():
            if _matches(doc, query):
                for key, value in update.get("$set", {}).items():
                    if key.startswith("activeSessions.$."):
                        _set_matched_session(doc, query, key, value)
                    else:
                        doc[key] = copy.deepcopy(value)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def update_many(self, query, update):
        await asyncio.sleep(0)
        modified = 0
        pull = update.get("$pull", {}).get("activeSessions")
        for doc in self.docs.values():
            if not _matches(doc, query):
                continue
            cutoff = pull["lastActive"]["$lt"]
            kept = [s for s in doc["activeSessions"] if not as_utc(s.get("lastActive")) < cutoff]
            if len(kept) != len(doc["activeSessions"]):
                doc["activeSessions"] = kept
                modified += 1
        return SimpleNamespace(matched_count=modified, modified_count=modified)

    async def delete_one(self, query):
        await asyncio.sleep(0)
        for _id, doc in list(self.docs.items()):
            if _matches(doc, query):
                del self.docs[_id]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def create_index(self, *args, **kwargs):
        return "index"


@pytest.fixture
def users_collection():
    return FakeUsersCollection()


@pytest.fixture
def fake_db(users_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=users_collection)
    return db


# ─────────────────────────────────────────────────────────────────
# Sample data
# ─────────────────────────────────────────────────────────────────


def make_location(country="Sweden", city="Stockholm", ip="81.2.69.142", timezone_name="Europe/Stockholm"):
    return {
        "ip": ip,
        "country": country,
        "city": city,
        "region": city,
        "timezone": timezone_name,
        "isp": "Telia",
        "latitude": None,
        "longitude": None,
        "formatted": f"{city}, {country}",
    }


def make_fingerprint(device_id, location=None, device_name="Windows Desktop (Chrome)"):
    return {
        "deviceId": device_id,
        "deviceName": device_name,
        "deviceType": "desktop",
        "browser": "Chrome",
        "os": "Windows",
        "location": location or make_location(),
    }


def make_session(device_id, last_active, location=None, is_active=True, login_time=None):
    session = make_fingerprint(device_id, location)
    session.update({
        "lastActive": last_active,
        "loginTime": login_time or last_active,
        "isActive": is_active,
    })
    return session


@pytest.fixture
def location_factory():
    return make_location


@pytest.fixture
def fingerprint_factory():
    return make_fingerprint


@pytest.fixture
def session_factory():
    return make_session
