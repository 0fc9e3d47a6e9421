"""
propertyhub/conftest.py

Shared pytest fixtures: a throwaway SQLite file per test, an in-memory Redis
double injected into the cache client, and helpers to create users, tokens
and listings.
"""

from __future__ import annotations

import fnmatch
from typing import Any, Dict, Optional

import pytest
import redis
from fastapi.testclient import TestClient

import propertyhub.db as db_module
from propertyhub.auth_context import create_access_token, hash_password
from propertyhub.cache import CacheClient
from propertyhub.db import db_connection, init_db, now_iso
from propertyhub.dependencies import get_cache
from propertyhub.listing_store import ListingStore
from propertyhub.main import app
from propertyhub.middleware import rate_limiter

TEST_PASSWORD = "secret123"


class FakeRedis:
    """Just enough of redis.Redis for CacheClient (decoded string values)."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def ping(self):
        return True

    def close(self):
        pass

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def scan_iter(self, match=None, count=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


class DownRedis:
    """A Redis whose every command fails like an unreachable server."""

    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("Connection refused")

    ping = get = setex = delete = scan_iter = _fail

    def close(self):
        pass


@pytest.fixture(autouse=True)
def fresh_rate_limit():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Fresh database file for each test."""
    path = str(tmp_path / "propertyhub-test.db")
    monkeypatch.setattr(db_module, "DB_PATH", path)
    init_db()
    return path


@pytest.fixture
def conn(db_path):
    with db_connection() as connection:
        yield connection


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return CacheClient(url="", redis_client=fake_redis)


@pytest.fixture
def down_cache():
    """Cache client whose Redis is unreachable."""
    return CacheClient(url="", redis_client=DownRedis())


@pytest.fixture
def client(db_path, cache):
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(db_path):
    """Insert a user directly and return {id, name, email, token, headers}."""

    def _create(
        name: str = "Alice",
        email: str = "alice@example.com",
        role: str = "user",
        is_active: bool = True,
    ) -> Dict[str, Any]:
        with db_connection() as c:
            cur = c.execute(
                "INSERT INTO users (name, email, password_hash, role, is_active, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (name, email, hash_password(TEST_PASSWORD), role, 1 if is_active else 0, now_iso()),
            )
            c.commit()
            user_id = cur.lastrowid
        token = create_access_token({"sub": str(user_id), "email": email})
        return {
            "id": user_id,
            "name": name,
            "email": email,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _create


def listing_payload(**overrides: Any) -> Dict[str, Any]:
    """A valid listing body in wire format."""
    payload = {
        "title": "Sunny 2BHK near the park",
        "type": "Apartment",
        "price": 150000,
        "state": "Illinois",
        "city": "Springfield",
        "areaSqFt": 1100,
        "bedrooms": 2,
        "bathrooms": 2,
        "amenities": ["pool", "lift"],
        "furnished": "Semi",
        "availableFrom": "2025-01-15",
        "listedBy": "Owner",
        "tags": ["family", "quiet"],
        "colorTheme": "#3366ff",
        "rating": 4.2,
        "isVerified": True,
        "listingType": "sale",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def insert_listing(db_path):
    """Insert a listing straight into the store (bypassing the API and cache)."""

    def _insert(owner_id: int, external_id: Optional[str] = None, **overrides: Any) -> Dict[str, Any]:
        document = listing_payload(**overrides)
        document["createdBy"] = owner_id
        if external_id is not None:
            document["id"] = external_id
        with db_connection() as c:
            return ListingStore(c).insert(document)

    return _insert


@pytest.fixture
def listing_body():
    """Factory for valid listing request bodies."""
    return listing_payload
