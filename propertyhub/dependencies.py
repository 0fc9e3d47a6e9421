"""
propertyhub/dependencies.py

Reusable FastAPI dependencies: per-request database connection, the
process-scoped cache client, and the listing services built on them.
"""

from __future__ import annotations

import sqlite3
from typing import Generator

from fastapi import Depends, Request

from propertyhub.cache import CacheClient
from propertyhub.db import get_db
from propertyhub.listing_service import ListingMutations, ListingQueryService
from propertyhub.listing_store import ListingStore


def get_conn() -> Generator[sqlite3.Connection, None, None]:
    """One connection per request, closed after the response."""
    conn = get_db()
    try:
        yield conn
    finally:
        conn.close()


def get_cache(request: Request) -> CacheClient:
    """
    The cache client created by the app lifespan.
    Falls back to a disabled client when the lifespan has not run.
    """
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        cache = CacheClient(url="")
    return cache


def get_listing_store(conn: sqlite3.Connection = Depends(get_conn)) -> ListingStore:
    return ListingStore(conn)


def get_query_service(
    store: ListingStore = Depends(get_listing_store),
    cache: CacheClient = Depends(get_cache),
) -> ListingQueryService:
    return ListingQueryService(store, cache)


def get_mutations(
    store: ListingStore = Depends(get_listing_store),
    cache: CacheClient = Depends(get_cache),
) -> ListingMutations:
    return ListingMutations(store, cache)
