"""
propertyhub/listing_service.py

Listing Query Service (list / get / text search with read-through cache) and
the listing mutation handlers (create / update / soft delete).

Read path:
    1. derive the cache key from the full request shape
    2. hit  -> return the snapshot verbatim, no predicate, no store query
    3. miss -> build predicate, sort, paginate, query, denormalize owner,
               cache with TTL, return

Write path: ownership check, persist, then invalidate (see cache_keys).
Concurrent edits to the same listing are last-write-wins; no version token is
kept.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Tuple

from propertyhub.cache import CacheClient
from propertyhub.cache_keys import (
    ENTITY_TTL_SECONDS,
    LIST_TTL_SECONDS,
    SEARCH_TTL_SECONDS,
    entity_cache_key,
    invalidate_listing,
    list_cache_key,
    search_cache_key,
)
from propertyhub.config import IS_DEV
from propertyhub.errors import AuthorizationError, NotFoundError
from propertyhub.filters import build_listing_filter, build_text_search_filter, describe, parse_int
from propertyhub.listing_store import DEFAULT_SORT_FIELD, ListingStore

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SEARCH_LIMIT = 10


def parse_pagination(params: Mapping[str, Any], default_limit: int = DEFAULT_LIMIT) -> Tuple[int, int]:
    """page/limit from query params; invalid or out-of-range values fall back to defaults."""
    page = parse_int(params.get("page"))
    limit = parse_int(params.get("limit"))
    if page is None or page < 1:
        page = DEFAULT_PAGE
    if limit is None or limit < 1:
        limit = default_limit
    return page, min(limit, MAX_LIMIT)


def pagination_payload(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


class ListingQueryService:
    """Read side of the listings API."""

    def __init__(self, store: ListingStore, cache: CacheClient):
        self.store = store
        self.cache = cache

    def list_listings(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        cache_key = list_cache_key(params)
        cached = self.cache.get(cache_key)
        if cached is not None:
            if IS_DEV:
                print(f"[PROPERTIES] cache hit {cache_key}")
            return cached

        predicate = build_listing_filter(params)
        page, limit = parse_pagination(params)
        sort_field = str(params.get("sortBy") or DEFAULT_SORT_FIELD)
        descending = str(params.get("sortOrder") or "desc").lower() == "desc"

        properties = self.store.find(
            predicate,
            sort_field=sort_field,
            descending=descending,
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = self.store.count(predicate)

        result = {
            "properties": properties,
            "pagination": pagination_payload(page, limit, total),
        }
        self.cache.set(cache_key, result, LIST_TTL_SECONDS)

        if IS_DEV:
            print(f"[PROPERTIES] list filter={describe(predicate)} page={page} limit={limit} total={total}")
        return result

    def get_listing(self, identifier: str) -> Dict[str, Any]:
        cache_key = entity_cache_key(identifier)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        listing = self.store.find_by_any_id(identifier)
        if listing is None:
            raise NotFoundError("Property not found")

        self.cache.set(cache_key, listing, ENTITY_TTL_SECONDS)
        return listing

    def search_text(self, q: Any, limit: Any = None) -> List[Dict[str, Any]]:
        predicate = build_text_search_filter(q)
        query = str(q).strip()
        max_results = parse_int(limit)
        if max_results is None or max_results < 1:
            max_results = DEFAULT_SEARCH_LIMIT
        max_results = min(max_results, MAX_LIMIT)

        cache_key = search_cache_key(query, max_results)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        results = self.store.find(predicate, limit=max_results)
        self.cache.set(cache_key, results, SEARCH_TTL_SECONDS)

        if IS_DEV:
            print(f"[PROPERTIES] text search q={query!r} results={len(results)}")
        return results


class ListingMutations:
    """Write side: every mutation invalidates the listing's cache footprint."""

    def __init__(self, store: ListingStore, cache: CacheClient):
        self.store = store
        self.cache = cache

    def _owned_listing(self, identifier: str, user_id: int, action: str) -> Dict[str, Any]:
        listing = self.store.find_by_any_id(identifier, with_owner=False)
        if listing is None:
            raise NotFoundError("Property not found")
        if listing["createdBy"] != user_id:
            print(f"[PROPERTIES] Denied {action}: listing={listing['id']} owner={listing['createdBy']} user={user_id}")
            raise AuthorizationError(f"Not authorized to {action} this property")
        return listing

    def create_listing(self, owner_id: int, document: Mapping[str, Any]) -> Dict[str, Any]:
        doc = dict(document)
        doc.pop("id", None)
        doc["createdBy"] = owner_id
        listing = self.store.insert(doc)
        invalidate_listing(self.cache, listing)

        print(f"[PROPERTIES] Created listing={listing['id']} owner={owner_id}")
        return listing

    def update_listing(self, identifier: str, user_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
        listing = self._owned_listing(identifier, user_id, "update")
        updated = self.store.update(listing["_id"], changes)
        invalidate_listing(self.cache, updated, extra_ids=[identifier])

        print(f"[PROPERTIES] Updated listing={listing['id']} fields={sorted(changes)}")
        return updated

    def delete_listing(self, identifier: str, user_id: int) -> None:
        listing = self._owned_listing(identifier, user_id, "delete")
        self.store.soft_delete(listing["_id"])
        invalidate_listing(self.cache, listing, extra_ids=[identifier])

        print(f"[PROPERTIES] Soft-deleted listing={listing['id']}")
