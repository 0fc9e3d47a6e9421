"""
propertyhub/cache_keys.py

Cache key derivation and the invalidation policy for listing mutations.

Keys:
    properties:<canonical JSON of the full query>   list results, 300s
    search:<canonical JSON of {q, limit}>           text search, 300s
    property:<normalized id>                        single listing, 600s

Single-listing ids are normalized the way the store resolves them: "03",
" 3" and "3" share property:3, external ids are stripped.

Invalidation after create/update/soft-delete:
    - exact delete of property:<storage id>, property:<external id> and any
      other identifier the caller used
    - pattern delete of properties:* and search:*

With Redis reachable, a mutation is visible to the next read. If the cache is
unreachable during invalidation the stale entries live until their TTL, so
staleness is bounded by 300s (lists, search) and 600s (single listings).
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional

from propertyhub.cache import CacheClient
from propertyhub.listing_store import parse_storage_id

LIST_NAMESPACE = "properties:"
ENTITY_NAMESPACE = "property:"
SEARCH_NAMESPACE = "search:"

LIST_TTL_SECONDS = 300
SEARCH_TTL_SECONDS = 300
ENTITY_TTL_SECONDS = 600


def canonical_json(value: Any) -> str:
    """Deterministic serialization: sorted keys, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def list_cache_key(params: Mapping[str, Any]) -> str:
    return LIST_NAMESPACE + canonical_json(dict(params))


def search_cache_key(q: str, limit: int) -> str:
    return SEARCH_NAMESPACE + canonical_json({"q": q, "limit": limit})


def normalize_listing_id(identifier: Any) -> str:
    storage_id = parse_storage_id(identifier)
    if storage_id is not None:
        return str(storage_id)
    return str(identifier).strip()


def entity_cache_key(identifier: Any) -> str:
    return f"{ENTITY_NAMESPACE}{normalize_listing_id(identifier)}"


def invalidate_listing(
    cache: CacheClient,
    listing: Optional[Mapping[str, Any]],
    extra_ids: Iterable[Any] = (),
) -> None:
    """Drop every cache entry a mutation of `listing` might have made stale."""
    ids = set(str(i) for i in extra_ids if i is not None)
    if listing:
        ids.update(str(listing[k]) for k in ("_id", "id") if listing.get(k) is not None)
    if ids:
        cache.delete(*sorted(entity_cache_key(i) for i in ids))
    invalidate_collections(cache)


def invalidate_collections(cache: CacheClient) -> None:
    """Drop all cached list and text-search results."""
    cache.delete_pattern(LIST_NAMESPACE + "*")
    cache.delete_pattern(SEARCH_NAMESPACE + "*")


def invalidate_all_listings(cache: CacheClient) -> None:
    """Drop lists, searches and single-listing snapshots (owner data changed)."""
    invalidate_collections(cache)
    cache.delete_pattern(ENTITY_NAMESPACE + "*")
