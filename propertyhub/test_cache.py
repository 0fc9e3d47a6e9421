"""
propertyhub/test_cache.py

Cache client fail-open behavior, key derivation and invalidation.

Run: pytest propertyhub/test_cache.py -v
"""

from __future__ import annotations

from propertyhub.cache import CacheClient
from propertyhub.cache_keys import (
    ENTITY_TTL_SECONDS,
    LIST_TTL_SECONDS,
    entity_cache_key,
    invalidate_all_listings,
    invalidate_listing,
    list_cache_key,
    search_cache_key,
)


def test_set_then_get_round_trip_with_ttl(cache, fake_redis):
    assert cache.set("property:1", {"_id": 1, "title": "Flat"}, ENTITY_TTL_SECONDS)
    assert cache.get("property:1") == {"_id": 1, "title": "Flat"}
    assert fake_redis.ttls["property:1"] == 600


def test_get_miss_returns_none(cache):
    assert cache.get("property:missing") is None


def test_key_prefix_is_applied(fake_redis):
    cache = CacheClient(url="", key_prefix="ph:", redis_client=fake_redis)
    cache.set("search:x", [1], 300)
    assert "ph:search:x" in fake_redis.data
    assert cache.delete_pattern("search:*") == 1
    assert fake_redis.data == {}


def test_delete_pattern_only_touches_matching_keys(cache, fake_redis):
    cache.set("properties:{\"a\":1}", {}, LIST_TTL_SECONDS)
    cache.set("properties:{\"b\":2}", {}, LIST_TTL_SECONDS)
    cache.set("property:7", {}, ENTITY_TTL_SECONDS)

    assert cache.delete_pattern("properties:*") == 2
    assert list(fake_redis.data) == ["property:7"]


def test_undecodable_entry_is_a_miss(cache, fake_redis):
    fake_redis.data["property:1"] = "{not json"
    assert cache.get("property:1") is None


def test_unreachable_store_fails_open(down_cache):
    cache = down_cache
    cache.connect()
    assert cache.get("property:1") is None
    assert cache.set("property:1", {"x": 1}, 60) is False
    assert cache.delete("property:1") == 0
    assert cache.delete_pattern("properties:*") == 0


def test_disabled_client_is_a_no_op():
    cache = CacheClient(url="")
    cache.connect()
    assert not cache.enabled
    assert cache.set("k", 1, 10) is False
    assert cache.get("k") is None
    assert cache.delete_pattern("*") == 0


def test_list_key_is_independent_of_param_order():
    a = list_cache_key({"city": "spr", "page": "2", "type": "Villa"})
    b = list_cache_key({"type": "Villa", "page": "2", "city": "spr"})
    assert a == b
    assert a.startswith("properties:")
    assert list_cache_key({"page": "1"}) != list_cache_key({"page": "2"})


def test_search_key_includes_query_and_limit():
    assert search_cache_key("pool", 10) == 'search:{"limit":10,"q":"pool"}'
    assert search_cache_key("pool", 10) != search_cache_key("pool", 5)


def test_invalidate_listing_drops_both_ids_and_collections(cache, fake_redis):
    listing = {"_id": 3, "id": "PROP123"}
    cache.set(entity_cache_key(3), listing, ENTITY_TTL_SECONDS)
    cache.set(entity_cache_key("PROP123"), listing, ENTITY_TTL_SECONDS)
    cache.set(entity_cache_key(4), {"_id": 4}, ENTITY_TTL_SECONDS)
    cache.set(list_cache_key({}), {"properties": []}, LIST_TTL_SECONDS)
    cache.set(search_cache_key("x", 10), [], LIST_TTL_SECONDS)

    invalidate_listing(cache, listing)

    assert list(fake_redis.data) == ["property:4"]


def test_invalidate_listing_includes_extra_identifiers(cache, fake_redis):
    cache.set(entity_cache_key("0003"), {"_id": 3}, ENTITY_TTL_SECONDS)
    invalidate_listing(cache, {"_id": 3, "id": "PROP1"}, extra_ids=["0003"])
    assert fake_redis.data == {}


def test_invalidate_all_listings_clears_every_namespace(cache, fake_redis):
    cache.set(entity_cache_key(1), {}, ENTITY_TTL_SECONDS)
    cache.set(list_cache_key({}), {}, LIST_TTL_SECONDS)
    cache.set("other:key", 1, 60)

    invalidate_all_listings(cache)

    assert list(fake_redis.data) == ["other:key"]


def test_entity_key_normalizes_identifier_aliases():
    assert entity_cache_key("03") == entity_cache_key(" 3") == entity_cache_key(3) == "property:3"
    assert entity_cache_key(" PROP12 ") == "property:PROP12"
    assert entity_cache_key("0") == "property:0"
