"""
propertyhub/filters.py

Filter Builder: turns optional listing query parameters into a structured
predicate over listing documents.

The predicate is plain data (ListingFilter of Conditions); ListingStore
compiles it to parameterized SQL.

Parameter policy:
- every predicate is constrained to active listings
- city/state match case-insensitively as substrings
- amenities/tags are comma lists, matched when any element is present
- numbers that fail to parse are treated as absent, never as an error
- missing or blank parameters impose no constraint
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from propertyhub.errors import ValidationError


class Op(str, Enum):
    EQ = "eq"
    CONTAINS = "contains"          # case-insensitive substring
    GTE = "gte"
    LTE = "lte"
    IN_ANY = "in_any"              # collection intersects the given values
    ANY_CONTAINS = "any_contains"  # some collection element contains substring


@dataclass(frozen=True)
class Condition:
    field: str
    op: Op
    value: Any


@dataclass
class ListingFilter:
    """Conjunction of `all_of`, plus an optional disjunction of `any_of`."""
    all_of: List[Condition] = field(default_factory=list)
    any_of: List[Condition] = field(default_factory=list)


ACTIVE_ONLY = Condition("isActive", Op.EQ, True)

# query parameter -> document field for exact-match classification fields
_EXACT_STRING_PARAMS = {
    "type": "type",
    "listingType": "listingType",
    "furnished": "furnished",
    "listedBy": "listedBy",
}

_SUBSTRING_PARAMS = {
    "city": "city",
    "state": "state",
}

_COUNT_PARAMS = {
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
}

_LIST_PARAMS = {
    "amenities": "amenities",
    "tags": "tags",
}

TEXT_SEARCH_FIELDS = ("title", "city", "state", "type")
TEXT_SEARCH_COLLECTIONS = ("tags", "amenities")


def _text(params: Mapping[str, Any], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_int(value: Any) -> Optional[int]:
    """Parse an integer query value; anything non-numeric is None."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_number(value: Any) -> Optional[float]:
    """Parse a finite number; anything else is None."""
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma list, trimming each element and dropping blanks."""
    if not value:
        return []
    items = []
    for part in value.split(","):
        part = part.strip()
        if part and part not in items:
            items.append(part)
    return items


def build_listing_filter(params: Mapping[str, Any]) -> ListingFilter:
    """Build the predicate for GET /properties from raw query parameters."""
    predicate = ListingFilter(all_of=[ACTIVE_ONLY])

    for param, doc_field in _EXACT_STRING_PARAMS.items():
        value = _text(params, param)
        if value is not None:
            predicate.all_of.append(Condition(doc_field, Op.EQ, value))

    for param, doc_field in _SUBSTRING_PARAMS.items():
        value = _text(params, param)
        if value is not None:
            predicate.all_of.append(Condition(doc_field, Op.CONTAINS, value))

    for param, doc_field in _COUNT_PARAMS.items():
        count = parse_int(_text(params, param))
        if count is not None:
            predicate.all_of.append(Condition(doc_field, Op.EQ, count))

    min_price = parse_number(_text(params, "minPrice"))
    max_price = parse_number(_text(params, "maxPrice"))
    if min_price is not None:
        predicate.all_of.append(Condition("price", Op.GTE, min_price))
    if max_price is not None:
        predicate.all_of.append(Condition("price", Op.LTE, max_price))

    for param, doc_field in _LIST_PARAMS.items():
        values = split_csv(_text(params, param))
        if values:
            predicate.all_of.append(Condition(doc_field, Op.IN_ANY, tuple(values)))

    return predicate


def build_text_search_filter(q: Optional[str]) -> ListingFilter:
    """Predicate for free-text search across title, locality, type, tags and amenities."""
    query = (q or "").strip()
    if not query:
        raise ValidationError("Search query is required")

    any_of = [Condition(name, Op.CONTAINS, query) for name in TEXT_SEARCH_FIELDS]
    any_of += [Condition(name, Op.ANY_CONTAINS, query) for name in TEXT_SEARCH_COLLECTIONS]
    return ListingFilter(all_of=[ACTIVE_ONLY], any_of=any_of)


def describe(predicate: ListingFilter) -> Dict[str, Any]:
    """Compact, JSON-friendly view of a predicate (dev logging)."""
    return {
        "all_of": [(c.field, c.op.value, c.value) for c in predicate.all_of],
        "any_of": [(c.field, c.op.value, c.value) for c in predicate.any_of],
    }
