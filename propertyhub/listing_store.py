"""
propertyhub/listing_store.py

Listing collection over SQLite.

Rows are exposed as listing documents keyed by their wire names
(`_id` storage id, `id` external id, `areaSqFt`, ...), with amenities/tags as
lists and the owner optionally denormalized into `createdBy`.

All SQL is parameterized. Field names only ever come from FIELD_COLUMNS, never
from request input. sqlite3 errors surface as UpstreamUnavailable.
"""

from __future__ import annotations

import json
import sqlite3
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from propertyhub.db import now_iso
from propertyhub.errors import ConflictError, UpstreamUnavailable
from propertyhub.filters import Condition, ListingFilter, Op

# document field -> column
FIELD_COLUMNS: Dict[str, str] = {
    "_id": "id",
    "id": "external_id",
    "title": "title",
    "type": "type",
    "price": "price",
    "state": "state",
    "city": "city",
    "areaSqFt": "area_sqft",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "amenities": "amenities",
    "furnished": "furnished",
    "availableFrom": "available_from",
    "listedBy": "listed_by",
    "tags": "tags",
    "colorTheme": "color_theme",
    "rating": "rating",
    "isVerified": "is_verified",
    "listingType": "listing_type",
    "createdBy": "created_by",
    "isActive": "is_active",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

COLLECTION_FIELDS = {"amenities", "tags"}
BOOLEAN_FIELDS = {"isVerified", "isActive"}
SORTABLE_FIELDS = set(FIELD_COLUMNS) - COLLECTION_FIELDS

# Fields a client may change through an update
MUTABLE_FIELDS = {
    "title", "type", "price", "state", "city", "areaSqFt", "bedrooms",
    "bathrooms", "amenities", "furnished", "availableFrom", "listedBy",
    "tags", "colorTheme", "rating", "isVerified", "listingType",
}

DEFAULT_SORT_FIELD = "createdAt"

_SELECT_COLUMNS = ", ".join(f"l.{col}" for col in FIELD_COLUMNS.values())
_SELECT_WITH_OWNER = (
    f"SELECT {_SELECT_COLUMNS}, u.name AS owner_name, u.email AS owner_email "
    "FROM listings l LEFT JOIN users u ON u.id = l.created_by"
)
_SELECT_PLAIN = f"SELECT {_SELECT_COLUMNS} FROM listings l"


def _like_pattern(value: Any) -> str:
    # both sides are casefolded; see db.casefold
    escaped = str(value).casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _compile_condition(condition: Condition) -> Tuple[str, List[Any]]:
    column = FIELD_COLUMNS.get(condition.field)
    if column is None:
        raise ValueError(f"Unknown listing field: {condition.field}")
    ref = f"l.{column}"
    op = condition.op
    value = condition.value

    if op is Op.EQ:
        if condition.field in BOOLEAN_FIELDS:
            return f"{ref} = ?", [1 if value else 0]
        return f"{ref} = ?", [value]
    if op is Op.CONTAINS:
        return f"casefold({ref}) LIKE ? ESCAPE '\\'", [_like_pattern(value)]
    if op is Op.GTE:
        return f"{ref} >= ?", [value]
    if op is Op.LTE:
        return f"{ref} <= ?", [value]
    if op is Op.IN_ANY:
        values = list(value)
        placeholders = ", ".join("?" for _ in values)
        return (
            f"EXISTS (SELECT 1 FROM json_each({ref}) WHERE json_each.value IN ({placeholders}))",
            values,
        )
    if op is Op.ANY_CONTAINS:
        return (
            f"EXISTS (SELECT 1 FROM json_each({ref}) WHERE casefold(json_each.value) LIKE ? ESCAPE '\\')",
            [_like_pattern(value)],
        )
    raise ValueError(f"Unsupported filter operation: {op}")


def compile_filter(predicate: ListingFilter) -> Tuple[str, List[Any]]:
    """Compile a ListingFilter into a WHERE clause (without the keyword) and params."""
    clauses: List[str] = []
    params: List[Any] = []
    for condition in predicate.all_of:
        sql, values = _compile_condition(condition)
        clauses.append(sql)
        params.extend(values)
    if predicate.any_of:
        any_sql = []
        for condition in predicate.any_of:
            sql, values = _compile_condition(condition)
            any_sql.append(sql)
            params.extend(values)
        clauses.append("(" + " OR ".join(any_sql) + ")")
    return (" AND ".join(clauses) or "1 = 1"), params


def _row_to_document(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    doc: Dict[str, Any] = {}
    for field_name, column in FIELD_COLUMNS.items():
        value = data.get(column)
        if field_name in COLLECTION_FIELDS:
            try:
                value = json.loads(value) if value else []
            except (TypeError, ValueError):
                value = []
        elif field_name in BOOLEAN_FIELDS:
            value = bool(value)
        doc[field_name] = value

    if "owner_name" in data:
        doc["createdBy"] = {
            "_id": data["created_by"],
            "name": data.get("owner_name"),
            "email": data.get("owner_email"),
        }
    return doc


def _document_to_columns(document: Mapping[str, Any]) -> Dict[str, Any]:
    columns = {}
    for field_name, value in document.items():
        column = FIELD_COLUMNS.get(field_name)
        if column is None:
            continue
        if field_name in COLLECTION_FIELDS:
            value = json.dumps(list(value or []))
        elif field_name in BOOLEAN_FIELDS:
            value = 1 if value else 0
        columns[column] = value
    return columns


def parse_storage_id(identifier: Any) -> Optional[int]:
    """Storage ids are positive integers; anything else is not one."""
    text = str(identifier).strip()
    if not text.isdigit():
        return None
    value = int(text)
    return value if value > 0 else None


class ListingStore:
    """Listing collection bound to one request's connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _execute(self, sql: str, params: Any = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise UpstreamUnavailable("Database error", e)

    def find(
        self,
        predicate: ListingFilter,
        sort_field: str = DEFAULT_SORT_FIELD,
        descending: bool = True,
        skip: int = 0,
        limit: Optional[int] = None,
        with_owner: bool = True,
    ) -> List[Dict[str, Any]]:
        where, params = compile_filter(predicate)
        if sort_field not in SORTABLE_FIELDS:
            sort_field = DEFAULT_SORT_FIELD
        direction = "DESC" if descending else "ASC"
        sql = (
            f"{_SELECT_WITH_OWNER if with_owner else _SELECT_PLAIN} WHERE {where} "
            f"ORDER BY l.{FIELD_COLUMNS[sort_field]} {direction}, l.id {direction}"
        )
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + [limit, max(skip, 0)]
        rows = self._execute(sql, params).fetchall()
        return [_row_to_document(row) for row in rows]

    def count(self, predicate: ListingFilter) -> int:
        where, params = compile_filter(predicate)
        row = self._execute(f"SELECT COUNT(*) FROM listings l WHERE {where}", params).fetchone()
        return int(row[0])

    def find_by_any_id(
        self,
        identifier: Any,
        active_only: bool = True,
        with_owner: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """
        Look a listing up by storage id OR external id in one query.

        The storage id branch is only tried when the identifier is a valid
        storage id; a storage id match wins over an external id match.
        """
        clauses = ["l.external_id = ?"]
        params: List[Any] = [str(identifier)]
        storage_id = parse_storage_id(identifier)
        if storage_id is not None:
            clauses.insert(0, "l.id = ?")
            params.insert(0, storage_id)

        sql = f"{_SELECT_WITH_OWNER if with_owner else _SELECT_PLAIN} WHERE ({' OR '.join(clauses)})"
        if active_only:
            sql += " AND l.is_active = 1"
        if storage_id is not None:
            sql += " ORDER BY CASE WHEN l.id = ? THEN 0 ELSE 1 END"
            params.append(storage_id)
        sql += " LIMIT 1"

        row = self._execute(sql, params).fetchone()
        return _row_to_document(row) if row else None

    def get(self, storage_id: int, with_owner: bool = True) -> Optional[Dict[str, Any]]:
        """Fetch by storage id regardless of active state."""
        sql = f"{_SELECT_WITH_OWNER if with_owner else _SELECT_PLAIN} WHERE l.id = ?"
        row = self._execute(sql, (storage_id,)).fetchone()
        return _row_to_document(row) if row else None

    def get_many(self, storage_ids: Sequence[int]) -> Dict[int, Dict[str, Any]]:
        """Fetch several listings in one query, keyed by storage id."""
        ids = sorted(set(storage_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self._execute(f"{_SELECT_WITH_OWNER} WHERE l.id IN ({placeholders})", ids).fetchall()
        return {row["id"]: _row_to_document(row) for row in rows}

    def find_favorites(self, user_id: int, skip: int, limit: int) -> List[Dict[str, Any]]:
        """One page of a user's favorites on active listings, newest first."""
        rows = self._execute(
            f"SELECT f.id AS favorite_id, f.created_at AS favorited_at, {_SELECT_COLUMNS}, "
            "u.name AS owner_name, u.email AS owner_email "
            "FROM favorites f "
            "JOIN listings l ON l.id = f.listing_id "
            "LEFT JOIN users u ON u.id = l.created_by "
            "WHERE f.user_id = ? AND l.is_active = 1 "
            "ORDER BY f.created_at DESC, f.id DESC LIMIT ? OFFSET ?",
            (user_id, limit, max(skip, 0)),
        ).fetchall()
        return [
            {"_id": row["favorite_id"], "createdAt": row["favorited_at"], "property": _row_to_document(row)}
            for row in rows
        ]

    def count_favorites(self, user_id: int) -> int:
        row = self._execute(
            "SELECT COUNT(*) FROM favorites f JOIN listings l ON l.id = f.listing_id "
            "WHERE f.user_id = ? AND l.is_active = 1",
            (user_id,),
        ).fetchone()
        return int(row[0])

    def external_id_exists(self, external_id: str) -> bool:
        row = self._execute("SELECT 1 FROM listings WHERE external_id = ?", (external_id,)).fetchone()
        return row is not None

    def next_external_id(self) -> str:
        """PROP<epoch ms>, bumped until unused."""
        stamp = int(time.time() * 1000)
        while self.external_id_exists(f"PROP{stamp}"):
            stamp += 1
        return f"PROP{stamp}"

    def insert(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a listing document and return it with owner info."""
        now = now_iso()
        doc = dict(document)
        doc.setdefault("id", self.next_external_id())
        doc.setdefault("amenities", [])
        doc.setdefault("tags", [])
        doc.setdefault("isVerified", False)
        doc["isActive"] = doc.get("isActive", True)
        doc["createdAt"] = doc.get("createdAt") or now
        doc["updatedAt"] = now
        doc.pop("_id", None)

        columns = _document_to_columns(doc)
        names = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        try:
            cur = self.conn.execute(
                f"INSERT INTO listings ({names}) VALUES ({placeholders})",
                list(columns.values()),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if "external_id" in str(e):
                raise ConflictError(f"Listing id already exists: {doc['id']}")
            raise UpstreamUnavailable("Database error", e)
        except sqlite3.Error as e:
            self.conn.rollback()
            raise UpstreamUnavailable("Database error", e)

        return self.get(cur.lastrowid)

    def update(self, storage_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply mutable field changes (last write wins) and return the fresh document."""
        allowed = {k: v for k, v in changes.items() if k in MUTABLE_FIELDS}
        columns = _document_to_columns(allowed)
        columns["updated_at"] = now_iso()
        assignments = ", ".join(f"{col} = ?" for col in columns)
        try:
            self.conn.execute(
                f"UPDATE listings SET {assignments} WHERE id = ?",
                list(columns.values()) + [storage_id],
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise UpstreamUnavailable("Database error", e)
        return self.get(storage_id)

    def soft_delete(self, storage_id: int) -> None:
        """Flip isActive off. The row is never removed."""
        try:
            self.conn.execute(
                "UPDATE listings SET is_active = 0, updated_at = ? WHERE id = ?",
                (now_iso(), storage_id),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise UpstreamUnavailable("Database error", e)
