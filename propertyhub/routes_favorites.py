"""
propertyhub/routes_favorites.py

Per-user favorite listings. Only active listings are shown in the favorites
list; a soft-deleted listing drops out of it without removing the row.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query

from propertyhub.auth_context import AuthContext, require_auth_context
from propertyhub.db import now_iso
from propertyhub.dependencies import get_conn, get_listing_store
from propertyhub.errors import ConflictError, NotFoundError, UpstreamUnavailable
from propertyhub.listing_service import pagination_payload, parse_pagination
from propertyhub.listing_store import ListingStore

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


@router.get("")
def list_favorites(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    ctx: AuthContext = Depends(require_auth_context),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, Any]:
    page_num, page_size = parse_pagination({"page": page, "limit": limit})

    try:
        favorites = store.find_favorites(ctx.user_id, (page_num - 1) * page_size, page_size)
        total = store.count_favorites(ctx.user_id)
    except UpstreamUnavailable as e:
        raise UpstreamUnavailable("Error fetching favorites", e.cause)

    for favorite in favorites:
        favorite["user"] = ctx.user_id
    return {"favorites": favorites, "pagination": pagination_payload(page_num, page_size, total)}


@router.post("/{property_id}", status_code=201)
def add_favorite(
    property_id: str = Path(..., description="Storage id or external listing id"),
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, Any]:
    listing = store.find_by_any_id(property_id)
    if listing is None:
        raise NotFoundError("Property not found")

    created_at = now_iso()
    try:
        cur = conn.execute(
            "INSERT INTO favorites (user_id, listing_id, created_at) VALUES (?, ?, ?)",
            (ctx.user_id, listing["_id"], created_at),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("Property already in favorites")
    except sqlite3.Error as e:
        conn.rollback()
        raise UpstreamUnavailable("Error adding to favorites", e)

    return {
        "message": "Added to favorites",
        "favorite": {"_id": cur.lastrowid, "user": ctx.user_id, "property": listing, "createdAt": created_at},
    }


@router.delete("/{property_id}")
def remove_favorite(
    property_id: str = Path(..., description="Storage id or external listing id"),
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, str]:
    # Inactive listings can still be un-favorited
    listing = store.find_by_any_id(property_id, active_only=False, with_owner=False)
    if listing is None:
        raise NotFoundError("Property not found")

    try:
        cur = conn.execute(
            "DELETE FROM favorites WHERE user_id = ? AND listing_id = ?",
            (ctx.user_id, listing["_id"]),
        )
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise UpstreamUnavailable("Error removing from favorites", e)

    if cur.rowcount == 0:
        raise NotFoundError("Favorite not found")
    return {"message": "Removed from favorites"}
