"""
propertyhub/routes_recommendations.py

Peer-to-peer listing recommendations between users.

- A user recommends an active listing to another active user by email
- Self-recommendation and repeating the same (from, to, listing) are rejected
- Only the recipient can mark a recommendation as read
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from propertyhub.auth_context import AuthContext, require_auth_context
from propertyhub.db import now_iso
from propertyhub.dependencies import get_conn, get_listing_store
from propertyhub.errors import ConflictError, NotFoundError, UpstreamUnavailable, ValidationError
from propertyhub.listing_service import pagination_payload, parse_pagination
from propertyhub.listing_store import ListingStore
from propertyhub.schemas import RecommendationCreateRequest

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])

USER_SEARCH_LIMIT = 10


def _user_summaries(conn: sqlite3.Connection, user_ids) -> Dict[int, Dict[str, Any]]:
    ids = sorted(set(user_ids))
    if not ids:
        return {}
    placeholders = ", ".join("?" for _ in ids)
    rows = conn.execute(f"SELECT id, name, email FROM users WHERE id IN ({placeholders})", ids).fetchall()
    return {row["id"]: {"_id": row["id"], "name": row["name"], "email": row["email"]} for row in rows}


def _recommendation_documents(conn: sqlite3.Connection, store: ListingStore, rows) -> List[Dict[str, Any]]:
    """Expand rows with sender, recipient and listing, one query each."""
    users = _user_summaries(conn, [r["from_user_id"] for r in rows] + [r["to_user_id"] for r in rows])
    listings = store.get_many([r["listing_id"] for r in rows])
    return [
        {
            "_id": row["id"],
            "from": users.get(row["from_user_id"]),
            "to": users.get(row["to_user_id"]),
            "property": listings.get(row["listing_id"]),
            "message": row["message"],
            "isRead": bool(row["is_read"]),
            "createdAt": row["created_at"],
        }
        for row in rows
    ]


def _paged_recommendations(
    conn: sqlite3.Connection,
    store: ListingStore,
    user_column: str,
    user_id: int,
    page: Optional[str],
    limit: Optional[str],
) -> Dict[str, Any]:
    page_num, page_size = parse_pagination({"page": page, "limit": limit})
    try:
        rows = conn.execute(
            f"""
            SELECT * FROM recommendations
            WHERE {user_column} = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, page_size, (page_num - 1) * page_size),
        ).fetchall()
        total = conn.execute(
            f"SELECT COUNT(*) FROM recommendations WHERE {user_column} = ?",
            (user_id,),
        ).fetchone()[0]
    except sqlite3.Error as e:
        raise UpstreamUnavailable("Error fetching recommendations", e)

    return {
        "recommendations": _recommendation_documents(conn, store, rows),
        "pagination": pagination_payload(page_num, page_size, total),
    }


@router.get("/received")
def received_recommendations(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, Any]:
    return _paged_recommendations(conn, store, "to_user_id", ctx.user_id, page, limit)


@router.get("/sent")
def sent_recommendations(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, Any]:
    return _paged_recommendations(conn, store, "from_user_id", ctx.user_id, page, limit)


@router.post("", status_code=201)
def create_recommendation(
    req: RecommendationCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, Any]:
    recipient = conn.execute(
        "SELECT id FROM users WHERE email = ? AND is_active = 1",
        (req.email,),
    ).fetchone()
    if recipient is None:
        raise NotFoundError("User not found")

    if recipient["id"] == ctx.user_id:
        raise ValidationError("Cannot recommend to yourself")

    listing = store.find_by_any_id(req.property_id, with_owner=False)
    if listing is None:
        raise NotFoundError("Property not found")

    try:
        cur = conn.execute(
            """
            INSERT INTO recommendations (from_user_id, to_user_id, listing_id, message, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (ctx.user_id, recipient["id"], listing["_id"], req.message, now_iso()),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("Property already recommended to this user")
    except sqlite3.Error as e:
        conn.rollback()
        raise UpstreamUnavailable("Error sending recommendation", e)

    row = conn.execute("SELECT * FROM recommendations WHERE id = ?", (cur.lastrowid,)).fetchone()
    print(f"[RECOMMENDATIONS] from={ctx.user_id} to={recipient['id']} listing={listing['id']}")
    return {
        "message": "Recommendation sent successfully",
        "recommendation": _recommendation_documents(conn, store, [row])[0],
    }


@router.patch("/{recommendation_id}/read")
def mark_recommendation_read(
    recommendation_id: int = Path(..., description="Recommendation id"),
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    store: ListingStore = Depends(get_listing_store),
) -> Dict[str, Any]:
    try:
        cur = conn.execute(
            "UPDATE recommendations SET is_read = 1 WHERE id = ? AND to_user_id = ?",
            (recommendation_id, ctx.user_id),
        )
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise UpstreamUnavailable("Error updating recommendation", e)

    # Not the recipient looks the same as not existing
    if cur.rowcount == 0:
        raise NotFoundError("Recommendation not found")

    row = conn.execute("SELECT * FROM recommendations WHERE id = ?", (recommendation_id,)).fetchone()
    return {
        "message": "Recommendation marked as read",
        "recommendation": _recommendation_documents(conn, store, [row])[0],
    }


@router.get("/users/search")
def search_users(
    email: Optional[str] = Query(None, description="Email fragment"),
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
) -> List[Dict[str, Any]]:
    """Other active users whose email contains the fragment (case-insensitive)."""
    fragment = (email or "").strip()
    if not fragment:
        raise ValidationError("Email query is required")

    pattern = "%" + fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
    rows = conn.execute(
        """
        SELECT id, name, email FROM users
        WHERE email LIKE ? ESCAPE '\\' AND id != ? AND is_active = 1
        ORDER BY email
        LIMIT ?
        """,
        (pattern, ctx.user_id, USER_SEARCH_LIMIT),
    ).fetchall()
    return [{"_id": row["id"], "name": row["name"], "email": row["email"]} for row in rows]
