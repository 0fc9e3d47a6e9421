"""
propertyhub/routes_users.py

Profile endpoints for the authenticated user.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends

from propertyhub.auth_context import AuthContext, require_auth_context
from propertyhub.cache import CacheClient
from propertyhub.cache_keys import invalidate_all_listings
from propertyhub.dependencies import get_cache, get_conn
from propertyhub.errors import UpstreamUnavailable
from propertyhub.routes_auth import user_response
from propertyhub.schemas import ProfileUpdateRequest, UserResponse

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/profile", response_model=UserResponse)
def get_profile(
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
) -> UserResponse:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (ctx.user_id,)).fetchone()
    return user_response(row)


@router.put("/profile")
def update_profile(
    req: ProfileUpdateRequest,
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
    cache: CacheClient = Depends(get_cache),
) -> Dict[str, Any]:
    changes = {}
    if req.name is not None:
        changes["name"] = req.name.strip()
    if req.role is not None:
        changes["role"] = req.role.value

    if changes:
        assignments = ", ".join(f"{col} = ?" for col in changes)
        try:
            conn.execute(
                f"UPDATE users SET {assignments} WHERE id = ?",
                list(changes.values()) + [ctx.user_id],
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise UpstreamUnavailable("Error updating profile", e)

        # Owner name/email is denormalized into cached listing snapshots
        if "name" in changes:
            invalidate_all_listings(cache)

    row = conn.execute("SELECT * FROM users WHERE id = ?", (ctx.user_id,)).fetchone()
    return {"message": "Profile updated successfully", "user": user_response(row).model_dump()}
