"""
propertyhub/routes_auth.py

Registration, login and current-user endpoints.
"""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from propertyhub.auth_context import (
    AuthContext,
    create_access_token,
    hash_password,
    require_auth_context,
    verify_password,
)
from propertyhub.db import now_iso
from propertyhub.dependencies import get_conn
from propertyhub.errors import ConflictError, UpstreamUnavailable
from propertyhub.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse

router = APIRouter(prefix="/api/auth", tags=["auth"])


def user_response(row) -> UserResponse:
    return UserResponse(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        role=row["role"] or "user",
        createdAt=row["created_at"],
    )


def issue_token(user_id: int, email: str) -> str:
    return create_access_token({"sub": str(user_id), "email": email})


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(req: RegisterRequest, conn: sqlite3.Connection = Depends(get_conn)) -> TokenResponse:
    try:
        cur = conn.execute(
            "INSERT INTO users (name, email, password_hash, role, created_at) VALUES (?, ?, ?, ?, ?)",
            (req.name, req.email, hash_password(req.password), req.role.value, now_iso()),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        print(f"[REGISTER] Email already registered: {req.email!r}")
        raise ConflictError("Email already registered")
    except sqlite3.Error as e:
        conn.rollback()
        raise UpstreamUnavailable("Registration failed", e)

    row = conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,)).fetchone()
    print(f"[REGISTER] User created with id={row['id']}")
    return TokenResponse(token=issue_token(row["id"], row["email"]), user=user_response(row))


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, conn: sqlite3.Connection = Depends(get_conn)) -> TokenResponse:
    row = conn.execute("SELECT * FROM users WHERE email = ?", (req.email,)).fetchone()

    if not row or not verify_password(req.password, row["password_hash"]):
        print("[LOGIN] Invalid credentials")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not row["is_active"]:
        raise HTTPException(status_code=403, detail="Account inactive")

    print(f"[LOGIN] user_id={row['id']}")
    return TokenResponse(token=issue_token(row["id"], row["email"]), user=user_response(row))


@router.get("/me", response_model=UserResponse)
def me(
    ctx: AuthContext = Depends(require_auth_context),
    conn: sqlite3.Connection = Depends(get_conn),
) -> UserResponse:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (ctx.user_id,)).fetchone()
    return user_response(row)
