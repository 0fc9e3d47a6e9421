# propertyhub/db.py
# SQLite connection helpers and schema bootstrap for PropertyHub

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path as FsPath
from typing import Generator

from propertyhub.config import DATABASE_PATH, IS_DEV

# Canonical absolute path for the database file
DB_PATH = str(FsPath(__file__).resolve().parent / DATABASE_PATH)


def casefold(value):
    """SQL function: Unicode-aware lowercasing (SQLite LIKE only folds ASCII)."""
    if value is None:
        return None
    return str(value).casefold()


def get_db() -> sqlite3.Connection:
    """
    Create and return a SQLite connection with Row factory and the
    casefold() SQL function registered.
    Each request opens its own connection; callers close it.
    FastAPI may run a dependency and its route on different pool threads,
    hence check_same_thread=False.
    """
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.create_function("casefold", 1, casefold, deterministic=True)
    return conn


@contextmanager
def db_connection() -> Generator[sqlite3.Connection, None, None]:
    """Context manager that always closes the connection."""
    conn = get_db()
    try:
        yield conn
    finally:
        conn.close()


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def init_db() -> None:
    """Create tables and indexes (idempotent)."""
    conn = get_db()
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            role TEXT DEFAULT 'user',
            is_active BOOLEAN DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """
    )
    cur.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email_unique ON users(email)")

    # Listings are stored document-style: amenities and tags are JSON arrays
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS listings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            external_id TEXT UNIQUE NOT NULL,
            title TEXT NOT NULL,
            type TEXT NOT NULL,
            price NUMERIC NOT NULL,
            state TEXT NOT NULL,
            city TEXT NOT NULL,
            area_sqft NUMERIC NOT NULL,
            bedrooms INTEGER NOT NULL,
            bathrooms INTEGER NOT NULL,
            amenities TEXT NOT NULL DEFAULT '[]',
            furnished TEXT NOT NULL,
            available_from TEXT NOT NULL,
            listed_by TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            color_theme TEXT NOT NULL,
            rating NUMERIC,
            is_verified BOOLEAN DEFAULT 0,
            listing_type TEXT NOT NULL,
            created_by INTEGER NOT NULL,
            is_active BOOLEAN DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (created_by) REFERENCES users (id)
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_listings_city_type ON listings(city, type)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_listings_price ON listings(price)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_listings_listing_type ON listings(listing_type)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_listings_created_by ON listings(created_by)")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS favorites (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            listing_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users (id),
            FOREIGN KEY (listing_id) REFERENCES listings (id),
            UNIQUE(user_id, listing_id)
        )
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS recommendations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            from_user_id INTEGER NOT NULL,
            to_user_id INTEGER NOT NULL,
            listing_id INTEGER NOT NULL,
            message TEXT,
            is_read BOOLEAN DEFAULT 0,
            created_at TEXT NOT NULL,
            FOREIGN KEY (from_user_id) REFERENCES users (id),
            FOREIGN KEY (to_user_id) REFERENCES users (id),
            FOREIGN KEY (listing_id) REFERENCES listings (id),
            UNIQUE(from_user_id, to_user_id, listing_id)
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_recommendations_to_read ON recommendations(to_user_id, is_read)")

    conn.commit()
    conn.close()

    if IS_DEV:
        print(f"[DB] Schema ensured at {DB_PATH}")
