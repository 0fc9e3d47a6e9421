"""
propertyhub/import_listings.py

Bulk import of listings from a CSV file or URL.

- amenities/tags columns are pipe-separated
- isVerified is true only for the literal "True"
- rows whose external id already exists are skipped, so re-running is safe
- imported listings are owned by a system admin user, created on first run
- list/search cache entries are dropped once the import finishes

Run: python -m propertyhub.import_listings <path-or-url>
"""

from __future__ import annotations

import argparse
import csv
import io
import secrets
import sqlite3
import sys
from pathlib import Path as FsPath
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests
from pydantic import ValidationError as SchemaValidationError

from propertyhub.auth_context import hash_password
from propertyhub.cache import CacheClient
from propertyhub.cache_keys import invalidate_collections
from propertyhub.db import db_connection, init_db, now_iso
from propertyhub.errors import ConflictError, PropertyHubError
from propertyhub.listing_store import ListingStore
from propertyhub.models import UserRole
from propertyhub.schemas import ListingCreateRequest

SYSTEM_ADMIN_EMAIL = "admin@propertyhub.local"
SYSTEM_ADMIN_NAME = "System Admin"

DOWNLOAD_TIMEOUT_SECONDS = 30


def read_source(source: str) -> str:
    """CSV text from a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        print(f"[IMPORT] Downloading {source}")
        resp = requests.get(source, timeout=DOWNLOAD_TIMEOUT_SECONDS)
        resp.raise_for_status()
        return resp.text
    return FsPath(source).read_text(encoding="utf-8-sig")


def _split_pipes(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split("|") if part.strip()]


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def row_to_document(row: Dict[str, str]) -> Dict[str, Any]:
    """
    Convert one CSV row into a validated listing document (wire names).

    Raises:
        pydantic.ValidationError: when a required column is missing or invalid
    """
    raw = {
        "title": row.get("title"),
        "type": _blank_to_none(row.get("type")),
        "price": _blank_to_none(row.get("price")),
        "state": row.get("state"),
        "city": row.get("city"),
        "areaSqFt": _blank_to_none(row.get("areaSqFt")),
        "bedrooms": _blank_to_none(row.get("bedrooms")),
        "bathrooms": _blank_to_none(row.get("bathrooms")),
        "amenities": _split_pipes(row.get("amenities")),
        "furnished": _blank_to_none(row.get("furnished")),
        "availableFrom": _blank_to_none(row.get("availableFrom")),
        "listedBy": _blank_to_none(row.get("listedBy")),
        "tags": _split_pipes(row.get("tags")),
        "colorTheme": row.get("colorTheme"),
        "rating": _blank_to_none(row.get("rating")),
        "isVerified": (row.get("isVerified") or "").strip() == "True",
        "listingType": _blank_to_none(row.get("listingType")),
    }
    document = ListingCreateRequest.model_validate(raw).to_document()
    external_id = _blank_to_none(row.get("id"))
    if external_id:
        document["id"] = external_id
    return document


def ensure_system_admin(conn: sqlite3.Connection) -> int:
    """Return the id of the import owner, creating it when missing."""
    row = conn.execute("SELECT id FROM users WHERE email = ?", (SYSTEM_ADMIN_EMAIL,)).fetchone()
    if row:
        return row["id"]

    # Random password: the account owns imported data and is not meant for login
    cur = conn.execute(
        "INSERT INTO users (name, email, password_hash, role, created_at) VALUES (?, ?, ?, ?, ?)",
        (
            SYSTEM_ADMIN_NAME,
            SYSTEM_ADMIN_EMAIL,
            hash_password(secrets.token_urlsafe(32)),
            UserRole.admin.value,
            now_iso(),
        ),
    )
    conn.commit()
    print(f"[IMPORT] Created system admin user id={cur.lastrowid}")
    return cur.lastrowid


def import_rows(conn: sqlite3.Connection, rows: Iterable[Dict[str, str]]) -> Tuple[int, int, int]:
    """
    Insert listings from parsed CSV rows.

    Returns:
        (imported, skipped_existing, rejected_invalid)
    """
    store = ListingStore(conn)
    owner_id = ensure_system_admin(conn)
    imported = skipped = rejected = 0

    for line_no, row in enumerate(rows, start=2):
        try:
            document = row_to_document(row)
        except SchemaValidationError as e:
            rejected += 1
            print(f"[IMPORT] Line {line_no}: rejected ({e.error_count()} invalid fields)")
            continue

        if "id" in document and store.external_id_exists(document["id"]):
            skipped += 1
            continue

        document["createdBy"] = owner_id
        try:
            store.insert(document)
        except ConflictError:
            # repeated id within the same file
            skipped += 1
            continue
        except PropertyHubError as e:
            rejected += 1
            print(f"[IMPORT] Line {line_no}: {e.message}")
            continue
        imported += 1

    return imported, skipped, rejected


def import_csv_text(text: str, cache: Optional[CacheClient] = None) -> Tuple[int, int, int]:
    """Import CSV text into the configured database and clear list caches."""
    init_db()
    reader = csv.DictReader(io.StringIO(text))
    with db_connection() as conn:
        counts = import_rows(conn, reader)

    if cache is not None and counts[0]:
        invalidate_collections(cache)
    return counts


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import PropertyHub listings from CSV")
    parser.add_argument("source", help="CSV file path or http(s) URL")
    args = parser.parse_args(argv)

    try:
        text = read_source(args.source)
    except (OSError, requests.RequestException) as e:
        print(f"[IMPORT] Could not read {args.source}: {e}")
        return 1

    cache = CacheClient()
    cache.connect()
    try:
        imported, skipped, rejected = import_csv_text(text, cache)
    except PropertyHubError as e:
        print(f"[IMPORT] Failed: {e.message}")
        return 1
    finally:
        cache.close()

    print(f"[IMPORT] Imported {imported} listings ({skipped} already present, {rejected} rejected)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
