"""
propertyhub/test_auth.py

Registration, login, token checks and profile updates.

Run: pytest propertyhub/test_auth.py -v
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from propertyhub.auth_context import hash_password, verify_password
from propertyhub.config import ALGORITHM, SECRET_KEY


def register(client, email="carol@example.com", password="hunter22", name="Carol"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def test_password_hash_is_salted_and_verifiable():
    first = hash_password("hunter22")
    second = hash_password("hunter22")
    assert first != second
    assert verify_password("hunter22", first)
    assert not verify_password("wrong", first)
    assert not verify_password("hunter22", "garbage")


def test_register_then_login_round_trip(client):
    resp = register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "carol@example.com"
    assert body["user"]["role"] == "user"
    assert "password" not in str(body["user"])

    login = client.post("/api/auth/login", json={"email": "Carol@Example.com", "password": "hunter22"})
    assert login.status_code == 200

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {login.json()['token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]


def test_duplicate_email_is_rejected(client):
    register(client)
    resp = register(client, name="Other Carol")
    assert resp.status_code == 400
    assert resp.json() == {"message": "Email already registered"}


def test_register_validates_email_and_password(client):
    assert register(client, email="not-an-email").status_code == 422
    assert register(client, password="123").status_code == 422


def test_login_with_wrong_password(client):
    register(client)
    resp = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credentials"


def test_inactive_user_is_refused(client, create_user):
    user = create_user(email="sleepy@example.com", is_active=False)
    assert client.get("/api/auth/me", headers=user["headers"]).status_code == 403


def test_expired_token_is_rejected(client, create_user):
    user = create_user()
    token = jwt.encode(
        {"sub": str(user["id"]), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        SECRET_KEY,
        algorithm=ALGORITHM,
    )
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_tampered_token_is_rejected(client, create_user):
    user = create_user()
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {user['token']}x"})
    assert resp.status_code == 401


def test_missing_token_is_rejected(client):
    assert client.get("/api/auth/me").status_code in (401, 403)


def test_profile_update(client, create_user):
    user = create_user()
    resp = client.put("/api/users/profile", json={"name": "Alice B", "role": "agent"}, headers=user["headers"])
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Alice B"
    assert resp.json()["user"]["role"] == "agent"
    assert client.get("/api/users/profile", headers=user["headers"]).json()["name"] == "Alice B"


def test_profile_name_change_refreshes_cached_owner(client, create_user, insert_listing):
    user = create_user()
    listing = insert_listing(user["id"])
    assert client.get(f"/api/properties/{listing['id']}").json()["createdBy"]["name"] == "Alice"

    client.put("/api/users/profile", json={"name": "Alice B"}, headers=user["headers"])

    assert client.get(f"/api/properties/{listing['id']}").json()["createdBy"]["name"] == "Alice B"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"
    assert "timestamp" in resp.json()
    assert resp.json()["uptime"] >= 0
