"""
propertyhub/test_favorites_recommendations.py

Favorites and user-to-user recommendations.

Run: pytest propertyhub/test_favorites_recommendations.py -v
"""

from __future__ import annotations

import pytest

from propertyhub.listing_store import ListingStore


@pytest.fixture
def alice(create_user):
    return create_user(name="Alice", email="alice@example.com")


@pytest.fixture
def bob(create_user):
    return create_user(name="Bob", email="bob@example.com")


@pytest.fixture
def listing(alice, insert_listing):
    return insert_listing(alice["id"], external_id="PROP777")


# ========================================================================
# FAVORITES
# ========================================================================

def test_add_and_list_favorites(client, bob, listing):
    resp = client.post(f"/api/favorites/{listing['id']}", headers=bob["headers"])
    assert resp.status_code == 201
    assert resp.json()["message"] == "Added to favorites"

    data = client.get("/api/favorites", headers=bob["headers"]).json()
    assert data["pagination"]["total"] == 1
    assert data["favorites"][0]["property"]["_id"] == listing["_id"]
    assert data["favorites"][0]["user"] == bob["id"]


def test_favorite_by_storage_id(client, bob, listing):
    resp = client.post(f"/api/favorites/{listing['_id']}", headers=bob["headers"])
    assert resp.status_code == 201


def test_duplicate_favorite_is_rejected(client, bob, listing):
    client.post(f"/api/favorites/{listing['id']}", headers=bob["headers"])
    resp = client.post(f"/api/favorites/{listing['_id']}", headers=bob["headers"])
    assert resp.status_code == 400
    assert resp.json() == {"message": "Property already in favorites"}


def test_favorite_unknown_listing_is_404(client, bob):
    resp = client.post("/api/favorites/PROPNOPE", headers=bob["headers"])
    assert resp.status_code == 404


def test_remove_favorite(client, bob, listing):
    client.post(f"/api/favorites/{listing['id']}", headers=bob["headers"])

    resp = client.delete(f"/api/favorites/{listing['id']}", headers=bob["headers"])
    assert resp.status_code == 200
    assert resp.json() == {"message": "Removed from favorites"}

    again = client.delete(f"/api/favorites/{listing['id']}", headers=bob["headers"])
    assert again.status_code == 404
    assert again.json() == {"message": "Favorite not found"}


def test_soft_deleted_listing_drops_out_of_favorites(client, alice, bob, listing):
    client.post(f"/api/favorites/{listing['id']}", headers=bob["headers"])
    client.delete(f"/api/properties/{listing['id']}", headers=alice["headers"])

    data = client.get("/api/favorites", headers=bob["headers"]).json()
    assert data["favorites"] == []
    # still removable
    assert client.delete(f"/api/favorites/{listing['id']}", headers=bob["headers"]).status_code == 200


def test_favorites_require_auth(client):
    assert client.get("/api/favorites").status_code in (401, 403)


# ========================================================================
# RECOMMENDATIONS
# ========================================================================

def recommend(client, sender, email, property_id, message="Have a look"):
    return client.post(
        "/api/recommendations",
        json={"email": email, "propertyId": property_id, "message": message},
        headers=sender["headers"],
    )


def test_recommend_and_read_received(client, alice, bob, listing):
    resp = recommend(client, alice, "BOB@example.com", listing["id"])
    assert resp.status_code == 201
    rec = resp.json()["recommendation"]
    assert resp.json()["message"] == "Recommendation sent successfully"
    assert rec["from"] == {"_id": alice["id"], "name": "Alice", "email": "alice@example.com"}
    assert rec["to"]["_id"] == bob["id"]
    assert rec["isRead"] is False

    received = client.get("/api/recommendations/received", headers=bob["headers"]).json()
    assert received["pagination"]["total"] == 1
    assert received["recommendations"][0]["property"]["id"] == "PROP777"

    sent = client.get("/api/recommendations/sent", headers=alice["headers"]).json()
    assert sent["pagination"]["total"] == 1


def test_cannot_recommend_to_yourself(client, alice, listing):
    resp = recommend(client, alice, alice["email"], listing["id"])
    assert resp.status_code == 400
    assert resp.json() == {"message": "Cannot recommend to yourself"}


def test_recommend_to_unknown_user_is_404(client, alice, listing):
    resp = recommend(client, alice, "nobody@example.com", listing["id"])
    assert resp.status_code == 404
    assert resp.json() == {"message": "User not found"}


def test_recommend_unknown_listing_is_404(client, alice, bob):
    resp = recommend(client, alice, bob["email"], "PROPNOPE")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Property not found"}


def test_duplicate_recommendation_is_rejected(client, alice, bob, listing):
    recommend(client, alice, bob["email"], listing["id"])
    resp = recommend(client, alice, bob["email"], str(listing["_id"]))
    assert resp.status_code == 400
    assert resp.json() == {"message": "Property already recommended to this user"}


def test_only_recipient_can_mark_read(client, alice, bob, listing):
    rec_id = recommend(client, alice, bob["email"], listing["id"]).json()["recommendation"]["_id"]

    denied = client.patch(f"/api/recommendations/{rec_id}/read", headers=alice["headers"])
    assert denied.status_code == 404

    resp = client.patch(f"/api/recommendations/{rec_id}/read", headers=bob["headers"])
    assert resp.status_code == 200
    assert resp.json()["recommendation"]["isRead"] is True


def test_user_search_excludes_self_and_inactive(client, alice, bob, create_user):
    create_user(name="Ghost", email="ghost@example.com", is_active=False)

    resp = client.get("/api/recommendations/users/search", params={"email": "EXAMPLE"}, headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json() == [{"_id": bob["id"], "name": "Bob", "email": "bob@example.com"}]


def test_user_search_requires_email(client, alice):
    resp = client.get("/api/recommendations/users/search", headers=alice["headers"])
    assert resp.status_code == 400
    assert resp.json() == {"message": "Email query is required"}


# ========================================================================
# PAGE QUERIES
# ========================================================================

@pytest.fixture
def no_single_listing_fetches(monkeypatch):
    def fail(self, *args, **kwargs):
        raise AssertionError("listing fetched one row at a time")

    monkeypatch.setattr(ListingStore, "get", fail)


def test_favorites_page_is_one_joined_query(client, alice, bob, insert_listing, no_single_listing_fetches):
    listings = [insert_listing(alice["id"], title=f"Flat {i}") for i in range(3)]
    for item in listings:
        client.post(f"/api/favorites/{item['id']}", headers=bob["headers"])

    data = client.get("/api/favorites", params={"limit": "2"}, headers=bob["headers"]).json()

    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [f["property"]["title"] for f in data["favorites"]] == ["Flat 2", "Flat 1"]
    first = data["favorites"][0]
    assert first["user"] == bob["id"]
    assert first["createdAt"]
    assert first["property"]["createdBy"] == {"_id": alice["id"], "name": "Alice", "email": "alice@example.com"}

    second_page = client.get("/api/favorites", params={"limit": "2", "page": "2"}, headers=bob["headers"]).json()
    assert [f["property"]["title"] for f in second_page["favorites"]] == ["Flat 0"]


def test_recommendation_page_expands_rows_in_batches(client, alice, bob, insert_listing, no_single_listing_fetches):
    for i in range(2):
        item = insert_listing(alice["id"], title=f"Loft {i}")
        assert recommend(client, alice, "bob@example.com", item["id"]).status_code == 201

    data = client.get("/api/recommendations/received", headers=bob["headers"]).json()

    assert data["pagination"]["total"] == 2
    assert sorted(r["property"]["title"] for r in data["recommendations"]) == ["Loft 0", "Loft 1"]
    for rec in data["recommendations"]:
        assert rec["from"] == {"_id": alice["id"], "name": "Alice", "email": "alice@example.com"}
        assert rec["to"]["email"] == "bob@example.com"
