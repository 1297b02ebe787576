from postgrest.exceptions import APIError

from fake_supabase import bearer


def _seed_prices(db, owner_id):
    for price in [50, 120, 150, 210, 180]:
        db.add_ad(owner_id, title=f"Rifle {price}", price=float(price))


def test_price_window_sorted_ascending_first_page(client, fake_db):
    seller = fake_db.add_user("seller@example.com", metadata={"full_name": "Sam Seller"})
    _seed_prices(fake_db, seller["id"])

    resp = client.get("/api/ads", params={"price_min": 100, "price_max": 200, "sort": "price-asc", "limit": 2})

    assert resp.status_code == 200
    body = resp.json()
    assert [ad["price"] for ad in body["ads"]] == [120, 150]
    assert body["total"] == 3
    assert body["page"] == 1
    assert body["limit"] == 2
    assert body["ads"][0]["profiles"] == {"full_name": "Sam Seller", "avatar_url": None}


def test_second_page_continues_the_same_order(client, fake_db):
    seller = fake_db.add_user("seller@example.com")
    _seed_prices(fake_db, seller["id"])

    resp = client.get(
        "/api/ads", params={"price_min": 100, "price_max": 200, "sort": "price-asc", "limit": 2, "page": 2}
    )

    assert [ad["price"] for ad in resp.json()["ads"]] == [180]


def test_default_listing_is_newest_first(client, fake_db):
    seller = fake_db.add_user("seller@example.com")
    first = fake_db.add_ad(seller["id"], title="older")
    second = fake_db.add_ad(seller["id"], title="newer")

    ids = [ad["id"] for ad in client.get("/api/ads").json()["ads"]]

    assert ids == [second["id"], first["id"]]


def test_unknown_sort_falls_back_to_relevance(client, fake_db):
    seller = fake_db.add_user("seller@example.com")
    fake_db.add_ad(seller["id"], title="a")
    resp = client.get("/api/ads", params={"sort": "cheapest"})
    assert resp.status_code == 200
    assert resp.json()["total"] == 1


def test_search_with_reserved_characters_is_quoted(client, fake_db):
    seller = fake_db.add_user("seller@example.com")
    fake_db.add_ad(seller["id"], title="Tokyo Marui M4, AEG")
    fake_db.add_ad(seller["id"], title="Glock", description="gas pistol (green gas)")

    resp = client.get("/api/ads", params={"search": "m4, aeg"})

    assert [ad["title"] for ad in resp.json()["ads"]] == ["Tokyo Marui M4, AEG"]
    assert '"%m4, aeg%"' in fake_db.or_expressions[-1]

    resp = client.get("/api/ads", params={"search": "(green"})
    assert [ad["title"] for ad in resp.json()["ads"]] == ["Glock"]


def test_category_is_accepted_but_not_applied(client, fake_db):
    seller = fake_db.add_user("seller@example.com")
    fake_db.add_ad(seller["id"])
    resp = client.get("/api/ads", params={"category": "rifles,pistols"})
    assert resp.status_code == 200
    assert resp.json()["total"] == 1


def test_limit_above_maximum_is_rejected(client, fake_db):
    resp = client.get("/api/ads", params={"limit": 51})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation Error"


def test_invalid_token_does_not_block_public_listing(client, fake_db):
    resp = client.get("/api/ads", headers=bearer("not-a-token"))
    assert resp.status_code == 200


def test_storage_path_image_is_expanded_to_public_url(client, fake_db):
    seller = fake_db.add_user("seller@example.com")
    stored = fake_db.add_ad(seller["id"], image="photos/m4.jpg")
    external = fake_db.add_ad(seller["id"], image="https://cdn.example.com/x.png")

    by_id = {ad["id"]: ad for ad in client.get("/api/ads").json()["ads"]}

    assert by_id[stored["id"]]["image"] == "https://project.supabase.co/storage/v1/object/public/ads/photos/m4.jpg"
    assert by_id[external["id"]]["image"] == "https://cdn.example.com/x.png"


def test_get_ad_and_missing_ad(client, fake_db):
    seller = fake_db.add_user("seller@example.com", metadata={"full_name": "Sam"})
    ad = fake_db.add_ad(seller["id"], title="Sniper")

    resp = client.get(f"/api/ads/{ad['id']}")
    assert resp.status_code == 200
    assert resp.json()["ad"]["title"] == "Sniper"
    assert resp.json()["ad"]["profiles"]["full_name"] == "Sam"

    resp = client.get("/api/ads/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Ad not found"


def test_create_requires_auth(client, fake_db):
    resp = client.post("/api/ads", json={"title": "x", "description": "y", "price": 1})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized", "message": "Missing or invalid authorization header"}


def test_create_sets_owner_and_status_from_server(client, fake_db):
    user = fake_db.add_user("owner@example.com")
    token = fake_db.token_for(user["id"])

    resp = client.post(
        "/api/ads",
        json={"title": "AK", "description": "Full metal", "price": 300, "condition": "good", "user_id": "someone-else"},
        headers=bearer(token),
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Ad created successfully"
    assert body["ad"]["user_id"] == user["id"]
    assert body["ad"]["status"] == "active"
    assert body["ad"]["condition"] == "good"


def test_create_validation(client, fake_db):
    user = fake_db.add_user("owner@example.com")
    token = fake_db.token_for(user["id"])

    resp = client.post("/api/ads", json={"description": "no title", "price": -1}, headers=bearer(token))

    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation Error"
    assert "title" in resp.json()["message"]


def test_non_owner_update_is_forbidden_and_ad_unchanged(client, fake_db):
    owner = fake_db.add_user("owner@example.com")
    other = fake_db.add_user("other@example.com")
    ad = fake_db.add_ad(owner["id"], title="Original", price=100.0)
    token = fake_db.token_for(other["id"])

    resp = client.put(f"/api/ads/{ad['id']}", json={"title": "Hijacked"}, headers=bearer(token))
    assert resp.status_code == 403
    assert resp.json() == {"error": "Forbidden", "message": "You can only update your own ads"}

    resp = client.put(f"/api/ads/{ad['id']}", json={"price": -5}, headers=bearer(token))
    assert resp.status_code == 403

    assert client.get(f"/api/ads/{ad['id']}").json()["ad"]["title"] == "Original"


def test_owner_update_is_partial_and_keeps_owner(client, fake_db):
    owner = fake_db.add_user("owner@example.com")
    ad = fake_db.add_ad(owner["id"], title="Original", price=100.0)
    token = fake_db.token_for(owner["id"])

    resp = client.put(
        f"/api/ads/{ad['id']}",
        json={"price": 90, "status": "sold", "user_id": "someone-else"},
        headers=bearer(token),
    )

    assert resp.status_code == 200
    updated = resp.json()["ad"]
    assert updated["price"] == 90
    assert updated["status"] == "sold"
    assert updated["title"] == "Original"
    assert updated["user_id"] == owner["id"]


def test_owner_update_with_nothing_to_change(client, fake_db):
    owner = fake_db.add_user("owner@example.com")
    ad = fake_db.add_ad(owner["id"])
    token = fake_db.token_for(owner["id"])

    resp = client.put(f"/api/ads/{ad['id']}", json={}, headers=bearer(token))

    assert resp.status_code == 400


def test_update_missing_ad(client, fake_db):
    user = fake_db.add_user("owner@example.com")
    token = fake_db.token_for(user["id"])
    resp = client.put("/api/ads/missing", json={"title": "x"}, headers=bearer(token))
    assert resp.status_code == 404


def test_delete_by_non_owner_then_owner(client, fake_db):
    owner = fake_db.add_user("owner@example.com")
    other = fake_db.add_user("other@example.com")
    ad = fake_db.add_ad(owner["id"])

    resp = client.delete(f"/api/ads/{ad['id']}", headers=bearer(fake_db.token_for(other["id"])))
    assert resp.status_code == 403
    assert resp.json()["message"] == "You can only delete your own ads"
    assert client.get(f"/api/ads/{ad['id']}").status_code == 200

    resp = client.delete(f"/api/ads/{ad['id']}", headers=bearer(fake_db.token_for(owner["id"])))
    assert resp.status_code == 200
    assert resp.json() == {"message": "Ad deleted successfully"}
    assert client.get(f"/api/ads/{ad['id']}").status_code == 404


def test_my_ads_filters_by_caller_and_status(client, fake_db):
    me = fake_db.add_user("me@example.com")
    other = fake_db.add_user("other@example.com")
    fake_db.add_ad(me["id"], title="mine active")
    fake_db.add_ad(me["id"], title="mine sold", status="sold")
    fake_db.add_ad(other["id"], title="theirs")
    token = fake_db.token_for(me["id"])

    resp = client.get("/api/ads/my/ads", headers=bearer(token))
    assert sorted(ad["title"] for ad in resp.json()["ads"]) == ["mine active", "mine sold"]

    resp = client.get("/api/ads/my/ads", params={"status": "sold"}, headers=bearer(token))
    assert [ad["title"] for ad in resp.json()["ads"]] == ["mine sold"]
    assert resp.json()["total"] == 1


def test_upstream_query_error_maps_to_bad_request(client, fake_db):
    fake_db.fail_with = APIError({"message": "column does not exist", "code": "42703", "hint": None, "details": None})
    resp = client.get("/api/ads")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Failed to fetch ads", "message": "column does not exist"}


def test_unexpected_failure_maps_to_internal_error(client, fake_db):
    fake_db.fail_with = RuntimeError("connection reset")
    resp = client.get("/api/ads")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error", "message": "Failed to fetch ads"}
