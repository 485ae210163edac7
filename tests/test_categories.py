def test_create_category(client, alice):
    headers, user = alice
    response = client.post(
        "/api/categories",
        json={"name": "Machine Learning", "description": "Models and data"},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["slug"] == "machine-learning"
    assert data["user"] == user["id"]


def test_create_category_requires_auth(client):
    assert client.post("/api/categories", json={"name": "Tech"}).status_code == 401


def test_create_category_validation(client, alice):
    headers, _ = alice
    response = client.post("/api/categories", json={"name": "x" * 51}, headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Name cannot be more than 50 characters"


def test_duplicate_category_name(client, alice, category):
    headers, _ = alice
    response = client.post("/api/categories", json={"name": "Tech"}, headers=headers)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Name already exists"}


def test_duplicate_category_slug(client, alice, category):
    headers, _ = alice
    response = client.post("/api/categories", json={"name": "tech!"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Slug already exists"


def test_list_and_get_category(client, alice, category):
    headers, _ = alice
    client.post("/api/categories", json={"name": "Art"}, headers=headers)

    listing = client.get("/api/categories").json()
    assert listing["count"] == 2
    assert [c["name"] for c in listing["data"]] == ["Art", "Tech"]

    by_id = client.get(f"/api/categories/{category['id']}").json()["data"]
    by_slug = client.get("/api/categories/tech").json()["data"]
    assert by_id["id"] == by_slug["id"] == category["id"]
    assert by_id["user"]["name"] == "Alice"

    assert client.get("/api/categories/unknown-slug").status_code == 404


def test_update_category(client, alice, bob, admin, category):
    url = f"/api/categories/{category['id']}"

    forbidden = client.put(url, json={"name": "Bob's"}, headers=bob[0])
    assert forbidden.status_code == 403

    renamed = client.put(url, json={"name": "Technology"}, headers=alice[0])
    assert renamed.status_code == 200
    assert renamed.json()["data"]["slug"] == "technology"

    by_admin = client.put(url, json={"name": "Tech News"}, headers=admin[0])
    assert by_admin.json()["data"]["slug"] == "tech-news"


def test_delete_category(client, alice, bob, category):
    url = f"/api/categories/{category['id']}"

    assert client.delete(url).status_code == 401
    assert client.delete(url, headers=bob[0]).status_code == 403
    assert client.delete(url, headers=alice[0]).json() == {"success": True, "data": {}}
    assert client.get(url).status_code == 404
