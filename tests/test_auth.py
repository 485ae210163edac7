from datetime import timedelta

from conftest import register
from security import create_access_token


def test_register_returns_token_and_public_user(client, db):
    response = client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "Alice@Example.com", "password": "secret1"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "alice@example.com"
    assert body["user"]["role"] == "user"
    assert "password" not in body["user"]

    stored = db["users"].find_one({"email": "alice@example.com"})
    assert stored["password"] != "secret1"


def test_register_duplicate_email(client, alice):
    response = client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "alice@example.com", "password": "secret1"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Email is already registered"}


def test_register_validation_errors_are_joined(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "  ", "email": "not-an-email", "password": "123"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    fields = {e["field"] for e in body["errors"]}
    assert fields == {"name", "email", "password"}
    assert "Name is required" in body["message"]
    assert "Password must be at least 6 characters" in body["message"]


def test_login(client, alice):
    response = client.post(
        "/api/auth/login", json={"email": "alice@example.com", "password": "secret1"}
    )
    assert response.status_code == 200
    assert response.json()["token"]


def test_login_wrong_password_and_unknown_email(client, alice):
    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope123"})
    unknown = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "secret1"})

    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["message"] == "Invalid credentials"


def test_me_requires_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_rejects_bad_and_expired_tokens(client, alice):
    _, user = alice
    expired = create_access_token({"sub": user["id"]}, expires_delta=timedelta(minutes=-1))

    for token in ("garbage", expired):
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


def test_me_returns_current_user(client, alice):
    headers, user = alice
    response = client.get("/api/auth/me", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["id"] == user["id"]


def test_update_details(client, alice):
    headers, _ = alice
    response = client.put(
        "/api/auth/updatedetails",
        json={"name": "Alice B", "bio": "Writer", "website": "https://alice.dev"},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Alice B"
    assert data["bio"] == "Writer"
    assert data["email"] == "alice@example.com"


def test_update_details_email_taken(client, alice, bob):
    headers, _ = bob
    response = client.put(
        "/api/auth/updatedetails", json={"email": "alice@example.com"}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Email already exists"


def test_update_password(client, alice):
    headers, _ = alice
    wrong = client.put(
        "/api/auth/updatepassword",
        json={"currentPassword": "wrong1", "newPassword": "newsecret"},
        headers=headers,
    )
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Password is incorrect"

    ok = client.put(
        "/api/auth/updatepassword",
        json={"currentPassword": "secret1", "newPassword": "newsecret"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert ok.json()["token"]

    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "newsecret"})
    assert login.status_code == 200


def test_logout(client):
    response = client.get("/api/auth/logout")
    assert response.json() == {"success": True, "data": {}}


def test_list_users_is_admin_only(client, alice, admin):
    alice_headers, _ = alice
    admin_headers, _ = admin

    forbidden = client.get("/api/auth/users", headers=alice_headers)
    assert forbidden.status_code == 403

    allowed = client.get("/api/auth/users", headers=admin_headers)
    assert allowed.status_code == 200
    assert allowed.json()["count"] == 2


def test_user_profile_hides_email(client, alice):
    _, user = alice
    response = client.get(f"/api/auth/users/{user['id']}")

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Alice"
    assert "email" not in response.json()["data"]


def test_user_profile_unknown(client):
    assert client.get("/api/auth/users/5f1d7f0c2b3a4c5d6e7f8091").status_code == 404
    assert client.get("/api/auth/users/not-an-id").status_code == 404


def test_register_second_user_gets_distinct_token(client, alice):
    headers, user = register(client, name="Carol", email="carol@example.com")
    me = client.get("/api/auth/me", headers=headers).json()["data"]
    assert me["id"] != alice[1]["id"]
    assert me["name"] == "Carol"
