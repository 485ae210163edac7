import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from config import Settings, set_settings


@pytest.fixture
def settings(tmp_path):
    test_settings = Settings(
        app_env="test",
        secret_key="test-secret",
        file_upload_path=str(tmp_path / "uploads"),
    )
    set_settings(test_settings)
    yield test_settings
    set_settings(None)


@pytest.fixture
def db():
    mock_db = mongomock.MongoClient()["blog_test"]
    database.ensure_indexes(mock_db)
    return mock_db


@pytest.fixture
def app(settings, db):
    from main import create_app

    application = create_app(settings)
    application.dependency_overrides[database.get_db] = lambda: db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def register(client, name="Alice", email="alice@example.com", password="secret1"):
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def alice(client):
    return register(client)


@pytest.fixture
def bob(client):
    return register(client, name="Bob", email="bob@example.com")


@pytest.fixture
def admin(client, db):
    headers, user = register(client, name="Admin", email="admin@example.com")
    db[database.USERS].update_one(
        {"_id": database.to_object_id(user["id"])}, {"$set": {"role": "admin"}}
    )
    return headers, user


@pytest.fixture
def category(client, alice):
    headers, _ = alice
    response = client.post("/api/categories", json={"name": "Tech"}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_post(client, headers, category_id, title="Hello World", **extra):
    payload = {
        "title": title,
        "content": "Some content that is long enough.",
        "category": category_id,
    }
    payload.update(extra)
    response = client.post("/api/posts", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]
