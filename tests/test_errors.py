from pathlib import Path

from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from errors import NotFoundError, duplicate_field


def test_duplicate_field_from_key_value():
    exc = DuplicateKeyError("E11000 duplicate key error", 11000, {"keyValue": {"slug": "tech"}})
    assert duplicate_field(exc) == "slug"


def test_duplicate_field_from_index_name():
    exc = DuplicateKeyError(
        "E11000 duplicate key error collection: blog.categories index: name_1 dup key: { name: \"Tech\" }",
        11000,
    )
    assert duplicate_field(exc) == "name"


def test_duplicate_field_unknown():
    assert duplicate_field(DuplicateKeyError("E11000 Duplicate Key Error", 11000)) == ""


def _add_failing_routes(app):
    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    @app.get("/missing")
    def missing():
        raise NotFoundError("Thing not found")

    @app.get("/dup")
    def dup():
        raise DuplicateKeyError("E11000 Duplicate Key Error", 11000)


def test_unexpected_errors_include_stack_outside_production(app):
    _add_failing_routes(app)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/boom")
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "boom"
    assert "RuntimeError" in body["stack"]


def test_unexpected_errors_hide_stack_in_production(app, settings):
    settings.app_env = "production"
    _add_failing_routes(app)
    client = TestClient(app, raise_server_exceptions=False)

    body = client.get("/boom").json()
    assert body == {"success": False, "message": "boom"}


def test_api_errors_and_duplicates(app):
    _add_failing_routes(app)
    client = TestClient(app)

    assert client.get("/missing").json() == {"success": False, "message": "Thing not found"}
    dup = client.get("/dup")
    assert dup.status_code == 400
    assert dup.json()["message"] == "Duplicate field value entered"


def test_unknown_route_uses_error_shape(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["message"] == "API is running"


def test_lifespan_prepares_upload_dir(app, settings):
    upload_dir = Path(settings.file_upload_path)
    assert not upload_dir.exists()

    with TestClient(app) as client:
        assert upload_dir.is_dir()
        assert client.get("/api/health").json()["database"] == "unavailable"


def test_token_url_follows_api_prefix(app, settings):
    schemes = app.openapi()["components"]["securitySchemes"]
    token_url = schemes["OAuth2PasswordBearer"]["flows"]["password"]["tokenUrl"]
    assert token_url == f"{settings.api_prefix}/auth/login"
