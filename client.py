"""Client for the Blog API.

BlogClient wraps every route in one method and attaches the stored bearer
token to each request. AuthSession is the explicit session object: start()
loads and validates the stored token, logout() clears it.

    with BlogClient("http://localhost:8000/api", TokenStore(Path("~/.blog/token.json"))) as api:
        session = AuthSession(api)
        session.start()
        if not session.is_authenticated:
            session.login("ada@example.com", "secret1")
        api.create_post({"title": "Hello", "content": "...", "category": category_id})
"""

import json
from pathlib import Path
from typing import Any, Optional

import httpx

from config import get_logger

logger = get_logger("client")


class ApiClientError(Exception):
    """Raised when the API answers with success: false."""

    def __init__(self, status_code: int, message: str, payload: Optional[dict] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}


class TokenStore:
    """Persists the bearer token between runs; in-memory only when path is None."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path).expanduser() if path else None
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    def load(self) -> Optional[str]:
        if self.path and self.path.exists():
            try:
                with open(self.path, "r") as f:
                    self._token = json.load(f).get("token")
            except (json.JSONDecodeError, OSError):
                self._token = None
        return self._token

    def save(self, token: str) -> None:
        self._token = token
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump({"token": token}, f)

    def clear(self) -> None:
        self._token = None
        if self.path and self.path.exists():
            self.path.unlink()


class BlogClient:
    """Thin wrapper issuing one HTTP call per API route."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        token_store: Optional[TokenStore] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.tokens = token_store or TokenStore()
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _headers(self) -> dict:
        headers = {}
        if self.tokens.token:
            headers["Authorization"] = f"Bearer {self.tokens.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self._http.request(
            method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
        )
        try:
            payload = response.json()
        except ValueError:
            payload = {"success": False, "message": response.text or response.reason_phrase}

        if response.is_error or not payload.get("success", False):
            message = payload.get("message") or f"Request failed with status {response.status_code}"
            logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise ApiClientError(response.status_code, message, payload)
        return payload

    # Auth

    def register(self, name: str, email: str, password: str) -> dict:
        payload = self._request("POST", "/auth/register", json={"name": name, "email": email, "password": password})
        self.tokens.save(payload["token"])
        return payload

    def login(self, email: str, password: str) -> dict:
        payload = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.tokens.save(payload["token"])
        return payload

    def logout(self) -> None:
        try:
            self._request("GET", "/auth/logout")
        finally:
            self.tokens.clear()

    def get_current_user(self) -> dict:
        return self._request("GET", "/auth/me")

    def update_user_details(self, **details) -> dict:
        return self._request("PUT", "/auth/updatedetails", json=details)

    def update_password(self, current_password: str, new_password: str) -> dict:
        payload = self._request(
            "PUT",
            "/auth/updatepassword",
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        self.tokens.save(payload["token"])
        return payload

    def get_user_profile(self, user_id: str) -> dict:
        return self._request("GET", f"/auth/users/{user_id}")

    # Posts

    def get_posts(self, **params) -> dict:
        return self._request("GET", "/posts", params=params)

    def get_user_posts(self, user_id: str, **params) -> dict:
        return self._request("GET", f"/posts/user/{user_id}", params=params)

    def get_post(self, post_id: str) -> dict:
        return self._request("GET", f"/posts/{post_id}")

    def create_post(self, post_data: dict) -> dict:
        return self._request("POST", "/posts", json=post_data)

    def update_post(self, post_id: str, post_data: dict) -> dict:
        return self._request("PUT", f"/posts/{post_id}", json=post_data)

    def delete_post(self, post_id: str) -> dict:
        return self._request("DELETE", f"/posts/{post_id}")

    def upload_post_image(self, post_id: str, filename: str, content: bytes, content_type: str) -> dict:
        files = {"file": (filename, content, content_type)}
        return self._request("PUT", f"/posts/{post_id}/image", files=files)

    def like_post(self, post_id: str) -> dict:
        return self._request("PUT", f"/posts/{post_id}/like")

    def unlike_post(self, post_id: str) -> dict:
        return self._request("PUT", f"/posts/{post_id}/unlike")

    def add_comment(self, post_id: str, text: str) -> dict:
        return self._request("POST", f"/posts/{post_id}/comments", json={"text": text})

    def delete_comment(self, post_id: str, comment_id: str) -> dict:
        return self._request("DELETE", f"/posts/{post_id}/comments/{comment_id}")

    # Categories

    def get_categories(self) -> dict:
        return self._request("GET", "/categories")

    def get_category(self, category_id: str) -> dict:
        return self._request("GET", f"/categories/{category_id}")

    @staticmethod
    def _category_body(name: str, description: Optional[str]) -> dict:
        # an explicit null would overwrite the stored description
        body = {"name": name}
        if description is not None:
            body["description"] = description
        return body

    def create_category(self, name: str, description: Optional[str] = None) -> dict:
        return self._request("POST", "/categories", json=self._category_body(name, description))

    def update_category(self, category_id: str, name: str, description: Optional[str] = None) -> dict:
        return self._request("PUT", f"/categories/{category_id}", json=self._category_body(name, description))

    def delete_category(self, category_id: str) -> dict:
        return self._request("DELETE", f"/categories/{category_id}")

    def health(self) -> dict:
        return self._request("GET", "/health")


class AuthSession:
    """
    Authentication state for one client.

    start() is the load-on-start step: it reads the stored token and
    validates it against /auth/me, clearing it when the API rejects it.
    logout() is the teardown step.
    """

    def __init__(self, client: BlogClient):
        self.client = client
        self.user: Optional[dict] = None
        self.error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def start(self) -> Optional[dict]:
        self.error = None
        if not self.client.tokens.load():
            return None
        try:
            self.user = self.client.get_current_user()["data"]
        except ApiClientError as exc:
            logger.info("Stored token rejected: %s", exc.message)
            self.client.tokens.clear()
            self.user = None
        return self.user

    def login(self, email: str, password: str) -> dict:
        return self._authenticate(self.client.login, email, password)

    def register(self, name: str, email: str, password: str) -> dict:
        return self._authenticate(self.client.register, name, email, password)

    def _authenticate(self, call, *args) -> dict:
        self.error = None
        try:
            payload = call(*args)
        except ApiClientError as exc:
            self.error = exc.message
            raise
        self.user = payload.get("user")
        return self.user

    def update_profile(self, **details) -> dict:
        self.user = self.client.update_user_details(**details)["data"]
        return self.user

    def logout(self) -> None:
        try:
            self.client.logout()
        finally:
            self.user = None
            self.error = None
