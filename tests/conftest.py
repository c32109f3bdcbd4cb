from typing import Any, Callable, Dict, Generator, Tuple

import pytest
from fastapi.testclient import TestClient

from outreach_cms.api.server import create_app
from outreach_cms.config import Config
from outreach_cms.db import ConnectionPool

ADMIN_EMAIL = "admin@example.org"
ADMIN_PASSWORD = "Admin@123"
STRONG_PASSWORD = "Str0ng!Pass"


@pytest.fixture
def cfg(tmp_path) -> Config:
    """A throwaway SQLite file per test; a file (not :memory:) so pooled connections share it."""
    return Config(
        APP_ENV="development",
        DB_DSN=str(tmp_path / "cms.sqlite"),
        DB_POOL_SIZE=4,
        AUTH_JWT_SECRET="test-secret",
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        AUTH_BOOTSTRAP_ADMIN_USERNAME="admin",
        AUTH_BOOTSTRAP_ADMIN_EMAIL=ADMIN_EMAIL,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=ADMIN_PASSWORD,
        CORS_ALLOW_ORIGINS="",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        UPLOAD_MAX_BYTES=1024,
        UPLOAD_URL_PREFIX="/uploads",
    )


@pytest.fixture
def client(cfg: Config) -> Generator[TestClient, None, None]:
    # Entering the client runs the lifespan: pool, schema, bootstrap admin.
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture
def pool(client: TestClient) -> ConnectionPool:
    return client.app.state.pool


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client: TestClient, email: str, password: str):
    return client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.fixture
def admin_token(client: TestClient) -> str:
    resp = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


@pytest.fixture
def admin_headers(admin_token: str) -> Dict[str, str]:
    return bearer(admin_token)


@pytest.fixture
def make_user(client: TestClient, admin_headers: Dict[str, str]) -> Callable[..., Tuple[Dict[str, Any], Dict[str, str]]]:
    """Create a user through the admin API and return (user, auth headers)."""
    counter = {"n": 0}

    def _make(role: str = "editor", **overrides: Any) -> Tuple[Dict[str, Any], Dict[str, str]]:
        counter["n"] += 1
        n = counter["n"]
        body = {
            "username": f"{role}_{n}",
            "email": f"{role}{n}@example.org",
            "password": STRONG_PASSWORD,
            "firstName": "Test",
            "lastName": f"User{n}",
            "role": role,
        }
        body.update(overrides)
        resp = client.post("/api/auth/users", json=body, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        user = resp.json()
        tok = login(client, body["email"], body["password"])
        assert tok.status_code == 200, tok.text
        return user, bearer(tok.json()["token"])

    return _make
