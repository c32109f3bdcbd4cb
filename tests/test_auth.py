from datetime import datetime, timedelta, timezone

import jwt

from outreach_cms.auth.security import create_access_token

from .conftest import ADMIN_EMAIL, ADMIN_PASSWORD, STRONG_PASSWORD, bearer, login


def _register(client, **overrides):
    body = {
        "username": "alice",
        "email": "alice@example.org",
        "password": STRONG_PASSWORD,
        "firstName": "Alice",
        "lastName": "Doe",
    }
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


def _user_count(pool) -> int:
    with pool.connection() as conn:
        return int(conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"])


def test_register_returns_user_and_token(client):
    resp = _register(client)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert isinstance(body["token"], str) and body["token"]
    assert body["user"]["email"] == "alice@example.org"
    assert body["user"]["role"] == "viewer"
    assert "password_hash" not in body["user"]
    assert "password" not in body["user"]


def test_register_weak_password_lists_problems(client):
    resp = _register(client, password="weak")
    assert resp.status_code == 400, resp.text
    body = resp.json()
    assert body["success"] is False
    assert any("at least 8 characters" in e for e in body["errors"])
    assert any("uppercase" in e for e in body["errors"])


def test_register_requires_names(client):
    resp = _register(client, firstName=None, lastName="")
    assert resp.status_code == 400, resp.text
    errors = resp.json()["errors"]
    assert "First name is required" in errors
    assert "Last name is required" in errors


def test_duplicate_email_and_username_rejected(client, pool):
    assert _register(client).status_code == 201
    before = _user_count(pool)

    same_email = _register(client, username="alice2", email="ALICE@example.org")
    assert same_email.status_code == 400, same_email.text
    assert same_email.json()["message"] == "User already exists"

    same_username = _register(client, email="other@example.org")
    assert same_username.status_code == 400, same_username.text
    assert same_username.json()["message"] == "Username is already taken"

    assert _user_count(pool) == before


def test_login_failures_are_indistinguishable(client):
    _register(client)
    wrong_password = login(client, "alice@example.org", "Wr0ng!Pass")
    no_such_user = login(client, "nobody@example.org", STRONG_PASSWORD)

    assert wrong_password.status_code == no_such_user.status_code == 401
    assert wrong_password.json() == no_such_user.json()


def test_login_updates_last_login(client):
    resp = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert resp.status_code == 200, resp.text
    assert resp.json()["user"]["last_login_at"]


def test_me_requires_token(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "No token, authorization denied"}


def test_me_rejects_bad_signature(client):
    token = create_access_token(
        secret="some-other-secret",
        user_id=1,
        username="admin",
        email=ADMIN_EMAIL,
        role="admin",
        expires_minutes=5,
    )
    resp = client.get("/api/auth/me", headers=bearer(token))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token is not valid"


def test_me_rejects_expired_token(client, cfg):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "1", "id": 1, "role": "admin", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
        cfg.AUTH_JWT_SECRET,
        algorithm="HS256",
    )
    resp = client.get("/api/auth/me", headers=bearer(token))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token has expired"


def test_me_rejects_token_for_missing_user(client, cfg):
    token = create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=9999,
        username="ghost",
        email="ghost@example.org",
        role="admin",
        expires_minutes=5,
    )
    resp = client.get("/api/auth/me", headers=bearer(token))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token is not valid"


def test_me_returns_current_user(client, admin_headers):
    resp = client.get("/api/auth/me", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["email"] == ADMIN_EMAIL
    assert body["is_active"] is True
    assert "password_hash" not in body


def test_change_password_with_wrong_current_keeps_hash(client, pool):
    token = _register(client).json()["token"]
    with pool.connection() as conn:
        before = conn.execute("SELECT password_hash FROM users WHERE email=?", ("alice@example.org",)).fetchone()[
            "password_hash"
        ]

    resp = client.put(
        "/api/auth/change-password",
        json={"currentPassword": "N0tMine!Pass", "newPassword": "An0ther!Pass"},
        headers=bearer(token),
    )
    assert resp.status_code == 400, resp.text
    assert resp.json()["message"] == "Current password is incorrect"

    with pool.connection() as conn:
        after = conn.execute("SELECT password_hash FROM users WHERE email=?", ("alice@example.org",)).fetchone()[
            "password_hash"
        ]
    assert after == before


def test_change_password_rules(client):
    token = _register(client).json()["token"]

    same = client.put(
        "/api/auth/change-password",
        json={"currentPassword": STRONG_PASSWORD, "newPassword": STRONG_PASSWORD},
        headers=bearer(token),
    )
    assert same.status_code == 400

    weak = client.put(
        "/api/auth/change-password",
        json={"currentPassword": STRONG_PASSWORD, "newPassword": "short"},
        headers=bearer(token),
    )
    assert weak.status_code == 400

    ok = client.put(
        "/api/auth/change-password",
        json={"currentPassword": STRONG_PASSWORD, "newPassword": "An0ther!Pass"},
        headers=bearer(token),
    )
    assert ok.status_code == 200, ok.text
    assert login(client, "alice@example.org", "An0ther!Pass").status_code == 200
    assert login(client, "alice@example.org", STRONG_PASSWORD).status_code == 401


def test_profile_email_must_stay_unique(client):
    token = _register(client).json()["token"]

    taken = client.put("/api/auth/me", json={"email": ADMIN_EMAIL}, headers=bearer(token))
    assert taken.status_code == 400, taken.text

    own = client.put(
        "/api/auth/me",
        json={"email": "alice@example.org", "firstName": "Alicia", "avatar": "https://cdn.example.org/a.png"},
        headers=bearer(token),
    )
    assert own.status_code == 200, own.text
    assert own.json()["first_name"] == "Alicia"
    assert own.json()["avatar"] == "https://cdn.example.org/a.png"


def test_profile_avatar_must_be_url(client):
    token = _register(client).json()["token"]
    resp = client.put("/api/auth/me", json={"avatar": "not a url"}, headers=bearer(token))
    assert resp.status_code == 400


def test_logout(client):
    resp = client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
