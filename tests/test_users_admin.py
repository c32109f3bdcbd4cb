import pytest

from outreach_cms.auth.roles import role_satisfies

from .conftest import STRONG_PASSWORD, login


def _admin_id(client, admin_headers) -> int:
    return client.get("/api/auth/me", headers=admin_headers).json()["id"]


@pytest.mark.parametrize(
    "role,required,expected",
    [
        ("viewer", "viewer", True),
        ("viewer", "editor", False),
        ("editor", "editor", True),
        ("admin", "editor", True),
        ("editor", "admin", False),
        ("editor", ("admin", "editor"), True),
        (None, "viewer", False),
        ("root", "viewer", False),
    ],
)
def test_role_order(role, required, expected):
    assert role_satisfies(role, required) is expected


def test_role_gate_rejects_unknown_required_role():
    with pytest.raises(ValueError):
        role_satisfies("admin", "superuser")


def test_admin_routes_are_admin_only(client, make_user):
    _, editor = make_user("editor")
    resp = client.get("/api/auth/users", headers=editor)
    assert resp.status_code == 403
    assert resp.json()["message"] == "User role editor is not authorized to access this route"


def test_admin_lists_users_without_hashes(client, admin_headers, make_user):
    make_user("editor")
    make_user("viewer")
    resp = client.get("/api/auth/users", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    users = resp.json()["data"]
    assert len(users) == 3
    assert all("password_hash" not in u for u in users)

    editors = client.get("/api/auth/users", params={"role": "editor"}, headers=admin_headers).json()["data"]
    assert [u["role"] for u in editors] == ["editor"]


@pytest.mark.parametrize(
    "method,suffix,body",
    [
        ("delete", "", None),
        ("put", "/role", {"role": "viewer"}),
        ("put", "/toggle-active", None),
        ("put", "", {"role": "editor"}),
        ("put", "", {"isActive": False}),
    ],
)
def test_admin_cannot_demote_or_remove_self(client, admin_headers, method, suffix, body):
    admin_id = _admin_id(client, admin_headers)
    kwargs = {"headers": admin_headers}
    if body is not None:
        kwargs["json"] = body
    resp = getattr(client, method)(f"/api/auth/users/{admin_id}{suffix}", **kwargs)
    assert resp.status_code == 400, resp.text

    me = client.get("/api/auth/me", headers=admin_headers).json()
    assert me["role"] == "admin"
    assert me["is_active"] is True


def test_admin_partial_update_only_touches_supplied_fields(client, admin_headers, make_user):
    user, _ = make_user("viewer")
    resp = client.put(f"/api/auth/users/{user['id']}", json={"firstName": "Renamed"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    updated = resp.json()
    assert updated["first_name"] == "Renamed"
    assert updated["last_name"] == user["last_name"]
    assert updated["email"] == user["email"]
    assert updated["role"] == "viewer"
    # Password untouched.
    assert login(client, user["email"], STRONG_PASSWORD).status_code == 200


def test_admin_update_rehashes_supplied_password(client, admin_headers, make_user):
    user, _ = make_user("viewer")
    resp = client.put(f"/api/auth/users/{user['id']}", json={"password": "Fr3sh!Secret"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert login(client, user["email"], "Fr3sh!Secret").status_code == 200


def test_admin_update_with_no_fields_is_rejected(client, admin_headers, make_user):
    user, _ = make_user("viewer")
    resp = client.put(f"/api/auth/users/{user['id']}", json={}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "No fields to update"


def test_role_change_takes_effect(client, admin_headers, make_user):
    user, headers = make_user("viewer")
    assert client.post("/api/pages", json={"title": "Nope"}, headers=headers).status_code == 403

    resp = client.put(f"/api/auth/users/{user['id']}/role", json={"role": "editor"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["role"] == "editor"
    assert client.post("/api/pages", json={"title": "Now allowed"}, headers=headers).status_code == 201


def test_deactivated_user_is_locked_out(client, admin_headers, make_user):
    user, headers = make_user("editor")
    resp = client.put(f"/api/auth/users/{user['id']}/toggle-active", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_active"] is False

    me = client.get("/api/auth/me", headers=headers)
    assert me.status_code == 401
    assert me.json()["message"] == "User account is deactivated"
    assert login(client, user["email"], STRONG_PASSWORD).status_code == 401


def test_admin_deletes_user(client, admin_headers, make_user):
    user, _ = make_user("viewer")
    resp = client.delete(f"/api/auth/users/{user['id']}", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"success": True, "message": "User deleted successfully"}
    assert client.get(f"/api/auth/users/{user['id']}", headers=admin_headers).status_code == 404
