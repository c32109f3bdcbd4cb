from __future__ import annotations

from typing import Any, Dict, List, Optional

from outreach_cms.config import Config
from outreach_cms.db import ConnectionPool, insert_returning_id
from outreach_cms.errors import (
    AccountDisabled,
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredentials,
    NotFound,
    ValidationError,
    WrongCurrentPassword,
)
from outreach_cms.util.normalization import normalize_email, normalize_username
from outreach_cms.util.time import utcnow_iso

from .roles import is_valid_role
from .security import hash_password, verify_password


_PUBLIC_COLUMNS = (
    "id, username, email, role, first_name, last_name, avatar, is_active, "
    "last_login_at, created_at, updated_at"
)


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    if "is_active" in d:
        d["is_active"] = bool(d["is_active"])
    return d


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE id=?",
        (int(user_id),),
    ).fetchone()


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def email_taken(conn: Any, email: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT id FROM users WHERE email=?"
    params: List[Any] = [normalize_email(email)]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


def username_taken(conn: Any, username: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT id FROM users WHERE username=?"
    params: List[Any] = [normalize_username(username)]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


def count_users(conn: Any) -> int:
    return int(conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"])


def create_user(
    conn: Any,
    *,
    username: str,
    email: str,
    password: str,
    role: str = "viewer",
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    is_active: bool = True,
) -> Dict[str, Any]:
    u = normalize_username(username)
    e = normalize_email(email)
    if not u:
        raise ValidationError("Username is required")
    if not e:
        raise ValidationError("Email is required")
    if not is_valid_role(role):
        raise ValidationError("Invalid role")

    if email_taken(conn, e):
        raise DuplicateEmail()
    if username_taken(conn, u):
        raise DuplicateUsername()

    now = utcnow_iso()
    user_id = insert_returning_id(
        conn,
        """
        INSERT INTO users (username, email, password_hash, role, first_name, last_name,
                           is_active, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?)
        """,
        (
            u,
            e,
            hash_password(password),
            role,
            (first_name or "").strip() or None,
            (last_name or "").strip() or None,
            1 if is_active else 0,
            now,
            now,
        ),
    )
    row = get_user_by_id(conn, user_id)
    assert row is not None
    return public_user(row)


def authenticate(conn: Any, email: str, password: str) -> Any:
    """Return the user row for a correct email/password pair.

    Unknown email and wrong password raise the same InvalidCredentials so callers
    can't tell which one failed.
    """
    row = get_user_by_email(conn, email)
    if row is None:
        raise InvalidCredentials()
    if not verify_password(password, str(row["password_hash"])):
        raise InvalidCredentials()
    if int(row["is_active"] or 0) != 1:
        raise AccountDisabled("Account is deactivated")
    return row


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE id=?",
        (now, now, int(user_id)),
    )


def list_users(conn: Any, *, role: Optional[str] = None, is_active: Optional[bool] = None) -> List[Dict[str, Any]]:
    sql = f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE 1=1"
    params: List[Any] = []
    if role:
        sql += " AND role=?"
        params.append(role)
    if is_active is not None:
        sql += " AND is_active=?"
        params.append(1 if is_active else 0)
    sql += " ORDER BY created_at DESC, id DESC"
    rows = conn.execute(sql, tuple(params)).fetchall()
    return [public_user(r) for r in rows]


def _require_user(conn: Any, user_id: int) -> Any:
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFound("User not found")
    return row


def _update_fields(conn: Any, user_id: int, fields: List[tuple[str, Any]]) -> None:
    """Persist only the provided columns."""
    if not fields:
        return
    fields = fields + [("updated_at", utcnow_iso())]
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [int(user_id)]
    conn.execute(f"UPDATE users SET {sets} WHERE id=?", params)


def update_profile(
    conn: Any,
    user_id: int,
    *,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
    avatar: Optional[str] = None,
) -> Dict[str, Any]:
    _require_user(conn, user_id)

    fields: List[tuple[str, Any]] = []
    if email is not None:
        e = normalize_email(email)
        if email_taken(conn, e, exclude_id=user_id):
            raise DuplicateEmail("Email is already in use")
        fields.append(("email", e))
    if first_name is not None:
        fields.append(("first_name", first_name.strip()))
    if last_name is not None:
        fields.append(("last_name", last_name.strip()))
    if avatar is not None:
        fields.append(("avatar", avatar.strip() or None))

    _update_fields(conn, user_id, fields)
    return public_user(_require_user(conn, user_id))


def change_password(conn: Any, user_id: int, current_password: str, new_password: str) -> None:
    row = _require_user(conn, user_id)
    if not verify_password(current_password, str(row["password_hash"])):
        raise WrongCurrentPassword()
    if current_password == new_password:
        raise ValidationError("New password must be different from current password")
    _update_fields(conn, user_id, [("password_hash", hash_password(new_password))])


def _guard_self(actor_id: int, user_id: int, message: str) -> None:
    if int(actor_id) == int(user_id):
        raise ValidationError(message)


def admin_update_user(
    conn: Any,
    user_id: int,
    *,
    actor_id: int,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    role: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Dict[str, Any]:
    """Partial update; only the supplied fields are rewritten."""
    row = _require_user(conn, user_id)

    if role is not None and role != row["role"]:
        _guard_self(actor_id, user_id, "Cannot change your own role")
    if is_active is False:
        _guard_self(actor_id, user_id, "Cannot deactivate your own account")

    fields: List[tuple[str, Any]] = []
    if username is not None:
        u = normalize_username(username)
        if username_taken(conn, u, exclude_id=user_id):
            raise DuplicateUsername()
        fields.append(("username", u))
    if email is not None:
        e = normalize_email(email)
        if email_taken(conn, e, exclude_id=user_id):
            raise DuplicateEmail("Email is already in use")
        fields.append(("email", e))
    if role is not None:
        if not is_valid_role(role):
            raise ValidationError("Invalid role")
        fields.append(("role", role))
    if first_name is not None:
        fields.append(("first_name", first_name.strip()))
    if last_name is not None:
        fields.append(("last_name", last_name.strip()))
    if is_active is not None:
        fields.append(("is_active", 1 if is_active else 0))
    if password:
        fields.append(("password_hash", hash_password(password)))

    if not fields:
        raise ValidationError("No fields to update")

    _update_fields(conn, user_id, fields)
    return public_user(_require_user(conn, user_id))


def set_user_role(conn: Any, user_id: int, role: str, *, actor_id: int) -> Dict[str, Any]:
    _guard_self(actor_id, user_id, "Cannot change your own role")
    if not is_valid_role(role):
        raise ValidationError("Invalid role")
    _require_user(conn, user_id)
    _update_fields(conn, user_id, [("role", role)])
    return public_user(_require_user(conn, user_id))


def toggle_user_active(conn: Any, user_id: int, *, actor_id: int) -> Dict[str, Any]:
    _guard_self(actor_id, user_id, "Cannot deactivate your own account")
    row = _require_user(conn, user_id)
    new_status = 0 if int(row["is_active"] or 0) == 1 else 1
    _update_fields(conn, user_id, [("is_active", new_status)])
    return public_user(_require_user(conn, user_id))


def delete_user(conn: Any, user_id: int, *, actor_id: int) -> None:
    _guard_self(actor_id, user_id, "Cannot delete your own account")
    cur = conn.execute("DELETE FROM users WHERE id=?", (int(user_id),))
    if cur.rowcount == 0:
        raise NotFound("User not found")


def bootstrap_admin_if_needed(pool: ConnectionPool, cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    Controlled via environment variables so a fresh install has a deterministic way to log in.

    - AUTH_BOOTSTRAP_ADMIN_USERNAME (default: admin)
    - AUTH_BOOTSTRAP_ADMIN_EMAIL (default: admin@globaloutreach.org)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (default: Admin@123)

    This only runs when there are 0 rows in `users`.
    """

    with pool.connection() as conn:
        if count_users(conn) > 0:
            return None

        username = normalize_username(cfg.AUTH_BOOTSTRAP_ADMIN_USERNAME or "admin")
        email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL)
        password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD

        # If env explicitly clears these, don't create anything.
        if not username or not email or not password:
            return None

        return create_user(
            conn,
            username=username,
            email=email,
            password=password,
            role="admin",
            first_name="Site",
            last_name="Administrator",
        )
