from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from outreach_cms.auth.crud import (
    admin_update_user,
    authenticate,
    change_password,
    create_user,
    delete_user,
    get_user_by_id,
    list_users,
    public_user,
    set_user_role,
    toggle_user_active,
    touch_last_login,
    update_profile,
)
from outreach_cms.auth.deps import get_cfg, get_current_user, get_pool, require_admin
from outreach_cms.auth.roles import ROLES
from outreach_cms.auth.security import create_access_token
from outreach_cms.config import Config
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound
from outreach_cms.validators import (
    check_choice,
    check_email,
    check_name,
    check_url,
    check_username,
    password_problems,
    raise_if,
)

from .schemas import CamelModel, deleted

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class CreateUserRequest(RegisterRequest):
    role: str = "viewer"
    is_active: bool = True


class UpdateUserRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: Optional[bool] = None


class RoleRequest(CamelModel):
    role: Optional[str] = None


def _issue_token(cfg: Config, user: Dict[str, Any]) -> str:
    return create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=int(user["id"]),
        username=str(user["username"]),
        email=str(user["email"]),
        role=str(user["role"]),
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


def _check_new_account(payload: RegisterRequest) -> None:
    problems: List[str] = []
    check_username(problems, payload.username)
    check_email(problems, payload.email)
    problems.extend(password_problems(payload.password))
    check_name(problems, payload.first_name, "First name", required=True)
    check_name(problems, payload.last_name, "Last name", required=True)
    raise_if(problems)


# -----------------------------
# Self-service
# -----------------------------


@router.post("/register", status_code=201)
def register(
    payload: RegisterRequest,
    cfg: Config = Depends(get_cfg),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    _check_new_account(payload)
    with pool.connection() as conn:
        user = create_user(
            conn,
            username=str(payload.username),
            email=str(payload.email),
            password=str(payload.password),
            role="viewer",
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    return {"user": user, "token": _issue_token(cfg, user)}


@router.post("/login")
def login(
    payload: LoginRequest,
    cfg: Config = Depends(get_cfg),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    problems: List[str] = []
    check_email(problems, payload.email)
    if not payload.password:
        problems.append("Password is required")
    raise_if(problems)

    with pool.connection() as conn:
        row = authenticate(conn, str(payload.email), str(payload.password))
        touch_last_login(conn, int(row["id"]))
        user = public_user(get_user_by_id(conn, int(row["id"])))
    return {"user": user, "token": _issue_token(cfg, user)}


@router.post("/logout")
def logout() -> Dict[str, Any]:
    """Tokens are stateless; the client discards its copy."""
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


@router.put("/me")
def update_me(
    payload: ProfileUpdateRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    problems: List[str] = []
    check_name(problems, payload.first_name, "First name", required=False)
    check_name(problems, payload.last_name, "Last name", required=False)
    if payload.email is not None:
        check_email(problems, payload.email)
    check_url(problems, payload.avatar, "Avatar")
    raise_if(problems)

    with pool.connection() as conn:
        return update_profile(
            conn,
            int(user["id"]),
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            avatar=payload.avatar,
        )


@router.put("/change-password")
def change_my_password(
    payload: ChangePasswordRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    problems: List[str] = []
    if not payload.current_password:
        problems.append("Current password is required")
    problems.extend(password_problems(payload.new_password, label="New password"))
    raise_if(problems)

    with pool.connection() as conn:
        change_password(conn, int(user["id"]), str(payload.current_password), str(payload.new_password))
    return {"success": True, "message": "Password updated successfully"}


# -----------------------------
# Admin: user management
# -----------------------------


@router.get("/users")
def admin_list_users(
    role: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    if role:
        problems: List[str] = []
        check_choice(problems, role, ROLES, "Role")
        raise_if(problems)
    with pool.connection() as conn:
        users = list_users(conn, role=role, is_active=is_active)
    return {"data": users, "total": len(users)}


@router.post("/users", status_code=201)
def admin_create_user(
    payload: CreateUserRequest,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    _check_new_account(payload)
    problems: List[str] = []
    check_choice(problems, payload.role, ROLES, "Role")
    raise_if(problems)

    with pool.connection() as conn:
        return create_user(
            conn,
            username=str(payload.username),
            email=str(payload.email),
            password=str(payload.password),
            role=payload.role,
            first_name=payload.first_name,
            last_name=payload.last_name,
            is_active=payload.is_active,
        )


@router.get("/users/{user_id}")
def admin_get_user(
    user_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFound("User not found")
    return public_user(row)


@router.put("/users/{user_id}")
def admin_update(
    user_id: int,
    payload: UpdateUserRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    problems: List[str] = []
    if payload.username is not None:
        check_username(problems, payload.username)
    if payload.email is not None:
        check_email(problems, payload.email)
    if payload.password:
        problems.extend(password_problems(payload.password))
    if payload.role is not None:
        check_choice(problems, payload.role, ROLES, "Role")
    check_name(problems, payload.first_name, "First name", required=False)
    check_name(problems, payload.last_name, "Last name", required=False)
    raise_if(problems)

    with pool.connection() as conn:
        return admin_update_user(
            conn,
            user_id,
            actor_id=int(admin["id"]),
            username=payload.username,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            first_name=payload.first_name,
            last_name=payload.last_name,
            is_active=payload.is_active,
        )


@router.put("/users/{user_id}/role")
def admin_set_role(
    user_id: int,
    payload: RoleRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    problems: List[str] = []
    check_choice(problems, payload.role, ROLES, "Role")
    raise_if(problems)
    with pool.connection() as conn:
        return set_user_role(conn, user_id, str(payload.role), actor_id=int(admin["id"]))


@router.put("/users/{user_id}/toggle-active")
def admin_toggle_active(
    user_id: int,
    admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return toggle_user_active(conn, user_id, actor_id=int(admin["id"]))


@router.delete("/users/{user_id}")
def admin_delete_user(
    user_id: int,
    admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        delete_user(conn, user_id, actor_id=int(admin["id"]))
    return deleted("User")
