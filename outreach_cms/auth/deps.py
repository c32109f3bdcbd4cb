from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, Union

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from outreach_cms.config import Config
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import (
    AccountDisabled,
    Forbidden,
    InvalidToken,
    NotFound,
    TokenExpired,
    Unauthenticated,
)
from outreach_cms.models import OwnedResource

from .crud import get_user_by_id, public_user
from .roles import role_satisfies
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def get_cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise RuntimeError("server_config_missing")
    return cfg


def get_pool(request: Request) -> ConnectionPool:
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise RuntimeError("db_pool_missing")
    return pool


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    Read-only: resolves the user and stores it (plus the raw token) on
    `request.state`; never writes to the database.
    """

    cfg = get_cfg(request)
    pool = get_pool(request)

    token: str | None = None
    if credentials is not None and credentials.credentials:
        token = credentials.credentials

    if not token:
        raise Unauthenticated()

    try:
        payload = decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise InvalidToken()

    sub = payload.get("sub")
    if not sub:
        raise InvalidToken()

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise InvalidToken()

    with pool.connection() as conn:
        row = get_user_by_id(conn, user_id)
        if row is None:
            raise InvalidToken()
        if int(row["is_active"] or 0) != 1:
            raise AccountDisabled()
        user = public_user(row)

    request.state.user = user
    request.state.token = token
    return user


def require_role(required: Union[str, Iterable[str]]) -> Callable[..., Dict[str, Any]]:
    """Role gate: the caller's role must be at least `required` (viewer < editor < admin)."""
    if isinstance(required, str):
        required = (required,)
    required = tuple(required)
    # Fail at import time on a typo rather than on the first request.
    role_satisfies("admin", required)

    def _dep(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if not role_satisfies(user.get("role"), required):
            raise Forbidden(f"User role {user.get('role')} is not authorized to access this route")
        return user

    return _dep


require_editor = require_role("editor")
require_admin = require_role("admin")


def require_owner_or_admin(resource: OwnedResource, id_param: str = "id") -> Callable[..., Dict[str, Any]]:
    """Ownership gate for `resource`, keyed by the `id_param` path parameter.

    The row is loaded for every caller (404 if missing). Admins skip the owner
    comparison. The loaded row is left on `request.state.resource`.
    """

    def _dep(request: Request, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        raw = request.path_params.get(id_param)
        try:
            resource_id = int(raw)
        except (TypeError, ValueError):
            raise NotFound(f"{resource.label} not found")

        with get_pool(request).connection() as conn:
            row = resource.loader(conn, resource_id)
        if row is None:
            raise NotFound(f"{resource.label} not found")

        if user.get("role") != "admin" and resource.owner_of(row) != int(user["id"]):
            raise Forbidden("You are not authorized to perform this action")

        request.state.resource = row
        return user

    return _dep
