"""Authentication / authorization helpers.

This project intentionally keeps auth lightweight:

- Users table (username/email/password hash + role)
- JWT access tokens sent as `Authorization: Bearer <token>`

Roles form a single order (viewer < editor < admin) and every role check in the
API goes through `require_role`. Ownership checks go through
`require_owner_or_admin` with the owner column each model declares.
"""

from .deps import (
    get_current_user,
    require_admin,
    require_editor,
    require_owner_or_admin,
    require_role,
)
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "get_current_user",
    "require_admin",
    "require_editor",
    "require_owner_or_admin",
    "require_role",
    "bootstrap_admin_if_needed",
    "create_user",
]
