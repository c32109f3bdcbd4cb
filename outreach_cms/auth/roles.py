"""Role ordering shared by every authorization check."""

from __future__ import annotations

from typing import Iterable, Union

ROLES = ("viewer", "editor", "admin")
ROLE_RANK = {name: rank for rank, name in enumerate(ROLES)}


def is_valid_role(role: str | None) -> bool:
    return role in ROLE_RANK


def role_satisfies(role: str | None, required: Union[str, Iterable[str]]) -> bool:
    """True when `role` is at least as privileged as `required`.

    `required` may be a set of roles; the least privileged member is the bar.
    Unknown roles never satisfy anything.
    """
    if role not in ROLE_RANK:
        return False
    if isinstance(required, str):
        required = (required,)
    ranks = [ROLE_RANK[r] for r in required if r in ROLE_RANK]
    if not ranks:
        raise ValueError("unknown_required_role")
    return ROLE_RANK[role] >= min(ranks)
