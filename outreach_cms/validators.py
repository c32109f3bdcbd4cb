"""Input checks run before any SQL is issued.

Each `check_*` helper appends human-readable problems to a list; callers raise a
single ValidationError carrying all of them.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional

from outreach_cms.errors import ValidationError
from outreach_cms.util.normalization import (
    USERNAME_RE,
    is_http_url,
    is_valid_email,
    is_valid_slug,
)

MAX_PAGE_LIMIT = 100


def raise_if(problems: List[str], message: str = "Validation failed") -> None:
    if problems:
        raise ValidationError(message, errors=problems)


def password_problems(password: Optional[str], *, label: str = "Password") -> List[str]:
    pw = password or ""
    if not pw:
        return [f"{label} is required"]
    out: List[str] = []
    if len(pw) < 8:
        out.append(f"{label} must be at least 8 characters long")
    if not re.search(r"[A-Z]", pw):
        out.append(f"{label} must contain at least one uppercase letter")
    if not re.search(r"[a-z]", pw):
        out.append(f"{label} must contain at least one lowercase letter")
    if not re.search(r"\d", pw):
        out.append(f"{label} must contain at least one number")
    if not re.search(r"[^A-Za-z0-9]", pw):
        out.append(f"{label} must contain at least one special character")
    return out


def check_username(problems: List[str], username: Optional[str]) -> None:
    u = (username or "").strip()
    if not u:
        problems.append("Username is required")
    elif not (3 <= len(u) <= 30):
        problems.append("Username must be between 3 and 30 characters")
    elif not USERNAME_RE.match(u):
        problems.append("Username can only contain letters, numbers, and underscores")


def check_email(problems: List[str], email: Optional[str], *, required: bool = True) -> None:
    e = (email or "").strip()
    if not e:
        if required:
            problems.append("Email is required")
        return
    if not is_valid_email(e):
        problems.append("Please provide a valid email")


def check_name(problems: List[str], value: Optional[str], label: str, *, required: bool) -> None:
    if value is None:
        if required:
            problems.append(f"{label} is required")
        return
    v = value.strip()
    if not v:
        problems.append(f"{label} is required" if required else f"{label} cannot be empty")
    elif len(v) > 50:
        problems.append(f"{label} cannot be longer than 50 characters")


def check_url(problems: List[str], value: Optional[str], label: str) -> None:
    if value is None or value == "":
        return
    if not is_http_url(value):
        problems.append(f"{label} must be a valid URL")


def check_required_text(problems: List[str], value: Optional[str], label: str, *, max_length: int = 255) -> None:
    v = (value or "").strip()
    if not v:
        problems.append(f"{label} is required")
    elif len(v) > max_length:
        problems.append(f"{label} cannot be longer than {max_length} characters")


def check_slug(problems: List[str], slug: Optional[str]) -> None:
    if not is_valid_slug(slug):
        problems.append("Slug may only contain lowercase letters, numbers, and single hyphens")


def check_choice(problems: List[str], value: Any, choices: tuple, label: str) -> None:
    if value not in choices:
        problems.append(f"{label} must be one of: {', '.join(choices)}")


def check_pagination(page: int, limit: int) -> None:
    problems: List[str] = []
    if page < 1:
        problems.append("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        problems.append(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
    raise_if(problems, "Invalid pagination parameters")
