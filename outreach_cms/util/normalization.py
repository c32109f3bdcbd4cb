from __future__ import annotations

import re
import unicodedata


SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
# One @, no spaces, a dot in the domain part.
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_username(username: str | None) -> str:
    return (username or "").strip()


def slugify(text: str | None, max_length: int = 200) -> str:
    """Build a URL-safe slug from free text.

    Accents are folded to ASCII, any non-alphanumeric run becomes a single
    hyphen, and leading/trailing hyphens are dropped. Returns '' when nothing
    usable is left.
    """
    if text is None:
        return ""
    s = unicodedata.normalize("NFKD", str(text))
    s = s.encode("ascii", "ignore").decode("ascii")
    s = s.lower().strip()

    # Replace any non-alphanumeric runs with hyphens.
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")

    if len(s) > max_length:
        s = s[:max_length].rstrip("-")
    return s


def is_valid_slug(slug: str | None) -> bool:
    return bool(slug) and SLUG_RE.match(slug) is not None


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_RE.match(email) is not None


def is_http_url(value: str | None) -> bool:
    v = (value or "").strip().lower()
    return v.startswith("http://") or v.startswith("https://")
