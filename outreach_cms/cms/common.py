"""Helpers shared by the slugged, publishable entities (pages, posts, content)."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from outreach_cms.errors import DuplicateSlug
from outreach_cms.util.normalization import slugify
from outreach_cms.util.time import utcnow_iso
from outreach_cms.validators import check_required_text, check_slug, check_url, raise_if


def next_published_at(current: Optional[str], publish: bool) -> Optional[str]:
    """Publish timestamp after a save.

    - not published         -> None (unpublishing clears it)
    - published, stamped    -> unchanged
    - newly published       -> now
    """
    if not publish:
        return None
    if current:
        return current
    return utcnow_iso()


def as_bool(value: Any) -> bool:
    return bool(int(value or 0)) if not isinstance(value, bool) else value


def shape_flags(row: Dict[str, Any], *names: str) -> Dict[str, Any]:
    for n in names:
        if n in row:
            row[n] = as_bool(row[n])
    return row


def drop_null_flags(changes: Dict[str, Any], *names: str) -> Dict[str, Any]:
    """Copy of `changes` without flags sent as null, so they keep their stored value."""
    return {k: v for k, v in changes.items() if not (k in names and v is None)}


def validate_entry(changes: Dict[str, Any], *, creating: bool) -> Dict[str, Any]:
    """Check title/slug/URL fields of a page/post/content payload; fill a missing slug.

    `changes` holds only the fields the caller supplied. Runs before any SQL.
    """
    problems: List[str] = []
    out = drop_null_flags(changes, "is_published", "is_featured")

    if creating or "title" in out:
        check_required_text(problems, out.get("title"), "Title")
        if out.get("title"):
            out["title"] = str(out["title"]).strip()

    if "slug" in out and out["slug"] not in (None, ""):
        out["slug"] = str(out["slug"]).strip().lower()
        check_slug(problems, out["slug"])
    elif creating:
        out["slug"] = slugify(out.get("title"))
        if not out["slug"]:
            problems.append("Slug is required (title has no usable characters)")
    elif "slug" in out:
        problems.append("Slug cannot be empty")

    if out.get("featured_image"):
        if not str(out["featured_image"]).startswith("/"):
            check_url(problems, out["featured_image"], "Featured image")

    raise_if(problems)
    return out


def ensure_slug_free(
    slug_exists: Callable[..., bool],
    conn: Any,
    slug: str,
    *,
    exclude_id: Optional[int] = None,
    label: str = "Item",
) -> None:
    if slug_exists(conn, slug, exclude_id=exclude_id):
        raise DuplicateSlug(f"{label} with this slug already exists")
