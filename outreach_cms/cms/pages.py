from __future__ import annotations

from typing import Any, Dict, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound, ValidationError
from outreach_cms.models import OwnedResource
from outreach_cms.util.time import utcnow_iso

from .common import ensure_slug_free, next_published_at, shape_flags, validate_entry
from .listing import ListQuery, fetch_page, paginated

# Writable columns, in the order they are inserted.
FIELDS = (
    "title",
    "slug",
    "content",
    "excerpt",
    "featured_image",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "is_published",
)

STATUSES = ("all", "published", "draft")

_SELECT = """
    p.*,
    cu.username AS created_by_username,
    uu.username AS updated_by_username
"""
_FROM = """
    FROM pages p
    LEFT JOIN users cu ON cu.id = p.created_by
    LEFT JOIN users uu ON uu.id = p.updated_by
"""


def _shape(row: Any) -> Dict[str, Any]:
    return shape_flags(dict(row), "is_published")


def find_by_id(conn: Any, page_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(f"SELECT {_SELECT} {_FROM} WHERE p.id=?", (int(page_id),)).fetchone()
    return _shape(row) if row else None


def find_by_slug(conn: Any, slug: str, *, published_only: bool = False) -> Optional[Dict[str, Any]]:
    sql = f"SELECT {_SELECT} {_FROM} WHERE p.slug=?"
    if published_only:
        sql += " AND p.is_published=1"
    row = conn.execute(sql, (slug,)).fetchone()
    return _shape(row) if row else None


def slug_exists(conn: Any, slug: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT 1 FROM pages WHERE slug=?"
    params: list[Any] = [slug]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


RESOURCE = OwnedResource(label="Page", loader=find_by_id, owner_field="created_by")


def find_all(
    conn: Any,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: str = "all",
) -> Dict[str, Any]:
    status = (status or "all").lower()
    if status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")

    q = ListQuery(from_sql=_FROM, id_expr="p.id")
    q.add_search(search, ("p.title", "p.content", "p.excerpt"))
    if status == "published":
        q.add("p.is_published=1")
    elif status == "draft":
        q.add("p.is_published=0")

    rows, total = fetch_page(
        conn,
        q,
        select_sql=_SELECT,
        order_by="p.updated_at DESC, p.id DESC",
        page=page,
        limit=limit,
    )
    return paginated([_shape(r) for r in rows], total, page, limit)


def create(conn: Any, data: Dict[str, Any], *, created_by: int) -> Dict[str, Any]:
    clean = validate_entry(data, creating=True)
    ensure_slug_free(slug_exists, conn, clean["slug"], label="Page")

    is_published = bool(clean.get("is_published"))
    now = utcnow_iso()
    values = [clean.get(f) for f in FIELDS]
    values[FIELDS.index("is_published")] = 1 if is_published else 0

    page_id = insert_returning_id(
        conn,
        f"""
        INSERT INTO pages ({", ".join(FIELDS)}, published_at, created_by, updated_by, created_at, updated_at)
        VALUES ({", ".join("?" for _ in FIELDS)},?,?,?,?,?)
        """,
        (*values, next_published_at(None, is_published), int(created_by), int(created_by), now, now),
    )
    created = find_by_id(conn, page_id)
    assert created is not None
    return created


def update(conn: Any, page_id: int, changes: Dict[str, Any], *, updated_by: int) -> Dict[str, Any]:
    """Overlay the supplied fields on the stored row and write the result back."""
    current = find_by_id(conn, page_id)
    if current is None:
        raise NotFound("Page not found")

    clean = validate_entry(changes, creating=False)
    if "slug" in clean and clean["slug"] != current["slug"]:
        ensure_slug_free(slug_exists, conn, clean["slug"], exclude_id=page_id, label="Page")

    merged = {f: clean[f] if f in clean else current.get(f) for f in FIELDS}
    is_published = bool(merged["is_published"])
    merged["is_published"] = 1 if is_published else 0

    sets = ", ".join(f"{f}=?" for f in FIELDS)
    conn.execute(
        f"UPDATE pages SET {sets}, published_at=?, updated_by=?, updated_at=? WHERE id=?",
        (
            *[merged[f] for f in FIELDS],
            next_published_at(current.get("published_at"), is_published),
            int(updated_by),
            utcnow_iso(),
            int(page_id),
        ),
    )
    updated = find_by_id(conn, page_id)
    assert updated is not None
    return updated


def delete(conn: Any, page_id: int) -> None:
    cur = conn.execute("DELETE FROM pages WHERE id=?", (int(page_id),))
    if cur.rowcount == 0:
        raise NotFound("Page not found")
