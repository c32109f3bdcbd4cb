from __future__ import annotations

from typing import Any, Dict, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound
from outreach_cms.util.normalization import slugify
from outreach_cms.util.time import utcnow_iso
from outreach_cms.validators import check_required_text, check_slug, raise_if

from .common import ensure_slug_free


_SELECT = """
    SELECT c.id, c.name, c.slug, c.description, c.created_at, c.updated_at,
           (SELECT COUNT(*) FROM post_categories pc WHERE pc.category_id = c.id) AS post_count
    FROM categories c
"""


def find_by_id(conn: Any, category_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(f"{_SELECT} WHERE c.id=?", (int(category_id),)).fetchone()
    return dict(row) if row else None


def find_all(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute(f"{_SELECT} ORDER BY c.name ASC, c.id ASC").fetchall()
    return [dict(r) for r in rows]


def slug_exists(conn: Any, slug: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT 1 FROM categories WHERE slug=?"
    params: List[Any] = [slug]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


def _validate(name: Optional[str], slug: Optional[str], *, creating: bool) -> Dict[str, Any]:
    problems: List[str] = []
    out: Dict[str, Any] = {}
    if creating or name is not None:
        check_required_text(problems, name, "Name", max_length=100)
        n = (name or "").strip()
        # Post listings fold category names into one comma-joined column.
        if "," in n:
            problems.append("Name cannot contain commas")
        out["name"] = n
    if slug:
        out["slug"] = slug.strip().lower()
        check_slug(problems, out["slug"])
    elif creating:
        out["slug"] = slugify(name)
        if not out["slug"]:
            problems.append("Slug is required (name has no usable characters)")
    raise_if(problems)
    return out


def create(conn: Any, *, name: str, slug: Optional[str] = None, description: Optional[str] = None) -> Dict[str, Any]:
    clean = _validate(name, slug, creating=True)
    ensure_slug_free(slug_exists, conn, clean["slug"], label="Category")
    now = utcnow_iso()
    category_id = insert_returning_id(
        conn,
        "INSERT INTO categories (name, slug, description, created_at, updated_at) VALUES (?,?,?,?,?)",
        (clean["name"], clean["slug"], description, now, now),
    )
    created = find_by_id(conn, category_id)
    assert created is not None
    return created


def update(
    conn: Any,
    category_id: int,
    *,
    name: Optional[str] = None,
    slug: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    current = find_by_id(conn, category_id)
    if current is None:
        raise NotFound("Category not found")

    clean = _validate(name, slug, creating=False)
    if "slug" in clean and clean["slug"] != current["slug"]:
        ensure_slug_free(slug_exists, conn, clean["slug"], exclude_id=category_id, label="Category")

    conn.execute(
        "UPDATE categories SET name=?, slug=?, description=?, updated_at=? WHERE id=?",
        (
            clean.get("name", current["name"]),
            clean.get("slug", current["slug"]),
            description if description is not None else current["description"],
            utcnow_iso(),
            int(category_id),
        ),
    )
    updated = find_by_id(conn, category_id)
    assert updated is not None
    return updated


def delete(conn: Any, category_id: int) -> None:
    cur = conn.execute("DELETE FROM categories WHERE id=?", (int(category_id),))
    if cur.rowcount == 0:
        raise NotFound("Category not found")
