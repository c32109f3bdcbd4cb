"""Blog posts and their category links.

Writes that touch both `posts` and `post_categories` run on the caller's leased
connection, so the row and its links commit or roll back together.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound, ValidationError
from outreach_cms.models import OwnedResource
from outreach_cms.util.time import utcnow_iso

from .common import ensure_slug_free, next_published_at, shape_flags, validate_entry
from .listing import ListQuery, category_aggregates, fetch_page, fold_categories, paginated

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
    "is_featured",
)

STATUSES = ("all", "published", "draft")

_FROM = """
    FROM posts p
    LEFT JOIN users u ON u.id = p.author_id
    LEFT JOIN post_categories pc ON pc.post_id = p.id
    LEFT JOIN categories c ON c.id = pc.category_id
"""
_GROUP_BY = "p.id, u.username, u.avatar"
_ORDER_BY = "COALESCE(p.published_at, p.updated_at) DESC, p.id DESC"


def _select(conn: Any) -> str:
    return f"p.*, u.username AS author_username, u.avatar AS author_avatar, {category_aggregates(conn)}"


def _shape(row: Any) -> Dict[str, Any]:
    return fold_categories(shape_flags(dict(row), "is_published", "is_featured"))


def _find_one(conn: Any, predicate: str, params: tuple) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        f"SELECT {_select(conn)} {_FROM} WHERE {predicate} GROUP BY {_GROUP_BY}",
        params,
    ).fetchone()
    return _shape(row) if row else None


def find_by_id(conn: Any, post_id: int) -> Optional[Dict[str, Any]]:
    return _find_one(conn, "p.id=?", (int(post_id),))


def find_by_slug(conn: Any, slug: str, *, published_only: bool = True) -> Optional[Dict[str, Any]]:
    if published_only:
        return _find_one(conn, "p.slug=? AND p.is_published=1", (slug,))
    return _find_one(conn, "p.slug=?", (slug,))


def slug_exists(conn: Any, slug: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT 1 FROM posts WHERE slug=?"
    params: List[Any] = [slug]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


RESOURCE = OwnedResource(label="Post", loader=find_by_id, owner_field="author_id")


def find_all(
    conn: Any,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: str = "all",
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    author_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Paginated post listing.

    The category filter is an EXISTS over the link table, so a matching post still
    reports every one of its categories rather than only the one filtered on.
    """
    status = (status or "all").lower()
    if status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")

    q = ListQuery(from_sql=_FROM, id_expr="p.id")
    q.add_search(search, ("p.title", "p.content", "p.excerpt"))
    if status == "published":
        q.add("p.is_published=1")
    elif status == "draft":
        q.add("p.is_published=0")
    if category:
        q.add(
            """EXISTS (
                SELECT 1 FROM post_categories fpc
                JOIN categories fc ON fc.id = fpc.category_id
                WHERE fpc.post_id = p.id AND fc.slug = ?
            )""",
            category.strip().lower(),
        )
    if featured is not None:
        q.add("p.is_featured=?", 1 if featured else 0)
    if author_id is not None:
        q.add("p.author_id=?", int(author_id))

    rows, total = fetch_page(
        conn,
        q,
        select_sql=_select(conn),
        order_by=_ORDER_BY,
        page=page,
        limit=limit,
        group_by=_GROUP_BY,
    )
    return paginated([_shape(r) for r in rows], total, page, limit)


def find_by_author(conn: Any, author_id: int, *, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return find_all(conn, page=page, limit=limit, status="published", author_id=author_id)


def _clean_category_ids(conn: Any, category_ids: Iterable[Any]) -> List[int]:
    """Deduplicate and verify category ids. Raises before anything is written."""
    ids: List[int] = []
    problems: List[str] = []
    for raw in category_ids:
        try:
            cid = int(raw)
        except (TypeError, ValueError):
            problems.append(f"Invalid category id: {raw!r}")
            continue
        if cid not in ids:
            ids.append(cid)
    if problems:
        raise ValidationError("Invalid categories", errors=problems)
    if not ids:
        return ids

    marks = ",".join("?" for _ in ids)
    found = {int(r["id"]) for r in conn.execute(f"SELECT id FROM categories WHERE id IN ({marks})", tuple(ids)).fetchall()}
    missing = [cid for cid in ids if cid not in found]
    if missing:
        raise ValidationError(
            "Invalid categories",
            errors=[f"Category {cid} does not exist" for cid in missing],
        )
    return ids


def _replace_links(conn: Any, post_id: int, category_ids: List[int]) -> None:
    conn.execute("DELETE FROM post_categories WHERE post_id=?", (int(post_id),))
    if not category_ids:
        return
    conn.executemany(
        "INSERT INTO post_categories (post_id, category_id) VALUES (?,?)",
        [(int(post_id), cid) for cid in category_ids],
    )


def create(
    conn: Any,
    data: Dict[str, Any],
    *,
    author_id: int,
    category_ids: Optional[Iterable[Any]] = None,
) -> Dict[str, Any]:
    clean = validate_entry(data, creating=True)
    cats = _clean_category_ids(conn, category_ids or [])
    ensure_slug_free(slug_exists, conn, clean["slug"], label="Post")

    is_published = bool(clean.get("is_published"))
    values = {f: clean.get(f) for f in FIELDS}
    values["is_published"] = 1 if is_published else 0
    values["is_featured"] = 1 if clean.get("is_featured") else 0
    now = utcnow_iso()

    post_id = insert_returning_id(
        conn,
        f"""
        INSERT INTO posts ({", ".join(FIELDS)}, published_at, author_id, created_at, updated_at)
        VALUES ({", ".join("?" for _ in FIELDS)},?,?,?,?)
        """,
        (*[values[f] for f in FIELDS], next_published_at(None, is_published), int(author_id), now, now),
    )
    _replace_links(conn, post_id, cats)

    created = find_by_id(conn, post_id)
    assert created is not None
    return created


def update(
    conn: Any,
    post_id: int,
    changes: Dict[str, Any],
    *,
    category_ids: Optional[Iterable[Any]] = None,
) -> Dict[str, Any]:
    """Partial update.

    `category_ids=None` keeps the current links; an empty list removes them all.
    """
    current = find_by_id(conn, post_id)
    if current is None:
        raise NotFound("Post not found")

    clean = validate_entry(changes, creating=False)
    cats = _clean_category_ids(conn, category_ids) if category_ids is not None else None
    if "slug" in clean and clean["slug"] != current["slug"]:
        ensure_slug_free(slug_exists, conn, clean["slug"], exclude_id=post_id, label="Post")

    merged = {f: clean[f] if f in clean else current.get(f) for f in FIELDS}
    is_published = bool(merged["is_published"])
    merged["is_published"] = 1 if is_published else 0
    merged["is_featured"] = 1 if merged["is_featured"] else 0

    sets = ", ".join(f"{f}=?" for f in FIELDS)
    conn.execute(
        f"UPDATE posts SET {sets}, published_at=?, updated_at=? WHERE id=?",
        (
            *[merged[f] for f in FIELDS],
            next_published_at(current.get("published_at"), is_published),
            utcnow_iso(),
            int(post_id),
        ),
    )
    if cats is not None:
        _replace_links(conn, post_id, cats)

    updated = find_by_id(conn, post_id)
    assert updated is not None
    return updated


def delete(conn: Any, post_id: int) -> None:
    cur = conn.execute("DELETE FROM posts WHERE id=?", (int(post_id),))
    if cur.rowcount == 0:
        raise NotFound("Post not found")


def increment_view_count(conn: Any, post_id: int) -> None:
    conn.execute(
        "UPDATE posts SET view_count = COALESCE(view_count, 0) + 1 WHERE id=?",
        (int(post_id),),
    )


def related_posts(conn: Any, post_id: int, *, limit: int = 3) -> List[Dict[str, Any]]:
    """Published posts sharing at least one category, most shared categories first."""
    rows = conn.execute(
        """
        SELECT p.id, p.title, p.slug, p.excerpt, p.featured_image, p.published_at,
               u.username AS author_username
        FROM posts p
        JOIN post_categories pc1 ON pc1.post_id = p.id
        JOIN post_categories pc2 ON pc2.category_id = pc1.category_id AND pc2.post_id = ?
        LEFT JOIN users u ON u.id = p.author_id
        WHERE p.id <> ? AND p.is_published = 1
        GROUP BY p.id, p.title, p.slug, p.excerpt, p.featured_image, p.published_at, u.username
        ORDER BY COUNT(*) DESC, p.published_at DESC, p.id DESC
        LIMIT ?
        """,
        (int(post_id), int(post_id), int(limit)),
    ).fetchall()
    return [dict(r) for r in rows]
