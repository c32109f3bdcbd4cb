"""Generic content records and the content types that classify them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound, ValidationError
from outreach_cms.models import OwnedResource
from outreach_cms.util.normalization import slugify
from outreach_cms.util.time import utcnow_iso
from outreach_cms.validators import check_choice, check_required_text, check_slug, raise_if

from .common import ensure_slug_free, next_published_at, validate_entry
from .listing import ListQuery, fetch_page, paginated

STATUSES = ("draft", "published", "archived")

FIELDS = (
    "content_type_id",
    "title",
    "slug",
    "body",
    "excerpt",
    "status",
    "meta_title",
    "meta_description",
    "featured_image",
)

_SELECT = """
    ct.*,
    t.name AS content_type_name,
    t.slug AS content_type_slug,
    cu.username AS created_by_username,
    uu.username AS updated_by_username
"""
_FROM = """
    FROM content ct
    JOIN content_types t ON t.id = ct.content_type_id
    LEFT JOIN users cu ON cu.id = ct.created_by
    LEFT JOIN users uu ON uu.id = ct.updated_by
"""


# -----------------------------
# Content types
# -----------------------------


def list_types(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT id, name, slug, description, created_at, updated_at FROM content_types ORDER BY name ASC, id ASC"
    ).fetchall()
    return [dict(r) for r in rows]


def get_type(conn: Any, type_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT id, name, slug, description, created_at, updated_at FROM content_types WHERE id=?",
        (int(type_id),),
    ).fetchone()
    return dict(row) if row else None


def type_slug_exists(conn: Any, slug: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT 1 FROM content_types WHERE slug=?"
    params: List[Any] = [slug]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


def create_type(conn: Any, *, name: str, slug: Optional[str] = None, description: Optional[str] = None) -> Dict[str, Any]:
    problems: List[str] = []
    check_required_text(problems, name, "Name", max_length=100)
    s = (slug or "").strip().lower() or slugify(name)
    check_slug(problems, s)
    raise_if(problems)

    ensure_slug_free(type_slug_exists, conn, s, label="Content type")
    now = utcnow_iso()
    type_id = insert_returning_id(
        conn,
        "INSERT INTO content_types (name, slug, description, created_at, updated_at) VALUES (?,?,?,?,?)",
        (name.strip(), s, description, now, now),
    )
    created = get_type(conn, type_id)
    assert created is not None
    return created


# -----------------------------
# Content
# -----------------------------


def find_by_id(conn: Any, content_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(f"SELECT {_SELECT} {_FROM} WHERE ct.id=?", (int(content_id),)).fetchone()
    return dict(row) if row else None


def find_published_by_slug(conn: Any, slug: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        f"SELECT {_SELECT} {_FROM} WHERE ct.slug=? AND ct.status='published'",
        (slug,),
    ).fetchone()
    return dict(row) if row else None


def slug_exists(conn: Any, slug: str, *, exclude_id: Optional[int] = None) -> bool:
    sql = "SELECT 1 FROM content WHERE slug=?"
    params: List[Any] = [slug]
    if exclude_id is not None:
        sql += " AND id<>?"
        params.append(int(exclude_id))
    return conn.execute(sql, tuple(params)).fetchone() is not None


RESOURCE = OwnedResource(label="Content", loader=find_by_id, owner_field="created_by")


def find_all(
    conn: Any,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    content_type: Optional[str] = None,
) -> Dict[str, Any]:
    q = ListQuery(from_sql=_FROM, id_expr="ct.id")
    q.add_search(search, ("ct.title", "ct.body", "ct.excerpt"))
    s = (status or "all").strip().lower()
    if s != "all":
        if s not in STATUSES:
            raise ValidationError(f"status must be one of: all, {', '.join(STATUSES)}")
        q.add("ct.status=?", s)
    if content_type:
        q.add("t.slug=?", content_type.strip().lower())

    rows, total = fetch_page(
        conn,
        q,
        select_sql=_SELECT,
        order_by="ct.updated_at DESC, ct.id DESC",
        page=page,
        limit=limit,
    )
    return paginated(rows, total, page, limit)


def _validate(conn: Any, data: Dict[str, Any], *, creating: bool) -> Dict[str, Any]:
    clean = validate_entry(data, creating=creating)
    problems: List[str] = []
    if creating or "status" in clean:
        clean["status"] = (clean.get("status") or "draft").strip().lower()
        check_choice(problems, clean["status"], STATUSES, "Status")
    if creating or "content_type_id" in clean:
        raw = clean.get("content_type_id")
        if raw is None:
            problems.append("Content type is required")
        else:
            try:
                clean["content_type_id"] = int(raw)
            except (TypeError, ValueError):
                problems.append("Content type must be an integer id")
    raise_if(problems)

    if "content_type_id" in clean and get_type(conn, clean["content_type_id"]) is None:
        raise ValidationError("Invalid content type", errors=[f"Content type {clean['content_type_id']} does not exist"])
    return clean


def create(conn: Any, data: Dict[str, Any], *, created_by: int) -> Dict[str, Any]:
    clean = _validate(conn, data, creating=True)
    ensure_slug_free(slug_exists, conn, clean["slug"], label="Content")

    now = utcnow_iso()
    content_id = insert_returning_id(
        conn,
        f"""
        INSERT INTO content ({", ".join(FIELDS)}, published_at, created_by, updated_by, created_at, updated_at)
        VALUES ({", ".join("?" for _ in FIELDS)},?,?,?,?,?)
        """,
        (
            *[clean.get(f) for f in FIELDS],
            next_published_at(None, clean["status"] == "published"),
            int(created_by),
            int(created_by),
            now,
            now,
        ),
    )
    created = find_by_id(conn, content_id)
    assert created is not None
    return created


def update(conn: Any, content_id: int, changes: Dict[str, Any], *, updated_by: int) -> Dict[str, Any]:
    current = find_by_id(conn, content_id)
    if current is None:
        raise NotFound("Content not found")

    clean = _validate(conn, changes, creating=False)
    if "slug" in clean and clean["slug"] != current["slug"]:
        ensure_slug_free(slug_exists, conn, clean["slug"], exclude_id=content_id, label="Content")

    merged = {f: clean[f] if f in clean else current.get(f) for f in FIELDS}
    sets = ", ".join(f"{f}=?" for f in FIELDS)
    conn.execute(
        f"UPDATE content SET {sets}, published_at=?, updated_by=?, updated_at=? WHERE id=?",
        (
            *[merged[f] for f in FIELDS],
            next_published_at(current.get("published_at"), merged["status"] == "published"),
            int(updated_by),
            utcnow_iso(),
            int(content_id),
        ),
    )
    updated = find_by_id(conn, content_id)
    assert updated is not None
    return updated


def delete(conn: Any, content_id: int) -> None:
    cur = conn.execute("DELETE FROM content WHERE id=?", (int(content_id),))
    if cur.rowcount == 0:
        raise NotFound("Content not found")


def _first_month(months_back: int) -> str:
    """'YYYY-MM' of the month `months_back` months before the current one."""
    now = datetime.now(timezone.utc)
    idx = now.year * 12 + (now.month - 1) - int(months_back)
    return f"{idx // 12:04d}-{idx % 12 + 1:02d}"


def stats(conn: Any, *, months: int = 6) -> Dict[str, Any]:
    """Dashboard counters: totals, per-type, per-status, monthly creations, recent edits."""
    total = int(conn.execute("SELECT COUNT(*) AS n FROM content").fetchone()["n"] or 0)

    by_type = conn.execute(
        """
        SELECT t.id, t.name, t.slug, COUNT(ct.id) AS count
        FROM content_types t
        LEFT JOIN content ct ON ct.content_type_id = t.id
        GROUP BY t.id, t.name, t.slug
        ORDER BY t.name ASC
        """
    ).fetchall()

    by_status = {s: 0 for s in STATUSES}
    for r in conn.execute("SELECT status, COUNT(*) AS count FROM content GROUP BY status").fetchall():
        by_status[str(r["status"])] = int(r["count"])

    monthly = conn.execute(
        """
        SELECT SUBSTR(created_at, 1, 7) AS month, COUNT(*) AS count
        FROM content
        WHERE SUBSTR(created_at, 1, 7) >= ?
        GROUP BY SUBSTR(created_at, 1, 7)
        ORDER BY month ASC
        """,
        (_first_month(months - 1),),
    ).fetchall()

    recent = conn.execute(
        f"SELECT {_SELECT} {_FROM} ORDER BY ct.updated_at DESC, ct.id DESC LIMIT 5"
    ).fetchall()

    return {
        "total": total,
        "byType": [dict(r) for r in by_type],
        "byStatus": by_status,
        "monthly": [{"month": r["month"], "count": int(r["count"])} for r in monthly],
        "recent": [dict(r) for r in recent],
    }
