from __future__ import annotations

from typing import Any, Dict, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound
from outreach_cms.util.time import parse_iso, to_iso, utcnow_iso
from outreach_cms.validators import check_required_text, check_url, raise_if

from .common import drop_null_flags, shape_flags
from .listing import ListQuery, fetch_page, paginated

FIELDS = (
    "title",
    "description",
    "start_datetime",
    "end_datetime",
    "location",
    "featured_image",
    "is_featured",
    "is_published",
    "registration_url",
)

_SELECT = "e.*, u.username AS created_by_username"
_FROM = "FROM events e LEFT JOIN users u ON u.id = e.created_by"


def _shape(row: Any) -> Dict[str, Any]:
    return shape_flags(dict(row), "is_featured", "is_published")


def find_by_id(conn: Any, event_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(f"SELECT {_SELECT} {_FROM} WHERE e.id=?", (int(event_id),)).fetchone()
    return _shape(row) if row else None


def find_all(
    conn: Any,
    *,
    page: int = 1,
    limit: int = 10,
    upcoming: Optional[bool] = None,
    published: Optional[bool] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """Upcoming listings run soonest first; everything else newest first."""
    q = ListQuery(from_sql=_FROM, id_expr="e.id")
    q.add_search(search, ("e.title", "e.description", "e.location"))
    now = utcnow_iso()
    if upcoming is True:
        q.add("e.end_datetime >= ?", now)
    elif upcoming is False:
        q.add("e.end_datetime < ?", now)
    if published is not None:
        q.add("e.is_published=?", 1 if published else 0)
    if featured is not None:
        q.add("e.is_featured=?", 1 if featured else 0)

    order_by = "e.start_datetime ASC, e.id ASC" if upcoming else "e.start_datetime DESC, e.id DESC"
    rows, total = fetch_page(conn, q, select_sql=_SELECT, order_by=order_by, page=page, limit=limit)
    return paginated([_shape(r) for r in rows], total, page, limit)


def _normalize_when(problems: List[str], value: Any, label: str) -> Optional[str]:
    if value is None or value == "":
        problems.append(f"{label} is required")
        return None
    try:
        return to_iso(parse_iso(str(value)))
    except ValueError:
        problems.append(f"{label} must be an ISO-8601 date/time")
        return None


def _validate(merged: Dict[str, Any]) -> Dict[str, Any]:
    problems: List[str] = []
    check_required_text(problems, merged.get("title"), "Title")
    start = _normalize_when(problems, merged.get("start_datetime"), "Start date")
    end = _normalize_when(problems, merged.get("end_datetime"), "End date")
    check_url(problems, merged.get("registration_url"), "Registration URL")
    if start and end and end < start:
        problems.append("End date must be after start date")
    raise_if(problems)

    out = dict(merged)
    out["title"] = str(merged["title"]).strip()
    out["start_datetime"] = start
    out["end_datetime"] = end
    out["is_featured"] = 1 if merged.get("is_featured") else 0
    out["is_published"] = 1 if merged.get("is_published") else 0
    return out


def create(conn: Any, data: Dict[str, Any], *, created_by: int) -> Dict[str, Any]:
    clean = _validate({f: data.get(f) for f in FIELDS})
    now = utcnow_iso()
    event_id = insert_returning_id(
        conn,
        f"""
        INSERT INTO events ({", ".join(FIELDS)}, created_by, created_at, updated_at)
        VALUES ({", ".join("?" for _ in FIELDS)},?,?,?)
        """,
        (*[clean[f] for f in FIELDS], int(created_by), now, now),
    )
    created = find_by_id(conn, event_id)
    assert created is not None
    return created


def update(conn: Any, event_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    current = find_by_id(conn, event_id)
    if current is None:
        raise NotFound("Event not found")
    changes = drop_null_flags(changes, "is_featured", "is_published")
    clean = _validate({f: changes[f] if f in changes else current.get(f) for f in FIELDS})

    sets = ", ".join(f"{f}=?" for f in FIELDS)
    conn.execute(
        f"UPDATE events SET {sets}, updated_at=? WHERE id=?",
        (*[clean[f] for f in FIELDS], utcnow_iso(), int(event_id)),
    )
    updated = find_by_id(conn, event_id)
    assert updated is not None
    return updated


def delete(conn: Any, event_id: int) -> None:
    cur = conn.execute("DELETE FROM events WHERE id=?", (int(event_id),))
    if cur.rowcount == 0:
        raise NotFound("Event not found")
