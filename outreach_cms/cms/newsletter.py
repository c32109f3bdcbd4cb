from __future__ import annotations

from typing import Any, Dict, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound, ValidationError
from outreach_cms.util.normalization import normalize_email
from outreach_cms.util.time import utcnow_iso
from outreach_cms.validators import check_email, check_name, raise_if

from .common import shape_flags
from .listing import ListQuery, fetch_page, paginated


def _shape(row: Any) -> Dict[str, Any]:
    return shape_flags(dict(row), "is_active")


def find_by_email(conn: Any, email: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM newsletter_subscribers WHERE email=?", (normalize_email(email),)).fetchone()
    return _shape(row) if row else None


def find_all(conn: Any, *, page: int = 1, limit: int = 20, active: Optional[bool] = None) -> Dict[str, Any]:
    q = ListQuery(from_sql="FROM newsletter_subscribers n", id_expr="n.id")
    if active is not None:
        q.add("n.is_active=?", 1 if active else 0)
    rows, total = fetch_page(
        conn,
        q,
        select_sql="n.*",
        order_by="n.subscribed_at DESC, n.id DESC",
        page=page,
        limit=limit,
    )
    return paginated([_shape(r) for r in rows], total, page, limit)


def subscribe(
    conn: Any,
    *,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Add an address, or reactivate it if it unsubscribed earlier."""
    problems: List[str] = []
    check_email(problems, email)
    check_name(problems, first_name, "First name", required=False)
    check_name(problems, last_name, "Last name", required=False)
    raise_if(problems)

    e = normalize_email(email)
    now = utcnow_iso()
    existing = find_by_email(conn, e)
    if existing is None:
        insert_returning_id(
            conn,
            """
            INSERT INTO newsletter_subscribers (email, first_name, last_name, is_active, subscribed_at)
            VALUES (?,?,?,1,?)
            """,
            (e, (first_name or "").strip() or None, (last_name or "").strip() or None, now),
        )
    elif existing["is_active"]:
        raise ValidationError("Email is already subscribed")
    else:
        conn.execute(
            """
            UPDATE newsletter_subscribers
            SET is_active=1, unsubscribed_at=NULL, subscribed_at=?,
                first_name=COALESCE(?, first_name), last_name=COALESCE(?, last_name)
            WHERE id=?
            """,
            (now, (first_name or "").strip() or None, (last_name or "").strip() or None, int(existing["id"])),
        )

    row = find_by_email(conn, e)
    assert row is not None
    return row


def unsubscribe(conn: Any, email: str) -> Dict[str, Any]:
    existing = find_by_email(conn, email)
    if existing is None or not existing["is_active"]:
        raise NotFound("Subscriber not found")
    conn.execute(
        "UPDATE newsletter_subscribers SET is_active=0, unsubscribed_at=? WHERE id=?",
        (utcnow_iso(), int(existing["id"])),
    )
    row = find_by_email(conn, email)
    assert row is not None
    return row


def delete(conn: Any, subscriber_id: int) -> None:
    cur = conn.execute("DELETE FROM newsletter_subscribers WHERE id=?", (int(subscriber_id),))
    if cur.rowcount == 0:
        raise NotFound("Subscriber not found")
