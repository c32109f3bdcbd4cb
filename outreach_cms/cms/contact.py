from __future__ import annotations

from typing import Any, Dict, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound
from outreach_cms.util.normalization import normalize_email
from outreach_cms.util.time import utcnow_iso
from outreach_cms.validators import check_email, check_required_text, raise_if

from .common import shape_flags
from .listing import ListQuery, fetch_page, paginated


def _shape(row: Any) -> Dict[str, Any]:
    return shape_flags(dict(row), "is_read")


def find_by_id(conn: Any, submission_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM contact_submissions WHERE id=?", (int(submission_id),)).fetchone()
    return _shape(row) if row else None


def find_all(conn: Any, *, page: int = 1, limit: int = 20, unread: Optional[bool] = None) -> Dict[str, Any]:
    q = ListQuery(from_sql="FROM contact_submissions s", id_expr="s.id")
    if unread is True:
        q.add("s.is_read=0")
    elif unread is False:
        q.add("s.is_read=1")
    rows, total = fetch_page(
        conn,
        q,
        select_sql="s.*",
        order_by="s.created_at DESC, s.id DESC",
        page=page,
        limit=limit,
    )
    return paginated([_shape(r) for r in rows], total, page, limit)


def create(
    conn: Any,
    *,
    name: str,
    email: str,
    message: str,
    subject: Optional[str] = None,
) -> Dict[str, Any]:
    problems: List[str] = []
    check_required_text(problems, name, "Name", max_length=100)
    check_email(problems, email)
    check_required_text(problems, message, "Message", max_length=5000)
    if subject and len(subject) > 255:
        problems.append("Subject cannot be longer than 255 characters")
    raise_if(problems)

    submission_id = insert_returning_id(
        conn,
        """
        INSERT INTO contact_submissions (name, email, subject, message, is_read, created_at)
        VALUES (?,?,?,?,0,?)
        """,
        (name.strip(), normalize_email(email), (subject or "").strip() or None, message.strip(), utcnow_iso()),
    )
    created = find_by_id(conn, submission_id)
    assert created is not None
    return created


def mark_read(conn: Any, submission_id: int) -> Dict[str, Any]:
    cur = conn.execute("UPDATE contact_submissions SET is_read=1 WHERE id=?", (int(submission_id),))
    if cur.rowcount == 0:
        raise NotFound("Contact submission not found")
    row = find_by_id(conn, submission_id)
    assert row is not None
    return row


def delete(conn: Any, submission_id: int) -> None:
    cur = conn.execute("DELETE FROM contact_submissions WHERE id=?", (int(submission_id),))
    if cur.rowcount == 0:
        raise NotFound("Contact submission not found")
