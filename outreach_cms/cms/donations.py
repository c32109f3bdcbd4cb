"""Donation records. Payments are recorded here, never charged."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound, ValidationError
from outreach_cms.util.normalization import normalize_email
from outreach_cms.util.time import utcnow_iso
from outreach_cms.validators import check_choice, check_email, check_required_text, raise_if

from .common import shape_flags
from .listing import ListQuery, fetch_page, paginated

PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
FREQUENCIES = ("monthly", "quarterly", "yearly")

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _shape(row: Any) -> Dict[str, Any]:
    return shape_flags(dict(row), "is_recurring")


def find_by_id(conn: Any, donation_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM donations WHERE id=?", (int(donation_id),)).fetchone()
    return _shape(row) if row else None


def find_all(
    conn: Any,
    *,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    q = ListQuery(from_sql="FROM donations d", id_expr="d.id")
    if status:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PAYMENT_STATUSES)}")
        q.add("d.payment_status=?", status)
    q.add_search(search, ("d.donor_name", "d.donor_email"))
    rows, total = fetch_page(
        conn,
        q,
        select_sql="d.*",
        order_by="d.created_at DESC, d.id DESC",
        page=page,
        limit=limit,
    )
    return paginated([_shape(r) for r in rows], total, page, limit)


def create(
    conn: Any,
    *,
    donor_name: str,
    donor_email: str,
    amount: float,
    currency: Optional[str] = "USD",
    payment_method: Optional[str] = None,
    is_recurring: bool = False,
    recurring_frequency: Optional[str] = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    problems: List[str] = []
    check_required_text(problems, donor_name, "Name", max_length=100)
    check_email(problems, donor_email)
    try:
        amt = float(amount)
    except (TypeError, ValueError):
        amt = 0.0
    if not amt > 0:
        problems.append("Amount must be greater than 0")
    cur = (currency or "USD").strip().upper()
    if not _CURRENCY_RE.match(cur):
        problems.append("Currency must be a 3-letter code")
    if is_recurring:
        check_choice(problems, recurring_frequency, FREQUENCIES, "Recurring frequency")
    elif recurring_frequency:
        problems.append("Recurring frequency only applies to recurring donations")
    raise_if(problems)

    now = utcnow_iso()
    donation_id = insert_returning_id(
        conn,
        """
        INSERT INTO donations (donor_name, donor_email, amount, currency, payment_method, payment_status,
                               is_recurring, recurring_frequency, message, created_at, updated_at)
        VALUES (?,?,?,?,?,'pending',?,?,?,?,?)
        """,
        (
            donor_name.strip(),
            normalize_email(donor_email),
            round(amt, 2),
            cur,
            payment_method,
            1 if is_recurring else 0,
            recurring_frequency if is_recurring else None,
            message,
            now,
            now,
        ),
    )
    created = find_by_id(conn, donation_id)
    assert created is not None
    return created


def update_status(
    conn: Any,
    donation_id: int,
    status: str,
    *,
    transaction_id: Optional[str] = None,
) -> Dict[str, Any]:
    problems: List[str] = []
    check_choice(problems, status, PAYMENT_STATUSES, "Payment status")
    raise_if(problems)

    current = find_by_id(conn, donation_id)
    if current is None:
        raise NotFound("Donation not found")
    conn.execute(
        "UPDATE donations SET payment_status=?, transaction_id=?, updated_at=? WHERE id=?",
        (
            status,
            transaction_id if transaction_id is not None else current["transaction_id"],
            utcnow_iso(),
            int(donation_id),
        ),
    )
    updated = find_by_id(conn, donation_id)
    assert updated is not None
    return updated


def summary(conn: Any) -> Dict[str, Any]:
    """Completed-donation totals per currency, plus counts per status."""
    totals = conn.execute(
        """
        SELECT currency, COUNT(*) AS count, SUM(amount) AS total
        FROM donations
        WHERE payment_status='completed'
        GROUP BY currency
        ORDER BY currency ASC
        """
    ).fetchall()
    by_status = {s: 0 for s in PAYMENT_STATUSES}
    for r in conn.execute("SELECT payment_status, COUNT(*) AS count FROM donations GROUP BY payment_status").fetchall():
        by_status[str(r["payment_status"])] = int(r["count"])
    return {
        "totals": [
            {"currency": r["currency"], "count": int(r["count"]), "total": round(float(r["total"] or 0), 2)}
            for r in totals
        ],
        "byStatus": by_status,
    }
