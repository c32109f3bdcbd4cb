"""Filtered, paginated listings.

A listing is one `FROM ... WHERE ...` fragment run twice: once wrapped in
`COUNT(DISTINCT id)` for the total, once with GROUP BY / ORDER BY / LIMIT for the
page. Both statements read the same predicate list and the same parameter list
from a single `ListQuery`, so the reported total always describes the rows the
page was cut from.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from outreach_cms.db import dialect_of
from outreach_cms.validators import check_pagination


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@dataclass
class ListQuery:
    from_sql: str
    id_expr: str
    where: List[str] = field(default_factory=lambda: ["1=1"])
    params: List[Any] = field(default_factory=list)

    def add(self, predicate: str, *params: Any) -> "ListQuery":
        self.where.append(predicate)
        self.params.extend(params)
        return self

    def add_search(self, term: Optional[str], columns: Sequence[str]) -> "ListQuery":
        """Case-insensitive substring match, ORed across `columns`. Blank terms add nothing."""
        t = (term or "").strip()
        if not t:
            return self
        like = _like_pattern(t)
        ors = " OR ".join(f"LOWER(COALESCE({c}, '')) LIKE ? ESCAPE '\\'" for c in columns)
        return self.add(f"({ors})", *([like] * len(columns)))

    @property
    def fragment(self) -> str:
        return f"{self.from_sql} WHERE {' AND '.join(self.where)}"


def count_rows(conn: Any, q: ListQuery) -> int:
    row = conn.execute(
        f"SELECT COUNT(DISTINCT {q.id_expr}) AS n {q.fragment}",
        tuple(q.params),
    ).fetchone()
    return int(row["n"] or 0)


def fetch_page(
    conn: Any,
    q: ListQuery,
    *,
    select_sql: str,
    order_by: str,
    page: int,
    limit: int,
    group_by: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Return (rows for `page`, total matching rows)."""
    check_pagination(page, limit)

    total = count_rows(conn, q)

    sql = f"SELECT {select_sql} {q.fragment}"
    if group_by:
        sql += f" GROUP BY {group_by}"
    sql += f" ORDER BY {order_by} LIMIT ? OFFSET ?"
    rows = conn.execute(sql, (*q.params, int(limit), (int(page) - 1) * int(limit))).fetchall()
    return [dict(r) for r in rows], total


def pagination_meta(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": int(total),
        "page": int(page),
        "limit": int(limit),
        "totalPages": int(math.ceil(total / limit)) if limit else 0,
    }


def paginated(rows: List[Dict[str, Any]], total: int, page: int, limit: int) -> Dict[str, Any]:
    return {"data": rows, "pagination": pagination_meta(total, page, limit)}


def category_aggregates(conn: Any, cat_alias: str = "c") -> str:
    """SELECT-list fragment folding a joined category table into two comma-joined columns."""
    if dialect_of(conn) == "postgres":
        return (
            f"STRING_AGG(CAST({cat_alias}.id AS TEXT), ',' ORDER BY {cat_alias}.id) AS category_ids, "
            f"STRING_AGG({cat_alias}.name, ',' ORDER BY {cat_alias}.id) AS category_names"
        )
    # SQLite feeds both aggregates the same rows in the same order, so positions line up.
    return (
        f"GROUP_CONCAT({cat_alias}.id) AS category_ids, "
        f"GROUP_CONCAT({cat_alias}.name) AS category_names"
    )


def fold_categories(row: Dict[str, Any]) -> Dict[str, Any]:
    """Replace category_ids/category_names with a `categories` list of {id, name}."""
    ids_raw = row.pop("category_ids", None)
    names_raw = row.pop("category_names", None)
    if not ids_raw:
        row["categories"] = []
        return row
    ids = [int(x) for x in str(ids_raw).split(",") if x != ""]
    names = str(names_raw or "").split(",")
    row["categories"] = [
        {"id": cid, "name": names[i] if i < len(names) else None} for i, cid in enumerate(ids)
    ]
    return row
