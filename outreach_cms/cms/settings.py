"""Site-wide key/value settings (site title, contact address, social links, ...).

Values are stored JSON-encoded so numbers, booleans and lists come back as written.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from outreach_cms.errors import ValidationError
from outreach_cms.util.time import utcnow_iso

_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]{0,99}$")


def _decode(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def get_setting(conn: Any, key: str) -> Any:
    row = conn.execute("SELECT value FROM settings WHERE key=?", (key,)).fetchone()
    if row is None:
        return None
    return _decode(row["value"])


def get_all(conn: Any) -> Dict[str, Any]:
    rows = conn.execute("SELECT key, value FROM settings ORDER BY key ASC").fetchall()
    return {str(r["key"]): _decode(r["value"]) for r in rows}


def upsert_setting(conn: Any, key: str, value: Any) -> None:
    conn.execute(
        """
        INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
        """,
        (key, json.dumps(value), utcnow_iso()),
    )


def update_settings(conn: Any, values: Dict[str, Any]) -> Dict[str, Any]:
    """Upsert every key in `values` on one connection (one transaction)."""
    if not values:
        raise ValidationError("No settings to update")
    bad = [k for k in values if not _KEY_RE.match(str(k))]
    if bad:
        raise ValidationError("Invalid setting keys", errors=[f"Invalid key: {k}" for k in bad])

    for key, value in values.items():
        upsert_setting(conn, str(key), value)
    return get_all(conn)
