from __future__ import annotations

from typing import Any, Dict, Optional

from outreach_cms.db import insert_returning_id
from outreach_cms.errors import NotFound
from outreach_cms.models import OwnedResource
from outreach_cms.util.time import utcnow_iso

from .listing import ListQuery, fetch_page, paginated

_SELECT = "m.*, u.username AS uploaded_by_username"
_FROM = "FROM media m LEFT JOIN users u ON u.id = m.uploaded_by"


def find_by_id(conn: Any, media_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(f"SELECT {_SELECT} {_FROM} WHERE m.id=?", (int(media_id),)).fetchone()
    return dict(row) if row else None


RESOURCE = OwnedResource(label="Media", loader=find_by_id, owner_field="uploaded_by")


def find_all(
    conn: Any,
    *,
    page: int = 1,
    limit: int = 20,
    mime_prefix: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    q = ListQuery(from_sql=_FROM, id_expr="m.id")
    if mime_prefix:
        q.add("m.mime_type LIKE ?", mime_prefix.strip().lower().replace("%", "") + "%")
    q.add_search(search, ("m.original_name", "m.alt_text", "m.caption"))
    rows, total = fetch_page(
        conn,
        q,
        select_sql=_SELECT,
        order_by="m.created_at DESC, m.id DESC",
        page=page,
        limit=limit,
    )
    return paginated(rows, total, page, limit)


def create(
    conn: Any,
    *,
    original_name: str,
    mime_type: str,
    file_name: str,
    size: int,
    url: str,
    uploaded_by: int,
    alt_text: Optional[str] = None,
    caption: Optional[str] = None,
) -> Dict[str, Any]:
    now = utcnow_iso()
    media_id = insert_returning_id(
        conn,
        """
        INSERT INTO media (original_name, mime_type, file_name, size, url, alt_text, caption,
                           uploaded_by, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?,?)
        """,
        (original_name, mime_type, file_name, int(size), url, alt_text, caption, int(uploaded_by), now, now),
    )
    created = find_by_id(conn, media_id)
    assert created is not None
    return created


def update(conn: Any, media_id: int, *, alt_text: Optional[str] = None, caption: Optional[str] = None) -> Dict[str, Any]:
    current = find_by_id(conn, media_id)
    if current is None:
        raise NotFound("Media not found")
    conn.execute(
        "UPDATE media SET alt_text=?, caption=?, updated_at=? WHERE id=?",
        (
            alt_text if alt_text is not None else current["alt_text"],
            caption if caption is not None else current["caption"],
            utcnow_iso(),
            int(media_id),
        ),
    )
    updated = find_by_id(conn, media_id)
    assert updated is not None
    return updated


def delete(conn: Any, media_id: int) -> Dict[str, Any]:
    """Delete the row and return it so the caller can remove the stored file."""
    current = find_by_id(conn, media_id)
    if current is None:
        raise NotFound("Media not found")
    conn.execute("DELETE FROM media WHERE id=?", (int(media_id),))
    return current
