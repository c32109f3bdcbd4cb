from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from outreach_cms.auth.deps import get_current_user, get_pool, require_admin, require_editor, require_owner_or_admin
from outreach_cms.cms import pages
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound

from .schemas import CamelModel, deleted

router = APIRouter(prefix="/pages", tags=["pages"])


class PageBody(CamelModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    is_published: Optional[bool] = None


@router.get("")
def list_pages(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: str = "all",
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return pages.find_all(conn, page=page, limit=limit, search=search, status=status)


@router.get("/{page_id}")
def get_page(
    page_id: int,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = pages.find_by_id(conn, page_id)
    if row is None:
        raise NotFound("Page not found")
    return row


@router.post("", status_code=201)
def create_page(
    payload: PageBody,
    user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return pages.create(conn, payload.supplied(), created_by=int(user["id"]))


@router.put("/{page_id}", dependencies=[Depends(require_editor)])
def update_page(
    page_id: int,
    payload: PageBody,
    user: Dict[str, Any] = Depends(require_owner_or_admin(pages.RESOURCE, id_param="page_id")),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return pages.update(conn, page_id, payload.supplied(), updated_by=int(user["id"]))


@router.delete("/{page_id}")
def delete_page(
    page_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        pages.delete(conn, page_id)
    return deleted("Page")
