from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from outreach_cms.auth.deps import get_current_user, get_pool, require_admin, require_editor, require_owner_or_admin
from outreach_cms.cms import content
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound

from .schemas import CamelModel, deleted

router = APIRouter(prefix="/content", tags=["content"])


class ContentBody(CamelModel):
    content_type_id: Optional[int] = None
    title: Optional[str] = None
    slug: Optional[str] = None
    body: Optional[str] = None
    excerpt: Optional[str] = None
    status: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    featured_image: Optional[str] = None


class ContentTypeBody(CamelModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None


# Fixed paths first: /types and /stats would otherwise be read as an {content_id}.


@router.get("/types")
def list_content_types(
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return {"data": content.list_types(conn)}


@router.post("/types", status_code=201)
def create_content_type(
    payload: ContentTypeBody,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return content.create_type(
            conn,
            name=str(payload.name or ""),
            slug=payload.slug,
            description=payload.description,
        )


@router.get("/stats")
def content_stats(
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return content.stats(conn)


@router.get("")
def list_content(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    content_type: Optional[str] = Query(None, alias="type"),
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return content.find_all(
            conn,
            page=page,
            limit=limit,
            search=search,
            status=status,
            content_type=content_type,
        )


@router.get("/{content_id}")
def get_content(
    content_id: int,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = content.find_by_id(conn, content_id)
    if row is None:
        raise NotFound("Content not found")
    return row


@router.post("", status_code=201)
def create_content(
    payload: ContentBody,
    user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return content.create(conn, payload.supplied(), created_by=int(user["id"]))


@router.put("/{content_id}", dependencies=[Depends(require_editor)])
def update_content(
    content_id: int,
    payload: ContentBody,
    user: Dict[str, Any] = Depends(require_owner_or_admin(content.RESOURCE, id_param="content_id")),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return content.update(conn, content_id, payload.supplied(), updated_by=int(user["id"]))


@router.delete("/{content_id}")
def delete_content(
    content_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        content.delete(conn, content_id)
    return deleted("Content")
