from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from outreach_cms.auth.deps import get_current_user, get_pool, require_admin, require_editor, require_owner_or_admin
from outreach_cms.cms import categories, posts
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound

from .schemas import CamelModel, deleted

router = APIRouter(tags=["posts"])


class PostBody(CamelModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    is_published: Optional[bool] = None
    is_featured: Optional[bool] = None
    category_ids: Optional[List[int]] = None


class CategoryBody(CamelModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None


def _split(payload: PostBody) -> tuple[Dict[str, Any], Optional[List[int]]]:
    """Post columns, and the category ids (None when the client didn't send any)."""
    data = payload.supplied()
    return data, data.pop("category_ids", None)


# -----------------------------
# Posts
# -----------------------------


@router.get("/posts")
def list_posts(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: str = "all",
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return posts.find_all(
            conn,
            page=page,
            limit=limit,
            search=search,
            status=status,
            category=category,
            featured=featured,
        )


@router.get("/posts/author/{author_id}")
def list_posts_by_author(
    author_id: int,
    page: int = 1,
    limit: int = 10,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return posts.find_by_author(conn, author_id, page=page, limit=limit)


@router.get("/posts/{post_id}")
def get_post(
    post_id: int,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = posts.find_by_id(conn, post_id)
    if row is None:
        raise NotFound("Post not found")
    return row


@router.post("/posts", status_code=201)
def create_post(
    payload: PostBody,
    user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    data, category_ids = _split(payload)
    with pool.connection() as conn:
        return posts.create(conn, data, author_id=int(user["id"]), category_ids=category_ids)


@router.put("/posts/{post_id}", dependencies=[Depends(require_editor)])
def update_post(
    post_id: int,
    payload: PostBody,
    _user: Dict[str, Any] = Depends(require_owner_or_admin(posts.RESOURCE, id_param="post_id")),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    data, category_ids = _split(payload)
    with pool.connection() as conn:
        return posts.update(conn, post_id, data, category_ids=category_ids)


@router.delete("/posts/{post_id}", dependencies=[Depends(require_editor)])
def delete_post(
    post_id: int,
    _user: Dict[str, Any] = Depends(require_owner_or_admin(posts.RESOURCE, id_param="post_id")),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        posts.delete(conn, post_id)
    return deleted("Post")


# -----------------------------
# Categories
# -----------------------------


@router.get("/categories", tags=["categories"])
def list_categories(
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return {"data": categories.find_all(conn)}


@router.post("/categories", status_code=201, tags=["categories"])
def create_category(
    payload: CategoryBody,
    _user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return categories.create(
            conn,
            name=str(payload.name or ""),
            slug=payload.slug,
            description=payload.description,
        )


@router.put("/categories/{category_id}", tags=["categories"])
def update_category(
    category_id: int,
    payload: CategoryBody,
    _user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return categories.update(
            conn,
            category_id,
            name=payload.name,
            slug=payload.slug,
            description=payload.description,
        )


@router.delete("/categories/{category_id}", tags=["categories"])
def delete_category(
    category_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        categories.delete(conn, category_id)
    return deleted("Category")
