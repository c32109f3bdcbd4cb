"""Unauthenticated endpoints used by the public website. Published content only."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from outreach_cms.auth.deps import get_pool
from outreach_cms.cms import contact, content, donations, events, newsletter, pages, posts
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound

from .schemas import CamelModel

router = APIRouter(prefix="/public", tags=["public"])


class ContactBody(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


class DonationBody(CamelModel):
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = "USD"
    payment_method: Optional[str] = None
    is_recurring: bool = False
    recurring_frequency: Optional[str] = None
    message: Optional[str] = None


class SubscribeBody(CamelModel):
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UnsubscribeBody(CamelModel):
    email: Optional[str] = None


@router.get("/content/{slug}")
def public_content(slug: str, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = content.find_published_by_slug(conn, slug)
    if row is None:
        raise NotFound("Content not found")
    return row


@router.get("/pages/{slug}")
def public_page(slug: str, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = pages.find_by_slug(conn, slug, published_only=True)
    if row is None:
        raise NotFound("Page not found")
    return row


@router.get("/posts")
def public_posts(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return posts.find_all(
            conn,
            page=page,
            limit=limit,
            search=search,
            status="published",
            category=category,
            featured=featured,
        )


@router.get("/posts/{slug}")
def public_post(slug: str, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    """A published post; each read bumps its view counter."""
    with pool.connection() as conn:
        row = posts.find_by_slug(conn, slug, published_only=True)
        if row is None:
            raise NotFound("Post not found")
        posts.increment_view_count(conn, int(row["id"]))
    row["view_count"] = int(row.get("view_count") or 0) + 1
    return row


@router.get("/posts/{slug}/related")
def public_related_posts(slug: str, limit: int = 3, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = posts.find_by_slug(conn, slug, published_only=True)
        if row is None:
            raise NotFound("Post not found")
        return {"data": posts.related_posts(conn, int(row["id"]), limit=max(1, min(limit, 12)))}


@router.get("/events")
def public_events(
    page: int = 1,
    limit: int = 10,
    featured: Optional[bool] = None,
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return events.find_all(conn, page=page, limit=limit, upcoming=True, published=True, featured=featured)


@router.post("/contact", status_code=201)
def public_contact(payload: ContactBody, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        contact.create(
            conn,
            name=str(payload.name or ""),
            email=str(payload.email or ""),
            subject=payload.subject,
            message=str(payload.message or ""),
        )
    return {"success": True, "message": "Thank you for your message. We will get back to you soon."}


@router.post("/donations", status_code=201)
def public_donation(payload: DonationBody, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = donations.create(
            conn,
            donor_name=str(payload.donor_name or ""),
            donor_email=str(payload.donor_email or ""),
            amount=payload.amount if payload.amount is not None else 0,
            currency=payload.currency,
            payment_method=payload.payment_method,
            is_recurring=payload.is_recurring,
            recurring_frequency=payload.recurring_frequency,
            message=payload.message,
        )
    return {
        "success": True,
        "message": "Thank you for your donation.",
        "donation": {
            "id": row["id"],
            "amount": row["amount"],
            "currency": row["currency"],
            "payment_status": row["payment_status"],
        },
    }


@router.post("/newsletter/subscribe", status_code=201)
def public_subscribe(payload: SubscribeBody, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        newsletter.subscribe(
            conn,
            email=str(payload.email or ""),
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    return {"success": True, "message": "Subscribed successfully"}


@router.post("/newsletter/unsubscribe")
def public_unsubscribe(payload: UnsubscribeBody, pool: ConnectionPool = Depends(get_pool)) -> Dict[str, Any]:
    with pool.connection() as conn:
        newsletter.unsubscribe(conn, str(payload.email or ""))
    return {"success": True, "message": "Unsubscribed successfully"}
