"""Events, donations, contact submissions, newsletter subscribers and site settings."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from outreach_cms.auth.deps import get_current_user, get_pool, require_admin, require_editor
from outreach_cms.cms import contact, donations, events, newsletter, settings
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound

from .schemas import CamelModel, deleted

router = APIRouter()


class EventBody(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_datetime: Optional[str] = None
    end_datetime: Optional[str] = None
    location: Optional[str] = None
    featured_image: Optional[str] = None
    is_featured: Optional[bool] = None
    is_published: Optional[bool] = None
    registration_url: Optional[str] = None


class DonationStatusBody(CamelModel):
    payment_status: Optional[str] = None
    transaction_id: Optional[str] = None


# -----------------------------
# Events
# -----------------------------


@router.get("/events", tags=["events"])
def list_events(
    page: int = 1,
    limit: int = 10,
    upcoming: Optional[bool] = None,
    published: Optional[bool] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return events.find_all(
            conn,
            page=page,
            limit=limit,
            upcoming=upcoming,
            published=published,
            featured=featured,
            search=search,
        )


@router.get("/events/{event_id}", tags=["events"])
def get_event(
    event_id: int,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = events.find_by_id(conn, event_id)
    if row is None:
        raise NotFound("Event not found")
    return row


@router.post("/events", status_code=201, tags=["events"])
def create_event(
    payload: EventBody,
    user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return events.create(conn, payload.supplied(), created_by=int(user["id"]))


@router.put("/events/{event_id}", tags=["events"])
def update_event(
    event_id: int,
    payload: EventBody,
    _user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return events.update(conn, event_id, payload.supplied())


@router.delete("/events/{event_id}", tags=["events"])
def delete_event(
    event_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        events.delete(conn, event_id)
    return deleted("Event")


# -----------------------------
# Donations (admin)
# -----------------------------


@router.get("/donations", tags=["donations"])
def list_donations(
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    search: Optional[str] = None,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return donations.find_all(conn, page=page, limit=limit, status=status, search=search)


@router.get("/donations/summary", tags=["donations"])
def donation_summary(
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return donations.summary(conn)


@router.get("/donations/{donation_id}", tags=["donations"])
def get_donation(
    donation_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = donations.find_by_id(conn, donation_id)
    if row is None:
        raise NotFound("Donation not found")
    return row


@router.put("/donations/{donation_id}/status", tags=["donations"])
def update_donation_status(
    donation_id: int,
    payload: DonationStatusBody,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return donations.update_status(
            conn,
            donation_id,
            str(payload.payment_status or ""),
            transaction_id=payload.transaction_id,
        )


# -----------------------------
# Contact submissions
# -----------------------------


@router.get("/contact", tags=["contact"])
def list_contact(
    page: int = 1,
    limit: int = 20,
    unread: Optional[bool] = None,
    _user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return contact.find_all(conn, page=page, limit=limit, unread=unread)


@router.get("/contact/{submission_id}", tags=["contact"])
def get_contact(
    submission_id: int,
    _user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = contact.find_by_id(conn, submission_id)
    if row is None:
        raise NotFound("Contact submission not found")
    return row


@router.put("/contact/{submission_id}/read", tags=["contact"])
def mark_contact_read(
    submission_id: int,
    _user: Dict[str, Any] = Depends(require_editor),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return contact.mark_read(conn, submission_id)


@router.delete("/contact/{submission_id}", tags=["contact"])
def delete_contact(
    submission_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        contact.delete(conn, submission_id)
    return deleted("Contact submission")


# -----------------------------
# Newsletter (admin)
# -----------------------------


@router.get("/newsletter", tags=["newsletter"])
def list_subscribers(
    page: int = 1,
    limit: int = 20,
    active: Optional[bool] = None,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return newsletter.find_all(conn, page=page, limit=limit, active=active)


@router.delete("/newsletter/{subscriber_id}", tags=["newsletter"])
def delete_subscriber(
    subscriber_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        newsletter.delete(conn, subscriber_id)
    return deleted("Subscriber")


# -----------------------------
# Settings
# -----------------------------


@router.get("/settings", tags=["settings"])
def get_settings(
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return settings.get_all(conn)


@router.put("/settings", tags=["settings"])
def put_settings(
    values: Dict[str, Any] = Body(...),
    _admin: Dict[str, Any] = Depends(require_admin),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return settings.update_settings(conn, values)
