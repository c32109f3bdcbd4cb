import pytest

from outreach_cms.cms import settings
from outreach_cms.cms.common import next_published_at
from outreach_cms.util.normalization import slugify


def _event_body(**overrides):
    body = {
        "title": "Spring fundraiser",
        "startDatetime": "2030-04-01T18:00:00Z",
        "endDatetime": "2030-04-01T21:00:00Z",
        "location": "Town hall",
    }
    body.update(overrides)
    return body


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("About Us", "about-us"),
        ("  Café & Crèche!  ", "cafe-creche"),
        ("---", ""),
        (None, ""),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_next_published_at():
    assert next_published_at("2024-01-01T00:00:00Z", False) is None
    assert next_published_at("2024-01-01T00:00:00Z", True) == "2024-01-01T00:00:00Z"
    assert next_published_at(None, True).endswith("Z")


def test_event_crud(client, admin_headers, make_user):
    _, editor = make_user("editor")
    resp = client.post("/api/events", json=_event_body(startDatetime="2030-04-01T20:00:00+02:00"), headers=editor)
    assert resp.status_code == 201, resp.text
    event = resp.json()
    assert event["start_datetime"] == "2030-04-01T18:00:00Z"
    assert event["is_published"] is False

    updated = client.put(f"/api/events/{event['id']}", json={"isPublished": True}, headers=editor).json()
    assert updated["is_published"] is True
    assert updated["location"] == "Town hall"

    assert client.delete(f"/api/events/{event['id']}", headers=editor).status_code == 403
    assert client.delete(f"/api/events/{event['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/events/{event['id']}", headers=admin_headers).status_code == 404


def test_event_must_end_after_it_starts(client, admin_headers):
    resp = client.post(
        "/api/events",
        json=_event_body(endDatetime="2030-03-31T10:00:00Z"),
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "End date must be after start date" in resp.json()["errors"]

    bad = client.post("/api/events", json=_event_body(startDatetime="next tuesday"), headers=admin_headers)
    assert bad.status_code == 400


def test_event_list_filters(client, admin_headers):
    client.post("/api/events", json=_event_body(title="Gala", isFeatured=True), headers=admin_headers)
    client.post(
        "/api/events",
        json=_event_body(title="Old picnic", startDatetime="2001-06-01T10:00:00Z", endDatetime="2001-06-01T12:00:00Z"),
        headers=admin_headers,
    )

    past = client.get("/api/events", params={"upcoming": "false"}, headers=admin_headers).json()
    assert [e["title"] for e in past["data"]] == ["Old picnic"]
    featured = client.get("/api/events", params={"featured": "true"}, headers=admin_headers).json()
    assert [e["title"] for e in featured["data"]] == ["Gala"]


def _donate(client, amount, currency="USD"):
    resp = client.post(
        "/api/public/donations",
        json={"donorName": "Pat", "donorEmail": "pat@example.org", "amount": amount, "currency": currency},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["donation"]


def test_donations_are_admin_only(client, make_user):
    _, editor = make_user("editor")
    assert client.get("/api/donations", headers=editor).status_code == 403
    assert client.get("/api/donations/summary", headers=editor).status_code == 403


def test_donation_status_and_summary(client, admin_headers):
    a = _donate(client, 10)
    b = _donate(client, 15.25)
    _donate(client, 99)
    c = _donate(client, 20, currency="EUR")

    for d in (a, b, c):
        resp = client.put(
            f"/api/donations/{d['id']}/status",
            json={"paymentStatus": "completed", "transactionId": f"tx-{d['id']}"},
            headers=admin_headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["transaction_id"] == f"tx-{d['id']}"

    summary = client.get("/api/donations/summary", headers=admin_headers).json()
    assert summary["totals"] == [
        {"currency": "EUR", "count": 1, "total": 20.0},
        {"currency": "USD", "count": 2, "total": 25.25},
    ]
    assert summary["byStatus"]["completed"] == 3
    assert summary["byStatus"]["pending"] == 1

    pending = client.get("/api/donations", params={"status": "pending"}, headers=admin_headers).json()
    assert pending["pagination"]["total"] == 1

    bad = client.put(f"/api/donations/{a['id']}/status", json={"paymentStatus": "lost"}, headers=admin_headers)
    assert bad.status_code == 400
    missing = client.put("/api/donations/9999/status", json={"paymentStatus": "failed"}, headers=admin_headers)
    assert missing.status_code == 404


def test_contact_delete_is_admin_only(client, admin_headers, make_user):
    client.post("/api/public/contact", json={"name": "Sam", "email": "sam@example.org", "message": "Hello"})
    item = client.get("/api/contact", headers=admin_headers).json()["data"][0]
    _, editor = make_user("editor")
    assert client.get(f"/api/contact/{item['id']}", headers=editor).status_code == 200
    assert client.delete(f"/api/contact/{item['id']}", headers=editor).status_code == 403
    assert client.delete(f"/api/contact/{item['id']}", headers=admin_headers).status_code == 200


def test_settings_round_trip(client, admin_headers, make_user):
    values = {"site_title": "Clean Water Now", "donations.enabled": True, "social_links": ["https://x.org"]}
    resp = client.put("/api/settings", json=values, headers=admin_headers)
    assert resp.status_code == 200, resp.text

    _, viewer = make_user("viewer")
    got = client.get("/api/settings", headers=viewer).json()
    for key, value in values.items():
        assert got[key] == value

    assert client.put("/api/settings", json={"site_title": "Mine"}, headers=viewer).status_code == 403


def test_single_setting_lookup(client, admin_headers, pool):
    client.put("/api/settings", json={"max_posts": 5}, headers=admin_headers)
    with pool.connection() as conn:
        assert settings.get_setting(conn, "max_posts") == 5
        assert settings.get_setting(conn, "missing") is None


def test_settings_reject_bad_keys_atomically(client, admin_headers):
    client.put("/api/settings", json={"site_title": "Before"}, headers=admin_headers)
    resp = client.put("/api/settings", json={"site_title": "After", "bad key!": 1}, headers=admin_headers)
    assert resp.status_code == 400
    assert client.get("/api/settings", headers=admin_headers).json()["site_title"] == "Before"


def test_null_flags_leave_event_unchanged(client, admin_headers):
    event = client.post("/api/events", json=_event_body(isPublished=True, isFeatured=True), headers=admin_headers).json()
    resp = client.put(
        f"/api/events/{event['id']}",
        json={"isPublished": None, "isFeatured": None},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_published"] is True
    assert resp.json()["is_featured"] is True
