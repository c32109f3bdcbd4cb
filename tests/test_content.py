def _type_id(client, headers, slug="page"):
    types = client.get("/api/content/types", headers=headers).json()["data"]
    return next(t["id"] for t in types if t["slug"] == slug)


def _content(client, headers, **body):
    body.setdefault("title", "Annual report")
    body.setdefault("contentTypeId", _type_id(client, headers))
    resp = client.post("/api/content", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_default_content_types_are_seeded(client, admin_headers):
    resp = client.get("/api/content/types", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert {t["slug"] for t in resp.json()["data"]} == {"page", "post", "event"}


def test_only_admin_creates_content_types(client, admin_headers, make_user):
    _, editor = make_user("editor")
    assert client.post("/api/content/types", json={"name": "Story"}, headers=editor).status_code == 403

    resp = client.post("/api/content/types", json={"name": "Success Story"}, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    assert resp.json()["slug"] == "success-story"

    dup = client.post("/api/content/types", json={"name": "Again", "slug": "success-story"}, headers=admin_headers)
    assert dup.status_code == 400


def test_create_content_defaults_to_draft(client, admin_headers):
    item = _content(client, admin_headers, body="Numbers for the year")
    assert item["status"] == "draft"
    assert item["published_at"] is None
    assert item["slug"] == "annual-report"
    assert item["content_type_slug"] == "page"


def test_content_requires_known_type(client, admin_headers):
    resp = client.post("/api/content", json={"title": "Orphan", "contentTypeId": 999}, headers=admin_headers)
    assert resp.status_code == 400
    missing = client.post("/api/content", json={"title": "Orphan"}, headers=admin_headers)
    assert missing.status_code == 400
    assert "Content type is required" in missing.json()["errors"]


def test_content_status_must_be_known(client, admin_headers):
    resp = client.post(
        "/api/content",
        json={"title": "X", "status": "live", "contentTypeId": _type_id(client, admin_headers)},
        headers=admin_headers,
    )
    assert resp.status_code == 400


def test_publish_and_archive_content(client, admin_headers):
    item = _content(client, admin_headers)
    published = client.put(f"/api/content/{item['id']}", json={"status": "published"}, headers=admin_headers).json()
    assert published["published_at"]

    archived = client.put(f"/api/content/{item['id']}", json={"status": "archived"}, headers=admin_headers).json()
    assert archived["status"] == "archived"
    assert archived["published_at"] is None


def test_filters_and_pagination(client, admin_headers):
    post_type = _type_id(client, admin_headers, "post")
    for i in range(12):
        _content(
            client,
            admin_headers,
            title=f"Outreach {i}" if i % 2 else f"Other {i}",
            status="published" if i % 3 else "draft",
            contentTypeId=post_type if i < 6 else _type_id(client, admin_headers),
        )

    resp = client.get(
        "/api/content",
        params={"search": "outreach", "status": "published", "page": 1, "limit": 2},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    # odd i, not divisible by 3: 1, 5, 7, 11
    assert body["pagination"]["total"] == 4
    assert body["pagination"]["totalPages"] == 2
    assert len(body["data"]) == 2
    assert all(r["status"] == "published" and "outreach" in r["title"].lower() for r in body["data"])

    by_type = client.get("/api/content", params={"type": "post", "limit": 100}, headers=admin_headers).json()
    assert by_type["pagination"]["total"] == 6


def test_fixed_routes_are_not_read_as_ids(client, admin_headers):
    assert client.get("/api/content/stats", headers=admin_headers).status_code == 200
    assert client.get("/api/content/types", headers=admin_headers).status_code == 200


def test_stats(client, admin_headers):
    _content(client, admin_headers, title="One", status="published")
    _content(client, admin_headers, title="Two")
    resp = client.get("/api/content/stats", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    stats = resp.json()
    assert stats["total"] == 2
    assert stats["byStatus"] == {"draft": 1, "published": 1, "archived": 0}
    assert {t["slug"]: t["count"] for t in stats["byType"]}["page"] == 2
    assert sum(m["count"] for m in stats["monthly"]) == 2
    assert len(stats["recent"]) == 2


def test_content_ownership_and_admin_delete(client, make_user, admin_headers):
    _, alice = make_user("editor")
    _, bob = make_user("editor")
    item = _content(client, alice)

    assert client.put(f"/api/content/{item['id']}", json={"title": "Bob"}, headers=bob).status_code == 403
    assert client.delete(f"/api/content/{item['id']}", headers=alice).status_code == 403
    assert client.delete(f"/api/content/{item['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/content/{item['id']}", headers=admin_headers).status_code == 404


def test_viewer_can_read_but_not_write(client, make_user, admin_headers):
    _content(client, admin_headers)
    _, viewer = make_user("viewer")
    assert client.get("/api/content", headers=viewer).status_code == 200
    resp = client.post("/api/content", json={"title": "x", "contentTypeId": 1}, headers=viewer)
    assert resp.status_code == 403


def test_pages_crud(client, admin_headers, make_user):
    _, editor = make_user("editor")
    resp = client.post("/api/pages", json={"title": "About Us", "metaTitle": "About"}, headers=editor)
    assert resp.status_code == 201, resp.text
    page = resp.json()
    assert page["slug"] == "about-us"
    assert page["meta_title"] == "About"
    assert page["is_published"] is False

    updated = client.put(f"/api/pages/{page['id']}", json={"isPublished": True}, headers=editor).json()
    assert updated["is_published"] is True
    assert updated["published_at"]
    assert updated["title"] == "About Us"

    assert client.delete(f"/api/pages/{page['id']}", headers=editor).status_code == 403
    assert client.delete(f"/api/pages/{page['id']}", headers=admin_headers).status_code == 200


def test_status_all_lists_everything(client, admin_headers):
    _content(client, admin_headers, title="Draft one")
    _content(client, admin_headers, title="Live one", status="published")
    _content(client, admin_headers, title="Old one", status="archived")

    unfiltered = client.get("/api/content", headers=admin_headers).json()
    everything = client.get("/api/content", params={"status": "all"}, headers=admin_headers)
    assert everything.status_code == 200, everything.text
    assert everything.json()["pagination"]["total"] == unfiltered["pagination"]["total"] == 3

    archived = client.get("/api/content", params={"status": "archived"}, headers=admin_headers).json()
    assert [c["title"] for c in archived["data"]] == ["Old one"]


def test_null_publish_flag_keeps_page_published(client, admin_headers):
    page = client.post("/api/pages", json={"title": "Donate", "isPublished": True}, headers=admin_headers).json()
    resp = client.put(f"/api/pages/{page['id']}", json={"isPublished": None, "title": "Give"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_published"] is True
    assert resp.json()["published_at"] == page["published_at"]
    assert resp.json()["title"] == "Give"
