import itertools
import math

import pytest

from outreach_cms.cms.listing import ListQuery, _like_pattern, fold_categories, pagination_meta


def _seed_posts(client, headers):
    cats = []
    for name in ("Water", "Schools"):
        resp = client.post("/api/categories", json={"name": name}, headers=headers)
        assert resp.status_code == 201, resp.text
        cats.append(resp.json())

    for i in range(23):
        body = {
            "title": f"{'Outreach' if i % 3 == 0 else 'Update'} story {i}",
            "content": "Field report" if i % 2 else "Community OUTREACH notes",
            "isPublished": i % 4 != 0,
            "isFeatured": i % 5 == 0,
            "categoryIds": [c["id"] for c in cats[: i % 3]],
        }
        resp = client.post("/api/posts", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
    return cats


def _walk(client, headers, url, params, limit):
    first = client.get(url, params={**params, "page": 1, "limit": limit}, headers=headers)
    assert first.status_code == 200, first.text
    meta = first.json()["pagination"]
    seen = list(first.json()["data"])
    for page in range(2, meta["totalPages"] + 1):
        resp = client.get(url, params={**params, "page": page, "limit": limit}, headers=headers)
        assert resp.json()["pagination"]["total"] == meta["total"]
        seen.extend(resp.json()["data"])
    return meta, seen


@pytest.mark.parametrize(
    "search,status,category,featured",
    list(itertools.product(["", "outreach"], ["all", "published", "draft"], ["", "water"], [None, True])),
)
def test_post_total_matches_rows_for_every_filter(client, admin_headers, search, status, category, featured):
    _seed_posts(client, admin_headers)
    params = {"status": status}
    if search:
        params["search"] = search
    if category:
        params["category"] = category
    if featured is not None:
        params["featured"] = "true"

    meta, rows = _walk(client, admin_headers, "/api/posts", params, limit=4)

    assert meta["total"] == len(rows)
    assert len({r["id"] for r in rows}) == len(rows)
    assert meta["totalPages"] == math.ceil(meta["total"] / 4)
    for r in rows:
        if search:
            hay = " ".join(str(r.get(k) or "") for k in ("title", "content", "excerpt")).lower()
            assert search in hay
        if status == "published":
            assert r["is_published"] is True
        if status == "draft":
            assert r["is_published"] is False
        if category:
            assert "Water" in {c["name"] for c in r["categories"]}
        if featured:
            assert r["is_featured"] is True


def test_category_filter_keeps_all_categories_on_row(client, admin_headers):
    _seed_posts(client, admin_headers)
    rows = client.get("/api/posts", params={"category": "water", "limit": 100}, headers=admin_headers).json()["data"]
    assert rows
    assert any(len(r["categories"]) == 2 for r in rows)


def test_search_treats_wildcards_literally(client, admin_headers):
    client.post("/api/pages", json={"title": "100% volunteer run"}, headers=admin_headers)
    client.post("/api/pages", json={"title": "Volunteer day"}, headers=admin_headers)

    resp = client.get("/api/pages", params={"search": "100%"}, headers=admin_headers).json()
    assert [p["title"] for p in resp["data"]] == ["100% volunteer run"]
    underscore = client.get("/api/pages", params={"search": "_"}, headers=admin_headers).json()
    assert underscore["pagination"]["total"] == 0


@pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 101}])
def test_pagination_bounds(client, admin_headers, params):
    resp = client.get("/api/pages", params=params, headers=admin_headers)
    assert resp.status_code == 400, resp.text


def test_unknown_status_rejected(client, admin_headers):
    assert client.get("/api/posts", params={"status": "deleted"}, headers=admin_headers).status_code == 400


def test_pagination_meta_rounds_up():
    assert pagination_meta(21, 3, 10) == {"total": 21, "page": 3, "limit": 10, "totalPages": 3}
    assert pagination_meta(0, 1, 10)["totalPages"] == 0


def test_empty_filters_add_no_predicates():
    q = ListQuery(from_sql="FROM posts p", id_expr="p.id")
    q.add_search("   ", ["p.title"])
    q.add_search(None, ["p.title"])
    assert q.where == ["1=1"]
    assert q.params == []


def test_search_is_ored_across_columns():
    q = ListQuery(from_sql="FROM posts p", id_expr="p.id").add_search("Water", ["p.title", "p.content"])
    assert q.params == ["%water%", "%water%"]
    assert " OR " in q.where[-1]


def test_like_pattern_escapes_wildcards():
    assert _like_pattern("50%_off") == "%50\\%\\_off%"


def test_fold_categories():
    row = fold_categories({"id": 1, "category_ids": "3,7", "category_names": "Water,Health"})
    assert row == {"id": 1, "categories": [{"id": 3, "name": "Water"}, {"id": 7, "name": "Health"}]}
    assert fold_categories({"id": 2, "category_ids": None, "category_names": None})["categories"] == []
