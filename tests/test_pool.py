import sqlite3
import threading

import pytest

from outreach_cms.cms import posts
from outreach_cms.db import ConnectionPool, init_db
from outreach_cms.errors import ValidationError


@pytest.fixture
def db_pool(tmp_path):
    p = ConnectionPool(str(tmp_path / "pool.sqlite"), max_size=2)
    init_db(p)
    yield p
    p.close()


def _count(p, table):
    with p.connection() as conn:
        return int(conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()["n"])


def test_connection_is_released_after_error(db_pool):
    for _ in range(5):
        with pytest.raises(RuntimeError):
            with db_pool.connection() as conn:
                conn.execute("SELECT 1")
                raise RuntimeError("boom")
    assert db_pool.in_use == 0
    # Capacity is intact: both slots can still be taken at once.
    a = db_pool.acquire()
    b = db_pool.acquire()
    db_pool.release(a)
    db_pool.release(b)


def test_failed_unit_of_work_rolls_back(db_pool):
    with pytest.raises(sqlite3.IntegrityError):
        with db_pool.connection() as conn:
            conn.execute(
                "INSERT INTO categories (name, slug, created_at, updated_at) VALUES ('A','a','t','t')"
            )
            conn.execute(
                "INSERT INTO categories (name, slug, created_at, updated_at) VALUES ('A2','a','t','t')"
            )
    assert _count(db_pool, "categories") == 0
    assert db_pool.in_use == 0


def test_post_create_rolls_back_with_links(db_pool, monkeypatch):
    with db_pool.connection() as conn:
        conn.execute(
            """
            INSERT INTO users (id, username, email, password_hash, role, created_at, updated_at)
            VALUES (1, 'writer', 'writer@example.org', 'x', 'editor', 't', 't')
            """
        )
        conn.execute(
            "INSERT INTO categories (name, slug, created_at, updated_at) VALUES ('Water','water','t','t')"
        )
        cat_id = int(conn.execute("SELECT id FROM categories WHERE slug='water'").fetchone()["id"])

    def _explode(conn, post_id, category_ids):
        raise sqlite3.OperationalError("link insert failed")

    monkeypatch.setattr(posts, "_replace_links", _explode)
    with pytest.raises(sqlite3.OperationalError):
        with db_pool.connection() as conn:
            posts.create(conn, {"title": "Half written"}, author_id=1, category_ids=[cat_id])

    assert _count(db_pool, "posts") == 0
    assert _count(db_pool, "post_categories") == 0
    assert db_pool.in_use == 0


def test_validation_happens_before_any_write(db_pool):
    with pytest.raises(ValidationError):
        with db_pool.connection() as conn:
            posts.create(conn, {"title": ""}, author_id=1)
    assert _count(db_pool, "posts") == 0


def test_pool_bounds_concurrent_leases(db_pool):
    held = [db_pool.acquire(), db_pool.acquire()]
    got_third = threading.Event()

    def _third():
        c = db_pool.acquire()
        got_third.set()
        db_pool.release(c)

    t = threading.Thread(target=_third)
    t.start()
    assert not got_third.wait(0.2)
    db_pool.release(held.pop())
    assert got_third.wait(2)
    t.join(2)
    db_pool.release(held.pop())
    assert db_pool.in_use == 0


def test_closed_pool_refuses_new_leases(tmp_path):
    p = ConnectionPool(str(tmp_path / "closed.sqlite"), max_size=1)
    with p.connection() as conn:
        conn.execute("SELECT 1")
    p.close()
    assert p.closed
    with pytest.raises(RuntimeError):
        p.acquire()


def test_app_shutdown_closes_pool(cfg):
    from fastapi.testclient import TestClient

    from outreach_cms.api.server import create_app

    app = create_app(cfg)
    with TestClient(app):
        pool = app.state.pool
        assert not pool.closed
    assert pool.closed
