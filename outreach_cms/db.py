from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from outreach_cms.schema import DEFAULT_CONTENT_TYPES, get_schema_sql
from outreach_cms.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # Allow sqlite:///path style, but default is file path.
    if scheme in ("sqlite",):
        return "sqlite"
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    This is a lightweight conversion that avoids replacing '?' inside single/double-quoted
    string literals. Not a full SQL parser.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if ch == "'" and not in_double:
            out.append(ch)
            if in_single:
                # Escaped single quote: ''
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                in_single = False
            else:
                in_single = True
            i += 1
            continue

        if ch == '"' and not in_single:
            out.append(ch)
            if in_double:
                # Escaped double quote: ""
                if i + 1 < len(sql) and sql[i + 1] == '"':
                    out.append('"')
                    i += 2
                    continue
                in_double = False
            else:
                in_double = True
            i += 1
            continue

        if ch == "?" and not in_single and not in_double:
            out.append("%s")
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def executemany(self, sql: str, seq_of_params: Sequence[Sequence[Any]]) -> "PGCursor":
        self._cur.executemany(_qmark_to_pct(sql), [tuple(x) for x in seq_of_params])
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        try:
            return int(self._cur.rowcount or 0)
        except Exception:
            return 0

    def close(self) -> None:
        try:
            self._cur.close()
        except Exception:
            pass

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:
            pass

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cur, name)


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        cur = self._conn.cursor()
        wrapper = PGCursor(cur)
        wrapper.execute(sql, params)
        return wrapper

    def executemany(self, sql: str, seq_of_params: Sequence[Sequence[Any]]) -> PGCursor:
        cur = self._conn.cursor()
        wrapper = PGCursor(cur)
        wrapper.executemany(sql, seq_of_params)
        return wrapper

    def cursor(self) -> PGCursor:
        return PGCursor(self._conn.cursor())

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    @property
    def closed(self) -> bool:
        return bool(getattr(self._conn, "closed", 0))


def dialect_of(conn: Any) -> str:
    return getattr(conn, "dialect", "sqlite")


def _open_postgres(dsn: str) -> PGConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except Exception as e:
        raise RuntimeError(
            "Postgres selected but psycopg2 is not installed. "
            "Install psycopg2-binary and try again."
        ) from e

    # RealDictCursor makes fetchone()/fetchall() rows act like dicts.
    raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
    return PGConnection(raw)


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]

    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    # check_same_thread=False: pooled connections are handed between threadpool workers,
    # but only ever used by one request at a time.
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


class ConnectionPool:
    """Bounded pool of database connections.

    Built once at application startup and closed at shutdown; the API keeps it on
    `app.state.pool` and hands it to handlers, scripts build their own.

    At most `max_size` connections are leased at any time. `connection()` is the only
    way handlers get a connection: it commits on normal exit, rolls back on any
    exception, and always returns the connection to the pool.
    """

    def __init__(self, dsn: str, *, max_size: int = 10):
        self.dsn = (dsn or "").strip()
        self.dialect = _detect_dialect(self.dsn)
        self.max_size = max(1, int(max_size))
        self._slots = threading.BoundedSemaphore(self.max_size)
        self._lock = threading.Lock()
        self._idle: List[Any] = []
        self._in_use = 0
        self._closed = False

    def _open(self) -> Any:
        if self.dialect == "postgres":
            return _open_postgres(self.dsn)
        return _open_sqlite(self.dsn)

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self) -> Any:
        if self._closed:
            raise RuntimeError("pool_closed")
        self._slots.acquire()
        try:
            conn = None
            with self._lock:
                while self._idle and conn is None:
                    candidate = self._idle.pop()
                    if getattr(candidate, "closed", False):
                        continue
                    conn = candidate
            if conn is None:
                conn = self._open()
            with self._lock:
                self._in_use += 1
            return conn
        except Exception:
            self._slots.release()
            raise

    def release(self, conn: Any, *, discard: bool = False) -> None:
        try:
            with self._lock:
                self._in_use -= 1
                keep = not discard and not self._closed
                if keep:
                    self._idle.append(conn)
            if not keep:
                _close_quietly(conn)
        finally:
            self._slots.release()

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Lease a connection for one unit of work (one transaction)."""
        conn = self.acquire()
        broken = False
        try:
            yield conn
            conn.commit()
        except Exception:
            try:
                conn.rollback()
            except Exception:
                # A connection that can't roll back is not safe to reuse.
                broken = True
            raise
        finally:
            self.release(conn, discard=broken)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
        for conn in idle:
            _close_quietly(conn)
        _debug(f"Pool closed ({self.dialect}), drained {len(idle)} idle connection(s)")


def _close_quietly(conn: Any) -> None:
    try:
        conn.close()
    except Exception:
        pass


def insert_returning_id(conn: Any, sql: str, params: Sequence[Any]) -> int:
    """Run an INSERT and return the new row's `id` on either engine."""
    if dialect_of(conn) == "postgres":
        row = conn.execute(sql.rstrip().rstrip(";") + " RETURNING id", params).fetchone()
        return int(row["id"])
    cur = conn.execute(sql, params)
    return int(cur.lastrowid)


def is_integrity_error(exc: BaseException) -> bool:
    """True for unique/foreign-key/check violations from sqlite3 or psycopg2."""
    if isinstance(exc, sqlite3.IntegrityError):
        return True
    return any(cls.__name__ == "IntegrityError" for cls in type(exc).__mro__)


def init_db(pool: ConnectionPool) -> None:
    """Create all tables, run lightweight migrations, seed lookup rows."""
    dialect = pool.dialect
    _debug(f"Initializing DB ({dialect}) at {pool.dsn}")
    with pool.connection() as conn:
        schema_sql = get_schema_sql(dialect)
        # Ensure only one process runs schema DDL at a time.
        # - Postgres: use an advisory lock.
        # - SQLite: DDL already takes an exclusive database lock; don't call pg_* functions.
        if dialect == "postgres":
            conn.execute("SELECT pg_advisory_lock(2147483646);")
            try:
                _exec_schema(conn, schema_sql, dialect=dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483646);")
        else:
            _exec_schema(conn, schema_sql, dialect=dialect)

        _migrate(conn, dialect=dialect)
        _seed_content_types(conn)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        # Execute multi-statement DDL (naive split is OK for our schema)
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    # SQLite can run it in one go
    conn.executescript(ddl)


def _has_column(conn: Any, table: str, col: str, *, dialect: str) -> bool:
    if dialect == "postgres":
        r = conn.execute(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema='public'
              AND table_name=?
              AND column_name=?
            LIMIT 1
            """,
            (table, col),
        ).fetchone()
        return r is not None

    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    # sqlite3.Row has "name"; fallback for tuple rows
    return any((r["name"] if isinstance(r, sqlite3.Row) else r[1]) == col for r in rows)


def _migrate(conn: Any, *, dialect: str) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    # posts: featured flag + view counter (added after the first release)
    for col, ddl in (
        ("is_featured", "INTEGER NOT NULL DEFAULT 0"),
        ("view_count", "INTEGER NOT NULL DEFAULT 0"),
    ):
        if not _has_column(conn, "posts", col, dialect=dialect):
            conn.execute(f"ALTER TABLE posts ADD COLUMN {col} {ddl}")

    # pages: publish timestamp
    if not _has_column(conn, "pages", "published_at", dialect=dialect):
        conn.execute("ALTER TABLE pages ADD COLUMN published_at TEXT")


def _seed_content_types(conn: Any) -> None:
    now = utcnow_iso()
    for name, slug, description in DEFAULT_CONTENT_TYPES:
        conn.execute(
            """
            INSERT INTO content_types (name, slug, description, created_at, updated_at)
            VALUES (?,?,?,?,?)
            ON CONFLICT (slug) DO NOTHING
            """,
            (name, slug, description, now, now),
        )
