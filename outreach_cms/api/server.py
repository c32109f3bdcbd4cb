from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from outreach_cms import __version__
from outreach_cms.auth.crud import bootstrap_admin_if_needed
from outreach_cms.config import Config, load_config
from outreach_cms.db import ConnectionPool, init_db, is_integrity_error
from outreach_cms.errors import CMSError, DatabaseError, DuplicateEntity, ValidationError

from . import auth_routes, content_routes, media_routes, page_routes, post_routes, public_routes, site_routes


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# -----------------------------
# Error responses
# -----------------------------


def _error_response(exc: CMSError, *, detail: Optional[str] = None) -> JSONResponse:
    body = exc.to_dict()
    if detail is not None:
        body["error"] = detail
    return JSONResponse(status_code=exc.status_code, content=body)


def _validation_messages(exc: RequestValidationError) -> List[str]:
    out: List[str] = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = str(err.get("msg") or "invalid value")
        out.append(f"{field}: {msg}" if field else msg)
    return out


def _install_error_handlers(app: FastAPI, cfg: Config) -> None:
    @app.exception_handler(CMSError)
    async def _cms_error(request: Request, exc: CMSError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(ValidationError(errors=_validation_messages(exc)))

    async def _driver_error(request: Request, exc: Exception) -> JSONResponse:
        detail = str(exc) if cfg.is_development else None
        if is_integrity_error(exc):
            _debug(f"Integrity error on {request.method} {request.url.path}: {exc}")
            return _error_response(DuplicateEntity("Duplicate entry or invalid reference"), detail=detail)
        _debug(f"Database error on {request.method} {request.url.path}: {exc!r}")
        return _error_response(DatabaseError(), detail=detail)

    app.add_exception_handler(sqlite3.Error, _driver_error)
    if cfg.DB_DSN.lower().startswith(("postgres://", "postgresql://")):
        import psycopg2

        app.add_exception_handler(psycopg2.Error, _driver_error)


# -----------------------------
# App factory
# -----------------------------


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        pool = ConnectionPool(cfg.DB_DSN, max_size=cfg.DB_POOL_SIZE)
        app.state.pool = pool
        try:
            init_db(pool)
            boot = bootstrap_admin_if_needed(pool, cfg)
            if boot:
                _debug(
                    f"Bootstrapped initial admin user: username={boot.get('username')} role={boot.get('role')}"
                )
            yield
        finally:
            pool.close()

    app = FastAPI(title="Global Outreach CMS", version=__version__, lifespan=lifespan)
    # Make config available to auth deps.
    app.state.cfg = cfg

    # CORS is mainly needed for local development (admin UI on :3000 -> API on :5000).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app, cfg)

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "version": __version__}

    for module in (
        auth_routes,
        page_routes,
        post_routes,
        content_routes,
        media_routes,
        site_routes,
        public_routes,
    ):
        app.include_router(module.router, prefix="/api")

    if cfg.SERVE_UPLOADS:
        upload_dir = Path(cfg.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        app.mount(cfg.UPLOAD_URL_PREFIX.rstrip("/") or "/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")

    return app


app = create_app(load_config())
