import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load a local .env file if present.
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # development|production. Raw database error text is only returned to
    # clients in development.
    APP_ENV: str = os.environ.get("APP_ENV", "development").strip().lower()

    # Preferred: set CMS_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: CMS_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("CMS_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("CMS_DB_PATH", "./outreach_cms.sqlite")
    )

    # Upper bound on simultaneously open database connections.
    DB_POOL_SIZE: int = int(os.environ.get("DB_POOL_SIZE", "10"))

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 1 day

    # Bootstrap first admin user if users table is empty.
    # Set AUTH_BOOTSTRAP_ADMIN_PASSWORD to an empty string to disable.
    AUTH_BOOTSTRAP_ADMIN_USERNAME: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_USERNAME", "admin")
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get(
        "AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@globaloutreach.org"
    )
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "Admin@123")

    # -----------------
    # CORS
    # -----------------
    # The admin frontend runs on :3000 during development.
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )

    # -----------------
    # Media uploads
    # -----------------
    UPLOAD_DIR: str = os.environ.get("UPLOAD_DIR", "./uploads")
    UPLOAD_MAX_BYTES: int = int(os.environ.get("UPLOAD_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    UPLOAD_URL_PREFIX: str = os.environ.get("UPLOAD_URL_PREFIX", "/uploads")

    # Mount UPLOAD_DIR as static files under UPLOAD_URL_PREFIX. Disable when a
    # reverse proxy serves the directory.
    SERVE_UPLOADS: bool = _env_bool("SERVE_UPLOADS", True) is True

    @property
    def is_development(self) -> bool:
        return self.APP_ENV in ("development", "dev", "local")


def load_config() -> Config:
    return Config()
