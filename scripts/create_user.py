"""Create a user directly in the database.

Usage:
  python scripts/create_user.py --username alice --email alice@example.org --password '...' --role editor

NOTE: This is intended for local/dev and first-time setup.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from outreach_cms.auth.crud import create_user
from outreach_cms.auth.roles import ROLES
from outreach_cms.config import load_config
from outreach_cms.db import ConnectionPool, init_db
from outreach_cms.validators import password_problems


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=list(ROLES), default="viewer")
    ap.add_argument("--first-name", default=None)
    ap.add_argument("--last-name", default=None)
    args = ap.parse_args()

    problems = password_problems(args.password)
    if problems:
        ap.error("; ".join(problems))

    cfg = load_config()
    pool = ConnectionPool(cfg.DB_DSN, max_size=1)
    try:
        init_db(pool)
        with pool.connection() as conn:
            u = create_user(
                conn,
                username=args.username,
                email=args.email,
                password=args.password,
                role=args.role,
                first_name=args.first_name,
                last_name=args.last_name,
            )
    finally:
        pool.close()

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
