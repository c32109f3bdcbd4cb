import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from outreach_cms.auth.crud import bootstrap_admin_if_needed
from outreach_cms.config import load_config
from outreach_cms.db import ConnectionPool, init_db


def main() -> None:
    cfg = load_config()
    pool = ConnectionPool(cfg.DB_DSN, max_size=1)
    try:
        init_db(pool)
        boot = bootstrap_admin_if_needed(pool, cfg)
        if boot:
            print(f"Created admin user: {boot['username']} <{boot['email']}>")
    finally:
        pool.close()

    print(f"DB initialized: {cfg.DB_DSN}")


if __name__ == "__main__":
    main()
