"""
Release phase: bring the schema to head, then seed what the app expects to exist.

Run before each deploy (scripts/start.py calls it). Safe to repeat: migrations
are versioned and the seed skips roles, modules and accounts that already exist.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL must be set for the release phase.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("SQLite is not supported in production; point DATABASE_URL at Postgres.")
    return db_url


def _migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    db_url = _database_url()

    print("[release] upgrading schema to head", flush=True)
    _migrate(db_url)

    print("[release] seeding roles, SB 553 training catalogue and bootstrap account", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("[release] done", flush=True)


if __name__ == "__main__":
    run_release()
