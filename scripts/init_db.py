import os
import sys
from contextlib import contextmanager
from pathlib import Path

from werkzeug.security import generate_password_hash
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.safework.models import User
from app.safework.rbac import ROLES, ensure_role
from app.safework.modules.training.seed import seed_training_catalogue


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed built-in roles, the training catalogue and an optional bootstrap account.

    Idempotent. An existing account's password is never overwritten. The bootstrap
    account has no organization; it completes onboarding like any registered user.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or ""

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///safework.db").strip()

    with _session_scope(db_url) as s:
        for role_key in ROLES:
            ensure_role(s, role_key)

        created = seed_training_catalogue(s)

        if admin_email and admin_password:
            user = s.query(User).filter(User.email == admin_email).one_or_none()
            if not user:
                user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
                s.add(user)

    print("Initialized database (seed_only).")
    print(f"Roles: {', '.join(ROLES)}")
    print(f"Training modules created: {created}")
    if admin_email:
        print(f"Bootstrap account: {admin_email}")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
