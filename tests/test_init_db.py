from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.safework.models import Base, Role, User
from app.safework.modules.training.models import TrainingModule
from scripts.init_db import seed_only


def test_seed_only_is_idempotent(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    engine = create_engine(db_url, future=True)
    Base.metadata.create_all(bind=engine)

    monkeypatch.setenv("ADMIN_EMAIL", "Founder@SafeWork.test")
    monkeypatch.setenv("ADMIN_PASSWORD", "first-password")
    seed_only(database_url=db_url)
    monkeypatch.setenv("ADMIN_PASSWORD", "second-password")
    seed_only(database_url=db_url)

    with Session(engine) as s:
        assert sorted(r.key for r in s.query(Role).all()) == ["employee", "org_admin"]
        assert s.query(TrainingModule).count() == 6
        users = s.query(User).all()
        assert [u.email for u in users] == ["founder@safework.test"]
        assert users[0].organization_id is None
    engine.dispose()
