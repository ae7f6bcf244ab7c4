import pytest

from scripts import release


def test_release_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL must be set"):
        release.run_release()


def test_release_refuses_sqlite_in_production(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="SQLite is not supported in production"):
        release.run_release()
