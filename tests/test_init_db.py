from sqlalchemy import create_engine

from app.lucien.auth_store import get_user, verify_password
from app.lucien.models import Base
from scripts._db_utils import script_session
from scripts.init_db import seed_only


def _db(tmp_path):
    url = f"sqlite:///{tmp_path/'seed.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    return url


def test_seed_skips_without_admin_env(tmp_path, monkeypatch):
    url = _db(tmp_path)
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    seed_only(database_url=url)
    with script_session(url) as s:
        assert get_user(s, "ops@example.com") is None


def test_seed_creates_operator_and_keeps_password(tmp_path, monkeypatch):
    url = _db(tmp_path)
    monkeypatch.setenv("ADMIN_EMAIL", "Ops@Example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "first")
    seed_only(database_url=url)

    monkeypatch.setenv("ADMIN_PASSWORD", "second")
    seed_only(database_url=url)

    with script_session(url) as s:
        user = get_user(s, "ops@example.com")
        assert user.role == "OPERATOR"
        assert user.engagement_ids == ["ALL"]
        assert user.vis == "ALL"
        assert verify_password(user.password_hash, "first")
