from datetime import timedelta

import pytest

from app.lucien import create_app
from app.lucien.auth_store import (
    consume_invite_token,
    create_invite,
    default_vis,
    get_user,
    hash_password,
    hash_token,
    normalize_email,
    normalize_engagement_ids,
    upsert_user,
    verify_user_credentials,
)
from app.lucien.constants import MAX_INVITE_TTL_HOURS
from app.lucien.db import session_scope
from app.lucien.models import Base, Invite
from app.lucien.utils import utcnow


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("REDIS_URL", "ERP_BASE_URL", "ERP_API_KEY", "ERP_API_SECRET"):
        monkeypatch.delenv(k, raising=False)
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


def test_normalizers():
    assert normalize_email("  Someone@Example.COM ") == "someone@example.com"
    assert normalize_engagement_ids(["PRJ-2", "PRJ-1", "PRJ-2", " "]) == ["PRJ-1", "PRJ-2"]
    assert normalize_engagement_ids([0, 2, "ALL"]) == ["ALL", "TIER-DIAGNOSIS", "TIER-SOVEREIGN"]
    assert normalize_engagement_ids("ALL") == []
    assert default_vis("OPERATOR") == "ALL"
    assert default_vis("CLIENT") is None
    assert default_vis("CLIENT", {"scope": "x"}) == {"scope": "x"}


def test_upsert_keeps_existing_values(app):
    with session_scope(app) as s:
        upsert_user(s, email="A@example.com", role="CLIENT", engagement_ids=["PRJ-001"], name="A", password_hash=hash_password("pw"))

    with session_scope(app) as s:
        user = upsert_user(s, email="a@example.com", name="", engagement_ids=[])
        assert user.name == "A"
        assert user.engagement_ids == ["PRJ-001"]
        assert user.role == "CLIENT"

    with session_scope(app) as s:
        assert verify_user_credentials(s, "a@example.com", "pw") is not None
        assert verify_user_credentials(s, "a@example.com", "nope") is None
        get_user(s, "a@example.com").status = "disabled"

    with session_scope(app) as s:
        assert verify_user_credentials(s, "a@example.com", "pw") is None


def test_magic_invite_single_use(app):
    with session_scope(app) as s:
        created = create_invite(s, email="new@example.com", role="CLIENT", engagement_ids=["TIER-ARCHITECT"])
        token = created.token
        assert created.temp_password is None
        assert created.invite.token_hash == hash_token(token)
        assert created.invite.token_hash != token
        assert get_user(s, "new@example.com") is None

    with session_scope(app) as s:
        user = consume_invite_token(s, token)
        assert user is not None
        assert user.status == "active"
        assert user.engagement_ids == ["TIER-ARCHITECT"]

    with session_scope(app) as s:
        assert consume_invite_token(s, token) is None
        assert consume_invite_token(s, "") is None
        assert consume_invite_token(s, "unknown") is None


def test_expired_invite_rejected(app):
    with session_scope(app) as s:
        created = create_invite(s, email="late@example.com", role="CLIENT", engagement_ids=["ALL"], expires_in_hours=1)
        token = created.token

    with session_scope(app) as s:
        invite = s.query(Invite).one()
        invite.expires_at = utcnow() - timedelta(minutes=1)

    with session_scope(app) as s:
        assert consume_invite_token(s, token) is None


def test_temp_password_invite_creates_active_user(app):
    with session_scope(app) as s:
        created = create_invite(s, email="tmp@example.com", role="OPERATOR", engagement_ids=["ALL"], invite_type="temp_password")
        password = created.temp_password

    assert password
    with session_scope(app) as s:
        user = verify_user_credentials(s, "tmp@example.com", password)
        assert user is not None
        assert user.role == "OPERATOR"


def test_invalid_ttl_falls_back_to_default(app):
    with session_scope(app) as s:
        created = create_invite(s, email="x@example.com", role="CLIENT", engagement_ids=["ALL"], expires_in_hours="soon")
        ttl = created.invite.expires_at - created.invite.created_at
    assert timedelta(hours=71) < ttl <= timedelta(hours=72)


@pytest.mark.parametrize("hours", [1_000_000_000, float("inf"), float("nan")])
def test_oversized_or_non_finite_ttl_is_bounded(app, hours):
    with session_scope(app) as s:
        created = create_invite(s, email="x@example.com", role="CLIENT", engagement_ids=["ALL"], expires_in_hours=hours)
        ttl = created.invite.expires_at - created.invite.created_at
    assert timedelta(0) < ttl <= timedelta(hours=MAX_INVITE_TTL_HOURS)
