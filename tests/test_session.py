import time

import jwt
import pytest

from app.lucien import create_app
from app.lucien.errors import GatewayError
from app.lucien.payloads import parse_json_body, required_string
from app.lucien.session import (
    JWT_ALGORITHM,
    SessionConfigError,
    issue_session_token,
    jwt_secret,
    parse_claims,
    verify_session_token,
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LUCIEN_JWT_SECRET", "test-jwt-secret")
    for k in ("REDIS_URL", "ERP_BASE_URL", "ERP_API_KEY", "ERP_API_SECRET", "ALLOW_DEV_JWT_FALLBACK"):
        monkeypatch.delenv(k, raising=False)
    return create_app()


def test_token_round_trip(app):
    with app.app_context():
        token = issue_session_token(uid="c@example.com", role="CLIENT", engagement_ids=["PRJ-001"])
        claims = verify_session_token(token)
    assert claims is not None
    assert claims.uid == "c@example.com"
    assert claims.is_client
    assert claims.engagement_ids == ["PRJ-001"]
    assert claims.can_access("PRJ-001")
    assert not claims.can_access("PRJ-002")
    assert claims.exp > claims.iat


def test_all_scope_grants_every_engagement(app):
    with app.app_context():
        claims = verify_session_token(issue_session_token(uid="op", role="OPERATOR", engagement_ids=["ALL"]))
    assert claims.has_all_scope
    assert claims.scope == "ALL"
    assert claims.can_access("ANY-ID")


def test_tampered_and_foreign_tokens_rejected(app):
    with app.app_context():
        token = issue_session_token(uid="c", role="CLIENT", engagement_ids=[])
        assert verify_session_token(token + "x") is None
        foreign = jwt.encode({"uid": "c", "role": "CLIENT", "jti": "j", "iat": 1, "exp": time.time() + 60}, "other", algorithm=JWT_ALGORITHM)
        assert verify_session_token(foreign) is None


def test_expired_token_rejected(app):
    now = int(time.time())
    payload = {"uid": "c", "role": "CLIENT", "jti": "j", "iat": now - 120, "exp": now - 60, "engagementIds": []}
    token = jwt.encode(payload, "test-jwt-secret", algorithm=JWT_ALGORITHM)
    with app.app_context():
        assert verify_session_token(token) is None


def test_parse_claims_requires_typed_fields():
    good = {"uid": "u", "role": "CLIENT", "jti": "j", "iat": 1, "exp": 2, "engagementIds": ["A", 7]}
    claims = parse_claims(good)
    assert claims.engagement_ids == ["A", "7"]
    assert parse_claims({**good, "uid": 5}) is None
    assert parse_claims({**good, "exp": "soon"}) is None
    assert parse_claims({**good, "iat": True}) is None
    assert parse_claims({**good, "engagementIds": "A"}).engagement_ids == []


def test_missing_secret_raises_unless_dev_fallback(app):
    app.config["LUCIEN_JWT_SECRET"] = ""
    with app.app_context():
        with pytest.raises(SessionConfigError):
            jwt_secret()
        app.config["ALLOW_DEV_JWT_FALLBACK"] = True
        assert jwt_secret() == "dev-secret"
        app.config["ENV"] = "production"
        with pytest.raises(SessionConfigError):
            jwt_secret()


def test_parse_json_body_checks(app):
    with app.test_request_context("/api/x", method="POST", data=b'{"a": "b"}', content_type="application/json"):
        assert parse_json_body(100) == {"a": "b"}

    with app.test_request_context("/api/x", method="POST", data=b"a=b", content_type="text/plain"):
        with pytest.raises(GatewayError) as e:
            parse_json_body(100)
        assert e.value.status == 400
        assert e.value.code == "invalid_content_type"

    with app.test_request_context("/api/x", method="POST", data=b'{"a": "bbbbbbbbbbbb"}', content_type="application/json"):
        with pytest.raises(GatewayError) as e:
            parse_json_body(10)
        assert e.value.status == 413

    with app.test_request_context("/api/x", method="POST", data=b"[1, 2]", content_type="application/json"):
        with pytest.raises(GatewayError) as e:
            parse_json_body(100)
        assert e.value.code == "invalid_payload"

    with app.test_request_context("/api/x", method="POST", data=b"{nope", content_type="application/json"):
        with pytest.raises(GatewayError) as e:
            parse_json_body(100)
        assert e.value.code == "invalid_payload"


def test_required_string():
    assert required_string({"k": "v"}, "k", 5) == "v"
    for payload in ({}, {"k": "  "}, {"k": 3}, {"k": "toolong"}):
        with pytest.raises(GatewayError):
            required_string(payload, "k", 5)
