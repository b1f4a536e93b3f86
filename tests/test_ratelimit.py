import pytest

from app.lucien import create_app
from app.lucien.models import Base
from app.lucien.ratelimit import check_rate_limit


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LUCIEN_JWT_SECRET", "test-jwt-secret")
    for k in ("REDIS_URL", "ERP_BASE_URL", "ERP_API_KEY", "ERP_API_SECRET"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app.test_client()


def test_fixed_window_counter(fake_redis):
    results = [check_rate_limit("k", 2, 60, client=fake_redis) for _ in range(3)]
    assert [r.count for r in results] == [1, 2, 3]
    assert [r.allowed for r in results] == [True, True, False]
    assert results[2].headers() == {"X-RateLimit-Limit": "2", "X-RateLimit-Remaining": "0"}
    assert fake_redis.expirations == {"k": 60}


def test_no_redis_allows_everything(client):
    with client.application.app_context():
        rl = check_rate_limit("k", 1, 60)
    assert rl.allowed
    assert rl.count == 0
    assert rl.remaining == 1


def test_production_requires_redis(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-strong-secret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/lucien")
    monkeypatch.setenv("LUCIEN_JWT_SECRET", "jwt")
    monkeypatch.delenv("REDIS_URL", raising=False)
    with pytest.raises(RuntimeError, match="REDIS_URL"):
        create_app()


def test_production_rejects_sqlite(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-strong-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()


def test_global_ip_limit(client, fake_redis):
    app = client.application
    app.extensions["redis"] = fake_redis
    app.config["LUCIEN_GLOBAL_IP_RATE_LIMIT"] = 2
    client.get("/api/dev/login")

    assert client.get("/api/engagements").status_code == 200
    assert client.get("/api/engagements").status_code == 200
    r = client.get("/api/engagements")
    assert r.status_code == 429
    assert r.json == {"error": "gateway_error", "code": "rate_limited", "reason": "Too many requests."}
    assert r.headers["X-RateLimit-Remaining"] == "0"
    assert "lucien:rl:global:ip:0.0.0.0" in fake_redis.strings


def test_global_limit_keys_on_forwarded_ip(client, fake_redis):
    client.application.extensions["redis"] = fake_redis
    client.get("/api/dev/login")
    client.get("/api/engagements", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
    assert "lucien:rl:global:ip:203.0.113.9" in fake_redis.strings


def test_directive_ack_mutation_limit(client, fake_redis):
    client.application.extensions["redis"] = fake_redis
    client.get("/api/dev/login")
    for _ in range(30):
        r = client.post("/api/directives/DIR-2026-0001/ack")
        assert r.status_code == 200
    r = client.post("/api/directives/DIR-2026-0001/ack")
    assert r.status_code == 429
    assert r.json["reason"] == "Too many mutation requests."
    assert r.headers["X-RateLimit-Limit"] == "30"
