import pytest

from app.lucien import create_app
from app.lucien.erp import ERPClientError
from app.lucien.models import Base
from app.lucien.session import issue_session_token


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LUCIEN_JWT_SECRET", "test-jwt-secret")
    for k in ("REDIS_URL", "ERP_BASE_URL", "ERP_API_KEY", "ERP_API_SECRET", "LUCIEN_TIER_SCHEME", "LUCIEN_ENFORCE_CLIENT_GATE"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app.test_client()


def _login(client, role, engagement_ids, uid="user@example.com"):
    with client.application.app_context():
        token = issue_session_token(uid=uid, role=role, engagement_ids=engagement_ids)
    client.set_cookie("lucien_session", token)


def _erp(client):
    return client.application.extensions["erp_client"]


def test_list_scoped_engagements(client):
    _login(client, "CLIENT", ["PRJ-001"])
    r = client.get("/api/engagements")
    assert r.status_code == 200
    assert r.json["items"] == [{"id": "PRJ-001", "label": "PRJ-001", "status": None, "startDate": None}]


def test_list_all_engagements_from_erp(client):
    _login(client, "OPERATOR", ["ALL"])
    r = client.get("/api/engagements")
    assert r.json["items"] == [{"id": "PRJ-001", "label": "PRJ-001", "status": "Open", "startDate": "2026-01-20"}]


def test_client_without_engagements_forbidden(client):
    _login(client, "CLIENT", [])
    r = client.get("/api/engagements")
    assert r.status_code == 403


def test_operator_summary(client):
    _login(client, "OPERATOR", ["ALL"])
    r = client.get("/api/engagements/PRJ-001/summary")
    assert r.status_code == 200
    body = r.json
    assert body["id"] == "PRJ-001"
    assert body["status"] == "ACTIVE"
    assert body["tier"] == "BLUEPRINT"
    assert body["startDate"] == "2026-01-20"
    modules = body["modules"]
    assert modules["secureChannel"]["state"] == "pending"
    assert modules["secureChannel"]["reason"] == "e2ee_stub"
    assert modules["deliveryPipeline"]["reason"] == "pipeline_init"
    active = {k for k, m in modules.items() if m["state"] == "active"}
    assert active == set(modules) - {"secureChannel", "deliveryPipeline"}
    assert modules["accessRoles"]["role"] == "operator_only"


def test_summary_unknown_project(client):
    _login(client, "OPERATOR", ["ALL"])
    r = client.get("/api/engagements/PRJ-404/summary")
    assert r.status_code == 404
    assert r.json["code"] == "project_not_found"


def test_summary_scope_enforced_for_scoped_operator(client):
    _login(client, "OPERATOR", ["PRJ-002"])
    r = client.get("/api/engagements/PRJ-001/summary")
    assert r.status_code == 403


def test_client_outside_scope_blocked_by_guard(client):
    _login(client, "CLIENT", ["PRJ-002"])
    r = client.get("/api/engagements/PRJ-001/summary")
    assert r.status_code == 403
    assert r.json == {"error": "gateway_error", "code": "forbidden", "reason": "Engagement access denied."}


def test_summary_unknown_tier_locks_modules(client):
    _erp(client).projects[0]["lucien_tier"] = "mystery"
    _erp(client).projects[0].pop("lucien_modules")
    _login(client, "OPERATOR", ["ALL"])
    modules = client.get("/api/engagements/PRJ-001/summary").json["modules"]
    assert {m["reason"] for m in modules.values()} == {"tier_unknown"}


def test_summary_paused_project(client):
    _erp(client).projects[0]["status"] = "On Hold"
    _login(client, "OPERATOR", ["ALL"])
    body = client.get("/api/engagements/PRJ-001/summary").json
    assert body["status"] == "PAUSED"
    assert {m["state"] for m in body["modules"].values()} == {"locked"}


def test_client_summary_with_unpaid_invoice(client):
    _erp(client).invoices[0]["outstanding_amount"] = 100
    _login(client, "CLIENT", ["PRJ-001"])
    modules = client.get("/api/engagements/PRJ-001/summary").json["modules"]
    assert modules["billing"]["state"] == "action"
    assert modules["billing"]["reason"] == "payment_required"
    assert modules["intel"]["state"] == "locked"
    assert modules["intel"]["reason"] == "billing_required"
    assert modules["contracts"]["state"] == "active"


def test_client_gate_blocks_protocol(client):
    _login(client, "CLIENT", ["PRJ-001"])
    assert client.get("/api/engagements/PRJ-001/protocol").status_code == 200

    _erp(client).contracts[0]["status"] = "Draft"
    r = client.get("/api/engagements/PRJ-001/protocol")
    assert r.status_code == 403
    assert r.json["code"] == "nda_required"

    _erp(client).invoices[0]["outstanding_amount"] = 100
    r = client.get("/api/engagements/PRJ-001/protocol")
    assert r.status_code == 402
    assert r.json["code"] == "payment_required"


def test_client_gate_can_be_disabled(client):
    client.application.config["LUCIEN_ENFORCE_CLIENT_GATE"] = False
    _erp(client).invoices[0]["outstanding_amount"] = 100
    _login(client, "CLIENT", ["PRJ-001"])
    assert client.get("/api/engagements/PRJ-001/protocol").status_code == 200


def test_protocol_timeline(client):
    _login(client, "OPERATOR", ["ALL"])
    body = client.get("/api/engagements/PRJ-001/protocol").json
    assert body["phase"] == "Protocol Integration"
    assert [t["id"] for t in body["timeline"]] == ["kickoff", "design", "handover"]
    assert [t["dueDate"] for t in body["timeline"]] == [
        "2026-01-31T00:00:00Z",
        "2026-02-28T00:00:00Z",
        "2026-03-31T00:00:00Z",
    ]
    assert body["tasks"][1]["eta"] == "2026-03-31T00:00:00Z"
    assert body["tasks"][2]["eta"] == "2026-04-07T00:00:00Z"


def test_directive_ack_for_client(client):
    _login(client, "CLIENT", ["PRJ-001"], uid="client@example.com")
    r = client.post("/api/directives/DIR-2026-0001/ack")
    assert r.status_code == 200
    assert r.json == {"success": True, "signal": "ACKED"}
    assert _erp(client).directives[0]["ack_by"] == "client@example.com"

    r = client.post("/api/directives/DIR-2026-0001/ack")
    assert r.json["signal"] == "ALREADY_ACKED"


def test_directive_ack_errors(client):
    _login(client, "CLIENT", ["PRJ-002"])
    r = client.post("/api/directives/DIR-2026-0001/ack")
    assert r.status_code == 403
    assert r.json["reason"] == "Directive access denied."

    r = client.post("/api/directives/DIR-9999/ack")
    assert r.status_code == 403
    assert r.json["code"] == "directive_not_found"


def test_directive_ack_operator_bypass(client):
    _login(client, "OPERATOR", ["ALL"])
    r = client.post("/api/directives/DIR-2026-0001/ack")
    assert r.json == {"success": True, "signal": "OPERATOR_BYPASS"}
    assert _erp(client).directives[0]["ack_at"] is None


def test_erp_failure_maps_to_502(client, monkeypatch):
    def boom(project_id):
        raise ERPClientError("ERP request failed.", status=500)

    monkeypatch.setattr(_erp(client), "fetch_project_by_id", boom)
    _login(client, "OPERATOR", ["ALL"])
    r = client.get("/api/engagements/PRJ-001/summary")
    assert r.status_code == 502
    assert r.json["code"] == "erp_unavailable"
