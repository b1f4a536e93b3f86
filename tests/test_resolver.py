from app.lucien.modules.engagements.resolver import (
    MODULE_ORDER,
    ModuleInputs,
    is_billing_paid,
    is_nda_signed,
    map_contract_status,
    map_contract_type,
    map_engagement_status,
    read_module_overrides,
    resolve_modules,
    resolve_tier,
)

ALL_WIRED = {k: True for k in MODULE_ORDER}


def _resolve(**kwargs):
    base = {"status": "ACTIVE", "tier": "BLUEPRINT", "wired": dict(ALL_WIRED), "role": "OPERATOR"}
    base.update(kwargs)
    return resolve_modules(ModuleInputs(**base))


def test_resolve_tier_blueprint_scheme():
    assert resolve_tier("Intel Only") == "INTEL_ONLY"
    assert resolve_tier("Blueprint Package") == "BLUEPRINT"
    assert resolve_tier("custom build") == "CUSTOM"
    assert resolve_tier("audit") == "INTEL_ONLY"
    assert resolve_tier("") is None
    assert resolve_tier(None) is None
    assert resolve_tier("gold") is None


def test_resolve_tier_sovereign_scheme():
    assert resolve_tier("diagnosis", "sovereign") == "DIAGNOSIS"
    assert resolve_tier("blueprint", "sovereign") == "ARCHITECT"
    assert resolve_tier("Total Control", "sovereign") == "SOVEREIGN"


def test_engagement_status_mapping():
    assert map_engagement_status("Open") == "ACTIVE"
    assert map_engagement_status("active") == "ACTIVE"
    assert map_engagement_status("Completed") == "CLOSED"
    assert map_engagement_status("Cancelled") == "PAUSED"
    assert map_engagement_status(None) == "PAUSED"


def test_contract_helpers():
    assert map_contract_type("Mutual NDA") == "nda"
    assert map_contract_type("SOW annex") == "sow"
    assert map_contract_type("Change request 3") == "change_requests"
    assert map_contract_type("Lease") is None
    assert map_contract_status("Fully Executed") == "signed"
    assert map_contract_status("Action Required") == "action"
    assert map_contract_status("Draft") == "pending"

    assert is_nda_signed(None) is None
    assert is_nda_signed([]) is False
    assert is_nda_signed([{"contract_type": "NDA", "status": "Draft"}]) is False
    assert is_nda_signed([{"contract_type": "NDA", "status": "Signed"}]) is True


def test_billing_paid_requires_numeric_zero_outstanding():
    assert is_billing_paid(None) is False
    assert is_billing_paid({"outstanding_amount": 0}) is True
    assert is_billing_paid({"outstanding_amount": 10.5}) is False
    assert is_billing_paid({"outstanding_amount": "0"}) is False


def test_blueprint_defaults_for_operator():
    modules = _resolve()
    assert list(modules) == list(MODULE_ORDER)
    assert modules["intel"] == {"state": "active", "reason": None, "wired": True}
    assert modules["protocol"]["state"] == "pending"
    assert modules["contracts"]["state"] == "action"
    assert modules["contracts"]["reason"] == "nda_required"
    assert modules["opsConsole"]["role"] == "operator_only"
    assert "role" not in modules["intel"]


def test_signed_nda_activates_contracts():
    modules = _resolve(nda_signed=True)
    assert modules["contracts"]["state"] == "active"
    assert modules["contracts"]["reason"] == "nda_signed"


def test_secure_channel_active_reported_as_stub():
    modules = _resolve(tier="CUSTOM")
    assert modules["secureChannel"] == {"state": "pending", "reason": "e2ee_stub", "wired": True}


def test_unknown_tier_locks_everything():
    modules = _resolve(tier=None)
    assert all(m["state"] == "locked" and m["reason"] == "tier_unknown" for m in modules.values())


def test_status_gate_locks_all_modules():
    modules = _resolve(status="PAUSED", tier="CUSTOM")
    assert {m["state"] for m in modules.values()} == {"locked"}
    assert {m["reason"] for m in modules.values()} == {"project_paused"}


def test_unwired_module_reports_not_wired():
    wired = dict(ALL_WIRED, outputs=False)
    modules = _resolve(tier="CUSTOM", wired=wired)
    assert modules["outputs"] == {"state": "not_wired", "reason": "not_wired", "wired": False}


def test_overrides_apply_on_top_of_tier():
    overrides = read_module_overrides(
        {"lucien_modules": {"protocol": {"state": "active"}, "outputs": {"state": "bogus"}, "nope": {"state": "active"}}}
    )
    assert overrides == {"protocol": {"state": "active", "reason": None}}
    modules = _resolve(overrides=overrides)
    assert modules["protocol"]["state"] == "active"
    assert modules["outputs"]["state"] == "locked"


def test_client_gate_billing_required():
    modules = _resolve(tier="CUSTOM", role="CLIENT", enforce_client_gate=True, nda_signed=True, billing_paid=False)
    assert modules["billing"] == {"state": "action", "reason": "payment_required", "wired": True}
    assert modules["contracts"]["state"] == "active"
    assert modules["intel"]["state"] == "locked"
    assert modules["intel"]["reason"] == "billing_required"
    assert modules["secureChannel"]["reason"] == "billing_required"


def test_client_gate_nda_required():
    modules = _resolve(tier="CUSTOM", role="CLIENT", enforce_client_gate=True, nda_signed=False, billing_paid=True)
    assert modules["contracts"]["state"] == "action"
    assert modules["contracts"]["reason"] == "nda_required"
    assert modules["billing"]["state"] == "active"
    assert modules["outputs"]["reason"] == "nda_required"


def test_client_gate_skips_operators_and_disabled_enforcement():
    operator = _resolve(tier="CUSTOM", role="OPERATOR", enforce_client_gate=True, billing_paid=False)
    assert operator["intel"]["state"] == "active"
    relaxed = _resolve(tier="CUSTOM", role="CLIENT", enforce_client_gate=False, billing_paid=False)
    assert relaxed["intel"]["state"] == "active"
