"""
Engagement module-state resolution.

Pure functions: given a project's tier, ERP wiring, NDA and billing state, compute
the per-module availability matrix served by /summary and used by the portal nav.

Resolution per module, in order:
  1. tier default (plus mock-only project overrides), or not_wired
  2. project status gate: anything but ACTIVE locks every module
  3. contracts: an `action` contract becomes `active` once the NDA is signed
  4. secureChannel: `active` is reported as `pending` while the channel is a stub
  5. client gate (CLIENT role, when enforced): unpaid billing or unsigned NDA
     locks everything except billing and contracts
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MODULE_STATES = ("active", "pending", "locked", "action", "not_wired")

MODULE_ORDER = (
    "intel",
    "protocol",
    "outputs",
    "secureChannel",
    "contracts",
    "billing",
    "settlement",
    "opsConsole",
    "requestBuilder",
    "deliveryPipeline",
    "accessRoles",
)

OPERATOR_ONLY_MODULES = frozenset({"opsConsole", "requestBuilder", "deliveryPipeline", "accessRoles"})

ENGAGEMENT_STATUSES = ("ACTIVE", "PAUSED", "CLOSED")

TIER_SCHEMES = {
    "blueprint": ("INTEL_ONLY", "BLUEPRINT", "CUSTOM"),
    "sovereign": ("DIAGNOSIS", "ARCHITECT", "SOVEREIGN"),
}

# substring keywords per tier level (0 = intel, 1 = blueprint, 2 = custom)
_TIER_KEYWORDS = (
    ("intel", "diagnosis", "audit"),
    ("blueprint", "architect"),
    ("custom", "sovereign", "total control"),
)


def _m(state: str, reason: str | None = None) -> dict[str, Any]:
    return {"state": state, "reason": reason}


_INTEL_ONLY = {
    "intel": _m("active"),
    "protocol": _m("locked", "tier_intel_only"),
    "outputs": _m("locked", "tier_intel_only"),
    "secureChannel": _m("locked", "tier_intel_only"),
    "contracts": _m("locked", "tier_intel_only"),
    "billing": _m("locked", "tier_custom_only"),
    "settlement": _m("locked", "tier_intel_only"),
    "opsConsole": _m("active"),
    "requestBuilder": _m("action", "operator_queue"),
    "deliveryPipeline": _m("pending", "pipeline_init"),
    "accessRoles": _m("locked", "operator_only"),
}

_BLUEPRINT = {
    "intel": _m("active"),
    "protocol": _m("pending", "kickoff"),
    "outputs": _m("locked", "delivery"),
    "secureChannel": _m("pending", "key_exchange"),
    "contracts": _m("action", "nda_required"),
    "billing": _m("locked", "tier_custom_only"),
    "settlement": _m("locked", "final_acceptance"),
    "opsConsole": _m("active"),
    "requestBuilder": _m("action", "operator_queue"),
    "deliveryPipeline": _m("pending", "pipeline_init"),
    "accessRoles": _m("locked", "operator_only"),
}

_CUSTOM = {
    "intel": _m("active"),
    "protocol": _m("active"),
    "outputs": _m("active"),
    "secureChannel": _m("active", "ready"),
    "contracts": _m("active"),
    "billing": _m("active"),
    "settlement": _m("active"),
    "opsConsole": _m("active"),
    "requestBuilder": _m("active"),
    "deliveryPipeline": _m("pending", "pipeline_init"),
    "accessRoles": _m("active"),
}

# The sovereign packaging bills every tier and asks for an NDA up front.
TIER_MODULE_DEFAULTS: dict[str, dict[str, dict[str, Any]]] = {
    "INTEL_ONLY": _INTEL_ONLY,
    "BLUEPRINT": _BLUEPRINT,
    "CUSTOM": _CUSTOM,
    "DIAGNOSIS": {**_INTEL_ONLY, "contracts": _m("action", "nda_required"), "billing": _m("active")},
    "ARCHITECT": {**_BLUEPRINT, "billing": _m("active")},
    "SOVEREIGN": _CUSTOM,
}

CONTRACT_ORDER = ("nda", "msa", "sow", "dpa", "change_requests")
CONTRACT_LABELS = {
    "nda": "NDA",
    "msa": "MSA",
    "sow": "SOW / ANNEX",
    "dpa": "DPA",
    "change_requests": "CHANGE REQUESTS",
}


def _norm(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def map_engagement_status(status: Any) -> str:
    s = _norm(status)
    if s in ("open", "active"):
        return "ACTIVE"
    if s in ("completed", "closed"):
        return "CLOSED"
    return "PAUSED"


def resolve_tier(raw: Any, scheme: str = "blueprint") -> str | None:
    text = _norm(raw)
    if not text:
        return None
    labels = TIER_SCHEMES.get(scheme) or TIER_SCHEMES["blueprint"]
    for level, keywords in enumerate(_TIER_KEYWORDS):
        if any(k in text for k in keywords):
            return labels[level]
    return None


def map_contract_type(value: Any) -> str | None:
    text = _norm(value)
    if not text:
        return None
    if "nda" in text:
        return "nda"
    if "msa" in text:
        return "msa"
    if "sow" in text or "annex" in text:
        return "sow"
    if "dpa" in text:
        return "dpa"
    if "change" in text:
        return "change_requests"
    return None


def map_contract_status(value: Any) -> str:
    text = _norm(value)
    if not text:
        return "pending"
    if "signed" in text or "executed" in text or "active" in text:
        return "signed"
    if "action" in text or "required" in text:
        return "action"
    return "pending"


def is_nda_signed(contracts: list[dict[str, Any]] | None) -> bool | None:
    """None when the contracts doctype is not wired."""
    if contracts is None:
        return None
    for c in contracts:
        if map_contract_type(c.get("contract_type") or c.get("name")) != "nda":
            continue
        if map_contract_status(c.get("status")) == "signed":
            return True
    return False


def is_billing_paid(latest_invoice: dict[str, Any] | None) -> bool:
    if not latest_invoice:
        return False
    outstanding = latest_invoice.get("outstanding_amount")
    if isinstance(outstanding, bool) or not isinstance(outstanding, (int, float)):
        return False
    return outstanding <= 0


def read_module_overrides(project: dict[str, Any]) -> dict[str, dict[str, Any]]:
    raw = project.get("lucien_modules")
    if not isinstance(raw, dict):
        return {}
    overrides: dict[str, dict[str, Any]] = {}
    for key in MODULE_ORDER:
        entry = raw.get(key)
        if not isinstance(entry, dict):
            continue
        state = entry.get("state")
        if state not in MODULE_STATES:
            continue
        reason = entry.get("reason")
        overrides[key] = {"state": state, "reason": reason if isinstance(reason, str) else None}
    return overrides


@dataclass(frozen=True)
class ModuleInputs:
    status: str
    tier: str | None
    wired: dict[str, bool]
    overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    nda_signed: bool | None = None
    billing_paid: bool = False
    role: str = "CLIENT"
    enforce_client_gate: bool = False


def wired_modules(
    *,
    project_found: bool,
    requests_listed: bool,
    contracts_wired: bool,
    outputs_wired: bool,
    invoices_wired: bool,
    latest_invoice_found: bool,
) -> dict[str, bool]:
    return {
        "intel": requests_listed,
        "protocol": project_found,
        "outputs": outputs_wired,
        "secureChannel": project_found,
        "contracts": contracts_wired,
        "billing": invoices_wired,
        "settlement": latest_invoice_found,
        "opsConsole": project_found,
        "requestBuilder": requests_listed,
        "deliveryPipeline": outputs_wired,
        "accessRoles": project_found,
    }


def _apply_client_gate(modules: dict[str, dict[str, Any]], inputs: ModuleInputs) -> None:
    if inputs.role != "CLIENT" or not inputs.enforce_client_gate or inputs.status != "ACTIVE":
        return

    contracts = modules["contracts"]
    if inputs.nda_signed is False and contracts["state"] != "not_wired":
        contracts["state"], contracts["reason"] = "action", "nda_required"

    if not inputs.billing_paid:
        gate_reason = "billing_required"
    elif inputs.nda_signed is False:
        gate_reason = "nda_required"
    else:
        return

    for key in MODULE_ORDER:
        if key in ("billing", "contracts") or modules[key]["state"] == "not_wired":
            continue
        modules[key]["state"], modules[key]["reason"] = "locked", gate_reason

    if gate_reason == "billing_required" and modules["billing"]["state"] != "not_wired":
        modules["billing"]["state"], modules["billing"]["reason"] = "action", "payment_required"
    if contracts["state"] == "locked":
        contracts["state"], contracts["reason"] = "action", "nda_required"


def resolve_modules(inputs: ModuleInputs) -> dict[str, dict[str, Any]]:
    base_table = TIER_MODULE_DEFAULTS.get(inputs.tier or "")
    status_gate = None if inputs.status == "ACTIVE" else f"project_{inputs.status.lower()}"

    modules: dict[str, dict[str, Any]] = {}
    for key in MODULE_ORDER:
        base = dict(base_table[key]) if base_table else _m("locked", "tier_unknown")
        override = inputs.overrides.get(key)
        if override:
            base.update(override)
        wired = bool(inputs.wired.get(key))
        state = base["state"] if wired else "not_wired"
        reason = base.get("reason") if wired else "not_wired"

        if status_gate:
            state, reason = "locked", status_gate

        if key == "contracts" and wired and inputs.nda_signed is True and state == "action":
            state, reason = "active", "nda_signed"

        if key == "secureChannel" and wired and state == "active":
            state, reason = "pending", "e2ee_stub"

        entry: dict[str, Any] = {"state": state, "reason": reason, "wired": wired}
        if key in OPERATOR_ONLY_MODULES:
            entry["role"] = "operator_only"
        modules[key] = entry

    _apply_client_gate(modules, inputs)
    return modules
