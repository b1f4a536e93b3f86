from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from app.lucien.errors import GatewayError
from app.lucien.modules.engagements.resolver import (
    ModuleInputs,
    is_billing_paid,
    is_nda_signed,
    map_engagement_status,
    read_module_overrides,
    resolve_modules,
    resolve_tier,
    wired_modules,
)
from app.lucien.utils import iso_now, iso_utc, parse_date

if TYPE_CHECKING:
    from app.lucien.session import SessionClaims


def project_start_date(project: dict[str, Any]) -> str | None:
    return project.get("actual_start_date") or project.get("expected_start_date") or None


def list_engagements(erp, claims: "SessionClaims") -> list[dict[str, Any]]:
    if claims.is_client and not claims.has_all_scope and not claims.engagement_ids:
        raise GatewayError(403, "forbidden", "No engagements available.")

    if claims.has_all_scope:
        items = [
            {
                "id": p.get("name"),
                "label": p.get("project_name") or p.get("name"),
                "status": p.get("status") or None,
                "startDate": project_start_date(p),
            }
            for p in erp.fetch_projects()
        ]
    else:
        items = [{"id": eid, "label": eid, "status": None, "startDate": None} for eid in claims.engagement_ids]
    return sorted(items, key=lambda i: str(i["id"] or ""))


def build_summary(erp, engagement_id: str, claims: "SessionClaims", config) -> dict[str, Any]:
    """
    Gather the ERP facts the resolver needs and compute the module matrix.
    """
    project = erp.fetch_project_by_id(engagement_id)
    if not project:
        raise GatewayError(404, "project_not_found", "Engagement not found.")

    tier = resolve_tier(project.get(config.get("LUCIEN_TIER_FIELD") or ""), config.get("LUCIEN_TIER_SCHEME") or "blueprint")
    status = map_engagement_status(project.get("status"))
    overrides = read_module_overrides(project) if erp.data_mode == "mock" else {}

    client_requests = erp.fetch_client_requests_by_project(engagement_id)
    contracts = erp.fetch_contracts_by_project(engagement_id)
    outputs = erp.fetch_outputs_by_project(engagement_id)
    invoices = erp.fetch_invoices_by_project(engagement_id)
    latest_invoice = erp.fetch_latest_invoice(engagement_id)

    wired = wired_modules(
        project_found=True,
        requests_listed=isinstance(client_requests, list),
        contracts_wired=contracts is not None,
        outputs_wired=outputs is not None,
        invoices_wired=invoices is not None,
        latest_invoice_found=latest_invoice is not None,
    )
    modules = resolve_modules(
        ModuleInputs(
            status=status,
            tier=tier,
            wired=wired,
            overrides=overrides,
            nda_signed=is_nda_signed(contracts),
            billing_paid=is_billing_paid(latest_invoice),
            role=claims.role,
            enforce_client_gate=bool(config.get("LUCIEN_ENFORCE_CLIENT_GATE")),
        )
    )
    return {
        "id": engagement_id,
        "status": status,
        "tier": tier,
        "startDate": project_start_date(project),
        "modules": modules,
    }


def require_client_gate(erp, engagement_id: str, claims: "SessionClaims", config) -> None:
    """
    Clients only reach delivery data once the latest invoice is settled and the NDA is signed.
    """
    if not claims.is_client or not config.get("LUCIEN_ENFORCE_CLIENT_GATE"):
        return
    if not is_billing_paid(erp.fetch_latest_invoice(engagement_id)):
        raise GatewayError(402, "payment_required", "Billing required before access.")
    if not is_nda_signed(erp.fetch_contracts_by_project(engagement_id)):
        raise GatewayError(403, "nda_required", "NDA must be signed before access.")


# ---------- Protocol ----------
def _end_of_month(d: date) -> datetime:
    last_day = calendar.monthrange(d.year, d.month)[1]
    return datetime(d.year, d.month, last_day, tzinfo=timezone.utc)


def build_timeline(start_date: str | None) -> list[dict[str, Any]]:
    baseline = parse_date(start_date) or datetime.now(timezone.utc).date()
    month1 = _end_of_month(baseline)
    month2 = _end_of_month(month1.date() + timedelta(days=1))
    month3 = _end_of_month(month2.date() + timedelta(days=1))
    return [
        {"id": "kickoff", "label": "Stabilization month 1", "status": "complete", "dueDate": iso_utc(month1), "owner": "operator"},
        {"id": "design", "label": "Stabilization month 2", "status": "in_progress", "dueDate": iso_utc(month2), "owner": "operator"},
        {"id": "handover", "label": "Stabilization month 3", "status": "pending", "dueDate": iso_utc(month3), "owner": "client"},
    ]


def build_protocol(engagement_id: str, project: dict[str, Any]) -> dict[str, Any]:
    timeline = build_timeline(project_start_date(project))
    go_live = datetime.fromisoformat(timeline[2]["dueDate"].replace("Z", "+00:00")) + timedelta(days=7)
    tasks = [
        {"id": "spec", "label": "Finalize protocol spec", "status": "in_progress", "owner": "operator", "eta": timeline[1]["dueDate"]},
        {"id": "review", "label": "Client review & approval", "status": "pending", "owner": "client", "eta": timeline[2]["dueDate"]},
        {"id": "go_live", "label": "Operational go-live", "status": "pending", "owner": "operator", "eta": iso_utc(go_live)},
    ]
    return {
        "engagementId": engagement_id,
        "phase": "Protocol Integration",
        "status": "in_progress",
        "timeline": timeline,
        "tasks": tasks,
        "note": "Live telemetry will appear once design artifacts are signed off.",
    }


# ---------- Directives ----------
def acknowledge_directive(erp, directive_id: str, claims: "SessionClaims") -> dict[str, Any]:
    if claims.is_operator:
        return {"success": True, "signal": "OPERATOR_BYPASS"}

    directive = erp.fetch_directive_by_id(directive_id)
    if not directive:
        raise GatewayError(403, "directive_not_found", "Directive not found.")
    if claims.is_client and not claims.can_access(directive.get("project") or ""):
        raise GatewayError(403, "forbidden", "Directive access denied.")
    if directive.get("ack_at"):
        return {"success": True, "signal": "ALREADY_ACKED"}

    erp.update_directive_ack(directive["name"], ack_by=claims.uid, ack_at=iso_now())
    return {"success": True, "signal": "ACKED"}
