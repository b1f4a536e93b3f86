from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from app.lucien.errors import GatewayError
from app.lucien.modules.intel.service import is_valid_request_id
from app.lucien.utils import iso_now, iso_utc, safe_text

if TYPE_CHECKING:
    from app.lucien.session import SessionClaims


def request_queue(erp, engagement_id: str) -> dict[str, Any]:
    items = [
        {
            "id": r["name"],
            "title": r.get("title"),
            "status": r.get("status"),
            "required": bool(r.get("required")),
            "visibility": r.get("visibility") or "operator_only",
            "assignedTo": "Ops Team" if r.get("required") else "Client",
        }
        for r in erp.fetch_client_requests_by_project(engagement_id)
    ]
    return {"engagementId": engagement_id, "items": items}


def accept_request(erp, engagement_id: str, request_id: str) -> dict[str, Any]:
    """Mark a Client Request accepted. Already accepted requests are left untouched."""
    if not is_valid_request_id(request_id):
        raise GatewayError(400, "invalid_request_id", "Invalid requestId.")
    client_request = erp.fetch_client_request_by_id(request_id)
    if not client_request:
        raise GatewayError(404, "request_not_found", "Request not found.")
    if client_request.get("project") != engagement_id:
        raise GatewayError(403, "forbidden", "Engagement mismatch.")
    if client_request.get("status") != "accepted":
        erp.update_client_request_status(client_request["name"], "accepted")
    return {"ok": True, "requestId": client_request["name"], "status": "accepted", "updatedAt": iso_now()}


def access_roles(engagement_id: str, claims: "SessionClaims") -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {
        "engagementId": engagement_id,
        "roles": [
            {"role": "OPERATOR", "assigned": True, "scope": "ALL", "lastReviewedAt": iso_utc(now)},
            {
                "role": "CLIENT_LEAD",
                "assigned": claims.is_client,
                "scope": claims.scope or "SCOPED",
                "lastReviewedAt": iso_utc(now - timedelta(days=1)),
            },
            {"role": "AUDITOR", "assigned": False, "scope": "READ_ONLY", "lastReviewedAt": None},
        ],
        "note": "Role bindings derive from LDAP in production; current data is simulated.",
    }


def ops_console(engagement_id: str) -> dict[str, Any]:
    # simulated telemetry until an ops feed exists in the ERP
    now = datetime.now(timezone.utc)
    return {
        "engagementId": engagement_id,
        "systemStatus": "nominal",
        "lastSyncAt": iso_utc(now),
        "metrics": [
            {"label": "Packet success", "value": "98.6 %", "trend": "minor_up"},
            {"label": "Latency", "value": "320 ms", "trend": "steady"},
            {"label": "Ops backlog", "value": "3 items", "trend": "minor_down"},
        ],
        "alerts": [
            {
                "id": "alert-001",
                "level": "info",
                "message": "Telemetry stream operational.",
                "raisedAt": iso_utc(now - timedelta(minutes=5)),
            },
            {
                "id": "alert-002",
                "level": "warning",
                "message": "Storage retention approaching limit.",
                "raisedAt": iso_utc(now - timedelta(hours=2)),
            },
        ],
    }


def _stage_status(value: Any) -> str:
    text = safe_text(value).lower()
    if "accepted" in text or "delivered" in text:
        return "complete"
    if "progress" in text:
        return "in_progress"
    return "pending"


def delivery_pipeline(erp, engagement_id: str) -> dict[str, Any]:
    outputs = erp.fetch_outputs_by_project(engagement_id) or []
    now = iso_now()
    if outputs:
        stages = [
            {
                "id": o["name"],
                "label": o.get("title") or f"Deliverable {i + 1}",
                "status": _stage_status(o.get("status")),
                "owner": "operator" if i % 2 == 0 else "client",
                "updatedAt": o.get("modified") or now,
            }
            for i, o in enumerate(outputs)
        ]
    else:
        stages = [
            {"id": "planning", "label": "Delivery planning", "status": "in_progress", "owner": "operator", "updatedAt": now},
            {"id": "handover", "label": "Client handover", "status": "pending", "owner": "client", "updatedAt": now},
        ]
    return {
        "engagementId": engagement_id,
        "stages": stages,
        "note": "Statuses reflect deliverables from ERP when wired, otherwise the default pipeline is in flight.",
    }
