"""
Intake templates referenced by ERP Client Requests through `template_key`.
"""
from __future__ import annotations

from typing import Any

CLIENT_VISIBLE = "client_visible"
OPERATOR_ONLY = "operator_only"


def _field(fid: str, key: str, label: str, ftype: str, *, required: bool = False, visibility: str = CLIENT_VISIBLE, options: list[tuple[str, str]] | None = None) -> dict[str, Any]:
    f: dict[str, Any] = {
        "id": fid,
        "key": key,
        "label": label,
        "type": ftype,
        "required": required,
        "visibility": visibility,
    }
    if options:
        f["options"] = [{"label": label, "value": value} for label, value in options]
    return f


INTEL_TEMPLATES: dict[str, dict[str, Any]] = {
    "diag_intake_core_v1": {
        "key": "diag_intake_core_v1",
        "name": "Diagnostic Intake Core",
        "version": 1,
        "description": "Primary diagnostic intake fields.",
        "fields": [
            _field("field-symptoms", "symptoms", "Symptoms summary", "textarea", required=True),
            _field("field-started-at", "started_at", "Started at", "date"),
            _field(
                "field-severity",
                "severity",
                "Severity",
                "select",
                required=True,
                options=[("Low", "low"), ("Medium", "medium"), ("High", "high")],
            ),
            _field("field-context", "context", "Context", "textarea", visibility=OPERATOR_ONLY),
        ],
    },
    "diag_evidence_upload_v1": {
        "key": "diag_evidence_upload_v1",
        "name": "Diagnostic Evidence Upload",
        "version": 1,
        "description": "Evidence collection fields for diagnostics.",
        "fields": [
            _field("field-evidence", "evidence_files", "Evidence files", "file", required=True),
            _field("field-evidence-notes", "evidence_notes", "Evidence notes", "textarea"),
            _field("field-internal-review", "internal_review", "Internal review notes", "textarea", visibility=OPERATOR_ONLY),
        ],
    },
    "sov_ops_access_authority_v1": {
        "key": "sov_ops_access_authority_v1",
        "name": "Sovereign Ops Access Authority",
        "version": 1,
        "description": "Access authority request and approval fields.",
        "fields": [
            _field(
                "field-access-level",
                "access_level",
                "Requested access level",
                "select",
                required=True,
                options=[("Tier 1", "tier_1"), ("Tier 2", "tier_2"), ("Tier 3", "tier_3")],
            ),
            _field("field-justification", "justification", "Justification", "textarea", required=True),
            _field("field-approver", "approver", "Approver", "text", visibility=OPERATOR_ONLY),
            _field("field-approval-notes", "approval_notes", "Approval notes", "textarea", visibility=OPERATOR_ONLY),
        ],
    },
}


def template_fields(template_key: str | None, role: str) -> list[dict[str, Any]]:
    """Template fields for a role; clients never see operator-only fields."""
    template = INTEL_TEMPLATES.get(template_key or "")
    if not template:
        return []
    fields = template["fields"]
    if role != "CLIENT":
        return [dict(f) for f in fields]
    return [dict(f) for f in fields if not f.get("visibility") or f["visibility"] == CLIENT_VISIBLE]
