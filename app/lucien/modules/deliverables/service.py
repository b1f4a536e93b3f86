from __future__ import annotations

from typing import Any

from app.lucien.modules.engagements.resolver import (
    CONTRACT_LABELS,
    CONTRACT_ORDER,
    map_contract_status,
    map_contract_type,
)
from app.lucien.utils import safe_text, to_timestamp


def map_output_status(value: Any) -> str:
    text = safe_text(value).lower()
    if "accepted" in text:
        return "accepted"
    if "delivered" in text or "complete" in text:
        return "delivered"
    if "progress" in text or "working" in text:
        return "in_progress"
    return "pending"


def list_outputs(erp, engagement_id: str) -> dict[str, Any]:
    records = erp.fetch_outputs_by_project(engagement_id)
    if records is None:
        return {"engagementId": engagement_id, "wired": False, "message": "Outputs doctype not wired.", "items": []}

    items = [
        {
            "id": r["name"],
            "title": r.get("title") or r["name"],
            "category": r.get("category") or "output",
            "status": map_output_status(r.get("status")),
            "updatedAt": r.get("modified") or None,
            "attachments": [],
        }
        for r in records
    ]
    items.sort(key=lambda i: i["id"])
    items.sort(key=lambda i: to_timestamp(i["updatedAt"]), reverse=True)
    return {"engagementId": engagement_id, "wired": True, "items": items}


def list_contracts(erp, engagement_id: str) -> dict[str, Any]:
    """
    One row per contract type in fixed order, built from the most recently
    modified ERP record of that type.
    """
    records = erp.fetch_contracts_by_project(engagement_id)
    if records is None:
        items = [
            {"type": t, "label": CONTRACT_LABELS[t], "status": "not_wired", "updatedAt": None, "attachments": []}
            for t in CONTRACT_ORDER
        ]
        return {"engagementId": engagement_id, "wired": False, "items": items}

    latest: dict[str, dict[str, Any]] = {}
    for r in records:
        ctype = map_contract_type(r.get("contract_type") or r.get("name"))
        if not ctype:
            continue
        current = latest.get(ctype)
        if current is None or to_timestamp(r.get("modified")) > to_timestamp(current.get("modified")):
            latest[ctype] = r

    items = []
    for ctype in CONTRACT_ORDER:
        r = latest.get(ctype)
        items.append(
            {
                "type": ctype,
                "label": CONTRACT_LABELS[ctype],
                "status": map_contract_status(r.get("status")) if r else "pending",
                "updatedAt": (r.get("modified") or None) if r else None,
                "attachments": [],
            }
        )
    return {"engagementId": engagement_id, "wired": True, "items": items}
