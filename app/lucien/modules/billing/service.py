from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from app.lucien.errors import GatewayError
from app.lucien.utils import parse_date, to_number


def invoice_status(outstanding: float, due_date: Any, today=None) -> str:
    if outstanding <= 0:
        return "paid"
    due = parse_date(due_date)
    if due is None:
        return "unpaid"
    today = today or datetime.now(timezone.utc).date()
    return "overdue" if due < today else "unpaid"


def build_payment_link(template: str | None, *, invoice_id: str, engagement_id: str, return_url: str) -> str | None:
    """Fill `{invoiceId}`, `{engagementId}` and `{returnUrl}` in the configured payment link."""
    if not template:
        return None
    return (
        template.replace("{invoiceId}", quote(invoice_id, safe=""))
        .replace("{engagementId}", quote(engagement_id, safe=""))
        .replace("{returnUrl}", quote(return_url, safe=""))
    )


def billing_overview(erp, engagement_id: str, *, payment_template: str | None, return_url: str) -> dict[str, Any]:
    invoices = erp.fetch_invoices_by_project(engagement_id)
    if invoices is None:
        return {"engagementId": engagement_id, "outstandingTotal": 0, "paymentUrl": None, "invoices": [], "note": "Billing doctype not wired."}

    items = []
    for inv in invoices:
        outstanding = to_number(inv.get("outstanding_amount"))
        items.append(
            {
                "id": inv["name"],
                "amount": inv.get("grand_total"),
                "currency": inv.get("currency"),
                "dueDate": inv.get("due_date") or None,
                "status": invoice_status(outstanding, inv.get("due_date")),
                "outstanding": outstanding,
                "issuedAt": inv.get("posting_date") or None,
                "paymentUrl": inv.get("payment_url")
                or build_payment_link(payment_template, invoice_id=inv["name"], engagement_id=engagement_id, return_url=return_url),
            }
        )
    primary = next((i["paymentUrl"] for i in items if i["status"] != "paid"), None)
    return {
        "engagementId": engagement_id,
        "outstandingTotal": sum(i["outstanding"] for i in items),
        "paymentUrl": primary,
        "invoices": items,
        "note": "Invoices reflect ERP Sales Invoice entries.",
    }


def settlement(erp, engagement_id: str) -> dict[str, Any]:
    latest = erp.fetch_latest_invoice(engagement_id)
    if not latest:
        raise GatewayError(403, "invoice_not_found", "Invoice not found.")
    outstanding = to_number(latest.get("outstanding_amount"))
    amount = latest.get("grand_total")
    return {
        "id": engagement_id,
        "deliverableId": latest["name"],
        "amount": amount if amount is not None else outstanding,
        "currency": latest.get("currency") or "USD",
        "status": invoice_status(outstanding, latest.get("due_date")),
        "settledAt": latest.get("posting_date") or None,
    }
