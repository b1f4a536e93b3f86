from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.lucien.erp import get_erp_client
from app.lucien.modules.billing.service import billing_overview, settlement
from app.lucien.modules.engagements.service import require_client_gate
from app.lucien.rbac import current_claims, require_session

bp = Blueprint("billing", __name__)


def _portal_base_url() -> str:
    return (current_app.config.get("PORTAL_BASE_URL") or request.host_url).rstrip("/")


@bp.get("/engagements/<engagement_id>/billing")
@require_session
def billing(engagement_id: str):
    payload = billing_overview(
        get_erp_client(),
        engagement_id,
        payment_template=current_app.config.get("PAYMENT_LINK_TEMPLATE"),
        return_url=f"{_portal_base_url()}/billing",
    )
    return jsonify(payload)


@bp.get("/engagements/<engagement_id>/settlement")
@require_session
def engagement_settlement(engagement_id: str):
    erp = get_erp_client()
    require_client_gate(erp, engagement_id, current_claims(), current_app.config)
    return jsonify(settlement(erp, engagement_id))
