from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.lucien.erp import get_erp_client
from app.lucien.modules.deliverables.service import list_contracts, list_outputs
from app.lucien.modules.engagements.service import require_client_gate
from app.lucien.rbac import current_claims, require_session

bp = Blueprint("deliverables", __name__)


@bp.get("/engagements/<engagement_id>/outputs")
@require_session
def outputs(engagement_id: str):
    erp = get_erp_client()
    require_client_gate(erp, engagement_id, current_claims(), current_app.config)
    return jsonify(list_outputs(erp, engagement_id))


@bp.get("/engagements/<engagement_id>/contracts")
@require_session
def contracts(engagement_id: str):
    return jsonify(list_contracts(get_erp_client(), engagement_id))
