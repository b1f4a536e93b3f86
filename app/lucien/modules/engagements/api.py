from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.lucien.erp import get_erp_client
from app.lucien.errors import GatewayError
from app.lucien.modules.engagements.service import (
    acknowledge_directive,
    build_protocol,
    build_summary,
    list_engagements,
    require_client_gate,
)
from app.lucien.ratelimit import MUTATION_LIMIT, check_rate_limit
from app.lucien.rbac import current_claims, require_engagement_scope, require_session

bp = Blueprint("engagements", __name__)


@bp.get("/engagements")
@require_session
def engagements_list():
    items = list_engagements(get_erp_client(), current_claims())
    return jsonify({"items": items})


@bp.get("/engagements/<engagement_id>/summary")
@require_session
def engagement_summary(engagement_id: str):
    claims = require_engagement_scope(engagement_id)
    return jsonify(build_summary(get_erp_client(), engagement_id, claims, current_app.config))


@bp.get("/engagements/<engagement_id>/protocol")
@require_session
def engagement_protocol(engagement_id: str):
    erp = get_erp_client()
    require_client_gate(erp, engagement_id, current_claims(), current_app.config)
    project = erp.fetch_project_by_id(engagement_id)
    if not project:
        raise GatewayError(404, "project_not_found", "Engagement not found.")
    return jsonify(build_protocol(engagement_id, project))


@bp.post("/directives/<directive_id>/ack")
@require_session
def directive_ack(directive_id: str):
    claims = current_claims()
    limit, window = MUTATION_LIMIT
    rl = check_rate_limit(f"lucien:rl:mutation:uid:{claims.uid}", limit, window)
    if not rl.allowed:
        raise GatewayError(429, "rate_limited", "Too many mutation requests.", headers=rl.headers())
    resp = jsonify(acknowledge_directive(get_erp_client(), directive_id, claims))
    resp.headers.update(rl.headers())
    return resp
