from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.lucien.erp import get_erp_client
from app.lucien.modules.ops.service import access_roles, accept_request, delivery_pipeline, ops_console, request_queue
from app.lucien.rbac import current_claims, require_operator

bp = Blueprint("ops", __name__)


@bp.get("/engagements/<engagement_id>/ops/requests")
@require_operator
def ops_requests(engagement_id: str):
    return jsonify(request_queue(get_erp_client(), engagement_id))


@bp.post("/engagements/<engagement_id>/ops/requests/<request_id>/accept")
@require_operator
def ops_accept_request(engagement_id: str, request_id: str):
    result = accept_request(get_erp_client(), engagement_id, request_id)
    current_app.logger.info("client request accepted request_id=%s uid=%s", request_id, current_claims().uid)
    return jsonify(result)


@bp.get("/engagements/<engagement_id>/ops/access")
@require_operator
def ops_access(engagement_id: str):
    return jsonify(access_roles(engagement_id, current_claims()))


@bp.get("/engagements/<engagement_id>/ops/console")
@require_operator
def ops_console_view(engagement_id: str):
    return jsonify(ops_console(engagement_id))


@bp.get("/engagements/<engagement_id>/ops/delivery")
@require_operator
def ops_delivery(engagement_id: str):
    return jsonify(delivery_pipeline(get_erp_client(), engagement_id))
