from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.lucien.constants import MAX_UPLOAD_BYTES
from app.lucien.erp import get_erp_client
from app.lucien.errors import GatewayError
from app.lucien.modules.engagements.service import require_client_gate
from app.lucien.modules.intel.service import is_valid_request_id, list_intel, upload_intel_file
from app.lucien.payloads import request_content_length
from app.lucien.ratelimit import UPLOAD_LIMIT, check_rate_limit
from app.lucien.rbac import current_claims, require_session

bp = Blueprint("intel", __name__)


@bp.get("/engagements/<engagement_id>/intel")
@require_session
def intel_list(engagement_id: str):
    claims = current_claims()
    erp = get_erp_client()
    require_client_gate(erp, engagement_id, claims, current_app.config)
    return jsonify(list_intel(erp, engagement_id, claims))


@bp.post("/engagements/<engagement_id>/intel/upload")
@require_session
def intel_upload(engagement_id: str):
    claims = current_claims()
    limit, window = UPLOAD_LIMIT
    rl = check_rate_limit(f"lucien:rl:uid:{claims.uid}", limit, window)
    headers = rl.headers()
    if not rl.allowed:
        raise GatewayError(429, "rate_limited", "Too many uploads.", headers=headers)

    erp = get_erp_client()
    try:
        require_client_gate(erp, engagement_id, claims, current_app.config)

        if "multipart/form-data" not in (request.headers.get("Content-Type") or "").lower():
            raise GatewayError(400, "invalid_content_type", "Expected multipart/form-data.")
        length = request_content_length()
        if length is None or length <= 0:
            raise GatewayError(411, "length_required", "Content-Length required.")
        if length > MAX_UPLOAD_BYTES:
            raise GatewayError(413, "payload_too_large", "Upload exceeds 50MB.")

        file = request.files.get("file")
        if file is None or not file.filename:
            raise GatewayError(400, "invalid_file", "File is required.")
        request_id = request.form.get("requestId")
        if not is_valid_request_id(request_id):
            raise GatewayError(400, "invalid_request_id", "Invalid requestId.")

        result = upload_intel_file(erp, engagement_id, claims, file=file, request_id=request_id)
    except GatewayError as e:
        e.headers = {**headers, **e.headers}
        raise

    current_app.logger.info(
        "intel upload accepted request_id=%s upload_id=%s uid=%s", result["requestId"], result["uploadId"], claims.uid
    )
    resp = jsonify(result)
    resp.headers.update(headers)
    return resp
