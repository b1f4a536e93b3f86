from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from app.lucien.config import is_production
from app.lucien.constants import HANDSHAKE_MAX_BYTES, MESSAGE_MAX_BYTES
from app.lucien.errors import GatewayError
from app.lucien.modules.secure_channel.store import MODE, NOTE, get_store
from app.lucien.payloads import optional_string, parse_json_body
from app.lucien.ratelimit import HANDSHAKE_LIMIT, MESSAGES_LIMIT, RateLimitResult, check_rate_limit
from app.lucien.rbac import current_claims, require_engagement_scope, require_session
from app.lucien.utils import iso_now

bp = Blueprint("secure_channel", __name__)

MAX_PUBLIC_KEY_LENGTH = 4096
MAX_CIPHERTEXT_LENGTH = 32768
MAX_NONCE_LENGTH = 1024


def dev_only(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if is_production(current_app.config.get("ENV")):
            raise GatewayError(501, "secure_channel_disabled", "Secure channel is disabled in production.")
        return fn(*args, **kwargs)

    return wrapped


def _limited(key: str, limit: tuple[int, int], reason: str) -> RateLimitResult:
    rl = check_rate_limit(key, *limit)
    if not rl.allowed:
        raise GatewayError(429, "rate_limited", reason, headers=rl.headers())
    return rl


def _respond(payload: dict[str, Any], rl: RateLimitResult):
    resp = jsonify(payload)
    resp.headers.update(rl.headers())
    return resp


@bp.get("/engagements/<engagement_id>/secure-channel/status")
@dev_only
@require_session
def channel_status(engagement_id: str):
    require_engagement_scope(engagement_id)
    state = get_store().get_state(engagement_id)
    return jsonify(
        {
            "engagementId": engagement_id,
            "status": state["status"],
            "mode": state["mode"],
            "serverPublicKey": state["serverPublicKey"],
            "clientPublicKey": state.get("clientPublicKey"),
            "updatedAt": state["updatedAt"],
        }
    )


@bp.post("/engagements/<engagement_id>/secure-channel/handshake")
@dev_only
@require_session
def channel_handshake(engagement_id: str):
    claims = current_claims()
    rl = _limited(f"lucien:rl:secure:handshake:{claims.uid}", HANDSHAKE_LIMIT, "Too many requests.")
    try:
        require_engagement_scope(engagement_id)
        payload = parse_json_body(HANDSHAKE_MAX_BYTES)
        client_key = (payload.get("clientPublicKey") if isinstance(payload.get("clientPublicKey"), str) else "").strip()
        if not client_key:
            raise GatewayError(400, "invalid_payload", "clientPublicKey required.")
        if len(client_key) > MAX_PUBLIC_KEY_LENGTH:
            raise GatewayError(413, "payload_too_large", "clientPublicKey too large.")
    except GatewayError as e:
        e.headers = {**rl.headers(), **e.headers}
        raise

    state = get_store().update_handshake(engagement_id, client_key)
    return _respond(
        {
            "engagementId": engagement_id,
            "status": state["status"],
            "mode": state["mode"],
            "serverPublicKey": state["serverPublicKey"],
            "updatedAt": state["updatedAt"],
            "note": NOTE,
        },
        rl,
    )


@bp.get("/engagements/<engagement_id>/secure-channel/messages")
@dev_only
@require_session
def channel_messages(engagement_id: str):
    require_engagement_scope(engagement_id)
    cursor = request.args.get("cursor") or None
    limit = request.args.get("limit", default=50, type=int) or 50
    items, next_cursor = get_store().list_messages(engagement_id, cursor, limit)
    return jsonify({"engagementId": engagement_id, "items": items, "nextCursor": next_cursor, "mode": MODE, "note": NOTE})


@bp.post("/engagements/<engagement_id>/secure-channel/messages")
@dev_only
@require_session
def channel_post_message(engagement_id: str):
    claims = current_claims()
    rl = _limited(f"lucien:rl:secure:messages:{claims.uid}", MESSAGES_LIMIT, "Too many messages.")
    try:
        require_engagement_scope(engagement_id)
        payload = parse_json_body(MESSAGE_MAX_BYTES)
        ciphertext = payload.get("ciphertext")
        nonce = payload.get("nonce")
        ciphertext = ciphertext.strip() if isinstance(ciphertext, str) else ""
        nonce = nonce.strip() if isinstance(nonce, str) else ""
        if not ciphertext or not nonce:
            raise GatewayError(400, "invalid_payload", "ciphertext and nonce required.")
        if len(ciphertext) > MAX_CIPHERTEXT_LENGTH or len(nonce) > MAX_NONCE_LENGTH:
            raise GatewayError(413, "payload_too_large", "ciphertext or nonce too large.")
        sent_at = optional_string(payload, "sentAt", 64) or iso_now()
    except GatewayError as e:
        e.headers = {**rl.headers(), **e.headers}
        raise

    sender = "operator" if payload.get("sender") == "operator" else "client"
    message = get_store().append_message(engagement_id, ciphertext=ciphertext, nonce=nonce, sender=sender, sent_at=sent_at)
    return _respond(
        {"engagementId": engagement_id, "accepted": True, "id": message["id"], "sentAt": message["sentAt"], "mode": MODE},
        rl,
    )
