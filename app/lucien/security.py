from __future__ import annotations

import re
import uuid

from flask import Flask, Response, current_app, g, request

from app.lucien.audit import security_event
from app.lucien.errors import json_error
from app.lucien.ratelimit import check_rate_limit
from app.lucien.session import SESSION_COOKIE, verify_session_token

EXEMPT_PATHS = frozenset(
    {
        "/api/auth/login",
        "/api/auth/logout",
        "/api/health",
        "/api/dev/login",
        "/api/auth/invite",
        "/api/auth/invite/accept",
    }
)
SESSION_OPTIONAL_PATHS = frozenset({"/api/auth/me"})
_ENGAGEMENT_PATH = re.compile(r"^/api/engagements/([^/]+)")


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For") or ""
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    return real_ip or "0.0.0.0"


def engagement_id_from_path(path: str) -> str | None:
    m = _ENGAGEMENT_PATH.match(path)
    return m.group(1) if m else None


def assign_request_id() -> None:
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex


def api_guard():
    """
    Gate every /api request: global per-IP limit, session cookie, engagement scope.
    Returns a response to short-circuit, or None to continue.
    """
    g.session_claims = None
    if not request.path.startswith("/api/") or request.path in EXEMPT_PATHS:
        return None

    ip = client_ip()
    limit = int(current_app.config.get("LUCIEN_GLOBAL_IP_RATE_LIMIT") or 120)
    window = int(current_app.config.get("LUCIEN_GLOBAL_IP_RATE_WINDOW") or 60)
    rl = check_rate_limit(f"lucien:rl:global:ip:{ip}", limit, window)
    if not rl.allowed:
        security_event("rate_limit", ip=ip, key="global_ip", count=rl.count, limit=rl.limit)
        return json_error(429, "rate_limited", "Too many requests.", rl.headers())

    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        if request.path in SESSION_OPTIONAL_PATHS:
            return None
        security_event("session_missing", ip=ip)
        return json_error(401, "session_missing", f"Missing {SESSION_COOKIE} cookie.")

    claims = verify_session_token(token)
    if claims is None:
        security_event("session_invalid", ip=ip)
        return json_error(401, "session_invalid", "Session invalid or expired.")

    engagement_id = engagement_id_from_path(request.path)
    if engagement_id and claims.is_client and not claims.can_access(engagement_id):
        security_event("forbidden", ip=ip, uid=claims.uid, role=claims.role, engagementId=engagement_id)
        return json_error(403, "forbidden", "Engagement access denied.")

    if claims.is_operator and claims.has_all_scope:
        security_event("operator_bypass_used", ip=ip, uid=claims.uid, engagementId=engagement_id)

    g.session_claims = claims
    g.session_scope = claims.scope
    return None


def apply_api_headers(resp: Response) -> Response:
    if request.path.startswith("/api/") or request.path == "/api":
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["X-Content-Type-Options"] = "nosniff"
    return resp


def init_security(app: Flask) -> None:
    app.before_request(assign_request_id)
    app.before_request(api_guard)
    app.after_request(apply_api_headers)
