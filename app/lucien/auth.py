from __future__ import annotations

from urllib.parse import quote, urljoin

from flask import Blueprint, current_app, g, jsonify, redirect, request

from app.lucien.audit import record_event
from app.lucien.auth_store import (
    consume_invite_token,
    create_invite,
    default_vis,
    get_user,
    normalize_email,
    normalize_engagement_ids,
    touch_last_login,
    verify_user_credentials,
)
from app.lucien.config import is_production
from app.lucien.constants import (
    DEV_LOGIN_EMAIL,
    DEV_LOGIN_ENGAGEMENTS,
    ENGAGEMENT_ALL,
    INVITE_ACCEPT_MAX_BYTES,
    INVITE_MAX_BYTES,
    INVITE_TYPES,
    LOGIN_MAX_BYTES,
    RESERVED_ENGAGEMENT_IDS,
    ROLE_OPERATOR,
    VALID_ROLES,
)
from app.lucien.db import db_session
from app.lucien.erp import get_erp_client
from app.lucien.errors import GatewayError
from app.lucien.mailer import InviteEmail, send_invite_email
from app.lucien.models import User
from app.lucien.payloads import parse_json_body
from app.lucien.session import (
    SESSION_COOKIE,
    clear_session_cookie,
    issue_session_token,
    set_session_cookie,
    verify_session_token,
)
from app.lucien.utils import iso_utc

bp = Blueprint("auth", __name__)

MAX_EMAIL_LENGTH = 254
MAX_PASSWORD_LENGTH = 256


def _session_for(user: User) -> str:
    return issue_session_token(uid=user.email, role=user.role, engagement_ids=list(user.engagement_ids or []), vis=user.vis)


def authenticate_user(s, email: str, password: str) -> User | None:
    if current_app.config.get("AUTH_MODE") == "erp":
        if not get_erp_client().verify_login(normalize_email(email), password):
            return None
        user = get_user(s, email)
        return user if user and user.is_active else None
    return verify_user_credentials(s, email, password)


@bp.post("/auth/login")
def login():
    payload = parse_json_body(LOGIN_MAX_BYTES)
    email = payload.get("email")
    password = payload.get("password")
    email = email.strip() if isinstance(email, str) else ""
    password = password if isinstance(password, str) else ""
    if not email or not password:
        raise GatewayError(400, "invalid_payload", "Email and password required.")
    if len(email) > MAX_EMAIL_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
        raise GatewayError(400, "invalid_payload", "Invalid credentials payload.")

    s = db_session()
    user = authenticate_user(s, email, password)
    if user is None:
        record_event(
            s,
            actor=None,
            actor_email=normalize_email(email),
            action="auth.login_failed",
            entity_type="User",
            entity_id=normalize_email(email),
            reason="Invalid credentials",
        )
        s.commit()
        raise GatewayError(401, "invalid_credentials", "Invalid credentials.")

    touch_last_login(user)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    s.commit()

    resp = jsonify(
        {
            "ok": True,
            "role": user.role,
            "engagementIds": list(user.engagement_ids or []),
            "user": {"email": user.email, "name": user.name},
        }
    )
    return set_session_cookie(resp, _session_for(user))


@bp.post("/auth/logout")
def logout():
    token = request.cookies.get(SESSION_COOKIE)
    claims = verify_session_token(token) if token else None
    if claims is not None:
        s = db_session()
        record_event(s, actor=None, actor_email=claims.uid, action="auth.logout", entity_type="User", entity_id=claims.uid)
        s.commit()
    return clear_session_cookie(jsonify({"ok": True}))


@bp.get("/auth/me")
def me():
    claims = getattr(g, "session_claims", None)
    if claims is None:
        raise GatewayError(401, "unauthenticated", "Session required.")
    return jsonify(
        {
            "uid": claims.uid,
            "role": claims.role,
            "engagementIds": [] if claims.has_all_scope else sorted(claims.engagement_ids),
            "scope": "ALL" if claims.has_all_scope else "SCOPED",
            "visibility": claims.vis,
            "jti": claims.jti,
            "user": {"email": claims.uid},
        }
    )


def _require_invite_secret() -> None:
    secret = current_app.config.get("INVITE_API_SECRET") or ""
    if not secret:
        raise GatewayError(500, "invite_secret_missing", "Invite secret not configured.")
    if request.headers.get("x-invite-secret") != secret:
        raise GatewayError(403, "forbidden", "Invalid invite secret.")


@bp.post("/auth/invite")
def invite():
    """
    Machine-to-machine invite endpoint guarded by the shared invite secret.
    """
    _require_invite_secret()
    payload = parse_json_body(INVITE_MAX_BYTES)

    raw_email = payload.get("email")
    email = normalize_email(raw_email if isinstance(raw_email, str) else "")
    if not email or len(email) > MAX_EMAIL_LENGTH:
        raise GatewayError(400, "invalid_payload", "Valid email required.")

    raw_role = payload.get("role")
    role = raw_role.strip().upper() if isinstance(raw_role, str) and raw_role.strip() else "CLIENT"
    if role not in VALID_ROLES:
        raise GatewayError(400, "invalid_payload", "Invalid role.")

    engagement_ids = normalize_engagement_ids(payload.get("engagementIds"))
    if not engagement_ids:
        raise GatewayError(400, "invalid_payload", "engagementIds required.")
    invalid = [eid for eid in engagement_ids if eid not in RESERVED_ENGAGEMENT_IDS]
    if invalid:
        raise GatewayError(400, "invalid_payload", f"Invalid engagementIds: {', '.join(invalid)}")

    invite_type = payload.get("type") or "magic"
    if invite_type not in INVITE_TYPES:
        raise GatewayError(400, "invalid_payload", "Invalid invite type.")

    base_url = ""
    for candidate in (payload.get("inviteBaseUrl"), current_app.config.get("INVITE_BASE_URL"), current_app.config.get("PORTAL_BASE_URL")):
        if isinstance(candidate, str) and candidate.strip():
            base_url = candidate.strip()
            break
    if invite_type == "magic" and not base_url:
        raise GatewayError(500, "invite_base_url_missing", "Invite base URL missing.")

    name = payload.get("name") if isinstance(payload.get("name"), str) else None
    s = db_session()
    created = create_invite(
        s,
        email=email,
        role=role,
        engagement_ids=engagement_ids,
        name=name,
        vis=default_vis(role, payload.get("vis")),
        invite_type=invite_type,
        expires_in_hours=payload.get("expiresInHours", current_app.config.get("INVITE_TTL_HOURS")),
        created_by="invite_api",
    )
    record_event(
        s,
        actor=None,
        actor_email="invite_api",
        action="auth.invite_created",
        entity_type="Invite",
        entity_id=created.invite.id,
        metadata={"email": email, "role": role, "type": invite_type, "engagementIds": engagement_ids},
    )
    s.commit()

    invite_link = None
    if invite_type == "magic":
        invite_link = urljoin(base_url, f"/invite?token={quote(created.token, safe='')}")

    expires_at = iso_utc(created.invite.expires_at)
    email_sent = False
    if payload.get("sendEmail") is not False:
        email_sent = send_invite_email(
            current_app.config,
            InviteEmail(
                to=email,
                role=role,
                engagement_ids=engagement_ids,
                expires_at=expires_at,
                invite_link=invite_link,
                temporary_password=created.temp_password,
            ),
        )

    body = {
        "ok": True,
        "inviteId": created.invite.id,
        "email": email,
        "type": invite_type,
        "expiresAt": expires_at,
        "inviteLink": invite_link,
        "emailSent": email_sent,
    }
    if created.temp_password and not email_sent:
        body["temporaryPassword"] = created.temp_password
    current_app.logger.info("invite created invite_id=%s type=%s email_sent=%s", created.invite.id, invite_type, email_sent)
    return jsonify(body)


def _accept(token: str) -> User | None:
    s = db_session()
    user = consume_invite_token(s, token)
    if user is None:
        return None
    record_event(s, actor=user, action="auth.invite_accepted", entity_type="User", entity_id=user.id)
    s.commit()
    return user


@bp.post("/auth/invite/accept")
def invite_accept():
    payload = parse_json_body(INVITE_ACCEPT_MAX_BYTES)
    token = payload.get("token")
    token = token.strip() if isinstance(token, str) else ""
    if not token:
        raise GatewayError(400, "invalid_payload", "Invite token required.")

    user = _accept(token)
    if user is None:
        raise GatewayError(401, "invalid_invite", "Invite token invalid or expired.")

    resp = jsonify(
        {
            "ok": True,
            "user": {
                "email": user.email,
                "name": user.name,
                "role": user.role,
                "engagementIds": list(user.engagement_ids or []),
            },
        }
    )
    return set_session_cookie(resp, _session_for(user))


@bp.get("/auth/invite/accept")
def invite_accept_link():
    token = (request.args.get("token") or "").strip()
    user = _accept(token) if token else None
    if user is None:
        return redirect("/login")
    return set_session_cookie(redirect("/"), _session_for(user))


@bp.get("/dev/login")
def dev_login():
    if is_production(current_app.config.get("ENV")):
        raise GatewayError(403, "dev_login_disabled", "Dev login disabled.")
    token = issue_session_token(uid=DEV_LOGIN_EMAIL, role=ROLE_OPERATOR, engagement_ids=list(DEV_LOGIN_ENGAGEMENTS), vis=ENGAGEMENT_ALL)
    resp = jsonify({"success": True, "role": ROLE_OPERATOR, "engagementIds": list(DEV_LOGIN_ENGAGEMENTS)})
    return set_session_cookie(resp, token)


@bp.get("/health")
def api_health():
    return jsonify({"ok": True})
