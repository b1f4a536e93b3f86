"""
Server-rendered client portal: login, invite acceptance, dashboard and module pages.

Navigation is driven by the same module matrix the /api summary serves; clients only
see modules that are reachable for them, operators see everything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from app.lucien.audit import record_event
from app.lucien.auth import authenticate_user
from app.lucien.auth_store import normalize_email, touch_last_login
from app.lucien.db import db_session
from app.lucien.erp import ERPClientError, get_erp_client
from app.lucien.errors import GatewayError
from app.lucien.modules.engagements.resolver import OPERATOR_ONLY_MODULES
from app.lucien.modules.engagements.service import build_summary, list_engagements
from app.lucien.session import SESSION_COOKIE, SessionClaims, clear_session_cookie, issue_session_token, set_session_cookie, verify_session_token

bp = Blueprint("portal", __name__)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavItem:
    label: str
    slug: str  # "" is the dashboard
    module_key: str | None
    fallback_state: str


@dataclass(frozen=True)
class NavGroup:
    title: str
    items: tuple[NavItem, ...]


CLIENT_NAV: tuple[NavGroup, ...] = (
    NavGroup("OVERVIEW", (NavItem("OVERVIEW", "", None, "active"),)),
    NavGroup("INPUTS", (NavItem("INTEL INTAKE", "intel", "intel", "active"),)),
    NavGroup(
        "DELIVERY",
        (
            NavItem("PROTOCOL", "protocol", "protocol", "locked"),
            NavItem("OUTPUTS", "outputs", "outputs", "locked"),
        ),
    ),
    NavGroup("COMMS", (NavItem("SECURE CHANNEL", "secure-channel", "secureChannel", "locked"),)),
    NavGroup("LEGAL", (NavItem("CONTRACTS", "contracts", "contracts", "action"),)),
    NavGroup("BILLING", (NavItem("BILLING", "billing", "billing", "locked"),)),
    NavGroup("CLOSE", (NavItem("SETTLEMENT", "settlement", "settlement", "locked"),)),
)

OPERATOR_NAV: tuple[NavGroup, ...] = CLIENT_NAV + (
    NavGroup(
        "OPS",
        (
            NavItem("OPS CONSOLE", "ops", "opsConsole", "locked"),
            NavItem("REQUEST BUILDER", "ops/requests", "requestBuilder", "locked"),
        ),
    ),
    NavGroup("DELIVERY OPS", (NavItem("DELIVERY PIPELINE", "ops/delivery", "deliveryPipeline", "locked"),)),
    NavGroup("ADMIN", (NavItem("ACCESS & ROLES", "ops/access", "accessRoles", "locked"),)),
)

MODULE_PAGES: dict[str, NavItem] = {item.slug: item for group in OPERATOR_NAV for item in group.items if item.slug}

STATE_LABELS = {
    "active": "ACTIVE",
    "pending": "PENDING",
    "locked": "LOCKED",
    "action": "ACTION",
    "not_wired": "NOT WIRED",
}

HIDDEN_CLIENT_STATES = frozenset({"locked", "not_wired"})


def placeholder_message(state: str) -> str:
    if state == "locked":
        return "NOT PROVISIONED FOR CURRENT TIER"
    if state == "not_wired":
        return "NOT WIRED: BACKEND PENDING"
    return "MODULE WIRED: BACKEND PENDING"


def module_state(summary: dict[str, Any] | None, item: NavItem) -> str:
    if item.module_key is None:
        return item.fallback_state
    if not summary:
        return item.fallback_state
    entry = summary.get("modules", {}).get(item.module_key)
    return entry["state"] if entry else "not_wired"


def build_nav(role: str, summary: dict[str, Any] | None) -> list[dict[str, Any]]:
    """
    Resolve nav groups for a role. Clients lose items that are locked or not wired,
    and groups left empty are dropped.
    """
    groups = OPERATOR_NAV if role == "OPERATOR" else CLIENT_NAV
    out = []
    for group in groups:
        items = []
        for item in group.items:
            state = module_state(summary, item)
            if role == "CLIENT" and state in HIDDEN_CLIENT_STATES:
                continue
            items.append(
                {
                    "label": item.label,
                    "slug": item.slug,
                    "state": state,
                    "stateLabel": STATE_LABELS.get(state, state.upper()),
                    "disabled": state in HIDDEN_CLIENT_STATES,
                }
            )
        if items:
            out.append({"title": group.title, "items": items})
    return out


def portal_claims() -> SessionClaims | None:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    return verify_session_token(token)


def _login_redirect():
    return redirect(url_for("portal.login_get", next=request.path))


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("portal/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()

    if not email or not password:
        flash("Email and password required.", "danger")
        return redirect(url_for("portal.login_get"))

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
        flash("Invalid credentials.", "danger")
        return redirect(url_for("portal.login_get"))

    touch_last_login(user)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    s.commit()

    token = issue_session_token(uid=user.email, role=user.role, engagement_ids=list(user.engagement_ids or []), vis=user.vis)
    # only local paths, to avoid open redirects
    target = nxt if nxt.startswith("/") and nxt[1:2] not in ("/", "\\") else url_for("portal.dashboard")
    return set_session_cookie(redirect(target), token)


@bp.get("/logout")
def logout():
    return clear_session_cookie(redirect(url_for("portal.login_get")))


@bp.get("/invite")
def invite():
    token = (request.args.get("token") or "").strip()
    return render_template("portal/invite.html", token=token)


def _summary_or_none(engagement_id: str | None, claims: SessionClaims) -> dict[str, Any] | None:
    if not engagement_id:
        return None
    try:
        return build_summary(get_erp_client(), engagement_id, claims, current_app.config)
    except GatewayError as e:
        if e.status != 404:
            raise
        logger.info("No ERP project for engagement %s, using fallback navigation", engagement_id)
    except ERPClientError:
        logger.exception("ERP summary lookup failed for engagement %s", engagement_id)
    return None


def _check_scope(engagement_id: str, claims: SessionClaims) -> None:
    if not claims.can_access(engagement_id):
        raise GatewayError(403, "forbidden", "Engagement access denied.")


@bp.get("/")
def dashboard():
    claims = portal_claims()
    if claims is None:
        return _login_redirect()

    try:
        engagements = list_engagements(get_erp_client(), claims)
    except ERPClientError:
        logger.exception("ERP engagement listing failed")
        engagements = []
    selected = request.args.get("engagement") or (engagements[0]["id"] if engagements else None)
    if selected:
        _check_scope(selected, claims)
    summary = _summary_or_none(selected, claims)
    return render_template(
        "portal/dashboard.html",
        claims=claims,
        engagements=engagements,
        engagement_id=selected,
        summary=summary,
        nav=build_nav(claims.role, summary),
        state_labels=STATE_LABELS,
    )


@bp.get("/engagements/<engagement_id>/<path:slug>")
def module_page(engagement_id: str, slug: str):
    claims = portal_claims()
    if claims is None:
        return _login_redirect()

    item = MODULE_PAGES.get(slug.strip("/"))
    if item is None:
        raise GatewayError(404, "not_found", "Page not found.")
    _check_scope(engagement_id, claims)
    if item.module_key in OPERATOR_ONLY_MODULES and not claims.is_operator:
        raise GatewayError(403, "forbidden", "Operator access required.")

    summary = _summary_or_none(engagement_id, claims)
    state = module_state(summary, item)
    return render_template(
        "portal/module.html",
        claims=claims,
        engagement_id=engagement_id,
        summary=summary,
        nav=build_nav(claims.role, summary),
        title=item.label,
        state=state,
        state_label=STATE_LABELS.get(state, state.upper()),
        message=placeholder_message(state),
    )
