from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import jwt
from flask import Response, current_app

from app.lucien.config import is_production

SESSION_COOKIE = "lucien_session"
JWT_ALGORITHM = "HS256"
DEV_JWT_SECRET = "dev-secret"


class SessionConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class SessionClaims:
    uid: str
    role: str
    jti: str
    iat: float
    exp: float
    engagement_ids: list[str] = field(default_factory=list)
    vis: Any = None

    @property
    def is_operator(self) -> bool:
        return self.role == "OPERATOR"

    @property
    def is_client(self) -> bool:
        return self.role == "CLIENT"

    @property
    def has_all_scope(self) -> bool:
        return "ALL" in self.engagement_ids

    @property
    def scope(self) -> str:
        if self.has_all_scope:
            return "ALL"
        return ",".join(self.engagement_ids)

    def can_access(self, engagement_id: str) -> bool:
        return self.has_all_scope or engagement_id in self.engagement_ids


def jwt_secret() -> str:
    secret = current_app.config.get("LUCIEN_JWT_SECRET") or ""
    if secret:
        return secret
    if not is_production(current_app.config.get("ENV")) and current_app.config.get("ALLOW_DEV_JWT_FALLBACK"):
        return DEV_JWT_SECRET
    raise SessionConfigError("LUCIEN_JWT_SECRET is not configured.")


def session_ttl() -> int:
    return int(current_app.config.get("LUCIEN_SESSION_TTL") or 8 * 60 * 60)


def issue_session_token(*, uid: str, role: str, engagement_ids: list[str], vis: Any = None) -> str:
    now = int(time.time())
    payload = {
        "uid": uid,
        "role": role,
        "engagementIds": list(engagement_ids),
        "vis": vis,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + session_ttl(),
    }
    return jwt.encode(payload, jwt_secret(), algorithm=JWT_ALGORITHM)


def parse_claims(payload: dict[str, Any]) -> SessionClaims | None:
    uid, role, jti = payload.get("uid"), payload.get("role"), payload.get("jti")
    iat, exp = payload.get("iat"), payload.get("exp")
    if not all(isinstance(v, str) for v in (uid, role, jti)):
        return None
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (iat, exp)):
        return None
    raw_ids = payload.get("engagementIds")
    engagement_ids = [str(x) for x in raw_ids] if isinstance(raw_ids, list) else []
    return SessionClaims(uid=uid, role=role, jti=jti, iat=iat, exp=exp, engagement_ids=engagement_ids, vis=payload.get("vis"))


def verify_session_token(token: str) -> SessionClaims | None:
    try:
        payload = jwt.decode(token, jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    if not isinstance(payload, dict):
        return None
    return parse_claims(payload)


def set_session_cookie(resp: Response, token: str) -> Response:
    resp.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=session_ttl(),
        path="/",
        httponly=True,
        samesite="Lax",
        secure=is_production(current_app.config.get("ENV")),
    )
    return resp


def clear_session_cookie(resp: Response) -> Response:
    resp.set_cookie(
        SESSION_COOKIE,
        "",
        max_age=0,
        expires=0,
        path="/",
        httponly=True,
        samesite="Lax",
        secure=is_production(current_app.config.get("ENV")),
    )
    return resp
