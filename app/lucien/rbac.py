from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.lucien.errors import GatewayError
from app.lucien.session import SessionClaims


def current_claims() -> SessionClaims:
    claims: SessionClaims | None = getattr(g, "session_claims", None)
    if claims is None:
        raise GatewayError(401, "unauthenticated", "Not authenticated.")
    return claims


def require_session(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_claims()
        return fn(*args, **kwargs)

    return wrapped


def require_operator(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if not current_claims().is_operator:
            raise GatewayError(403, "forbidden", "Operator access required.")
        return fn(*args, **kwargs)

    return wrapped


def require_engagement_scope(engagement_id: str) -> SessionClaims:
    """Scope check that applies to every role, including operators with a scoped token."""
    claims = current_claims()
    if not claims.can_access(engagement_id):
        raise GatewayError(403, "forbidden", "Engagement access denied.")
    return claims
