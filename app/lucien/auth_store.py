from __future__ import annotations

import base64
import hashlib
import math
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from werkzeug.security import check_password_hash, generate_password_hash

from app.lucien.constants import DEFAULT_INVITE_TTL_HOURS, MAX_INVITE_TTL_HOURS, ROLE_OPERATOR, TIER_ENGAGEMENT_IDS
from app.lucien.models import Invite, User
from app.lucien.utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


@dataclass(frozen=True)
class CreatedInvite:
    invite: Invite
    token: str
    temp_password: str | None


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_engagement_ids(values: Any) -> list[str]:
    """
    De-duplicate and sort engagement ids. Integer tier indexes map to their TIER-* id.
    """
    if not isinstance(values, (list, tuple, set)):
        return []
    out: set[str] = set()
    for value in values:
        if isinstance(value, int) and not isinstance(value, bool) and value in TIER_ENGAGEMENT_IDS:
            out.add(TIER_ENGAGEMENT_IDS[value])
            continue
        text = str(value).strip()
        if text:
            out.add(text)
    return sorted(out)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_temp_password() -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(12)).decode("ascii").rstrip("=")


def default_vis(role: str, vis: Any = None) -> Any:
    if vis:
        return vis
    return "ALL" if role == ROLE_OPERATOR else None


def get_user(s: "Session", email: str) -> User | None:
    return s.query(User).filter(User.email == normalize_email(email)).one_or_none()


def upsert_user(
    s: "Session",
    *,
    email: str,
    role: str | None = None,
    engagement_ids: list[str] | None = None,
    name: str | None = None,
    vis: Any = None,
    password_hash: str | None = None,
    status: str | None = None,
) -> User:
    """
    Create or update a user by email. Empty or missing values keep what is stored.
    """
    now = utcnow()
    user = get_user(s, email)
    ids = normalize_engagement_ids(engagement_ids) if engagement_ids else None
    if user is None:
        user = User(
            email=normalize_email(email),
            role=role or "CLIENT",
            engagement_ids=ids or [],
            name=name or None,
            vis=vis,
            password_hash=password_hash or None,
            status=status or "active",
            created_at=now,
            updated_at=now,
        )
        s.add(user)
        s.flush()
        return user

    if role:
        user.role = role
    if ids:
        user.engagement_ids = ids
    if name:
        user.name = name
    if vis is not None and vis != "":
        user.vis = vis
    if password_hash:
        user.password_hash = password_hash
    if status:
        user.status = status
    user.updated_at = now
    return user


def verify_user_credentials(s: "Session", email: str, password: str) -> User | None:
    user = get_user(s, email)
    if not user or not user.is_active:
        return None
    if not verify_password(user.password_hash, password):
        return None
    return user


def touch_last_login(user: User) -> None:
    user.last_login_at = utcnow()


def create_invite(
    s: "Session",
    *,
    email: str,
    role: str,
    engagement_ids: list[str],
    name: str | None = None,
    vis: Any = None,
    invite_type: str = "magic",
    expires_in_hours: Any = None,
    created_by: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> CreatedInvite:
    token = secrets.token_urlsafe(32)
    try:
        hours = float(expires_in_hours) if expires_in_hours is not None else DEFAULT_INVITE_TTL_HOURS
    except (TypeError, ValueError):
        hours = DEFAULT_INVITE_TTL_HOURS
    if not math.isfinite(hours) or hours <= 0:
        hours = DEFAULT_INVITE_TTL_HOURS
    hours = min(hours, MAX_INVITE_TTL_HOURS)

    now = utcnow()
    invite = Invite(
        email=normalize_email(email),
        role=role,
        engagement_ids=normalize_engagement_ids(engagement_ids),
        name=name or None,
        vis=vis,
        token_hash=hash_token(token),
        type=invite_type,
        expires_at=now + timedelta(hours=hours),
        created_at=now,
        created_by=created_by,
        metadata_json=metadata or None,
    )
    s.add(invite)

    temp_password = None
    if invite_type == "temp_password":
        temp_password = generate_temp_password()
        upsert_user(
            s,
            email=invite.email,
            role=role,
            engagement_ids=invite.engagement_ids,
            name=name,
            vis=vis,
            password_hash=hash_password(temp_password),
            status="active",
        )
    s.flush()
    return CreatedInvite(invite=invite, token=token, temp_password=temp_password)


def consume_invite_token(s: "Session", token: str) -> User | None:
    """
    Mark an invite used and activate its user. Unknown, used or expired tokens return None.
    """
    if not token:
        return None
    invite = s.query(Invite).filter(Invite.token_hash == hash_token(token)).one_or_none()
    if invite is None or invite.used_at is not None:
        return None
    now = utcnow()
    if invite.expires_at <= now:
        return None
    invite.used_at = now
    return upsert_user(
        s,
        email=invite.email,
        role=invite.role,
        engagement_ids=list(invite.engagement_ids or []),
        name=invite.name,
        vis=invite.vis,
        status="active",
    )
