import json
import logging
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.lucien.models import AuditEvent, User
from app.lucien.utils import iso_now

security_logger = logging.getLogger("lucien.security")


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
    actor_email: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        actor_email=actor.email if actor else actor_email,
        actor_role=actor.role if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def security_event(event: str, **fields: Any) -> None:
    """
    Emit one JSON line per security decision taken in the API guard.
    """
    entry: dict[str, Any] = {"event": event, "timestamp": iso_now()}
    if has_request_context():
        entry["requestId"] = getattr(g, "request_id", None)
        entry["path"] = request.path
        entry["method"] = request.method
    entry.update({k: v for k, v in fields.items() if v is not None})
    security_logger.warning(json.dumps(entry, sort_keys=True, default=str))
