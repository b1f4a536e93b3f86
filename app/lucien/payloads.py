from __future__ import annotations

import json
from typing import Any

from flask import request

from app.lucien.errors import GatewayError


def request_content_length() -> int | None:
    raw = request.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_json_body(max_bytes: int) -> dict[str, Any]:
    """
    Read a bounded JSON object from the current request.
    Length is checked from the header before the body is read.
    """
    content_type = (request.headers.get("Content-Type") or "").lower()
    if "application/json" not in content_type:
        raise GatewayError(400, "invalid_content_type", "Expected application/json.")

    length = request_content_length()
    if length is None or length <= 0:
        raise GatewayError(411, "length_required", "Content-Length required.")
    if length > max_bytes:
        raise GatewayError(413, "payload_too_large", f"Payload exceeds {max_bytes} bytes.")

    raw = request.get_data(cache=True)
    if len(raw) > max_bytes:
        raise GatewayError(413, "payload_too_large", f"Payload exceeds {max_bytes} bytes.")
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise GatewayError(400, "invalid_payload", "Invalid JSON payload.")
    if not isinstance(payload, dict):
        raise GatewayError(400, "invalid_payload", "Invalid JSON payload.")
    return payload


def optional_string(payload: dict[str, Any], key: str, max_len: int) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or len(value) > max_len:
        raise GatewayError(400, "invalid_payload", f"Invalid {key}.")
    return value


def required_string(payload: dict[str, Any], key: str, max_len: int) -> str:
    value = optional_string(payload, key, max_len)
    if value is None or not value.strip():
        raise GatewayError(400, "invalid_payload", f"Missing {key}.")
    return value
