from __future__ import annotations

from typing import Any

from flask import Flask, Response, g, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

from app.lucien.erp.client import ERPClientError


class GatewayError(Exception):
    """
    Raised anywhere in a request to answer with the standard /api error envelope.
    """

    def __init__(self, status: int, code: str, reason: str, *, headers: dict[str, str] | None = None):
        super().__init__(reason)
        self.status = status
        self.code = code
        self.reason = reason
        self.headers = headers or {}


def error_payload(code: str, reason: str) -> dict[str, Any]:
    return {"error": "gateway_error", "code": code, "reason": reason}


def json_error(status: int, code: str, reason: str, headers: dict[str, str] | None = None) -> Response:
    resp = jsonify(error_payload(code, reason))
    resp.status_code = status
    for k, v in (headers or {}).items():
        resp.headers[k] = v
    return resp


def _is_api_request() -> bool:
    return request.path.startswith("/api/") or request.path == "/api"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(GatewayError)
    def _gateway_error(e: GatewayError):  # type: ignore[no-redef]
        if _is_api_request():
            return json_error(e.status, e.code, e.reason, e.headers)
        return render_template("errors/error.html", status=e.status, message=e.reason), e.status

    @app.errorhandler(ERPClientError)
    def _erp_error(e: ERPClientError):  # type: ignore[no-redef]
        app.logger.warning("ERP unavailable (status=%s request_id=%s): %s", e.status, getattr(g, "request_id", None), e)
        if _is_api_request():
            return json_error(502, "erp_unavailable", "ERP request failed.")
        return render_template("errors/error.html", status=502, message="ERP unavailable."), 502

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        if _is_api_request():
            return json_error(413, "payload_too_large", "Payload too large.")
        return render_template("errors/error.html", status=413, message="Upload too large."), 413

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _is_api_request():
            return json_error(404, "not_found", "Route not found.")
        return render_template("errors/error.html", status=404, message="Page not found."), 404

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        if _is_api_request():
            return json_error(405, "method_not_allowed", "Method not allowed.")
        return render_template("errors/error.html", status=405, message="Method not allowed."), 405

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        if isinstance(e, HTTPException):
            return e
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if _is_api_request():
            return json_error(500, "internal_error", "Internal server error.")
        return render_template("errors/error.html", status=500, message="Something went wrong."), 500
