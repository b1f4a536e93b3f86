from __future__ import annotations

import json
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any

import requests

from app.lucien.erp.records import (
    ClientRequestRecord,
    ContractRecord,
    DirectiveRecord,
    FileRecord,
    OutputRecord,
    ProjectRecord,
    SalesInvoiceRecord,
)

logger = logging.getLogger(__name__)

PROJECT_BASE_FIELDS = ("name", "status", "expected_start_date", "actual_start_date", "project_name")
CLIENT_REQUEST_FIELDS = ("name", "project", "title", "description", "status", "required", "template_key", "visibility")
FILE_FIELDS = ("name", "file_name", "file_url", "is_private", "attached_to_name")
INVOICE_FIELDS = ("name", "project", "outstanding_amount", "due_date", "currency", "grand_total", "posting_date", "payment_url")
CONTRACT_FIELDS = ("name", "project", "contract_type", "status", "modified")
OUTPUT_FIELDS = ("name", "project", "title", "category", "status", "modified")


class ERPClientError(RuntimeError):
    def __init__(self, message: str = "ERP request failed.", status: int = 502, code: str = "erp_unavailable"):
        super().__init__(message)
        self.status = status
        self.code = code


def _project_filter(project_id: str) -> str:
    return json.dumps([["project", "=", project_id]])


@dataclass(frozen=True)
class ERPClient:
    """
    Frappe/ERPNext REST client. Every failure surfaces as ERPClientError; optional
    doctypes answer None on 404 so callers can report them as not wired.
    """

    base_url: str
    api_key: str
    api_secret: str
    tier_field: str = ""
    timeout_seconds: int = 10

    data_mode = "erp"

    def _auth_header(self) -> str:
        return f"token {self.api_key}:{self.api_secret}"

    def _url(self, path: str) -> str:
        return self.base_url.rstrip("/") + (path if path.startswith("/") else "/" + path)

    @staticmethod
    def _resource_path(doctype: str, name: str | None = None) -> str:
        path = f"/api/resource/{urllib.parse.quote(doctype)}"
        if name is not None:
            path += f"/{urllib.parse.quote(str(name), safe='')}"
        return path

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        headers = {"Accept": "application/json", "Authorization": self._auth_header()}
        headers.update(kwargs.pop("headers", None) or {})
        try:
            resp = requests.request(method, self._url(path), headers=headers, timeout=self.timeout_seconds, **kwargs)
        except requests.Timeout as e:
            raise ERPClientError("ERP request timed out.") from e
        except requests.RequestException as e:
            raise ERPClientError("ERP request failed.") from e
        if not resp.ok:
            logger.warning("ERP %s %s -> HTTP %s", method, path, resp.status_code)
            raise ERPClientError("ERP request failed.", status=resp.status_code)
        return resp

    def request_json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        resp = self.request(method, path, **kwargs)
        try:
            payload = resp.json()
        except ValueError as e:
            raise ERPClientError("ERP response invalid.") from e
        if not payload or not isinstance(payload, dict):
            raise ERPClientError("ERP response invalid.")
        return payload

    def _list(self, doctype: str, *, fields: tuple[str, ...], filters: str | None = None, order_by: str | None = None, limit: int | None = None) -> list[dict[str, Any]]:
        params: dict[str, str] = {"fields": json.dumps(list(fields))}
        if filters:
            params["filters"] = filters
        if order_by:
            params["order_by"] = order_by
        if limit:
            params["limit_page_length"] = str(limit)
        payload = self.request_json("GET", self._resource_path(doctype), params=params)
        data = payload.get("data")
        return data if isinstance(data, list) else []

    def _get(self, doctype: str, name: str) -> dict[str, Any] | None:
        payload = self.request_json("GET", self._resource_path(doctype, name))
        data = payload.get("data")
        return data if isinstance(data, dict) else None

    def _optional_list(self, doctype: str, **kwargs: Any) -> list[dict[str, Any]] | None:
        try:
            return self._list(doctype, **kwargs)
        except ERPClientError as e:
            if e.status == 404:
                return None
            raise

    def _project_fields(self) -> tuple[str, ...]:
        if self.tier_field and self.tier_field not in PROJECT_BASE_FIELDS:
            return PROJECT_BASE_FIELDS + (self.tier_field,)
        return PROJECT_BASE_FIELDS

    # ---------- Projects ----------
    def fetch_projects(self) -> list[ProjectRecord]:
        return self._list("Project", fields=self._project_fields(), order_by="modified desc", limit=200)  # type: ignore[return-value]

    def fetch_project_by_id(self, project_id: str) -> ProjectRecord | None:
        try:
            return self._get("Project", project_id)  # type: ignore[return-value]
        except ERPClientError as e:
            if e.status == 404:
                return None
            raise

    # ---------- Client requests ----------
    def fetch_client_requests_by_project(self, project_id: str) -> list[ClientRequestRecord]:
        return self._list("Client Request", fields=CLIENT_REQUEST_FIELDS, filters=_project_filter(project_id))  # type: ignore[return-value]

    def fetch_client_request_by_id(self, request_id: str) -> ClientRequestRecord | None:
        try:
            return self._get("Client Request", request_id)  # type: ignore[return-value]
        except ERPClientError as e:
            if e.status == 404:
                return None
            raise

    def update_client_request_status(self, request_id: str, status: str) -> None:
        self.request("PUT", self._resource_path("Client Request", request_id), json={"status": status})

    def fetch_file_attachments_for_request(self, request_id: str) -> list[FileRecord]:
        filters = json.dumps([["attached_to_name", "=", request_id]])
        return self._list("File", fields=FILE_FIELDS, filters=filters)  # type: ignore[return-value]

    def upload_file(self, *, file_bytes: bytes, filename: str, content_type: str | None, doctype: str, docname: str) -> FileRecord:
        resp = self.request(
            "POST",
            "/api/method/upload_file",
            files={"file": (filename, file_bytes, content_type or "application/octet-stream")},
            data={"doctype": doctype, "docname": docname},
        )
        try:
            payload = resp.json()
        except ValueError as e:
            raise ERPClientError("ERP upload failed.") from e
        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, dict) or not message.get("name"):
            raise ERPClientError("ERP upload failed.")
        return {
            "name": message["name"],
            "file_name": message.get("file_name") or filename,
            "file_url": message.get("file_url") or "",
            "is_private": bool(message.get("is_private")),
            "attached_to_name": docname,
        }

    # ---------- Directives ----------
    def fetch_directive_by_id(self, directive_id: str) -> DirectiveRecord | None:
        try:
            return self._get("Directive", directive_id)  # type: ignore[return-value]
        except ERPClientError as e:
            if e.status == 404:
                return None
            raise

    def update_directive_ack(self, directive_id: str, *, ack_by: str, ack_at: str) -> None:
        self.request("PUT", self._resource_path("Directive", directive_id), json={"ack_by": ack_by, "ack_at": ack_at})

    # ---------- Billing / contracts / outputs ----------
    def fetch_latest_invoice(self, project_id: str) -> SalesInvoiceRecord | None:
        rows = self._optional_list(
            "Sales Invoice", fields=INVOICE_FIELDS, filters=_project_filter(project_id), order_by="creation desc", limit=1
        )
        return rows[0] if rows else None  # type: ignore[return-value]

    def fetch_invoices_by_project(self, project_id: str) -> list[SalesInvoiceRecord] | None:
        return self._optional_list(  # type: ignore[return-value]
            "Sales Invoice", fields=INVOICE_FIELDS, filters=_project_filter(project_id), order_by="creation desc", limit=50
        )

    def fetch_contracts_by_project(self, project_id: str) -> list[ContractRecord] | None:
        return self._optional_list("Contract", fields=CONTRACT_FIELDS, filters=_project_filter(project_id))  # type: ignore[return-value]

    def fetch_outputs_by_project(self, project_id: str) -> list[OutputRecord] | None:
        return self._optional_list("Deliverable", fields=OUTPUT_FIELDS, filters=_project_filter(project_id))  # type: ignore[return-value]

    # ---------- Auth ----------
    def verify_login(self, email: str, password: str) -> bool:
        """Check credentials against the ERP's own login method (AUTH_MODE=erp)."""
        try:
            resp = requests.post(
                self._url("/api/method/login"),
                data={"usr": email, "pwd": password},
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            raise ERPClientError("ERP login failed.") from e
        return resp.ok
