from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.lucien.constants import REQUEST_ID_PATTERN
from app.lucien.errors import GatewayError
from app.lucien.modules.intel.templates import CLIENT_VISIBLE, template_fields
from app.lucien.utils import iso_now

if TYPE_CHECKING:
    from app.lucien.session import SessionClaims

_REQUEST_ID = re.compile(REQUEST_ID_PATTERN)


def is_valid_request_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_REQUEST_ID.match(value))


def _sort_key(record: dict[str, Any]) -> tuple:
    # required first, then status, then id
    return (0 if record.get("required") else 1, str(record.get("status") or ""), str(record.get("name") or ""))


def list_intel(erp, engagement_id: str, claims: "SessionClaims") -> list[dict[str, Any]]:
    records = sorted(erp.fetch_client_requests_by_project(engagement_id), key=_sort_key)
    items = []
    for record in records:
        if claims.is_client and record.get("visibility") != CLIENT_VISIBLE:
            continue
        attachments = erp.fetch_file_attachments_for_request(record["name"])
        items.append(
            {
                "id": record["name"],
                "project": record.get("project"),
                "title": record.get("title"),
                "description": record.get("description") or None,
                "status": record.get("status"),
                "required": bool(record.get("required")),
                "templateKey": record.get("template_key"),
                "visibility": record.get("visibility") or None,
                "fields": template_fields(record.get("template_key"), claims.role),
                "attachments": [
                    {
                        "id": f.get("name"),
                        "fileName": f.get("file_name"),
                        "fileUrl": f.get("file_url"),
                        "isPrivate": bool(f.get("is_private")),
                    }
                    for f in attachments
                ],
            }
        )
    return items


def upload_intel_file(erp, engagement_id: str, claims: "SessionClaims", *, file: FileStorage, request_id: str) -> dict[str, Any]:
    """
    Attach an uploaded file to a Client Request in the ERP and mark it submitted.
    """
    client_request = erp.fetch_client_request_by_id(request_id)
    if not client_request:
        raise GatewayError(403, "request_not_found", "Request not found.")
    if client_request.get("project") != engagement_id:
        raise GatewayError(403, "forbidden", "Engagement mismatch.")
    if claims.is_client:
        if client_request.get("visibility") != CLIENT_VISIBLE:
            raise GatewayError(403, "forbidden", "Request not visible.")
        if client_request.get("status") == "accepted":
            raise GatewayError(403, "forbidden", "Request already accepted.")

    filename = secure_filename(file.filename or "") or "upload.bin"
    uploaded = erp.upload_file(
        file_bytes=file.read(),
        filename=filename,
        content_type=file.mimetype,
        doctype="Client Request",
        docname=client_request["name"],
    )
    erp.update_client_request_status(client_request["name"], "submitted")
    return {
        "requestId": client_request["name"],
        "uploadId": uploaded["name"],
        "status": "accepted",
        "receivedAt": iso_now(),
    }
