from __future__ import annotations

import copy
import random
import time
from typing import Any

from app.lucien.erp.records import (
    ClientRequestRecord,
    ContractRecord,
    DirectiveRecord,
    FileRecord,
    OutputRecord,
    ProjectRecord,
    SalesInvoiceRecord,
)

MOCK_PROJECTS: list[dict[str, Any]] = [
    {
        "name": "PRJ-001",
        "status": "Open",
        "expected_start_date": "2026-01-20",
        "tier": "BLUEPRINT",
        "lucien_modules": {
            "protocol": {"state": "active"},
            "outputs": {"state": "active"},
            "secureChannel": {"state": "pending", "reason": "e2ee_stub"},
            "contracts": {"state": "active"},
            "billing": {"state": "active"},
            "settlement": {"state": "active"},
            "opsConsole": {"state": "active"},
            "requestBuilder": {"state": "active"},
            "deliveryPipeline": {"state": "pending", "reason": "pipeline_init"},
            "accessRoles": {"state": "active"},
        },
    },
]

MOCK_CLIENT_REQUESTS: list[dict[str, Any]] = [
    {
        "name": "REQ-2026-0001",
        "project": "PRJ-001",
        "title": "Diagnostic Intake Core",
        "description": "Initial intake request for diagnostic assessment.",
        "status": "pending",
        "required": True,
        "template_key": "diag_intake_core_v1",
        "visibility": "client_visible",
    },
    {
        "name": "REQ-2026-0002",
        "project": "PRJ-001",
        "title": "Evidence Upload",
        "description": "Upload supporting evidence for diagnostics.",
        "status": "needs_revision",
        "required": False,
        "template_key": "diag_evidence_upload_v1",
        "visibility": "client_visible",
    },
]

MOCK_DIRECTIVES: list[dict[str, Any]] = [
    {
        "name": "DIR-2026-0001",
        "project": "PRJ-001",
        "pinned": True,
        "visibility": "client_visible",
        "requires_ack": True,
        "ack_by": None,
        "ack_at": None,
    },
]

MOCK_INVOICES: list[dict[str, Any]] = [
    {
        "name": "SINV-2026-0001",
        "project": "PRJ-001",
        "outstanding_amount": 0,
        "due_date": "2026-03-15",
        "currency": "EUR",
        "grand_total": 7500,
        "posting_date": "2026-01-20",
    },
    {
        "name": "SINV-2026-0002",
        "project": "PRJ-001",
        "outstanding_amount": 3200,
        "due_date": "2026-04-01",
        "currency": "USD",
        "grand_total": 9500,
        "posting_date": "2026-02-10",
    },
]

MOCK_CONTRACTS: list[dict[str, Any]] = [
    {"name": "CON-2026-0001", "project": "PRJ-001", "contract_type": "NDA", "status": "Signed", "modified": "2026-01-25"},
    {"name": "CON-2026-0002", "project": "PRJ-001", "contract_type": "MSA", "status": "Active", "modified": "2026-01-28"},
]

MOCK_OUTPUTS: list[dict[str, Any]] = [
    {
        "name": "OUT-2026-0001",
        "project": "PRJ-001",
        "title": "Risk baseline assessment",
        "category": "report",
        "status": "Delivered",
        "modified": "2026-01-29",
    },
]


class MockERPClient:
    """
    In-memory stand-in used when ERP credentials are absent. Each instance owns a
    private copy of the dataset, so writes (uploads, acks, status changes) stay local.
    """

    data_mode = "mock"

    def __init__(self, tier_field: str = "tier"):
        self.tier_field = tier_field or "tier"
        self.projects: list[dict[str, Any]] = []
        for project in copy.deepcopy(MOCK_PROJECTS):
            tier = project.pop("tier")
            project[self.tier_field] = tier
            self.projects.append(project)
        self.client_requests = copy.deepcopy(MOCK_CLIENT_REQUESTS)
        self.directives = copy.deepcopy(MOCK_DIRECTIVES)
        self.invoices = copy.deepcopy(MOCK_INVOICES)
        self.contracts = copy.deepcopy(MOCK_CONTRACTS)
        self.outputs = copy.deepcopy(MOCK_OUTPUTS)
        self.files: list[dict[str, Any]] = []

    def fetch_projects(self) -> list[ProjectRecord]:
        return copy.deepcopy(self.projects)  # type: ignore[return-value]

    def fetch_project_by_id(self, project_id: str) -> ProjectRecord | None:
        for p in self.projects:
            if p["name"] == project_id:
                return copy.deepcopy(p)  # type: ignore[return-value]
        return None

    def fetch_client_requests_by_project(self, project_id: str) -> list[ClientRequestRecord]:
        return [dict(r) for r in self.client_requests if r["project"] == project_id]  # type: ignore[misc]

    def fetch_client_request_by_id(self, request_id: str) -> ClientRequestRecord | None:
        for r in self.client_requests:
            if r["name"] == request_id:
                return dict(r)  # type: ignore[return-value]
        return None

    def update_client_request_status(self, request_id: str, status: str) -> None:
        for r in self.client_requests:
            if r["name"] == request_id:
                r["status"] = status

    def fetch_file_attachments_for_request(self, request_id: str) -> list[FileRecord]:
        return [dict(f) for f in self.files if f["attached_to_name"] == request_id]  # type: ignore[misc]

    def upload_file(self, *, file_bytes: bytes, filename: str, content_type: str | None, doctype: str, docname: str) -> FileRecord:
        record = {
            "name": f"FILE-{int(time.time() * 1000)}-{random.randint(0, 999)}",
            "file_name": filename,
            "file_url": f"/files/{filename}",
            "is_private": False,
            "attached_to_name": docname,
        }
        self.files.append(record)
        return dict(record)  # type: ignore[return-value]

    def fetch_directive_by_id(self, directive_id: str) -> DirectiveRecord | None:
        for d in self.directives:
            if d["name"] == directive_id:
                return dict(d)  # type: ignore[return-value]
        return None

    def update_directive_ack(self, directive_id: str, *, ack_by: str, ack_at: str) -> None:
        for d in self.directives:
            if d["name"] == directive_id:
                d["ack_by"] = ack_by
                d["ack_at"] = ack_at

    def fetch_latest_invoice(self, project_id: str) -> SalesInvoiceRecord | None:
        rows = [i for i in self.invoices if i["project"] == project_id]
        return dict(rows[0]) if rows else None  # type: ignore[return-value]

    def fetch_invoices_by_project(self, project_id: str) -> list[SalesInvoiceRecord] | None:
        return [dict(i) for i in self.invoices if i["project"] == project_id]  # type: ignore[misc]

    def fetch_contracts_by_project(self, project_id: str) -> list[ContractRecord] | None:
        return [dict(c) for c in self.contracts if c["project"] == project_id]  # type: ignore[misc]

    def fetch_outputs_by_project(self, project_id: str) -> list[OutputRecord] | None:
        return [dict(o) for o in self.outputs if o["project"] == project_id]  # type: ignore[misc]

    def verify_login(self, email: str, password: str) -> bool:
        return False
