from __future__ import annotations

from typing import Any, TypedDict


class ProjectRecord(TypedDict, total=False):
    name: str
    status: str
    expected_start_date: str
    actual_start_date: str
    project_name: str
    lucien_modules: dict[str, Any]


class ClientRequestRecord(TypedDict, total=False):
    name: str
    project: str
    title: str
    description: str | None
    status: str
    required: bool
    template_key: str
    visibility: str | None


class FileRecord(TypedDict, total=False):
    name: str
    file_name: str
    file_url: str
    is_private: bool
    attached_to_name: str


class DirectiveRecord(TypedDict, total=False):
    name: str
    project: str
    pinned: bool
    visibility: str
    requires_ack: bool
    ack_by: str | None
    ack_at: str | None


class SalesInvoiceRecord(TypedDict, total=False):
    name: str
    project: str
    outstanding_amount: float
    due_date: str
    currency: str
    grand_total: float
    posting_date: str
    payment_url: str


class ContractRecord(TypedDict, total=False):
    name: str
    project: str
    contract_type: str
    status: str
    modified: str


class OutputRecord(TypedDict, total=False):
    name: str
    project: str
    title: str
    category: str
    status: str
    modified: str
