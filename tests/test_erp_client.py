import json

import pytest
import requests

from app.lucien.erp import ERPClient, ERPClientError, MockERPClient, erp_client_from_config


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture()
def erp():
    return ERPClient(base_url="https://erp.example/", api_key="key", api_secret="secret", tier_field="lucien_tier")


@pytest.fixture()
def calls(monkeypatch):
    recorded = []
    responses = []

    def fake_request(method, url, headers=None, timeout=None, **kwargs):
        recorded.append({"method": method, "url": url, "headers": headers, "timeout": timeout, **kwargs})
        return responses.pop(0)

    monkeypatch.setattr("app.lucien.erp.client.requests.request", fake_request)
    return recorded, responses


def test_client_selection():
    assert isinstance(erp_client_from_config({}), MockERPClient)
    client = erp_client_from_config({"ERP_BASE_URL": "https://erp", "ERP_API_KEY": "k", "ERP_API_SECRET": "s", "ERP_TIMEOUT": 3})
    assert isinstance(client, ERPClient)
    assert client.timeout_seconds == 3
    assert client.data_mode == "erp"


def test_list_projects_sends_token_auth_and_fields(erp, calls):
    recorded, responses = calls
    responses.append(FakeResponse(payload={"data": [{"name": "PRJ-001"}]}))
    assert erp.fetch_projects() == [{"name": "PRJ-001"}]

    call = recorded[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://erp.example/api/resource/Project"
    assert call["headers"]["Authorization"] == "token key:secret"
    assert "lucien_tier" in json.loads(call["params"]["fields"])
    assert call["params"]["limit_page_length"] == "200"


def test_client_requests_filtered_by_project(erp, calls):
    recorded, responses = calls
    responses.append(FakeResponse(payload={"data": []}))
    assert erp.fetch_client_requests_by_project("PRJ-001") == []
    assert recorded[0]["url"] == "https://erp.example/api/resource/Client%20Request"
    assert json.loads(recorded[0]["params"]["filters"]) == [["project", "=", "PRJ-001"]]


def test_missing_document_returns_none(erp, calls):
    _, responses = calls
    responses.append(FakeResponse(status_code=404))
    assert erp.fetch_project_by_id("PRJ-404") is None


def test_optional_doctype_not_wired(erp, calls):
    _, responses = calls
    responses.append(FakeResponse(status_code=404))
    assert erp.fetch_contracts_by_project("PRJ-001") is None


def test_server_errors_raise(erp, calls):
    _, responses = calls
    responses.append(FakeResponse(status_code=500))
    with pytest.raises(ERPClientError) as e:
        erp.fetch_outputs_by_project("PRJ-001")
    assert e.value.status == 500

    responses.append(FakeResponse(payload=None))
    with pytest.raises(ERPClientError):
        erp.fetch_projects()


def test_network_failure_raises(erp, monkeypatch):
    def boom(*a, **kw):
        raise requests.Timeout("slow")

    monkeypatch.setattr("app.lucien.erp.client.requests.request", boom)
    with pytest.raises(ERPClientError, match="timed out"):
        erp.fetch_projects()


def test_upload_file(erp, calls):
    recorded, responses = calls
    responses.append(FakeResponse(payload={"message": {"name": "FILE-1", "file_url": "/private/files/a.txt", "is_private": 1}}))
    record = erp.upload_file(file_bytes=b"abc", filename="a.txt", content_type=None, doctype="Client Request", docname="REQ-1")
    assert record == {
        "name": "FILE-1",
        "file_name": "a.txt",
        "file_url": "/private/files/a.txt",
        "is_private": True,
        "attached_to_name": "REQ-1",
    }
    call = recorded[0]
    assert call["url"] == "https://erp.example/api/method/upload_file"
    assert call["data"] == {"doctype": "Client Request", "docname": "REQ-1"}
    assert call["files"]["file"] == ("a.txt", b"abc", "application/octet-stream")

    responses.append(FakeResponse(payload={"message": {}}))
    with pytest.raises(ERPClientError):
        erp.upload_file(file_bytes=b"", filename="b", content_type=None, doctype="Client Request", docname="REQ-1")


def test_status_updates_use_put(erp, calls):
    recorded, responses = calls
    responses.append(FakeResponse(payload={"data": {}}))
    erp.update_client_request_status("REQ-2026-0001", "submitted")
    assert recorded[0]["method"] == "PUT"
    assert recorded[0]["url"] == "https://erp.example/api/resource/Client%20Request/REQ-2026-0001"
    assert recorded[0]["json"] == {"status": "submitted"}


def test_mock_client_copies_are_isolated():
    a, b = MockERPClient(tier_field="lucien_tier"), MockERPClient()
    a.update_client_request_status("REQ-2026-0001", "accepted")
    assert b.fetch_client_request_by_id("REQ-2026-0001")["status"] == "pending"
    assert a.fetch_project_by_id("PRJ-001")["lucien_tier"] == "BLUEPRINT"
    assert b.fetch_project_by_id("PRJ-001")["tier"] == "BLUEPRINT"
