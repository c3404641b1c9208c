"""
API tests for the practice endpoints.

Exercises the routers through the FastAPI app: response envelopes, error
shapes and the main flows of each area.
"""

from datetime import date, timedelta

import httpx
import pytest

from practice.companies_house.ch_client import TRANSIENT_ERRORS, CompaniesHouseClient
from practice.companies_house.companies_house_service import get_companies_house_service
from resilience.retry import RetryConfig

API = "/api/v1"

PDF_BYTES = b"%PDF-1.4\n%%EOF"


def future(days):
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture
def api_client(client):
    """Create a client through the API and return its JSON."""
    resp = client.post(f"{API}/clients", json={
        "name": "Acme Widgets Ltd",
        "registered_number": "01234567",
        "main_email": "office@acmewidgets.co.uk",
    })
    assert resp.status_code == 200
    return resp.json()["client"]


# =============================================================================
# HEALTH AND ERROR SHAPES
# =============================================================================

class TestHealthAndErrors:
    """Envelope and error response format."""

    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["records"]["clients"] == 0
        assert body["records"]["templates"] == 3

    def test_success_envelope(self, client, api_client):
        body = client.get(f"{API}/clients/{api_client['ref']}").json()
        assert body["success"] is True
        assert "timestamp" in body
        assert body["client"]["id"] == api_client["id"]

    def test_not_found(self, client):
        resp = client.get(f"{API}/clients/9Z999")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] is True
        assert body["code"] == "RESOURCE_NOT_FOUND"
        assert body["message"] == "Client not found"
        assert body["request_id"]

    def test_business_rule_violation(self, client, api_client):
        client.post(f"{API}/services", json={"client_id": api_client["id"], "kind": "Bookkeeping"})
        resp = client.delete(f"{API}/clients/{api_client['id']}")
        assert resp.status_code == 400
        assert resp.json()["code"] == "BUSINESS_RULE_VIOLATION"

    def test_request_validation(self, client):
        resp = client.post(f"{API}/clients", json={"portfolio_code": 0})
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert {fe["field"] for fe in body["field_errors"]} >= {"name", "portfolio_code"}

    def test_invalid_enum(self, client):
        resp = client.get(f"{API}/clients", params={"status": "DORMANT"})
        assert resp.status_code == 400
        assert "Must be one of" in resp.json()["message"]

    def test_invalid_uuid(self, client):
        resp = client.get(f"{API}/tasks/not-a-uuid")
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"


# =============================================================================
# CLIENTS, PEOPLE AND PARTIES
# =============================================================================

class TestClientEndpoints:
    """Client register endpoints."""

    def test_create_and_list(self, client, api_client):
        assert api_client["ref"] == "1A001"
        body = client.get(f"{API}/clients", params={"search": "acme"}).json()
        assert body["total"] == 1

    def test_change_ref_and_portfolio(self, client, api_client):
        resp = client.put(f"{API}/clients/{api_client['id']}/ref", json={"ref": "1A050"})
        assert resp.json()["client"]["ref"] == "1A050"

        resp = client.put(f"{API}/clients/1A050/portfolio", json={"portfolio_code": 4})
        assert resp.json()["client"]["ref"] == "4A001"

    def test_cascade_delete(self, client, api_client):
        client.post(f"{API}/services", json={"client_id": api_client["id"], "kind": "Annual Accounts"})
        resp = client.delete(f"{API}/clients/{api_client['id']}", params={"cascade": "true"})
        assert resp.status_code == 200
        assert resp.json()["removed"]["services"] == 1
        assert client.get(f"{API}/clients/{api_client['id']}").status_code == 404

    def test_csv_import(self, client):
        csv_text = "Company Name,Company Number,Email\nApex Ltd,07654321,a@apex.co.uk\n,123,\n"
        resp = client.post(
            f"{API}/clients/import/csv",
            files={"file": ("clients.csv", csv_text.encode(), "text/csv")},
            data={"default_portfolio": "2"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["created"] == 1
        assert body["clients"][0]["ref"] == "2A001"
        assert len(body["errors"]) == 1

    def test_create_full(self, client):
        resp = client.post(f"{API}/clients/create-full", json={
            "client": {"name": "Bright Ideas Ltd"},
            "directors": [{"first_name": "Jane", "last_name": "Doe", "ownership_percent": 100}],
            "services": [{"kind": "Annual Accounts", "fee": 900, "next_due": future(30)}],
            "generate_tasks": True,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["client"]["ref"] == "1B001"
        assert body["directors"][0]["party"]["party_ref"] == "1B001A"
        assert body["tasks_generated"] > 0

    def test_people_and_parties(self, client, api_client):
        person = client.post(f"{API}/clients/people", json={"first_name": "Jane", "last_name": "Doe"}).json()["person"]
        assert person["ref"] == "P001"

        party = client.post(f"{API}/clients/parties", json={
            "client_id": api_client["id"],
            "person_id": person["id"],
            "role": "director",
            "primary_contact": True,
        }).json()["party"]
        assert party["party_ref"] == "1A001A"

        contact = client.get(f"{API}/clients/{api_client['id']}/primary-contact").json()["primary_contact"]
        assert contact["name"] == "Jane Doe"


# =============================================================================
# SERVICES, TASKS AND COMPLIANCE
# =============================================================================

class TestWorkflowEndpoints:
    """Services drive compliance items and tasks."""

    def test_service_creates_compliance_item(self, client, api_client):
        resp = client.post(f"{API}/services", json={
            "client_id": api_client["id"],
            "kind": "VAT Returns",
            "frequency": "quarterly",
            "fee": 150,
            "next_due": future(20),
        })
        body = resp.json()
        assert body["service"]["annualized"] == 600.0
        assert body["compliance_item"]["type"] == "VAT_RETURN"

    def test_compliance_opt_out(self, client, api_client):
        body = client.post(f"{API}/services", json={
            "client_id": api_client["id"], "kind": "VAT Returns", "create_compliance": False,
        }).json()
        assert body["compliance_item"] is None

    def test_generate_tasks_and_dashboard(self, client, api_client):
        service = client.post(f"{API}/services", json={
            "client_id": api_client["id"], "kind": "Annual Accounts", "next_due": future(45),
        }).json()["service"]

        resp = client.post(f"{API}/tasks/generate/service/{service['id']}")
        assert resp.status_code == 200
        tasks = client.get(f"{API}/tasks", params={"service_id": service["id"]}).json()
        assert tasks["total"] == 4

        alerts = client.get(f"{API}/tasks/alerts/dashboard")
        assert alerts.status_code == 200

    def test_task_lifecycle(self, client):
        task = client.post(f"{API}/tasks", json={"title": "Chase bank statements"}).json()["task"]
        resp = client.put(f"{API}/tasks/{task['id']}/status", json={"status": "completed"})
        assert resp.json()["task"]["completed_at"] is not None
        assert client.delete(f"{API}/tasks/{task['id']}").status_code == 200
        assert client.get(f"{API}/tasks/{task['id']}").status_code == 404

    def test_overdue_compliance_tasks(self, client, api_client):
        item = client.post(f"{API}/compliance", json={
            "client_id": api_client["id"], "type": "CT600", "due_date": future(-3),
        }).json()["item"]

        result = client.post(f"{API}/compliance/create-overdue-tasks").json()
        assert result["created"] == 1
        related = client.get(f"{API}/compliance/{item['id']}/tasks").json()
        assert len(related["tasks"]) == 1

        filed = client.put(f"{API}/compliance/{item['id']}/filed").json()["item"]
        assert filed["status"] == "FILED"


# =============================================================================
# COMPANIES HOUSE
# =============================================================================

@pytest.fixture
def mock_register():
    """Swap the Companies House transport for a canned register."""
    profile = {
        "company_number": "01234567",
        "company_name": "ACME WIDGETS LIMITED",
        "company_status": "active",
        "type": "ltd",
        "accounts": {"next_due": future(100)},
    }

    def handler(request):
        path = request.url.path
        if path == "/company/01234567":
            return httpx.Response(200, json=profile)
        if path.startswith("/company/01234567/"):
            return httpx.Response(200, json={"items": []})
        return httpx.Response(404)

    service = get_companies_house_service()
    original = service.ch
    service.ch = CompaniesHouseClient(
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        retry_config=RetryConfig(max_attempts=1, base_delay=0, jitter=0, retryable_exceptions=TRANSIENT_ERRORS),
    )
    yield
    service.ch = original


class TestCompaniesHouseEndpoints:
    """Register lookups, import and sync."""

    def test_import(self, client, mock_register):
        resp = client.post(f"{API}/companies-house/import", json={"company_number": "01234567"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["created"] is True
        assert body["client"]["name"] == "ACME WIDGETS LIMITED"
        assert body["compliance_items_created"] == 1

    def test_unknown_company(self, client, mock_register):
        resp = client.get(f"{API}/companies-house/company/99999999")
        assert resp.status_code == 404
        assert resp.json()["code"] == "EXTERNAL_NOT_FOUND"

    def test_sync_and_compare_by_ref(self, client, api_client, mock_register):
        sync = client.post(f"{API}/companies-house/sync/{api_client['ref']}").json()
        assert "name" in sync["changes"]
        compare = client.get(f"{API}/companies-house/compare/{api_client['ref']}").json()
        assert compare["in_sync"] is True

    def test_not_configured(self, client, api_client):
        service = get_companies_house_service()
        original = service.ch
        service.ch = CompaniesHouseClient(api_key="")
        try:
            resp = client.post(f"{API}/companies-house/sync/{api_client['id']}")
        finally:
            service.ch = original
        assert resp.status_code == 400
        assert resp.json()["code"] == "EXTERNAL_NOT_CONFIGURED"


# =============================================================================
# DOCUMENTS, LETTERS AND TAX
# =============================================================================

class TestDocumentEndpoints:
    """Upload, download and preview."""

    def test_upload_download_preview(self, client, api_client):
        resp = client.post(
            f"{API}/documents/upload",
            files={"file": ("return.pdf", PDF_BYTES, "application/pdf")},
            data={"client_id": api_client["id"], "category": "tax"},
        )
        assert resp.status_code == 200
        document = resp.json()["data"]
        assert document["category"] == "TAX"

        download = client.get(f"{API}/documents/{document['id']}/download")
        assert download.content == PDF_BYTES
        assert download.headers["content-disposition"].startswith("attachment")

        preview = client.get(f"{API}/documents/{document['id']}/preview")
        assert preview.headers["content-disposition"].startswith("inline")

    def test_list_envelope(self, client, api_client):
        client.post(
            f"{API}/documents/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            data={"client_id": api_client["id"]},
        )

        for path in ("/documents", f"/documents/client/{api_client['id']}", "/documents/search?q=notes"):
            body = client.get(f"{API}{path}").json()
            assert {"success", "data", "total"} <= set(body)
            assert body["total"] == 1
            assert body["data"][0]["original_name"] == "notes.txt"

        stats = client.get(f"{API}/documents/stats").json()
        assert stats["data"]["total_documents"] == 1

    def test_upload_rejects_tags(self, client):
        resp = client.post(
            f"{API}/documents/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            data={"tags": "vat"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "BUSINESS_RULE_VIOLATION"

    def test_upload_rejects_spoofed_pdf(self, client):
        resp = client.post(
            f"{API}/documents/upload",
            files={"file": ("fake.pdf", b"MZ\x90\x00", "application/pdf")},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_MALICIOUS_CONTENT"


class TestLetterEndpoints:
    """Templates and generated letters."""

    def test_template_preview(self, client):
        template = client.post(f"{API}/templates", json={
            "name": "Chaser", "content": "Dear {{ contact_name }}",
        }).json()["template"]
        resp = client.post(f"{API}/templates/{template['id']}/preview", json={"placeholder_values": {}})
        assert resp.json()["preview"]["content"] == "Dear [contact_name]"

    def test_template_syntax_error(self, client):
        resp = client.post(f"{API}/templates", json={"name": "Broken", "content": "{% if %}"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_INVALID_FORMAT"

    def test_generate_and_download(self, client, api_client):
        templates = client.get(f"{API}/templates", params={"category": "ENGAGEMENT"}).json()["templates"]
        letter = client.post(f"{API}/letters/generate", json={
            "template_id": templates[0]["id"],
            "client_id": api_client["id"],
            "output_formats": ["pdf", "docx"],
        }).json()["letter"]
        assert set(letter["document_ids"]) == {"PDF", "DOCX"}

        resp = client.get(f"{API}/letters/{letter['id']}/download", params={"format": "docx"})
        assert resp.status_code == 200
        assert resp.content.startswith(b"PK")
        assert client.get(f"{API}/letters/{letter['id']}").json()["letter"]["download_count"] == 1


class TestTaxEndpoints:
    """Tax calculations."""

    def test_tax_years(self, client):
        body = client.get(f"{API}/tax-calculations/tax-years").json()
        assert "2024-25" in body["supported"]

    def test_corporation_tax(self, client):
        body = client.post(f"{API}/tax-calculations/calculate-corporation-tax", json={
            "profit": 100000, "tax_year": "2024-25",
        }).json()
        assert body["result"]["corporation_tax"] == 22750.00

    def test_optimise_saved_for_client(self, client, api_client):
        body = client.post(f"{API}/tax-calculations/optimize-salary", json={
            "profit": 60000, "tax_year": "2024-25", "client_id": api_client["id"],
        }).json()
        assert body["calculation_id"]
        latest = client.get(f"{API}/tax-calculations/client/{api_client['id']}/latest").json()
        assert latest["calculation"]["id"] == body["calculation_id"]

    def test_profit_must_be_positive(self, client):
        resp = client.post(f"{API}/tax-calculations/optimize-salary", json={"profit": 0})
        assert resp.status_code == 422

    def test_unsupported_year(self, client):
        resp = client.post(f"{API}/tax-calculations/calculate-income-tax", json={
            "income": 50000, "tax_year": "1999-00",
        })
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_OUT_OF_RANGE"
