"""Tests for the Companies House client and import / sync service."""

import base64
from datetime import date, timedelta

import httpx
import pytest

from practice.clients.client_models import ClientStatus, ClientType
from practice.clients.client_service import get_client_service
from practice.companies_house.ch_client import (
    TRANSIENT_ERRORS,
    CompaniesHouseAuthError,
    CompaniesHouseClient,
    CompaniesHouseError,
    CompaniesHouseNotConfigured,
    CompaniesHouseNotFound,
)
from practice.companies_house.companies_house_service import (
    CompaniesHouseService,
    client_fields_from_profile,
    map_company_type,
    map_officer_role,
    merge_officer_snapshots,
)
from practice.compliance.compliance_models import ComplianceSource, ComplianceStatus, ComplianceType
from practice.compliance.compliance_service import get_compliance_service
from practice.people.party_service import get_party_service
from practice.people.person_models import PartyRole
from practice.services.service_manager import get_service_manager
from resilience.retry import RetryConfig
from security.api_errors import APIError, ErrorCode

FAST_RETRY = RetryConfig(max_attempts=2, base_delay=0, jitter=0, retryable_exceptions=TRANSIENT_ERRORS)

ACCOUNTS_DUE = date.today() + timedelta(days=120)
CONFIRMATION_DUE = date.today() + timedelta(days=40)


def company_profile(number="01234567", status="active", name="ACME WIDGETS LIMITED"):
    return {
        "company_number": number,
        "company_name": name,
        "company_status": status,
        "type": "ltd",
        "date_of_creation": "2015-04-01",
        "registered_office_address": {
            "premises": "1",
            "address_line_1": "High Street",
            "locality": "Leeds",
            "postal_code": "LS1 1AA",
        },
        "accounts": {
            "accounting_reference_date": {"day": "31", "month": "03"},
            "last_accounts": {"made_up_to": "2024-03-31"},
            "next_due": ACCOUNTS_DUE.isoformat(),
            "next_made_up_to": "2025-03-31",
            "overdue": False,
        },
        "confirmation_statement": {
            "last_made_up_to": "2024-06-01",
            "next_due": CONFIRMATION_DUE.isoformat(),
            "overdue": False,
        },
    }


OFFICERS = {
    "items": [
        {
            "name": "DOE, Jane",
            "officer_role": "director",
            "appointed_on": "2015-04-01",
            "links": {"officer": {"appointments": "/officers/abc/appointments"}},
        },
        {
            "name": "ROE, John",
            "officer_role": "secretary",
            "appointed_on": "2015-04-01",
            "resigned_on": "2020-01-01",
            "links": {"officer": {"appointments": "/officers/def/appointments"}},
        },
    ]
}


def register(profile=None, officers=None, failing=()):
    """Mock transport serving a single company."""
    profile = profile or company_profile()
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls.append(path)
        for fragment in failing:
            if path.endswith(fragment):
                return httpx.Response(503, json={"error": "unavailable"})
        number = profile["company_number"]
        if path == f"/company/{number}":
            return httpx.Response(200, json=profile)
        if path == f"/company/{number}/officers":
            return httpx.Response(200, json=officers or OFFICERS)
        if path == f"/company/{number}/filing-history":
            return httpx.Response(200, json={"items": [{"type": "AA", "date": "2024-12-01"}]})
        if path == f"/company/{number}/persons-with-significant-control":
            return httpx.Response(200, json={"items": [{"name": "Mrs Jane Doe"}]})
        if path == "/search/companies":
            return httpx.Response(200, json={"items": [{"company_number": number, "title": profile["company_name"]}]})
        return httpx.Response(404, json={"errors": [{"error": "company-profile-not-found"}]})

    return httpx.MockTransport(handler), calls


def make_service(transport):
    ch = CompaniesHouseClient(api_key="test-key", transport=transport, retry_config=FAST_RETRY)
    return CompaniesHouseService(ch_client=ch)


# =============================================================================
# CLIENT
# =============================================================================

class TestCompaniesHouseClient:
    """HTTP behaviour of the REST client."""

    async def test_basic_auth_with_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=company_profile())

        ch = CompaniesHouseClient(api_key="test-key", transport=httpx.MockTransport(handler), retry_config=FAST_RETRY)
        profile = await ch.get_company("01234567")

        assert profile["company_name"] == "ACME WIDGETS LIMITED"
        assert seen["auth"] == "Basic " + base64.b64encode(b"test-key:").decode()

    async def test_search_returns_items(self):
        transport, _ = register()
        ch = CompaniesHouseClient(api_key="k", transport=transport, retry_config=FAST_RETRY)
        results = await ch.search_companies("acme")
        assert results[0]["company_number"] == "01234567"

    async def test_not_configured(self):
        ch = CompaniesHouseClient(api_key="", retry_config=FAST_RETRY)
        with pytest.raises(CompaniesHouseNotConfigured) as exc:
            await ch.get_company("01234567")
        assert exc.value.code == ErrorCode.EXTERNAL_NOT_CONFIGURED

    async def test_not_found(self):
        transport, _ = register()
        ch = CompaniesHouseClient(api_key="k", transport=transport, retry_config=FAST_RETRY)
        with pytest.raises(CompaniesHouseNotFound) as exc:
            await ch.get_company("99999999")
        assert exc.value.status_code == 404

    async def test_auth_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401))
        ch = CompaniesHouseClient(api_key="bad", transport=transport, retry_config=FAST_RETRY)
        with pytest.raises(CompaniesHouseAuthError):
            await ch.get_company("01234567")

    async def test_server_errors_retried_then_raised(self):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            return httpx.Response(503)

        ch = CompaniesHouseClient(api_key="k", transport=httpx.MockTransport(handler), retry_config=FAST_RETRY)
        with pytest.raises(CompaniesHouseError) as exc:
            await ch.get_company("01234567")
        assert len(attempts) == 2
        assert exc.value.upstream_status == 503

    async def test_transient_error_recovers(self):
        responses = [httpx.Response(429), httpx.Response(200, json=company_profile())]

        ch = CompaniesHouseClient(
            api_key="k",
            transport=httpx.MockTransport(lambda request: responses.pop(0)),
            retry_config=FAST_RETRY,
        )
        profile = await ch.get_company("01234567")
        assert profile["company_number"] == "01234567"


# =============================================================================
# MAPPING
# =============================================================================

class TestMapping:
    """Register data to practice fields."""

    def test_company_types(self):
        assert map_company_type("llp") == ClientType.LLP
        assert map_company_type("ltd") == ClientType.COMPANY
        assert map_company_type(None) == ClientType.COMPANY

    def test_officer_roles(self):
        assert map_officer_role("corporate-director") == PartyRole.DIRECTOR
        assert map_officer_role("secretary") == PartyRole.SECRETARY
        assert map_officer_role("llp-designated-member") == PartyRole.MEMBER

    def test_profile_fields(self):
        fields = client_fields_from_profile(company_profile(status="dissolved"))
        assert fields["status"] == ClientStatus.INACTIVE
        assert fields["incorporation_date"] == date(2015, 4, 1)
        assert fields["address"].line1 == "1 High Street"
        assert fields["accounts_accounting_reference_month"] == 3
        assert fields["confirmation_next_due"] == CONFIRMATION_DUE

    def test_merge_officer_snapshots(self):
        previous = [{"name": "OLD, Officer", "appointed_on": "2010-01-01"}]
        merged = merge_officer_snapshots(previous, OFFICERS["items"])
        by_name = {o["name"]: o for o in merged}
        assert by_name["OLD, Officer"]["terminated"] is True
        assert by_name["ROE, John"]["terminated"] is True
        assert by_name["DOE, Jane"]["terminated"] is False


# =============================================================================
# IMPORT AND SYNC
# =============================================================================

class TestImport:
    """Creating clients from the register."""

    async def test_import_creates_client_officers_and_compliance(self):
        transport, _ = register()
        result = await make_service(transport).import_company("01234567", portfolio_code=2)

        client = result["client"]
        assert result["created"] is True
        assert client.ref == "2A001"
        assert client.name == "ACME WIDGETS LIMITED"
        assert client.accounts_next_due == ACCOUNTS_DUE
        assert result["officers_imported"] == 2
        assert result["compliance_items_created"] == 2

        parties = get_party_service().list_by_client(client.id)
        assert [p.role for p in parties] == [PartyRole.DIRECTOR, PartyRole.SECRETARY]
        assert parties[1].is_active is False

        items = get_compliance_service().list(client_id=client.id)
        assert {i.type for i in items} == {ComplianceType.ANNUAL_ACCOUNTS, ComplianceType.CONFIRMATION_STATEMENT}
        assert all(i.source == ComplianceSource.COMPANIES_HOUSE for i in items)

    async def test_reimport_updates_existing(self):
        transport, _ = register()
        service = make_service(transport)
        first = await service.import_company("01234567")
        second = await service.import_company("01234567")

        assert second["created"] is False
        assert second["client"].id == first["client"].id
        assert second["compliance_items_created"] == 0
        assert len(get_party_service().list_by_client(first["client"].id)) == 2

    async def test_officer_clients_with_self_assessment(self):
        transport, _ = register()
        result = await make_service(transport).import_company(
            "01234567", create_officer_clients=True, self_assessment_fee=350,
        )
        assert result["officer_clients_created"] == 1
        individual = get_client_service().list(type=ClientType.INDIVIDUAL)["clients"][0]
        assert individual.name == "DOE, Jane"
        assert get_service_manager().list(client_id=individual.id)[0].fee == 350

    async def test_compliance_linked_to_matching_service(self, sample_client):
        get_service_manager().create(sample_client.id, "Annual Accounts", fee=600)
        transport, _ = register()
        await make_service(transport).import_company("01234567", import_officers=False)

        item = get_compliance_service().list(client_id=sample_client.id, type=ComplianceType.ANNUAL_ACCOUNTS)[0]
        assert item.service_id is not None


class TestSync:
    """Refreshing an existing client."""

    async def test_sync_updates_snapshot(self, sample_client):
        transport, _ = register()
        result = await make_service(transport).sync_company_data(str(sample_client.id))

        assert "name" in result["changes"]
        assert result["warnings"] == []
        snapshot = sample_client.companies_house_data
        assert snapshot["recent_filings"][0]["type"] == "AA"
        assert snapshot["pscs"][0]["name"] == "Mrs Jane Doe"
        assert len(snapshot["officers"]) == 2

    async def test_sync_survives_partial_failure(self, sample_client):
        transport, _ = register(failing=("/filing-history",))
        result = await make_service(transport).sync_company_data("1A001")
        assert len(result["warnings"]) == 1
        assert result["warnings"][0].startswith("Filing history unavailable")

    async def test_sync_requires_company_number(self):
        client = get_client_service().create(name="Jane Smith", type=ClientType.INDIVIDUAL)
        transport, calls = register()
        with pytest.raises(APIError) as exc:
            await make_service(transport).sync_company_data(str(client.id))
        assert exc.value.code == ErrorCode.BUSINESS_RULE_VIOLATION
        assert calls == []

    async def test_sync_marks_overdue_items(self, sample_client):
        profile = company_profile()
        profile["accounts"]["overdue"] = True
        transport, _ = register(profile=profile)
        await make_service(transport).sync_company_data(str(sample_client.id))
        item = get_compliance_service().list(client_id=sample_client.id, type=ComplianceType.ANNUAL_ACCOUNTS)[0]
        assert item.status == ComplianceStatus.OVERDUE

    async def test_compare(self, sample_client):
        transport, _ = register()
        diffs = await make_service(transport).compare_client_with_company("1A001")
        fields = {d["field"]: d for d in diffs}
        assert fields["name"]["client_value"] == "Acme Widgets Ltd"
        assert fields["name"]["companies_house_value"] == "ACME WIDGETS LIMITED"
        assert "registered_number" not in fields
