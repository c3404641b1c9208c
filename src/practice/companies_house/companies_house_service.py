"""
Companies House Service

Imports companies from the public register as clients, keeps them in sync
and maps register data (officers, filing deadlines) onto parties and
compliance items.
"""

import asyncio
import logging
from datetime import datetime, date
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID

from .ch_client import CompaniesHouseClient, get_companies_house_client
from ..clients.client_models import Address, Client, ClientStatus, ClientType
from ..clients.client_service import ClientService, get_client_service
from ..compliance.compliance_models import ComplianceSource, ComplianceStatus, ComplianceType
from ..compliance.compliance_service import (
    ComplianceService,
    compliance_type_for_service_kind,
    get_compliance_service,
)
from ..dates import parse_date
from ..people.party_service import PartyService, get_party_service
from ..people.person_models import PartyRole
from ..services.service_models import ServiceFrequency, ServiceStatus
from ..services.service_manager import ServiceManager, get_service_manager
from security.api_errors import not_found, rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

OFFICER_SOURCE = "CH_OFFICER"
RECENT_FILINGS = 10


# =============================================================================
# MAPPING HELPERS
# =============================================================================

def map_company_type(company_type: Optional[str]) -> ClientType:
    """Client type for a Companies House company type string."""
    value = (company_type or "").lower()
    if "llp" in value or "limited liability partnership" in value:
        return ClientType.LLP
    if "partnership" in value:
        return ClientType.PARTNERSHIP
    if "sole" in value or "trader" in value:
        return ClientType.SOLE_TRADER
    if "individual" in value:
        return ClientType.INDIVIDUAL
    return ClientType.COMPANY


def map_officer_role(officer_role: Optional[str]) -> PartyRole:
    value = (officer_role or "").lower()
    if "director" in value:
        return PartyRole.DIRECTOR
    if "secretary" in value:
        return PartyRole.SECRETARY
    if "member" in value:
        return PartyRole.MEMBER
    if "partner" in value:
        return PartyRole.PARTNER
    if "shareholder" in value:
        return PartyRole.SHAREHOLDER
    return PartyRole.DIRECTOR


def _date(value: Any) -> Optional[date]:
    if not value:
        return None
    return parse_date(value)


def _plain(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return getattr(value, "value", value)


def map_address(data: Optional[Dict[str, Any]]) -> Optional[Address]:
    if not data:
        return None
    return Address(
        line1=" ".join(filter(None, [data.get("premises"), data.get("address_line_1")])) or None,
        line2=data.get("address_line_2"),
        city=data.get("locality"),
        county=data.get("region"),
        postcode=data.get("postal_code"),
        country=data.get("country"),
    )


def client_fields_from_profile(profile: Dict[str, Any]) -> Dict[str, Any]:
    """Client attributes carried by a company profile."""
    accounts = profile.get("accounts") or {}
    confirmation = profile.get("confirmation_statement") or {}
    reference_date = accounts.get("accounting_reference_date") or {}

    fields: Dict[str, Any] = {
        "name": profile.get("company_name"),
        "status": ClientStatus.ACTIVE if profile.get("company_status") == "active" else ClientStatus.INACTIVE,
        "registered_number": profile.get("company_number"),
        "incorporation_date": _date(profile.get("date_of_creation")),
        "address": map_address(profile.get("registered_office_address")),
        "accounts_last_made_up_to": _date((accounts.get("last_accounts") or {}).get("made_up_to")),
        "accounts_next_due": _date(accounts.get("next_due")),
        "confirmation_last_made_up_to": _date(confirmation.get("last_made_up_to")),
        "confirmation_next_due": _date(confirmation.get("next_due")),
    }
    if reference_date.get("day") and reference_date.get("month"):
        fields["accounts_accounting_reference_day"] = int(reference_date["day"])
        fields["accounts_accounting_reference_month"] = int(reference_date["month"])
    return {k: v for k, v in fields.items() if v is not None}


def officer_key(officer: Dict[str, Any]) -> str:
    appointments = ((officer.get("links") or {}).get("officer") or {}).get("appointments")
    if appointments:
        return str(appointments)
    name = str(officer.get("name") or "").strip().lower()
    return f"{name}::{officer.get('appointed_on') or ''}"


def merge_officer_snapshots(existing: List[Dict[str, Any]], latest: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Union of previously seen and current officers.

    Officers missing from the latest list, or carrying ``resigned_on``, are
    marked ``terminated``.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for officer in existing or []:
        merged[officer_key(officer)] = dict(officer)
    latest_keys = set()
    for officer in latest or []:
        key = officer_key(officer)
        latest_keys.add(key)
        merged[key] = {**merged.get(key, {}), **officer}

    for key, officer in merged.items():
        officer["terminated"] = bool(officer.get("resigned_on")) or key not in latest_keys
    return list(merged.values())


class CompaniesHouseService:
    """
    Bridge between the Companies House register and practice data.

    Provides:
    - Company import as a client (with officers and filing deadlines)
    - Sync of an existing client with a stored register snapshot
    - Field-level comparison between client and register
    """

    def __init__(
        self,
        ch_client: Optional[CompaniesHouseClient] = None,
        client_service: Optional[ClientService] = None,
        party_service: Optional[PartyService] = None,
        compliance_service: Optional[ComplianceService] = None,
        service_manager: Optional[ServiceManager] = None,
    ):
        self.ch = ch_client or get_companies_house_client()
        self.clients = client_service or get_client_service()
        self.parties = party_service or get_party_service()
        self.compliance = compliance_service or get_compliance_service()
        self.services = service_manager or get_service_manager()
        self.changes = ChangeLogger("companies_house")

    # =========================================================================
    # COMPLIANCE
    # =========================================================================

    def _matching_service_id(self, client_id: UUID, compliance_type: ComplianceType) -> Optional[UUID]:
        for service in self.services.list_by_client(client_id):
            if service.status == ServiceStatus.ACTIVE and compliance_type_for_service_kind(service.kind) == compliance_type:
                return service.id
        return None

    def _filing_items(self, profile: Dict[str, Any]) -> List[Tuple[ComplianceType, str, date, bool, Optional[str]]]:
        accounts = profile.get("accounts") or {}
        confirmation = profile.get("confirmation_statement") or {}
        items = []
        if accounts.get("next_due"):
            items.append((
                ComplianceType.ANNUAL_ACCOUNTS,
                "Annual Accounts Filing",
                _date(accounts["next_due"]),
                bool(accounts.get("overdue")),
                accounts.get("next_made_up_to"),
            ))
        if confirmation.get("next_due"):
            items.append((
                ComplianceType.CONFIRMATION_STATEMENT,
                "Confirmation Statement Filing",
                _date(confirmation["next_due"]),
                bool(confirmation.get("overdue")),
                confirmation.get("next_made_up_to") or confirmation.get("last_made_up_to"),
            ))
        return items

    def upsert_compliance_items(self, client: Client, profile: Dict[str, Any]) -> Tuple[int, int]:
        """Create or refresh the register-driven filing items. Returns (created, updated)."""
        created = updated = 0
        existing = self.compliance.list(client_id=client.id, source=ComplianceSource.COMPANIES_HOUSE)

        for compliance_type, description, due, overdue, period in self._filing_items(profile):
            status = ComplianceStatus.OVERDUE if overdue else ComplianceStatus.PENDING
            service_id = self._matching_service_id(client.id, compliance_type)
            current = next(
                (i for i in existing if i.type == compliance_type and i.status != ComplianceStatus.FILED),
                None,
            )
            if current:
                self.compliance.update(current.id, {
                    "due_date": due,
                    "status": status,
                    "period": period,
                    "service_id": service_id or current.service_id,
                })
                updated += 1
            else:
                self.compliance.create(
                    client_id=client.id,
                    type=compliance_type,
                    due_date=due,
                    description=description,
                    service_id=service_id,
                    status=status,
                    source=ComplianceSource.COMPANIES_HOUSE,
                    reference=profile.get("company_number"),
                    period=period,
                )
                created += 1
            if service_id:
                logger.info(f"Linked {compliance_type.value} for {client.ref} to service {service_id}")
        return created, updated

    # =========================================================================
    # IMPORT
    # =========================================================================

    def _import_officers(
        self,
        client: Client,
        officers: List[Dict[str, Any]],
        portfolio_code: int,
        create_officer_clients: bool,
        self_assessment_fee: Optional[float],
    ) -> Tuple[int, int]:
        imported = officer_clients = 0
        for officer in officers:
            name = officer.get("name") or ""
            if not name.strip():
                continue
            source_id = ((officer.get("links") or {}).get("officer") or {}).get("appointments") or name
            self.parties.upsert_from_external(
                client_id=client.id,
                source=OFFICER_SOURCE,
                source_id=source_id,
                name=name,
                role=map_officer_role(officer.get("officer_role")),
                appointed_at=_date(officer.get("appointed_on")),
                resigned_at=_date(officer.get("resigned_on")),
            )
            imported += 1

            natural_person = "corporate" not in (officer.get("officer_role") or "").lower()
            if create_officer_clients and natural_person and not officer.get("resigned_on"):
                individual = self.clients.create(
                    name=name,
                    type=ClientType.INDIVIDUAL,
                    portfolio_code=portfolio_code,
                    status=ClientStatus.ACTIVE,
                )
                if self_assessment_fee and self_assessment_fee > 0:
                    self.services.create(
                        client_id=individual.id,
                        kind="Self Assessment",
                        frequency=ServiceFrequency.ANNUAL,
                        fee=self_assessment_fee,
                        description="Personal Tax Return",
                    )
                officer_clients += 1
        return imported, officer_clients

    async def import_company(
        self,
        company_number: str,
        portfolio_code: int = 1,
        import_officers: bool = True,
        create_compliance_items: bool = True,
        create_officer_clients: bool = False,
        self_assessment_fee: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Create or refresh a client from the register."""
        number = (company_number or "").strip().upper()
        if not number:
            raise rule_violation("Company number is required")

        profile = await self.ch.get_company(number)
        officers = await self.ch.get_officers(number) if import_officers else []

        fields = client_fields_from_profile(profile)
        fields["companies_house_data"] = {
            "last_synced": datetime.utcnow().isoformat(),
            "profile": profile,
        }
        existing = self.clients.get_by_registered_number(profile.get("company_number") or number)
        if existing:
            client = self.clients.update(existing.id, fields)
            created = False
        else:
            name = fields.pop("name", None) or number
            status = fields.pop("status", ClientStatus.ACTIVE)
            address = fields.pop("address", None)
            client = self.clients.create(
                name=name,
                type=map_company_type(profile.get("type")),
                portfolio_code=portfolio_code,
                status=status,
                address=address,
                **fields,
            )
            created = True

        officers_imported = officer_clients = 0
        if import_officers:
            officers_imported, officer_clients = self._import_officers(
                client, officers, portfolio_code, create_officer_clients, self_assessment_fee,
            )

        items_created = 0
        if create_compliance_items:
            items_created, _ = self.upsert_compliance_items(client, profile)

        logger.info(
            f"Imported company {number} as client {client.ref} "
            f"({'created' if created else 'updated'}, {officers_imported} officers)"
        )
        self.changes.record("imported", client.id, company_number=number, created=created)
        return {
            "client": client,
            "created": created,
            "officers_imported": officers_imported,
            "officer_clients_created": officer_clients,
            "compliance_items_created": items_created,
        }

    # =========================================================================
    # SYNC
    # =========================================================================

    def _client_with_number(self, client_id_or_ref: str) -> Client:
        client = self.clients.resolve(str(client_id_or_ref))
        if not client:
            raise not_found("Client", client_id_or_ref)
        if not client.registered_number:
            raise rule_violation("Client does not have a registered company number", client_id=str(client.id))
        return client

    async def sync_company_data(self, client_id_or_ref: str) -> Dict[str, Any]:
        client = self._client_with_number(client_id_or_ref)
        number = client.registered_number

        profile, officers, filings, pscs = await asyncio.gather(
            self.ch.get_company(number),
            self.ch.get_officers(number),
            self.ch.get_filing_history(number),
            self.ch.get_persons_with_significant_control(number),
            return_exceptions=True,
        )
        if isinstance(profile, BaseException):
            logger.error(f"Sync failed for {client.ref}: company profile unavailable ({profile})")
            raise profile

        warnings = []
        if isinstance(officers, BaseException):
            warnings.append(f"Officers unavailable: {officers}")
            officers = []
        if isinstance(filings, BaseException):
            warnings.append(f"Filing history unavailable: {filings}")
            filings = {"items": []}
        if isinstance(pscs, BaseException):
            warnings.append(f"PSCs unavailable: {pscs}")
            pscs = {"items": []}
        for warning in warnings:
            logger.warning(f"Sync {client.ref}: {warning}")

        fields = client_fields_from_profile(profile)
        fields.pop("registered_number", None)
        changes = []
        for key, value in fields.items():
            if getattr(client, key) != value:
                changes.append(key)

        previous = (client.companies_house_data or {}).get("officers") or []
        fields["companies_house_data"] = {
            "last_synced": datetime.utcnow().isoformat(),
            "profile": profile,
            "officers": merge_officer_snapshots(previous, officers),
            "recent_filings": (filings.get("items") or [])[:RECENT_FILINGS],
            "pscs": pscs.get("items") or [],
        }
        client = self.clients.update(client.id, fields)

        created, updated = self.upsert_compliance_items(client, profile)
        if created:
            changes.append(f"{created} compliance item(s) created")
        if updated:
            changes.append(f"{updated} compliance item(s) updated")

        logger.info(f"Synced company data for {client.ref}: {len(changes)} change(s)")
        self.changes.record("synced", client.id, changes=changes)
        return {
            "message": f"Company data synced for {client.name}",
            "client": client,
            "changes": changes,
            "warnings": warnings,
        }

    async def compare_client_with_company(self, client_id_or_ref: str) -> List[Dict[str, Any]]:
        """Fields where the client record differs from the register."""
        client = self._client_with_number(client_id_or_ref)
        profile = await self.ch.get_company(client.registered_number)
        register = client_fields_from_profile(profile)

        diffs = []
        for key in (
            "name", "status", "registered_number", "incorporation_date",
            "accounts_next_due", "confirmation_next_due",
        ):
            client_value = getattr(client, key)
            ch_value = register.get(key)
            if ch_value is not None and client_value != ch_value:
                diffs.append({
                    "field": key,
                    "client_value": _plain(client_value),
                    "companies_house_value": _plain(ch_value),
                })
        return diffs


_companies_house_service: Optional[CompaniesHouseService] = None


def get_companies_house_service() -> CompaniesHouseService:
    global _companies_house_service
    if _companies_house_service is None:
        _companies_house_service = CompaniesHouseService()
    return _companies_house_service
