"""
Client Onboarding

Creates a client together with its directors, services and compliance
tracking in one call.
"""

import logging
from typing import Optional, List, Dict, Any

from .client_models import Address, ClientType
from .client_service import ClientService, get_client_service
from ..compliance.compliance_service import get_compliance_service
from ..people.party_service import get_party_service
from ..people.person_models import PartyRole
from ..people.person_service import get_person_service
from ..services.service_manager import get_service_manager
from ..services.service_models import DEFAULT_SERVICES, INDIVIDUAL_DEFAULT_SERVICES, ServiceFrequency
from ..tasks.task_service import get_task_service
from security.api_errors import APIError, ErrorCode

logger = logging.getLogger(__name__)


class ClientOnboardingService:
    """Full client creation used by the onboarding wizard."""

    def __init__(self, client_service: Optional[ClientService] = None):
        self.clients = client_service or get_client_service()

    def _default_services(self, client_type: ClientType) -> List[Dict[str, Any]]:
        if client_type in (ClientType.INDIVIDUAL, ClientType.SOLE_TRADER):
            return [dict(s) for s in INDIVIDUAL_DEFAULT_SERVICES]
        return [dict(s) for s in DEFAULT_SERVICES]

    def _create_directors(self, client_id, directors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        people = get_person_service()
        parties = get_party_service()

        flagged = any(d.get("primary_contact") for d in directors)
        created = []
        for index, director in enumerate(directors):
            person = people.find_by_email(director.get("email"))
            if person is None:
                person = people.create(
                    first_name=director.get("first_name") or "",
                    last_name=director.get("last_name") or "",
                    email=director.get("email"),
                    phone=director.get("phone"),
                )
            primary = bool(director.get("primary_contact")) if flagged else index == 0
            party = parties.create(
                client_id=client_id,
                person_id=person.id,
                role=PartyRole.parse(director.get("role") or PartyRole.CONTACT),
                ownership_percent=director.get("ownership_percent"),
                primary_contact=primary,
            )
            created.append({"person": person.to_dict(), "party": party.to_dict()})
        return created

    def _validate_services(self, services: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Normalised service rows; any bad row rejects the whole request."""
        valid = []
        for index, requested in enumerate(services):
            kind = (requested.get("kind") or "").strip()
            if not kind:
                raise APIError(
                    ErrorCode.VALIDATION_MISSING_FIELD,
                    f"Service {index + 1} has no kind",
                    details={"index": index, "field": "kind"},
                )
            raw_frequency = str(requested.get("frequency") or "ANNUAL").upper()
            try:
                frequency = ServiceFrequency(raw_frequency)
            except ValueError:
                raise APIError(
                    ErrorCode.VALIDATION_INVALID_FORMAT,
                    f"Unknown frequency '{raw_frequency}' for service {kind}. "
                    f"Must be one of: {', '.join(f.value for f in ServiceFrequency)}",
                    details={"index": index, "field": "frequency"},
                )
            try:
                fee = float(requested.get("fee") or 0)
            except (TypeError, ValueError):
                raise APIError(
                    ErrorCode.VALIDATION_INVALID_FORMAT,
                    f"Fee for service {kind} is not a number",
                    details={"index": index, "field": "fee"},
                )
            valid.append({**requested, "kind": kind, "frequency": frequency, "fee": fee})
        return valid

    def create_full(
        self,
        client: Dict[str, Any],
        directors: Optional[List[Dict[str, Any]]] = None,
        services: Optional[List[Dict[str, Any]]] = None,
        generate_tasks: bool = False,
    ) -> Dict[str, Any]:
        """
        Create a client with everything it needs on day one.

        With no ``services`` the defaults for the client type are used.
        Services are de-duplicated on kind + frequency.
        """
        requested_services = self._validate_services(services or [])

        fields = dict(client)
        address = fields.pop("address", None)
        if isinstance(address, dict):
            address = Address.from_dict(address)
        new_client = self.clients.create(address=address, **fields)

        directors_created = self._create_directors(new_client.id, directors or [])

        manager = get_service_manager()
        compliance = get_compliance_service()
        seen = set()
        created_services = []
        rows = requested_services or self._validate_services(self._default_services(new_client.type))
        for requested in rows:
            frequency = requested["frequency"]
            key = (requested["kind"].lower(), frequency)
            if key in seen:
                continue
            seen.add(key)
            service = manager.create(
                client_id=new_client.id,
                kind=requested["kind"],
                frequency=frequency,
                fee=requested["fee"],
                next_due=requested.get("next_due"),
                description=requested.get("description"),
            )
            compliance.ensure_for_service(service.id)
            created_services.append(service)

        tasks_generated = 0
        if generate_tasks:
            tasks_generated = get_task_service().generate_for_client(new_client.id)["created"]

        logger.info(
            f"Onboarded client {new_client.ref}: {len(directors_created)} director(s), "
            f"{len(created_services)} service(s), {tasks_generated} task(s)"
        )
        return {
            "client": new_client,
            "services": created_services,
            "directors": directors_created,
            "tasks_generated": tasks_generated,
        }


_onboarding_service: Optional[ClientOnboardingService] = None


def get_onboarding_service() -> ClientOnboardingService:
    global _onboarding_service
    if _onboarding_service is None:
        _onboarding_service = ClientOnboardingService()
    return _onboarding_service
