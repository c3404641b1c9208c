"""
Party Service

Links people to clients in a role. Each party gets a suffix letter so it
can be referred to as ``{client_ref}{letter}`` (e.g. ``3H001A``).
"""

import logging
from datetime import datetime, date
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID

from .person_models import ClientParty, PartyRole, normalise_name
from .person_service import PersonService, get_person_service, split_name
from ..clients.reference_generator import next_suffix_letter, party_ref
from ..store import PracticeStore, get_practice_store
from security.api_errors import APIError, ErrorCode, not_found, rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"role", "ownership_percent", "appointed_at", "resigned_at", "primary_contact"}


class PartyService:
    """
    Service for client parties.

    Provides:
    - Party CRUD with suffix letter allocation
    - Single primary contact per client
    - Resignation
    - Upsert from external registers (Companies House officers)
    """

    def __init__(
        self,
        store: Optional[PracticeStore] = None,
        person_service: Optional[PersonService] = None,
    ):
        self.store = store or get_practice_store()
        self.people = person_service or get_person_service()
        self.changes = ChangeLogger("parties")

    @staticmethod
    def _check_ownership(value: Optional[float]) -> None:
        if value is not None and not 0 <= value <= 100:
            raise APIError(
                ErrorCode.VALIDATION_OUT_OF_RANGE,
                "Ownership percent must be between 0 and 100",
                details={"ownership_percent": value},
            )

    def _clear_primary(self, client_id: UUID, keep: UUID) -> None:
        for party in self.store.parties.values():
            if party.client_id == client_id and party.id != keep and party.primary_contact:
                party.primary_contact = False
                party.updated_at = datetime.utcnow()

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        client_id: UUID,
        person_id: UUID,
        role: PartyRole = PartyRole.CONTACT,
        ownership_percent: Optional[float] = None,
        appointed_at: Optional[date] = None,
        resigned_at: Optional[date] = None,
        primary_contact: bool = False,
        source: Optional[str] = None,
        source_id: Optional[str] = None,
    ) -> ClientParty:
        client = self.store.clients.get(client_id)
        if not client:
            raise not_found("Client", client_id)
        if person_id not in self.store.people:
            raise not_found("Person", person_id)
        self._check_ownership(ownership_percent)

        for existing in self.store.parties.values():
            if existing.client_id == client_id and existing.person_id == person_id and existing.role == role:
                raise rule_violation(
                    f"Person is already linked to {client.ref} as {role.value}",
                    party_id=str(existing.id),
                )

        used = [p.suffix_letter for p in self.store.parties.values() if p.client_id == client_id]
        suffix = next_suffix_letter(used)
        party = ClientParty(
            client_id=client_id,
            person_id=person_id,
            role=role,
            ownership_percent=ownership_percent,
            appointed_at=appointed_at,
            resigned_at=resigned_at,
            primary_contact=primary_contact,
            suffix_letter=suffix,
            party_ref=party_ref(client.ref, suffix),
            source=source,
            source_id=source_id,
        )
        self.store.parties[party.id] = party
        if primary_contact:
            self._clear_primary(client_id, keep=party.id)

        logger.info(f"Created party: {party.party_ref} ({role.value})")
        self.changes.record("created", party.id, client_id=str(client_id))
        return party

    def get(self, party_id: UUID) -> Optional[ClientParty]:
        return self.store.parties.get(party_id)

    def list(self, role: Optional[PartyRole] = None) -> List[ClientParty]:
        parties = list(self.store.parties.values())
        if role:
            parties = [p for p in parties if p.role == role]
        parties.sort(key=lambda p: p.party_ref)
        return parties

    def list_by_client(self, client_id: UUID) -> List[ClientParty]:
        parties = [p for p in self.store.parties.values() if p.client_id == client_id]
        parties.sort(key=lambda p: p.suffix_letter)
        return parties

    def list_by_person(self, person_id: UUID) -> List[ClientParty]:
        parties = [p for p in self.store.parties.values() if p.person_id == person_id]
        parties.sort(key=lambda p: p.party_ref)
        return parties

    def update(self, party_id: UUID, updates: Dict[str, Any]) -> Optional[ClientParty]:
        party = self.store.parties.get(party_id)
        if not party:
            return None
        if "ownership_percent" in updates:
            self._check_ownership(updates["ownership_percent"])

        for key, value in updates.items():
            if key in UPDATABLE_FIELDS:
                setattr(party, key, value)
        if updates.get("primary_contact"):
            self._clear_primary(party.client_id, keep=party.id)

        party.updated_at = datetime.utcnow()
        logger.info(f"Updated party: {party.party_ref}")
        self.changes.record("updated", party.id)
        return party

    def resign(self, party_id: UUID, resigned_at: Optional[date] = None) -> Optional[ClientParty]:
        party = self.store.parties.get(party_id)
        if not party:
            return None
        party.resigned_at = resigned_at or date.today()
        party.updated_at = datetime.utcnow()
        logger.info(f"Party {party.party_ref} resigned on {party.resigned_at}")
        self.changes.record("resigned", party.id)
        return party

    def delete(self, party_id: UUID) -> bool:
        party = self.store.parties.pop(party_id, None)
        if not party:
            return False
        logger.info(f"Deleted party: {party.party_ref}")
        self.changes.record("deleted", party_id)
        return True

    # =========================================================================
    # EXTERNAL SOURCES
    # =========================================================================

    def upsert_from_external(
        self,
        client_id: UUID,
        source: str,
        source_id: Optional[str],
        name: str,
        role: PartyRole,
        email: Optional[str] = None,
        appointed_at: Optional[date] = None,
        resigned_at: Optional[date] = None,
    ) -> Tuple[ClientParty, bool]:
        """
        Create or refresh a party from an external register.

        Matching order: (source, source_id), then person name within the
        client. Unmatched records reuse a person by email or create one.
        """
        client_parties = self.list_by_client(client_id)

        match = None
        if source_id:
            match = next(
                (p for p in client_parties if p.source == source and p.source_id == source_id),
                None,
            )
        if match is None:
            wanted = normalise_name(name)
            for party in client_parties:
                person = self.store.people.get(party.person_id)
                if person and self._same_name(person.full_name, wanted, name):
                    match = party
                    break

        if match is not None:
            match.role = role
            match.appointed_at = appointed_at or match.appointed_at
            match.resigned_at = resigned_at
            match.source = source
            match.source_id = source_id or match.source_id
            match.updated_at = datetime.utcnow()
            return match, False

        person = self.people.find_by_email(email)
        if person is None:
            first, last = split_name(name)
            person = self.people.create(first_name=first, last_name=last, email=email)

        party = self.create(
            client_id=client_id,
            person_id=person.id,
            role=role,
            appointed_at=appointed_at,
            resigned_at=resigned_at,
            source=source,
            source_id=source_id,
        )
        return party, True

    @staticmethod
    def _same_name(full_name: str, wanted: str, raw: str) -> bool:
        if normalise_name(full_name) == wanted:
            return True
        first, last = split_name(raw)
        return normalise_name(f"{first} {last}") == normalise_name(full_name)


_party_service: Optional[PartyService] = None


def get_party_service() -> PartyService:
    """Get the singleton party service instance."""
    global _party_service
    if _party_service is None:
        _party_service = PartyService()
    return _party_service
