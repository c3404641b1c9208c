"""
Person Service

People are shared across clients: one director can sit on several
companies and is linked to each through a ClientParty.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID

from .person_models import Person, normalise_name
from ..clients.reference_generator import generate_person_ref
from ..store import PracticeStore, get_practice_store
from security.api_errors import rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "first_name", "last_name", "email", "phone", "date_of_birth", "nationality", "address",
}


def split_name(full_name: str) -> tuple:
    """
    Split a display name into (first, last).

    Handles the Companies House "SURNAME, Forenames" form.
    """
    name = " ".join((full_name or "").split())
    if "," in name:
        last, _, first = name.partition(",")
        return first.strip().title(), last.strip().title()
    parts = name.split(" ")
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]


class PersonService:
    """CRUD and lookup for people."""

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.changes = ChangeLogger("people")

    def create(
        self,
        first_name: str,
        last_name: str = "",
        email: Optional[str] = None,
        **fields: Any,
    ) -> Person:
        if not (first_name or "").strip() and not (last_name or "").strip():
            raise rule_violation("A person needs a first or last name")

        person = Person(
            ref=generate_person_ref(p.ref for p in self.store.people.values()),
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            email=email.strip().lower() if email else None,
        )
        for key, value in fields.items():
            if key in UPDATABLE_FIELDS:
                setattr(person, key, value)

        self.store.people[person.id] = person
        logger.info(f"Created person: {person.ref} - {person.full_name}")
        self.changes.record("created", person.id, ref=person.ref)
        return person

    def get(self, person_id: UUID) -> Optional[Person]:
        return self.store.people.get(person_id)

    def list(self, offset: int = 0, limit: int = 100) -> Dict[str, Any]:
        people = sorted(self.store.people.values(), key=lambda p: p.ref)
        return {"people": people[offset:offset + limit], "total": len(people)}

    def search(self, query: str, limit: int = 50) -> List[Person]:
        q = (query or "").strip().lower()
        if not q:
            return []
        matches = [
            p for p in self.store.people.values()
            if q in p.full_name.lower()
            or q in (p.email or "").lower()
            or q in (p.phone or "").lower()
        ]
        matches.sort(key=lambda p: p.ref)
        return matches[:limit]

    def find_by_email(self, email: Optional[str]) -> Optional[Person]:
        wanted = (email or "").strip().lower()
        if not wanted:
            return None
        for person in self.store.people.values():
            if (person.email or "").lower() == wanted:
                return person
        return None

    def find_by_name(self, name: str) -> List[Person]:
        wanted = normalise_name(name)
        return [p for p in self.store.people.values() if normalise_name(p.full_name) == wanted]

    def update(self, person_id: UUID, updates: Dict[str, Any]) -> Optional[Person]:
        person = self.store.people.get(person_id)
        if not person:
            return None
        for key, value in updates.items():
            if key not in UPDATABLE_FIELDS:
                continue
            if key == "email" and value:
                value = value.strip().lower()
            setattr(person, key, value)
        person.updated_at = datetime.utcnow()
        logger.info(f"Updated person: {person.ref}")
        self.changes.record("updated", person.id)
        return person

    def delete(self, person_id: UUID) -> bool:
        """Delete a person with no client links."""
        person = self.store.people.get(person_id)
        if not person:
            return False
        links = sum(1 for party in self.store.parties.values() if party.person_id == person_id)
        if links:
            raise rule_violation(
                f"Cannot delete {person.full_name}: linked to {links} client(s)",
                parties=links,
            )
        del self.store.people[person_id]
        logger.info(f"Deleted person: {person.ref}")
        self.changes.record("deleted", person_id)
        return True


_person_service: Optional[PersonService] = None


def get_person_service() -> PersonService:
    """Get the singleton person service instance."""
    global _person_service
    if _person_service is None:
        _person_service = PersonService()
    return _person_service
