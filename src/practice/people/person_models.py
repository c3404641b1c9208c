"""
People and Party Models

A Person exists once in the practice. A ClientParty links a person to a
client in a role (director, shareholder, ...).
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Optional, Dict, Any
from enum import Enum
from uuid import UUID, uuid4

from ..clients.client_models import Address, iso


class PartyRole(str, Enum):
    """Role a person holds for a client."""
    DIRECTOR = "DIRECTOR"
    SHAREHOLDER = "SHAREHOLDER"
    PARTNER = "PARTNER"
    MEMBER = "MEMBER"
    OWNER = "OWNER"
    UBO = "UBO"
    SECRETARY = "SECRETARY"
    CONTACT = "CONTACT"

    @classmethod
    def parse(cls, value: Any) -> "PartyRole":
        """Accept any casing ("director", "Director")."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())


def normalise_name(value: Optional[str]) -> str:
    """Lower-case, single-spaced name used for matching."""
    return " ".join((value or "").lower().replace(",", " ").split())


@dataclass
class Person:
    """A natural person known to the practice."""
    id: UUID = field(default_factory=uuid4)
    ref: str = ""
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = None
    address: Optional[Address] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "ref": self.ref,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": iso(self.date_of_birth),
            "nationality": self.nationality,
            "address": self.address.to_dict() if self.address else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class ClientParty:
    """
    Link between a client and a person.

    ``party_ref`` is the client ref plus ``suffix_letter`` and is rewritten
    whenever the client ref changes.
    """
    id: UUID = field(default_factory=uuid4)
    client_id: UUID = None
    person_id: UUID = None
    role: PartyRole = PartyRole.CONTACT
    ownership_percent: Optional[float] = None
    appointed_at: Optional[date] = None
    resigned_at: Optional[date] = None
    primary_contact: bool = False
    suffix_letter: str = "A"
    party_ref: str = ""

    # External link, e.g. source="CH_OFFICER"
    source: Optional[str] = None
    source_id: Optional[str] = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.resigned_at is None or self.resigned_at > date.today()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "client_id": str(self.client_id) if self.client_id else None,
            "person_id": str(self.person_id) if self.person_id else None,
            "role": self.role.value,
            "ownership_percent": self.ownership_percent,
            "appointed_at": iso(self.appointed_at),
            "resigned_at": iso(self.resigned_at),
            "primary_contact": self.primary_contact,
            "suffix_letter": self.suffix_letter,
            "party_ref": self.party_ref,
            "source": self.source,
            "source_id": self.source_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
