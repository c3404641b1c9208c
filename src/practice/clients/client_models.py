"""
Client Models

Data models for practice clients (companies and individuals).
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, date
from typing import Optional, Dict, Any
from enum import Enum
from uuid import UUID, uuid4


class ClientType(str, Enum):
    """Legal form of a client."""
    COMPANY = "COMPANY"
    INDIVIDUAL = "INDIVIDUAL"
    SOLE_TRADER = "SOLE_TRADER"
    PARTNERSHIP = "PARTNERSHIP"
    LLP = "LLP"


class ClientStatus(str, Enum):
    """Status of a client record."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


# Client types filed with Companies House
INCORPORATED_TYPES = (ClientType.COMPANY, ClientType.LLP)


def iso(value: Optional[date]) -> Optional[str]:
    """ISO string for a date/datetime, or None."""
    return value.isoformat() if value else None


def uk_date(value: Optional[date]) -> str:
    """DD/MM/YYYY, or an empty string."""
    return value.strftime("%d/%m/%Y") if value else ""


@dataclass
class Address:
    """Postal address."""
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Address"]:
        if not data:
            return None
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def lines(self) -> list:
        """Non-empty address lines in postal order."""
        parts = [self.line1, self.line2, self.city, self.county, self.postcode, self.country]
        return [p.strip() for p in parts if p and p.strip()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "county": self.county,
            "postcode": self.postcode,
            "country": self.country,
        }


@dataclass
class Client:
    """
    A customer of the practice.

    ``ref`` is the human reference ({portfolio}{ALPHA}{NNN}) and never
    changes on ordinary updates. It only changes through an explicit ref
    update or a portfolio move.
    """
    id: UUID = field(default_factory=uuid4)
    ref: str = ""
    name: str = ""
    type: ClientType = ClientType.COMPANY
    portfolio_code: int = 1
    status: ClientStatus = ClientStatus.ACTIVE

    # Contact
    main_email: Optional[str] = None
    main_phone: Optional[str] = None
    address: Optional[Address] = None

    # Registrations
    registered_number: Optional[str] = None
    utr_number: Optional[str] = None
    vat_number: Optional[str] = None
    paye_reference: Optional[str] = None
    incorporation_date: Optional[date] = None

    # Statutory dates
    accounts_accounting_reference_day: Optional[int] = None
    accounts_accounting_reference_month: Optional[int] = None
    accounts_last_made_up_to: Optional[date] = None
    accounts_next_due: Optional[date] = None
    confirmation_last_made_up_to: Optional[date] = None
    confirmation_next_due: Optional[date] = None

    notes: Optional[str] = None

    # Last Companies House sync snapshot
    companies_house_data: Optional[Dict[str, Any]] = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_incorporated(self) -> bool:
        return self.type in INCORPORATED_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "ref": self.ref,
            "name": self.name,
            "type": self.type.value,
            "portfolio_code": self.portfolio_code,
            "status": self.status.value,
            "main_email": self.main_email,
            "main_phone": self.main_phone,
            "address": self.address.to_dict() if self.address else None,
            "registered_number": self.registered_number,
            "utr_number": self.utr_number,
            "vat_number": self.vat_number,
            "paye_reference": self.paye_reference,
            "incorporation_date": iso(self.incorporation_date),
            "accounts_accounting_reference_day": self.accounts_accounting_reference_day,
            "accounts_accounting_reference_month": self.accounts_accounting_reference_month,
            "accounts_last_made_up_to": iso(self.accounts_last_made_up_to),
            "accounts_next_due": iso(self.accounts_next_due),
            "confirmation_last_made_up_to": iso(self.confirmation_last_made_up_to),
            "confirmation_next_due": iso(self.confirmation_next_due),
            "notes": self.notes,
            "companies_house_data": self.companies_house_data,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
