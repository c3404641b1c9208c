"""
Service Models

A Service is a recurring engagement sold to a client (annual accounts,
VAT returns, payroll...). Its ``next_due`` drives task generation and
compliance deadlines.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Optional, Dict, Any
from enum import Enum
from uuid import UUID, uuid4

from ..clients.client_models import iso


class ServiceFrequency(str, Enum):
    ANNUAL = "ANNUAL"
    QUARTERLY = "QUARTERLY"
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"


class ServiceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


# Periods per year for fee annualisation
PERIODS_PER_YEAR = {
    ServiceFrequency.ANNUAL: 1,
    ServiceFrequency.QUARTERLY: 4,
    ServiceFrequency.MONTHLY: 12,
    ServiceFrequency.WEEKLY: 52,
}

FREQUENCY_DESCRIPTIONS = {
    ServiceFrequency.ANNUAL: "per annum",
    ServiceFrequency.QUARTERLY: "per quarter",
    ServiceFrequency.MONTHLY: "per month",
    ServiceFrequency.WEEKLY: "per week",
}

# Services set up for a new limited company when none are requested
DEFAULT_SERVICES = [
    {"kind": "Annual Accounts", "frequency": ServiceFrequency.ANNUAL, "fee": 600.0},
    {"kind": "Corporation Tax Return", "frequency": ServiceFrequency.ANNUAL, "fee": 250.0},
    {"kind": "Company Secretarial", "frequency": ServiceFrequency.ANNUAL, "fee": 60.0},
    {"kind": "Payroll Services", "frequency": ServiceFrequency.MONTHLY, "fee": 100.0},
    {"kind": "VAT Returns", "frequency": ServiceFrequency.QUARTERLY, "fee": 120.0},
    {"kind": "Self Assessment", "frequency": ServiceFrequency.ANNUAL, "fee": 350.0},
]

INDIVIDUAL_DEFAULT_SERVICES = [
    {"kind": "Self Assessment", "frequency": ServiceFrequency.ANNUAL, "fee": 350.0},
]


def annualize(fee: float, frequency: ServiceFrequency) -> float:
    return round((fee or 0.0) * PERIODS_PER_YEAR[frequency], 2)


def format_currency(amount: Optional[float]) -> str:
    """``£1,234.50`` style amount."""
    return f"£{(amount or 0.0):,.2f}"


@dataclass
class Service:
    """A recurring service provided to a client."""
    id: UUID = field(default_factory=uuid4)
    client_id: UUID = None
    kind: str = ""
    frequency: ServiceFrequency = ServiceFrequency.ANNUAL
    fee: float = 0.0
    annualized: float = 0.0
    status: ServiceStatus = ServiceStatus.ACTIVE
    next_due: Optional[date] = None
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        self.annualized = annualize(self.fee, self.frequency)

    def recalculate(self) -> None:
        self.annualized = annualize(self.fee, self.frequency)

    @property
    def is_active(self) -> bool:
        return self.status == ServiceStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "client_id": str(self.client_id) if self.client_id else None,
            "kind": self.kind,
            "frequency": self.frequency.value,
            "fee": self.fee,
            "annualized": self.annualized,
            "status": self.status.value,
            "next_due": iso(self.next_due),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
