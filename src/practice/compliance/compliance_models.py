"""
Compliance Models

Statutory filing obligations (accounts, confirmation statements, CT600,
VAT, SA100, RTI) tracked per client.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Optional, Dict, Any
from enum import Enum
from uuid import UUID, uuid4

from ..clients.client_models import iso


class ComplianceType(str, Enum):
    ANNUAL_ACCOUNTS = "ANNUAL_ACCOUNTS"
    CONFIRMATION_STATEMENT = "CONFIRMATION_STATEMENT"
    CT600 = "CT600"
    VAT_RETURN = "VAT_RETURN"
    SA100 = "SA100"
    RTI_SUBMISSION = "RTI_SUBMISSION"
    OTHER = "OTHER"


class ComplianceStatus(str, Enum):
    PENDING = "PENDING"
    FILED = "FILED"
    OVERDUE = "OVERDUE"
    EXEMPT = "EXEMPT"


class ComplianceSource(str, Enum):
    COMPANIES_HOUSE = "COMPANIES_HOUSE"
    HMRC = "HMRC"
    MANUAL = "MANUAL"


# Filing authority for each type
TYPE_SOURCES = {
    ComplianceType.ANNUAL_ACCOUNTS: ComplianceSource.COMPANIES_HOUSE,
    ComplianceType.CONFIRMATION_STATEMENT: ComplianceSource.COMPANIES_HOUSE,
    ComplianceType.CT600: ComplianceSource.HMRC,
    ComplianceType.VAT_RETURN: ComplianceSource.HMRC,
    ComplianceType.SA100: ComplianceSource.HMRC,
    ComplianceType.RTI_SUBMISSION: ComplianceSource.HMRC,
}

TYPE_DESCRIPTIONS = {
    ComplianceType.ANNUAL_ACCOUNTS: "Annual Accounts",
    ComplianceType.CONFIRMATION_STATEMENT: "Confirmation Statement",
    ComplianceType.CT600: "Corporation Tax Return (CT600)",
    ComplianceType.VAT_RETURN: "VAT Return",
    ComplianceType.SA100: "Self Assessment Return (SA100)",
    ComplianceType.RTI_SUBMISSION: "RTI Submission",
    ComplianceType.OTHER: "Compliance Item",
}


@dataclass
class ComplianceItem:
    """A single filing obligation with a due date."""
    id: UUID = field(default_factory=uuid4)
    client_id: UUID = None
    service_id: Optional[UUID] = None
    type: ComplianceType = ComplianceType.OTHER
    description: str = ""
    due_date: Optional[date] = None
    status: ComplianceStatus = ComplianceStatus.PENDING
    source: ComplianceSource = ComplianceSource.MANUAL
    reference: Optional[str] = None
    period: Optional[str] = None
    filed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def days_until_due(self) -> Optional[int]:
        if not self.due_date:
            return None
        return (self.due_date - date.today()).days

    @property
    def is_past_due(self) -> bool:
        """Past its due date and not yet dealt with."""
        if self.status not in (ComplianceStatus.PENDING, ComplianceStatus.OVERDUE):
            return False
        return self.due_date is not None and self.due_date < date.today()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "client_id": str(self.client_id) if self.client_id else None,
            "service_id": str(self.service_id) if self.service_id else None,
            "type": self.type.value,
            "description": self.description,
            "due_date": iso(self.due_date),
            "days_until_due": self.days_until_due,
            "status": self.status.value,
            "source": self.source.value,
            "reference": self.reference,
            "period": self.period,
            "filed_at": iso(self.filed_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
