"""
Tax Calculation Models
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum
from uuid import UUID, uuid4


class CalculationType(str, Enum):
    SALARY_OPTIMIZATION = "SALARY_OPTIMIZATION"
    SCENARIO_COMPARISON = "SCENARIO_COMPARISON"
    CORPORATION_TAX = "CORPORATION_TAX"
    DIVIDEND_TAX = "DIVIDEND_TAX"
    INCOME_TAX = "INCOME_TAX"


@dataclass
class TaxCalculation:
    """A saved calculation for a client."""
    id: UUID = field(default_factory=uuid4)
    client_id: UUID = None
    calculation_type: CalculationType = CalculationType.SALARY_OPTIMIZATION
    tax_year: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    result: Dict[str, Any] = field(default_factory=dict)
    optimized_salary: Optional[float] = None
    optimized_dividend: Optional[float] = None
    total_take_home: Optional[float] = None
    total_tax_liability: Optional[float] = None
    estimated_savings: Optional[float] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "client_id": str(self.client_id) if self.client_id else None,
            "calculation_type": self.calculation_type.value,
            "tax_year": self.tax_year,
            "parameters": self.parameters,
            "result": self.result,
            "optimized_salary": self.optimized_salary,
            "optimized_dividend": self.optimized_dividend,
            "total_take_home": self.total_take_home,
            "total_tax_liability": self.total_tax_liability,
            "estimated_savings": self.estimated_savings,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }
