"""
UK tax rate tables.

One YAML file per tax year under ``rates/``. Values should be reviewed each
April against the published HMRC rates and thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import yaml

RATES_DIR = Path(__file__).parent / "rates"

SUPPORTED_TAX_YEARS: List[str] = ["2023-24", "2024-25", "2025-26"]
DEFAULT_TAX_YEAR = "2025-26"


@dataclass(frozen=True)
class IncomeTaxRates:
    personal_allowance: float
    allowance_taper_threshold: float
    basic_rate_limit: float
    higher_rate_threshold: float
    basic_rate: float
    higher_rate: float
    additional_rate: float


@dataclass(frozen=True)
class NationalInsuranceRates:
    primary_threshold: float
    upper_earnings_limit: float
    employee_rate: float
    employee_upper_rate: float
    secondary_threshold: float
    employer_rate: float


@dataclass(frozen=True)
class CorporationTaxRates:
    small_profits_rate: float
    main_rate: float
    lower_limit: float
    upper_limit: float
    marginal_relief_fraction: float


@dataclass(frozen=True)
class DividendTaxRates:
    allowance: float
    basic_rate: float
    higher_rate: float
    additional_rate: float


@dataclass(frozen=True)
class UKTaxRates:
    """All rates and thresholds for one tax year."""

    tax_year: str
    income_tax: IncomeTaxRates
    national_insurance: NationalInsuranceRates
    corporation_tax: CorporationTaxRates
    dividend_tax: DividendTaxRates

    @classmethod
    def from_dict(cls, data: Dict) -> "UKTaxRates":
        return cls(
            tax_year=str(data["tax_year"]),
            income_tax=IncomeTaxRates(**_floats(data["income_tax"])),
            national_insurance=NationalInsuranceRates(**_floats(data["national_insurance"])),
            corporation_tax=CorporationTaxRates(**_floats(data["corporation_tax"])),
            dividend_tax=DividendTaxRates(**_floats(data["dividend_tax"])),
        )


def _floats(section: Dict) -> Dict[str, float]:
    return {k: float(v) for k, v in section.items()}


def current_tax_year(today: Optional[date] = None) -> str:
    """Tax year label (e.g. "2025-26") containing ``today``; years start 6 April."""
    today = today or date.today()
    start = today.year if (today.month, today.day) >= (4, 6) else today.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def resolve_tax_year(tax_year: Optional[str]) -> str:
    """Requested year, or the current one when supported, else the latest table."""
    if tax_year:
        return tax_year
    current = current_tax_year()
    return current if current in SUPPORTED_TAX_YEARS else DEFAULT_TAX_YEAR


@lru_cache(maxsize=None)
def load_tax_rates(tax_year: str) -> UKTaxRates:
    """
    Rates for a tax year.

    Raises:
        ValueError: If the tax year is not supported
    """
    if tax_year not in SUPPORTED_TAX_YEARS:
        raise ValueError(
            f"Tax year {tax_year} is not supported. "
            f"Supported years: {', '.join(SUPPORTED_TAX_YEARS)}"
        )

    path = RATES_DIR / f"uk_{tax_year.replace('-', '_')}.yaml"
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return UKTaxRates.from_dict(data)
