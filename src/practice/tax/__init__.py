"""UK tax calculations (income tax, NI, corporation tax, dividends)."""

from .tax_engine import TaxEngine, get_tax_engine
from .tax_models import CalculationType, TaxCalculation
from .tax_rates import SUPPORTED_TAX_YEARS, UKTaxRates, load_tax_rates

__all__ = [
    "CalculationType",
    "SUPPORTED_TAX_YEARS",
    "TaxCalculation",
    "TaxEngine",
    "UKTaxRates",
    "get_tax_engine",
    "load_tax_rates",
]
