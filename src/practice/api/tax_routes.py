"""
Tax Calculation Routes

UK tax planning calculations. Passing a ``client_id`` saves the result to
that client's calculation history.
"""

from typing import Optional, List
import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from .common import dicts, format_success_response, parse_optional_uuid, parse_uuid, require
from ..tax.tax_calculation_service import get_tax_calculation_service
from ..tax.tax_rates import SUPPORTED_TAX_YEARS, resolve_tax_year

logger = logging.getLogger(__name__)

tax_router = APIRouter(prefix="/tax-calculations", tags=["Tax Calculations"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class TaxRequest(BaseModel):
    tax_year: Optional[str] = Field(None, description="e.g. 2025-26; defaults to the current year")
    client_id: Optional[str] = Field(None, description="Save the result for this client")


class OptimiseSalaryRequest(TaxRequest):
    """Find the salary / dividend split with the highest take-home."""
    profit: float = Field(..., gt=0, description="Company profit before director pay")
    min_salary: Optional[float] = Field(None, ge=0)
    max_salary: Optional[float] = Field(None, ge=0)
    step: float = Field(500, gt=0)


class ScenarioModel(BaseModel):
    name: Optional[str] = None
    salary: float = Field(0, ge=0)
    dividend: Optional[float] = Field(None, ge=0, description="Defaults to the post-tax residual")


class CompareScenariosRequest(TaxRequest):
    profit: float = Field(..., gt=0)
    scenarios: List[ScenarioModel] = Field(..., min_length=1)


class CorporationTaxRequest(TaxRequest):
    profit: float = Field(..., ge=0)


class DividendTaxRequest(TaxRequest):
    dividends: float = Field(..., ge=0)
    other_income: float = Field(0, ge=0)


class IncomeTaxRequest(TaxRequest):
    income: float = Field(..., ge=0)


# =============================================================================
# CALCULATIONS
# =============================================================================

@tax_router.get("/tax-years")
async def get_tax_years():
    return format_success_response({
        "supported": SUPPORTED_TAX_YEARS,
        "default": resolve_tax_year(None),
    })


@tax_router.post("/optimize-salary")
async def optimise_salary(request: OptimiseSalaryRequest):
    """Search salaries in steps; the dividend is whatever profit remains after tax."""
    result = get_tax_calculation_service().optimise_salary(
        request.profit,
        tax_year=request.tax_year,
        client_id=parse_optional_uuid(request.client_id, "client"),
        min_salary=request.min_salary,
        max_salary=request.max_salary,
        step=request.step,
    )
    logger.info(f"Salary optimisation for profit {request.profit:,.2f}: "
                f"salary {result['result']['optimal_salary']:,.2f}")
    return format_success_response(result)


@tax_router.post("/compare-scenarios")
async def compare_scenarios(request: CompareScenariosRequest):
    result = get_tax_calculation_service().compare_scenarios(
        request.profit,
        [s.model_dump() for s in request.scenarios],
        tax_year=request.tax_year,
        client_id=parse_optional_uuid(request.client_id, "client"),
    )
    return format_success_response(result)


@tax_router.post("/calculate-corporation-tax")
async def calculate_corporation_tax(request: CorporationTaxRequest):
    result = get_tax_calculation_service().corporation_tax(
        request.profit,
        tax_year=request.tax_year,
        client_id=parse_optional_uuid(request.client_id, "client"),
    )
    return format_success_response(result)


@tax_router.post("/calculate-dividend-tax")
async def calculate_dividend_tax(request: DividendTaxRequest):
    result = get_tax_calculation_service().dividend_tax(
        request.dividends,
        other_income=request.other_income,
        tax_year=request.tax_year,
        client_id=parse_optional_uuid(request.client_id, "client"),
    )
    return format_success_response(result)


@tax_router.post("/calculate-income-tax")
async def calculate_income_tax(request: IncomeTaxRequest):
    """Income tax and NI on employment income."""
    result = get_tax_calculation_service().income_tax(
        request.income,
        tax_year=request.tax_year,
        client_id=parse_optional_uuid(request.client_id, "client"),
    )
    return format_success_response(result)


# =============================================================================
# HISTORY
# =============================================================================

@tax_router.get("/client/{client_id}")
async def get_client_calculations(client_id: str):
    calculations = get_tax_calculation_service().list_by_client(parse_uuid(client_id, "client"))
    return format_success_response({"calculations": dicts(calculations), "total": len(calculations)})


@tax_router.get("/client/{client_id}/latest")
async def get_latest_calculation(client_id: str):
    calculation = require(
        get_tax_calculation_service().latest_for_client(parse_uuid(client_id, "client")),
        "Tax calculation",
    )
    return format_success_response({"calculation": calculation.to_dict()})


@tax_router.get("/{calculation_id}")
async def get_calculation(calculation_id: str):
    calculation = require(
        get_tax_calculation_service().get(parse_uuid(calculation_id, "calculation")),
        "Tax calculation",
    )
    return format_success_response({"calculation": calculation.to_dict()})


@tax_router.delete("/{calculation_id}")
async def delete_calculation(calculation_id: str):
    require(get_tax_calculation_service().delete(parse_uuid(calculation_id, "calculation")), "Tax calculation")
    logger.info(f"Deleted tax calculation {calculation_id}")
    return format_success_response({"message": "Tax calculation deleted"})
