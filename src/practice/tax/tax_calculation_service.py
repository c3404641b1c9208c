"""
Tax Calculation Service

Runs tax engine calculations and keeps a history per client. Calculations
without a client are returned but not stored.
"""

import logging
from typing import Optional, List, Dict, Any
from uuid import UUID

from .tax_engine import TaxEngine, get_tax_engine
from .tax_models import CalculationType, TaxCalculation
from ..store import PracticeStore, get_practice_store
from security.api_errors import APIError, ErrorCode, not_found
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)


def _invalid(error: ValueError) -> APIError:
    return APIError(ErrorCode.VALIDATION_OUT_OF_RANGE, str(error))


class TaxCalculationService:
    """
    Tax calculations for clients.

    Provides:
    - Salary / dividend optimisation with recommendations
    - Scenario comparison
    - Single-tax calculations (corporation, dividend, income tax)
    - Calculation history per client
    """

    def __init__(self, store: Optional[PracticeStore] = None, engine: Optional[TaxEngine] = None):
        self.store = store or get_practice_store()
        self.engine = engine or get_tax_engine()
        self.changes = ChangeLogger("tax_calculations")

    def _save(
        self,
        client_id: Optional[UUID],
        calculation_type: CalculationType,
        parameters: Dict[str, Any],
        result: Dict[str, Any],
        **summary: Any,
    ) -> Optional[TaxCalculation]:
        if client_id is None:
            return None
        if client_id not in self.store.clients:
            raise not_found("Client", client_id)
        calculation = TaxCalculation(
            client_id=client_id,
            calculation_type=calculation_type,
            tax_year=result.get("tax_year", ""),
            parameters=parameters,
            result=result,
            **summary,
        )
        self.store.tax_calculations[calculation.id] = calculation
        logger.info(f"Saved {calculation_type.value} calculation {calculation.id} for client {client_id}")
        self.changes.record("saved", calculation.id, type=calculation_type.value)
        return calculation

    @staticmethod
    def _envelope(result: Dict[str, Any], calculation: Optional[TaxCalculation]) -> Dict[str, Any]:
        return {
            "result": result,
            "calculation_id": str(calculation.id) if calculation else None,
        }

    # =========================================================================
    # CALCULATIONS
    # =========================================================================

    def recommendations(self, result: Dict[str, Any]) -> List[Dict[str, Any]]:
        rates = self.engine.rates(result["tax_year"])
        ni = rates.national_insurance
        salary = result["optimal_salary"]
        dividend = result["optimal_dividend"]
        items = []

        if salary < ni.primary_threshold:
            items.append({
                "type": "OPTIMIZATION",
                "priority": "MEDIUM",
                "title": "Salary below the primary threshold",
                "message": (
                    f"A salary of £{salary:,.2f} is below the NI primary threshold of "
                    f"£{ni.primary_threshold:,.0f}. Check the director still earns a qualifying year "
                    f"for state pension purposes."
                ),
            })
        if salary > ni.upper_earnings_limit:
            items.append({
                "type": "OPTIMIZATION",
                "priority": "HIGH",
                "title": "Salary above the upper earnings limit",
                "message": "Salary exceeds the NI upper earnings limit; dividends are usually more efficient above it.",
            })
        if 0 < dividend < rates.dividend_tax.allowance:
            items.append({
                "type": "OPTIMIZATION",
                "priority": "LOW",
                "title": "Dividend allowance unused",
                "message": f"£{rates.dividend_tax.allowance - dividend:,.2f} of the dividend allowance is unused.",
            })
        if result["estimated_savings"] > 0:
            items.append({
                "type": "PLANNING",
                "priority": "MEDIUM",
                "title": "Salary / dividend split",
                "message": (
                    f"The recommended split saves £{result['estimated_savings']:,.2f} "
                    f"compared with taking all profit as salary."
                ),
            })
        return items

    def optimise_salary(
        self,
        profit: float,
        tax_year: Optional[str] = None,
        client_id: Optional[UUID] = None,
        min_salary: Optional[float] = None,
        max_salary: Optional[float] = None,
        step: float = 500,
    ) -> Dict[str, Any]:
        try:
            result = self.engine.optimise_salary(profit, tax_year, min_salary, max_salary, step)
        except ValueError as e:
            raise _invalid(e)
        result["recommendations"] = self.recommendations(result)

        calculation = self._save(
            client_id,
            CalculationType.SALARY_OPTIMIZATION,
            {"profit": profit, "min_salary": min_salary, "max_salary": max_salary, "step": step},
            result,
            optimized_salary=result["optimal_salary"],
            optimized_dividend=result["optimal_dividend"],
            total_take_home=result["total_take_home"],
            total_tax_liability=result["total_tax"],
            estimated_savings=result["estimated_savings"],
        )
        return self._envelope(result, calculation)

    def compare_scenarios(
        self,
        profit: float,
        scenarios: List[Dict[str, Any]],
        tax_year: Optional[str] = None,
        client_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        try:
            result = self.engine.compare_scenarios(profit, scenarios, tax_year)
        except ValueError as e:
            raise _invalid(e)

        best = next(s for s in result["scenarios"] if s["name"] == result["best"])
        calculation = self._save(
            client_id,
            CalculationType.SCENARIO_COMPARISON,
            {"profit": profit, "scenarios": scenarios},
            result,
            optimized_salary=best["salary"],
            optimized_dividend=best["dividend"],
            total_take_home=best["net_take_home"],
            total_tax_liability=best["total_tax"],
            estimated_savings=result["difference"],
        )
        return self._envelope(result, calculation)

    def corporation_tax(self, profit: float, tax_year: Optional[str] = None,
                        client_id: Optional[UUID] = None) -> Dict[str, Any]:
        try:
            result = self.engine.corporation_tax(profit, tax_year)
        except ValueError as e:
            raise _invalid(e)
        calculation = self._save(
            client_id, CalculationType.CORPORATION_TAX, {"profit": profit}, result,
            total_tax_liability=result["corporation_tax"],
        )
        return self._envelope(result, calculation)

    def dividend_tax(self, dividends: float, other_income: float = 0.0, tax_year: Optional[str] = None,
                     client_id: Optional[UUID] = None) -> Dict[str, Any]:
        try:
            result = self.engine.dividend_tax(dividends, other_income, tax_year)
        except ValueError as e:
            raise _invalid(e)
        calculation = self._save(
            client_id, CalculationType.DIVIDEND_TAX,
            {"dividends": dividends, "other_income": other_income}, result,
            total_tax_liability=result["dividend_tax"],
        )
        return self._envelope(result, calculation)

    def income_tax(self, income: float, tax_year: Optional[str] = None,
                   client_id: Optional[UUID] = None) -> Dict[str, Any]:
        try:
            result = self.engine.income_tax(income, tax_year)
            result["national_insurance"] = self.engine.national_insurance(income, tax_year)
        except ValueError as e:
            raise _invalid(e)
        calculation = self._save(
            client_id, CalculationType.INCOME_TAX, {"income": income}, result,
            total_tax_liability=result["total_tax"],
        )
        return self._envelope(result, calculation)

    # =========================================================================
    # HISTORY
    # =========================================================================

    def get(self, calculation_id: UUID) -> Optional[TaxCalculation]:
        return self.store.tax_calculations.get(calculation_id)

    def list_by_client(self, client_id: UUID) -> List[TaxCalculation]:
        calculations = [c for c in self.store.tax_calculations.values() if c.client_id == client_id]
        calculations.sort(key=lambda c: c.created_at, reverse=True)
        return calculations

    def latest_for_client(self, client_id: UUID) -> Optional[TaxCalculation]:
        calculations = self.list_by_client(client_id)
        return calculations[0] if calculations else None

    def delete(self, calculation_id: UUID) -> bool:
        if self.store.tax_calculations.pop(calculation_id, None) is None:
            return False
        logger.info(f"Deleted tax calculation: {calculation_id}")
        self.changes.record("deleted", calculation_id)
        return True


_tax_calculation_service: Optional[TaxCalculationService] = None


def get_tax_calculation_service() -> TaxCalculationService:
    global _tax_calculation_service
    if _tax_calculation_service is None:
        _tax_calculation_service = TaxCalculationService()
    return _tax_calculation_service
