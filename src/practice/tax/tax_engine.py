"""
UK Tax Engine

Income tax, National Insurance, corporation tax and dividend tax for owner
managed companies, plus the salary / dividend optimisation built on them.

Money values are rounded to pennies (half up) on the way out; intermediate
arithmetic stays in floats.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any

from .tax_rates import UKTaxRates, load_tax_rates, resolve_tax_year

logger = logging.getLogger(__name__)

MONEY_PLACES = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")


def money(value: float) -> float:
    return float(Decimal(str(value)).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP))


def ratio(value: float) -> float:
    return float(Decimal(str(value)).quantize(RATE_PLACES, rounding=ROUND_HALF_UP))


def _split_bands(start: float, amount: float, limits: List[float]) -> List[float]:
    """
    Split ``amount`` of income stacked on top of ``start`` across bands.

    ``limits`` are the upper edges of every band except the last (open) one.
    """
    portions = []
    position = start
    remaining = amount
    for limit in limits:
        room = max(0.0, limit - position)
        used = min(remaining, room)
        portions.append(used)
        remaining -= used
        position += used
    portions.append(max(0.0, remaining))
    return portions


class TaxEngine:
    """
    UK tax calculations for a given tax year.

    Every public method accepts ``tax_year`` ("2025-26"); omitted means the
    current year.
    """

    def rates(self, tax_year: Optional[str] = None) -> UKTaxRates:
        return load_tax_rates(resolve_tax_year(tax_year))

    # =========================================================================
    # INCOME TAX
    # =========================================================================

    def personal_allowance(self, adjusted_net_income: float, rates: UKTaxRates) -> float:
        """Allowance after the £1 for every £2 taper above the threshold."""
        it = rates.income_tax
        excess = max(0.0, adjusted_net_income - it.allowance_taper_threshold)
        return max(0.0, it.personal_allowance - excess / 2)

    def income_tax(
        self,
        income: float,
        tax_year: Optional[str] = None,
        adjusted_net_income: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Income tax on non-savings, non-dividend income.

        ``adjusted_net_income`` (defaults to ``income``) drives the allowance
        taper, so dividends can be counted without being taxed here.
        """
        rates = self.rates(tax_year)
        it = rates.income_tax
        income = max(0.0, float(income))
        allowance = self.personal_allowance(
            income if adjusted_net_income is None else adjusted_net_income, rates
        )
        taxable = max(0.0, income - allowance)
        basic, higher, additional = _split_bands(0.0, taxable, [it.basic_rate_limit, it.higher_rate_threshold])

        basic_tax = basic * it.basic_rate
        higher_tax = higher * it.higher_rate
        additional_tax = additional * it.additional_rate
        total = basic_tax + higher_tax + additional_tax

        return {
            "tax_year": rates.tax_year,
            "income": money(income),
            "personal_allowance": money(allowance),
            "taxable_income": money(taxable),
            "basic_rate_amount": money(basic),
            "basic_rate_tax": money(basic_tax),
            "higher_rate_amount": money(higher),
            "higher_rate_tax": money(higher_tax),
            "additional_rate_amount": money(additional),
            "additional_rate_tax": money(additional_tax),
            "total_tax": money(total),
            "effective_rate": ratio(total / income) if income else 0.0,
        }

    # =========================================================================
    # NATIONAL INSURANCE
    # =========================================================================

    def national_insurance(self, salary: float, tax_year: Optional[str] = None) -> Dict[str, Any]:
        """Class 1 employee (primary) and employer (secondary) contributions."""
        rates = self.rates(tax_year)
        ni = rates.national_insurance
        salary = max(0.0, float(salary))

        main_band = max(0.0, min(salary, ni.upper_earnings_limit) - ni.primary_threshold)
        upper_band = max(0.0, salary - ni.upper_earnings_limit)
        employee = main_band * ni.employee_rate + upper_band * ni.employee_upper_rate
        employer = max(0.0, salary - ni.secondary_threshold) * ni.employer_rate

        return {
            "tax_year": rates.tax_year,
            "salary": money(salary),
            "employee_ni": money(employee),
            "employer_ni": money(employer),
            "total_ni": money(employee + employer),
        }

    # =========================================================================
    # CORPORATION TAX
    # =========================================================================

    def corporation_tax(self, profit: float, tax_year: Optional[str] = None) -> Dict[str, Any]:
        """
        Corporation tax with marginal relief.

        Small profits rate up to the lower limit, main rate above the upper
        limit, and between them the main rate less
        ``(upper limit - profit) * fraction``.
        """
        rates = self.rates(tax_year)
        ct = rates.corporation_tax
        profit = max(0.0, float(profit))

        relief = 0.0
        if profit <= ct.lower_limit:
            band = "SMALL_PROFITS"
            tax = profit * ct.small_profits_rate
        elif profit >= ct.upper_limit:
            band = "MAIN"
            tax = profit * ct.main_rate
        else:
            band = "MARGINAL_RELIEF"
            relief = (ct.upper_limit - profit) * ct.marginal_relief_fraction
            tax = profit * ct.main_rate - relief

        return {
            "tax_year": rates.tax_year,
            "profit": money(profit),
            "rate_band": band,
            "marginal_relief": money(relief),
            "corporation_tax": money(tax),
            "effective_rate": ratio(tax / profit) if profit else 0.0,
            "profit_after_tax": money(profit - tax),
        }

    # =========================================================================
    # DIVIDEND TAX
    # =========================================================================

    def dividend_tax(
        self,
        dividends: float,
        other_income: float = 0.0,
        tax_year: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Tax on dividends stacked on top of other income.

        Unused personal allowance covers dividends first. The dividend
        allowance is taxed at 0% but still uses up band space.
        """
        rates = self.rates(tax_year)
        it = rates.income_tax
        dt = rates.dividend_tax
        dividends = max(0.0, float(dividends))
        other_income = max(0.0, float(other_income))

        allowance = self.personal_allowance(other_income + dividends, rates)
        allowance_left = max(0.0, allowance - other_income)
        other_taxable = max(0.0, other_income - allowance)
        taxable = max(0.0, dividends - allowance_left)

        nil_rate = min(taxable, dt.allowance)
        limits = [it.basic_rate_limit, it.higher_rate_threshold]
        basic, higher, additional = _split_bands(other_taxable + nil_rate, taxable - nil_rate, limits)

        basic_tax = basic * dt.basic_rate
        higher_tax = higher * dt.higher_rate
        additional_tax = additional * dt.additional_rate
        total = basic_tax + higher_tax + additional_tax

        return {
            "tax_year": rates.tax_year,
            "dividends": money(dividends),
            "other_income": money(other_income),
            "personal_allowance_used": money(min(allowance_left, dividends)),
            "dividend_allowance_used": money(nil_rate),
            "basic_rate_amount": money(basic),
            "basic_rate_tax": money(basic_tax),
            "higher_rate_amount": money(higher),
            "higher_rate_tax": money(higher_tax),
            "additional_rate_amount": money(additional),
            "additional_rate_tax": money(additional_tax),
            "dividend_tax": money(total),
            "effective_rate": ratio(total / dividends) if dividends else 0.0,
        }

    # =========================================================================
    # COMBINED
    # =========================================================================

    def comprehensive(
        self,
        salary: float,
        dividend: float,
        tax_year: Optional[str] = None,
        company_profit: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Whole-position breakdown for a director taking salary and dividends.

        Corporation tax is charged on ``company_profit`` (default salary plus
        dividend) less salary and employer NI.
        """
        rates = self.rates(tax_year)
        year = rates.tax_year
        salary = max(0.0, float(salary))
        dividend = max(0.0, float(dividend))
        profit = salary + dividend if company_profit is None else max(0.0, float(company_profit))

        income_tax = self.income_tax(salary, year, adjusted_net_income=salary + dividend)["total_tax"]
        ni = self.national_insurance(salary, year)
        taxable_profit = max(0.0, profit - salary - ni["employer_ni"])
        corporation = self.corporation_tax(taxable_profit, year)
        dividend_tax = self.dividend_tax(dividend, salary, year)["dividend_tax"]

        total_tax = income_tax + ni["employee_ni"] + ni["employer_ni"] + corporation["corporation_tax"] + dividend_tax
        take_home = salary + dividend - income_tax - ni["employee_ni"] - dividend_tax
        gross = profit if company_profit is not None else salary + dividend

        return {
            "tax_year": year,
            "salary": money(salary),
            "dividend": money(dividend),
            "company_profit": money(profit),
            "income_tax": money(income_tax),
            "employee_ni": ni["employee_ni"],
            "employer_ni": ni["employer_ni"],
            "corporation_tax": corporation["corporation_tax"],
            "dividend_tax": money(dividend_tax),
            "total_tax": money(total_tax),
            "net_take_home": money(take_home),
            "effective_rate": ratio(total_tax / gross) if gross else 0.0,
        }

    def _residual_dividend(self, profit: float, salary: float, tax_year: str) -> Optional[float]:
        """Dividend left after salary, employer NI and corporation tax; None if salary is unaffordable."""
        employer_ni = self.national_insurance(salary, tax_year)["employer_ni"]
        remaining = profit - salary - employer_ni
        # a penny of slack for rounded NI at the affordability limit
        if remaining < -0.01:
            return None
        remaining = max(0.0, remaining)
        return remaining - self.corporation_tax(remaining, tax_year)["corporation_tax"]

    def max_affordable_salary(self, profit: float, tax_year: Optional[str] = None) -> float:
        """Largest salary the profit can fund once employer NI is paid."""
        ni = self.rates(tax_year).national_insurance
        if profit <= ni.secondary_threshold:
            return money(max(0.0, profit))
        return money((profit + ni.employer_rate * ni.secondary_threshold) / (1 + ni.employer_rate) - 0.005)

    def optimise_salary(
        self,
        profit: float,
        tax_year: Optional[str] = None,
        min_salary: Optional[float] = None,
        max_salary: Optional[float] = None,
        step: float = 500,
    ) -> Dict[str, Any]:
        """
        Salary that maximises take-home when the remaining profit is paid out
        as a dividend, compared against taking everything as salary.
        """
        year = self.rates(tax_year).tax_year
        profit = float(profit)
        if profit <= 0:
            raise ValueError("Profit must be greater than zero")
        if step <= 0:
            raise ValueError("Step must be greater than zero")

        lower = max(0.0, float(min_salary or 0))
        upper = min(float(max_salary) if max_salary is not None else profit, self.max_affordable_salary(profit, year))
        if lower > upper:
            raise ValueError("Minimum salary exceeds what the profit can fund")

        candidates = []
        salary = lower
        while salary <= upper:
            candidates.append(salary)
            salary += step
        if candidates[-1] != upper:
            candidates.append(upper)

        best = None
        scenarios = []
        for salary in candidates:
            dividend = self._residual_dividend(profit, salary, year)
            if dividend is None:
                continue
            result = self.comprehensive(salary, dividend, year, company_profit=profit)
            scenarios.append(result)
            if best is None or result["net_take_home"] > best["net_take_home"]:
                best = result

        all_salary_amount = self.max_affordable_salary(profit, year)
        all_salary = self.comprehensive(all_salary_amount, 0.0, year, company_profit=profit)
        savings = best["net_take_home"] - all_salary["net_take_home"]

        logger.info(
            f"Salary optimisation {year}: profit {profit:.2f}, "
            f"salary {best['salary']:.2f}, dividend {best['dividend']:.2f}"
        )
        return {
            "tax_year": year,
            "profit": money(profit),
            "optimal_salary": best["salary"],
            "optimal_dividend": best["dividend"],
            "total_take_home": best["net_take_home"],
            "total_tax": best["total_tax"],
            "estimated_savings": money(savings),
            "breakdown": best,
            "all_salary": all_salary,
            "scenarios_evaluated": len(scenarios),
        }

    def compare_scenarios(
        self,
        profit: float,
        scenarios: List[Dict[str, Any]],
        tax_year: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Compare named salary / dividend splits of the same profit.

        A scenario without a dividend takes the post-tax residual profit.
        """
        year = self.rates(tax_year).tax_year
        if not scenarios:
            raise ValueError("At least one scenario is required")

        results = []
        for index, scenario in enumerate(scenarios, start=1):
            name = scenario.get("name") or f"Scenario {index}"
            salary = float(scenario.get("salary") or 0)
            dividend = scenario.get("dividend")
            if dividend is None:
                dividend = self._residual_dividend(profit, salary, year)
                if dividend is None:
                    raise ValueError(f"{name}: salary {salary:.2f} exceeds what the profit can fund")
            result = self.comprehensive(salary, float(dividend), year, company_profit=profit)
            result["name"] = name
            results.append(result)

        ranked = sorted(results, key=lambda r: r["net_take_home"], reverse=True)
        return {
            "tax_year": year,
            "profit": money(profit),
            "scenarios": results,
            "best": ranked[0]["name"],
            "worst": ranked[-1]["name"],
            "difference": money(ranked[0]["net_take_home"] - ranked[-1]["net_take_home"]),
        }


_tax_engine: Optional[TaxEngine] = None


def get_tax_engine() -> TaxEngine:
    global _tax_engine
    if _tax_engine is None:
        _tax_engine = TaxEngine()
    return _tax_engine
