"""Tests for the UK tax engine and calculation history."""

from datetime import date, timedelta
from uuid import UUID, uuid4

import pytest

from practice.tax.tax_calculation_service import get_tax_calculation_service
from practice.tax.tax_engine import TaxEngine, money
from practice.tax.tax_models import CalculationType
from practice.tax.tax_rates import SUPPORTED_TAX_YEARS, current_tax_year, load_tax_rates
from security.api_errors import APIError, ErrorCode

YEAR = "2024-25"


@pytest.fixture
def engine():
    return TaxEngine()


@pytest.fixture
def calculations():
    return get_tax_calculation_service()


# =============================================================================
# RATE TABLES
# =============================================================================

class TestTaxRates:
    """Per-year rate tables."""

    def test_every_supported_year_loads(self):
        for year in SUPPORTED_TAX_YEARS:
            assert load_tax_rates(year).tax_year == year

    def test_years_differ(self):
        assert load_tax_rates("2023-24").national_insurance.employee_rate == 0.115
        assert load_tax_rates("2024-25").national_insurance.employee_rate == 0.08

    def test_unsupported_year(self):
        with pytest.raises(ValueError, match="not supported"):
            load_tax_rates("2019-20")

    @pytest.mark.parametrize("today,expected", [
        (date(2025, 4, 5), "2024-25"),
        (date(2025, 4, 6), "2025-26"),
        (date(2026, 1, 31), "2025-26"),
    ])
    def test_current_tax_year(self, today, expected):
        assert current_tax_year(today) == expected

    def test_money_rounds_half_up(self):
        assert money(2.675) == 2.68
        assert money(10) == 10.0


# =============================================================================
# SINGLE TAXES
# =============================================================================

class TestCorporationTax:
    """Small profits rate, marginal relief and main rate."""

    @pytest.mark.parametrize("profit,band,tax", [
        (40000, "SMALL_PROFITS", 7600.00),
        (100000, "MARGINAL_RELIEF", 22750.00),
        (300000, "MAIN", 75000.00),
        (0, "SMALL_PROFITS", 0.0),
    ])
    def test_bands(self, engine, profit, band, tax):
        result = engine.corporation_tax(profit, YEAR)
        assert result["rate_band"] == band
        assert result["corporation_tax"] == tax

    def test_marginal_relief_reported(self, engine):
        result = engine.corporation_tax(100000, YEAR)
        assert result["marginal_relief"] == 2250.00
        assert result["profit_after_tax"] == 77250.00
        assert result["effective_rate"] == 0.2275


class TestIncomeTaxAndNI:
    """Income tax bands and Class 1 contributions."""

    def test_basic_rate_payer(self, engine):
        result = engine.income_tax(50000, YEAR)
        assert result["taxable_income"] == 37430.00
        assert result["total_tax"] == 7486.00
        assert result["higher_rate_tax"] == 0.0

    def test_allowance_fully_tapered(self, engine):
        result = engine.income_tax(130000, YEAR)
        assert result["personal_allowance"] == 0.0
        assert result["basic_rate_tax"] == 7540.00
        assert result["higher_rate_tax"] == 34976.00
        assert result["additional_rate_tax"] == 2187.00
        assert result["total_tax"] == 44703.00

    def test_below_allowance(self, engine):
        result = engine.income_tax(10000, YEAR)
        assert result["total_tax"] == 0.0
        assert result["effective_rate"] == 0.0

    def test_national_insurance(self, engine):
        result = engine.national_insurance(30000, YEAR)
        assert result["employee_ni"] == 1394.40
        assert result["employer_ni"] == 2884.20

    def test_ni_above_upper_earnings_limit(self, engine):
        assert engine.national_insurance(60000, YEAR)["employee_ni"] == 3210.60

    def test_ni_2023_24_blended_main_rate(self, engine):
        # (30000 - 12570) at 11.5%
        assert engine.national_insurance(30000, "2023-24")["employee_ni"] == 2004.45


class TestDividendTax:
    """Dividends stacked on other income."""

    def test_allowance_then_basic_rate(self, engine):
        result = engine.dividend_tax(10000, other_income=12570, tax_year=YEAR)
        assert result["dividend_allowance_used"] == 500.00
        assert result["basic_rate_amount"] == 9500.00
        assert result["dividend_tax"] == 831.25

    def test_unused_personal_allowance_covers_dividends(self, engine):
        result = engine.dividend_tax(12000, other_income=0, tax_year=YEAR)
        assert result["personal_allowance_used"] == 12000.00
        assert result["dividend_tax"] == 0.0

    def test_higher_rate_dividends(self, engine):
        result = engine.dividend_tax(20000, other_income=50270, tax_year=YEAR)
        assert result["basic_rate_amount"] == 0.0
        assert result["higher_rate_amount"] == 19500.00


# =============================================================================
# COMBINED AND OPTIMISATION
# =============================================================================

class TestSalaryDividend:
    """Whole-position calculations and salary optimisation."""

    def test_comprehensive_defaults_profit(self, engine):
        result = engine.comprehensive(12570, 30000, YEAR)
        assert result["company_profit"] == 42570.00
        assert result["employee_ni"] == 0.0
        assert result["net_take_home"] == money(42570 - result["income_tax"] - result["dividend_tax"])

    def test_optimise_beats_all_salary(self, engine):
        result = engine.optimise_salary(60000, YEAR)
        assert result["total_take_home"] >= result["all_salary"]["net_take_home"]
        assert result["estimated_savings"] > 0
        assert result["optimal_salary"] <= engine.max_affordable_salary(60000, YEAR)
        assert result["scenarios_evaluated"] > 1

    def test_optimise_respects_bounds(self, engine):
        result = engine.optimise_salary(60000, YEAR, min_salary=9100, max_salary=9100)
        assert result["optimal_salary"] == 9100.00
        assert result["scenarios_evaluated"] == 1

    def test_max_affordable_salary(self, engine):
        assert engine.max_affordable_salary(8000, YEAR) == 8000.00
        salary = engine.max_affordable_salary(50000, YEAR)
        employer_ni = engine.national_insurance(salary, YEAR)["employer_ni"]
        assert salary + employer_ni <= 50000.01

    @pytest.mark.parametrize("kwargs", [
        {"profit": 0},
        {"profit": 1000, "step": 0},
        {"profit": 1000, "min_salary": 5000},
    ])
    def test_optimise_rejects_bad_input(self, engine, kwargs):
        with pytest.raises(ValueError):
            engine.optimise_salary(tax_year=YEAR, **kwargs)

    def test_compare_scenarios(self, engine):
        result = engine.compare_scenarios(80000, [
            {"name": "Director minimum", "salary": 12570},
            {"name": "High salary", "salary": 60000},
        ], YEAR)
        assert [s["name"] for s in result["scenarios"]] == ["Director minimum", "High salary"]
        assert result["best"] == "Director minimum"
        assert result["difference"] > 0

    def test_compare_unaffordable_salary(self, engine):
        with pytest.raises(ValueError, match="exceeds"):
            engine.compare_scenarios(10000, [{"salary": 20000}], YEAR)


# =============================================================================
# SERVICE AND HISTORY
# =============================================================================

class TestTaxCalculationService:
    """Saved calculations per client."""

    def test_without_client_not_saved(self, calculations):
        response = calculations.corporation_tax(40000, YEAR)
        assert response["calculation_id"] is None
        assert response["result"]["corporation_tax"] == 7600.00

    def test_optimisation_saved_with_recommendations(self, calculations, sample_client):
        response = calculations.optimise_salary(60000, YEAR, client_id=sample_client.id)
        saved = calculations.get(UUID(response["calculation_id"]))

        assert saved.calculation_type == CalculationType.SALARY_OPTIMIZATION
        assert saved.tax_year == YEAR
        assert saved.optimized_salary == response["result"]["optimal_salary"]
        assert any(r["type"] == "PLANNING" for r in response["result"]["recommendations"])

    def test_history(self, calculations, sample_client):
        first = calculations.income_tax(50000, YEAR, client_id=sample_client.id)
        calculations.get(UUID(first["calculation_id"])).created_at -= timedelta(minutes=1)
        latest = calculations.dividend_tax(5000, 20000, YEAR, client_id=sample_client.id)

        history = calculations.list_by_client(sample_client.id)
        assert len(history) == 2
        assert str(calculations.latest_for_client(sample_client.id).id) == latest["calculation_id"]
        assert calculations.delete(history[0].id) is True
        assert len(calculations.list_by_client(sample_client.id)) == 1

    def test_income_tax_includes_ni(self, calculations):
        result = calculations.income_tax(30000, YEAR)["result"]
        assert result["national_insurance"]["employee_ni"] == 1394.40

    def test_unknown_client(self, calculations):
        with pytest.raises(APIError) as exc:
            calculations.corporation_tax(40000, YEAR, client_id=uuid4())
        assert exc.value.code == ErrorCode.RESOURCE_NOT_FOUND

    def test_invalid_input_is_out_of_range(self, calculations):
        with pytest.raises(APIError) as exc:
            calculations.optimise_salary(-5, YEAR)
        assert exc.value.code == ErrorCode.VALIDATION_OUT_OF_RANGE

    def test_unsupported_year_is_out_of_range(self, calculations):
        with pytest.raises(APIError) as exc:
            calculations.corporation_tax(40000, "2019-20")
        assert exc.value.code == ErrorCode.VALIDATION_OUT_OF_RANGE
