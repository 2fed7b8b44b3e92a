"""
gratuity_valuation/engine.py - Gratuity Present Value Engine

Values gratuity benefits for active employees under four decrement causes
and nine sensitivity scenarios.

Mathematical Framework (employee aged x, past service PS, pay P):
- Projected service at mid-year: ts_t = PS + 0.5 + t
- Probability of leaving by cause j in year t: q_t = d_{x+t}^{(j)} / l_x
- Projected benefit: B_t = min(round(ts_t), cap) × P × SIF_t × HS_t × F_j(ts_t)
- Present value: PV_t = B_t × q_t × v^t × v^{½}
- Prorated attribution:
    AL = Σ PV_t × min(PS, cap) / max(1, min(ts_t, cap))
    NC = Σ PV_t / max(1, min(ts_t, cap))
- Retirement: single payment at t = r - x with q = d_r^{(r)} / l_x

Author: Actuarial Pipeline Project
License: MIT
"""

import math
import pandas as pd
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union
from dataclasses import dataclass, field
from enum import Enum
import logging

from .decrements import (
    DecrementTable,
    DecrementType,
    PRE_RETIREMENT_CAUSES,
    TableVariant,
    build_variant_tables,
)
from .financials import (
    SalaryIncreaseAssumptions,
    discount_factor,
    half_year_discount,
    salary_factors,
)
from .ingestion import EmployeeRecord, records_from_rows
from .library import RateTableRepository
from .plan_config import (
    AttributionMode,
    BenefitStructure,
    ServiceRounding,
    ValuationAssumptions,
)
from .progress import ProgressSink, ProgressStage, ProgressTracker

if TYPE_CHECKING:
    from .reporting import LiabilityReport

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class YearResult:
    """Expected benefit for one future year."""
    t: int
    expected_benefit: float
    future_service: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        row = {'t': self.t, 'expectedBenefit': self.expected_benefit}
        if self.future_service is not None:
            row['futureService'] = self.future_service
        return row


@dataclass
class CauseResult:
    """Accrued liability, normal cost and per-year detail for one cause."""
    al: float = 0.0
    nc: float = 0.0
    results: List[YearResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'AL': self.al,
            'NC': self.nc,
            'results': [r.to_dict() for r in self.results],
        }


# =============================================================================
# PRESENT VALUE CALCULATIONS
# =============================================================================

def _attribute(pv: float, past_service: float, total_service: float,
               service_cap: float, attribution: AttributionMode):
    """Split a year's present value into (AL, NC) contributions."""
    if attribution is AttributionMode.PRORATED:
        denominator = max(1.0, min(total_service, service_cap))
        return pv * min(past_service, service_cap) / denominator, pv / denominator

    if total_service > service_cap:
        return 0.0, 0.0
    return pv / max(1.0, total_service), 0.0


def _projected_benefit(total_service: float, pay: float, year_offset: int,
                       salary: SalaryIncreaseAssumptions,
                       months_to_salary_increase: float,
                       service_cap: float, service_rounding: ServiceRounding,
                       factor: float) -> float:
    factors = salary_factors(months_to_salary_increase, year_offset, salary)
    rounded = service_rounding.apply(total_service)
    return min(rounded, service_cap) * pay * factors.sif * factors.hs * factor


def present_value_by_cause(age: int, past_service: float, pay: float,
                           annual_discount_rate: float,
                           salary_assumptions: SalaryIncreaseAssumptions,
                           decrement_table: DecrementTable,
                           service_cap: float,
                           service_rounding: ServiceRounding,
                           months_to_salary_increase: float,
                           retirement_age: int,
                           benefit_structure: BenefitStructure,
                           cause: DecrementType,
                           attribution: AttributionMode = AttributionMode.PRORATED
                           ) -> CauseResult:
    """
    Accrued liability and normal cost for one pre-retirement decrement cause.

    Walks the future service years t = 0 .. retirement_age - age - 1,
    assuming decrements occur mid-year.

    Args:
        age: Age last birthday at the valuation date
        past_service: Completed service in years
        pay: Current pay (benefit base)
        annual_discount_rate: Discount rate as a decimal
        salary_assumptions: Salary increase assumptions (decimals)
        decrement_table: Service table for the scenario
        service_cap: Maximum creditable service
        service_rounding: Rounding applied to projected service
        months_to_salary_increase: Months to the next salary increase
        retirement_age: Normal retirement age
        benefit_structure: Banded benefit factors
        cause: DEATH, WITHDRAWAL or ILL_HEALTH
        attribution: PRORATED (AL and NC) or UNIT (capped AL only)

    Returns:
        CauseResult with one YearResult per future year
    """
    if cause not in PRE_RETIREMENT_CAUSES:
        raise ValueError(f"{cause} is not a pre-retirement decrement; "
                         f"use retirement_present_value")

    result = CauseResult()
    lx_now = decrement_table.lx(age)
    hd = half_year_discount(annual_discount_rate)

    for t in range(retirement_age - age):
        ts = past_service + 0.5 + t

        if lx_now > 0:
            q = decrement_table.decrements(age + t, cause) / lx_now
        else:
            q = 0.0

        factor = benefit_structure.factor_for(cause, ts)
        v = discount_factor(annual_discount_rate, t)

        projected = _projected_benefit(
            ts, pay, t, salary_assumptions, months_to_salary_increase,
            service_cap, service_rounding, factor
        )
        pv = projected * q * v * hd

        al, nc = _attribute(pv, past_service, ts, service_cap, attribution)
        result.al += al
        result.nc += nc
        result.results.append(YearResult(t=t, expected_benefit=pv))

    return result


def retirement_present_value(age: int, past_service: float, pay: float,
                             annual_discount_rate: float,
                             salary_assumptions: SalaryIncreaseAssumptions,
                             decrement_table: DecrementTable,
                             service_cap: float,
                             service_rounding: ServiceRounding,
                             months_to_salary_increase: float,
                             retirement_age: int,
                             benefit_structure: BenefitStructure,
                             attribution: AttributionMode = AttributionMode.PRORATED
                             ) -> CauseResult:
    """
    Present value of the retirement benefit paid at exactly t = retirement_age - age.

    Employees already past retirement age have no retirement result.
    """
    result = CauseResult()
    t = retirement_age - age
    if t < 0:
        return result

    ts = past_service + t
    lx_now = decrement_table.lx(age)
    if lx_now > 0:
        q = decrement_table.decrements(retirement_age, DecrementType.RETIREMENT) / lx_now
    else:
        q = 0.0

    factor = benefit_structure.factor_for(DecrementType.RETIREMENT, ts)
    v = discount_factor(annual_discount_rate, t)
    hd = half_year_discount(annual_discount_rate)

    projected = _projected_benefit(
        ts, pay, t, salary_assumptions, months_to_salary_increase,
        service_cap, service_rounding, factor
    )
    pv = projected * q * v * hd

    result.al, result.nc = _attribute(pv, past_service, ts, service_cap, attribution)
    result.results.append(YearResult(t=t, expected_benefit=pv, future_service=t))
    return result


# =============================================================================
# SCENARIOS
# =============================================================================

class Scenario(Enum):
    """
    Valuation scenarios.

    Value: (label, discount shift, salary shift, decrement table variant).
    Shifts are multiples of the sensitivity change.
    """
    BASE = ("base", 0, 0, TableVariant.BASE)
    DISCOUNT_UP = ("discountRatePlus", 1, 0, TableVariant.BASE)
    DISCOUNT_DOWN = ("discountRateMinus", -1, 0, TableVariant.BASE)
    SALARY_UP = ("salaryIncreasePlus", 0, 1, TableVariant.BASE)
    SALARY_DOWN = ("salaryIncreaseMinus", 0, -1, TableVariant.BASE)
    MORTALITY_UP = ("mortalityPlus", 0, 0, TableVariant.MORTALITY_SETBACK_PLUS)
    MORTALITY_DOWN = ("mortalityMinus", 0, 0, TableVariant.MORTALITY_SETBACK_MINUS)
    WITHDRAWAL_UP = ("withdrawalPlus", 0, 0, TableVariant.WITHDRAWAL_PLUS)
    WITHDRAWAL_DOWN = ("withdrawalMinus", 0, 0, TableVariant.WITHDRAWAL_MINUS)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def discount_shift(self) -> int:
        return self.value[1]

    @property
    def salary_shift(self) -> int:
        return self.value[2]

    @property
    def table_variant(self) -> TableVariant:
        return self.value[3]


# =============================================================================
# VALUATORS
# =============================================================================

class GratuityValuator:
    """
    Values one employee under one scenario's assumptions.

    Service caps and rounding are taken per cause from the benefit
    structure's service rules; without a rule service is uncapped and
    rounded down.
    """

    def __init__(self, discount_rate: float,
                 salary: SalaryIncreaseAssumptions,
                 decrement_table: DecrementTable,
                 benefit_structure: BenefitStructure,
                 retirement_age: int,
                 months_to_salary_increase: float,
                 attribution: AttributionMode = AttributionMode.PRORATED):
        self.discount_rate = discount_rate
        self.salary = salary
        self.decrement_table = decrement_table
        self.benefit_structure = benefit_structure
        self.retirement_age = retirement_age
        self.months_to_salary_increase = months_to_salary_increase
        self.attribution = attribution

    def _service_rule(self, cause: DecrementType):
        rule = self.benefit_structure.rule_for(cause)
        if rule is None:
            return math.inf, ServiceRounding.FLOOR
        return rule.service_cap, rule.rounding

    def valuate(self, employee: EmployeeRecord) -> Dict[DecrementType, CauseResult]:
        results = {}
        for cause in DecrementType:
            service_cap, rounding = self._service_rule(cause)
            common = dict(
                age=employee.age,
                past_service=employee.past_service,
                pay=employee.pay,
                annual_discount_rate=self.discount_rate,
                salary_assumptions=self.salary,
                decrement_table=self.decrement_table,
                service_cap=service_cap,
                service_rounding=rounding,
                months_to_salary_increase=self.months_to_salary_increase,
                retirement_age=self.retirement_age,
                benefit_structure=self.benefit_structure,
                attribution=self.attribution,
            )
            if cause is DecrementType.RETIREMENT:
                results[cause] = retirement_present_value(**common)
            else:
                results[cause] = present_value_by_cause(cause=cause, **common)
        return results


@dataclass
class EmployeeValuation:
    """Results for one employee across all scenarios."""
    employee: EmployeeRecord
    scenarios: Dict[Scenario, Dict[DecrementType, CauseResult]]

    @property
    def base(self) -> Dict[DecrementType, CauseResult]:
        return self.scenarios[Scenario.BASE]

    def total_al(self, scenario: Scenario = Scenario.BASE) -> float:
        return sum(r.al for r in self.scenarios[scenario].values())

    def to_record(self) -> Dict[str, Any]:
        """Employee record augmented with the base scenario AL by cause."""
        record = self.employee.to_dict()
        record['AL'] = {cause.value: res.to_dict() for cause, res in self.base.items()}
        return record


@dataclass
class ValuationResult:
    """Complete output of a valuation run."""
    employees: List[EmployeeValuation]
    report: 'LiabilityReport'
    cash_flows: List[float]
    decrement_table: DecrementTable

    def to_payload(self) -> Dict[str, Any]:
        return {
            'employees': [e.to_record() for e in self.employees],
            'liabilityReport': self.report.to_dict(),
            'expectedBenefitPayments': list(self.cash_flows),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per employee with base scenario AL and NC by cause."""
        rows = []
        for valuation in self.employees:
            row = valuation.employee.to_dict()
            for cause, res in valuation.base.items():
                row[f'AL_{cause.value}'] = res.al
                row[f'NC_{cause.value}'] = res.nc
            row['AL_total'] = valuation.total_al()
            rows.append(row)
        return pd.DataFrame(rows)


# =============================================================================
# VALUATION ENGINE
# =============================================================================

class ValuationEngine:
    """Gratuity valuation across a roster and all sensitivity scenarios."""

    def __init__(self, assumptions: ValuationAssumptions,
                 rate_tables: Optional[RateTableRepository] = None):
        self.assumptions = assumptions
        self.rate_tables = rate_tables or RateTableRepository()

    def build_valuators(self) -> Dict[Scenario, GratuityValuator]:
        """Decrement tables and per-scenario valuators for the run."""
        self.assumptions.require_complete()

        demographics = self.assumptions.demographic.to_assumptions()
        financial = self.assumptions.financial
        mortality, withdrawal, ill_health = self.rate_tables.resolve(demographics)
        tables = build_variant_tables(demographics, mortality, withdrawal, ill_health)

        valuators = {}
        for scenario in Scenario:
            valuators[scenario] = GratuityValuator(
                discount_rate=financial.discount_rate_decimal(scenario.discount_shift),
                salary=financial.salary_assumptions(scenario.salary_shift),
                decrement_table=tables[scenario.table_variant],
                benefit_structure=self.assumptions.benefit_structure,
                retirement_age=demographics.retirement_age,
                months_to_salary_increase=financial.month_of_salary_increase,
                attribution=self.assumptions.attribution,
            )
        return valuators

    def valuate_employee(self, employee: EmployeeRecord,
                         valuators: Dict[Scenario, GratuityValuator]) -> EmployeeValuation:
        return EmployeeValuation(
            employee=employee,
            scenarios={s: v.valuate(employee) for s, v in valuators.items()},
        )

    def run_valuation(self, roster: Union[pd.DataFrame, Iterable[Any]],
                      job_id: str = "",
                      progress: Optional[ProgressSink] = None) -> ValuationResult:
        """
        Value every employee under every scenario and aggregate.

        Args:
            roster: DataFrame, dict rows {Age, PastService, Pay} or EmployeeRecords
            job_id: Identifier passed through to progress updates
            progress: Optional sink receiving ProgressUpdate objects

        Returns:
            ValuationResult; on any failure an ERROR update is sent and the
            exception propagates (no partial results)
        """
        from .reporting import aggregate, project_cash_flows

        tracker = ProgressTracker(job_id, progress)
        tracker.update(ProgressStage.INITIALIZATION, "Loading assumptions")

        try:
            self.assumptions.require_complete()
            employees = records_from_rows(roster)

            tracker.update(ProgressStage.DATA_PREPARATION,
                           f"Building decrement tables for {len(employees)} employees")
            valuators = self.build_valuators()

            tracker.update(ProgressStage.CALCULATION_START, "Calculating liabilities")
            midpoint = (len(employees) - 1) // 2
            valuations = []
            for i, employee in enumerate(employees):
                valuations.append(self.valuate_employee(employee, valuators))
                if i == midpoint:
                    tracker.update(ProgressStage.CALCULATION_MIDPOINT,
                                   f"Valued {i + 1} of {len(employees)} employees")

            tracker.update(ProgressStage.FINALIZATION, "Aggregating results")
            financial = self.assumptions.financial
            report = aggregate(
                valuations,
                financial.discount_rate_decimal(),
                financial.sensitivity_change / 100,
            )
            cash_flows = project_cash_flows(v.base for v in valuations)

        except Exception as exc:
            tracker.fail(str(exc))
            raise

        tracker.complete()
        logger.info(f"Valuation complete: {len(valuations)} employees, "
                    f"AL={report.base.total:,.0f}, duration={report.duration:.2f}")

        return ValuationResult(
            employees=valuations,
            report=report,
            cash_flows=cash_flows,
            decrement_table=valuators[Scenario.BASE].decrement_table,
        )


def create_engine(config: Dict[str, Any]) -> ValuationEngine:
    """
    Create an engine from a configuration dict.

    Keys: demographicAssumptions, financialAssumptions, benefitStructure,
    output (attribution code) and rateTables (list of rate documents).
    """
    assumptions = ValuationAssumptions.from_dict(config)
    rate_tables = RateTableRepository(config.get('rateTables', []))
    return ValuationEngine(assumptions, rate_tables)
