"""
gratuity_valuation/reporting.py - Liability Aggregation and Excel Reporting

Produces the valuation outputs:
1. Liability totals per cause for the base and eight sensitivity scenarios
2. Liability duration from the discount rate sensitivities
3. Expected benefit payments by future year
4. Excel workbook with summary, sensitivity, cash flow and decrement sheets

Author: Actuarial Pipeline Project
License: MIT
"""

import pandas as pd
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from dataclasses import dataclass
from pathlib import Path
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils.dataframe import dataframe_to_rows

from .decrements import DecrementTable, DecrementType, PRE_RETIREMENT_CAUSES
from .engine import CauseResult, Scenario

logger = logging.getLogger(__name__)


ScenarioResults = Mapping[DecrementType, CauseResult]


# =============================================================================
# LIABILITY AGGREGATION
# =============================================================================

@dataclass
class ScenarioLiability:
    """Roster totals by cause for one scenario."""
    scenario: Scenario
    death: float = 0.0
    withdrawal: float = 0.0
    ill_health: float = 0.0
    retirement: float = 0.0
    normal_cost: Optional[Dict[DecrementType, float]] = None

    @property
    def total(self) -> float:
        return self.death + self.withdrawal + self.ill_health + self.retirement

    def by_cause(self) -> Dict[DecrementType, float]:
        return {
            DecrementType.DEATH: self.death,
            DecrementType.WITHDRAWAL: self.withdrawal,
            DecrementType.ILL_HEALTH: self.ill_health,
            DecrementType.RETIREMENT: self.retirement,
        }

    def add(self, cause: DecrementType, amount: float) -> None:
        if cause is DecrementType.DEATH:
            self.death += amount
        elif cause is DecrementType.WITHDRAWAL:
            self.withdrawal += amount
        elif cause is DecrementType.ILL_HEALTH:
            self.ill_health += amount
        else:
            self.retirement += amount

    def to_dict(self) -> Dict[str, Any]:
        out = {cause.value: amount for cause, amount in self.by_cause().items()}
        out['total'] = self.total
        if self.normal_cost is not None:
            out['NC'] = {cause.value: amount for cause, amount in self.normal_cost.items()}
        return out


@dataclass
class LiabilityReport:
    """Scenario totals and liability duration."""
    scenarios: Dict[Scenario, ScenarioLiability]
    duration: float
    discount_rate: float = 0.0
    sensitivity_delta: float = 0.0

    @property
    def base(self) -> ScenarioLiability:
        return self.scenarios[Scenario.BASE]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per scenario with AL by cause, total and change from base."""
        base_total = self.base.total
        rows = []
        for scenario, liability in self.scenarios.items():
            rows.append({
                'Scenario': scenario.label,
                'Death': liability.death,
                'Withdrawal': liability.withdrawal,
                'IllHealth': liability.ill_health,
                'Retirement': liability.retirement,
                'Total': liability.total,
                'ChangeFromBase': liability.total - base_total,
            })
        return pd.DataFrame(rows)

    def to_dict(self) -> Dict[str, Any]:
        out = {scenario.label: liability.to_dict()
               for scenario, liability in self.scenarios.items()}
        out['duration'] = self.duration
        return out


def liability_duration(al_up: float, al_down: float, al_base: float,
                       rate: float, delta: float) -> float:
    """
    Centered-difference duration with respect to the discount rate.

    duration = -(AL(i+Δ) - AL(i-Δ)) / (AL(i) × ((i+Δ) - (i-Δ)))

    Rates are decimals. A zero delta or zero base liability raises
    ZeroDivisionError; aggregate() reports a zero base liability as NaN.
    """
    return -(al_up - al_down) / (al_base * ((rate + delta) - (rate - delta)))


def aggregate(employee_valuations: Iterable[Any], base_discount_rate: float,
              sensitivity_delta: float) -> LiabilityReport:
    """
    Sum liabilities across the roster for every scenario.

    Args:
        employee_valuations: EmployeeValuation objects, or mappings of
            Scenario -> {DecrementType: CauseResult}
        base_discount_rate: Base discount rate as a decimal
        sensitivity_delta: Discount rate sensitivity step as a decimal

    Returns:
        LiabilityReport; normal cost is summed for the base scenario only
    """
    totals = {
        scenario: ScenarioLiability(
            scenario=scenario,
            normal_cost={c: 0.0 for c in DecrementType} if scenario is Scenario.BASE else None,
        )
        for scenario in Scenario
    }

    count = 0
    for valuation in employee_valuations:
        scenarios = getattr(valuation, 'scenarios', valuation)
        for scenario, results in scenarios.items():
            liability = totals[scenario]
            for cause, result in results.items():
                liability.add(cause, result.al)
                if liability.normal_cost is not None:
                    liability.normal_cost[cause] += result.nc
        count += 1

    base_total = totals[Scenario.BASE].total
    if base_total == 0:
        if sensitivity_delta == 0:
            raise ZeroDivisionError("Sensitivity delta must be non-zero to compute duration")
        logger.warning(f"Base liability is zero for {count} employees - duration undefined")
        duration = float('nan')
    else:
        duration = liability_duration(
            totals[Scenario.DISCOUNT_UP].total,
            totals[Scenario.DISCOUNT_DOWN].total,
            base_total,
            base_discount_rate,
            sensitivity_delta,
        )

    logger.info(f"Aggregated {count} employees across {len(totals)} scenarios")

    return LiabilityReport(
        scenarios=totals,
        duration=duration,
        discount_rate=base_discount_rate,
        sensitivity_delta=sensitivity_delta,
    )


# =============================================================================
# EXPECTED BENEFIT CASH FLOWS
# =============================================================================

def project_cash_flows(per_employee_results: Iterable[ScenarioResults]) -> List[float]:
    """
    Expected benefit payments by future year t = 0, 1, 2, ...

    Pre-retirement causes contribute their t-th result; retirement
    contributes at its future service year. Projection stops at the first
    year in which no employee has a result for any cause.
    """
    employees = list(per_employee_results)
    cash_flows = []

    t = 0
    while True:
        amount = 0.0
        contributors = 0

        for results in employees:
            for cause in PRE_RETIREMENT_CAUSES:
                cause_result = results.get(cause)
                if cause_result is not None and t < len(cause_result.results):
                    amount += cause_result.results[t].expected_benefit
                    contributors += 1

            retirement = results.get(DecrementType.RETIREMENT)
            if retirement is not None:
                for entry in retirement.results:
                    if entry.future_service == t:
                        amount += entry.expected_benefit
                        contributors += 1

        if contributors == 0:
            break

        cash_flows.append(amount)
        t += 1

    return cash_flows


# =============================================================================
# EXCEL REPORT GENERATOR
# =============================================================================

class ExcelReportGenerator:
    """
    Generates the gratuity valuation workbook.

    Sheets:
    1. Liability Summary - base AL and NC by cause
    2. Sensitivity - nine scenarios and the liability duration
    3. Cash Flows - expected benefit payments by year
    4. Decrement Table - base service table
    """

    SHEETS = ["Liability Summary", "Sensitivity", "Cash Flows", "Decrement Table"]

    CAUSE_LABELS = {
        DecrementType.DEATH: "Death",
        DecrementType.WITHDRAWAL: "Withdrawal",
        DecrementType.ILL_HEALTH: "Ill Health",
        DecrementType.RETIREMENT: "Retirement",
    }

    def __init__(self):
        self.workbook = None

        self.currency_format = '#,##0'
        self.percent_format = '0.00%'
        self.number_format = '0.0000'

        self.title_font = Font(bold=True, size=14)
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.header_font_white = Font(bold=True, size=11, color="FFFFFF")

    def create_new_workbook(self) -> None:
        self.workbook = Workbook()
        if 'Sheet' in self.workbook.sheetnames:
            del self.workbook['Sheet']
        for sheet_name in self.SHEETS:
            self.workbook.create_sheet(sheet_name)
        logger.info(f"Created workbook with {len(self.SHEETS)} sheets")

    def _sheet(self, name: str):
        if self.workbook is None:
            self.create_new_workbook()
        if name not in self.workbook.sheetnames:
            self.workbook.create_sheet(name)
        return self.workbook[name]

    def _write_header(self, sheet, row: int, headers: List[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = sheet.cell(row=row, column=col, value=header)
            cell.font = self.header_font_white
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')

    def populate_summary(self, report: LiabilityReport, employee_count: int) -> None:
        sheet = self._sheet("Liability Summary")
        sheet['A1'] = "Gratuity Valuation Summary"
        sheet['A1'].font = self.title_font

        sheet['A3'] = "Employees Valued"
        sheet['B3'] = employee_count
        sheet['A4'] = "Discount Rate"
        sheet['B4'] = report.discount_rate
        sheet['B4'].number_format = self.percent_format

        self._write_header(sheet, 6, ["Cause", "Accrued Liability", "Normal Cost"])

        base = report.base
        normal_cost = base.normal_cost or {}
        row = 7
        for cause, amount in base.by_cause().items():
            sheet.cell(row=row, column=1, value=self.CAUSE_LABELS[cause])
            sheet.cell(row=row, column=2, value=amount).number_format = self.currency_format
            sheet.cell(row=row, column=3,
                       value=normal_cost.get(cause, 0.0)).number_format = self.currency_format
            row += 1

        sheet.cell(row=row, column=1, value="Total").font = Font(bold=True)
        sheet.cell(row=row, column=2, value=base.total).number_format = self.currency_format
        sheet.cell(row=row, column=3,
                   value=sum(normal_cost.values())).number_format = self.currency_format

        sheet.column_dimensions['A'].width = 24
        sheet.column_dimensions['B'].width = 20
        sheet.column_dimensions['C'].width = 20

    def populate_sensitivity(self, report: LiabilityReport) -> None:
        sheet = self._sheet("Sensitivity")
        sheet['A1'] = "Sensitivity of Accrued Liability"
        sheet['A1'].font = self.title_font

        df = report.to_dataframe()
        self._write_header(sheet, 3, list(df.columns))
        for r_idx, row_data in enumerate(dataframe_to_rows(df, index=False, header=False), start=4):
            for c_idx, value in enumerate(row_data, start=1):
                cell = sheet.cell(row=r_idx, column=c_idx, value=value)
                if c_idx > 1:
                    cell.number_format = self.currency_format

        row = 4 + len(df) + 1
        sheet.cell(row=row, column=1, value="Duration").font = Font(bold=True)
        duration = None if pd.isna(report.duration) else report.duration
        sheet.cell(row=row, column=2, value=duration).number_format = '0.00'

        sheet.column_dimensions['A'].width = 22
        for letter in 'BCDEFG':
            sheet.column_dimensions[letter].width = 18

    def populate_cash_flows(self, cash_flows: List[float]) -> None:
        sheet = self._sheet("Cash Flows")
        sheet['A1'] = "Expected Benefit Payments"
        sheet['A1'].font = self.title_font

        self._write_header(sheet, 3, ["Year", "Expected Benefit"])
        for t, amount in enumerate(cash_flows):
            sheet.cell(row=4 + t, column=1, value=t + 1)
            sheet.cell(row=4 + t, column=2, value=amount).number_format = self.currency_format

        sheet.column_dimensions['B'].width = 20

    def populate_decrement_table(self, table: DecrementTable) -> None:
        sheet = self._sheet("Decrement Table")
        df = table.to_dataframe()

        self._write_header(sheet, 1, list(df.columns))
        for r_idx, row_data in enumerate(dataframe_to_rows(df, index=False, header=False), start=2):
            for c_idx, value in enumerate(row_data, start=1):
                cell = sheet.cell(row=r_idx, column=c_idx, value=value)
                if 2 <= c_idx <= 5:
                    cell.number_format = self.number_format
                elif c_idx > 5:
                    cell.number_format = '#,##0.00'

    def save(self, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)

        if self.workbook is None:
            raise ValueError("No workbook to save - call create_new_workbook() first")

        self.workbook.save(output_path)
        logger.info(f"Saved report to: {output_path}")

        return output_path


def generate_valuation_report(report: LiabilityReport,
                              cash_flows: List[float],
                              output_path: Union[str, Path],
                              decrement_table: Optional[DecrementTable] = None,
                              employee_count: int = 0) -> Path:
    """
    Write the complete valuation workbook.

    Args:
        report: Aggregated liabilities and duration
        cash_flows: Expected benefit payments by year
        output_path: Path of the .xlsx file
        decrement_table: Base service table (sheet left empty when omitted)
        employee_count: Number of employees valued

    Returns:
        Path to generated file
    """
    generator = ExcelReportGenerator()
    generator.create_new_workbook()

    generator.populate_summary(report, employee_count)
    generator.populate_sensitivity(report)
    generator.populate_cash_flows(cash_flows)
    if decrement_table is not None:
        generator.populate_decrement_table(decrement_table)

    return generator.save(output_path)
