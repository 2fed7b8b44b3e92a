"""
tests/test_reporting.py - Aggregation, Duration, Cash Flow and Excel Tests

Author: Actuarial Pipeline Project
License: MIT
"""

import math

import pytest
from openpyxl import load_workbook

from gratuity_valuation.decrements import DecrementType, build_decrement_table
from gratuity_valuation.engine import CauseResult, Scenario, YearResult
from gratuity_valuation.reporting import (
    ExcelReportGenerator,
    LiabilityReport,
    aggregate,
    generate_valuation_report,
    liability_duration,
    project_cash_flows,
)


def cause_results(al: float, nc: float = 0.0) -> dict:
    return {cause: CauseResult(al=al, nc=nc) for cause in DecrementType}


def employee_scenarios(base_al: float, up_al: float, down_al: float) -> dict:
    """Per-cause AL for every scenario; each total is 4 × the cause AL."""
    scenarios = {scenario: cause_results(base_al, nc=1.0) for scenario in Scenario}
    scenarios[Scenario.DISCOUNT_UP] = cause_results(up_al)
    scenarios[Scenario.DISCOUNT_DOWN] = cause_results(down_al)
    return scenarios


def year_results(amounts):
    return [YearResult(t=t, expected_benefit=a) for t, a in enumerate(amounts)]


class TestDuration:
    """Centered-difference duration with respect to the discount rate."""

    def test_duration_literal(self):
        """AL(+) = 1,000,000, AL(-) = 900,000, AL = 950,000, i = 8%, Δ = 0.5%."""
        duration = liability_duration(1_000_000, 900_000, 950_000, 0.08, 0.005)

        assert duration == pytest.approx(-100_000 / (950_000 * 0.01))
        assert duration == pytest.approx(-10.526315789, rel=1e-9)

    def test_liability_falling_with_rate_gives_positive_duration(self):
        assert liability_duration(900, 1100, 1000, 0.08, 0.005) == pytest.approx(20.0)

    def test_zero_delta_is_caller_error(self):
        with pytest.raises(ZeroDivisionError):
            liability_duration(1, 1, 1, 0.08, 0.0)


class TestAggregate:
    """One fold over every scenario and cause."""

    def test_scenario_totals_sum_causes(self):
        report = aggregate(
            [employee_scenarios(100, 90, 110), employee_scenarios(50, 45, 55)],
            0.08, 0.005,
        )

        assert report.base.death == 150
        assert report.base.total == 600
        assert report.scenarios[Scenario.DISCOUNT_UP].total == 540
        assert report.scenarios[Scenario.DISCOUNT_DOWN].total == 660
        assert len(report.scenarios) == 9

    def test_duration_from_discount_scenarios(self):
        report = aggregate([employee_scenarios(100, 90, 110)], 0.08, 0.005)

        assert report.duration == pytest.approx(-(360 - 440) / (400 * 0.01))

    def test_normal_cost_for_base_only(self):
        report = aggregate([employee_scenarios(100, 90, 110)] * 3, 0.08, 0.005)

        assert report.base.normal_cost == {cause: 3.0 for cause in DecrementType}
        assert all(report.scenarios[s].normal_cost is None
                   for s in Scenario if s is not Scenario.BASE)

    def test_report_views(self):
        report = aggregate([employee_scenarios(100, 90, 110)], 0.08, 0.005)

        df = report.to_dataframe()
        assert list(df['Scenario']) == [s.label for s in Scenario]
        assert df.loc[df['Scenario'] == 'discountRatePlus', 'ChangeFromBase'].iloc[0] == -40

        payload = report.to_dict()
        assert payload['base']['withdrawl'] == 100
        assert payload['base']['NC']['illHealth'] == 1.0
        assert 'NC' not in payload['salaryIncreasePlus']
        assert payload['duration'] == report.duration

    def test_zero_base_liability_gives_nan_duration(self, caplog):
        """An all-retired roster has no liability; the run must not abort."""
        with caplog.at_level('WARNING'):
            report = aggregate([employee_scenarios(0, 0, 0)] * 2, 0.08, 0.005)

        assert report.base.total == 0
        assert math.isnan(report.duration)
        assert "duration undefined" in caplog.text

    def test_zero_base_with_zero_delta_still_raises(self):
        with pytest.raises(ZeroDivisionError):
            aggregate([employee_scenarios(0, 0, 0)], 0.08, 0.0)


class TestCashFlows:
    """Expected benefit payments by future year."""

    def test_sums_causes_and_retirement(self):
        employee = {
            DecrementType.DEATH: CauseResult(results=year_results([1, 2, 3])),
            DecrementType.WITHDRAWAL: CauseResult(results=year_results([10, 20, 30])),
            DecrementType.ILL_HEALTH: CauseResult(results=year_results([100, 200, 300])),
            DecrementType.RETIREMENT: CauseResult(results=[
                YearResult(t=3, expected_benefit=5000, future_service=3)
            ]),
        }

        assert project_cash_flows([employee]) == [111, 222, 333, 5000]

    def test_longest_projection_sets_horizon(self):
        short = {DecrementType.DEATH: CauseResult(results=year_results([1]))}
        long = {DecrementType.DEATH: CauseResult(results=year_results([1, 1, 1]))}

        assert project_cash_flows([short, long]) == [2, 1, 1]

    def test_stops_at_first_empty_year(self):
        """A gap ends the projection; later entries are not reached."""
        employee = {
            DecrementType.DEATH: CauseResult(results=year_results([1, 2])),
            DecrementType.RETIREMENT: CauseResult(results=[
                YearResult(t=5, expected_benefit=99, future_service=5)
            ]),
        }

        assert project_cash_flows([employee]) == [1, 2]

    def test_empty_input(self):
        assert project_cash_flows([]) == []

    def test_restartable(self):
        employee = {DecrementType.DEATH: CauseResult(results=year_results([4, 5]))}

        assert project_cash_flows([employee]) == project_cash_flows([employee])


class TestExcelReport:

    @pytest.fixture
    def report(self) -> LiabilityReport:
        return aggregate([employee_scenarios(100, 90, 110)], 0.08, 0.005)

    def test_generate_workbook(self, tmp_path, report, demographics, mortality,
                               withdrawal, ill_health):
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)
        output = generate_valuation_report(
            report, [10.0, 20.0], tmp_path / "gratuity.xlsx",
            decrement_table=table, employee_count=1,
        )

        wb = load_workbook(output)
        assert wb.sheetnames == ExcelReportGenerator.SHEETS

        summary = wb["Liability Summary"]
        assert summary["B3"].value == 1
        assert summary["B11"].value == 400

        cash_flows = wb["Cash Flows"]
        assert cash_flows["B4"].value == 10.0
        assert cash_flows["B5"].value == 20.0

        decrements = wb["Decrement Table"]
        assert decrements["A1"].value == "Age"
        assert decrements["A2"].value == 18
        assert decrements.max_row == 1 + len(table)

    def test_sensitivity_sheet(self, tmp_path, report):
        generator = ExcelReportGenerator()
        generator.create_new_workbook()
        generator.populate_sensitivity(report)
        generator.save(tmp_path / "sensitivity.xlsx")

        sheet = load_workbook(tmp_path / "sensitivity.xlsx")["Sensitivity"]
        assert sheet["A3"].value == "Scenario"
        assert sheet["A4"].value == "base"
        assert sheet["F4"].value == 400
        assert sheet["A14"].value == "Duration"

    def test_undefined_duration_left_blank(self, tmp_path):
        report = aggregate([employee_scenarios(0, 0, 0)], 0.08, 0.005)
        generator = ExcelReportGenerator()
        generator.create_new_workbook()
        generator.populate_sensitivity(report)
        generator.save(tmp_path / "sensitivity.xlsx")

        sheet = load_workbook(tmp_path / "sensitivity.xlsx")["Sensitivity"]
        assert sheet["A14"].value == "Duration"
        assert sheet["B14"].value is None

    def test_save_without_workbook(self, tmp_path):
        with pytest.raises(ValueError):
            ExcelReportGenerator().save(tmp_path / "empty.xlsx")
