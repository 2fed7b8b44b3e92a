"""
Gratuity Valuation Engine

Actuarial valuation of gratuity benefits for active employees: accrued
liability and normal cost under death, withdrawal, ill-health and
retirement decrements, eight sensitivity scenarios, liability duration and
expected benefit payments.

Author: Actuarial Pipeline Project
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Actuarial Pipeline Project"

from .decrements import (
    DecrementTable,
    DecrementTableEntry,
    DecrementType,
    DemographicAssumptions,
    RateTable,
    TableVariant,
    build_decrement_table,
    build_variant_tables,
)

from .financials import (
    SalaryFactors,
    SalaryIncreaseAssumptions,
    SalaryTiming,
    salary_factors,
)

from .plan_config import (
    AttributionMode,
    BenefitStructure,
    MissingAssumptionsError,
    ServiceRounding,
    ValuationAssumptions,
)

from .library import RateTableRepository

from .ingestion import (
    EmployeeRecord,
    MissingEmployeeDataError,
    RosterLoader,
    load_roster,
)

from .progress import ProgressStage, ProgressTracker, ProgressUpdate

from .engine import (
    CauseResult,
    EmployeeValuation,
    GratuityValuator,
    Scenario,
    ValuationEngine,
    ValuationResult,
    YearResult,
    create_engine,
    present_value_by_cause,
    retirement_present_value,
)

from .reporting import (
    ExcelReportGenerator,
    LiabilityReport,
    ScenarioLiability,
    aggregate,
    generate_valuation_report,
    liability_duration,
    project_cash_flows,
)

__all__ = [
    # Main engine
    "ValuationEngine",
    "ValuationResult",
    "create_engine",
    "GratuityValuator",
    "EmployeeValuation",
    "Scenario",

    # Present values
    "present_value_by_cause",
    "retirement_present_value",
    "CauseResult",
    "YearResult",

    # Decrements
    "DecrementTable",
    "DecrementTableEntry",
    "DecrementType",
    "DemographicAssumptions",
    "RateTable",
    "TableVariant",
    "build_decrement_table",
    "build_variant_tables",

    # Salary projection
    "SalaryFactors",
    "SalaryIncreaseAssumptions",
    "SalaryTiming",
    "salary_factors",

    # Configuration
    "AttributionMode",
    "BenefitStructure",
    "ServiceRounding",
    "ValuationAssumptions",
    "RateTableRepository",

    # Roster
    "EmployeeRecord",
    "RosterLoader",
    "load_roster",

    # Errors
    "MissingAssumptionsError",
    "MissingEmployeeDataError",

    # Progress
    "ProgressStage",
    "ProgressTracker",
    "ProgressUpdate",

    # Reporting
    "ExcelReportGenerator",
    "LiabilityReport",
    "ScenarioLiability",
    "aggregate",
    "generate_valuation_report",
    "liability_duration",
    "project_cash_flows",
]
