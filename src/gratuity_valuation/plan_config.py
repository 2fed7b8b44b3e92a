"""
gratuity_valuation/plan_config.py - Plan and Assumption Configuration

DESIGN PRINCIPLE: No hardcoded plan rules.
The engine asks the BenefitStructure: "What is the benefit factor?"
Rounding, service caps and benefit bands all live in the plan documents.

The models below validate the assumption documents supplied by the
surrounding application. Field aliases match the camelCase keys of those
documents; snake_case names are accepted as well.

Author: Actuarial Pipeline Project
License: MIT
"""

import math
from typing import Dict, List, Optional, Any
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
import logging

from .decrements import (
    MIN_AGE,
    DecrementType,
    DemographicAssumptions,
    RateTable,
)
from .financials import SalaryIncreaseAssumptions

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class MissingAssumptionsError(ValueError):
    """Demographic or financial assumptions are absent from the valuation."""


# =============================================================================
# ENUMS
# =============================================================================

class ServiceRounding(Enum):
    """How projected service is rounded before the service cap is applied."""
    EXACT = 1
    NEAREST = 2
    FLOOR = 3

    @classmethod
    def from_code(cls, code: Any) -> 'ServiceRounding':
        """Map a service type code. Codes other than 1 and 2 round down."""
        try:
            value = int(code)
        except (TypeError, ValueError):
            value = None
        if value == 1:
            return cls.EXACT
        if value == 2:
            return cls.NEAREST
        if value != 3:
            logger.debug(f"Unsupported service rounding code {code!r}, rounding down")
        return cls.FLOOR

    def apply(self, service: float) -> float:
        if self is ServiceRounding.EXACT:
            return service
        if self is ServiceRounding.NEAREST:
            # Halves round up (service is usually k + 0.5)
            return float(math.floor(service + 0.5))
        return float(math.floor(service))


class AttributionMode(Enum):
    """
    How each year's present value is attributed to accrued service.

    PRORATED: AL and NC are prorated by capped past and total service.
    UNIT: AL only, no accrual once total service exceeds the cap.
    """
    PRORATED = 1
    UNIT = 0

    @classmethod
    def from_code(cls, code: Any) -> 'AttributionMode':
        return cls.PRORATED if code is not None and int(code) == 1 else cls.UNIT


# =============================================================================
# PYDANTIC MODELS FOR CONFIGURATION
# =============================================================================

class DocumentModel(BaseModel):
    """Base for external documents: alias or field name, extra keys ignored."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class RateTableDocument(DocumentModel):
    """A decrement rate table as fetched from the rate store."""
    id: str = Field(..., alias='_id')
    starting_age: int = Field(MIN_AGE, alias='startingAge')
    value: List[float] = Field(default_factory=list)
    rate_type: str = Field('', alias='rateType')
    decrement_rate_name: str = Field('', alias='decrementRateName')

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v):
        return str(v)

    def to_rate_table(self) -> RateTable:
        return RateTable(
            rates=tuple(self.value),
            starting_age=self.starting_age,
            rate_type=self.rate_type,
            name=self.decrement_rate_name,
        )


class DemographicAssumptionsConfig(DocumentModel):
    """Demographic assumptions document."""
    mortality_rate: Optional[str] = Field(None, alias='mortalityRate')
    withdrawal_rate: Optional[str] = Field(None, alias='withdrawalRate')
    ill_health_rate: Optional[str] = Field(None, alias='illHealthRate')
    mortality_age_setback: int = Field(0, alias='mortalityAgeSetBack')
    retirement_age: int = Field(..., alias='retirementAge')

    @field_validator('mortality_rate', 'withdrawal_rate', 'ill_health_rate', mode='before')
    @classmethod
    def _stringify_ids(cls, v):
        return None if v is None else str(v)

    @field_validator('retirement_age')
    @classmethod
    def _retirement_after_min_age(cls, v):
        if v <= MIN_AGE:
            raise ValueError(f"retirementAge must exceed {MIN_AGE}")
        return v

    def to_assumptions(self) -> DemographicAssumptions:
        return DemographicAssumptions(
            retirement_age=self.retirement_age,
            mortality_age_setback=self.mortality_age_setback,
            mortality_rate_id=self.mortality_rate,
            withdrawal_rate_id=self.withdrawal_rate,
            ill_health_rate_id=self.ill_health_rate,
        )


class FinancialAssumptions(DocumentModel):
    """Financial assumptions document. Rates are percentages."""
    discount_rate: float = Field(..., alias='discountRate')
    salary_increase_rates: List[float] = Field(..., alias='salaryIncreaseRates')
    long_term_salary_increase_rate: float = Field(..., alias='longTermSalaryIncreaseRate')
    month_of_salary_increase: int = Field(12, alias='monthOfSalaryIncrease')
    sensitivity_change: float = Field(0.5, alias='sensitivityChange')

    @field_validator('salary_increase_rates')
    @classmethod
    def _five_rates(cls, v):
        if len(v) != 5:
            raise ValueError(f"salaryIncreaseRates needs 5 rates, got {len(v)}")
        return v

    def discount_rate_decimal(self, shift: int = 0) -> float:
        """Discount rate as a decimal, shifted by `shift` sensitivity steps."""
        return (self.discount_rate + shift * self.sensitivity_change) / 100

    def salary_assumptions(self, shift: int = 0) -> SalaryIncreaseAssumptions:
        """Salary assumptions as decimals, shifted by `shift` sensitivity steps."""
        return SalaryIncreaseAssumptions.from_percentages(
            self.salary_increase_rates,
            self.long_term_salary_increase_rate,
            delta=shift * self.sensitivity_change,
        )


class ServiceTypeRule(DocumentModel):
    """Service rounding and cap for one benefit type."""
    benefit_type: str = Field('', alias='benefitType')
    service_type: Any = Field(3, alias='serviceType')
    service_cap: float = Field(..., alias='serviceCap')

    @property
    def rounding(self) -> ServiceRounding:
        return ServiceRounding.from_code(self.service_type)


class BenefitBand(DocumentModel):
    """Benefit factors applying to service in [from_service_years, to_service_years)."""
    from_service_years: float = Field(..., alias='fromServiceYears')
    to_service_years: float = Field(..., alias='toServiceYears')
    death: float = 0.0
    retirement: float = 0.0
    withdrawl: float = 0.0
    ill_health: float = Field(0.0, alias='illHealth')
    termination: float = 0.0

    def contains(self, service: float) -> bool:
        return self.from_service_years <= service < self.to_service_years

    def factor(self, cause: DecrementType) -> float:
        if cause is DecrementType.DEATH:
            return self.death
        if cause is DecrementType.WITHDRAWAL:
            return self.withdrawl
        if cause is DecrementType.ILL_HEALTH:
            return self.ill_health
        return self.retirement


class BenefitStructure(DocumentModel):
    """Service rules and banded benefit factors of the gratuity scheme."""
    service_types: List[ServiceTypeRule] = Field(default_factory=list, alias='serviceType')
    bands: List[BenefitBand] = Field(..., alias='benefitStructure')

    @field_validator('bands')
    @classmethod
    def _at_least_one_band(cls, v):
        if not v:
            raise ValueError("benefitStructure needs at least one band")
        return v

    def factor_for(self, cause: DecrementType, service: float) -> float:
        """
        Benefit factor for a cause at a service value.

        The first band whose [begin, end) contains the service applies;
        when none does, the last band's factor is used.
        """
        for band in self.bands:
            if band.contains(service):
                return band.factor(cause)
        return self.bands[-1].factor(cause)

    def rule_for(self, cause: DecrementType) -> Optional[ServiceTypeRule]:
        """Service rule whose benefit type names the cause, else the first rule."""
        names = {cause.value.lower(), cause.name.lower().replace('_', '')}
        for rule in self.service_types:
            if rule.benefit_type.lower().replace(' ', '').replace('_', '') in names:
                return rule
        return self.service_types[0] if self.service_types else None


class ValuationAssumptions(DocumentModel):
    """Everything a valuation run needs besides rate tables and the roster."""
    demographic: Optional[DemographicAssumptionsConfig] = Field(None, alias='demographicAssumptions')
    financial: Optional[FinancialAssumptions] = Field(None, alias='financialAssumptions')
    benefit_structure: BenefitStructure = Field(..., alias='benefitStructure')
    output: int = 1

    @property
    def attribution(self) -> AttributionMode:
        return AttributionMode.from_code(self.output)

    def require_complete(self) -> None:
        """Raise MissingAssumptionsError when either assumption set is absent."""
        missing = []
        if self.demographic is None:
            missing.append('demographic')
        if self.financial is None:
            missing.append('financial')
        if missing:
            raise MissingAssumptionsError(
                f"Valuation is missing {' and '.join(missing)} assumptions"
            )

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'ValuationAssumptions':
        return cls.model_validate(config)
