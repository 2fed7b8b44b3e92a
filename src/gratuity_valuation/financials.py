"""
gratuity_valuation/financials.py - Salary Projection and Discounting

Implements the time-value-of-money pieces of the gratuity valuation.

Mathematical Framework:
- Discount factors: v^t = (1+i)^{-t}
- Mid-year decrement adjustment: v^{½} = (1+i)^{-0.5}
- Salary index: SIF_t = ∏_{k=0}^{n-1}(1 + s_k), s = [si1..si5, SI, SI, ...]
- Half-step: HS_t = (1 + s_t)^{½} when the increase falls mid-year

Salary increase timing regimes (months to next increase m):
    m < 6   IMMEDIATE  n = t + 1, HS = 1
    m == 6  MID_YEAR   n = t,     HS = (1 + s_t)^{½}
    m > 6   DEFERRED   n = t,     HS = 1

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Sequence, Tuple
from dataclasses import dataclass
from enum import Enum
import logging

logger = logging.getLogger(__name__)


NEAR_TERM_YEARS = 5


@dataclass(frozen=True)
class SalaryIncreaseAssumptions:
    """
    Salary increase assumptions as decimals.

    Attributes:
        near_term: Increases for the next five years (si1..si5)
        long_term: Increase applied every year thereafter (SI)
    """
    near_term: Tuple[float, ...]
    long_term: float

    def __post_init__(self):
        near_term = tuple(float(r) for r in self.near_term)
        if len(near_term) != NEAR_TERM_YEARS:
            raise ValueError(
                f"Expected {NEAR_TERM_YEARS} near-term salary increase rates, "
                f"got {len(near_term)}"
            )
        object.__setattr__(self, 'near_term', near_term)
        object.__setattr__(self, 'long_term', float(self.long_term))

    @classmethod
    def from_percentages(cls, rates: Sequence[float], long_term: float,
                         delta: float = 0.0) -> 'SalaryIncreaseAssumptions':
        """
        Build from percentages, shifting every rate by `delta` percentage
        points before scaling to decimals.
        """
        return cls(
            near_term=tuple((r + delta) / 100 for r in rates),
            long_term=(long_term + delta) / 100,
        )

    def rate_for_year(self, k: int) -> float:
        """Increase applied in projection year k (0-based)."""
        if k < NEAR_TERM_YEARS:
            return self.near_term[k]
        return self.long_term

    def cumulative_factor(self, increases: int) -> float:
        """
        Compounded factor after `increases` annual increases.

        Near-term rates are multiplied in order; years beyond the fifth
        compound at the long-term rate as a single power.
        """
        factor = 1.0
        for k in range(min(increases, NEAR_TERM_YEARS)):
            factor *= (1 + self.near_term[k])
        if increases > NEAR_TERM_YEARS:
            factor *= (1 + self.long_term) ** (increases - NEAR_TERM_YEARS)
        return factor


class SalaryTiming(Enum):
    """
    Timing of the next salary increase relative to the valuation date.

    Value: (extra completed increases in year t, half-step applies)
    """
    IMMEDIATE = (1, False)
    MID_YEAR = (0, True)
    DEFERRED = (0, False)

    @property
    def lag(self) -> int:
        return self.value[0]

    @property
    def half_step(self) -> bool:
        return self.value[1]

    @classmethod
    def from_months(cls, months_to_increase: float) -> 'SalaryTiming':
        if months_to_increase < 6:
            return cls.IMMEDIATE
        if months_to_increase == 6:
            return cls.MID_YEAR
        return cls.DEFERRED


@dataclass(frozen=True)
class SalaryFactors:
    """Salary index factor and half-step adjustment for one projection year."""
    sif: float
    hs: float


def salary_factors(months_to_increase: float, year_offset: int,
                   assumptions: SalaryIncreaseAssumptions) -> SalaryFactors:
    """
    Salary projection factors for projection year `year_offset`.

    Args:
        months_to_increase: Months from valuation date to the next increase
        year_offset: Projection year t (0 = current year)
        assumptions: Salary increase assumptions (decimals)

    Returns:
        SalaryFactors(sif, hs)
    """
    timing = SalaryTiming.from_months(months_to_increase)
    sif = assumptions.cumulative_factor(year_offset + timing.lag)

    if timing.half_step:
        hs = (1 + assumptions.rate_for_year(year_offset)) ** 0.5
    else:
        hs = 1.0

    return SalaryFactors(sif=sif, hs=hs)


def discount_factor(rate: float, years: float) -> float:
    """v^t = (1+i)^{-t}"""
    return (1 + rate) ** -years


def half_year_discount(rate: float) -> float:
    """(1+i)^{-0.5}, decrements are assumed to occur mid-year."""
    return (1 + rate) ** -0.5
