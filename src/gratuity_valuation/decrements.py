"""
gratuity_valuation/decrements.py - Multiple Decrement Table Builder

Builds the service table (life table) used by the gratuity present value
engines from raw per-age rate vectors.

Mathematical Framework:
- Radix: l_18 = 1,000,000
- Decrements: d_x^{(j)} = l_x × q_x^{(j)} for j in {death, withdrawal, ill-health, retirement}
- Survivors: l_{x+1} = l_x - Σ_j d_x^{(j)}
- Exposed lives: L_x = l_x - ½ Σ_j d_x^{(j)}
- Retirement: q_r^{(r)} = 1 at retirement age r, all other decrements 0

Sensitivity variants reuse the same rate vectors with a shifted mortality
lookup (age setback ±1) or a scaled withdrawal column (±5%).

Author: Actuarial Pipeline Project
License: MIT
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from enum import Enum
import logging

logger = logging.getLogger(__name__)


MIN_AGE = 18
RADIX = 1_000_000.0
MORTALITY_DECIMALS = 5


class DecrementType(Enum):
    """Decrement causes. Values are the keys used in external documents."""
    DEATH = "death"
    WITHDRAWAL = "withdrawl"
    ILL_HEALTH = "illHealth"
    RETIREMENT = "retirement"


# Causes valued year by year before retirement
PRE_RETIREMENT_CAUSES = (
    DecrementType.DEATH,
    DecrementType.WITHDRAWAL,
    DecrementType.ILL_HEALTH,
)


@dataclass(frozen=True)
class RateTable:
    """
    Ordered per-age decrement probabilities.

    Lookups are bounds-checked: an age outside
    [starting_age, starting_age + len(rates)) has rate 0.0.
    """
    rates: Tuple[float, ...]
    starting_age: int = MIN_AGE
    rate_type: str = ""
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'rates', tuple(float(r) for r in self.rates))

    def rate_at(self, age: int) -> float:
        """Rate for an integer age, 0.0 when the age is not covered."""
        idx = int(age) - self.starting_age
        if 0 <= idx < len(self.rates):
            return self.rates[idx]
        return 0.0

    @property
    def max_age(self) -> int:
        return self.starting_age + len(self.rates) - 1

    @classmethod
    def zeros(cls, rate_type: str = "", name: str = "missing") -> 'RateTable':
        """An empty table: every lookup returns 0.0."""
        return cls(rates=(), starting_age=MIN_AGE, rate_type=rate_type, name=name)

    @classmethod
    def from_document(cls, doc: Dict) -> 'RateTable':
        """Build from a rate document {startingAge, value, rateType, decrementRateName}."""
        return cls(
            rates=tuple(doc.get('value') or ()),
            starting_age=int(doc.get('startingAge', MIN_AGE)),
            rate_type=str(doc.get('rateType', '')),
            name=str(doc.get('decrementRateName', '')),
        )


@dataclass(frozen=True)
class DemographicAssumptions:
    """Demographic basis for one valuation."""
    retirement_age: int
    mortality_age_setback: int = 0
    mortality_rate_id: Optional[str] = None
    withdrawal_rate_id: Optional[str] = None
    ill_health_rate_id: Optional[str] = None

    def __post_init__(self):
        if self.retirement_age <= MIN_AGE:
            raise ValueError(
                f"Retirement age {self.retirement_age} must exceed minimum age {MIN_AGE}"
            )


@dataclass(frozen=True)
class DecrementTableEntry:
    """One row of the service table."""
    age: int
    qd: float
    qw: float
    qi: float
    qr: float
    lx: float
    ll: float
    dd: float
    dw: float
    di: float
    dr: float

    @property
    def total_decrements(self) -> float:
        return self.dd + self.dw + self.di + self.dr

    def decrements(self, cause: DecrementType) -> float:
        """Number of decrements for a cause during the year of age."""
        if cause is DecrementType.DEATH:
            return self.dd
        if cause is DecrementType.WITHDRAWAL:
            return self.dw
        if cause is DecrementType.ILL_HEALTH:
            return self.di
        return self.dr


class DecrementTable:
    """
    Immutable service table, one entry per integer age from 18 to the
    retirement age inclusive.

    Entries are stored contiguously so that lookups by age are O(1)
    index arithmetic. Ages outside the table return None / 0.0.
    """

    def __init__(self, entries: Sequence[DecrementTableEntry]):
        entries = tuple(entries)
        if not entries:
            raise ValueError("Decrement table requires at least one entry")

        start = entries[0].age
        for offset, entry in enumerate(entries):
            if entry.age != start + offset:
                raise ValueError(
                    f"Decrement table must be contiguous: expected age "
                    f"{start + offset}, found {entry.age}"
                )

        self._entries = entries
        self._start_age = start

    @property
    def entries(self) -> Tuple[DecrementTableEntry, ...]:
        return self._entries

    @property
    def start_age(self) -> int:
        return self._start_age

    @property
    def end_age(self) -> int:
        return self._start_age + len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, index: int) -> DecrementTableEntry:
        return self._entries[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, DecrementTable):
            return NotImplemented
        return self._entries == other._entries

    def entry(self, age: int) -> Optional[DecrementTableEntry]:
        """Entry for an integer age, or None when the age is outside the table."""
        idx = int(age) - self._start_age
        if 0 <= idx < len(self._entries):
            return self._entries[idx]
        return None

    def lx(self, age: int) -> float:
        """Survivors entering the age, 0.0 when not found."""
        entry = self.entry(age)
        return entry.lx if entry is not None else 0.0

    def decrements(self, age: int, cause: DecrementType) -> float:
        """Decrement count for a cause at age, 0.0 when not found."""
        entry = self.entry(age)
        return entry.decrements(cause) if entry is not None else 0.0

    def column(self, name: str) -> np.ndarray:
        """A single column (e.g. 'lx', 'qd') as a NumPy vector ordered by age."""
        return np.array([getattr(e, name) for e in self._entries], dtype=np.float64)

    def to_dataframe(self) -> pd.DataFrame:
        """Tabular view with the conventional upper-case column names."""
        return pd.DataFrame([
            {
                'Age': e.age, 'QD': e.qd, 'QW': e.qw, 'QI': e.qi, 'QR': e.qr,
                'LX': e.lx, 'LL': e.ll, 'DD': e.dd, 'DW': e.dw, 'DI': e.di, 'DR': e.dr,
            }
            for e in self._entries
        ])


def build_decrement_table(demographics: DemographicAssumptions,
                          mortality: RateTable,
                          withdrawal: RateTable,
                          ill_health: RateTable,
                          mortality_setback_delta: int = 0,
                          withdrawal_change_percent: float = 0.0) -> DecrementTable:
    """
    Build the service table for one demographic basis.

    Args:
        demographics: Retirement age and mortality age setback
        mortality: Mortality rates, looked up at age + setback + delta
        withdrawal: Withdrawal rates by age (table starts at age 18)
        ill_health: Ill-health rates by age (table starts at age 18)
        mortality_setback_delta: Extra setback in years for sensitivity runs
        withdrawal_change_percent: Multiplicative withdrawal change in percent

    Returns:
        DecrementTable for ages 18..retirement_age
    """
    retirement_age = demographics.retirement_age
    setback = demographics.mortality_age_setback + mortality_setback_delta
    withdrawal_scale = 1.0 + withdrawal_change_percent / 100.0

    entries: List[DecrementTableEntry] = []
    lx = RADIX

    for age in range(MIN_AGE, retirement_age + 1):
        if age == retirement_age:
            qd, qw, qi, qr = 0.0, 0.0, 0.0, 1.0
        else:
            qd = round(mortality.rate_at(age + setback), MORTALITY_DECIMALS)
            qw = withdrawal.rate_at(age)
            if withdrawal_change_percent:
                qw = qw * withdrawal_scale
            qi = ill_health.rate_at(age)
            qr = 0.0
            if qd + qw + qi > 1:
                logger.warning(
                    f"Decrement rates at age {age} sum to {qd + qw + qi:.4f} > 1; "
                    f"later survivors will be negative"
                )

        if entries:
            lx = entries[-1].lx - entries[-1].total_decrements

        dd = lx * qd
        dw = lx * qw
        di = lx * qi
        dr = lx * qr
        ll = lx - (dd + dw + di + dr) / 2

        entries.append(DecrementTableEntry(
            age=age, qd=qd, qw=qw, qi=qi, qr=qr,
            lx=lx, ll=ll, dd=dd, dw=dw, di=di, dr=dr,
        ))

    table = DecrementTable(entries)
    logger.debug(
        f"Built decrement table ages {table.start_age}-{table.end_age} "
        f"(setback delta {mortality_setback_delta:+d}, "
        f"withdrawal {withdrawal_change_percent:+.1f}%)"
    )
    return table


class TableVariant(Enum):
    """Decrement table variants needed by the sensitivity scenarios."""
    BASE = "base"
    MORTALITY_SETBACK_PLUS = "mortality_setback_plus"
    MORTALITY_SETBACK_MINUS = "mortality_setback_minus"
    WITHDRAWAL_PLUS = "withdrawal_plus"
    WITHDRAWAL_MINUS = "withdrawal_minus"


# variant -> (mortality setback delta, withdrawal change percent)
TABLE_VARIANTS: Dict[TableVariant, Tuple[int, float]] = {
    TableVariant.BASE: (0, 0.0),
    TableVariant.MORTALITY_SETBACK_PLUS: (1, 0.0),
    TableVariant.MORTALITY_SETBACK_MINUS: (-1, 0.0),
    TableVariant.WITHDRAWAL_PLUS: (0, 5.0),
    TableVariant.WITHDRAWAL_MINUS: (0, -5.0),
}


def build_variant_tables(demographics: DemographicAssumptions,
                         mortality: RateTable,
                         withdrawal: RateTable,
                         ill_health: RateTable) -> Dict[TableVariant, DecrementTable]:
    """Build the base table and the four demographic sensitivity tables."""
    return {
        variant: build_decrement_table(
            demographics, mortality, withdrawal, ill_health,
            mortality_setback_delta=setback_delta,
            withdrawal_change_percent=withdrawal_change,
        )
        for variant, (setback_delta, withdrawal_change) in TABLE_VARIANTS.items()
    }
