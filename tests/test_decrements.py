"""
tests/test_decrements.py - Service Table Tests

Covers:
1. Survivor monotonicity and the radix
2. The retirement row
3. Mortality setback variants (shifted lookup, other columns unchanged)
4. Withdrawal scaling variants
5. Bounds-checked rate lookups
6. Idempotence

Author: Actuarial Pipeline Project
License: MIT
"""

import numpy as np
import pytest

from gratuity_valuation.decrements import (
    MIN_AGE,
    RADIX,
    DecrementTable,
    DecrementTableEntry,
    DecrementType,
    DemographicAssumptions,
    RateTable,
    TableVariant,
    build_decrement_table,
    build_variant_tables,
)


def age_graded_mortality() -> RateTable:
    """Mortality increasing with age so that a setback changes every rate."""
    return RateTable(rates=tuple(0.0005 + 0.0001 * i for i in range(83)), rate_type='mortality')


class TestSurvivors:
    """l_x starts at the radix and never increases."""

    def test_radix_at_minimum_age(self, demographics, mortality, withdrawal, ill_health):
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert table.start_age == MIN_AGE
        assert table.end_age == demographics.retirement_age
        assert table.lx(MIN_AGE) == RADIX

    def test_lx_non_increasing_and_non_negative(self, demographics, mortality,
                                                withdrawal, ill_health):
        """LX(a) >= LX(a+1) >= 0 for every age up to retirement."""
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)
        lx = table.column('lx')

        assert np.all(np.diff(lx) <= 0), "Survivors increased between ages"
        assert np.all(lx >= 0), "Negative survivors"

    def test_lx_recursion(self, demographics, mortality, withdrawal, ill_health):
        """l_{x+1} = l_x - (dd + dw + di + dr)."""
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        for prev, curr in zip(table.entries[:-1], table.entries[1:]):
            assert curr.lx == pytest.approx(prev.lx - prev.total_decrements)

    def test_exposed_lives_are_mid_year(self, demographics, mortality, withdrawal, ill_health):
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)
        entry = table.entry(40)

        assert entry.ll == pytest.approx(entry.lx - entry.total_decrements / 2)
        assert entry.dw == pytest.approx(entry.lx * entry.qw)

    def test_rates_summing_above_one_warn(self, demographics, ill_health, caplog):
        """Withdrawal 0.9 plus mortality 0.2 exits more lives than are exposed."""
        mortality = RateTable(rates=(0.2,) * 83, rate_type='mortality')
        withdrawal = RateTable(rates=(0.9,) * 83, rate_type='withdrawal')

        with caplog.at_level('WARNING'):
            table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert "age 18" in caplog.text
        assert "> 1" in caplog.text
        assert table.lx(MIN_AGE + 1) < 0

    def test_valid_rates_do_not_warn(self, demographics, mortality, withdrawal,
                                     ill_health, caplog):
        with caplog.at_level('WARNING'):
            build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert "sum to" not in caplog.text


class TestRetirementRow:
    """At retirement age everyone leaves by retirement."""

    def test_retirement_row_exact(self, demographics, mortality, withdrawal, ill_health):
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)
        entry = table.entry(demographics.retirement_age)

        assert entry.qr == 1.0
        assert entry.qd == 0.0
        assert entry.qw == 0.0
        assert entry.qi == 0.0
        assert entry.dr == entry.lx

    def test_no_retirement_before_retirement_age(self, demographics, mortality,
                                                 withdrawal, ill_health):
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert all(e.qr == 0.0 for e in table.entries[:-1])


class TestMortalityLookup:
    """Mortality is looked up at age + setback and rounded to 5 decimals."""

    def test_setback_shifts_lookup(self, withdrawal, ill_health):
        mortality = age_graded_mortality()
        demographics = DemographicAssumptions(retirement_age=60, mortality_age_setback=2)

        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert table.entry(30).qd == round(mortality.rate_at(32), 5)

    def test_mortality_rounded_to_five_decimals(self, demographics, withdrawal, ill_health):
        mortality = RateTable(rates=(0.0012345678,) * 83)

        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert table.entry(25).qd == 0.00123

    @pytest.mark.parametrize("variant", [
        TableVariant.MORTALITY_SETBACK_PLUS,
        TableVariant.MORTALITY_SETBACK_MINUS,
    ])
    def test_setback_variant_changes_only_mortality(self, demographics, withdrawal,
                                                    ill_health, variant):
        """Setback variants share QW, QI and QR with the base table."""
        tables = build_variant_tables(demographics, age_graded_mortality(),
                                      withdrawal, ill_health)
        base, shifted = tables[TableVariant.BASE], tables[variant]

        for column in ('qw', 'qi', 'qr'):
            np.testing.assert_array_equal(base.column(column), shifted.column(column))

        assert not np.array_equal(base.column('qd'), shifted.column('qd')), \
            "Mortality column unchanged by setback"

    def test_setback_plus_uses_older_rates(self, demographics, withdrawal, ill_health):
        mortality = age_graded_mortality()
        tables = build_variant_tables(demographics, mortality, withdrawal, ill_health)

        assert tables[TableVariant.MORTALITY_SETBACK_PLUS].entry(40).qd == \
            round(mortality.rate_at(41), 5)
        assert tables[TableVariant.MORTALITY_SETBACK_MINUS].entry(40).qd == \
            round(mortality.rate_at(39), 5)


class TestWithdrawalVariants:
    """Withdrawal sensitivity scales every withdrawal rate by ±5%."""

    def test_withdrawal_scaled(self, demographics, mortality, withdrawal, ill_health):
        tables = build_variant_tables(demographics, mortality, withdrawal, ill_health)

        base_qw = tables[TableVariant.BASE].column('qw')[:-1]
        np.testing.assert_allclose(tables[TableVariant.WITHDRAWAL_PLUS].column('qw')[:-1],
                                   base_qw * 1.05)
        np.testing.assert_allclose(tables[TableVariant.WITHDRAWAL_MINUS].column('qw')[:-1],
                                   base_qw * 0.95)

    def test_five_variants_built(self, demographics, mortality, withdrawal, ill_health):
        tables = build_variant_tables(demographics, mortality, withdrawal, ill_health)

        assert set(tables) == set(TableVariant)


class TestBoundsCheckedLookups:
    """Missing ages resolve to zero, never to an error."""

    def test_rate_outside_table_is_zero(self):
        rates = RateTable(rates=(0.1, 0.2, 0.3), starting_age=20)

        assert rates.rate_at(19) == 0.0
        assert rates.rate_at(20) == 0.1
        assert rates.rate_at(22) == 0.3
        assert rates.rate_at(23) == 0.0
        assert rates.max_age == 22

    def test_zero_table(self):
        assert RateTable.zeros().rate_at(40) == 0.0

    def test_short_table_leaves_older_ages_without_decrements(self, demographics):
        short = RateTable(rates=(0.01,) * 10)
        zero = RateTable.zeros()

        table = build_decrement_table(demographics, short, zero, zero)

        assert table.entry(27).qd == 0.01
        assert table.entry(28).qd == 0.0

    def test_missing_age_lookups(self, demographics, mortality, withdrawal, ill_health):
        table = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert table.entry(17) is None
        assert table.lx(70) == 0.0
        assert table.decrements(70, DecrementType.DEATH) == 0.0

    def test_table_must_be_contiguous(self):
        def row(age):
            return DecrementTableEntry(age, 0, 0, 0, 0, 1, 1, 0, 0, 0, 0)

        with pytest.raises(ValueError):
            DecrementTable([row(18), row(20)])

    def test_retirement_age_must_exceed_minimum(self):
        with pytest.raises(ValueError):
            DemographicAssumptions(retirement_age=18)


class TestIdempotence:
    """Identical inputs give bit-identical tables."""

    def test_rebuild_identical(self, demographics, mortality, withdrawal, ill_health):
        first = build_decrement_table(demographics, mortality, withdrawal, ill_health)
        second = build_decrement_table(demographics, mortality, withdrawal, ill_health)

        assert first == second
        for column in ('lx', 'll', 'dd', 'dw', 'di', 'dr'):
            np.testing.assert_array_equal(first.column(column), second.column(column))

    def test_dataframe_view(self, demographics, mortality, withdrawal, ill_health):
        df = build_decrement_table(demographics, mortality, withdrawal, ill_health).to_dataframe()

        assert list(df.columns) == ['Age', 'QD', 'QW', 'QI', 'QR', 'LX', 'LL',
                                    'DD', 'DW', 'DI', 'DR']
        assert len(df) == 60 - 18 + 1
