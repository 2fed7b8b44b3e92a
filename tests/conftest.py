"""
tests/conftest.py - Shared fixtures for the gratuity valuation tests

Author: Actuarial Pipeline Project
License: MIT
"""

import pytest

from gratuity_valuation.decrements import DemographicAssumptions, RateTable
from gratuity_valuation.financials import SalaryIncreaseAssumptions
from gratuity_valuation.plan_config import BenefitStructure


AGES_COVERED = 83  # ages 18..100


def flat_rates(rate: float, rate_type: str = "") -> RateTable:
    return RateTable(rates=(rate,) * AGES_COVERED, starting_age=18, rate_type=rate_type)


def rate_document(rate_id: str, rate: float, rate_type: str) -> dict:
    return {
        '_id': rate_id,
        'startingAge': 18,
        'value': [rate] * AGES_COVERED,
        'rateType': rate_type,
        'decrementRateName': f'{rate_type} {rate}',
    }


def single_band_structure(service_cap: float = 30, service_type: int = 3,
                          factor: float = 1.0) -> BenefitStructure:
    return BenefitStructure.model_validate({
        'serviceType': [
            {'benefitType': 'death', 'serviceType': service_type, 'serviceCap': service_cap},
            {'benefitType': 'withdrawl', 'serviceType': service_type, 'serviceCap': service_cap},
            {'benefitType': 'illHealth', 'serviceType': service_type, 'serviceCap': service_cap},
            {'benefitType': 'retirement', 'serviceType': service_type, 'serviceCap': service_cap},
        ],
        'benefitStructure': [
            {'fromServiceYears': 0, 'toServiceYears': 100, 'death': factor,
             'retirement': factor, 'withdrawl': factor, 'illHealth': factor,
             'termination': factor},
        ],
    })


@pytest.fixture
def mortality():
    return flat_rates(0.002, 'mortality')


@pytest.fixture
def withdrawal():
    return flat_rates(0.05, 'withdrawal')


@pytest.fixture
def ill_health():
    return flat_rates(0.001, 'illHealth')


@pytest.fixture
def demographics():
    return DemographicAssumptions(retirement_age=60)


@pytest.fixture
def flat_salary():
    """5% in each of the next five years and 5% thereafter."""
    return SalaryIncreaseAssumptions.from_percentages([5, 5, 5, 5, 5], 5)


@pytest.fixture
def benefit_structure():
    return single_band_structure()


@pytest.fixture
def valuation_config():
    """Complete engine configuration as supplied by the surrounding application."""
    return {
        'demographicAssumptions': {
            'mortalityRate': 'm1',
            'withdrawalRate': 'w1',
            'illHealthRate': 'i1',
            'mortalityAgeSetBack': 0,
            'retirementAge': 60,
        },
        'financialAssumptions': {
            'discountRate': 8,
            'salaryIncreaseRates': [5, 5, 5, 5, 5],
            'longTermSalaryIncreaseRate': 5,
            'monthOfSalaryIncrease': 12,
            'sensitivityChange': 0.5,
        },
        'benefitStructure': {
            'serviceType': [
                {'benefitType': 'all', 'serviceType': 3, 'serviceCap': 30},
            ],
            'benefitStructure': [
                {'fromServiceYears': 0, 'toServiceYears': 100, 'death': 1,
                 'retirement': 1, 'withdrawl': 1, 'illHealth': 1, 'termination': 1},
            ],
        },
        'output': 1,
        'rateTables': [
            rate_document('m1', 0.002, 'mortality'),
            rate_document('w1', 0.05, 'withdrawal'),
            rate_document('i1', 0.001, 'illHealth'),
        ],
    }


@pytest.fixture
def roster():
    return [
        {'Age': 40, 'PastService': 10, 'Pay': 50000, 'EmployeeCode': 'E1'},
        {'Age': 30, 'PastService': 2, 'Pay': 30000, 'EmployeeCode': 'E2'},
        {'Age': 55, 'PastService': 25, 'Pay': 80000, 'EmployeeCode': 'E3'},
    ]
