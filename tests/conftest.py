from decimal import Decimal

import pytest


@pytest.fixture
def plan_dict() -> dict:
    return {
        "startAge": 30,
        "retirementAge": 65,
        "endAge": 95,
        "startYear": 2025,
        "portfolioGrowthRate": Decimal("0.07"),
        "bondGrowthRate": Decimal("0.04"),
        "inflationRate": Decimal("0.03"),
        "socialSecurityStartAge": 67,
        "estimatedSocialSecurityBenefit": Decimal("24000"),
        "pensionIncome": Decimal("0"),
        "desiredAnnualRetirementSpending": Decimal("60000"),
        "initialNetWorth": Decimal("250000"),
    }
