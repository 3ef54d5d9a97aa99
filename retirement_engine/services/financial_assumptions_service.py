from decimal import Decimal
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from retirement_engine.services.account_ledger import AccountType


class RetentionFactors(BaseModel):
    """Share of gross income kept after tax. A flat-rate stand-in, not a tax model."""
    model_config = ConfigDict(frozen=True)

    working: Decimal = Decimal("0.75")
    retired: Decimal = Decimal("0.85")


class ContributionLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    contribution_rate: Decimal = Decimal("0.15") # share of gross salary
    limit: Decimal = Decimal("23000")
    catch_up_limit: Decimal = Decimal("30500") # limit + 7,500 catch-up
    catch_up_age: int = 50

    def ceiling(self, age: int) -> Decimal:
        return self.catch_up_limit if age >= self.catch_up_age else self.limit


class ProjectionAssumptions(BaseModel):
    """
    Fixed assumptions of the projection engine.

    These are static defaults but are kept in one place so a scenario can
    swap them without touching the calculator.
    """
    model_config = ConfigDict(frozen=True)

    withdrawal_rate: Decimal = Decimal("0.04") # 4% rule
    retention: RetentionFactors = Field(default_factory=RetentionFactors)
    contributions: ContributionLimits = Field(default_factory=ContributionLimits)

    # How initialNetWorth is spread across the buckets in the first year
    initial_allocation: Dict[AccountType, Decimal] = Field(default_factory=lambda: {
        AccountType.TAX_DEFERRED: Decimal("0.40"),
        AccountType.ROTH: Decimal("0.30"),
        AccountType.BROKERAGE: Decimal("0.20"),
        AccountType.CASH: Decimal("0.10"),
    })

    @field_validator("initial_allocation")
    @classmethod
    def allocation_must_be_complete(cls, v: Dict[AccountType, Decimal]) -> Dict[AccountType, Decimal]:
        if any(w < 0 for w in v.values()):
            raise ValueError("initial_allocation weights must not be negative")
        if sum(v.values()) != 1:
            raise ValueError("initial_allocation weights must sum to 1")
        return v


DEFAULT_ASSUMPTIONS = ProjectionAssumptions()
