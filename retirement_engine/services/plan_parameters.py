from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from retirement_engine.core.exceptions import InvalidParameters
from retirement_engine.models.retirement import RetirementPlan

Money = Decimal
Rate = Decimal

# Rates may be negative (deflation, a losing year) but never wipe out more than everything
RATE_BOUNDS = dict(gt=-1, le=1)


class PlanParameters(BaseModel):
    """
    Immutable input of one generation run.

    Rates are fractions of 1 (0.07 for 7%), money is Decimal.
    """
    model_config = ConfigDict(frozen=True)

    # Age & Timeline
    startAge: int = Field(ge=0)
    retirementAge: int = Field(ge=0)
    endAge: int = Field(ge=0)
    startYear: int = Field(default_factory=lambda: datetime.now().year)

    # Growth Assumptions
    portfolioGrowthRate: Rate = Field(**RATE_BOUNDS)
    bondGrowthRate: Rate = Field(**RATE_BOUNDS)
    inflationRate: Rate = Field(**RATE_BOUNDS)

    # Retirement Income
    socialSecurityStartAge: int = Field(ge=0)
    estimatedSocialSecurityBenefit: Money = Field(ge=0)
    pensionIncome: Money = Field(ge=0)

    # Spouse (optional)
    spouseStartAge: Optional[int] = Field(default=None, ge=0)
    spouseSocialSecurityStartAge: Optional[int] = Field(default=None, ge=0)
    spouseEstimatedSocialSecurityBenefit: Money = Field(default=Decimal("0"), ge=0)
    spousePensionIncome: Money = Field(default=Decimal("0"), ge=0)

    # Spending & Starting Position
    desiredAnnualRetirementSpending: Money = Field(ge=0)
    initialNetWorth: Money = Field(ge=0)
    currentIncome: Money = Field(default=Decimal("85000"), ge=0)
    currentAnnualExpenses: Money = Field(default=Decimal("45000"), ge=0)

    # Mortgage-like liability
    mortgageBalance: Money = Field(default=Decimal("400000"), ge=0)
    mortgageInterestRate: Rate = Field(default=Decimal("0.05"), ge=0, le=1)
    annualMortgagePayment: Money = Field(default=Decimal("28000"), ge=0)
    mortgagePayoffAge: int = Field(default=60, ge=0)

    @model_validator(mode="after")
    def check_timeline(self):
        problems = []
        if self.retirementAge <= self.startAge:
            problems.append("retirementAge must be greater than startAge")
        if self.endAge <= self.retirementAge:
            problems.append("endAge must be greater than retirementAge")
        if self.spouseEstimatedSocialSecurityBenefit > 0 and (
            self.spouseStartAge is None or self.spouseSocialSecurityStartAge is None
        ):
            problems.append(
                "spouseStartAge and spouseSocialSecurityStartAge are required for a spouse Social Security benefit"
            )
        if problems:
            raise ValueError("; ".join(problems))
        return self

    @property
    def age_range(self) -> range:
        return range(self.startAge, self.endAge + 1)

    def year_for_age(self, age: int) -> int:
        return self.startYear + (age - self.startAge)

    @classmethod
    def from_plan(cls, plan: RetirementPlan, start_year: Optional[int] = None) -> "PlanParameters":
        """
        Resolves the effective parameters of a stored plan.
        Priority: Plan Overrides > Plan Columns > Defaults.
        Stored rates are percentages (7.0) and are converted to fractions here.
        """
        overrides = plan.planOverrides or {}

        def val(key):
            if overrides.get(key) is not None:
                return overrides[key]
            return getattr(plan, key, None)

        def pct(key):
            v = val(key)
            return None if v is None else Decimal(str(v)) / 100

        data: Dict[str, Any] = {
            "startAge": val("startAge"),
            "retirementAge": val("retirementAge"),
            "endAge": val("endAge"),
            "portfolioGrowthRate": pct("portfolioGrowthRate"),
            "bondGrowthRate": pct("bondGrowthRate"),
            "inflationRate": pct("inflationRate"),
            "socialSecurityStartAge": val("socialSecurityStartAge"),
            "estimatedSocialSecurityBenefit": val("estimatedSocialSecurityBenefit"),
            "pensionIncome": val("pensionIncome"),
            "spouseStartAge": val("spouseStartAge"),
            "spouseSocialSecurityStartAge": val("spouseSocialSecurityStartAge"),
            "desiredAnnualRetirementSpending": val("desiredAnnualRetirementSpending"),
            "initialNetWorth": val("initialNetWorth"),
        }
        for key in ("spouseEstimatedSocialSecurityBenefit", "spousePensionIncome"):
            if val(key) is not None:
                data[key] = val(key)

        # Inputs that only live in overrides
        for key in ("currentIncome", "currentAnnualExpenses", "mortgageBalance",
                    "annualMortgagePayment", "mortgagePayoffAge"):
            if overrides.get(key) is not None:
                data[key] = overrides[key]
        if overrides.get("mortgageInterestRate") is not None:
            data["mortgageInterestRate"] = Decimal(str(overrides["mortgageInterestRate"])) / 100

        if start_year is not None:
            data["startYear"] = start_year
        return validate_plan_parameters(data)


def _describe(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def validate_plan_parameters(params: Union[PlanParameters, Dict[str, Any]]) -> PlanParameters:
    """Return validated parameters or raise InvalidParameters listing every problem."""
    if isinstance(params, PlanParameters):
        return params
    try:
        return PlanParameters.model_validate(params)
    except ValidationError as e:
        raise InvalidParameters([_describe(err) for err in e.errors()]) from e
