from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from retirement_engine.services.account_ledger import (
    ZERO,
    AccountType,
    AllocationPolicy,
    ProportionalPolicy,
    split_by_weights,
    to_cents,
)
from retirement_engine.services.financial_assumptions_service import (
    DEFAULT_ASSUMPTIONS,
    ProjectionAssumptions,
)
from retirement_engine.services.plan_parameters import PlanParameters

WORKING = "working"
RETIRED = "retired"


class AccountState(BaseModel):
    model_config = ConfigDict(frozen=True)

    accountType: AccountType
    accountName: str
    balance: Decimal
    contribution: Decimal
    withdrawal: Decimal
    growth: Decimal


class IncomeSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    amount: Decimal


class AnnualProjection(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    age: int
    phase: str
    grossIncome: Decimal
    netIncome: Decimal
    totalExpenses: Decimal
    taxesPaid: Decimal
    cumulativeTax: Decimal
    totalAssets: Decimal
    totalLiabilities: Decimal
    netWorth: Decimal
    withdrawalShortfall: Decimal = ZERO
    isDepleted: bool = False
    incomeSources: List[IncomeSource] = []
    accounts: List[AccountState] = []


class ProjectionState(BaseModel):
    """Running balances carried from one simulated year into the next."""
    model_config = ConfigDict(frozen=True)

    balances: Dict[AccountType, Decimal]
    mortgageBalance: Decimal
    cumulativeTax: Decimal = ZERO


def initial_state(params: PlanParameters, assumptions: ProjectionAssumptions = DEFAULT_ASSUMPTIONS) -> ProjectionState:
    balances = split_by_weights(to_cents(params.initialNetWorth), assumptions.initial_allocation)
    mortgage = to_cents(params.mortgageBalance) if params.startAge < params.mortgagePayoffAge else ZERO
    return ProjectionState(balances=balances, mortgageBalance=mortgage)


def amortize_liability(balance: Decimal, age: int, params: PlanParameters) -> Decimal:
    """Pay down the mortgage for one year; paid off in full at the payoff age."""
    if age >= params.mortgagePayoffAge or balance <= 0:
        return ZERO
    interest = to_cents(balance * params.mortgageInterestRate)
    principal = max(ZERO, to_cents(params.annualMortgagePayment) - interest)
    return max(ZERO, balance - principal)


def _fixed_retirement_income(params: PlanParameters, age: int) -> List[IncomeSource]:
    """Social Security and pensions; the portfolio draw is not included."""
    sources = []
    if age >= params.socialSecurityStartAge and params.estimatedSocialSecurityBenefit > 0:
        sources.append(IncomeSource(source="Social Security", amount=to_cents(params.estimatedSocialSecurityBenefit)))

    if params.spouseStartAge is not None and params.spouseSocialSecurityStartAge is not None:
        spouse_age = params.spouseStartAge + (age - params.startAge)
        if spouse_age >= params.spouseSocialSecurityStartAge and params.spouseEstimatedSocialSecurityBenefit > 0:
            sources.append(IncomeSource(source="Spouse Social Security", amount=to_cents(params.spouseEstimatedSocialSecurityBenefit)))

    if params.pensionIncome > 0:
        sources.append(IncomeSource(source="Pension", amount=to_cents(params.pensionIncome)))
    if params.spousePensionIncome > 0:
        sources.append(IncomeSource(source="Spouse Pension", amount=to_cents(params.spousePensionIncome)))
    return sources


def _growth_rate(account_type: AccountType, params: PlanParameters) -> Decimal:
    return params.bondGrowthRate if account_type is AccountType.CASH else params.portfolioGrowthRate


def project_year(
    params: PlanParameters,
    state: ProjectionState,
    age: int,
    assumptions: ProjectionAssumptions = DEFAULT_ASSUMPTIONS,
    policy: Optional[AllocationPolicy] = None,
) -> Tuple[ProjectionState, AnnualProjection]:
    """
    Simulate a single year.

    Pure: the returned state is new and `state` is left untouched, so any year
    can be recomputed from the state that preceded it.
    """
    policy = policy or ProportionalPolicy()
    years_from_start = age - params.startAge
    inflator = (1 + params.inflationRate) ** years_from_start
    is_retired = age >= params.retirementAge

    # 1. Income
    if not is_retired:
        salary = to_cents(params.currentIncome * inflator)
        income_sources = [IncomeSource(source="Salary", amount=salary)]
        fixed_income = ZERO
        retention = assumptions.retention.working
    else:
        investable = sum((b for t, b in state.balances.items() if t.is_investable), ZERO)
        portfolio_draw = to_cents(investable * assumptions.withdrawal_rate)
        fixed_sources = _fixed_retirement_income(params, age)
        fixed_income = sum((s.amount for s in fixed_sources), ZERO)
        income_sources = [IncomeSource(source="Portfolio Withdrawal", amount=portfolio_draw)] + fixed_sources
        retention = assumptions.retention.retired

    gross_income = sum((s.amount for s in income_sources), ZERO)
    net_income = to_cents(gross_income * retention)
    taxes_paid = gross_income - net_income

    # 2. Expenses
    baseline = params.desiredAnnualRetirementSpending if is_retired else params.currentAnnualExpenses
    total_expenses = to_cents(baseline * inflator)

    # 3. Contribution / Withdrawal Totals
    if not is_retired:
        limits = assumptions.contributions
        retirement_contribution = min(limits.ceiling(age), to_cents(gross_income * limits.contribution_rate))
        surplus = max(ZERO, net_income - total_expenses - retirement_contribution)
        contribution_total = retirement_contribution + surplus
        withdrawal_total = ZERO
    else:
        contribution_total = ZERO
        withdrawal_total = max(ZERO, total_expenses - fixed_income)

    flows = policy.apply(contribution_total, withdrawal_total, state.balances)

    # 4. Flows & Growth per bucket
    balances: Dict[AccountType, Decimal] = {}
    accounts: List[AccountState] = []
    withdrawn = ZERO
    for account_type in AccountType:
        flow = flows[account_type]
        after_flows = max(ZERO, state.balances.get(account_type, ZERO) + flow.contribution - flow.withdrawal)
        growth = to_cents(after_flows * _growth_rate(account_type, params))
        balance = max(ZERO, after_flows + growth)
        balances[account_type] = balance
        withdrawn += flow.withdrawal
        accounts.append(AccountState(
            accountType=account_type,
            accountName=account_type.display_name,
            balance=balance,
            contribution=flow.contribution,
            withdrawal=flow.withdrawal,
            growth=growth,
        ))

    # 5. Liability
    mortgage = amortize_liability(state.mortgageBalance, age, params)

    # 6. Tax & Totals
    cumulative_tax = state.cumulativeTax + taxes_paid
    total_assets = sum(balances.values(), ZERO)

    projection = AnnualProjection(
        year=params.year_for_age(age),
        age=age,
        phase=RETIRED if is_retired else WORKING,
        grossIncome=gross_income,
        netIncome=net_income,
        totalExpenses=total_expenses,
        taxesPaid=taxes_paid,
        cumulativeTax=cumulative_tax,
        totalAssets=total_assets,
        totalLiabilities=mortgage,
        netWorth=total_assets - mortgage,
        withdrawalShortfall=withdrawal_total - withdrawn,
        isDepleted=total_assets == 0,
        incomeSources=income_sources,
        accounts=accounts,
    )
    next_state = ProjectionState(balances=balances, mortgageBalance=mortgage, cumulativeTax=cumulative_tax)
    return next_state, projection


def calculate_projections(
    params: PlanParameters,
    assumptions: ProjectionAssumptions = DEFAULT_ASSUMPTIONS,
    policy: Optional[AllocationPolicy] = None,
) -> List[AnnualProjection]:
    """
    Year-by-year simulation from startAge to endAge inclusive.

    Each year is folded from the state the previous year produced; the run
    reads no clock and no randomness, so identical inputs give identical output.
    """
    policy = policy or ProportionalPolicy()
    state = initial_state(params, assumptions)
    projections = []
    for age in params.age_range:
        state, projection = project_year(params, state, age, assumptions, policy)
        projections.append(projection)
    return projections


def depletion_age(projections: List[AnnualProjection]) -> Optional[int]:
    """First age at which every account is empty, if the money runs out."""
    for p in projections:
        if p.isDepleted:
            return p.age
    return None
