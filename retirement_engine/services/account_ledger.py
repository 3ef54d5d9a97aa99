from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_cents(value) -> Decimal:
    """Quantize a monetary amount to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class AccountType(str, Enum):
    TAX_DEFERRED = "401k"
    ROTH = "roth_ira"
    BROKERAGE = "brokerage"
    CASH = "savings"

    @property
    def display_name(self) -> str:
        return ACCOUNT_NAMES[self]

    @property
    def is_investable(self) -> bool:
        # Cash is excluded from the retirement portfolio draw
        return self is not AccountType.CASH


ACCOUNT_NAMES = {
    AccountType.TAX_DEFERRED: "Company 401(k)",
    AccountType.ROTH: "Roth IRA",
    AccountType.BROKERAGE: "Taxable Brokerage",
    AccountType.CASH: "Savings Account",
}


class BucketFlow(BaseModel):
    model_config = ConfigDict(frozen=True)

    contribution: Decimal = ZERO
    withdrawal: Decimal = ZERO


class AllocationPolicy(Protocol):
    """
    Splits a year's contribution and withdrawal totals across the account buckets.

    Implementations must guarantee:
    - sum of contributions == contribution_total
    - sum of withdrawals == min(withdrawal_total, sum of balances)
    - no bucket gives up more than its balance
    """
    def apply(
        self,
        contribution_total: Decimal,
        withdrawal_total: Decimal,
        balances: Mapping[AccountType, Decimal],
    ) -> Dict[AccountType, BucketFlow]:
        ...


def _check_weights(weights: Mapping[AccountType, Decimal], label: str) -> Dict[AccountType, Decimal]:
    cleaned = {AccountType(t): Decimal(str(w)) for t, w in weights.items()}
    if any(w < 0 for w in cleaned.values()):
        raise ValueError(f"{label} weights must not be negative")
    if sum(cleaned.values()) <= 0:
        raise ValueError(f"{label} weights must sum to a positive number")
    return cleaned


def split_by_weights(total: Decimal, weights: Mapping[AccountType, Decimal]) -> Dict[AccountType, Decimal]:
    """
    Split `total` (in cents) proportionally to `weights`.

    Every share but the last is rounded down to the cent and the last weighted
    bucket takes the remainder, so the shares always add up to `total` exactly.
    """
    shares = {t: ZERO for t in AccountType}
    weighted = [(t, w) for t, w in weights.items() if w > 0]
    if total <= 0 or not weighted:
        return shares

    total_weight = sum(w for _, w in weighted)
    allocated = ZERO
    for account_type, weight in weighted[:-1]:
        share = (total * weight / total_weight).quantize(CENT, rounding=ROUND_DOWN)
        shares[account_type] = share
        allocated += share
    shares[weighted[-1][0]] = total - allocated
    return shares


def draw_in_order(
    total: Decimal,
    order: Iterable[AccountType],
    balances: Mapping[AccountType, Decimal],
    already_drawn: Optional[Mapping[AccountType, Decimal]] = None,
) -> Dict[AccountType, Decimal]:
    """Drain buckets one after another until `total` is covered or the buckets run dry."""
    drawn = {t: (already_drawn or {}).get(t, ZERO) for t in AccountType}
    remaining = total
    for account_type in order:
        if remaining <= 0:
            break
        capacity = balances.get(account_type, ZERO) - drawn[account_type]
        take = min(remaining, max(ZERO, capacity))
        drawn[account_type] += take
        remaining -= take
    return drawn


def draw_proportionally(
    total: Decimal,
    weights: Mapping[AccountType, Decimal],
    balances: Mapping[AccountType, Decimal],
) -> Dict[AccountType, Decimal]:
    """
    Draw `total` across the weighted buckets in proportion to their weights.

    A bucket that cannot cover its share is emptied and the shortfall is spread
    over the weighted buckets that still hold money. Whatever is left after all
    weighted buckets are empty comes from the remaining buckets in enum order.
    """
    drawn = {t: ZERO for t in AccountType}
    remaining = min(total, sum(balances.values(), ZERO))

    active = [t for t in AccountType if weights.get(t, 0) > 0 and balances.get(t, ZERO) > 0]
    while remaining > 0 and active:
        shares = split_by_weights(remaining, {t: weights[t] for t in active})
        for account_type in active:
            capacity = balances[account_type] - drawn[account_type]
            take = min(shares[account_type], capacity)
            drawn[account_type] += take
            remaining -= take
        active = [t for t in active if balances[t] - drawn[t] > 0]

    if remaining > 0:
        drawn = draw_in_order(remaining, list(AccountType), balances, already_drawn=drawn)
    return drawn


DEFAULT_CONTRIBUTION_WEIGHTS = {
    AccountType.TAX_DEFERRED: Decimal("0.50"),
    AccountType.ROTH: Decimal("0.20"),
    AccountType.BROKERAGE: Decimal("0.20"),
    AccountType.CASH: Decimal("0.10"),
}

DEFAULT_WITHDRAWAL_WEIGHTS = {
    AccountType.TAX_DEFERRED: Decimal("0.40"),
    AccountType.ROTH: Decimal("0.20"),
    AccountType.BROKERAGE: Decimal("0.40"),
}

# Taxable money first, tax-free growth last, cash as the final reserve
TAXABLE_FIRST_ORDER = (
    AccountType.BROKERAGE,
    AccountType.TAX_DEFERRED,
    AccountType.ROTH,
    AccountType.CASH,
)


def _combine(contributions: Mapping[AccountType, Decimal], withdrawals: Mapping[AccountType, Decimal]) -> Dict[AccountType, BucketFlow]:
    return {
        t: BucketFlow(contribution=contributions.get(t, ZERO), withdrawal=withdrawals.get(t, ZERO))
        for t in AccountType
    }


class ProportionalPolicy:
    """Fixed proportional weights for both contributions and withdrawals."""

    def __init__(
        self,
        contribution_weights: Optional[Mapping[AccountType, Decimal]] = None,
        withdrawal_weights: Optional[Mapping[AccountType, Decimal]] = None,
    ):
        self.contribution_weights = _check_weights(contribution_weights or DEFAULT_CONTRIBUTION_WEIGHTS, "Contribution")
        self.withdrawal_weights = _check_weights(withdrawal_weights or DEFAULT_WITHDRAWAL_WEIGHTS, "Withdrawal")

    def apply(self, contribution_total, withdrawal_total, balances):
        contributions = split_by_weights(max(ZERO, contribution_total), self.contribution_weights)
        withdrawals = draw_proportionally(max(ZERO, withdrawal_total), self.withdrawal_weights, balances)
        return _combine(contributions, withdrawals)


class SequencedWithdrawalPolicy:
    """Proportional contributions; withdrawals drain buckets in a fixed order."""

    def __init__(
        self,
        order: Sequence[AccountType] = TAXABLE_FIRST_ORDER,
        contribution_weights: Optional[Mapping[AccountType, Decimal]] = None,
    ):
        order = [AccountType(t) for t in order]
        if len(set(order)) != len(order):
            raise ValueError("Withdrawal order must not repeat an account type")
        # Buckets left out of the order are still drawn last so the totals balance
        self.order = order + [t for t in AccountType if t not in order]
        self.contribution_weights = _check_weights(contribution_weights or DEFAULT_CONTRIBUTION_WEIGHTS, "Contribution")

    def apply(self, contribution_total, withdrawal_total, balances):
        contributions = split_by_weights(max(ZERO, contribution_total), self.contribution_weights)
        withdrawals = draw_in_order(min(max(ZERO, withdrawal_total), sum(balances.values(), ZERO)), self.order, balances)
        return _combine(contributions, withdrawals)
