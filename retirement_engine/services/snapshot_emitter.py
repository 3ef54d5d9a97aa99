from typing import List, Sequence
from uuid import UUID

from retirement_engine.services.plan_store import PlanStore
from retirement_engine.services.projection_calculator import AnnualProjection

# Every simulated year is persisted for user-facing plans
FULL_FIDELITY = 1
# Demo seeding only: one snapshot every five years
LEGACY_SEED_INTERVAL = 5


def sample_projections(projections: Sequence[AnnualProjection], interval: int = FULL_FIDELITY) -> List[AnnualProjection]:
    if interval < 1:
        raise ValueError("Sampling interval must be at least 1")
    return list(projections[::interval])


class SnapshotEmitter:
    """Persists calculated years as snapshots with one account state per bucket."""

    def __init__(self, store: PlanStore):
        self.store = store

    async def emit(self, plan_id: UUID, projections: Sequence[AnnualProjection], interval: int = FULL_FIDELITY) -> List[UUID]:
        snapshot_ids = []
        for p in sample_projections(projections, interval):
            snapshot_id = await self.store.create_snapshot(
                plan_id,
                p.year,
                p.age,
                p.grossIncome,
                p.netIncome,
                p.totalExpenses,
                p.totalAssets,
                p.totalLiabilities,
                p.netWorth,
                p.taxesPaid,
                p.cumulativeTax,
                income_breakdown=[
                    {"source": s.source, "amount": str(s.amount)} for s in p.incomeSources
                ],
            )
            for account in p.accounts:
                await self.store.create_account_state(
                    snapshot_id,
                    account.accountType.value,
                    account.accountName,
                    account.balance,
                    account.contribution,
                    account.withdrawal,
                    account.growth,
                )
            snapshot_ids.append(snapshot_id)
        return snapshot_ids
