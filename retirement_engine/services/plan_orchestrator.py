import asyncio
import logging
import weakref
from decimal import Decimal
from typing import Iterable, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from retirement_engine.core.exceptions import GenerationFailed
from retirement_engine.services.account_ledger import AllocationPolicy, ProportionalPolicy
from retirement_engine.services.financial_assumptions_service import DEFAULT_ASSUMPTIONS, ProjectionAssumptions
from retirement_engine.services.milestone_deriver import PERSONAL, MilestoneRecord, derive_milestones
from retirement_engine.services.plan_parameters import PlanParameters, validate_plan_parameters
from retirement_engine.services.plan_store import PlanStore
from retirement_engine.services.projection_calculator import calculate_projections, depletion_age
from retirement_engine.services.snapshot_emitter import FULL_FIDELITY, SnapshotEmitter

logger = logging.getLogger(__name__)


class PlanLockRegistry:
    """One asyncio.Lock per plan id, dropped once no run holds it."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, plan_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(plan_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[plan_id] = lock
        return lock


plan_locks = PlanLockRegistry()


class GenerationResult(BaseModel):
    planId: UUID
    snapshotCount: int
    milestoneCount: int
    totalLifetimeTax: Decimal
    depletionAge: Optional[int] = None


class PlanOrchestrator:
    """
    Runs one full (re)generation of a plan's projected data.

    Steps:
    1. Validates the parameters before anything is touched.
    2. Clears the snapshots, account balances and milestones of the previous run.
    3. Runs the projection calculator over the whole age range.
    4. Persists snapshots and account balances.
    5. Persists derived standard milestones and the plan's personal milestones.
    6. Updates the plan's totalLifetimeTax from the last cumulative tax.

    Steps 2-6 run inside one store transaction while holding the plan's lock.
    If anything fails, the plan's generated data is removed, its personal
    milestones are written back, the plan is marked stale with no lifetime tax,
    and GenerationFailed is raised. A plan never points at a partial snapshot set.
    """
    def __init__(
        self,
        store: PlanStore,
        assumptions: ProjectionAssumptions = DEFAULT_ASSUMPTIONS,
        policy: Optional[AllocationPolicy] = None,
        locks: Optional[PlanLockRegistry] = None,
    ):
        self.store = store
        self.assumptions = assumptions
        self.policy = policy or ProportionalPolicy()
        self.locks = locks or plan_locks

    async def generate(
        self,
        plan_id: UUID,
        user_id: Optional[UUID],
        params: Union[PlanParameters, dict],
        personal_milestones: Optional[Iterable[MilestoneRecord]] = None,
        interval: int = FULL_FIDELITY,
    ) -> GenerationResult:
        params = validate_plan_parameters(params)

        async with self.locks.lock_for(plan_id):
            logger.info(f"Generating retirement plan data for plan {plan_id} (ages {params.startAge}-{params.endAge})")

            if personal_milestones is None:
                try:
                    personal_milestones = await self.store.list_personal_milestones(plan_id)
                except Exception as e:
                    logger.error(f"Could not read personal milestones for plan {plan_id}: {e}")
                    raise GenerationFailed(plan_id, e) from e
            personal_milestones = list(personal_milestones)

            try:
                async with self.store.transaction():
                    result = await self._run(plan_id, user_id, params, personal_milestones, interval)
            except asyncio.CancelledError:
                logger.warning(f"Generation for plan {plan_id} was cancelled; removing partial output")
                await self._discard_partial_output(plan_id, user_id, personal_milestones)
                raise
            except Exception as e:
                logger.error(f"Failed to generate projections for plan {plan_id}: {e}")
                await self._discard_partial_output(plan_id, user_id, personal_milestones)
                raise GenerationFailed(plan_id, e) from e

        logger.info(
            f"Generated {result.snapshotCount} snapshots and {result.milestoneCount} milestones "
            f"for plan {plan_id} (lifetime tax {result.totalLifetimeTax})"
        )
        return result

    async def _run(
        self,
        plan_id: UUID,
        user_id: Optional[UUID],
        params: PlanParameters,
        personal_milestones: List[MilestoneRecord],
        interval: int,
    ) -> GenerationResult:
        await self.store.delete_generated_data(plan_id)

        projections = calculate_projections(params, self.assumptions, self.policy)

        snapshot_ids = await SnapshotEmitter(self.store).emit(plan_id, projections, interval)

        milestones = derive_milestones(params, personal_milestones)
        for m in milestones:
            await self._save_milestone(plan_id, user_id, m)

        total_lifetime_tax = projections[-1].cumulativeTax
        await self.store.update_plan_aggregate(plan_id, total_lifetime_tax)

        return GenerationResult(
            planId=plan_id,
            snapshotCount=len(snapshot_ids),
            milestoneCount=len(milestones),
            totalLifetimeTax=total_lifetime_tax,
            depletionAge=depletion_age(projections),
        )

    async def _save_milestone(self, plan_id: UUID, user_id: Optional[UUID], m: MilestoneRecord):
        owner = (m.userId or user_id) if m.milestoneType == PERSONAL else None
        await self.store.create_milestone(
            plan_id,
            owner,
            m.milestoneType,
            m.title,
            m.description,
            m.targetYear,
            m.targetAge,
            m.category,
            m.color,
            m.icon,
            is_completed=m.isCompleted,
        )

    async def _discard_partial_output(
        self,
        plan_id: UUID,
        user_id: Optional[UUID],
        personal_milestones: List[MilestoneRecord],
    ):
        """
        Leaves the plan with no generated data and marks it stale.

        Personal milestones read before the run are written back after the clear.
        """
        try:
            async with self.store.transaction():
                await self.store.delete_generated_data(plan_id)
                for m in personal_milestones:
                    await self._save_milestone(plan_id, user_id, m)
                await self.store.reset_plan_aggregate(plan_id)
        except Exception as e:
            # The original failure is still raised by the caller
            logger.error(f"Could not remove partial output for plan {plan_id}: {e}")
