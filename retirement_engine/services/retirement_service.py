from typing import List, Optional
from uuid import UUID

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from retirement_engine.models import (
    RetirementPlan,
    AnnualSnapshot,
    UserMilestone
)
from retirement_engine.services.plan_orchestrator import GenerationResult, PlanOrchestrator
from retirement_engine.services.plan_parameters import PlanParameters
from retirement_engine.services.plan_store import SqlPlanStore
from retirement_engine.services.projection_calculator import AnnualProjection, calculate_projections
from retirement_engine.services.snapshot_emitter import FULL_FIDELITY


class RetirementService:
    """
    Service class responsible for business logic related to retirement planning.

    This service handles:
    1. Resolving a stored plan into projection parameters.
    2. Running (re)generation of a plan's snapshots and milestones.
    3. Reading generated data back for the API.
    4. Managing lifecycle of plan data (clearing generated data on delete).
    """
    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = SqlPlanStore(session)

    @staticmethod
    def resolve_parameters(plan: RetirementPlan) -> PlanParameters:
        # Years are labelled from the year the plan was created, when startAge was current
        return PlanParameters.from_plan(plan, start_year=plan.createdAt.year)

    def calculate_financial_projections(self, plan: RetirementPlan) -> List[AnnualProjection]:
        """Runs the simulation in memory without persisting anything."""
        return calculate_projections(self.resolve_parameters(plan))

    async def generate_retirement_plan(self, plan: RetirementPlan, interval: int = FULL_FIDELITY) -> GenerationResult:
        """
        Main entry point for generating a retirement plan.

        Raises:
            InvalidParameters: the plan's inputs are inconsistent; nothing was changed.
            GenerationFailed: persistence failed; the plan is left stale with only its personal milestones.
        """
        params = self.resolve_parameters(plan)
        result = await PlanOrchestrator(self.store).generate(plan.id, plan.userId, params, interval=interval)
        await self.session.refresh(plan)
        return result

    async def clear_plan_data(self, plan_id: UUID):
        async with self.store.transaction():
            await self.store.delete_generated_data(plan_id)

    async def get_plan(self, plan_id: UUID) -> Optional[RetirementPlan]:
        result = await self.session.execute(select(RetirementPlan).where(RetirementPlan.id == plan_id))
        return result.scalars().first()

    async def get_snapshots(self, plan_id: UUID, year: Optional[int] = None) -> List[AnnualSnapshot]:
        stmt = select(AnnualSnapshot).where(AnnualSnapshot.planId == plan_id).options(
            selectinload(AnnualSnapshot.accounts)
        ).order_by(AnnualSnapshot.year).execution_options(populate_existing=True)
        if year is not None:
            stmt = stmt.where(AnnualSnapshot.year == year)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_milestones(self, plan_id: UUID) -> List[UserMilestone]:
        stmt = select(UserMilestone).where(UserMilestone.planId == plan_id).order_by(UserMilestone.targetAge)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
