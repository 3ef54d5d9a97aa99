from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, List, Optional, Protocol
from uuid import UUID

from sqlmodel import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from retirement_engine.models import (
    RetirementPlan,
    AnnualSnapshot,
    AccountBalance,
    UserMilestone
)
from retirement_engine.services.milestone_deriver import PERSONAL, MilestoneRecord


class PlanStore(Protocol):
    """Storage collaborator consumed by the generation run."""

    def transaction(self) -> Any:
        """Async context manager: commit on success, roll back on error."""
        ...

    async def delete_generated_data(self, plan_id: UUID) -> None:
        ...

    async def create_snapshot(
        self,
        plan_id: UUID,
        year: int,
        age: int,
        gross_income: Decimal,
        net_income: Decimal,
        total_expenses: Decimal,
        total_assets: Decimal,
        total_liabilities: Decimal,
        net_worth: Decimal,
        taxes_paid: Decimal,
        cumulative_tax: Decimal,
        income_breakdown: Optional[List[dict]] = None,
    ) -> UUID:
        ...

    async def create_account_state(
        self,
        snapshot_id: UUID,
        account_type: str,
        account_name: str,
        balance: Decimal,
        contribution: Decimal,
        withdrawal: Decimal,
        growth: Decimal,
    ) -> None:
        ...

    async def create_milestone(
        self,
        plan_id: Optional[UUID],
        user_id: Optional[UUID],
        milestone_type: str,
        title: str,
        description: Optional[str],
        target_year: Optional[int],
        target_age: Optional[int],
        category: Optional[str],
        color: str,
        icon: Optional[str],
        is_completed: bool = False,
    ) -> None:
        ...

    async def update_plan_aggregate(self, plan_id: UUID, total_lifetime_tax: Decimal) -> None:
        ...

    async def reset_plan_aggregate(self, plan_id: UUID) -> None:
        """Zero totalLifetimeTax and mark the plan stale after its data was discarded."""
        ...

    async def list_personal_milestones(self, plan_id: UUID) -> List[MilestoneRecord]:
        ...


class SqlPlanStore:
    """
    PlanStore backed by an AsyncSession.

    Writes are flushed as they happen but only committed when the surrounding
    `transaction()` exits, so readers see either the old run or the new one.
    """
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    async def delete_generated_data(self, plan_id: UUID):
        # Children first; bulk deletes skip the ORM cascade
        snapshot_ids = select(AnnualSnapshot.id).where(AnnualSnapshot.planId == plan_id)
        statements = [
            delete(AccountBalance).where(AccountBalance.snapshotId.in_(snapshot_ids)),
            delete(AnnualSnapshot).where(AnnualSnapshot.planId == plan_id),
            delete(UserMilestone).where(UserMilestone.planId == plan_id),
        ]
        for stmt in statements:
            await self.session.execute(stmt.execution_options(synchronize_session=False))

    async def create_snapshot(
        self,
        plan_id,
        year,
        age,
        gross_income,
        net_income,
        total_expenses,
        total_assets,
        total_liabilities,
        net_worth,
        taxes_paid,
        cumulative_tax,
        income_breakdown=None,
    ) -> UUID:
        snapshot = AnnualSnapshot(
            planId=plan_id,
            year=year,
            age=age,
            grossIncome=gross_income,
            netIncome=net_income,
            totalExpenses=total_expenses,
            totalAssets=total_assets,
            totalLiabilities=total_liabilities,
            netWorth=net_worth,
            taxesPaid=taxes_paid,
            cumulativeTax=cumulative_tax,
            incomeBreakdown=income_breakdown,
        )
        self.session.add(snapshot)
        await self.session.flush()
        return snapshot.id

    async def create_account_state(self, snapshot_id, account_type, account_name, balance, contribution, withdrawal, growth):
        self.session.add(AccountBalance(
            snapshotId=snapshot_id,
            accountType=account_type,
            accountName=account_name,
            balance=balance,
            contribution=contribution,
            withdrawal=withdrawal,
            growth=growth,
        ))
        await self.session.flush()

    async def create_milestone(self, plan_id, user_id, milestone_type, title, description, target_year, target_age, category, color, icon, is_completed=False):
        self.session.add(UserMilestone(
            planId=plan_id,
            userId=user_id,
            milestoneType=milestone_type,
            title=title,
            description=description,
            targetYear=target_year,
            targetAge=target_age,
            category=category,
            color=color,
            icon=icon,
            isCompleted=is_completed,
        ))
        await self.session.flush()

    async def update_plan_aggregate(self, plan_id, total_lifetime_tax):
        plan = await self._get_plan(plan_id)
        plan.totalLifetimeTax = total_lifetime_tax
        plan.isStale = False
        self.session.add(plan)
        await self.session.flush()

    async def reset_plan_aggregate(self, plan_id):
        plan = await self._get_plan(plan_id)
        plan.totalLifetimeTax = Decimal("0")
        plan.isStale = True
        self.session.add(plan)
        await self.session.flush()

    async def _get_plan(self, plan_id) -> RetirementPlan:
        result = await self.session.execute(select(RetirementPlan).where(RetirementPlan.id == plan_id))
        plan = result.scalars().first()
        if not plan:
            raise ValueError(f"Retirement plan {plan_id} not found")
        return plan

    async def list_personal_milestones(self, plan_id) -> List[MilestoneRecord]:
        stmt = select(UserMilestone).where(
            UserMilestone.planId == plan_id,
            UserMilestone.milestoneType == PERSONAL
        ).order_by(UserMilestone.createdAt)
        result = await self.session.execute(stmt)
        return [
            MilestoneRecord(
                milestoneType=m.milestoneType,
                title=m.title,
                description=m.description,
                targetYear=m.targetYear,
                targetAge=m.targetAge,
                category=m.category,
                color=m.color,
                icon=m.icon,
                userId=m.userId,
                isCompleted=m.isCompleted,
            )
            for m in result.scalars().all()
        ]
