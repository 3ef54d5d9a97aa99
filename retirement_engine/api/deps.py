from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from retirement_engine.database import get_db
from retirement_engine.models import RetirementPlan


async def get_plan_or_404(
    plan_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> RetirementPlan:
    result = await db.execute(select(RetirementPlan).where(RetirementPlan.id == plan_id))
    plan = result.scalars().first()
    if not plan:
        raise HTTPException(status_code=404, detail="Retirement plan not found")
    return plan
