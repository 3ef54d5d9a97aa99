from typing import List, Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from retirement_engine.database import get_db
from retirement_engine.models import RetirementPlan, UserMilestone
from retirement_engine.services.milestone_deriver import PERSONAL, STANDARD_MILESTONES, StandardMilestone

router = APIRouter()

# --- Pydantic Schemas ---

class PersonalMilestoneCreate(BaseModel):
    planId: UUID
    userId: UUID
    title: str
    description: Optional[str] = None
    targetYear: Optional[int] = None
    targetAge: Optional[int] = None
    category: Optional[str] = "personal"
    color: str = "#8b5cf6"
    icon: Optional[str] = "star"

# --- Endpoints ---

@router.get("/standard", response_model=List[StandardMilestone])
async def get_standard_milestones() -> Any:
    return list(STANDARD_MILESTONES)

@router.post("/personal", response_model=UserMilestone, status_code=201)
async def create_personal_milestone(
    milestone_in: PersonalMilestoneCreate,
    db: AsyncSession = Depends(get_db),
) -> Any:
    if milestone_in.targetYear is None and milestone_in.targetAge is None:
        raise HTTPException(status_code=422, detail="Either targetYear or targetAge is required")

    result = await db.execute(select(RetirementPlan).where(RetirementPlan.id == milestone_in.planId))
    plan = result.scalars().first()
    if not plan:
        raise HTTPException(status_code=404, detail="Retirement plan not found")
    if plan.userId != milestone_in.userId:
        raise HTTPException(status_code=403, detail="Not authorized")

    milestone = UserMilestone(milestoneType=PERSONAL, **milestone_in.model_dump())
    db.add(milestone)
    await db.commit()
    await db.refresh(milestone)
    return milestone

@router.delete("/{milestone_id}", status_code=204)
async def delete_personal_milestone(
    milestone_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(UserMilestone).where(UserMilestone.id == milestone_id))
    milestone = result.scalars().first()
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")
    if milestone.milestoneType != PERSONAL:
        raise HTTPException(status_code=400, detail="Standard milestones are regenerated with the plan and cannot be deleted")

    await db.delete(milestone)
    await db.commit()
    return None
