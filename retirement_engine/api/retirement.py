import logging
from typing import List, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from retirement_engine.api import deps
from retirement_engine.core.exceptions import GenerationFailed, InvalidParameters
from retirement_engine.database import get_db
from retirement_engine.models import RetirementPlan
from retirement_engine.models.retirement import AnnualSnapshotRead, RetirementPlanBase
from retirement_engine.services.retirement_service import RetirementService

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PLANS_PER_USER = 4

# Fields that feed the projection; changing any of them regenerates the plan
CRITICAL_FIELDS = {
    'startAge', 'retirementAge', 'endAge', 'spouseStartAge',
    'portfolioGrowthRate', 'bondGrowthRate', 'inflationRate',
    'socialSecurityStartAge', 'estimatedSocialSecurityBenefit',
    'spouseSocialSecurityStartAge', 'spouseEstimatedSocialSecurityBenefit',
    'pensionIncome', 'spousePensionIncome',
    'desiredAnnualRetirementSpending', 'initialNetWorth', 'planOverrides',
}

# Derived or identity fields a client may not patch
READ_ONLY_FIELDS = {'id', 'userId', 'createdAt', 'totalLifetimeTax'}


class RetirementPlanCreate(RetirementPlanBase):
    pass


def _generation_error(e: GenerationFailed) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"message": "Failed to generate retirement plan data", "error": str(e.cause)},
    )


@router.get("", response_model=List[RetirementPlan])
async def get_retirement_plans(
    userId: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    List all retirement plans of a user.
    """
    result = await db.execute(select(RetirementPlan).where(RetirementPlan.userId == userId).order_by(RetirementPlan.createdAt.desc()))
    return result.scalars().all()

@router.post("", response_model=RetirementPlan, status_code=201)
async def create_retirement_plan(
    plan_data: RetirementPlanCreate,
    db: AsyncSession = Depends(get_db),
):
    # Check limit
    existing = await db.execute(select(RetirementPlan).where(RetirementPlan.userId == plan_data.userId))
    if len(existing.scalars().all()) >= MAX_PLANS_PER_USER:
        raise HTTPException(status_code=400, detail=f"Maximum of {MAX_PLANS_PER_USER} plans allowed per user")

    plan = RetirementPlan.model_validate(plan_data)
    try:
        RetirementService.resolve_parameters(plan)
    except InvalidParameters as e:
        raise HTTPException(status_code=422, detail=e.errors)

    db.add(plan)
    await db.commit()
    await db.refresh(plan)

    # Generate Logic - must complete before responding
    service = RetirementService(db)
    try:
        await service.generate_retirement_plan(plan)
    except GenerationFailed as e:
        # Don't keep a plan that claims data it does not have
        await db.delete(plan)
        await db.commit()
        raise _generation_error(e)

    return plan

@router.get("/{plan_id}", response_model=RetirementPlan)
async def get_retirement_plan(
    plan: RetirementPlan = Depends(deps.get_plan_or_404),
):
    return plan

@router.patch("/{plan_id}", response_model=RetirementPlan)
async def update_retirement_plan(
    plan_update: dict,
    plan: RetirementPlan = Depends(deps.get_plan_or_404),
    db: AsyncSession = Depends(get_db),
):
    # Update fields
    for key, value in plan_update.items():
        if key in READ_ONLY_FIELDS:
            continue
        if hasattr(plan, key):
            setattr(plan, key, value)

    regenerate = any(k in plan_update for k in CRITICAL_FIELDS)
    if regenerate:
        try:
            RetirementService.resolve_parameters(plan)
        except InvalidParameters as e:
            await db.rollback()
            raise HTTPException(status_code=422, detail=e.errors)
        plan.isStale = True

    db.add(plan)
    await db.commit()
    await db.refresh(plan)

    if regenerate:
        service = RetirementService(db)
        try:
            await service.generate_retirement_plan(plan)
        except GenerationFailed as e:
            raise _generation_error(e)

    return plan

@router.delete("/{plan_id}", status_code=204)
async def delete_retirement_plan(
    plan: RetirementPlan = Depends(deps.get_plan_or_404),
    db: AsyncSession = Depends(get_db),
):
    service = RetirementService(db)
    await service.clear_plan_data(plan.id)

    await db.delete(plan)
    await db.commit()
    return None

@router.post("/{plan_id}/regenerate")
async def regenerate_retirement_plan(
    plan: RetirementPlan = Depends(deps.get_plan_or_404),
    db: AsyncSession = Depends(get_db),
) -> Any:
    service = RetirementService(db)
    try:
        result = await service.generate_retirement_plan(plan)
    except InvalidParameters as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except GenerationFailed as e:
        raise _generation_error(e)

    logger.info(f"Regenerated plan {plan.id} with {result.snapshotCount} snapshots")
    response = result.model_dump()
    response["message"] = "Plan data regenerated successfully"
    return response

@router.get("/{plan_id}/full")
async def get_full_retirement_plan(
    plan: RetirementPlan = Depends(deps.get_plan_or_404),
    db: AsyncSession = Depends(get_db),
):
    service = RetirementService(db)
    snapshots = await service.get_snapshots(plan.id)
    milestones = await service.get_milestones(plan.id)

    response = plan.model_dump()
    response["snapshots"] = [AnnualSnapshotRead.model_validate(s) for s in snapshots]
    response["milestones"] = milestones
    return response

@router.get("/{plan_id}/year/{year}", response_model=AnnualSnapshotRead)
async def get_retirement_plan_snapshot(
    year: int,
    plan: RetirementPlan = Depends(deps.get_plan_or_404),
    db: AsyncSession = Depends(get_db),
):
    service = RetirementService(db)
    snapshots = await service.get_snapshots(plan.id, year=year)
    if not snapshots:
        raise HTTPException(status_code=404, detail=f"Snapshot for year {year} not found")

    return AnnualSnapshotRead.model_validate(snapshots[0])
