import asyncio
import sys
import os
from uuid import UUID

# Add parent directory to path so we can import retirement_engine
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from retirement_engine.database import async_session_maker, init_db
from retirement_engine.models import RetirementPlan
from retirement_engine.services.retirement_service import RetirementService
from retirement_engine.services.snapshot_emitter import LEGACY_SEED_INTERVAL

DEMO_USER_ID = UUID("00000000-0000-7000-8000-000000000001")

DEMO_PLAN = {
    "planName": "Demo Retirement Plan",
    "planType": "demo",
    "startAge": 35,
    "retirementAge": 65,
    "endAge": 95,
    "portfolioGrowthRate": 7.0,
    "bondGrowthRate": 4.0,
    "inflationRate": 3.0,
    "socialSecurityStartAge": 67,
    "estimatedSocialSecurityBenefit": 28000,
    "pensionIncome": 0,
    "desiredAnnualRetirementSpending": 70000,
    "initialNetWorth": 250000,
}


async def seed_demo_plan():
    print("1. Creating tables...")
    await init_db()

    async with async_session_maker() as session:
        print("2. Creating demo plan...")
        plan = RetirementPlan(userId=DEMO_USER_ID, **DEMO_PLAN)
        session.add(plan)
        await session.commit()
        await session.refresh(plan)

        # Demo data only: sparse snapshots keep the seed small
        print(f"3. Generating snapshots every {LEGACY_SEED_INTERVAL} years...")
        service = RetirementService(session)
        result = await service.generate_retirement_plan(plan, interval=LEGACY_SEED_INTERVAL)
        print(
            f"Success! Plan {plan.id}: {result.snapshotCount} snapshots, "
            f"{result.milestoneCount} milestones, lifetime tax {result.totalLifetimeTax}"
        )


if __name__ == "__main__":
    asyncio.run(seed_demo_plan())
