from typing import Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, computed_field

from retirement_engine.services.plan_parameters import PlanParameters

STANDARD = "standard"
PERSONAL = "personal"

CATEGORY_COLORS = {
    "retirement": "#10b981",
    "healthcare": "#ef4444",
    "financial": "#f59e0b",
    "income": "#3b82f6",
}


class StandardMilestone(BaseModel):
    model_config = ConfigDict(frozen=True)

    targetAge: int
    title: str
    description: str
    category: str
    icon: str

    @computed_field
    @property
    def color(self) -> str:
        return CATEGORY_COLORS.get(self.category, "#3b82f6")


class MilestoneRecord(BaseModel):
    """A milestone ready to be persisted for a plan."""
    model_config = ConfigDict(frozen=True)

    milestoneType: str
    title: str
    description: Optional[str] = None
    targetYear: Optional[int] = None
    targetAge: Optional[int] = None
    category: Optional[str] = None
    color: str = "#3b82f6"
    icon: Optional[str] = None
    userId: Optional[UUID] = None
    isCompleted: bool = False


STANDARD_MILESTONES = (
    StandardMilestone(
        targetAge=50,
        title="Catch-up Contributions",
        description="Eligible for additional 401(k) and IRA contributions",
        category="financial",
        icon="dollar-sign",
    ),
    StandardMilestone(
        targetAge=55,
        title="The Rule of 55",
        description="Leaving your job in or after the year you turn 55 allows penalty-free (but taxed) withdrawals from that employer's 401(k).",
        category="retirement",
        icon="info",
    ),
    StandardMilestone(
        targetAge=62,
        title="Early Social Security",
        description="Eligible for reduced Social Security benefits (75% of full benefit)",
        category="income",
        icon="clock",
    ),
    StandardMilestone(
        targetAge=65,
        title="Medicare Eligibility",
        description="Eligible for Medicare health insurance",
        category="healthcare",
        icon="shield",
    ),
    StandardMilestone(
        targetAge=67,
        title="Full Retirement Age",
        description="Eligible for full Social Security benefits",
        category="income",
        icon="clock",
    ),
    StandardMilestone(
        targetAge=70,
        title="Max Social Security",
        description="Benefits stop increasing. There is no financial benefit to waiting past age 70 to claim.",
        category="income",
        icon="clock",
    ),
    StandardMilestone(
        targetAge=73,
        title="Required Minimum Distributions",
        description="Must begin taking RMDs from retirement accounts",
        category="financial",
        icon="dollar-sign",
    ),
)


def derive_milestones(
    params: PlanParameters,
    personal: Iterable[MilestoneRecord] = (),
    catalog: Iterable[StandardMilestone] = STANDARD_MILESTONES,
) -> List[MilestoneRecord]:
    """
    Standard milestones inside [startAge, endAge] plus the plan's retirement date,
    followed by the personal milestones exactly as given.
    """
    # Retirement Begins depends on the plan so it is not in the catalog;
    # it is typed standard so each run replaces it with the plan data
    derived = [
        MilestoneRecord(
            milestoneType=STANDARD,
            title="Retirement Begins",
            description="Start of retirement phase",
            targetYear=params.year_for_age(params.retirementAge),
            targetAge=params.retirementAge,
            category="retirement",
            color=CATEGORY_COLORS["retirement"],
            icon="calendar",
        )
    ]
    for m in catalog:
        if params.startAge <= m.targetAge <= params.endAge:
            derived.append(MilestoneRecord(
                milestoneType=STANDARD,
                title=m.title,
                description=m.description,
                targetYear=params.year_for_age(m.targetAge),
                targetAge=m.targetAge,
                category=m.category,
                color=m.color,
                icon=m.icon,
            ))
    derived.sort(key=lambda m: m.targetAge)

    return derived + list(personal)
