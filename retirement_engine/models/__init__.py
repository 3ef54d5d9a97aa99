from .retirement import (
    RetirementPlan,
    AnnualSnapshot,
    AccountBalance
)
from .milestone import UserMilestone
