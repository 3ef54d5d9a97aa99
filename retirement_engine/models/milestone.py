from typing import Optional
from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field
from uuid6 import uuid7

# Milestone Models

class MilestoneBase(SQLModel):
    title: str
    description: Optional[str] = None
    targetYear: Optional[int] = Field(default=None, sa_column_kwargs={"name": "target_year"})
    targetAge: Optional[int] = Field(default=None, sa_column_kwargs={"name": "target_age"})
    category: Optional[str] = None # retirement, healthcare, financial, income, etc.
    color: str = Field(default="#3b82f6")
    icon: Optional[str] = None

class UserMilestone(MilestoneBase, table=True):
    __tablename__ = "user_milestones"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    # Standard milestones derived for a plan carry planId but no userId
    planId: Optional[UUID] = Field(default=None, foreign_key="retirement_plans.id", index=True, sa_column_kwargs={"name": "plan_id"})
    userId: Optional[UUID] = Field(default=None, sa_column_kwargs={"name": "user_id"})

    milestoneType: str = Field(sa_column_kwargs={"name": "milestone_type"}) # personal, standard
    isCompleted: bool = Field(default=False, sa_column_kwargs={"name": "is_completed"})

    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})
