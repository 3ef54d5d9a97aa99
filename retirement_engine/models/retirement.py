from typing import Optional, List, Any, Dict
from uuid import UUID
from decimal import Decimal
from datetime import datetime
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON
from uuid6 import uuid7

# Retirement Plan Models

class RetirementPlanBase(SQLModel):
    # Authentication lives outside this service, so the owner is a plain id
    userId: UUID = Field(index=True, sa_column_kwargs={"name": "user_id"})
    planName: str = Field(sa_column_kwargs={"name": "plan_name"})
    planType: str = Field(default="comprehensive", sa_column_kwargs={"name": "plan_type"})

    # Age & Timeline
    startAge: int = Field(sa_column_kwargs={"name": "start_age"})
    retirementAge: int = Field(default=65, sa_column_kwargs={"name": "retirement_age"})
    endAge: int = Field(default=95, sa_column_kwargs={"name": "end_age"})
    spouseStartAge: Optional[int] = Field(default=None, sa_column_kwargs={"name": "spouse_start_age"})

    # Rates are stored as percentages (7.0 == 7%)
    portfolioGrowthRate: Decimal = Field(default=Decimal("7.0"), max_digits=5, decimal_places=2, sa_column_kwargs={"name": "portfolio_growth_rate"})
    bondGrowthRate: Decimal = Field(default=Decimal("4.0"), max_digits=5, decimal_places=2, sa_column_kwargs={"name": "bond_growth_rate"})
    inflationRate: Decimal = Field(default=Decimal("3.0"), max_digits=5, decimal_places=2, sa_column_kwargs={"name": "inflation_rate"})

    # Retirement Income
    socialSecurityStartAge: int = Field(default=67, sa_column_kwargs={"name": "social_security_start_age"})
    estimatedSocialSecurityBenefit: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "estimated_social_security_benefit"})
    spouseSocialSecurityStartAge: Optional[int] = Field(default=None, sa_column_kwargs={"name": "spouse_social_security_start_age"})
    spouseEstimatedSocialSecurityBenefit: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "spouse_estimated_social_security_benefit"})
    pensionIncome: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "pension_income"})
    spousePensionIncome: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "spouse_pension_income"})

    # Spending & Starting Position
    desiredAnnualRetirementSpending: Decimal = Field(default=Decimal("80000"), max_digits=14, decimal_places=2, sa_column_kwargs={"name": "desired_annual_retirement_spending"})
    initialNetWorth: Decimal = Field(default=Decimal("250000"), max_digits=14, decimal_places=2, sa_column_kwargs={"name": "initial_net_worth"})

    # Plan Overrides (JSON)
    # Stores scenario-specific inputs like { "currentIncome": 120000, "mortgageBalance": 0 }
    planOverrides: Optional[Dict] = Field(default=None, sa_column=Column(JSON, name="plan_overrides"))

    # Metadata
    totalLifetimeTax: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "total_lifetime_tax"})

    isActive: bool = Field(default=True, sa_column_kwargs={"name": "is_active"})
    isStale: bool = Field(default=False, sa_column_kwargs={"name": "is_stale"})

class RetirementPlan(RetirementPlanBase, table=True):
    __tablename__ = "retirement_plans"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


# Annual Snapshot Models

class AnnualSnapshotBase(SQLModel):
    planId: UUID = Field(foreign_key="retirement_plans.id", index=True, sa_column_kwargs={"name": "plan_id"})
    year: int
    age: int
    grossIncome: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "gross_income"})
    netIncome: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "net_income"})
    totalExpenses: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "total_expenses"})
    totalAssets: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "total_assets"})
    totalLiabilities: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "total_liabilities"})
    netWorth: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "net_worth"})
    taxesPaid: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "taxes_paid"})
    cumulativeTax: Decimal = Field(default=0, max_digits=14, decimal_places=2, sa_column_kwargs={"name": "cumulative_tax"})

    incomeBreakdown: Optional[Any] = Field(default=None, sa_column=Column(JSON, name="income_breakdown"))

class AnnualSnapshot(AnnualSnapshotBase, table=True):
    __tablename__ = "annual_snapshots"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})

    # Relationships
    accounts: List["AccountBalance"] = Relationship(back_populates="snapshot")


# Account Balance Models (one row per bucket per snapshot)

class AccountBalanceBase(SQLModel):
    snapshotId: UUID = Field(foreign_key="annual_snapshots.id", index=True, sa_column_kwargs={"name": "snapshot_id"})
    accountType: str = Field(sa_column_kwargs={"name": "account_type"}) # 401k, roth_ira, brokerage, savings
    accountName: str = Field(sa_column_kwargs={"name": "account_name"})
    balance: Decimal = Field(default=0, max_digits=14, decimal_places=2)
    contribution: Decimal = Field(default=0, max_digits=14, decimal_places=2)
    withdrawal: Decimal = Field(default=0, max_digits=14, decimal_places=2)
    growth: Decimal = Field(default=0, max_digits=14, decimal_places=2)

class AccountBalance(AccountBalanceBase, table=True):
    __tablename__ = "account_balances"
    id: UUID = Field(default_factory=uuid7, primary_key=True)

    snapshot: Optional[AnnualSnapshot] = Relationship(back_populates="accounts")


# Read Models for API Responses

class AccountBalanceRead(AccountBalanceBase):
    id: UUID

class AnnualSnapshotRead(AnnualSnapshotBase):
    id: UUID
    createdAt: datetime
    accounts: List[AccountBalanceRead] = []
