import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

from uuid6 import uuid7

from retirement_engine.services.milestone_deriver import PERSONAL, MilestoneRecord


class InMemoryPlanStore:
    """
    PlanStore double that writes immediately, without transactions,
    so partial output and its cleanup are visible to tests.
    """

    def __init__(self, fail_on: Optional[str] = None, fail_after: int = 0, block_on: Optional[str] = None):
        self.snapshots = {}
        self.account_states = []
        self.milestones = []
        self.aggregates = {}
        self.stale = set()
        self.calls = []
        self.fail_on = fail_on
        self.fail_after = fail_after
        self.block_on = block_on
        self.blocked = asyncio.Event()
        self._seen = 0

    async def _tick(self, op: str):
        self.calls.append(op)
        if op == self.fail_on:
            self._seen += 1
            if self._seen > self.fail_after:
                raise RuntimeError(f"{op} failed")
        if op == self.block_on:
            self.blocked.set()
            await asyncio.Event().wait()
        # Give other tasks a chance to interleave
        await asyncio.sleep(0)

    @asynccontextmanager
    async def transaction(self):
        yield

    async def delete_generated_data(self, plan_id):
        await self._tick("delete_generated_data")
        removed = {sid for sid, s in self.snapshots.items() if s["plan_id"] == plan_id}
        self.snapshots = {sid: s for sid, s in self.snapshots.items() if sid not in removed}
        self.account_states = [a for a in self.account_states if a["snapshot_id"] not in removed]
        self.milestones = [m for m in self.milestones if m["plan_id"] != plan_id]

    async def create_snapshot(self, plan_id, year, age, gross_income, net_income, total_expenses,
                              total_assets, total_liabilities, net_worth, taxes_paid, cumulative_tax,
                              income_breakdown=None):
        await self._tick("create_snapshot")
        snapshot_id = uuid7()
        self.snapshots[snapshot_id] = {
            "plan_id": plan_id,
            "year": year,
            "age": age,
            "grossIncome": gross_income,
            "netIncome": net_income,
            "totalExpenses": total_expenses,
            "totalAssets": total_assets,
            "totalLiabilities": total_liabilities,
            "netWorth": net_worth,
            "taxesPaid": taxes_paid,
            "cumulativeTax": cumulative_tax,
            "incomeBreakdown": income_breakdown,
        }
        return snapshot_id

    async def create_account_state(self, snapshot_id, account_type, account_name, balance, contribution, withdrawal, growth):
        await self._tick("create_account_state")
        self.account_states.append({
            "snapshot_id": snapshot_id,
            "accountType": account_type,
            "accountName": account_name,
            "balance": balance,
            "contribution": contribution,
            "withdrawal": withdrawal,
            "growth": growth,
        })

    async def create_milestone(self, plan_id, user_id, milestone_type, title, description, target_year,
                               target_age, category, color, icon, is_completed=False):
        await self._tick("create_milestone")
        self.milestones.append({
            "plan_id": plan_id,
            "user_id": user_id,
            "milestoneType": milestone_type,
            "title": title,
            "description": description,
            "targetYear": target_year,
            "targetAge": target_age,
            "category": category,
            "color": color,
            "icon": icon,
            "isCompleted": is_completed,
        })

    async def update_plan_aggregate(self, plan_id, total_lifetime_tax):
        await self._tick("update_plan_aggregate")
        self.aggregates[plan_id] = total_lifetime_tax
        self.stale.discard(plan_id)

    async def reset_plan_aggregate(self, plan_id):
        await self._tick("reset_plan_aggregate")
        self.aggregates[plan_id] = Decimal("0")
        self.stale.add(plan_id)

    async def list_personal_milestones(self, plan_id):
        await self._tick("list_personal_milestones")
        return [
            MilestoneRecord(
                milestoneType=m["milestoneType"],
                title=m["title"],
                description=m["description"],
                targetYear=m["targetYear"],
                targetAge=m["targetAge"],
                category=m["category"],
                color=m["color"],
                icon=m["icon"],
                userId=m["user_id"],
                isCompleted=m["isCompleted"],
            )
            for m in self.milestones
            if m["plan_id"] == plan_id and m["milestoneType"] == PERSONAL
        ]

    # Query helpers

    def snapshots_for(self, plan_id):
        return sorted((s for s in self.snapshots.values() if s["plan_id"] == plan_id), key=lambda s: s["age"])

    def account_states_for(self, plan_id):
        ids = {sid for sid, s in self.snapshots.items() if s["plan_id"] == plan_id}
        return [a for a in self.account_states if a["snapshot_id"] in ids]

    def milestones_for(self, plan_id):
        return [m for m in self.milestones if m["plan_id"] == plan_id]
