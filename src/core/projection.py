"""
Balance projection for Meu Dinheiro.

Three steps, all recomputed on every request:

  1. recurring pattern estimate: monthly income/expense inferred from
     (kind, category) groups that repeat inside the pattern window
  2. goal savings commitment: the daily amount needed to reach every
     active goal on its target date
  3. forward walk: current balance advanced one day at a time over the
     horizon

Nothing is rounded until `Projection.to_dict()`.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Tuple

from core.actions import INCOME, Goal, LedgerEntry
from tools.dateTime import days_ago, days_until, start_of_day
from utils.config import ProjectionSettings


def _cents(value: float) -> float:
    return round(value, 2)


@dataclass(frozen=True)
class RecurringEstimate:
    income: float = 0.0
    expenses: float = 0.0


@dataclass(frozen=True)
class ProjectionPoint:
    date: date
    balance: float
    income: float
    expenses: float     # recurring expenses plus goal savings for that day

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "balance": _cents(self.balance),
            "income": _cents(self.income),
            "expenses": _cents(self.expenses),
        }


@dataclass(frozen=True)
class Projection:
    current_balance: float
    recurring_income: float
    recurring_expenses: float
    daily_goal_savings: float
    points: List[ProjectionPoint] = field(default_factory=list)
    month_days: int = 30

    @property
    def goal_savings(self) -> float:
        """Monthly goal commitment."""
        return self.daily_goal_savings * self.month_days

    def to_dict(self) -> Dict[str, object]:
        return {
            "currentBalance": _cents(self.current_balance),
            "recurringIncome": _cents(self.recurring_income),
            "recurringExpenses": _cents(self.recurring_expenses),
            "goalSavings": _cents(self.goal_savings),
            "projection": [p.to_dict() for p in self.points],
        }


def estimate_recurring(
    entries: Iterable[LedgerEntry],
    settings: ProjectionSettings = ProjectionSettings(),
) -> RecurringEstimate:
    """
    Monthly recurring income and expenses.

    Entries are grouped by (kind, category). Groups with fewer than
    `min_occurrences` members are one-offs and ignored whatever their
    size; the others contribute their mean amount scaled from the
    pattern window to one month.
    """
    groups: Dict[Tuple[str, str], List[float]] = defaultdict(list)
    for entry in entries:
        groups[(entry.type, entry.category)].append(entry.amount)

    income = 0.0
    expenses = 0.0
    for (kind, _category), amounts in groups.items():
        if len(amounts) < settings.min_occurrences:
            continue
        monthly = sum(amounts) / len(amounts) * settings.monthly_scale
        if kind == INCOME:
            income += monthly
        else:
            expenses += monthly

    return RecurringEstimate(income=income, expenses=expenses)


def daily_goal_savings(goals: Iterable[Goal], now: datetime) -> float:
    """Sum of remaining / days-left over goals still open and not yet met."""
    total = 0.0
    for goal in goals:
        if start_of_day(goal.target_date) <= now:
            continue
        remaining = goal.target_amount - goal.current_amount
        days_left = days_until(goal.target_date, now)
        if remaining > 0 and days_left > 0:
            total += remaining / days_left
    return total


def current_balance(entries: Iterable[LedgerEntry]) -> float:
    return sum(entry.signed_amount for entry in entries)


def project_balance(
    balance: float,
    monthly_income: float,
    monthly_expenses: float,
    daily_savings: float,
    today: date,
    horizon_days: int = 30,
    month_days: int = 30,
) -> List[ProjectionPoint]:
    """Walk the balance forward one day at a time, starting with today."""
    daily_income = monthly_income / month_days
    daily_expenses = monthly_expenses / month_days

    points = []
    for i in range(horizon_days):
        balance += daily_income - daily_expenses - daily_savings
        points.append(ProjectionPoint(
            date=today + timedelta(days=i),
            balance=balance,
            income=daily_income,
            expenses=daily_expenses + daily_savings,
        ))
    return points


def build_projection(
    store,
    user_id: str,
    now: datetime,
    settings: ProjectionSettings = ProjectionSettings(),
) -> Projection:
    """
    Fetch the identity's ledger and goals and compute the projection.

    Any StoreError from the fetches propagates; no partial projection is
    ever returned.
    """
    today = now.date()
    all_entries = store.list_transactions(user_id)
    window_start = days_ago(today, settings.pattern_window_days)
    recent = [e for e in all_entries if e.transaction_date >= window_start]
    goals = store.list_goals(user_id)

    recurring = estimate_recurring(recent, settings)
    savings = daily_goal_savings(goals, now)
    balance = current_balance(all_entries)

    points = project_balance(
        balance,
        recurring.income,
        recurring.expenses,
        savings,
        today,
        horizon_days=settings.horizon_days,
        month_days=settings.month_days,
    )
    return Projection(
        current_balance=balance,
        recurring_income=recurring.income,
        recurring_expenses=recurring.expenses,
        daily_goal_savings=savings,
        points=points,
        month_days=settings.month_days,
    )
