"""
Report Tools for Meu Dinheiro - monthly summary and data export
"""

from collections import OrderedDict
from datetime import date, datetime
from typing import Any, Dict, Iterable

from core.actions import INCOME, LedgerEntry
from tools.dateTime import add_months


def report_start(today: date, months: int = 6) -> date:
    """First day of the window covered by the monthly report."""
    return add_months(today, -months)


def monthly_report(entries: Iterable[LedgerEntry], today: date, months: int = 6) -> Dict[str, Any]:
    """
    Summarise income and expenses month by month.

    Args:
        entries: Ledger entries, oldest first
        today: Reference date
        months: How many months back the report covers

    Returns:
        Dict with per-month totals, expenses per category and overall totals
    """
    start = report_start(today, months)
    by_month: "OrderedDict[str, Dict[str, float]]" = OrderedDict()
    by_category: Dict[str, float] = {}
    total_income = 0.0
    total_expenses = 0.0

    for entry in sorted(entries, key=lambda e: (e.transaction_date, e.id)):
        if entry.transaction_date < start:
            continue
        key = entry.transaction_date.strftime("%Y-%m")
        month = by_month.setdefault(key, {"income": 0.0, "expenses": 0.0})

        if entry.type == INCOME:
            month["income"] += entry.amount
            total_income += entry.amount
        else:
            month["expenses"] += entry.amount
            total_expenses += entry.amount
            by_category[entry.category] = by_category.get(entry.category, 0.0) + entry.amount

    return {
        "from": start.isoformat(),
        "to": today.isoformat(),
        "months": [
            {
                "month": key,
                "income": round(m["income"], 2),
                "expenses": round(m["expenses"], 2),
                "balance": round(m["income"] - m["expenses"], 2),
            }
            for key, m in by_month.items()
        ],
        "categories": [
            {"name": name, "value": round(value, 2)}
            for name, value in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "totalIncome": round(total_income, 2),
        "totalExpenses": round(total_expenses, 2),
        "balance": round(total_income - total_expenses, 2),
    }


def export_user_data(store, user_id: str, now: datetime) -> Dict[str, Any]:
    """Everything stored for one identity, as a JSON-ready backup."""
    profile = store.get_profile(user_id) or {}
    return {
        "profile": {"id": profile.get("id", user_id), "full_name": profile.get("full_name")},
        "settings": store.get_settings(user_id).to_dict(),
        "transactions": [t.to_dict() for t in store.list_transactions(user_id)],
        "goals": [g.to_dict() for g in store.list_goals(user_id)],
        "exportedAt": now.isoformat(),
    }
