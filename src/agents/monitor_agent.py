"""
Monitor Agent - reviews new expenses against the user's recent spending
"""

from datetime import datetime, timedelta
from typing import Optional

from core.actions import EXPENSE, PurchaseReview
from tools.dateTime import days_ago
from utils.config import ReviewSettings


class PurchaseReviewAgent:
    """
    Flags an expense that is well above the category's recent average and
    suggests how much of the difference could go to a goal instead.
    """

    def __init__(self, store, settings: ReviewSettings = ReviewSettings()):
        self.store = store
        self.settings = settings

    def review(
        self,
        user_id: str,
        category: str,
        amount: float,
        transaction_id: int,
        now: datetime,
    ) -> Optional[PurchaseReview]:
        """
        Run after an expense has been inserted.

        Args:
            user_id: Identity owning the expense
            category: Category of the new expense
            amount: Amount of the new expense
            transaction_id: Row id of the new expense, left out of the baseline
            now: Evaluation time

        Returns:
            A PurchaseReview, or None when the category is snoozed, has
            no baseline, or the expense is within the threshold.
        """
        if self.store.active_ignored_tip(user_id, category, now):
            return None

        since = days_ago(now.date(), self.settings.window_days)
        recent = self.store.list_transactions(user_id, kind=EXPENSE, category=category, since=since)
        baseline = [t.amount for t in recent if t.id != transaction_id]

        if not baseline:
            return None

        avg = sum(baseline) / len(baseline)
        if amount <= avg * self.settings.threshold_multiplier:
            return None

        goal = self.store.latest_goal(user_id)
        return PurchaseReview(
            category=category,
            suggested_savings=(amount - avg) * self.settings.savings_share,
            goal_name=goal.name if goal else None,
        )

    def ignore_tip(self, user_id: str, category: str, now: datetime):
        """Snooze purchase reviews for a category."""
        until = now + timedelta(days=self.settings.ignore_days)
        return self.store.add_ignored_tip(user_id, category, until)


def review_message(review: PurchaseReview, savings_share: float = 0.2) -> str:
    """Encouraging sentence appended to the assistant reply."""
    goal_mention = f" sua meta '{review.goal_name}'" if review.goal_name else " suas metas"
    return (
        "💡 Vi que este gasto foi um pouco maior que o habitual. "
        f"Se você pudesse reduzir {savings_share:.0%} disso na próxima vez, "
        f"estaria R$ {review.suggested_savings:.2f} mais perto de{goal_mention}."
    )
