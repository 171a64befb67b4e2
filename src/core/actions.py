"""
Domain records and action variants for Meu Dinheiro.

Ledger entries, goals and ignored tips mirror the store rows. The action
variants are what the intent interpreter hands to the intent handler:
one frozen dataclass per intent, so each handler branch receives exactly
the fields it needs.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_KINDS = (INCOME, EXPENSE)

SAVE = "save"
INVEST = "invest"
GOAL_KINDS = (SAVE, INVEST)


# ═══════════════════════════════════════════════════════════════════
# Stored records
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LedgerEntry:
    id: int
    user_id: str
    amount: float
    type: str                 # "income" | "expense"
    category: str
    transaction_date: date
    description: Optional[str] = None

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type == INCOME else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["transaction_date"] = self.transaction_date.isoformat()
        return data


@dataclass(frozen=True)
class Goal:
    id: int
    user_id: str
    name: str
    type: str                 # "save" | "invest"
    target_amount: float
    current_amount: float
    target_date: date

    @property
    def progress(self) -> float:
        """Percentage of the target reached; may exceed 100."""
        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount * 100

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["target_date"] = self.target_date.isoformat()
        data["progress"] = round(self.progress, 1)
        return data


@dataclass(frozen=True)
class IgnoredTip:
    user_id: str
    category: str
    ignored_until: datetime

    def is_active(self, now: datetime) -> bool:
        return self.ignored_until >= now


@dataclass(frozen=True)
class UserSettings:
    large_text: bool = False
    high_contrast: bool = False
    voice_reading: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "largeText": self.large_text,
            "highContrast": self.high_contrast,
            "voiceReading": self.voice_reading,
        }


# ═══════════════════════════════════════════════════════════════════
# Action variants
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RecordTransaction:
    amount: float
    kind: str
    category: str
    transaction_date: date
    description: Optional[str] = None


@dataclass(frozen=True)
class CreateGoal:
    name: str
    kind: str
    target_amount: float
    target_date: date


@dataclass(frozen=True)
class ContributeToGoal:
    goal_name: str
    amount: float


@dataclass(frozen=True)
class EditGoal:
    goal_name: str
    new_target_amount: Optional[float] = None
    new_target_date: Optional[date] = None
    new_name: Optional[str] = None


@dataclass(frozen=True)
class Chat:
    text: str


@dataclass(frozen=True)
class Rejected:
    """A payload the oracle produced that cannot be acted upon."""
    reason: str
    message: str


Action = Union[RecordTransaction, CreateGoal, ContributeToGoal, EditGoal, Chat, Rejected]


@dataclass(frozen=True)
class PurchaseReview:
    category: str
    suggested_savings: float
    goal_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "suggestedSavings": self.suggested_savings,
            "goalName": self.goal_name,
        }
