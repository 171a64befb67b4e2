"""
Orchestrator - the Intent Handler behind /process-message.

One call per chat message:

1. The IntentInterpreter asks the oracle for a single action.
2. The action variant is dispatched to exactly one store mutation
   (or none, for chat and rejected payloads).
3. Expenses go through the PurchaseReviewAgent right after the insert.

Store failures abort the request with a HandlerError carrying the
user-facing apology; writes that already happened are not rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from agents.intent_agent import IntentInterpreter
from agents.monitor_agent import PurchaseReviewAgent, review_message
from core.actions import (
    EXPENSE,
    ContributeToGoal,
    CreateGoal,
    EditGoal,
    PurchaseReview,
    RecordTransaction,
    Rejected,
)
from db.queries import LedgerStore, StoreError
from utils.config import Config
from utils.logger import TraceLogger

MSG_GENERIC_ERROR = "Desculpe, tive um problema ao processar sua mensagem. Pode tentar de novo?"
MSG_SAVE_TRANSACTION_FAILED = "Desculpe, não consegui salvar a transação. Pode tentar de novo?"
MSG_CREATE_GOAL_FAILED = "Desculpe, não consegui criar a meta. Pode tentar de novo?"
MSG_UPDATE_GOAL_FAILED = "Desculpe, não consegui atualizar a meta. Tente novamente."
MSG_GOAL_UPDATED = "Meta atualizada com sucesso!"


class HandlerError(Exception):
    """A failure that ends the request with an HTTP 500 and a user-facing message."""

    def __init__(self, user_message: str, detail: str):
        super().__init__(detail)
        self.user_message = user_message
        self.detail = detail


@dataclass
class IntentResult:
    response: str
    transaction_created: bool = False
    goal_created: bool = False
    goal_updated: bool = False
    purchase_review: Optional[PurchaseReview] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "transactionCreated": self.transaction_created,
            "goalCreated": self.goal_created,
            "goalUpdated": self.goal_updated,
            "purchaseReview": self.purchase_review.to_dict() if self.purchase_review else None,
        }


def _money(value: float) -> str:
    return f"R$ {value:.2f}"


class IntentHandler:
    """Dispatches interpreted chat intents to ledger and goal mutations."""

    def __init__(
        self,
        config: Config,
        store: LedgerStore,
        interpreter: IntentInterpreter,
        logger: Optional[TraceLogger] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.interpreter = interpreter
        self.reviewer = PurchaseReviewAgent(store, config.review)
        self.logger = logger or TraceLogger(config.log_dir)

    # ────────────────────────────────────────────────────────────────────
    # Main entry point
    # ────────────────────────────────────────────────────────────────────

    def process(
        self,
        user_id: str,
        conversation: List[Dict[str, str]],
        now: Optional[datetime] = None,
    ) -> IntentResult:
        now = now or datetime.now()
        self.logger.start_request("process_message", {"user_id": user_id, "turns": len(conversation)})
        result: Optional[IntentResult] = None
        try:
            result = self._dispatch(user_id, conversation, now)
            return result
        except Exception as exc:
            self.logger.log_error("process_message", exc)
            raise
        finally:
            self.logger.end_request(result.to_dict() if result else None)

    def _dispatch(self, user_id: str, conversation: List[Dict[str, str]], now: datetime) -> IntentResult:
        raw, reply, action = self.interpreter.interpret(conversation, now.date())
        self.logger.log_step("oracle_reply", raw)
        self.logger.log_step("parsed_reply", reply.model_dump())
        self.logger.log_step("action", {"type": type(action).__name__, "action": repr(action)})

        if isinstance(action, RecordTransaction):
            return self._record_transaction(user_id, action, reply.response, now)
        if isinstance(action, CreateGoal):
            return self._create_goal(user_id, action, reply.response)
        if isinstance(action, ContributeToGoal):
            return self._contribute(user_id, action, reply.response)
        if isinstance(action, EditGoal):
            return self._edit_goal(user_id, action, reply.response)
        if isinstance(action, Rejected):
            self.logger.log_step("rejected", {"reason": action.reason})
            return IntentResult(response=action.message)
        return IntentResult(response=action.text)

    # ────────────────────────────────────────────────────────────────────
    # Transactions
    # ────────────────────────────────────────────────────────────────────

    def _record_transaction(
        self, user_id: str, action: RecordTransaction, response: str, now: datetime
    ) -> IntentResult:
        try:
            entry = self.store.add_transaction(
                user_id,
                action.amount,
                action.kind,
                action.category,
                action.transaction_date,
                action.description,
            )
        except StoreError as exc:
            self.logger.log_error("add_transaction", exc)
            raise HandlerError(MSG_SAVE_TRANSACTION_FAILED, str(exc)) from exc
        self.logger.log_step("transaction_created", entry.to_dict())

        result = IntentResult(response=response, transaction_created=True)
        if entry.type != EXPENSE:
            return result

        review = self.reviewer.review(user_id, entry.category, entry.amount, entry.id, now)
        self.logger.log_step("purchase_review", review.to_dict() if review else None)
        if review:
            result.purchase_review = review
            result.response = f"{response}\n\n{review_message(review, self.config.review.savings_share)}"
        return result

    # ────────────────────────────────────────────────────────────────────
    # Goals
    # ────────────────────────────────────────────────────────────────────

    def _create_goal(self, user_id: str, action: CreateGoal, response: str) -> IntentResult:
        try:
            goal = self.store.add_goal(
                user_id, action.name, action.kind, action.target_amount, action.target_date
            )
        except StoreError as exc:
            self.logger.log_error("add_goal", exc)
            raise HandlerError(MSG_CREATE_GOAL_FAILED, str(exc)) from exc
        self.logger.log_step("goal_created", goal.to_dict())
        return IntentResult(response=response, goal_created=True)

    def _not_found(self, goal_name: str) -> IntentResult:
        self.logger.log_step("goal_not_found", goal_name)
        return IntentResult(
            response=(
                f'Hmm, não encontrei uma meta com o nome "{goal_name}". '
                "Pode verificar o nome e tentar novamente?"
            )
        )

    def _contribute(self, user_id: str, action: ContributeToGoal, response: str) -> IntentResult:
        goal = self.store.find_goal(user_id, action.goal_name)
        if goal is None:
            return self._not_found(action.goal_name)

        new_total = goal.current_amount + action.amount
        try:
            self.store.update_goal(user_id, goal.id, current_amount=new_total)
        except StoreError as exc:
            self.logger.log_error("update_goal", exc)
            raise HandlerError(MSG_UPDATE_GOAL_FAILED, str(exc)) from exc
        self.logger.log_step("goal_contribution", {"goal_id": goal.id, "amount": action.amount})

        extra = f" Agora você já tem {_money(new_total)} ({replace(goal, current_amount=new_total).progress:.0f}% da meta)! 🎯"
        return IntentResult(response=f"{response or MSG_GOAL_UPDATED}{extra}", goal_updated=True)

    def _edit_goal(self, user_id: str, action: EditGoal, response: str) -> IntentResult:
        goal = self.store.find_goal(user_id, action.goal_name)
        if goal is None:
            return self._not_found(action.goal_name)

        changes = {}
        extra = ""
        if action.new_target_amount:
            changes["target_amount"] = action.new_target_amount
            extra += f" O novo valor-alvo da meta foi ajustado para {_money(action.new_target_amount)}."
        if action.new_target_date:
            changes["target_date"] = action.new_target_date
            extra += f" A data alvo da meta foi atualizada para {action.new_target_date.isoformat()}."
        if action.new_name:
            changes["name"] = action.new_name
            extra += f' O nome da meta agora é "{action.new_name}".'

        try:
            self.store.update_goal(user_id, goal.id, **changes)
        except StoreError as exc:
            self.logger.log_error("update_goal", exc)
            raise HandlerError(MSG_UPDATE_GOAL_FAILED, str(exc)) from exc
        self.logger.log_step("goal_edited", {"goal_id": goal.id, "changes": changes})

        return IntentResult(response=f"{response or MSG_GOAL_UPDATED}{extra}", goal_updated=True)
