from datetime import date

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from agents.intent_agent import (
    MSG_INVALID_AMOUNT,
    MSG_INVALID_TYPE,
    MSG_MISSING_GOAL_INFO,
    MSG_NOTHING_TO_UPDATE,
    MSG_WHICH_GOAL,
    SYSTEM_PROMPT,
    IntentInterpreter,
    OracleError,
    OracleReply,
    parse_reply,
    to_action,
    to_messages,
)
from conftest import BrokenModel, reply
from core.actions import (
    Chat,
    ContributeToGoal,
    CreateGoal,
    EditGoal,
    RecordTransaction,
    Rejected,
)
from utils.config import Config

TODAY = date(2025, 3, 15)


def action_for(action, data, response="Ok!"):
    return to_action(OracleReply(response=response, action=action, data=data), TODAY)


# ---------------------------------------------------------------------------
# Reply cleaning and parsing
# ---------------------------------------------------------------------------

def test_parse_reply_reads_json_fence():
    parsed = parse_reply('```json\n{"response": "oi", "action": "chat", "data": null}\n```')
    assert parsed == OracleReply(response="oi", action="chat", data=None)


def test_parse_reply_reads_bare_fence_and_whitespace():
    parsed = parse_reply('  ```\n{"response": "ok", "action": "update_goal", "data": {"goalName": "casa"}}\n```  ')
    assert parsed.action == "update_goal"
    assert parsed.data == {"goalName": "casa"}


def test_parse_reply_finds_fenced_block_after_leading_text():
    parsed = parse_reply('Claro!\n```json\n{"response": "ok", "action": "chat", "data": null}\n```')
    assert parsed.response == "ok"
    assert parsed.action == "chat"


def test_parse_reply_with_wrong_data_shape_is_chat():
    text = '{"response": "hm", "action": "transaction", "data": [1, 2]}'
    parsed = parse_reply(text)
    assert parsed == OracleReply(response=text, action="chat", data=None)


def test_parse_reply_reads_contract():
    parsed = parse_reply(reply("transaction", {"amount": 50, "type": "expense"}, "Anotado!"))
    assert parsed.action == "transaction"
    assert parsed.response == "Anotado!"
    assert parsed.data == {"amount": 50, "type": "expense"}


def test_parse_reply_falls_back_to_chat_for_plain_text():
    parsed = parse_reply("Olá! Como posso ajudar?")
    assert parsed.action == "chat"
    assert parsed.response == "Olá! Como posso ajudar?"
    assert parsed.data is None


def test_parse_reply_falls_back_to_chat_for_non_object_json():
    parsed = parse_reply("[1, 2, 3]")
    assert parsed.action == "chat"
    assert parsed.response == "[1, 2, 3]"


def test_unknown_action_is_chat():
    result = action_for("delete_everything", {"x": 1}, "Não posso fazer isso.")
    assert result == Chat(text="Não posso fazer isso.")


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def test_transaction_with_today_word():
    result = action_for("transaction", {
        "amount": 50, "type": "expense", "category": "Alimentação",
        "date": "hoje", "description": "almoço",
    })
    assert result == RecordTransaction(
        amount=50.0, kind="expense", category="Alimentação",
        transaction_date=TODAY, description="almoço",
    )


def test_transaction_literal_date_and_default_category():
    result = action_for("transaction", {"amount": "1.234,56", "type": "income", "date": "2025-03-01"})
    assert isinstance(result, RecordTransaction)
    assert result.amount == pytest.approx(1234.56)
    assert result.category == "Other"
    assert result.transaction_date == date(2025, 3, 1)


def test_transaction_type_is_normalised():
    result = action_for("transaction", {"amount": 10, "type": " EXPENSE "})
    assert result.kind == "expense"


@pytest.mark.parametrize("kind", ["deposit", "transfer", "", None])
def test_transaction_with_unknown_type_is_rejected(kind):
    result = action_for("transaction", {"amount": 100, "type": kind})
    assert result == Rejected(reason="invalid_type", message=MSG_INVALID_TYPE)


@pytest.mark.parametrize("amount", [None, "muito", -5])
def test_transaction_with_bad_amount_is_rejected(amount):
    result = action_for("transaction", {"amount": amount, "type": "expense"})
    assert result == Rejected(reason="invalid_amount", message=MSG_INVALID_AMOUNT)


def test_unreadable_transaction_date_falls_back_to_today():
    result = action_for("transaction", {"amount": 5, "type": "expense", "date": "ontem à noite"})
    assert result.transaction_date == TODAY


def test_transaction_without_data_is_chat():
    assert action_for("transaction", None, "Quanto foi?") == Chat(text="Quanto foi?")


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

def test_create_goal_complete():
    result = action_for("create_goal", {
        "name": "Viagem", "type": "save", "targetAmount": 5000, "targetDate": "2025-12-31",
    })
    assert result == CreateGoal(name="Viagem", kind="save", target_amount=5000.0,
                                target_date=date(2025, 12, 31))


def test_create_goal_unknown_kind_becomes_save_and_invest_is_kept():
    saved = action_for("create_goal", {"name": "A", "type": "poupar", "targetAmount": 1, "targetDate": "2025-12-31"})
    invested = action_for("create_goal", {"name": "B", "type": "Invest", "targetAmount": 1, "targetDate": "2025-12-31"})
    assert saved.kind == "save"
    assert invested.kind == "invest"


def test_create_goal_non_iso_date_is_three_months_out():
    result = action_for("create_goal", {
        "name": "Carro", "type": "save", "targetAmount": 20000, "targetDate": "dezembro",
    })
    assert result.target_date == date(2025, 6, 15)


@pytest.mark.parametrize("missing", ["name", "type", "targetAmount", "targetDate"])
def test_create_goal_missing_field_is_rejected(missing):
    data = {"name": "Viagem", "type": "save", "targetAmount": 5000, "targetDate": "2025-12-31"}
    del data[missing]
    result = action_for("create_goal", data)
    assert result == Rejected(reason="missing_goal_fields", message=MSG_MISSING_GOAL_INFO)


@pytest.mark.parametrize("target", [-500, 0, "-1.000,00"])
def test_create_goal_with_non_positive_target_is_rejected(target):
    result = action_for("create_goal", {
        "name": "Viagem", "type": "save", "targetAmount": target, "targetDate": "2025-12-31",
    })
    assert result == Rejected(reason="missing_goal_fields", message=MSG_MISSING_GOAL_INFO)


def test_non_positive_new_target_counts_as_absent():
    alone = action_for("update_goal", {"goalName": "viagem", "newTargetAmount": -100})
    assert alone == Rejected(reason="nothing_to_update", message=MSG_NOTHING_TO_UPDATE)

    with_name = action_for("update_goal", {"goalName": "viagem", "newTargetAmount": 0, "newName": "Praia"})
    assert with_name == EditGoal(goal_name="viagem", new_target_amount=None, new_name="Praia")


def test_negative_amount_is_not_a_contribution():
    result = action_for("update_goal", {"goalName": "viagem", "amount": -300})
    assert result == Rejected(reason="nothing_to_update", message=MSG_NOTHING_TO_UPDATE)


def test_update_goal_with_amount_is_contribution():
    result = action_for("update_goal", {"goalName": "viagem", "amount": 500})
    assert result == ContributeToGoal(goal_name="viagem", amount=500.0)


def test_contribution_wins_over_edit_fields():
    result = action_for("update_goal", {"goalName": "viagem", "amount": 100, "newName": "Europa"})
    assert isinstance(result, ContributeToGoal)


def test_update_goal_edit_fields():
    result = action_for("update_goal", {
        "goalName": "viagem", "newTargetAmount": 8000, "newTargetDate": "2026-01-31",
    })
    assert result == EditGoal(goal_name="viagem", new_target_amount=8000.0,
                              new_target_date=date(2026, 1, 31), new_name=None)


def test_update_goal_without_changes_is_rejected():
    result = action_for("update_goal", {"goalName": "viagem", "newTargetDate": "logo"})
    assert result == Rejected(reason="nothing_to_update", message=MSG_NOTHING_TO_UPDATE)


def test_update_goal_without_name_relays_question():
    asked = action_for("update_goal", {"amount": 100}, "Em qual meta?")
    assert asked == Chat(text="Em qual meta?")
    assert action_for("update_goal", {"amount": 100}, "") == Chat(text=MSG_WHICH_GOAL)


# ---------------------------------------------------------------------------
# Oracle boundary
# ---------------------------------------------------------------------------

def test_to_messages_puts_system_prompt_first():
    messages = to_messages([
        {"role": "user", "content": "gastei 50"},
        {"role": "assistant", "content": "Em qual categoria?"},
        {"role": "user", "content": "mercado"},
    ])
    assert isinstance(messages[0], SystemMessage)
    assert messages[0].content == SYSTEM_PROMPT
    assert [type(m) for m in messages[1:]] == [HumanMessage, AIMessage, HumanMessage]
    assert messages[-1].content == "mercado"


def test_interpreter_requires_key_without_injected_model():
    with pytest.raises(ValueError):
        IntentInterpreter(Config(oracle_api_key=None))


def test_interpreter_returns_raw_reply_and_action():
    raw_text = "```json\n" + reply("chat", None, "Oi!") + "\n```"
    interpreter = IntentInterpreter(Config(), llm=FakeListChatModel(responses=[raw_text]))
    raw, parsed, action = interpreter.interpret([{"role": "user", "content": "oi"}], TODAY)
    assert raw == raw_text
    assert parsed.response == "Oi!"
    assert action == Chat(text="Oi!")


def test_interpreter_wraps_transport_failure():
    interpreter = IntentInterpreter(Config(), llm=BrokenModel())
    with pytest.raises(OracleError):
        interpreter.interpret([{"role": "user", "content": "oi"}], TODAY)
