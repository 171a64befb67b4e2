"""
Intent Agent - turns a chat conversation into one typed action.

The oracle (a hosted chat model behind an OpenAI-compatible endpoint)
does the language understanding. This module only:

  1. sends the fixed system prompt plus the conversation,
  2. parses the JSON reply (optionally fenced) with JsonOutputParser,
  3. converts the {response, action, data} payload into one of the
     action variants in core.actions.

A reply that is not valid JSON is relayed as plain chat.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.output_parsers import JsonOutputParser
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from core.actions import (
    EXPENSE,
    INCOME,
    INVEST,
    SAVE,
    Action,
    Chat,
    ContributeToGoal,
    CreateGoal,
    EditGoal,
    RecordTransaction,
    Rejected,
)
from tools.dateTime import parse_goal_target_date, parse_iso_date, parse_transaction_date
from utils.config import Config

SYSTEM_PROMPT = """Você é um assistente financeiro amigável e empático. Seu objetivo é ajudar o usuário a:
1. Registrar transações financeiras (receitas e despesas)
2. Criar metas financeiras (economizar ou investir)
3. Fazer aportes em metas existentes ou alterar uma meta
4. Conversar e dar dicas de economia

REGRAS
- Seja empático, não julgue o usuário e use linguagem simples
- Celebre pequenos sucessos
- Use SEMPRE o histórico da conversa para lembrar respostas anteriores

TRANSAÇÕES ("transaction")
- Extraia valor, tipo ("income" ou "expense"), categoria e data
- Use "hoje" quando a data for o dia atual

METAS NOVAS ("create_goal")
- São necessárias 4 informações: valor, tipo ("save" para poupar ou "invest" para investir),
  data alvo (AAAA-MM-DD) e nome da meta
- Pergunte uma de cada vez; só use "create_goal" quando tiver as 4

APORTES EM METAS ("update_goal" com "amount")
- "coloquei X na meta Y", "adicionar", "aportar", "depositar": preencha "amount" e "goalName"

ALTERAR META ("update_goal" sem "amount")
- Preencha "goalName" e apenas os campos que mudam:
  "newTargetAmount", "newTargetDate" (AAAA-MM-DD) e/ou "newName"

FORMATO DE RESPOSTA (CRÍTICO)
Responda SEMPRE APENAS com um objeto JSON puro, sem markdown:
{"response": "<texto para o usuário>", "action": "transaction" | "create_goal" | "update_goal" | "chat", "data": {...} ou null}

Exemplos de "data":
transaction: {"amount": 50, "type": "expense", "category": "Alimentação", "date": "hoje", "description": "almoço"}
create_goal: {"name": "Viagem", "type": "save", "targetAmount": 5000, "targetDate": "2025-12-31"}
update_goal (aporte): {"amount": 500, "goalName": "viagem"}
update_goal (alteração): {"goalName": "viagem", "newTargetAmount": 8000}
chat: null
"""

MSG_INVALID_TYPE = "Desculpe, tive um problema ao processar o tipo da transação. Pode tentar novamente?"
MSG_INVALID_AMOUNT = "Desculpe, não entendi o valor da transação. Pode repetir?"
MSG_MISSING_GOAL_INFO = "Ops! Parece que faltam algumas informações para criar a meta. Pode tentar novamente?"
MSG_WHICH_GOAL = "Qual meta você gostaria de alterar?"
MSG_NOTHING_TO_UPDATE = "Não encontrei nenhuma informação para atualizar na meta. Pode repetir o que você quer mudar?"


class OracleError(Exception):
    """The oracle could not be reached or returned no usable completion."""


class OracleReply(BaseModel):
    """Structured reply contract of the oracle."""
    response: str = ""
    action: str = "chat"
    data: Optional[Dict[str, Any]] = None


reply_parser = JsonOutputParser(pydantic_object=OracleReply)


def parse_reply(text: str) -> OracleReply:
    """
    Parse the oracle reply, fenced or not, into the JSON contract.

    Anything that is not a JSON object matching OracleReply is relayed as
    plain chat with the trimmed reply text.
    """
    text = (text or "").strip()
    try:
        payload = reply_parser.parse(text)
        if not isinstance(payload, dict):
            raise OutputParserException("reply is not a JSON object")
        return OracleReply.model_validate(payload)
    except (OutputParserException, ValidationError):
        return OracleReply(response=text, action="chat", data=None)


def _to_amount(value: Any) -> Optional[float]:
    """Read 50, "50", "1.234,56" or "R$ 50" as a float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("R$", "").strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_action(reply: OracleReply, today: date, default_category: str = "Other") -> Action:
    """Convert a parsed reply into exactly one action variant."""
    data = reply.data
    if reply.action == "transaction" and data:
        return _transaction(reply, data, today, default_category)
    if reply.action == "create_goal" and data:
        return _create_goal(data, today)
    if reply.action == "update_goal" and data:
        return _update_goal(reply, data)
    return Chat(text=reply.response)


def _transaction(reply: OracleReply, data: Dict[str, Any], today: date, default_category: str) -> Action:
    kind = str(data.get("type") or "").strip().lower()
    if kind not in (INCOME, EXPENSE):
        return Rejected(reason="invalid_type", message=MSG_INVALID_TYPE)

    amount = _to_amount(data.get("amount"))
    if amount is None or amount < 0:
        return Rejected(reason="invalid_amount", message=MSG_INVALID_AMOUNT)

    return RecordTransaction(
        amount=amount,
        kind=kind,
        category=_text(data.get("category")) or default_category,
        transaction_date=parse_transaction_date(data.get("date"), today),
        description=_text(data.get("description")),
    )


def _create_goal(data: Dict[str, Any], today: date) -> Action:
    name = _text(data.get("name"))
    kind = _text(data.get("type"))
    target_amount = _to_amount(data.get("targetAmount"))
    target_date = _text(data.get("targetDate"))

    if not (name and kind and target_amount and target_date) or target_amount <= 0:
        return Rejected(reason="missing_goal_fields", message=MSG_MISSING_GOAL_INFO)

    return CreateGoal(
        name=name,
        kind=INVEST if kind.lower() == INVEST else SAVE,
        target_amount=target_amount,
        target_date=parse_goal_target_date(target_date, today),
    )


def _update_goal(reply: OracleReply, data: Dict[str, Any]) -> Action:
    goal_name = _text(data.get("goalName"))
    if not goal_name:
        # The oracle is still asking which goal; relay its question.
        return Chat(text=reply.response or MSG_WHICH_GOAL)

    amount = _to_amount(data.get("amount"))
    if amount is not None and amount > 0:
        return ContributeToGoal(goal_name=goal_name, amount=amount)

    new_target_amount = _to_amount(data.get("newTargetAmount"))
    if new_target_amount is not None and new_target_amount <= 0:
        new_target_amount = None
    new_target_date = parse_iso_date(_text(data.get("newTargetDate")))
    new_name = _text(data.get("newName"))
    if not (new_target_amount or new_target_date or new_name):
        return Rejected(reason="nothing_to_update", message=MSG_NOTHING_TO_UPDATE)

    return EditGoal(
        goal_name=goal_name,
        new_target_amount=new_target_amount,
        new_target_date=new_target_date,
        new_name=new_name,
    )


def to_messages(conversation: List[Dict[str, str]]) -> List[BaseMessage]:
    """System prompt followed by the role-tagged conversation turns."""
    messages: List[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
    for turn in conversation:
        content = turn.get("content", "")
        if turn.get("role") == "assistant":
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages


class IntentInterpreter:
    """
    Oracle boundary: conversation in, (reply, action) out.

    Tests pass a fake chat model as `llm`; production builds ChatOpenAI
    from the Config.
    """

    def __init__(self, config: Config, llm: Optional[BaseChatModel] = None):
        self.config = config
        if llm is None:
            if not config.oracle_api_key:
                raise ValueError("OPENAI_API_KEY not set in .env")
            llm = ChatOpenAI(
                model=config.oracle_model,
                api_key=config.oracle_api_key,
                base_url=config.oracle_base_url,
                temperature=config.oracle_temperature,
            )
        self.llm = llm

    def complete(self, conversation: List[Dict[str, str]]) -> str:
        """One completion call; transport failures become OracleError."""
        try:
            result = self.llm.invoke(to_messages(conversation))
        except Exception as exc:
            raise OracleError(f"Failed to get AI response: {exc}") from exc
        content = result.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return str(content)

    def interpret(self, conversation: List[Dict[str, str]], today: date) -> Tuple[str, OracleReply, Action]:
        """Return the raw reply text, the parsed reply and the resulting action."""
        raw = self.complete(conversation)
        reply = parse_reply(raw)
        action = to_action(reply, today, self.config.default_category)
        return raw, reply, action
