from datetime import datetime
from typing import Dict, List

from agents.intent_agent import IntentInterpreter
from agents.orchestrator import HandlerError, IntentHandler, IntentResult
from core.projection import Projection, build_projection
from db.queries import LedgerStore
from utils.config import load_config
from utils.logger import TraceLogger

MAX_HISTORY_TURNS = 20


def run_turn(handler: IntentHandler, user_id: str, history: List[Dict[str, str]], text: str) -> IntentResult:
    """Send one user message with the running history and record the assistant's reply."""
    history.append({"role": "user", "content": text})
    result = handler.process(user_id, history)
    history.append({"role": "assistant", "content": result.response})
    if len(history) > MAX_HISTORY_TURNS:
        del history[:-MAX_HISTORY_TURNS]
    return result


def format_projection(projection: Projection, every: int = 5) -> str:
    """Plain-text projection summary for the terminal."""
    data = projection.to_dict()
    lines = [
        f"Saldo atual:          R$ {data['currentBalance']:.2f}",
        f"Receitas recorrentes: R$ {data['recurringIncome']:.2f}/mês",
        f"Despesas recorrentes: R$ {data['recurringExpenses']:.2f}/mês",
        f"Reserva para metas:   R$ {data['goalSavings']:.2f}/mês",
        "",
    ]
    points = data["projection"]
    for i, point in enumerate(points):
        if i % every == 0 or i == len(points) - 1:
            lines.append(f"  {point['date']}  R$ {point['balance']:>10.2f}")
    return "\n".join(lines)


def main():
    """Terminal chat loop over the intent handler."""
    import argparse

    parser = argparse.ArgumentParser(description="Meu Dinheiro terminal assistant")
    parser.add_argument("--user", default="demo", help="Identity to act as")
    parser.add_argument("--projection", action="store_true",
                        help="Print the 30-day balance projection and exit")
    args = parser.parse_args()

    config = load_config()
    store = LedgerStore(config.db_path)

    if args.projection:
        print(format_projection(build_projection(store, args.user, datetime.now(), config.projection)))
        return

    if not config.oracle_api_key:
        print("Error: OPENAI_API_KEY not found in .env file")
        return

    logger = TraceLogger(config.log_dir)
    handler = IntentHandler(config, store, IntentInterpreter(config), logger)
    history: List[Dict[str, str]] = []

    print("\n" + "-" * 80)
    print("💰 Meu Dinheiro: conte seus gastos, receitas e metas")
    print("-" * 80)
    print("Commands: 'exit', 'quit', 'sair' to close\n")

    while True:
        text = input("Você 👤: ").strip()

        if text.lower() in ["quit", "exit", "sair"]:
            print("\n👋 Até logo!\n")
            break
        if not text:
            continue

        try:
            result = run_turn(handler, args.user, history, text)
            print(f"\n🤖 {result.response}\n")
            if result.purchase_review:
                print(f"   (dica para '{result.purchase_review.category}': "
                      "ignore por 7 dias pelo app)\n")
        except HandlerError as e:
            print(f"\n❌ {e.user_message} ({e.detail})\n")
            logger.log_error("cli", e)
        except Exception as e:
            print(f"\n❌ Error: {e}\n")
            logger.log_error("cli", e)


if __name__ == "__main__":
    main()
