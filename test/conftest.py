import json
from datetime import datetime

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from agents.intent_agent import IntentInterpreter
from agents.orchestrator import IntentHandler
from db.queries import LedgerStore
from setupDB import create_schema
from utils.config import Config
from utils.logger import TraceLogger

NOW = datetime(2025, 3, 15, 10, 0, 0)
USER = "alice"
PASSWORD = "s3nha-forte"


def reply(action="chat", data=None, response="Certo!"):
    """One scripted oracle completion in the JSON reply contract."""
    return json.dumps({"response": response, "action": action, "data": data})


class BrokenModel:
    """Chat model stand-in whose every call fails like an unreachable gateway."""

    def invoke(self, messages):
        raise ConnectionError("gateway unreachable")


@pytest.fixture
def config(tmp_path):
    return Config(
        db_path=str(tmp_path / "ledger.db"),
        oracle_api_key="test-key",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def store(config):
    create_schema(config.db_path)
    ledger = LedgerStore(config.db_path)
    ledger.register_user(USER, "Alice Souza", PASSWORD)
    return ledger


@pytest.fixture
def make_handler(config, store):
    def _make(*replies, llm=None):
        model = llm or FakeListChatModel(responses=list(replies))
        interpreter = IntentInterpreter(config, llm=model)
        return IntentHandler(config, store, interpreter, TraceLogger(config.log_dir))
    return _make


@pytest.fixture
def make_client(config, store):
    """Flask test client wired to the temp store and a scripted oracle."""
    from APIserver import create_app

    def _make(*replies, llm=None):
        model = llm or FakeListChatModel(responses=list(replies) or [reply()])
        app = create_app(config, llm=model)
        app.config["TESTING"] = True
        return app.test_client()
    return _make


@pytest.fixture
def token(store):
    return store.issue_token(USER)


@pytest.fixture
def auth(token):
    return {"Authorization": f"Bearer {token}"}
