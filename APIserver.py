"""
Meu Dinheiro API Server: chat-driven personal finance assistant.
Flask wrapper around the IntentHandler and the balance projection.

Usage:
    python setupDB.py --demo
    python APIserver.py
Then point the web front end at http://localhost:5013.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS


# ------------------------------------------------------------------
# Setup Paths
# ------------------------------------------------------------------

BASE_DIR = Path(__file__).parent.resolve()
SRC_DIR = BASE_DIR / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from agents.intent_agent import IntentInterpreter  # noqa: E402
from agents.monitor_agent import PurchaseReviewAgent  # noqa: E402
from agents.orchestrator import MSG_GENERIC_ERROR, HandlerError, IntentHandler  # noqa: E402
from core.projection import build_projection  # noqa: E402
from db.queries import LedgerStore, StoreError  # noqa: E402
from setupDB import create_schema  # noqa: E402
from tools.monthly_report import export_user_data, monthly_report, report_start  # noqa: E402
from utils.config import Config, load_config  # noqa: E402
from utils.logger import TraceLogger  # noqa: E402


class AuthError(Exception):
    """Missing, unknown or mismatched bearer token."""


def create_app(config: Optional[Config] = None, llm=None) -> Flask:
    """
    Build the Flask app.

    `llm` replaces the ChatOpenAI oracle (tests pass a fake chat model).
    """
    config = config or load_config()
    create_schema(config.db_path)

    app = Flask(__name__)
    CORS(app)

    store = LedgerStore(config.db_path)
    logger = TraceLogger(config.log_dir)
    state = {"handler": None}

    def get_handler() -> IntentHandler:
        """
        Lazy-load the handler so the server starts even without an oracle key.
        """
        if state["handler"] is None:
            interpreter = IntentInterpreter(config, llm=llm)
            state["handler"] = IntentHandler(config, store, interpreter, logger)
        return state["handler"]

    def bearer_identity() -> str:
        header = request.headers.get("Authorization", "")
        if not header:
            raise AuthError("Authorization header is required")
        token = header[7:].strip() if header.lower().startswith("bearer ") else header.strip()
        user_id = store.resolve_token(token)
        if not user_id:
            raise AuthError("Unauthorized")
        return user_id

    @app.errorhandler(AuthError)
    def auth_failed(exc):
        return jsonify({"error": str(exc)}), 401

    @app.errorhandler(StoreError)
    def store_failed(exc):
        logger.log_error("store", exc)
        return jsonify({"error": str(exc)}), 500

    # ------------------------------------------------------------------
    # Intent Handler
    # ------------------------------------------------------------------

    @app.route("/process-message", methods=["POST"])
    def process_message():
        """
        Main chat endpoint.
        """
        data = request.get_json(silent=True) or {}
        user_id = data.get("userId")
        messages = data.get("messages")
        single_message = data.get("message")

        if not user_id or (not messages and not single_message):
            return jsonify({
                "response": MSG_GENERIC_ERROR,
                "error": "userId and at least one message are required",
            }), 400

        if bearer_identity() != user_id:
            raise AuthError("Token does not belong to userId")

        conversation = messages if messages else [{"role": "user", "content": single_message}]

        try:
            result = get_handler().process(user_id, conversation)
        except HandlerError as exc:
            return jsonify({"response": exc.user_message, "error": exc.detail}), 500
        except Exception as exc:
            logger.log_error("process_message", exc)
            return jsonify({"response": MSG_GENERIC_ERROR, "error": str(exc)}), 500

        return jsonify(result.to_dict())

    # ------------------------------------------------------------------
    # Projection Handler
    # ------------------------------------------------------------------

    @app.route("/calculate-projection", methods=["GET", "POST"])
    def calculate_projection():
        user_id = bearer_identity()
        logger.start_request("calculate_projection", {"user_id": user_id})
        try:
            projection = build_projection(store, user_id, datetime.now(), config.projection)
        except Exception as exc:
            logger.log_error("calculate_projection", exc)
            logger.end_request(None)
            return jsonify({"error": str(exc)}), 500

        payload = projection.to_dict()
        logger.end_request({k: v for k, v in payload.items() if k != "projection"})
        return jsonify(payload)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    @app.route("/auth/register", methods=["POST"])
    def register():
        data = request.get_json(silent=True) or {}
        user_id = (data.get("userId") or "").strip()
        password = data.get("password") or ""
        if not user_id or not password:
            return jsonify({"error": "userId and password are required"}), 400

        if not store.register_user(user_id, data.get("fullName") or "", password):
            return jsonify({"error": f"User '{user_id}' already exists"}), 409
        return jsonify({"userId": user_id, "token": store.issue_token(user_id)}), 201

    @app.route("/auth/login", methods=["POST"])
    def login():
        data = request.get_json(silent=True) or {}
        user_id = (data.get("userId") or "").strip()
        if not store.verify_login(user_id, data.get("password") or ""):
            return jsonify({"error": "Invalid credentials"}), 401
        return jsonify({"userId": user_id, "token": store.issue_token(user_id)})

    # ------------------------------------------------------------------
    # Ledger & goals
    # ------------------------------------------------------------------

    @app.route("/transactions", methods=["GET"])
    def list_transactions():
        user_id = bearer_identity()
        kind = request.args.get("type")
        if kind not in (None, "", "all", "income", "expense"):
            return jsonify({"error": f"Unknown type filter '{kind}'"}), 400
        kind = None if kind in (None, "", "all") else kind

        everything = store.list_transactions(user_id, newest_first=True)
        shown = [t for t in everything if kind is None or t.type == kind]
        return jsonify({
            "transactions": [t.to_dict() for t in shown],
            "totalIncome": round(sum(t.amount for t in everything if t.type == "income"), 2),
            "totalExpenses": round(sum(t.amount for t in everything if t.type == "expense"), 2),
        })

    @app.route("/transactions/<int:transaction_id>", methods=["DELETE"])
    def delete_transaction(transaction_id):
        user_id = bearer_identity()
        if not store.delete_transaction(user_id, transaction_id):
            return jsonify({"error": "Transaction not found"}), 404
        return jsonify({"deleted": transaction_id})

    @app.route("/goals", methods=["GET"])
    def list_goals():
        user_id = bearer_identity()
        return jsonify({"goals": [g.to_dict() for g in store.list_goals(user_id, newest_first=True)]})

    @app.route("/goals/<int:goal_id>", methods=["DELETE"])
    def delete_goal(goal_id):
        user_id = bearer_identity()
        if not store.delete_goal(user_id, goal_id):
            return jsonify({"error": "Goal not found"}), 404
        return jsonify({"deleted": goal_id})

    @app.route("/ignored-tips", methods=["POST"])
    def ignore_tip():
        user_id = bearer_identity()
        data = request.get_json(silent=True) or {}
        category = (data.get("category") or "").strip()
        if not category:
            return jsonify({"error": "category is required"}), 400

        tip = PurchaseReviewAgent(store, config.review).ignore_tip(user_id, category, datetime.now())
        return jsonify({
            "category": tip.category,
            "ignoredUntil": tip.ignored_until.isoformat(timespec="seconds"),
        }), 201

    # ------------------------------------------------------------------
    # Profile, settings, reports
    # ------------------------------------------------------------------

    @app.route("/profile", methods=["GET", "PUT"])
    def profile():
        user_id = bearer_identity()
        if request.method == "PUT":
            data = request.get_json(silent=True) or {}
            store.update_profile(user_id, (data.get("fullName") or "").strip())
        current = store.get_profile(user_id) or {}
        return jsonify({"id": user_id, "fullName": current.get("full_name")})

    @app.route("/settings", methods=["GET", "PUT"])
    def settings():
        user_id = bearer_identity()
        if request.method == "PUT":
            data = request.get_json(silent=True) or {}
            updated = store.update_settings(
                user_id,
                large_text=data.get("largeText"),
                high_contrast=data.get("highContrast"),
                voice_reading=data.get("voiceReading"),
            )
            return jsonify(updated.to_dict())
        return jsonify(store.get_settings(user_id).to_dict())

    @app.route("/reports/monthly", methods=["GET"])
    def report():
        user_id = bearer_identity()
        today = datetime.now().date()
        entries = store.list_transactions(user_id, since=report_start(today))
        return jsonify(monthly_report(entries, today))

    @app.route("/export", methods=["GET"])
    def export():
        user_id = bearer_identity()
        return jsonify(export_user_data(store, user_id, datetime.now()))

    @app.route("/account", methods=["DELETE"])
    def delete_account():
        user_id = bearer_identity()
        store.delete_user_data(user_id)
        logger.log_step("account_deleted", {"user_id": user_id})
        return jsonify({"message": "Account deleted"})

    return app


# ------------------------------------------------------------------
# Main
# ------------------------------------------------------------------

if __name__ == "__main__":

    print("\n" + "=" * 60)
    print("  Meu Dinheiro API")
    print("  Chat-driven personal finance assistant")
    print("  Listening on: http://localhost:5013")
    print("=" * 60 + "\n")

    create_app().run(host="0.0.0.0", port=5013, use_reloader=False)
