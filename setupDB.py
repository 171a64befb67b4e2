"""
Meu Dinheiro Database Setup - schema for the ledger, goals and tips
"""

import os
import sqlite3
import sys
from datetime import date, timedelta

# Add src to path so we can import db modules
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), "src"))

SCHEMA = [
    # --- PROFILES (identity + display name) ---
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        full_name TEXT,
        password_hash BLOB,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- AUTH TOKENS (bearer sessions) ---
    """
    CREATE TABLE IF NOT EXISTS auth_tokens (
        token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES profiles(id) ON DELETE CASCADE
    );
    """,
    # --- TRANSACTIONS (ledger) ---
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        amount REAL NOT NULL CHECK(amount >= 0),
        type TEXT NOT NULL CHECK(type IN ('income', 'expense')),
        category TEXT NOT NULL DEFAULT 'Other',
        description TEXT,
        transaction_date TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- GOALS ---
    """
    CREATE TABLE IF NOT EXISTS goals (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        type TEXT NOT NULL CHECK(type IN ('save', 'invest')),
        target_amount REAL NOT NULL,
        current_amount REAL NOT NULL DEFAULT 0,
        target_date TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- IGNORED TIPS (purchase review suppression) ---
    """
    CREATE TABLE IF NOT EXISTS ignored_tips (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        category TEXT NOT NULL,
        ignored_until TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- USER SETTINGS (accessibility) ---
    """
    CREATE TABLE IF NOT EXISTS user_settings (
        user_id TEXT PRIMARY KEY,
        large_text BOOLEAN DEFAULT 0,
        high_contrast BOOLEAN DEFAULT 0,
        voice_reading BOOLEAN DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id, transaction_date);",
    "CREATE INDEX IF NOT EXISTS idx_goals_user ON goals(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_ignored_tips_user ON ignored_tips(user_id, category);",
    "CREATE INDEX IF NOT EXISTS idx_tokens_user ON auth_tokens(user_id);",
]


def create_schema(db_path: str):
    """Create every table and index (idempotent)."""
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for statement in SCHEMA:
            cur.execute(statement)
        for statement in INDEXES:
            cur.execute(statement)
        conn.commit()
    finally:
        conn.close()


def register_demo_user(db_path: str):
    """Seed a demo account with two months of history and one goal."""
    from db.queries import LedgerStore

    store = LedgerStore(db_path)
    if store.user_exists("demo"):
        print("   ⏭️  Demo user already exists, skipping...")
        return

    store.register_user("demo", "Ana Demo", "demo1234")
    today = date.today()

    history = [
        (35, 4200.0, "income", "Salário"),
        (5, 4200.0, "income", "Salário"),
        (40, 1500.0, "expense", "Moradia"),
        (10, 1500.0, "expense", "Moradia"),
        (20, 85.0, "expense", "Alimentação"),
        (12, 60.0, "expense", "Alimentação"),
        (3, 72.5, "expense", "Alimentação"),
        (8, 120.0, "expense", "Transporte"),
    ]
    for days_ago, amount, kind, category in history:
        store.add_transaction("demo", amount, kind, category, today - timedelta(days=days_ago))
    print(f"   ✅ Transactions: {len(history)} added")

    store.add_goal("demo", "Viagem", "save", 5000.0, today + timedelta(days=180))
    print("   ✅ Goal: Viagem created")


def main():
    """Initialize complete database schema."""
    from utils.config import load_config

    db_path = load_config().db_path
    print(f"🔧 Configuring Meu Dinheiro database at: {db_path}")
    create_schema(db_path)
    print("✅ Database schema created successfully.")

    if "--demo" in sys.argv:
        print("\n📝 Setting up demo user")
        register_demo_user(db_path)


if __name__ == "__main__":
    main()
    print("\n" + "=" * 60)
    print("✅ Meu Dinheiro database ready!")
    print("=" * 60 + "\n")
