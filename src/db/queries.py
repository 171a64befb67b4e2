"""
Database queries for Meu Dinheiro: CRUD layer over the SQLite store.

Every query is scoped to one identity (`user_id`). Public methods return
domain records from `core.actions` or plain Python types; callers never
need to import sqlite3. Any driver failure surfaces as StoreError.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

import bcrypt

from core.actions import Goal, IgnoredTip, LedgerEntry, UserSettings

SETTINGS_FIELDS = ("large_text", "high_contrast", "voice_reading")
GOAL_FIELDS = ("name", "type", "target_amount", "current_amount", "target_date")


class StoreError(Exception):
    """Raised when the backing store rejects or fails a query."""


def _entry_from_row(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        user_id=row["user_id"],
        amount=float(row["amount"]),
        type=row["type"],
        category=row["category"],
        transaction_date=date.fromisoformat(row["transaction_date"]),
        description=row["description"],
    )


def _goal_from_row(row: sqlite3.Row) -> Goal:
    return Goal(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        type=row["type"],
        target_amount=float(row["target_amount"]),
        current_amount=float(row["current_amount"]),
        target_date=date.fromisoformat(row["target_date"]),
    )


class LedgerStore:
    """Identity-scoped access to transactions, goals, tips and profiles."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    # ═══════════════════════════════════════════════════════════════
    # Authentication
    # ═══════════════════════════════════════════════════════════════

    def user_exists(self, user_id: str) -> bool:
        with self._connection() as conn:
            cur = conn.execute("SELECT 1 FROM profiles WHERE id = ?", (user_id,))
            return cur.fetchone() is not None

    def register_user(self, user_id: str, full_name: str, password: str) -> bool:
        """
        Insert a new profile with a bcrypt-hashed password.
        Returns False if the user id is already taken.
        """
        pwd_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt())
        try:
            with self._connection() as conn:
                conn.execute(
                    "INSERT INTO profiles (id, full_name, password_hash) VALUES (?, ?, ?)",
                    (user_id, full_name, pwd_hash),
                )
            return True
        except StoreError as exc:
            if isinstance(exc.__cause__, sqlite3.IntegrityError):
                return False
            raise

    def verify_login(self, user_id: str, password: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT password_hash FROM profiles WHERE id = ?", (user_id,)
            ).fetchone()
        return bool(row and row[0] and bcrypt.checkpw(password.encode(), row[0]))

    def issue_token(self, user_id: str) -> str:
        token = uuid.uuid4().hex
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO auth_tokens (token, user_id) VALUES (?, ?)",
                (token, user_id),
            )
        return token

    def resolve_token(self, token: str) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT user_id FROM auth_tokens WHERE token = ?", (token,)
            ).fetchone()
        return row["user_id"] if row else None

    # ═══════════════════════════════════════════════════════════════
    # Profile & settings
    # ═══════════════════════════════════════════════════════════════

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, full_name, created_at FROM profiles WHERE id = ?", (user_id,)
            ).fetchone()
        return dict(row) if row else None

    def update_profile(self, user_id: str, full_name: str) -> bool:
        with self._connection() as conn:
            cur = conn.execute(
                "UPDATE profiles SET full_name = ? WHERE id = ?", (full_name, user_id)
            )
            return cur.rowcount > 0

    def get_settings(self, user_id: str) -> UserSettings:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT large_text, high_contrast, voice_reading FROM user_settings WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return UserSettings()
        return UserSettings(**{k: bool(row[k]) for k in SETTINGS_FIELDS})

    def update_settings(self, user_id: str, **toggles) -> UserSettings:
        """Upsert accessibility toggles.  Only known, non-None toggles are written."""
        current = self.get_settings(user_id)
        merged = {k: getattr(current, k) for k in SETTINGS_FIELDS}
        merged.update({k: bool(v) for k, v in toggles.items() if k in SETTINGS_FIELDS and v is not None})
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO user_settings (user_id, large_text, high_contrast, voice_reading)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    large_text = excluded.large_text,
                    high_contrast = excluded.high_contrast,
                    voice_reading = excluded.voice_reading,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (user_id, merged["large_text"], merged["high_contrast"], merged["voice_reading"]),
            )
        return UserSettings(**merged)

    # ═══════════════════════════════════════════════════════════════
    # Transactions
    # ═══════════════════════════════════════════════════════════════

    def add_transaction(
        self,
        user_id: str,
        amount: float,
        kind: str,
        category: str,
        transaction_date: date,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        with self._connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO transactions
                    (user_id, amount, type, category, description, transaction_date)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, amount, kind, category, description, transaction_date.isoformat()),
            )
            entry_id = cur.lastrowid
        return LedgerEntry(
            id=entry_id,
            user_id=user_id,
            amount=float(amount),
            type=kind,
            category=category,
            transaction_date=transaction_date,
            description=description,
        )

    def list_transactions(
        self,
        user_id: str,
        kind: Optional[str] = None,
        category: Optional[str] = None,
        since: Optional[date] = None,
        newest_first: bool = False,
    ) -> List[LedgerEntry]:
        """Ledger entries for one identity, optionally filtered, in date order."""
        clauses = ["user_id = ?"]
        params: List[Any] = [user_id]
        if kind:
            clauses.append("type = ?")
            params.append(kind)
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if since is not None:
            clauses.append("transaction_date >= ?")
            params.append(since.isoformat())
        order = "DESC" if newest_first else "ASC"

        with self._connection() as conn:
            cur = conn.execute(
                f"""
                SELECT * FROM transactions
                WHERE {' AND '.join(clauses)}
                ORDER BY transaction_date {order}, id {order}
                """,
                params,
            )
            return [_entry_from_row(r) for r in cur.fetchall()]

    def delete_transaction(self, user_id: str, transaction_id: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute(
                "DELETE FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            )
            return cur.rowcount > 0

    # ═══════════════════════════════════════════════════════════════
    # Goals
    # ═══════════════════════════════════════════════════════════════

    def add_goal(
        self,
        user_id: str,
        name: str,
        kind: str,
        target_amount: float,
        target_date: date,
    ) -> Goal:
        with self._connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO goals (user_id, name, type, target_amount, current_amount, target_date)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (user_id, name, kind, target_amount, target_date.isoformat()),
            )
            goal_id = cur.lastrowid
        return Goal(
            id=goal_id,
            user_id=user_id,
            name=name,
            type=kind,
            target_amount=float(target_amount),
            current_amount=0.0,
            target_date=target_date,
        )

    def list_goals(self, user_id: str, newest_first: bool = False) -> List[Goal]:
        order = "DESC" if newest_first else "ASC"
        with self._connection() as conn:
            cur = conn.execute(
                f"SELECT * FROM goals WHERE user_id = ? ORDER BY created_at {order}, id {order}",
                (user_id,),
            )
            return [_goal_from_row(r) for r in cur.fetchall()]

    def get_goal(self, user_id: str, goal_id: int) -> Optional[Goal]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            ).fetchone()
        return _goal_from_row(row) if row else None

    def find_goal(self, user_id: str, name_hint: str) -> Optional[Goal]:
        """First goal (creation order) whose name contains the hint, ignoring case."""
        needle = name_hint.strip().lower()
        if not needle:
            return None
        for goal in self.list_goals(user_id):
            if needle in goal.name.lower():
                return goal
        return None

    def latest_goal(self, user_id: str) -> Optional[Goal]:
        goals = self.list_goals(user_id, newest_first=True)
        return goals[0] if goals else None

    def update_goal(self, user_id: str, goal_id: int, **fields) -> Optional[Goal]:
        """Overwrite the given goal columns and return the stored goal."""
        valid = {k: v for k, v in fields.items() if k in GOAL_FIELDS and v is not None}
        if "target_date" in valid and isinstance(valid["target_date"], date):
            valid["target_date"] = valid["target_date"].isoformat()
        if valid:
            set_clause = ", ".join(f"{c} = ?" for c in valid)
            with self._connection() as conn:
                conn.execute(
                    f"UPDATE goals SET {set_clause} WHERE id = ? AND user_id = ?",
                    list(valid.values()) + [goal_id, user_id],
                )
        return self.get_goal(user_id, goal_id)

    def delete_goal(self, user_id: str, goal_id: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute(
                "DELETE FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            )
            return cur.rowcount > 0

    # ═══════════════════════════════════════════════════════════════
    # Ignored tips
    # ═══════════════════════════════════════════════════════════════

    def add_ignored_tip(self, user_id: str, category: str, ignored_until: datetime) -> IgnoredTip:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO ignored_tips (user_id, category, ignored_until) VALUES (?, ?, ?)",
                (user_id, category, ignored_until.isoformat(timespec="seconds")),
            )
        return IgnoredTip(user_id=user_id, category=category, ignored_until=ignored_until)

    def active_ignored_tip(self, user_id: str, category: str, now: datetime) -> Optional[IgnoredTip]:
        """Suppression for the category that has not expired yet; expired rows are left in place."""
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT user_id, category, ignored_until FROM ignored_tips
                WHERE user_id = ? AND category = ? AND ignored_until >= ?
                ORDER BY ignored_until DESC
                LIMIT 1
                """,
                (user_id, category, now.isoformat(timespec="seconds")),
            ).fetchone()
        if not row:
            return None
        return IgnoredTip(
            user_id=row["user_id"],
            category=row["category"],
            ignored_until=datetime.fromisoformat(row["ignored_until"]),
        )

    # ═══════════════════════════════════════════════════════════════
    # Account
    # ═══════════════════════════════════════════════════════════════

    def delete_user_data(self, user_id: str) -> bool:
        """Hard-delete all data for a user (account deletion / test teardown)."""
        with self._connection() as conn:
            conn.execute("DELETE FROM transactions WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM goals WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM ignored_tips WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM user_settings WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM auth_tokens WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM profiles WHERE id = ?", (user_id,))
        return True
