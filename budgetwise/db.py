"""SQLite persistence for budgets, goals and transactions.

:class:`SqliteBudgetStore` implements the store protocol used by the
system budget lifecycle plus plain fetch/insert helpers for the other
records.  Money is stored as decimal text and dates as ISO strings.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import pandas as pd

from .config import get_db_path
from .dates import format_date
from .models import (
    PRIORITIES,
    BudgetGoal,
    Category,
    CustomBudget,
    CustomBudgetAllocation,
    SystemBudget,
    Transaction,
    load_records,
    to_money,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    title TEXT,
    amount TEXT NOT NULL,
    type TEXT NOT NULL,
    date TEXT,
    is_paid INTEGER NOT NULL DEFAULT 0,
    paid_date TEXT,
    category_id TEXT,
    financial_priority TEXT,
    custom_budget_id TEXT,
    bucket_id TEXT,
    original_amount TEXT,
    original_currency TEXT
);

CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    priority TEXT,
    color TEXT,
    icon TEXT
);

CREATE TABLE IF NOT EXISTS system_budgets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    budget_amount TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    system_budget_type TEXT NOT NULL,
    color TEXT
);

CREATE TABLE IF NOT EXISTS custom_budgets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    allocated_amount TEXT NOT NULL,
    start_date TEXT,
    end_date TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    is_mini INTEGER NOT NULL DEFAULT 0,
    original_allocated_amount TEXT,
    color TEXT
);

CREATE TABLE IF NOT EXISTS custom_budget_allocations (
    id TEXT PRIMARY KEY,
    custom_budget_id TEXT NOT NULL,
    category_id TEXT NOT NULL,
    allocated_amount TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS budget_goals (
    priority TEXT PRIMARY KEY,
    target_percentage REAL NOT NULL DEFAULT 0,
    is_absolute INTEGER NOT NULL DEFAULT 0,
    target_amount TEXT NOT NULL DEFAULT '0'
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_system_budget_month
ON system_budgets (system_budget_type, start_date, end_date);

CREATE INDEX IF NOT EXISTS ix_txn_date ON transactions (date);
CREATE INDEX IF NOT EXISTS ix_txn_paid_date ON transactions (paid_date);
CREATE INDEX IF NOT EXISTS ix_txn_budget ON transactions (custom_budget_id);
"""

# Columns added after the first schema; older files get them on init.
ADDED_COLUMNS = {
    'transactions': [('bucket_id', 'TEXT')],
}


def _add_missing_columns(conn: sqlite3.Connection) -> None:
    for table, columns in ADDED_COLUMNS.items():
        existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
        for name, column_type in columns:
            if name not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {column_type}")
                logger.info("Added column %s to %s table", name, table)


def _new_id() -> str:
    return uuid.uuid4().hex


def _money_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(to_money(value))


def _date_text(value: Any) -> Optional[str]:
    return format_date(value) or None


class SqliteBudgetStore:
    """Budget store backed by one SQLite file."""

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = str(db_path or get_db_path())

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            _add_missing_columns(conn)

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self.connect() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    # System budgets -------------------------------------------------------

    def find_system_budgets(
        self,
        budget_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[SystemBudget]:
        where: List[str] = []
        params: List[Any] = []
        if budget_type:
            where.append("system_budget_type = ?")
            params.append(budget_type)
        if start:
            where.append("start_date = ?")
            params.append(format_date(start))
        if end:
            where.append("end_date = ?")
            params.append(format_date(end))

        sql = "SELECT * FROM system_budgets"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY start_date ASC, system_budget_type ASC"
        return load_records(SystemBudget, self._fetch(sql, params))

    def create_system_budget(self, budget: SystemBudget) -> SystemBudget:
        if budget.system_budget_type not in PRIORITIES:
            raise ValueError(f"Invalid system budget type: {budget.system_budget_type!r}")
        if budget.start_date is None or budget.end_date is None:
            raise ValueError("System budgets need start and end dates")
        created = replace(budget, id=budget.id or _new_id())
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO system_budgets (id, name, budget_amount, start_date, end_date, system_budget_type, color) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    created.id, created.name, _money_text(created.budget_amount),
                    _date_text(created.start_date), _date_text(created.end_date),
                    created.system_budget_type, created.color,
                ),
            )
        return created

    def update_system_budget(self, budget_id: str, budget_amount: Decimal) -> None:
        with self.connect() as conn:
            cursor = conn.execute(
                "UPDATE system_budgets SET budget_amount = ? WHERE id = ?",
                (_money_text(budget_amount), budget_id),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"Unknown system budget: {budget_id!r}")

    # Custom budgets -------------------------------------------------------

    def fetch_custom_budgets(self, status: Optional[str] = None) -> List[CustomBudget]:
        if status:
            rows = self._fetch("SELECT * FROM custom_budgets WHERE status = ? ORDER BY start_date", (status,))
        else:
            rows = self._fetch("SELECT * FROM custom_budgets ORDER BY start_date")
        return load_records(CustomBudget, rows)

    def save_custom_budget(self, budget: CustomBudget) -> CustomBudget:
        saved = replace(budget, id=budget.id or _new_id())
        with self.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO custom_budgets "
                "(id, name, allocated_amount, start_date, end_date, status, is_mini, original_allocated_amount, color) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    saved.id, saved.name, _money_text(saved.allocated_amount),
                    _date_text(saved.start_date), _date_text(saved.end_date),
                    saved.status, int(saved.is_mini), _money_text(saved.original_allocated_amount), saved.color,
                ),
            )
        return saved

    def delete_custom_budget(self, budget_id: str) -> int:
        """Delete a custom budget together with its transactions and allocations.

        Returns:
            Number of transactions removed.
        """
        with self.connect() as conn:
            removed = conn.execute("DELETE FROM transactions WHERE custom_budget_id = ?", (budget_id,)).rowcount
            conn.execute("DELETE FROM custom_budget_allocations WHERE custom_budget_id = ?", (budget_id,))
            conn.execute("DELETE FROM custom_budgets WHERE id = ?", (budget_id,))
        return removed

    def fetch_allocations(self, budget_id: str) -> List[CustomBudgetAllocation]:
        rows = self._fetch("SELECT * FROM custom_budget_allocations WHERE custom_budget_id = ?", (budget_id,))
        return load_records(CustomBudgetAllocation, rows)

    def insert_allocation(self, allocation: CustomBudgetAllocation) -> CustomBudgetAllocation:
        saved = replace(allocation, id=allocation.id or _new_id())
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO custom_budget_allocations (id, custom_budget_id, category_id, allocated_amount) "
                "VALUES (?, ?, ?, ?)",
                (saved.id, saved.custom_budget_id, saved.category_id, _money_text(saved.allocated_amount)),
            )
        return saved

    # Transactions ---------------------------------------------------------

    def insert_transactions(self, transactions: Sequence[Transaction]) -> List[Transaction]:
        saved = [replace(t, id=t.id or _new_id()) for t in transactions]
        with self.connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO transactions "
                "(id, title, amount, type, date, is_paid, paid_date, category_id, financial_priority, "
                "custom_budget_id, bucket_id, original_amount, original_currency) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        t.id, t.title, _money_text(t.amount), t.type, _date_text(t.date), int(t.is_paid),
                        _date_text(t.paid_date), t.category_id, t.financial_priority, t.custom_budget_id,
                        t.bucket_id, _money_text(t.original_amount), t.original_currency,
                    )
                    for t in saved
                ],
            )
        return saved

    def fetch_transactions(self, start_date: Optional[Any] = None, end_date: Optional[Any] = None) -> List[Transaction]:
        """Transactions whose commitment or paid date touches ``[start_date, end_date]``.

        Either date may place the row in the period.
        """
        where: List[str] = []
        params: List[Any] = []
        if start_date:
            where.append("(date >= ? OR paid_date >= ?)")
            params.extend([format_date(start_date)] * 2)
        if end_date:
            where.append("(date <= ? OR paid_date <= ?)")
            params.extend([format_date(end_date)] * 2)
        sql = "SELECT * FROM transactions"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY date ASC, id ASC"
        return load_records(Transaction, self._fetch(sql, params))

    def fetch_transactions_frame(self) -> pd.DataFrame:
        with self.connect() as conn:
            df = pd.read_sql_query("SELECT * FROM transactions ORDER BY date ASC, id ASC", conn)
        if not df.empty:
            df['amount'] = df['amount'].astype(float)
            df['date'] = pd.to_datetime(df['date'], errors='coerce')
            df['paid_date'] = pd.to_datetime(df['paid_date'], errors='coerce')
            df['is_paid'] = df['is_paid'].astype(bool)
        return df

    def update_paid_date(self, transaction: Transaction) -> None:
        """Persist paid status, paid date and bucket of ``transaction`` in one write."""
        with self.connect() as conn:
            conn.execute(
                "UPDATE transactions SET is_paid = ?, paid_date = ?, custom_budget_id = ? WHERE id = ?",
                (int(transaction.is_paid), _date_text(transaction.paid_date), transaction.custom_budget_id, transaction.id),
            )

    # Categories and goals -------------------------------------------------

    def fetch_categories(self) -> List[Category]:
        return load_records(Category, self._fetch("SELECT * FROM categories ORDER BY name"))

    def insert_categories(self, categories: Sequence[Category]) -> None:
        with self.connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO categories (id, name, priority, color, icon) VALUES (?, ?, ?, ?, ?)",
                [(c.id or _new_id(), c.name, c.priority, c.color, c.icon) for c in categories],
            )

    def fetch_goals(self) -> List[BudgetGoal]:
        return load_records(BudgetGoal, self._fetch("SELECT * FROM budget_goals"))

    def save_goals(self, goals: Sequence[BudgetGoal]) -> None:
        with self.connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO budget_goals (priority, target_percentage, is_absolute, target_amount) "
                "VALUES (?, ?, ?, ?)",
                [(g.priority, float(g.target_percentage), int(g.is_absolute), _money_text(g.target_amount)) for g in goals],
            )
