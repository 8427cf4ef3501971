# ledger.py
"""
Savings and entertainment operations.

Every function takes an open sqlite3 connection, runs its statements in order
and commits once at the end, so a multi-statement operation such as
"adjust balance + insert record" is applied entirely or not at all.

Savings total is derived at read time (SUM of records). The entertainment
balance is a running total adjusted by every recharge, expense and delete.
"""
import logging
import sqlite3
from datetime import date, datetime, timezone
from typing import Dict, Optional

from currency_service import to_usd
from database import DEFAULT_GOAL, DEFAULT_INTEREST_RATE, DEFAULT_RATES
from errors import NotFound
from models import RATE_CURRENCIES

logger = logging.getLogger("liberty_ledger.ledger")

RECHARGE_NOTE = "Recharge"
EXPENSE_NOTE = "Expense"


def _today(today: Optional[date]) -> str:
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today.isoformat()


def current_rates(conn: sqlite3.Connection) -> Dict[str, float]:
    """Stored CAD/CNY rates, falling back to the seed values."""
    cursor = conn.cursor()
    cursor.execute(
        "SELECT currency, rate FROM exchange_rates WHERE currency IN (?, ?)",
        RATE_CURRENCIES
    )
    rates = dict(DEFAULT_RATES)
    for row in cursor.fetchall():
        if row['rate']:
            rates[row['currency']] = row['rate']
    return rates


# ============================================
# SAVINGS
# ============================================

def add_saving(conn: sqlite3.Connection, amount: float, today: Optional[date] = None):
    rates = current_rates(conn)
    conn.execute(
        "INSERT INTO savings_records (amount, date, rate_cad, rate_cny) VALUES (?, ?, ?, ?)",
        (amount, _today(today), rates['CAD'], rates['CNY'])
    )
    conn.commit()
    logger.debug("Savings contribution added: %s USD", amount)


def update_goal(conn: sqlite3.Connection, goal: float):
    conn.execute(
        "UPDATE savings_config SET goal = ?, updated_at = datetime('now') WHERE id = 1",
        (goal,)
    )
    conn.commit()


def update_interest_rate(conn: sqlite3.Connection, rate: float):
    conn.execute(
        "UPDATE savings_config SET interest_rate = ?, updated_at = datetime('now') WHERE id = 1",
        (rate,)
    )
    conn.commit()


def delete_saving(conn: sqlite3.Connection, record_id: int):
    """
    Delete a savings record.

    No balance is touched: the savings total is recomputed on every read.

    Raises:
        NotFound: no record with that id
    """
    cursor = conn.cursor()
    cursor.execute("SELECT id FROM savings_records WHERE id = ?", (record_id,))
    if cursor.fetchone() is None:
        raise NotFound("Record not found")

    cursor.execute("DELETE FROM savings_records WHERE id = ?", (record_id,))
    conn.commit()
    logger.debug("Savings record %s deleted", record_id)


# ============================================
# ENTERTAINMENT
# ============================================

def recharge_entertainment(conn: sqlite3.Connection, amount: float, today: Optional[date] = None):
    """Add `amount` USD to the entertainment balance and record it."""
    rates = current_rates(conn)
    cursor = conn.cursor()
    cursor.execute(
        "UPDATE entertainment_balance SET balance = balance + ?, updated_at = datetime('now') WHERE id = 1",
        (amount,)
    )
    cursor.execute(
        """INSERT INTO entertainment_records (amount, currency, note, date, rate_cad, rate_cny)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (amount, "USD", RECHARGE_NOTE, _today(today), rates['CAD'], rates['CNY'])
    )
    conn.commit()
    logger.debug("Entertainment fund recharged: %s USD", amount)


def add_expense(
    conn: sqlite3.Connection,
    amount: float,
    currency: str,
    note: Optional[str] = None,
    today: Optional[date] = None,
):
    """
    Record an expense of `amount` in `currency`.

    The balance is debited by the USD equivalent at the current rate. The
    record stores the amount negated, in its own currency, together with the
    rates used so the debit can be reversed exactly later.

    Example:
        recharge 100 USD, then expense 50 CAD at CAD=1.36
        => balance = 100 - 50 / 1.36 = 63.24
    """
    rates = current_rates(conn)
    usd_amount = to_usd(amount, currency, rates)

    cursor = conn.cursor()
    cursor.execute(
        "UPDATE entertainment_balance SET balance = balance - ?, updated_at = datetime('now') WHERE id = 1",
        (usd_amount,)
    )
    cursor.execute(
        """INSERT INTO entertainment_records (amount, currency, note, date, rate_cad, rate_cny)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (-amount, currency, note or EXPENSE_NOTE, _today(today), rates['CAD'], rates['CNY'])
    )
    conn.commit()
    logger.debug("Entertainment expense added: %s %s (%.2f USD)", amount, currency, usd_amount)


def delete_entertainment_record(conn: sqlite3.Connection, record_id: int):
    """
    Delete an entertainment record and undo its effect on the balance.

    The USD value is computed with the rate stored on the record, not the
    current rate. Expenses are credited back, recharges are debited.

    Raises:
        NotFound: no record with that id
    """
    cursor = conn.cursor()
    cursor.execute(
        "SELECT amount, currency, rate_cad, rate_cny FROM entertainment_records WHERE id = ?",
        (record_id,)
    )
    record = cursor.fetchone()
    if record is None:
        raise NotFound("Record not found")

    stored_rates = {"CAD": record['rate_cad'], "CNY": record['rate_cny']}
    usd_amount = to_usd(abs(record['amount']), record['currency'], stored_rates)
    adjustment = usd_amount if record['amount'] < 0 else -usd_amount

    cursor.execute(
        "UPDATE entertainment_balance SET balance = balance + ?, updated_at = datetime('now') WHERE id = 1",
        (adjustment,)
    )
    cursor.execute("DELETE FROM entertainment_records WHERE id = ?", (record_id,))
    conn.commit()
    logger.debug("Entertainment record %s deleted, balance adjusted by %.2f USD", record_id, adjustment)


# ============================================
# DASHBOARD
# ============================================

def get_dashboard(conn: sqlite3.Connection) -> dict:
    """Everything the client needs in one envelope (GET /data)."""
    cursor = conn.cursor()

    cursor.execute("SELECT goal, interest_rate FROM savings_config WHERE id = 1")
    config = cursor.fetchone()

    cursor.execute("SELECT COALESCE(SUM(amount), 0) AS total FROM savings_records")
    savings_total = cursor.fetchone()['total']

    cursor.execute(
        "SELECT id, amount, date, rate_cad, rate_cny FROM savings_records ORDER BY date DESC, id DESC"
    )
    savings_records = [dict(row) for row in cursor.fetchall()]

    cursor.execute("SELECT balance FROM entertainment_balance WHERE id = 1")
    balance_row = cursor.fetchone()

    cursor.execute(
        """SELECT id, amount, currency, note, date, rate_cad, rate_cny
           FROM entertainment_records ORDER BY date DESC, id DESC"""
    )
    entertainment_records = [dict(row) for row in cursor.fetchall()]

    cursor.execute(
        "SELECT currency, rate, updated_at FROM exchange_rates WHERE currency IN (?, ?)",
        RATE_CURRENCIES
    )
    rates = dict(DEFAULT_RATES)
    updated_at = None
    for row in cursor.fetchall():
        rates[row['currency']] = row['rate']
        if row['updated_at'] and (updated_at is None or row['updated_at'] > updated_at):
            updated_at = row['updated_at']

    return {
        "savings": {
            "goal": config['goal'] if config is not None else DEFAULT_GOAL,
            "current": savings_total,
            "interestRate": config['interest_rate'] if config is not None else DEFAULT_INTEREST_RATE,
            "records": savings_records
        },
        "entertainment": {
            "balance": balance_row['balance'] if balance_row is not None else 0,
            "records": entertainment_records
        },
        "rates": {
            "CAD": rates['CAD'],
            "CNY": rates['CNY'],
            "updatedAt": updated_at
        }
    }
