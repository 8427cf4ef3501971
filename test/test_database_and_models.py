# test_database_and_models.py
import sqlite3

import pytest
from pydantic import ValidationError

from database import init_db, get_db
from models import (
    ExpenseCreate, GoalUpdate, InterestRateUpdate, RechargeCreate, RecordDelete, SavingsAdd, UserLogin,
    VALID_CURRENCIES
)


# ============================================
# DATABASE
# ============================================

def test_tables_exist(settings):
    init_db(settings.database_path)
    with get_db(settings.database_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row['name'] for row in cursor.fetchall()}

    assert {
        "savings_config", "savings_records", "entertainment_balance",
        "entertainment_records", "exchange_rates"
    } <= tables


def test_singleton_rows_seeded_once(settings):
    init_db(settings.database_path)
    with get_db(settings.database_path) as conn:
        conn.execute("UPDATE savings_config SET goal = 1234 WHERE id = 1")
        conn.execute("UPDATE entertainment_balance SET balance = 42 WHERE id = 1")
        conn.commit()

    init_db(settings.database_path)

    with get_db(settings.database_path) as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM savings_config").fetchone()['n'] == 1
        assert conn.execute("SELECT goal FROM savings_config").fetchone()['goal'] == 1234
        assert conn.execute("SELECT balance FROM entertainment_balance").fetchone()['balance'] == 42
        rates = conn.execute("SELECT id, currency, rate FROM exchange_rates ORDER BY id").fetchall()
        assert [tuple(row) for row in rates] == [(1, "CAD", 1.36), (2, "CNY", 7.12)]


def test_uncommitted_work_is_discarded(settings):
    init_db(settings.database_path)
    with get_db(settings.database_path) as conn:
        conn.execute("UPDATE entertainment_balance SET balance = balance + 10 WHERE id = 1")
        # no commit

    with get_db(settings.database_path) as conn:
        assert conn.execute("SELECT balance FROM entertainment_balance").fetchone()['balance'] == 0


def test_rows_are_addressable_by_name(settings):
    init_db(settings.database_path)
    with get_db(settings.database_path) as conn:
        row = conn.execute("SELECT goal, interest_rate FROM savings_config").fetchone()
    assert isinstance(row, sqlite3.Row)
    assert row['interest_rate'] == 4.5


# ============================================
# MODELS
# ============================================

def test_valid_login():
    user = UserLogin(username="alice", password="SecurePass123!")
    assert user.username == "alice"


def test_amount_rounded_to_cents():
    assert SavingsAdd(amount=10.4567).amount == 10.46


@pytest.mark.parametrize("amount", [0, -50.00, 1000001])
def test_invalid_amounts(amount):
    with pytest.raises(ValidationError):
        RechargeCreate(amount=amount)


def test_valid_expense():
    expense = ExpenseCreate(amount=50.00, currency="cny", note="Karaoke")
    assert expense.currency == "CNY"
    assert expense.note == "Karaoke"


def test_expense_requires_currency():
    with pytest.raises(ValidationError):
        ExpenseCreate(amount=3)
    assert ExpenseCreate(amount=3, currency="usd").note is None


@pytest.mark.parametrize("model, field", [
    (SavingsAdd, "amount"),
    (RechargeCreate, "amount"),
    (GoalUpdate, "goal"),
    (InterestRateUpdate, "rate"),
])
@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_rejected(model, field, value):
    with pytest.raises(ValidationError, match="finite"):
        model(**{field: value})


def test_invalid_currency():
    with pytest.raises(ValidationError, match="Currency must be one of"):
        ExpenseCreate(amount=50.00, currency="XYZ")


def test_note_too_long():
    with pytest.raises(ValidationError):
        ExpenseCreate(amount=5, currency="USD", note="x" * 201)


def test_negative_goal():
    with pytest.raises(ValidationError):
        GoalUpdate(goal=-1)


def test_record_id_must_be_integer():
    assert RecordDelete(id="12").id == 12
    with pytest.raises(ValidationError):
        RecordDelete(id="twelve")


def test_constants():
    assert VALID_CURRENCIES == ["USD", "CAD", "CNY"]
