import logging
import sqlite3
from contextlib import contextmanager

logger = logging.getLogger("liberty_ledger.database")

DATABASE_NAME = "liberty_ledger.db"

# Fallbacks used when a singleton row is missing
DEFAULT_GOAL = 50000
DEFAULT_INTEREST_RATE = 4.5
DEFAULT_RATES = {"CAD": 1.36, "CNY": 7.12}

# Fixed row ids of the per-currency rate singletons
RATE_IDS = {"CAD": 1, "CNY": 2}


def init_db(database_path: str = DATABASE_NAME):
    """ Initialised database with tables and singleton rows"""
    conn = sqlite3.connect(database_path)
    sql_execution_cursor = conn.cursor()

    sql_execution_cursor.execute('''

            CREATE TABLE IF NOT EXISTS savings_config (
            id INTEGER PRIMARY KEY,
            goal REAL NOT NULL DEFAULT 50000,
            interest_rate REAL NOT NULL DEFAULT 4.5,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
                                 ''')

    sql_execution_cursor.execute('''

            CREATE TABLE IF NOT EXISTS savings_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            amount REAL NOT NULL,
            date TEXT NOT NULL,
            rate_cad REAL,
            rate_cny REAL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
                                 ''')

    sql_execution_cursor.execute('''

            CREATE TABLE IF NOT EXISTS entertainment_balance (
            id INTEGER PRIMARY KEY,
            balance REAL NOT NULL DEFAULT 0,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
                                 ''')

    sql_execution_cursor.execute('''

            CREATE TABLE IF NOT EXISTS entertainment_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            amount REAL NOT NULL,
            currency TEXT NOT NULL DEFAULT 'USD',
            note TEXT,
            date TEXT NOT NULL,
            rate_cad REAL,
            rate_cny REAL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
                                 ''')

    sql_execution_cursor.execute('''

            CREATE TABLE IF NOT EXISTS exchange_rates (
            id INTEGER PRIMARY KEY,
            currency TEXT NOT NULL UNIQUE,
            rate REAL NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
                                 ''')

    sql_execution_cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_savings_date ON savings_records(date DESC)"
    )
    sql_execution_cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_entertainment_date ON entertainment_records(date DESC)"
    )

    # Singleton rows. Existing values are never overwritten on restart.
    sql_execution_cursor.execute(
        "INSERT OR IGNORE INTO savings_config (id, goal, interest_rate) VALUES (1, ?, ?)",
        (DEFAULT_GOAL, DEFAULT_INTEREST_RATE)
    )
    sql_execution_cursor.execute(
        "INSERT OR IGNORE INTO entertainment_balance (id, balance) VALUES (1, 0)"
    )
    for currency, rate_id in RATE_IDS.items():
        sql_execution_cursor.execute(
            "INSERT OR IGNORE INTO exchange_rates (id, currency, rate) VALUES (?, ?, ?)",
            (rate_id, currency, DEFAULT_RATES[currency])
        )

    conn.commit()
    conn.close()
    logger.info("✅ Database initialized at %s", database_path)


@contextmanager
def get_db(database_path: str = DATABASE_NAME):
    """
    Context manager for database connections.
    Automatically closes connection when done. Anything not committed
    before the block exits is rolled back.

    Usage:
        with get_db(settings.database_path) as conn:
            sql_execution_cursor = conn.cursor()
            sql_execution_cursor.execute("SELECT * FROM savings_records WHERE id = ?", (record_id,))
            record = sql_execution_cursor.fetchone()
    """
    conn = sqlite3.connect(database_path)
    conn.row_factory = sqlite3.Row  # Access columns by name: row['amount']
    try:
        yield conn
    finally:
        conn.close()
