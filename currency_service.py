# currency_service.py
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Dict, Optional

import click
import requests

from config import Settings
from database import RATE_IDS, get_db, init_db
from errors import BadUpstream
from models import RATE_CURRENCIES

logger = logging.getLogger("liberty_ledger.currency")


def fetch_usd_rates(url: str, timeout: float = 10) -> Dict[str, float]:
    """
    Fetch USD-based exchange rates from Exchange Rate API.

    Args:
        url: Provider endpoint for USD rates
        timeout: Seconds to wait for the provider

    Returns:
        Rates for the tracked currencies, in units per 1 USD
        Example: {"CAD": 1.37, "CNY": 7.19}

    Raises:
        BadUpstream: network error, non-2xx status, bad JSON or missing rates
    """
    try:
        logger.info("🌐 Fetching exchange rates from %s", url)

        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()

    except (requests.RequestException, ValueError) as e:
        logger.error("❌ Error fetching exchange rates: %s", e)
        raise BadUpstream("Failed to update rates", details=f"Unable to fetch exchange rates: {e}")

    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise BadUpstream("Failed to update rates", details="Invalid response from API")

    selected = {}
    for currency in RATE_CURRENCIES:
        rate = rates.get(currency)
        if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate <= 0:
            raise BadUpstream("Failed to update rates", details=f"Missing rate for {currency}")
        selected[currency] = float(rate)

    logger.info("✅ Got rates: %s", selected)
    return selected


def to_usd(amount: float, currency: str, rates: Dict[str, Optional[float]]) -> float:
    """
    Convert an amount in `currency` to USD.

    Rates are units of currency per 1 USD, so usd = amount / rate. USD, and
    any currency without a usable rate, converts at 1.

    Example:
        >>> to_usd(50, "CAD", {"CAD": 1.36, "CNY": 7.12})
        36.76470588235294
    """
    rate = rates.get(currency) if currency != "USD" else None
    if not rate:
        rate = 1
    return amount / rate


def store_rates(conn: sqlite3.Connection, rates: Dict[str, float], now: Optional[datetime] = None):
    """Upsert each tracked rate into its singleton row. Caller commits."""
    if now is None:
        now = datetime.now(timezone.utc)
    updated_at = now.isoformat()

    cursor = conn.cursor()
    for currency in RATE_CURRENCIES:
        cursor.execute(
            """INSERT OR REPLACE INTO exchange_rates (id, currency, rate, updated_at)
               VALUES (?, ?, ?, ?)""",
            (RATE_IDS[currency], currency, rates[currency], updated_at)
        )


def refresh_rates(settings: Settings) -> Dict[str, float]:
    """
    Fetch current rates and store them.

    Nothing is written unless every tracked rate was fetched, so a failed
    refresh leaves the previous rates in place.

    Returns:
        {"CAD": ..., "CNY": ...}
    """
    rates = fetch_usd_rates(settings.rates_url, timeout=settings.rates_timeout)

    with get_db(settings.database_path) as conn:
        store_rates(conn, rates)
        conn.commit()

    logger.info("💱 Exchange rates updated: %s", rates)
    return rates


def run_scheduled_refresh(settings: Settings) -> Optional[Dict[str, float]]:
    """
    Refresh rates for a timer-driven invocation.

    There is no caller to report to, so failures are logged and swallowed.
    """
    try:
        return refresh_rates(settings)
    except Exception:
        logger.exception("Scheduled exchange rate refresh failed")
        return None


@click.command("ledger-refresh-rates")
@click.option("--database", default=None, help="sqlite database path (overrides DATABASE_PATH)")
def main(database: Optional[str]) -> None:
    """Refresh stored USD exchange rates. Meant for cron / systemd timers."""
    settings = Settings()
    if database:
        settings = settings.model_copy(update={"database_path": database})

    logging.basicConfig(level=settings.log_level)
    settings.check_security()
    init_db(settings.database_path)
    rates = run_scheduled_refresh(settings)
    if rates is not None:
        click.echo(f"CAD={rates['CAD']} CNY={rates['CNY']}")


if __name__ == "__main__":
    main()
