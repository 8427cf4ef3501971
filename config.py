# config.py
"""
Configuration for Liberty Ledger.

Settings are read once from environment variables (and an optional .env file)
and passed explicitly to the app factory and the scheduled rate refresh.

Example:
    JWT_SECRET=$(openssl rand -hex 32) APP_USERNAME=alice APP_PASSWORD=... \\
        uvicorn main:app
"""
import logging
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from errors import InsecureConfiguration

logger = logging.getLogger("liberty_ledger.config")


DEFAULT_JWT_SECRET = "a-very-weak-secret-please-change-me-in-prod"
DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "your-password"

RATES_URL = "https://api.exchangerate-api.com/v4/latest/USD"


class Settings(BaseSettings):
    """
    Application settings.

    The credential fields fall back to well-known values when unset. Those
    fallbacks are insecure; check_security() reports them at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Authentication
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET, min_length=1)
    app_username: str = Field(default=DEFAULT_USERNAME, min_length=1)
    app_password: str = Field(default=DEFAULT_PASSWORD, min_length=1)
    token_mode: Literal["jwt", "legacy"] = "jwt"
    token_ttl_hours: int = Field(default=24, ge=1)

    # Storage and HTTP
    database_path: str = "liberty_ledger.db"
    api_prefix: str = "/api"
    expose_error_details: bool = True
    host: str = "127.0.0.1"
    port: int = 8000

    # Exchange rate provider
    rates_url: str = RATES_URL
    rates_timeout: float = Field(default=10.0, gt=0)

    strict_config: bool = False
    log_level: str = "INFO"

    def insecure_defaults(self) -> List[str]:
        """Names of the environment variables still using their fallback value."""
        fallbacks = []
        if self.jwt_secret == DEFAULT_JWT_SECRET:
            fallbacks.append("JWT_SECRET")
        if self.app_username == DEFAULT_USERNAME:
            fallbacks.append("APP_USERNAME")
        if self.app_password == DEFAULT_PASSWORD:
            fallbacks.append("APP_PASSWORD")
        return fallbacks

    def check_security(self) -> None:
        """
        Report insecure configuration.

        Logs one warning per fallback credential and another when the unsigned
        legacy token mode is on. With strict_config enabled, fallback
        credentials raise InsecureConfiguration instead.
        """
        fallbacks = self.insecure_defaults()
        if fallbacks and self.strict_config:
            raise InsecureConfiguration(
                f"Refusing to start with default values for: {', '.join(fallbacks)}"
            )
        for name in fallbacks:
            logger.warning("⚠️ %s is not set, using the insecure built-in default", name)

        if self.token_mode == "legacy":
            logger.warning(
                "⚠️ TOKEN_MODE=legacy issues unsigned tokens that never expire; "
                "anyone who knows the username can forge one"
            )
