# auth.py
"""
Token codec and authenticator.

Two token formats are supported:

- "jwt" (default): an HS256 JSON Web Token carrying {"user", "exp"}.
- "legacy": base64 of "username:issued_ms". It is unsigned and never expires.
  It is kept only so clients issued these tokens can keep working. Any caller
  who knows the username can forge one.
"""
import base64
import binascii
import hmac
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from jose import JWTError, jwt

from config import Settings
from errors import Unauthenticated
from models import Principal

logger = logging.getLogger("liberty_ledger.auth")

ALGORITHM = "HS256"
BEARER_SCHEME = "bearer"


# ============================================
# TOKEN CODEC: SIGNED
# ============================================

def encode_token(payload: dict, secret: str) -> str:
    """
    Sign a payload as an HS256 JWT.

    Example:
        >>> encode_token({"user": "admin", "exp": 1735689600}, "s3cret")
        "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.eyJ1c2VyIjoi..."
    """
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str, now: Optional[float] = None) -> Optional[dict]:
    """
    Verify a JWT and return its payload, or None.

    The signature is checked before any claim is read. A token is rejected
    when "exp" is missing, not a number, or not strictly in the future.
    Never raises.
    """
    if now is None:
        now = time.time()

    try:
        # exp is checked below so that exp == now counts as expired
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as e:
        logger.debug("Token rejected: %s", e)
        return None
    except Exception as e:
        logger.debug("Token rejected, could not be decoded: %r", e)
        return None

    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        logger.debug("Token rejected: missing or invalid exp claim")
        return None
    if exp <= now:
        logger.debug("Token rejected: expired")
        return None

    return payload


# ============================================
# TOKEN CODEC: LEGACY (UNSIGNED)
# ============================================

def encode_legacy_token(username: str, issued_at: Optional[float] = None) -> str:
    if issued_at is None:
        issued_at = time.time()
    raw = f"{username}:{int(issued_at * 1000)}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_legacy_token(token: str) -> Optional[str]:
    """Return the username embedded in a legacy token, or None if malformed."""
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        logger.debug("Legacy token rejected: %r", e)
        return None

    username, sep, issued = raw.rpartition(":")
    if not sep or not username or not issued.isdigit():
        return None
    return username


# ============================================
# AUTHENTICATOR
# ============================================

class Authenticator:
    """
    Issues tokens for the configured user and validates them on each request.

    Usage:
        authenticator = Authenticator(settings)
        token = authenticator.login("admin", "secret")
        principal = authenticator.authorize(f"Bearer {token}")
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def login(self, username: str, password: str, now: Optional[float] = None) -> str:
        """
        Check credentials and issue a token.

        Raises:
            Unauthenticated: username or password is wrong (never says which)
        """
        # Compare both fields every time
        username_ok = hmac.compare_digest(
            username.encode("utf-8"), self.settings.app_username.encode("utf-8")
        )
        password_ok = hmac.compare_digest(
            password.encode("utf-8"), self.settings.app_password.encode("utf-8")
        )
        if not (username_ok and password_ok):
            logger.warning("Failed login attempt")
            raise Unauthenticated("Invalid credentials", success=False)

        if now is None:
            now = time.time()

        if self.settings.token_mode == "legacy":
            return encode_legacy_token(username, issued_at=now)

        payload = {
            "user": username,
            "exp": int(now) + self.settings.token_ttl_hours * 3600,
        }
        return encode_token(payload, self.settings.jwt_secret)

    def authorize(self, header_value: Optional[str], now: Optional[float] = None) -> Optional[Principal]:
        """
        Validate an Authorization header value.

        Returns:
            Principal for a valid "Bearer <token>" header, otherwise None
        """
        token = extract_bearer_token(header_value)
        if token is None:
            return None

        if self.settings.token_mode == "legacy":
            username = decode_legacy_token(token)
            if username is None or not hmac.compare_digest(
                username.encode("utf-8"), self.settings.app_username.encode("utf-8")
            ):
                return None
            return Principal(username=username, expires_at=None)

        payload = decode_token(token, self.settings.jwt_secret, now=now)
        if payload is None:
            return None

        username = payload.get("user")
        if not isinstance(username, str) or not username:
            return None

        return Principal(
            username=username,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


def extract_bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    token = token.strip()
    return token or None
