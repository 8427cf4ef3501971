# errors.py
from typing import Any, Dict


class InsecureConfiguration(RuntimeError):
    """Raised at startup when STRICT_CONFIG is on and a credential is unset."""


class LedgerError(Exception):
    """
    Base error for everything the API reports to callers.

    The dispatcher turns it into a JSON envelope:
        {"error": message, **extra}
    with status_code as the HTTP status.
    """

    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class BadRequest(LedgerError):
    status_code = 400


class Unauthenticated(LedgerError):
    status_code = 401


class NotFound(LedgerError):
    status_code = 404


class BadUpstream(LedgerError):
    """The exchange rate provider failed or returned unusable data."""

    status_code = 500
