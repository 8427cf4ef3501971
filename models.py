# models.py
from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
import math


VALID_CURRENCIES = [

        "USD",  # US Dollar, the ledger's base currency
        "CAD",  # Canadian Dollar
        "CNY",  # Chinese Yuan

]

# Currencies with a stored USD rate
RATE_CURRENCIES = ["CAD", "CNY"]

MAX_AMOUNT = 1000000
MAX_NOTE_LENGTH = 200


def _require_finite(value: float) -> float:
    # json.loads accepts NaN and Infinity
    if not math.isfinite(value):
        raise ValueError('Value must be a finite number')
    return value


def _validate_amount(value: float) -> float:
    _require_finite(value)
    if value <= 0:
        raise ValueError('Amount must be greater than 0')
    if value > MAX_AMOUNT:
        raise ValueError('Amount too large (max: 1,000,000)')
    return round(value, 2)  # Round to 2 decimal places


#REQUEST MODELS - WHAT THE CLIENT SENDS


class UserLogin(BaseModel):
    """
    Model for login.

    Example:
        {
            "username": "admin",
            "password": "SecurePass123!"
        }
    """
    username: str
    password: str


class SavingsAdd(BaseModel):
    """
    Model for a savings contribution (USD).

    Example:
        {
            "amount": 250.00
        }
    """
    amount: float

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, value):
        return _validate_amount(value)


class GoalUpdate(BaseModel):
    """
    Example:
        {
            "goal": 60000
        }
    """
    goal: float

    @field_validator('goal')
    @classmethod
    def validate_goal(cls, value):
        _require_finite(value)
        if value < 0:
            raise ValueError('Goal cannot be negative')
        return value


class InterestRateUpdate(BaseModel):
    """
    Annual interest rate in percent.

    Example:
        {
            "rate": 4.25
        }
    """
    rate: float

    @field_validator('rate')
    @classmethod
    def validate_rate(cls, value):
        _require_finite(value)
        if value < 0:
            raise ValueError('Interest rate cannot be negative')
        return value


class RecordDelete(BaseModel):
    """
    Example:
        {
            "id": 12
        }
    """
    id: int


class RechargeCreate(BaseModel):
    """
    Model for topping up the entertainment fund (always USD).

    Example:
        {
            "amount": 100.00
        }
    """
    amount: float

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, value):
        return _validate_amount(value)


class ExpenseCreate(BaseModel):
    """
    Model for an entertainment expense.

    Example:
        {
            "amount": 50.00,
            "currency": "CAD",
            "note": "Concert tickets"
        }
    """
    amount: float
    currency: str
    note: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, value):
        return _validate_amount(value)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, value):
        value = value.upper()  # Convert to uppercase
        if value not in VALID_CURRENCIES:
            raise ValueError(f'Currency must be one of: {", ".join(VALID_CURRENCIES)}')
        return value

    @field_validator('note')
    @classmethod
    def validate_note(cls, value):
        if value is not None:
            if len(value) > MAX_NOTE_LENGTH:
                raise ValueError('Note must be at most 200 characters')
            if len(value.strip()) == 0:
                return None  # Empty string becomes None
        return value



#RESPONSE MODELS - WHAT THE CLIENT RECEIVES


class Principal(BaseModel):
    """
    The authenticated caller.

    expires_at is None for legacy tokens, which never expire.
    """
    username: str
    expires_at: Optional[datetime] = None


class LoginResponse(BaseModel):
    """
    Example:
        {
            "success": true,
            "token": "eyJhbGci..."
        }
    """
    success: bool = True
    token: str


class SuccessResponse(BaseModel):
    success: bool = True


class RatesPair(BaseModel):
    CAD: float
    CNY: float


class RatesUpdateResponse(BaseModel):
    """
    Example:
        {
            "success": true,
            "rates": {"CAD": 1.37, "CNY": 7.19}
        }
    """
    success: bool = True
    rates: RatesPair
