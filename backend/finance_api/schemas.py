"""
Pydantic schemas for API request/response validation.
Separate from models to control what data is exposed via API.

JSON bodies use camelCase keys (walletId, newBalance, ...); Python code
uses snake_case and both spellings are accepted on input.
"""

from pydantic import BaseModel, EmailStr, Field, PlainSerializer, validator
from pydantic.alias_generators import to_camel
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, List, Optional

from .models import TransactionType


CENT = Decimal("0.01")
# largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")

# Two-digit fixed point in Python, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def to_money(value) -> Decimal:
    """Quantize any numeric (or None) to a two-place Decimal."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError("Amount is not a representable number")


def _positive_money(v):
    v = to_money(v)
    if v <= 0:
        raise ValueError("Amount must be positive")
    if v > MAX_AMOUNT:
        raise ValueError(f"Amount must not exceed {MAX_AMOUNT}")
    return v


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(CamelModel):
    message: str


# ============================================
# User Schemas
# ============================================

class UserCreate(CamelModel):
    """Schema for user registration."""
    email: EmailStr
    password: str = Field(min_length=8, max_length=100)

    @validator("email")
    def normalize_email(cls, v):
        return v.strip().lower()


class UserLogin(CamelModel):
    """Schema for user login."""
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterResponse(MessageResponse):
    user_id: int


class LoginResponse(MessageResponse):
    token: str


# ============================================
# Wallet Schemas
# ============================================

class WalletCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)

    @validator("name")
    def name_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Wallet name is required")
        return v


class WalletResponse(CamelModel):
    id: int
    user_id: int
    name: str
    balance: Money


# ============================================
# Transaction Schemas
# ============================================

class TransactionBase(CamelModel):
    """Fields shared by create and full-replacement edit."""
    wallet_id: int
    type: TransactionType
    amount: Money
    category: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    date: date

    @validator("amount")
    def amount_positive(cls, v):
        return _positive_money(v)


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(TransactionBase):
    """PUT replaces every field, including the wallet."""
    pass


class TransactionResponse(TransactionBase):
    id: int


class TransactionCreated(MessageResponse):
    transaction: TransactionResponse
    new_balance: Money


class TransactionUpdated(MessageResponse):
    transaction: TransactionResponse


class TransactionDeleted(MessageResponse):
    new_balance: Money


# ============================================
# Budget Schemas
# ============================================

class BudgetSet(CamelModel):
    category: str = Field(min_length=1, max_length=100)
    amount: Money
    month: Optional[str] = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")

    @validator("amount")
    def amount_positive(cls, v):
        return _positive_money(v)


class BudgetResponse(CamelModel):
    category: str
    amount: Money


# ============================================
# Report Schemas
# ============================================

class BudgetStatus(CamelModel):
    category: str
    budget: Money
    spent: Money
    remaining: Money


class MonthlyReport(CamelModel):
    total_income: Money
    total_expenses: Money
    net_savings: Money
    budget_status: List[BudgetStatus]
    notifications: List[str]
