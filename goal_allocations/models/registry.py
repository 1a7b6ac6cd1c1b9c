"""
Registry Models

Accounts and goals are owned by their registries. The allocation
engine only reads them: accounts become matrix rows, goals become
matrix columns.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Account(BaseModel):
    """
    A funding account.

    DESIGN DECISION: Accounts can be deactivated after allocations
    exist. That is reported as a warning, never as a contract violation.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque account identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    currency: str = Field(
        ...,
        description="ISO-4217 currency code"
    )
    is_active: bool = Field(
        default=True,
        description="Inactive accounts are hidden from most views"
    )
    group: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Optional grouping label (e.g., 'Retirement')"
    )
    account_type: str = Field(
        default="SECURITIES",
        description="Account type (SECURITIES, CASH, CRYPTOCURRENCY, ...)"
    )
    is_default: bool = False

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Currency codes are three letters, stored upper-case."""
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid ISO-4217 currency code: {v}")
        return code


class Goal(BaseModel):
    """A savings or investment goal."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque goal identifier"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Goal title"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    target_amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount the goal aims to reach"
    )
    is_achieved: bool = False
