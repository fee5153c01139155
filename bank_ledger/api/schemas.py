"""
Pydantic schemas for API requests

Fields are left untyped so the ledger sees values exactly as submitted:
transaction ids hash the original amount, and numeric strings are accepted
for balance and amount.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field


class CreateAccountRequest(BaseModel):
    user: Optional[Any] = Field(None, description="Unique account owner name")
    currency: Optional[Any] = Field(None, description="Currency label, e.g. $")
    description: Optional[Any] = None
    balance: Optional[Any] = Field(None, description="Initial balance, number or numeric string")


class CreateTransactionRequest(BaseModel):
    date: Optional[Any] = None
    object: Optional[Any] = Field(None, description="What the transaction was for")
    amount: Optional[Any] = Field(None, description="Signed amount, positive for credit")
