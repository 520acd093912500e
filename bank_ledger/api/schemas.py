"""
Pydantic schemas for API requests and response serializers
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..accounts import Account
from ..funding import FundingSource, FundingSourceType
from ..money import format_minor_units
from ..transactions import Transaction
from ..users import SignupData, User


# Auth schemas
class SignupRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., pattern=r"^\+?\d{10,15}$")
    date_of_birth: str = Field(..., description="ISO date (YYYY-MM-DD)")
    ssn: str = Field(..., pattern=r"^\d{9}$")
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2)
    zip_code: str = Field(..., pattern=r"^\d{5}$")

    def to_signup_data(self) -> SignupData:
        return SignupData(**self.model_dump())


class LoginRequest(BaseModel):
    email: str
    password: str


# Account schemas
class CreateAccountRequest(BaseModel):
    account_type: str = Field(..., description="Account type (checking, savings)")


class FundingSourceModel(BaseModel):
    type: FundingSourceType = Field(..., description="card or bank")
    account_number: str = Field(..., description="Card number or bank account number")
    routing_number: Optional[str] = Field(None, description="9-digit routing number for bank transfers")

    def to_funding_source(self) -> FundingSource:
        return FundingSource(
            source_type=self.type,
            account_number=self.account_number,
            routing_number=self.routing_number
        )


class FundAccountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount in dollars as string, e.g. \"25.00\"")
    funding_source: FundingSourceModel


# Serializers
def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone_number": user.phone_number,
        "date_of_birth": user.date_of_birth,
        "address": user.address,
        "city": user.city,
        "state": user.state,
        "zip_code": user.zip_code,
        "created_at": user.created_at.isoformat(),
    }


def account_to_dict(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "account_number": account.account_number,
        "account_type": account.account_type.value,
        "balance": account.balance,
        "balance_display": format_minor_units(account.balance),
        "status": account.status.value,
        "created_at": account.created_at.isoformat(),
    }


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "account_id": transaction.account_id,
        "type": transaction.transaction_type.value,
        "amount": transaction.amount,
        "amount_display": format_minor_units(transaction.amount),
        "description": transaction.description,
        "status": transaction.status.value,
        "account_type": transaction.account_type.value if transaction.account_type else None,
        "created_at": transaction.created_at.isoformat(),
        "processed_at": transaction.processed_at.isoformat() if transaction.processed_at else None,
    }
