"""
Account management endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_identity
from .schemas import CreateAccountRequest, FundAccountRequest, account_to_dict, transaction_to_dict
from ..accounts import AccountType
from ..errors import ValidationFailed
from ..funding import validate_funding_amount, validate_funding_source
from ..money import format_minor_units, to_minor_units
from ..sessions import SessionIdentity


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    identity: SessionIdentity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a checking or savings account"""
    try:
        account_type = AccountType(request.account_type)
    except ValueError:
        raise ValidationFailed("Account type must be one of: checking, savings")

    account = system.ledger.create_account(identity.user_id, account_type)
    return account_to_dict(account)


@router.get("")
def get_accounts(
    identity: SessionIdentity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """List the caller's accounts"""
    accounts = system.ledger.get_accounts(identity.user_id)
    return {"accounts": [account_to_dict(account) for account in accounts]}


@router.post("/{account_id}/fund")
def fund_account(
    account_id: int,
    request: FundAccountRequest,
    identity: SessionIdentity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Deposit money from a card or bank account"""
    amount = to_minor_units(request.amount)
    validate_funding_amount(amount, system.max_funding_amount)
    funding_source = request.funding_source.to_funding_source()
    validate_funding_source(funding_source)

    result = system.ledger.fund_account(account_id, identity.user_id, amount, funding_source)
    return {
        "transaction": transaction_to_dict(result.transaction),
        "new_balance": result.new_balance,
        "new_balance_display": format_minor_units(result.new_balance),
    }


@router.get("/{account_id}/transactions")
def get_account_transactions(
    account_id: int,
    identity: SessionIdentity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Transaction history, newest first"""
    transactions = system.ledger.get_transactions(account_id, identity.user_id)
    return {"transactions": [transaction_to_dict(txn) for txn in transactions]}
