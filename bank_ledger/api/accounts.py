"""
Account and transaction endpoints
"""

from fastapi import APIRouter, Depends, Response, status

from .dependencies import get_ledger
from .schemas import CreateAccountRequest, CreateTransactionRequest
from ..accounts import AccountLedger


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def create_account(
    request: CreateAccountRequest,
    ledger: AccountLedger = Depends(get_ledger)
):
    """Create an account"""
    account = ledger.create_account(
        user=request.user,
        currency=request.currency,
        description=request.description,
        balance=request.balance
    )
    return account.to_dict()


@router.get("/{user}")
async def get_account(
    user: str,
    ledger: AccountLedger = Depends(get_ledger)
):
    """Get all data for the specified account"""
    return ledger.get_account(user).to_dict()


@router.delete("/{user}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    user: str,
    ledger: AccountLedger = Depends(get_ledger)
):
    """Remove the specified account"""
    ledger.delete_account(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user}/transactions", status_code=status.HTTP_201_CREATED)
async def add_transaction(
    user: str,
    request: CreateTransactionRequest,
    ledger: AccountLedger = Depends(get_ledger)
):
    """Add a transaction to the specified account"""
    transaction = ledger.add_transaction(
        user,
        date=request.date,
        obj=request.object,
        amount=request.amount
    )
    return transaction.to_dict()


@router.delete("/{user}/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_transaction(
    user: str,
    transaction_id: str,
    ledger: AccountLedger = Depends(get_ledger)
):
    """Remove the specified transaction from the account"""
    ledger.remove_transaction(user, transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
