# routes_accounts.py
"""
Routes for bank accounts (list, create, rename, delete).
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from models import Account
from app.deps import get_db, result_response, failure_response
from app.schemas import AccountInput
from app.services import accounts as account_service
from app.services.ledger import get_transactions

logger = logging.getLogger(__name__)

router = APIRouter()


def account_to_dict(account: Account) -> dict:
    return {
        "id": account.id,
        "name": account.name,
        "currency": account.currency,
        "balance": float(account.balance),
        "created_at": account.created_at.isoformat() if account.created_at else None,
    }


@router.get("/accounts")
def list_accounts(db: Session = Depends(get_db)):
    return [account_to_dict(a) for a in account_service.get_accounts(db)]


@router.get("/accounts/{account_id}")
def account_detail(account_id: int, db: Session = Depends(get_db)):
    """
    One account plus its transactions (as source or destination).
    """
    account = account_service.get_account(db, account_id)
    if account is None:
        return result_response({"error": "Account not found"})

    data = account_to_dict(account)
    data["transactions"] = [
        {
            "id": t.id,
            "type": t.type.value,
            "amount": float(t.amount),
            "description": t.description,
            "date": t.date.isoformat(),
            "incoming": t.to_account_id == account_id,
            "is_digital_tax": t.is_digital_tax,
        }
        for t in get_transactions(db, account_id=account_id)
    ]
    return data


@router.post("/accounts")
def create_account(payload: AccountInput, db: Session = Depends(get_db)):
    result = account_service.create_account(
        db, payload.name, payload.balance, payload.currency
    )
    return result_response(result, success_status=201)


@router.put("/accounts/{account_id}")
def update_account(account_id: int, payload: AccountInput, db: Session = Depends(get_db)):
    result = account_service.update_account(db, account_id, payload.name, payload.currency)
    return result_response(result)


@router.delete("/accounts/{account_id}")
def delete_account(account_id: int, db: Session = Depends(get_db)):
    try:
        result = account_service.delete_account(db, account_id)
    except Exception as e:
        logger.error("[accounts] ERROR deleting account %s: %r", account_id, e)
        return failure_response("Failed to delete account")
    return result_response(result)
