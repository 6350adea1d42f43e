# routes_transactions.py
"""
Routes for the transaction list and the create / edit / delete flow.

All balance bookkeeping happens in app/services/ledger.py; these handlers
only translate results into HTTP responses.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from models import Transaction
from app.deps import get_db, result_response, failure_response
from app.schemas import TransactionInput
from app.services import ledger

logger = logging.getLogger(__name__)

router = APIRouter()


def transaction_to_dict(t: Transaction, tax: Optional[Transaction] = None) -> dict:
    return {
        "id": t.id,
        "type": t.type.value,
        "amount": float(t.amount),
        "description": t.description,
        "date": t.date.isoformat(),
        "account_id": t.account_id,
        "to_account_id": t.to_account_id,
        "category_id": t.category_id,
        "is_digital_tax": t.is_digital_tax,
        "parent_transaction_id": t.parent_transaction_id,
        "tax_transaction": (
            {"id": tax.id, "amount": float(tax.amount)} if tax is not None else None
        ),
    }


@router.get("/transactions")
def list_transactions(
    limit: Optional[int] = Query(None, ge=1),
    account_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    transactions = ledger.get_transactions(db, limit=limit, account_id=account_id)

    # Looked up for the whole page, whether or not the tax rows made the cut
    taxes = ledger.find_tax_transactions(
        db, [t.id for t in transactions if not t.is_digital_tax]
    )

    return [transaction_to_dict(t, taxes.get(t.id)) for t in transactions]


@router.get("/transactions/{transaction_id}")
def transaction_detail(transaction_id: int, db: Session = Depends(get_db)):
    tx = ledger.get_transaction(db, transaction_id)
    if tx is None:
        return result_response({"error": ledger.ERR_NOT_FOUND})
    return transaction_to_dict(tx, ledger.find_tax_transaction(db, tx.id))


@router.post("/transactions")
def create_transaction(payload: TransactionInput, db: Session = Depends(get_db)):
    try:
        result = ledger.create_transaction(db, payload)
    except Exception as e:
        logger.error("[transactions] ERROR creating transaction: %r", e)
        return failure_response("Failed to create transaction")
    return result_response(result, success_status=201)


@router.put("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionInput,
    db: Session = Depends(get_db),
):
    try:
        result = ledger.update_transaction(db, transaction_id, payload)
    except Exception as e:
        logger.error("[transactions] ERROR updating transaction %s: %r", transaction_id, e)
        return failure_response("Failed to update transaction")
    return result_response(result)


@router.delete("/transactions/{transaction_id}")
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        result = ledger.delete_transaction(db, transaction_id)
    except Exception as e:
        logger.error("[transactions] ERROR deleting transaction %s: %r", transaction_id, e)
        return failure_response("Failed to delete transaction")
    return result_response(result)
