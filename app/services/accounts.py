# app/services/accounts.py
#
# Bank account CRUD.
# The balance given at creation is the opening balance; afterwards it only
# moves through the balance effects of transactions (app/services/balance.py).

import logging
import os
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models import Account, Transaction
from app.services.balance import effect_of, balance_deltas

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = os.getenv("FINANCE_DEFAULT_CURRENCY", "PYG")


def get_accounts(db: Session) -> List[Account]:
    return db.query(Account).order_by(Account.created_at.desc(), Account.id.desc()).all()


def get_account(db: Session, account_id: int) -> Optional[Account]:
    return db.get(Account, account_id)


def create_account(
    db: Session,
    name: str,
    balance: Decimal = Decimal("0"),
    currency: Optional[str] = None,
) -> dict:
    name = (name or "").strip()
    if not name:
        return {"error": "Account name is required"}

    account = Account(
        name=name,
        balance=Decimal(balance or 0),
        currency=(currency or DEFAULT_CURRENCY).strip().upper(),
    )
    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info("Created account %r id=%s (%s %s)", account.name, account.id, account.balance, account.currency)
    return {"success": True, "id": account.id}


def update_account(db: Session, account_id: int, name: str, currency: Optional[str] = None) -> dict:
    """Rename an account or change its currency. The balance is not editable here."""
    name = (name or "").strip()
    if not name:
        return {"error": "Account name is required"}

    account = db.get(Account, account_id)
    if account is None:
        return {"error": "Account not found"}

    account.name = name
    if currency:
        account.currency = currency.strip().upper()
    db.commit()
    return {"success": True}


def delete_account(db: Session, account_id: int) -> dict:
    """
    Delete an account together with every transaction that references it.

    Transfers between this account and another one are reverted on the other
    account first, so the surviving balances still match their transactions.
    """
    account = db.get(Account, account_id)
    if account is None:
        return {"error": "Account not found"}

    try:
        linked = (
            db.query(Transaction)
            .filter(
                or_(
                    Transaction.account_id == account_id,
                    Transaction.to_account_id == account_id,
                )
            )
            .all()
        )

        for tx in linked:
            for other_id, delta in balance_deltas(effect_of(tx)).items():
                if other_id == account_id:
                    continue
                other = db.get(Account, other_id)
                if other is not None:
                    other.balance = Decimal(other.balance) - delta

        linked_ids = [tx.id for tx in linked]
        if linked_ids:
            # Tax rows first: they reference their parent
            db.query(Transaction).filter(
                Transaction.parent_transaction_id.in_(linked_ids)
            ).delete(synchronize_session=False)
            db.query(Transaction).filter(Transaction.id.in_(linked_ids)).delete(
                synchronize_session=False
            )

        db.delete(account)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Deleted account id=%s with %d transactions", account_id, len(linked))
    return {"success": True}
