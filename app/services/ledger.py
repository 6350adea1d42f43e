# app/services/ledger.py
"""
Transaction lifecycle: create / update / delete of ledger entries.

Every operation is one unit of work on the given session:
    - validate first (rejections return {"error": msg} with nothing written)
    - write rows and balance effects
    - commit, or roll back and re-raise if the database fails

An EXPENSE created with apply_digital_tax=True gets a dependent
"IVA Digital" EXPENSE row for 10% of its amount. That row is only ever
created, replaced or removed through its parent.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from models import Account, Category, CategoryType, Transaction, TransactionType
from app.schemas import TransactionInput
from app.services.balance import (
    BalanceEffect,
    apply_to_store,
    effect_of,
    revert_from_store,
)
from app.services.categories import get_or_create_tax_category

logger = logging.getLogger(__name__)

DIGITAL_TAX_RATE = Decimal("0.10")
DIGITAL_TAX_LABEL = "IVA Digital"

TWO_PLACES = Decimal("0.01")

ERR_REQUIRED = "Type, amount, and account are required"
ERR_AMOUNT = "Amount must be positive"
ERR_DESTINATION_REQUIRED = "Destination account is required for transfers"
ERR_SAME_ACCOUNT = "Cannot transfer to the same account"
ERR_ACCOUNT_NOT_FOUND = "Account not found"
ERR_DESTINATION_NOT_FOUND = "Destination account not found"
ERR_CATEGORY_NOT_FOUND = "Category not found"
ERR_CATEGORY_TYPE = "Category type does not match the transaction type"
ERR_NOT_FOUND = "Transaction not found"
ERR_TAX_EDIT = (
    "Digital tax transactions cannot be edited directly. "
    "Edit the original transaction instead."
)
ERR_TAX_DELETE = (
    "Digital tax transactions cannot be deleted directly. "
    "Delete the original transaction instead."
)


# ---- Reads ----

def get_transactions(
    db: Session,
    limit: Optional[int] = None,
    account_id: Optional[int] = None,
) -> List[Transaction]:
    query = db.query(Transaction)
    if account_id is not None:
        query = query.filter(
            (Transaction.account_id == account_id) | (Transaction.to_account_id == account_id)
        )
    query = query.order_by(Transaction.date.desc(), Transaction.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_transaction(db: Session, transaction_id: int) -> Optional[Transaction]:
    return db.get(Transaction, transaction_id)


def find_tax_transaction(db: Session, parent_id: int) -> Optional[Transaction]:
    """The digital tax row generated by `parent_id`, if any."""
    return (
        db.query(Transaction)
        .filter(
            Transaction.parent_transaction_id == parent_id,
            Transaction.is_digital_tax.is_(True),
        )
        .first()
    )


def find_tax_transactions(db: Session, parent_ids: Iterable[int]) -> Dict[int, Transaction]:
    """Tax rows keyed by parent id, for every parent in `parent_ids` that has one."""
    parent_ids = list(parent_ids)
    if not parent_ids:
        return {}

    rows = (
        db.query(Transaction)
        .filter(
            Transaction.parent_transaction_id.in_(parent_ids),
            Transaction.is_digital_tax.is_(True),
        )
        .all()
    )
    return {t.parent_transaction_id: t for t in rows}


# ---- Helpers ----

def round_amount(amount) -> Decimal:
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_digital_tax(amount: Decimal) -> Decimal:
    """10% of `amount`, rounded half-up to two decimals."""
    return (Decimal(amount) * DIGITAL_TAX_RATE).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def validate_input(db: Session, data: TransactionInput) -> Optional[str]:
    """Return the first business-rule violation, or None when `data` is acceptable."""
    if not data.type or not data.amount or not data.account_id:
        return ERR_REQUIRED

    # Checked after rounding: 0.004 would be stored as 0.00
    if round_amount(data.amount) <= 0:
        return ERR_AMOUNT

    if data.type == TransactionType.TRANSFER:
        if not data.to_account_id:
            return ERR_DESTINATION_REQUIRED
        if data.account_id == data.to_account_id:
            return ERR_SAME_ACCOUNT

    if db.get(Account, data.account_id) is None:
        return ERR_ACCOUNT_NOT_FOUND

    if data.type == TransactionType.TRANSFER and db.get(Account, data.to_account_id) is None:
        return ERR_DESTINATION_NOT_FOUND

    # Ignored for transfers, see _assign_fields()
    if data.category_id and data.type != TransactionType.TRANSFER:
        category = db.get(Category, data.category_id)
        if category is None:
            return ERR_CATEGORY_NOT_FOUND
        if CategoryType(category.type).value != TransactionType(data.type).value:
            return ERR_CATEGORY_TYPE

    return None


def _assign_fields(tx: Transaction, data: TransactionInput) -> None:
    is_transfer = data.type == TransactionType.TRANSFER

    tx.type = TransactionType(data.type)
    tx.amount = round_amount(data.amount)
    tx.description = (data.description or "").strip() or None
    tx.date = data.date or datetime.now()
    tx.account_id = data.account_id
    tx.to_account_id = data.to_account_id if is_transfer else None
    tx.category_id = None if is_transfer else (data.category_id or None)


def _wants_digital_tax(data: TransactionInput) -> bool:
    return bool(data.apply_digital_tax) and data.type == TransactionType.EXPENSE


def _create_tax_transaction(db: Session, parent: Transaction) -> Transaction:
    """Insert the digital tax row for `parent` and apply its effect."""
    category = get_or_create_tax_category(db)

    description = f"{parent.description or ''} ({DIGITAL_TAX_LABEL})".strip()

    tax_tx = Transaction(
        type=TransactionType.EXPENSE,
        amount=compute_digital_tax(parent.amount),
        description=description,
        date=parent.date,
        account_id=parent.account_id,
        category_id=category.id,
        is_digital_tax=True,
        parent_transaction_id=parent.id,
    )
    db.add(tax_tx)
    db.flush()

    apply_to_store(db, effect_of(tax_tx))
    return tax_tx


def _remove_tax_transaction(db: Session, parent_id: int) -> bool:
    """Revert and delete the tax row of `parent_id`. Returns True if one existed."""
    tax_tx = find_tax_transaction(db, parent_id)
    if tax_tx is None:
        return False

    revert_from_store(db, effect_of(tax_tx))
    db.delete(tax_tx)
    db.flush()
    return True


# ---- Lifecycle ----

def create_transaction(db: Session, data: TransactionInput) -> dict:
    error = validate_input(db, data)
    if error:
        return {"error": error}

    try:
        tx = Transaction(is_digital_tax=False)
        _assign_fields(tx, data)
        db.add(tx)
        db.flush()

        apply_to_store(db, effect_of(tx))

        tax_tx = None
        if _wants_digital_tax(data):
            tax_tx = _create_tax_transaction(db, tx)

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to create transaction")
        raise

    logger.info(
        "Created %s transaction id=%s amount=%s account=%s%s",
        tx.type.value,
        tx.id,
        tx.amount,
        tx.account_id,
        f" (+ tax id={tax_tx.id} amount={tax_tx.amount})" if tax_tx is not None else "",
    )
    return {"success": True, "id": tx.id}


def update_transaction(db: Session, transaction_id: int, data: TransactionInput) -> dict:
    tx = db.get(Transaction, transaction_id)
    if tx is None:
        return {"error": ERR_NOT_FOUND}

    if tx.is_digital_tax:
        return {"error": ERR_TAX_EDIT}

    error = validate_input(db, data)
    if error:
        return {"error": error}

    try:
        # Old effects out first, flushed before anything new is applied
        revert_from_store(db, effect_of(tx))
        _remove_tax_transaction(db, tx.id)

        _assign_fields(tx, data)
        db.flush()

        apply_to_store(db, effect_of(tx))

        if _wants_digital_tax(data):
            _create_tax_transaction(db, tx)

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to update transaction id=%s", transaction_id)
        raise

    logger.info("Updated transaction id=%s", transaction_id)
    return {"success": True, "id": transaction_id}


def delete_transaction(db: Session, transaction_id: int) -> dict:
    tx = db.get(Transaction, transaction_id)
    if tx is None:
        return {"error": ERR_NOT_FOUND}

    if tx.is_digital_tax:
        return {"error": ERR_TAX_DELETE}

    try:
        revert_from_store(db, effect_of(tx))
        had_tax = _remove_tax_transaction(db, tx.id)

        db.delete(tx)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to delete transaction id=%s", transaction_id)
        raise

    logger.info("Deleted transaction id=%s%s", transaction_id, " with its tax row" if had_tax else "")
    return {"success": True}
