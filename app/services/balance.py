# app/services/balance.py
#
# Balance effects of ledger transactions.
# Pure functions compute the signed deltas a transaction applies to one or
# two accounts; the *_store helpers write those deltas to account rows in the
# caller's session. Nothing here validates input or commits.

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional

from sqlalchemy.orm import Session

from models import Account, Transaction, TransactionType


@dataclass(frozen=True)
class BalanceEffect:
    type: TransactionType
    amount: Decimal
    account_id: int
    to_account_id: Optional[int] = None


def effect_of(tx: Transaction) -> BalanceEffect:
    """Build the effect of a stored transaction row."""
    return BalanceEffect(
        type=TransactionType(tx.type),
        amount=Decimal(tx.amount),
        account_id=tx.account_id,
        to_account_id=tx.to_account_id,
    )


def balance_deltas(effect: BalanceEffect) -> Dict[int, Decimal]:
    """
    Signed delta per account:

        INCOME    source +amount
        EXPENSE   source -amount
        TRANSFER  source -amount, destination +amount
    """
    amount = Decimal(effect.amount)

    if effect.type == TransactionType.INCOME:
        return {effect.account_id: amount}
    if effect.type == TransactionType.EXPENSE:
        return {effect.account_id: -amount}

    deltas = {effect.account_id: -amount}
    if effect.to_account_id is not None:
        deltas[effect.to_account_id] = deltas.get(effect.to_account_id, Decimal("0")) + amount
    return deltas


def _shift(balances: Mapping[int, Decimal], deltas: Mapping[int, Decimal], sign: int) -> Dict[int, Decimal]:
    result = dict(balances)
    for account_id, delta in deltas.items():
        result[account_id] = result.get(account_id, Decimal("0")) + sign * delta
    return result


def apply_effect(balances: Mapping[int, Decimal], effect: BalanceEffect) -> Dict[int, Decimal]:
    """Return a new account_id -> balance mapping with `effect` applied."""
    return _shift(balances, balance_deltas(effect), 1)


def revert_effect(balances: Mapping[int, Decimal], effect: BalanceEffect) -> Dict[int, Decimal]:
    """Exact inverse of apply_effect()."""
    return _shift(balances, balance_deltas(effect), -1)


# ---- Persistence ----

def _write_deltas(db: Session, effect: BalanceEffect, sign: int) -> None:
    for account_id, delta in balance_deltas(effect).items():
        (
            db.query(Account)
            .filter(Account.id == account_id)
            .update(
                {Account.balance: Account.balance + sign * delta},
                synchronize_session="evaluate",
            )
        )


def apply_to_store(db: Session, effect: BalanceEffect) -> None:
    """Increment/decrement the affected account balances inside the current unit."""
    _write_deltas(db, effect, 1)


def revert_from_store(db: Session, effect: BalanceEffect) -> None:
    _write_deltas(db, effect, -1)
