# models.py
# Role: SQLAlchemy ORM models for the finance tracker domain.
#       Defines bank accounts, income/expense categories and the
#       transaction log whose signed effects make up account balances.

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from db import Base


class TransactionType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class CategoryType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Account(Base):
    """
    ORM model representing a bank account.

    `balance` is a cache of the signed effects of every transaction that
    references the account (plus the opening balance). It is only changed
    through app/services/balance.py, except for the Excel import "update"
    strategy which resets it to an absolute value.
    """

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)

    # Display name, matched case-insensitively during import
    name = Column(String, nullable=False)

    # Currency code, e.g. "PYG", "USD", "EUR"
    currency = Column(String(3), nullable=False, default="PYG")

    # Signed, may go negative
    balance = Column(Numeric(14, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Category(Base):
    """
    ORM model representing an income or expense category.

    (name, type) is unique in practice; this is checked at lookup time,
    not by a schema constraint.
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(Enum(CategoryType), nullable=False)

    # Hex color used by charts, e.g. "#6366f1"
    color = Column(String(7), nullable=False, default="#6366f1")

    icon = Column(String, nullable=True)


class Transaction(Base):
    """
    ORM model representing a single ledger entry.

    Amounts are always positive; the sign of the effect on balances
    comes from `type` (see app/services/balance.py).

    Digital tax rows (is_digital_tax=True) point at the transaction that
    generated them through parent_transaction_id. The parent holds no
    reference back; use ledger.find_tax_transaction() to look it up.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)

    type = Column(Enum(TransactionType), nullable=False)

    amount = Column(Numeric(14, 2), nullable=False)

    description = Column(Text, nullable=True)

    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Source account (the only account for INCOME / EXPENSE)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Destination account, set only for TRANSFER
    to_account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=True, index=True
    )

    # Never set for TRANSFER
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    is_digital_tax = Column(Boolean, nullable=False, default=False)

    parent_transaction_id = Column(
        Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True, index=True
    )

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    account = relationship("Account", foreign_keys=[account_id])
    to_account = relationship("Account", foreign_keys=[to_account_id])
    category = relationship("Category")
