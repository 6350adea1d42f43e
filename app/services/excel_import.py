# app/services/excel_import.py
"""
Import parsed workbook rows into the ledger.

Three ordered phases run inside one database transaction:

1. Accounts      reconciled by lower-cased name
2. Categories    reconciled by (lower-cased name, type)
3. Transactions  account/category names resolved against the maps built
                 above, duplicates detected, balance effects applied

Per-row problems (unknown names, duplicates under the "error" strategy)
are recorded in the result and the row is skipped; the batch continues.
A database failure rolls back every phase.

Note: the "update" strategy for accounts overwrites the balance with the
sheet value. This is a reset and does not go through balance effects.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple, TypeVar

from sqlalchemy.orm import Session

from models import Account, Category, CategoryType, Transaction, TransactionType
from app.schemas import (
    AccountRow,
    CategoryRow,
    ImportOptions,
    ImportResult,
    ImportRowError,
    ImportStats,
    ImportStrategy,
    ParsedImportData,
    TransactionRow,
)
from app.services.balance import apply_to_store, effect_of
from app.services.excel_layout import (
    ACCOUNTS_SHEET,
    CATEGORIES_SHEET,
    HEADER_ROW_OFFSET,
    TRANSACTIONS_SHEET,
)

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")
EntityT = TypeVar("EntityT")


# -------------------------------------------------------------------
# Generic keyed reconciliation
# -------------------------------------------------------------------

@dataclass(frozen=True)
class Reconciler:
    """How to match, create and update one entity kind."""

    sheet: str
    entity_key: Callable[[object], Hashable]
    row_key: Callable[[object], Hashable]
    create: Callable[[Session, object], object]
    update: Callable[[Session, object, object], None]
    duplicate_message: Callable[[object], str]


def reconcile_keyed(
    db: Session,
    existing: Iterable[EntityT],
    rows: Iterable[RowT],
    strategy: ImportStrategy,
    reconciler: Reconciler,
    stats: ImportStats,
) -> Tuple[Dict[Hashable, int], ImportStats]:
    """
    Match `rows` against `existing` entities by natural key.

    Returns the key -> id map (existing plus created) and the updated stats.
    Existing matches are skipped, updated or reported depending on `strategy`.
    """
    entities: Dict[Hashable, EntityT] = {reconciler.entity_key(e): e for e in existing}

    for row in rows:
        key = reconciler.row_key(row)
        match = entities.get(key)

        if match is None:
            entities[key] = reconciler.create(db, row)
            stats = stats.record_created()
        elif strategy == "skip":
            stats = stats.record_skipped()
        elif strategy == "update":
            reconciler.update(db, match, row)
            stats = stats.record_updated()
        else:
            stats = stats.record_error(
                ImportRowError(
                    sheet=reconciler.sheet,
                    row=-1,
                    message=reconciler.duplicate_message(row),
                )
            )

    db.flush()
    return {key: entity.id for key, entity in entities.items()}, stats


# ---- Accounts ----

def _create_account(db: Session, row: AccountRow) -> Account:
    account = Account(name=row.name, balance=row.balance, currency=row.currency)
    db.add(account)
    db.flush()
    return account


def _update_account(db: Session, account: Account, row: AccountRow) -> None:
    account.balance = row.balance
    account.currency = row.currency


ACCOUNT_RECONCILER = Reconciler(
    sheet=ACCOUNTS_SHEET,
    entity_key=lambda account: account.name.lower(),
    row_key=lambda row: row.name.lower(),
    create=_create_account,
    update=_update_account,
    duplicate_message=lambda row: f'Account "{row.name}" already exists',
)


# ---- Categories ----

def _create_category(db: Session, row: CategoryRow) -> Category:
    category = Category(
        name=row.name,
        type=CategoryType(row.type),
        color=row.color,
        icon=row.icon,
    )
    db.add(category)
    db.flush()
    return category


def _update_category(db: Session, category: Category, row: CategoryRow) -> None:
    category.color = row.color
    category.icon = row.icon


CATEGORY_RECONCILER = Reconciler(
    sheet=CATEGORIES_SHEET,
    entity_key=lambda category: (category.name.lower(), CategoryType(category.type)),
    row_key=lambda row: (row.name.lower(), CategoryType(row.type)),
    create=_create_category,
    update=_update_category,
    duplicate_message=lambda row: f'Category "{row.name}" ({CategoryType(row.type).value}) already exists',
)


def import_accounts(
    db: Session, rows: List[AccountRow], strategy: ImportStrategy, stats: ImportStats
) -> Tuple[Dict[Hashable, int], ImportStats]:
    return reconcile_keyed(db, db.query(Account).all(), rows, strategy, ACCOUNT_RECONCILER, stats)


def import_categories(
    db: Session, rows: List[CategoryRow], strategy: ImportStrategy, stats: ImportStats
) -> Tuple[Dict[Hashable, int], ImportStats]:
    return reconcile_keyed(db, db.query(Category).all(), rows, strategy, CATEGORY_RECONCILER, stats)


# -------------------------------------------------------------------
# Transactions
# -------------------------------------------------------------------

def _row_error(row_number: int, message: str) -> ImportRowError:
    return ImportRowError(sheet=TRANSACTIONS_SHEET, row=row_number, message=message)


def resolve_transaction_row(
    row: TransactionRow,
    account_map: Dict[Hashable, int],
    category_map: Dict[Hashable, int],
) -> Tuple[Optional[dict], Optional[str]]:
    """
    Turn names into ids. Returns (resolved_fields, None) or (None, error_message).
    """
    tx_type = TransactionType(row.type)

    account_id = account_map.get(row.account_name.lower())
    if account_id is None:
        return None, f'Account "{row.account_name}" not found'

    to_account_id = None
    if tx_type == TransactionType.TRANSFER:
        if not row.to_account_name:
            return None, "Transfer requires a destination account"
        to_account_id = account_map.get(row.to_account_name.lower())
        if to_account_id is None:
            return None, f'Destination account "{row.to_account_name}" not found'
        if to_account_id == account_id:
            return None, "Cannot transfer to the same account"

    category_id = None
    if row.category_name and tx_type != TransactionType.TRANSFER:
        category_type = CategoryType.INCOME if tx_type == TransactionType.INCOME else CategoryType.EXPENSE
        category_id = category_map.get((row.category_name.lower(), category_type))
        if category_id is None:
            return None, f'Category "{row.category_name}" ({category_type.value}) not found'

    return {
        "type": tx_type,
        "amount": row.amount,
        "description": row.description,
        "date": row.date,
        "account_id": account_id,
        "to_account_id": to_account_id,
        "category_id": category_id,
    }, None


def find_duplicate(db: Session, fields: dict) -> Optional[Transaction]:
    """Existing transaction with the same date, amount, account, description and type."""
    return (
        db.query(Transaction)
        .filter(
            Transaction.date == fields["date"],
            Transaction.amount == fields["amount"],
            Transaction.account_id == fields["account_id"],
            Transaction.description == fields["description"],
            Transaction.type == fields["type"],
        )
        .first()
    )


def import_transactions(
    db: Session,
    rows: List[TransactionRow],
    strategy: ImportStrategy,
    stats: ImportStats,
    account_map: Dict[Hashable, int],
    category_map: Dict[Hashable, int],
) -> ImportStats:
    for i, row in enumerate(rows):
        row_number = i + HEADER_ROW_OFFSET

        fields, error = resolve_transaction_row(row, account_map, category_map)
        if error:
            logger.warning("[import] Transactions row %d: %s", row_number, error)
            stats = stats.record_error(_row_error(row_number, error))
            continue

        if find_duplicate(db, fields) is not None:
            if strategy == "error":
                stats = stats.record_error(
                    _row_error(
                        row_number,
                        f"Duplicate transaction found ({fields['type'].value} of "
                        f"{row.amount} on {row.date.date().isoformat()})",
                    )
                )
            else:
                # "update" has no sensible merge for money rows: same as skip
                stats = stats.record_skipped()
            continue

        tx = Transaction(is_digital_tax=False, **fields)
        db.add(tx)
        db.flush()

        apply_to_store(db, effect_of(tx))
        stats = stats.record_created()

    return stats


# -------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------

def import_data(db: Session, data: ParsedImportData, options: Optional[ImportOptions] = None) -> ImportResult:
    """Run all three phases as one unit. Never raises for database errors; see result.success."""
    options = options or ImportOptions()
    result = ImportResult()

    try:
        account_map, accounts_stats = import_accounts(
            db, data.accounts, options.accounts, ImportStats()
        )
        category_map, categories_stats = import_categories(
            db, data.categories, options.categories, ImportStats()
        )
        transactions_stats = import_transactions(
            db,
            data.transactions,
            options.transactions,
            ImportStats(),
            account_map,
            category_map,
        )
        db.commit()

        result = ImportResult(
            accounts=accounts_stats,
            categories=categories_stats,
            transactions=transactions_stats,
        )
    except Exception as e:
        db.rollback()
        logger.exception("[import] Import failed, rolled back")
        result.accounts = result.accounts.record_error(
            ImportRowError(sheet=ACCOUNTS_SHEET, row=-1, message=f"Import failed: {e}")
        )

    result.success = not (
        result.accounts.errors or result.categories.errors or result.transactions.errors
    )

    logger.info(
        "[import] accounts +%d/~%d/=%d, categories +%d/~%d/=%d, transactions +%d/=%d, success=%s",
        result.accounts.created,
        result.accounts.updated,
        result.accounts.skipped,
        result.categories.created,
        result.categories.updated,
        result.categories.skipped,
        result.transactions.created,
        result.transactions.skipped,
        result.success,
    )
    return result
