# app/services/excel_parser.py
"""
Read an uploaded workbook into validated import rows.

Each sheet is read by column position (see excel_layout.py). Cell values are
normalized the same way for every sheet: NaN -> None, strings stripped,
type columns upper-cased. Rows that fail validation are reported with their
Excel row number and raw data instead of being imported.
"""

import io
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError

from models import TransactionType
from app.schemas import (
    AccountRow,
    CategoryRow,
    ImportRowError,
    ParsedImportData,
    TransactionRow,
)
from app.services.accounts import DEFAULT_CURRENCY
from app.services.categories import DEFAULT_COLOR
from app.services.excel_layout import (
    ACCOUNT_COLUMNS,
    ACCOUNTS_SHEET,
    CATEGORIES_SHEET,
    CATEGORY_COLUMNS,
    TRANSACTION_COLUMNS,
    TRANSACTIONS_SHEET,
)

logger = logging.getLogger(__name__)

# Excel stores dates as days since 1899-12-30
EXCEL_EPOCH = "1899-12-30"

# Messages per (sheet, field) shown instead of the raw pydantic text
FIELD_MESSAGES = {
    (ACCOUNTS_SHEET, "name"): "Account name is required",
    (ACCOUNTS_SHEET, "balance"): "Balance must be a number",
    (CATEGORIES_SHEET, "name"): "Category name is required",
    (CATEGORIES_SHEET, "type"): "Type must be INCOME or EXPENSE",
    (CATEGORIES_SHEET, "color"): "Color must be a valid hex color",
    (TRANSACTIONS_SHEET, "type"): "Type must be INCOME, EXPENSE, or TRANSFER",
    (TRANSACTIONS_SHEET, "amount"): "Amount must be positive",
    (TRANSACTIONS_SHEET, "date"): "Invalid date format",
    (TRANSACTIONS_SHEET, "account_name"): "Account name is required",
}


# ---- Cell helpers ----

def _cell(value: Any) -> Any:
    """Normalize one cell: NaN/blank -> None, strings stripped, Timestamps -> datetime."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, str):
        s = value.strip()
        return s or None
    return value


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    s = str(value).strip()
    return s or None


def _number(value: Any, default: Any = None) -> Any:
    """Numbers pass through as Decimal; text is parsed; garbage is returned as-is for validation to reject."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    try:
        return Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return value


def _date(value: Any) -> Optional[datetime]:
    if value is None:
        return datetime.now()
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return pd.to_datetime(value, unit="D", origin=EXCEL_EPOCH).to_pydatetime()
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _body_rows(df: Optional[pd.DataFrame], width: int) -> List[Tuple[int, List[Any]]]:
    """
    (excel_row_number, cells) for every body row of a header=None frame.
    Missing trailing columns are padded with None.
    """
    if df is None or df.empty:
        return []

    rows = []
    for idx, raw in df.iloc[1:].iterrows():
        cells = [_cell(v) for v in list(raw.values)[:width]]
        cells += [None] * (width - len(cells))
        rows.append((int(idx) + 1, cells))
    return rows


def _first_message(exc: ValidationError, sheet: str) -> Tuple[Optional[str], str]:
    err = exc.errors()[0]
    field = str(err["loc"][0]) if err.get("loc") else None
    return field, FIELD_MESSAGES.get((sheet, field), err["msg"])


def _validate(model, sheet: str, row_number: int, data: Dict[str, Any], errors: List[ImportRowError]):
    try:
        return model(**data)
    except ValidationError as exc:
        field, message = _first_message(exc, sheet)
        errors.append(
            ImportRowError(sheet=sheet, row=row_number, field=field, message=message, data=data)
        )
        return None


# ---- Sheets ----

def parse_accounts_sheet(df: Optional[pd.DataFrame], errors: List[ImportRowError]) -> List[AccountRow]:
    accounts: List[AccountRow] = []

    for row_number, (name, balance, currency) in _body_rows(df, len(ACCOUNT_COLUMNS)):
        # Skip completely empty rows
        if name is None and balance is None and currency is None:
            continue

        data = {
            "name": _text(name) or "",
            "balance": _number(balance, Decimal("0")),
            "currency": (_text(currency) or DEFAULT_CURRENCY).upper(),
        }
        row = _validate(AccountRow, ACCOUNTS_SHEET, row_number, data, errors)
        if row is not None:
            accounts.append(row)

    return accounts


def parse_categories_sheet(df: Optional[pd.DataFrame], errors: List[ImportRowError]) -> List[CategoryRow]:
    categories: List[CategoryRow] = []

    for row_number, (name, cat_type, color, icon) in _body_rows(df, len(CATEGORY_COLUMNS)):
        if name is None and cat_type is None:
            continue

        data = {
            "name": _text(name) or "",
            "type": (_text(cat_type) or "").upper(),
            "color": _text(color) or DEFAULT_COLOR,
            "icon": _text(icon),
        }
        row = _validate(CategoryRow, CATEGORIES_SHEET, row_number, data, errors)
        if row is not None:
            categories.append(row)

    return categories


def parse_transactions_sheet(df: Optional[pd.DataFrame], errors: List[ImportRowError]) -> List[TransactionRow]:
    transactions: List[TransactionRow] = []

    for row_number, cells in _body_rows(df, len(TRANSACTION_COLUMNS)):
        tx_type, amount, description, date_value, account_name, category_name, to_account_name = cells

        if tx_type is None and amount is None and account_name is None:
            continue

        data = {
            "type": (_text(tx_type) or "").upper(),
            "amount": _number(amount, Decimal("0")),
            "description": _text(description),
            "date": _date(date_value),
            "account_name": _text(account_name) or "",
            "category_name": _text(category_name),
            "to_account_name": _text(to_account_name),
        }
        row = _validate(TransactionRow, TRANSACTIONS_SHEET, row_number, data, errors)
        if row is None:
            continue

        if row.type == TransactionType.TRANSFER and not row.to_account_name:
            errors.append(
                ImportRowError(
                    sheet=TRANSACTIONS_SHEET,
                    row=row_number,
                    field="to_account_name",
                    message="Transfer requires a destination account (To Account)",
                    data=data,
                )
            )
            continue

        transactions.append(row)

    return transactions


def parse_excel_file(content: bytes) -> ParsedImportData:
    """
    Parse workbook bytes (.xlsx via openpyxl, .xls via xlrd).
    Missing sheets simply contribute no rows.
    """
    sheets: Dict[str, pd.DataFrame] = pd.read_excel(
        io.BytesIO(content),
        sheet_name=None,
        header=None,
        dtype=object,
    )

    errors: List[ImportRowError] = []

    accounts = parse_accounts_sheet(sheets.get(ACCOUNTS_SHEET), errors)
    categories = parse_categories_sheet(sheets.get(CATEGORIES_SHEET), errors)
    transactions = parse_transactions_sheet(sheets.get(TRANSACTIONS_SHEET), errors)

    logger.info(
        "Parsed workbook: %d accounts, %d categories, %d transactions, %d errors",
        len(accounts),
        len(categories),
        len(transactions),
        len(errors),
    )
    return ParsedImportData(
        accounts=accounts,
        categories=categories,
        transactions=transactions,
        errors=errors,
    )
