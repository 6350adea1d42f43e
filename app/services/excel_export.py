# app/services/excel_export.py
#
# Excel Export
# Serializes the current accounts, categories and transactions into the same
# three-sheet layout the importer reads, so an export can be re-imported.

import io
from datetime import date
from typing import List

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side
from sqlalchemy.orm import Session, joinedload

from models import Account, Category, Transaction
from app.services.excel_layout import (
    ACCOUNT_COLUMNS,
    ACCOUNTS_SHEET,
    CATEGORIES_SHEET,
    CATEGORY_COLUMNS,
    TRANSACTION_COLUMNS,
    TRANSACTIONS_SHEET,
)

HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE5E7EB")
HEADER_BORDER = Border(bottom=Side(style="thin", color="FFD1D5DB"))


def export_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"finance-tracker-{today.isoformat()}.xlsx"


def _frame(records: List[dict], columns) -> pd.DataFrame:
    keys = [key for _, key, _ in columns]
    headers = [header for header, _, _ in columns]
    df = pd.DataFrame.from_records(records, columns=keys)
    df.columns = headers
    return df


def _style_sheet(sheet, columns) -> None:
    for idx, (_, _, width) in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=idx)
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER
        sheet.column_dimensions[cell.column_letter].width = width


def build_export_frames(db: Session) -> dict:
    """One DataFrame per sheet, in export order."""
    accounts = db.query(Account).order_by(Account.name.asc()).all()
    categories = db.query(Category).order_by(Category.name.asc()).all()
    transactions = (
        db.query(Transaction)
        .options(
            joinedload(Transaction.account),
            joinedload(Transaction.to_account),
            joinedload(Transaction.category),
        )
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )

    account_records = [
        {"name": a.name, "balance": float(a.balance), "currency": a.currency}
        for a in accounts
    ]
    category_records = [
        {"name": c.name, "type": c.type.value, "color": c.color, "icon": c.icon or ""}
        for c in categories
    ]
    transaction_records = [
        {
            "type": t.type.value,
            "amount": float(t.amount),
            "description": t.description or "",
            "date": t.date,
            "account_name": t.account.name,
            "category_name": t.category.name if t.category else "",
            "to_account_name": t.to_account.name if t.to_account else "",
        }
        for t in transactions
    ]

    return {
        ACCOUNTS_SHEET: _frame(account_records, ACCOUNT_COLUMNS),
        CATEGORIES_SHEET: _frame(category_records, CATEGORY_COLUMNS),
        TRANSACTIONS_SHEET: _frame(transaction_records, TRANSACTION_COLUMNS),
    }


def export_to_excel(db: Session) -> bytes:
    """Return the workbook as .xlsx bytes."""
    frames = build_export_frames(db)
    layouts = {
        ACCOUNTS_SHEET: ACCOUNT_COLUMNS,
        CATEGORIES_SHEET: CATEGORY_COLUMNS,
        TRANSACTIONS_SHEET: TRANSACTION_COLUMNS,
    }

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl", datetime_format="yyyy-mm-dd") as writer:
        for sheet_name, df in frames.items():
            df.to_excel(writer, sheet_name=sheet_name, index=False)
            _style_sheet(writer.sheets[sheet_name], layouts[sheet_name])

    return buffer.getvalue()
