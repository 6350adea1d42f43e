# app/services/analytics.py
"""
Aggregate views over the ledger: totals by category, a monthly
income/expense series and the dashboard summary.

TRANSFER rows move money between accounts and are excluded from every
income/expense figure here.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Account, Category, CategoryType, Transaction, TransactionType
from app.services.periods import get_month_range, get_period_range, shift_month

FALLBACK_COLORS = {
    CategoryType.EXPENSE: "#ef4444",
    CategoryType.INCOME: "#22c55e",
}


def _in_range(query, start, end):
    if start is not None:
        query = query.filter(Transaction.date >= start, Transaction.date <= end)
    return query


def category_totals(
    db: Session,
    type: CategoryType,
    period: str = "all",
    now: datetime | None = None,
) -> List[Dict[str, Any]]:
    """
    Sum of amounts per category for INCOME or EXPENSE, largest first.
    Uncategorized rows are left out.
    """
    type = CategoryType(type)
    start, end = get_period_range(period, now)

    query = (
        db.query(
            Category.name.label("name"),
            Category.color.label("color"),
            func.coalesce(func.sum(Transaction.amount), 0).label("total"),
        )
        .select_from(Transaction)
        .join(Category, Transaction.category_id == Category.id)
        .filter(Transaction.type == TransactionType(type.value))
    )
    query = _in_range(query, start, end)

    rows = query.group_by(Category.id, Category.name, Category.color).all()

    data = [
        {
            "name": r.name or "Unknown",
            "value": float(r.total or 0),
            "color": r.color or FALLBACK_COLORS[type],
        }
        for r in rows
    ]
    data.sort(key=lambda item: item["value"], reverse=True)
    return data


def monthly_series(
    db: Session,
    period: str = "all",
    now: datetime | None = None,
) -> List[Dict[str, Any]]:
    """
    One entry per calendar month ("Jan 25"), from the start of the period (or
    the first transaction) to the end of the period, with income and expense.
    """
    start, end = get_period_range(period, now)

    query = db.query(Transaction.type, Transaction.amount, Transaction.date).filter(
        Transaction.type.in_([TransactionType.INCOME, TransactionType.EXPENSE])
    )
    transactions = _in_range(query, start, end).order_by(Transaction.date.asc()).all()

    if not transactions:
        return []

    first = start or transactions[0].date
    last = end if start is not None else transactions[-1].date

    buckets: Dict[tuple, Dict[str, Any]] = {}
    y, m = first.year, first.month
    while (y, m) <= (last.year, last.month):
        buckets[(y, m)] = {
            "name": datetime(y, m, 1).strftime("%b %y"),
            "income": 0.0,
            "expense": 0.0,
        }
        y, m = shift_month(y, m, 1)

    for t in transactions:
        bucket = buckets.get((t.date.year, t.date.month))
        if bucket is None:
            continue
        key = "income" if t.type == TransactionType.INCOME else "expense"
        bucket[key] += float(t.amount)

    return list(buckets.values())


def dashboard_summary(db: Session, today=None) -> Dict[str, Any]:
    """Total balance, current month income/expense/net and the latest transactions."""
    first_day, next_first_day, month = get_month_range(None, today)
    month_start = datetime.combine(first_day, datetime.min.time())
    next_month_start = datetime.combine(next_first_day, datetime.min.time())

    total_balance = db.query(func.coalesce(func.sum(Account.balance), 0)).scalar() or 0

    def month_total(tx_type: TransactionType) -> Decimal:
        value = (
            db.query(func.coalesce(func.sum(Transaction.amount), 0))
            .filter(
                Transaction.type == tx_type,
                Transaction.date >= month_start,
                Transaction.date < next_month_start,
            )
            .scalar()
        )
        return Decimal(str(value or 0))

    income = month_total(TransactionType.INCOME)
    expense = month_total(TransactionType.EXPENSE)

    recent = (
        db.query(Transaction)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .limit(5)
        .all()
    )

    return {
        "month": month,
        "total_balance": float(total_balance),
        "account_count": db.query(func.count(Account.id)).scalar() or 0,
        "income": float(income),
        "expense": float(expense),
        "net": float(income - expense),
        "recent_transactions": [
            {
                "id": t.id,
                "type": t.type.value,
                "amount": float(t.amount),
                "description": t.description,
                "date": t.date.isoformat(),
                "is_digital_tax": t.is_digital_tax,
            }
            for t in recent
        ],
    }
