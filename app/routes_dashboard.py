# app/routes_dashboard.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .deps import get_db
from models import CategoryType
from app.services.analytics import category_totals, dashboard_summary, monthly_series
from app.services.periods import DEFAULT_PERIOD, PERIOD_OPTIONS, get_period_label

router = APIRouter()


@router.get("/dashboard")
def dashboard_page(db: Session = Depends(get_db)):
    return dashboard_summary(db)


@router.get("/analytics")
def analytics_page(
    period: str = Query(DEFAULT_PERIOD),
    db: Session = Depends(get_db),
):
    # Unknown periods fall back to all time
    if period not in dict(PERIOD_OPTIONS):
        period = DEFAULT_PERIOD

    spending = category_totals(db, CategoryType.EXPENSE, period)
    income = category_totals(db, CategoryType.INCOME, period)

    return {
        "period": period,
        "period_label": get_period_label(period),
        "periods": [{"value": value, "label": label} for value, label in PERIOD_OPTIONS],
        "spending_by_category": spending,
        "total_spent": sum(item["value"] for item in spending),
        "income_by_category": income,
        "total_income": sum(item["value"] for item in income),
        "monthly": monthly_series(db, period),
    }
