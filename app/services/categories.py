# app/services/categories.py
#
# Category CRUD plus the default category set.
# Categories are unique by (name, type) in practice; that rule is checked here,
# at lookup time, rather than by the schema.

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Category, CategoryType, Transaction

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#6366f1"

# Category assigned to generated digital tax (IVA Digital) rows
TAX_CATEGORY_NAME = "IVA Digital"
TAX_CATEGORY_COLOR = "#64748b"

DEFAULT_CATEGORIES = [
    ("Salario", CategoryType.INCOME, "#22c55e"),
    ("Freelance", CategoryType.INCOME, "#10b981"),
    ("Inversiones", CategoryType.INCOME, "#14b8a6"),
    ("Otros Ingresos", CategoryType.INCOME, "#06b6d4"),
    ("Comida", CategoryType.EXPENSE, "#f43f5e"),
    ("Transporte", CategoryType.EXPENSE, "#ef4444"),
    ("Compras", CategoryType.EXPENSE, "#f97316"),
    ("Servicios", CategoryType.EXPENSE, "#eab308"),
    ("Entretenimiento", CategoryType.EXPENSE, "#a855f7"),
    ("Salud", CategoryType.EXPENSE, "#ec4899"),
    ("Otros Gastos", CategoryType.EXPENSE, "#6366f1"),
]


def get_categories(db: Session, type: Optional[CategoryType] = None) -> List[Category]:
    query = db.query(Category)
    if type is not None:
        query = query.filter(Category.type == CategoryType(type))
    return query.order_by(Category.name.asc()).all()


def find_category(db: Session, name: str, type: CategoryType) -> Optional[Category]:
    """Case-insensitive lookup by (name, type)."""
    return (
        db.query(Category)
        .filter(
            func.lower(Category.name) == name.strip().lower(),
            Category.type == CategoryType(type),
        )
        .first()
    )


def create_category(
    db: Session,
    name: str,
    type: Optional[CategoryType],
    color: Optional[str] = None,
    icon: Optional[str] = None,
) -> dict:
    name = (name or "").strip()
    if not name or not type:
        return {"error": "Name and type are required"}

    if find_category(db, name, type) is not None:
        return {"error": "Category already exists"}

    category = Category(
        name=name,
        type=CategoryType(type),
        color=color or DEFAULT_COLOR,
        icon=icon or None,
    )
    db.add(category)
    db.commit()
    db.refresh(category)

    logger.info("Created category %r (%s) id=%s", category.name, category.type.value, category.id)
    return {"success": True, "id": category.id}


def delete_category(db: Session, category_id: int) -> dict:
    """
    Delete a category. Transactions that used it keep existing with
    category_id set to NULL.
    """
    category = db.get(Category, category_id)
    if category is None:
        return {"error": "Category not found"}

    try:
        detached = (
            db.query(Transaction)
            .filter(Transaction.category_id == category_id)
            .update({Transaction.category_id: None}, synchronize_session="evaluate")
        )
        db.delete(category)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Deleted category id=%s (%d transactions uncategorized)", category_id, detached)
    return {"success": True}


def get_or_create_tax_category(db: Session) -> Category:
    """
    Resolve the digital tax category, creating it on demand.
    Runs inside the caller's unit: flushes, never commits.
    """
    category = find_category(db, TAX_CATEGORY_NAME, CategoryType.EXPENSE)
    if category is None:
        category = Category(
            name=TAX_CATEGORY_NAME,
            type=CategoryType.EXPENSE,
            color=TAX_CATEGORY_COLOR,
        )
        db.add(category)
        db.flush()
    return category


def seed_default_categories(db: Session) -> int:
    """
    Insert the default category set when the table is empty.
    Returns the number of categories created.
    """
    existing = db.query(func.count(Category.id)).scalar() or 0
    if existing > 0:
        return 0

    db.add_all(
        Category(name=name, type=cat_type, color=color)
        for name, cat_type, color in DEFAULT_CATEGORIES
    )
    db.commit()
    logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)
