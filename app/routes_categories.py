# routes_categories.py
"""
Routes for income / expense categories.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from models import CategoryType
from app.deps import get_db, result_response, failure_response
from app.schemas import CategoryInput
from app.services import categories as category_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/categories")
def list_categories(
    type: Optional[CategoryType] = Query(None),
    db: Session = Depends(get_db),
):
    return [
        {
            "id": c.id,
            "name": c.name,
            "type": c.type.value,
            "color": c.color,
            "icon": c.icon,
        }
        for c in category_service.get_categories(db, type)
    ]


@router.post("/categories")
def create_category(payload: CategoryInput, db: Session = Depends(get_db)):
    result = category_service.create_category(
        db, payload.name, payload.type, payload.color, payload.icon
    )
    return result_response(result, success_status=201)


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        result = category_service.delete_category(db, category_id)
    except Exception as e:
        logger.error("[categories] ERROR deleting category %s: %r", category_id, e)
        return failure_response("Failed to delete category")
    return result_response(result)
