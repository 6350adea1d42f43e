# routes_root.py
"""
Root / basic endpoints (health, landing).
"""

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

router = APIRouter()


@router.get("/")
def read_root():
    """
    Landing endpoint: the dashboard summary is the entry point.
    """
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/health")
def health():
    """
    Simple health check.
    """
    return {"message": "My finance app is running"}
