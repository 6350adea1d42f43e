# app/deps.py
# Role: Shared application-level dependencies and settings.
#       Provides the standard SQLAlchemy database session dependency,
#       the import upload limits, and the mapping from service results
#       ({"success": ...} / {"error": ...}) to HTTP responses.

"""
Shared dependencies and globals for the finance tracker app.
"""

import os
from typing import Generator

from dotenv import load_dotenv
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from db import SessionLocal

load_dotenv()

# -------------------------------------------------------------------
# Settings
# -------------------------------------------------------------------

# Upload limit for Excel imports, in MiB
MAX_IMPORT_MB = int(os.getenv("FINANCE_MAX_IMPORT_MB", "10"))
MAX_IMPORT_BYTES = MAX_IMPORT_MB * 1024 * 1024

# Seed the default category set on startup when the table is empty
SEED_CATEGORIES = os.getenv("FINANCE_SEED_CATEGORIES", "1").strip().lower() in ("1", "true", "yes", "y", "on")

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Result -> response
# -------------------------------------------------------------------

def result_response(result: dict, success_status: int = 200) -> JSONResponse:
    """
    Business rejections become 400 (404 when the target does not exist);
    successes pass through unchanged.
    """
    if "error" in result:
        status = 404 if result["error"].endswith("not found") else 400
        return JSONResponse(result, status_code=status)
    return JSONResponse(result, status_code=success_status)


def failure_response(message: str) -> JSONResponse:
    """Generic failure for storage errors; details go to the log, not the client."""
    return JSONResponse({"error": message}, status_code=500)
