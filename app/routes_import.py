# routes_import.py
"""
Routes for the Excel import / export bridge.

Import flow:
- check extension (.xlsx / .xls) and size (FINANCE_MAX_IMPORT_MB)
- parse the three sheets into validated rows
- any parse error → 400 with the list, nothing written
- otherwise run the reconciler and return its per-sheet counters
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.deps import MAX_IMPORT_BYTES, MAX_IMPORT_MB, get_db, failure_response
from app.schemas import ImportOptions
from app.services.excel_export import export_filename, export_to_excel
from app.services.excel_import import import_data
from app.services.excel_layout import ALLOWED_EXTENSIONS
from app.services.excel_parser import parse_excel_file

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


@router.post("/import")
async def import_workbook(
    file: UploadFile = File(...),
    options: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """
    Import accounts, categories and transactions from an uploaded workbook.

    `options` is a JSON string such as
        {"accounts": "skip", "categories": "update", "transactions": "error"}
    Missing keys default to "skip".
    """
    filename = (file.filename or "").lower()
    if not filename.endswith(ALLOWED_EXTENSIONS):
        return _bad_request("Invalid file type. Please upload an Excel file (.xlsx or .xls)")

    content = await file.read()
    if len(content) > MAX_IMPORT_BYTES:
        return _bad_request(f"File too large. Maximum size is {MAX_IMPORT_MB}MB.")

    try:
        import_options = ImportOptions(**json.loads(options)) if options else ImportOptions()
    except (ValueError, TypeError, ValidationError):
        return _bad_request("Invalid import options")

    try:
        parsed = parse_excel_file(content)
    except Exception as e:
        logger.warning("[import] Could not read workbook %r: %r", file.filename, e)
        return _bad_request("Failed to import data. Please check the file format.")

    if parsed.errors:
        logger.info("[import] %d parse errors in %r, nothing imported", len(parsed.errors), file.filename)
        return JSONResponse(
            {
                "success": False,
                "parseErrors": [e.model_dump(mode="json") for e in parsed.errors],
                "message": "File contains validation errors. Please fix them and try again.",
            },
            status_code=400,
        )

    result = import_data(db, parsed, import_options)
    return result.model_dump(mode="json")


@router.get("/export")
def export_workbook(db: Session = Depends(get_db)):
    """
    Download every account, category and transaction as an .xlsx workbook.
    """
    try:
        content = export_to_excel(db)
    except Exception as e:
        logger.error("[export] ERROR building workbook: %r", e)
        return failure_response("Failed to export data")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )
