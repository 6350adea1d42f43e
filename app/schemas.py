# app/schemas.py
"""
Pydantic models for request payloads and the Excel import pipeline.

TransactionInput is deliberately lenient: business-rule checks live in
app/services/ledger.py so that rejections come back as {"error": ...}
messages instead of framework validation errors.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from models import CategoryType, TransactionType

ImportStrategy = Literal["skip", "update", "error"]
SheetName = Literal["Accounts", "Categories", "Transactions"]

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


# -------------------------------------------------------------------
# Ledger input
# -------------------------------------------------------------------

class TransactionInput(BaseModel):
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    to_account_id: Optional[int] = None
    apply_digital_tax: bool = False


class AccountInput(BaseModel):
    name: str = ""
    balance: Decimal = Decimal("0")
    currency: Optional[str] = None


class CategoryInput(BaseModel):
    name: str = ""
    type: Optional[CategoryType] = None
    color: str = "#6366f1"
    icon: Optional[str] = None


# -------------------------------------------------------------------
# Excel rows (already typed, one per body row)
# -------------------------------------------------------------------

class AccountRow(BaseModel):
    name: str = Field(..., min_length=1)
    balance: Decimal = Decimal("0")
    currency: str = "PYG"


class CategoryRow(BaseModel):
    name: str = Field(..., min_length=1)
    type: CategoryType
    color: str = Field("#6366f1", pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = None


class TransactionRow(BaseModel):
    type: TransactionType
    amount: Decimal
    description: Optional[str] = None
    date: datetime
    account_name: str = Field(..., min_length=1)
    category_name: Optional[str] = None
    to_account_name: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _positive_two_decimals(cls, v: Decimal) -> Decimal:
        # Rounded the same way as ledger amounts, then checked: 0.001 is not positive
        v = v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v


# -------------------------------------------------------------------
# Import options / results
# -------------------------------------------------------------------

class ImportOptions(BaseModel):
    accounts: ImportStrategy = "skip"
    categories: ImportStrategy = "skip"
    transactions: ImportStrategy = "skip"


class ImportRowError(BaseModel):
    sheet: SheetName
    row: int
    message: str
    field: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class ImportStats(BaseModel):
    """
    Per-sheet counters. Treated as a value: every record_* call returns a
    new instance instead of mutating this one.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[ImportRowError] = Field(default_factory=list)

    def record_created(self) -> "ImportStats":
        return self.model_copy(update={"created": self.created + 1})

    def record_updated(self) -> "ImportStats":
        return self.model_copy(update={"updated": self.updated + 1})

    def record_skipped(self) -> "ImportStats":
        return self.model_copy(update={"skipped": self.skipped + 1})

    def record_error(self, error: ImportRowError) -> "ImportStats":
        return self.model_copy(update={"errors": [*self.errors, error]})


class ImportResult(BaseModel):
    success: bool = True
    accounts: ImportStats = Field(default_factory=ImportStats)
    categories: ImportStats = Field(default_factory=ImportStats)
    transactions: ImportStats = Field(default_factory=ImportStats)


class ParsedImportData(BaseModel):
    accounts: List[AccountRow] = Field(default_factory=list)
    categories: List[CategoryRow] = Field(default_factory=list)
    transactions: List[TransactionRow] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)
