"""Schemas for internal usage and internal return."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from outlet_erp.shared.schemas import BaseSchema


class InternalUsageLineCreate(BaseSchema):
    item_id: int
    qty_used: Decimal
    unit: str | None = None
    notes: str | None = None


class InternalUsageCreate(BaseSchema):
    category_id: int
    requested_by: str = Field(..., min_length=1, max_length=200)
    transaction_date: date | None = None
    notes: str | None = None
    lines: list[InternalUsageLineCreate] = Field(default_factory=list)


class InternalUsageLineResponse(BaseSchema):
    id: int
    item_id: int
    qty_used: Decimal
    unit: str | None
    unit_cost: Decimal
    notes: str | None


class InternalUsageResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    category_id: int
    requested_by: str
    transaction_date: date
    notes: str | None
    created_by: str
    created_at: datetime
    lines: list[InternalUsageLineResponse] = []


class InternalReturnLineCreate(BaseSchema):
    item_id: int
    qty_returned: Decimal
    unit: str | None = None
    condition_notes: str | None = None


class InternalReturnCreate(BaseSchema):
    category_id: int
    returned_by: str = Field(..., min_length=1, max_length=200)
    transaction_date: date | None = None
    notes: str | None = None
    lines: list[InternalReturnLineCreate] = Field(default_factory=list)


class InternalReturnLineResponse(BaseSchema):
    id: int
    item_id: int
    qty_returned: Decimal
    unit: str | None
    unit_cost: Decimal
    condition_notes: str | None


class InternalReturnResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    category_id: int
    returned_by: str
    transaction_date: date
    notes: str | None
    created_by: str
    created_at: datetime
    lines: list[InternalReturnLineResponse] = []


class InternalLedgerFilters(BaseSchema):
    category_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)


# --- Reports ---


class LedgerReportRow(BaseSchema):
    document_number: str
    transaction_date: date
    category_id: int
    category_name: str
    item_id: int
    sku: str
    item_name: str
    quantity: Decimal
    unit_cost: Decimal
    total_value: Decimal


class CategoryTotal(BaseSchema):
    category_id: int
    category_name: str
    quantity: Decimal
    total_value: Decimal


class LedgerReport(BaseSchema):
    """Usage (expense value) or return (recovered value) over a date range."""

    date_from: date
    date_to: date
    total_quantity: Decimal
    total_value: Decimal
    by_category: list[CategoryTotal]
    rows: list[LedgerReportRow]
