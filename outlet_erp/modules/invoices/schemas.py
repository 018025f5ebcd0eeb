"""Schemas for supplier invoices."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from outlet_erp.shared.schemas import BaseSchema


class InvoiceGenerate(BaseSchema):
    po_id: int
    supplier_invoice_ref: str = Field(..., min_length=1, max_length=100)
    due_date: date
    invoice_date: date | None = None
    notes: str | None = None


class InvoiceLineResponse(BaseSchema):
    id: int
    po_item_id: int
    item_id: int
    qty_received: Decimal
    price_per_unit: Decimal
    line_total: Decimal


class InvoiceResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    supplier_id: int
    po_id: int
    supplier_invoice_ref: str
    invoice_date: date
    due_date: date
    total_amount: Decimal
    amount_paid: Decimal
    discount_total: Decimal
    remaining_balance: Decimal
    status: str
    notes: str | None
    created_by: str
    created_at: datetime
    lines: list[InvoiceLineResponse] = []


class InvoiceFilters(BaseSchema):
    status: str | None = None
    supplier_id: int | None = None
    due_before: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)
