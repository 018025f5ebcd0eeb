"""Schemas for stock opname and shrinkage."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from outlet_erp.modules.stock_opname.models import OpnameMode
from outlet_erp.shared.schemas import BaseSchema


class StockOpnameLineInput(BaseSchema):
    """
    Counted value for one item.

    `out_of_stock` forces the count to zero. Leaving `actual_qty` empty in a
    batch opname keeps the system quantity.
    """

    item_id: int
    actual_qty: Decimal | None = Field(None, ge=0)
    out_of_stock: bool = False
    notes: str | None = None


class StockOpnameCreate(BaseSchema):
    mode: OpnameMode = OpnameMode.BATCH
    opname_date: date | None = None
    notes: str | None = None
    lines: list[StockOpnameLineInput] = Field(default_factory=list)


class StockOpnamePreviewLine(BaseSchema):
    item_id: int
    system_qty: Decimal
    actual_qty: Decimal
    difference: Decimal
    unit_cost: Decimal
    variance_value: Decimal


class StockOpnamePreview(BaseSchema):
    mode: str
    opname_date: date
    items_counted: int
    items_with_variance: int
    total_variance_value: Decimal
    lines: list[StockOpnamePreviewLine]


class StockOpnameLineResponse(BaseSchema):
    id: int
    item_id: int
    system_qty: Decimal
    actual_qty: Decimal
    difference: Decimal
    unit_cost: Decimal
    variance_value: Decimal
    notes: str | None = None


class StockOpnameResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    mode: str
    opname_date: date
    status: str
    notes: str | None = None
    created_by: str
    created_at: datetime
    lines: list[StockOpnameLineResponse] = []


class StockOpnameFilters(BaseSchema):
    mode: OpnameMode | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)


class VarianceRow(BaseSchema):
    opname_id: int
    document_number: str
    opname_date: date
    item_id: int
    sku: str
    item_name: str
    system_qty: Decimal
    actual_qty: Decimal
    difference: Decimal
    unit_cost: Decimal
    variance_value: Decimal


class VarianceReport(BaseSchema):
    date_from: date | None = None
    date_to: date | None = None
    items_with_variance: int
    total_variance_value: Decimal
    total_variance_value_abs: Decimal
    rows: list[VarianceRow]


# --- Shrinkage ---


class ShrinkageCreate(BaseSchema):
    item_id: int
    shrinkage_category_id: int
    qty_lost: Decimal
    transaction_date: date | None = None
    notes: str | None = None


class ShrinkageResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    item_id: int
    shrinkage_category_id: int
    qty_lost: Decimal
    unit_cost: Decimal
    transaction_date: date
    notes: str | None = None
    created_by: str
    created_at: datetime


class ShrinkageFilters(BaseSchema):
    item_id: int | None = None
    shrinkage_category_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)
