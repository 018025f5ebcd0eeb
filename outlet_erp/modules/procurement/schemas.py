"""Schemas for Procurement module (purchase orders and goods receipts)."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from outlet_erp.shared.schemas import BaseSchema


class PurchaseOrderItemCreate(BaseSchema):
    """One ordered line. Unit, conversion rate and price default from the item master."""

    item_id: int
    qty_ordered: Decimal
    uom_purchase: str | None = Field(None, max_length=20)
    conversion_rate: Decimal | None = Field(None, gt=0)
    price_per_unit: Decimal | None = Field(None, ge=0)


class PurchaseOrderCreate(BaseSchema):
    supplier_id: int
    order_date: date | None = None
    expected_delivery_date: date | None = None
    reference_number: str | None = Field(None, max_length=100)
    notes: str | None = None
    issue: bool = False
    items: list[PurchaseOrderItemCreate] = Field(default_factory=list)


class PurchaseOrderUpdate(BaseSchema):
    """Editable header fields; `items` replaces every line when given."""

    supplier_id: int | None = None
    expected_delivery_date: date | None = None
    reference_number: str | None = Field(None, max_length=100)
    notes: str | None = None
    items: list[PurchaseOrderItemCreate] | None = None


class CancelPurchaseOrderRequest(BaseSchema):
    reason: str = Field(..., min_length=1, max_length=500)


class PurchaseOrderItemResponse(BaseSchema):
    id: int
    item_id: int
    qty_ordered: Decimal
    qty_received: Decimal
    qty_remaining: Decimal
    uom_purchase: str
    conversion_rate: Decimal
    price_per_unit: Decimal
    line_total: Decimal
    line_order: int


class PurchaseOrderResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    supplier_id: int
    status: str
    order_date: date
    expected_delivery_date: date | None
    reference_number: str | None
    total_amount: Decimal
    notes: str | None
    cancelled_reason: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    items: list[PurchaseOrderItemResponse]


class PurchaseOrderFilters(BaseSchema):
    status: str | None = None
    supplier_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)


class OutstandingItemResponse(BaseSchema):
    """Open PO line still waiting for delivery."""

    po_id: int
    document_number: str
    supplier_id: int
    expected_delivery_date: date | None
    po_item_id: int
    item_id: int
    qty_ordered: Decimal
    qty_received: Decimal
    qty_remaining: Decimal
    uom_purchase: str


# --- Goods receipts ---


class GoodsReceiptItemCreate(BaseSchema):
    """Quantity received in this receipt, in the PO line's purchase unit (0 = not delivered)."""

    po_item_id: int
    qty_received: Decimal = Field(..., ge=0)


class GoodsReceiptCreate(BaseSchema):
    po_id: int
    supplier_delivery_note: str | None = Field(None, max_length=100)
    notes: str | None = None
    items: list[GoodsReceiptItemCreate] = Field(default_factory=list)


class ReceiveRemainingRequest(BaseSchema):
    supplier_delivery_note: str | None = Field(None, max_length=100)
    notes: str | None = None


class GoodsReceiptItemResponse(BaseSchema):
    id: int
    po_item_id: int
    item_id: int
    qty_received: Decimal
    conversion_rate: Decimal


class GoodsReceiptResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    po_id: int
    supplier_delivery_note: str | None
    received_by: str
    received_at: datetime
    notes: str | None
    items: list[GoodsReceiptItemResponse]


class GoodsReceiptPreviewLine(BaseSchema):
    po_item_id: int
    item_id: int
    qty_ordered: Decimal
    qty_received_before: Decimal
    qty_to_receive: Decimal
    qty_remaining_after: Decimal
    base_qty: Decimal


class GoodsReceiptPreview(BaseSchema):
    po_id: int
    po_status_before: str
    po_status_after: str
    lines: list[GoodsReceiptPreviewLine]


class GoodsReceiptFilters(BaseSchema):
    po_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)
