"""Schemas for Inventory module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from outlet_erp.shared.schemas import BaseSchema


class InventoryBalanceResponse(BaseSchema):
    id: int
    outlet_code: str
    item_id: int
    qty_on_hand: Decimal
    average_cost: Decimal
    opening_balance: Decimal
    date_ob: date | None = None
    last_movement_at: datetime | None = None
    stock_value: Decimal = Decimal("0.00")


class StockMovementResponse(BaseSchema):
    id: int
    item_id: int
    movement_type: str
    quantity: Decimal
    unit_cost: Decimal | None
    quantity_before: Decimal
    quantity_after: Decimal
    average_cost_before: Decimal
    average_cost_after: Decimal
    reference_type: str | None
    reference_id: int | None
    notes: str | None
    created_by: str
    created_at: datetime


class BalanceFilters(BaseSchema):
    item_id: int | None = None
    only_in_stock: bool = False
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=500)


class MovementFilters(BaseSchema):
    item_id: int | None = None
    movement_type: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=500)
