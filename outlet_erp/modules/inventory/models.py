"""Inventory balance store: per-outlet, per-item quantity on hand and its movement ledger."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from outlet_erp.core.database.base import Base, BaseModel, BigIntPK, MoneyColumn, QuantityColumn


class MovementType(StrEnum):
    """Stock movement type enumeration."""

    RECEIPT = "receipt"  # Goods receipt against a purchase order
    USAGE = "usage"  # Internal consumption
    RETURN = "return"  # Internal return
    OPNAME = "opname"  # Physical count correction
    SHRINKAGE = "shrinkage"  # Loss write-off


class InventoryBalance(BaseModel):
    """Quantity on hand of one item at one outlet, in the item's base unit."""

    __tablename__ = "inventory_balances"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    qty_on_hand: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False, default=Decimal("0"))
    # Weighted average cost of one base unit
    average_cost: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    opening_balance: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False, default=Decimal("0"))
    date_ob: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_movement_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("outlet_code", "item_id", name="uq_inventory_balances_outlet_item"),
        CheckConstraint("qty_on_hand >= 0", name="ck_inventory_balances_qty_non_negative"),
    )


class StockMovement(Base):
    """History of all stock movements."""

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    balance_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("inventory_balances.id"), nullable=False, index=True
    )
    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    # Positive for in, negative for out
    quantity: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(MoneyColumn, nullable=True)
    quantity_before: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    average_cost_before: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    average_cost_after: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
