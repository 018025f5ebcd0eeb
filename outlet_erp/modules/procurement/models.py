"""Procurement models: purchase orders and goods receipts."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_erp.core.database.base import BaseModel, MoneyColumn, QuantityColumn


class PurchaseOrderStatus(StrEnum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    INVOICED = "INVOICED"
    CANCELLED = "CANCELLED"


# Items and supplier may only change while the PO is in one of these
EDITABLE_STATUSES = (PurchaseOrderStatus.DRAFT.value, PurchaseOrderStatus.ISSUED.value)
RECEIVABLE_STATUSES = (PurchaseOrderStatus.ISSUED.value, PurchaseOrderStatus.PARTIAL.value)


class PurchaseOrder(BaseModel):
    """Commitment to buy items from a supplier for one outlet."""

    __tablename__ = "purchase_orders"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("suppliers.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.line_order",
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_purchase_orders_outlet_document"),
    )


class PurchaseOrderItem(BaseModel):
    __tablename__ = "purchase_order_items"

    po_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    qty_ordered: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    uom_purchase: Mapped[str] = mapped_column(String(20), nullable=False)
    # base units per purchase unit, captured when the line is added
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False, default=Decimal("1"))
    price_per_unit: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    # running total across goods receipts, in purchase units
    qty_received: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False, default=Decimal("0"))
    line_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    purchase_order: Mapped["PurchaseOrder"] = relationship("PurchaseOrder", back_populates="items")

    @property
    def qty_remaining(self) -> Decimal:
        return self.qty_ordered - self.qty_received

    __table_args__ = (
        CheckConstraint("qty_ordered > 0", name="ck_po_items_qty_ordered_positive"),
        CheckConstraint("qty_received >= 0", name="ck_po_items_qty_received_non_negative"),
        CheckConstraint("qty_received <= qty_ordered", name="ck_po_items_not_over_received"),
    )


class GoodsReceipt(BaseModel):
    """Physically received quantities against one purchase order."""

    __tablename__ = "goods_receipts"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    po_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase_orders.id"), nullable=False, index=True
    )
    supplier_delivery_note: Mapped[str | None] = mapped_column(String(100), nullable=True)
    received_by: Mapped[str] = mapped_column(String(100), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["GoodsReceiptItem"]] = relationship(
        "GoodsReceiptItem",
        back_populates="goods_receipt",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_goods_receipts_outlet_document"),
    )


class GoodsReceiptItem(BaseModel):
    __tablename__ = "goods_receipt_items"

    gr_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    po_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase_order_items.id"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False)
    qty_received: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False)

    goods_receipt: Mapped["GoodsReceipt"] = relationship("GoodsReceipt", back_populates="items")

    __table_args__ = (CheckConstraint("qty_received > 0", name="ck_gr_items_qty_positive"),)
