"""Supplier invoice models."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_erp.core.database.base import BaseModel, MoneyColumn, QuantityColumn


class InvoiceStatus(StrEnum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = (InvoiceStatus.UNPAID.value, InvoiceStatus.PARTIAL.value)


class Invoice(BaseModel):
    """Payable generated from the received quantities of one purchase order."""

    __tablename__ = "invoices"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("suppliers.id"), nullable=False, index=True
    )
    # one invoice per purchase order, enforced at the transaction boundary
    po_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase_orders.id"), nullable=False, unique=True
    )
    supplier_invoice_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    discount_total: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    remaining_balance: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        "InvoiceLine", back_populates="invoice", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_invoices_outlet_document"),
        CheckConstraint("remaining_balance >= 0", name="ck_invoices_remaining_non_negative"),
    )


class InvoiceLine(BaseModel):
    """Snapshot of a received PO line at invoice generation."""

    __tablename__ = "invoice_lines"

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    po_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase_order_items.id"), nullable=False
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False)
    qty_received: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")
