"""Internal usage (non-sale consumption) and internal return models."""

from datetime import date
from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_erp.core.database.base import BaseModel, MoneyColumn, QuantityColumn


class InternalUsage(BaseModel):
    __tablename__ = "internal_usages"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("usage_categories.id"), nullable=False, index=True
    )
    requested_by: Mapped[str] = mapped_column(String(200), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    lines: Mapped[list["InternalUsageLine"]] = relationship(
        "InternalUsageLine",
        back_populates="usage",
        cascade="all, delete-orphan",
        order_by="InternalUsageLine.line_order",
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_internal_usages_outlet_document"),
    )


class InternalUsageLine(BaseModel):
    __tablename__ = "internal_usage_lines"

    usage_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("internal_usages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    qty_used: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # average cost at the time of use
    unit_cost: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    usage: Mapped["InternalUsage"] = relationship("InternalUsage", back_populates="lines")

    __table_args__ = (CheckConstraint("qty_used > 0", name="ck_internal_usage_lines_qty_positive"),)


class InternalReturn(BaseModel):
    __tablename__ = "internal_returns"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("usage_categories.id"), nullable=False, index=True
    )
    returned_by: Mapped[str] = mapped_column(String(200), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    lines: Mapped[list["InternalReturnLine"]] = relationship(
        "InternalReturnLine",
        back_populates="internal_return",
        cascade="all, delete-orphan",
        order_by="InternalReturnLine.line_order",
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_internal_returns_outlet_document"),
    )


class InternalReturnLine(BaseModel):
    __tablename__ = "internal_return_lines"

    return_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("internal_returns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    qty_returned: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_cost: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    condition_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    internal_return: Mapped["InternalReturn"] = relationship("InternalReturn", back_populates="lines")

    __table_args__ = (CheckConstraint("qty_returned > 0", name="ck_internal_return_lines_qty_positive"),)
