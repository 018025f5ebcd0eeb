"""Stock opname (physical count) and shrinkage models."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_erp.core.database.base import BaseModel, MoneyColumn, QuantityColumn


class OpnameMode(StrEnum):
    BATCH = "BATCH"
    SPOT = "SPOT"


class OpnameStatus(StrEnum):
    COMPLETED = "COMPLETED"


class StockOpname(BaseModel):
    """
    Historical snapshot of a physical count.

    Never updated after creation; a wrong count is corrected by a new opname.
    """

    __tablename__ = "stock_opnames"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    mode: Mapped[str] = mapped_column(String(10), nullable=False)
    opname_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=OpnameStatus.COMPLETED.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    lines: Mapped[list["StockOpnameLine"]] = relationship(
        "StockOpnameLine",
        back_populates="opname",
        cascade="all, delete-orphan",
        order_by="StockOpnameLine.line_order",
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_stock_opnames_outlet_document"),
    )


class StockOpnameLine(BaseModel):
    __tablename__ = "stock_opname_lines"

    opname_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("stock_opnames.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    system_qty: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    actual_qty: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    difference: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    opname: Mapped["StockOpname"] = relationship("StockOpname", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("opname_id", "item_id", name="uq_stock_opname_lines_opname_item"),
        CheckConstraint("actual_qty >= 0", name="ck_stock_opname_lines_actual_non_negative"),
    )

    @property
    def variance_value(self) -> Decimal:
        return self.difference * self.unit_cost


class ShrinkageLog(BaseModel):
    """Stock written off as lost (spoilage, damage, theft)."""

    __tablename__ = "shrinkage_logs"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("items.id"), nullable=False, index=True)
    shrinkage_category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shrinkage_categories.id"), nullable=False
    )
    qty_lost: Mapped[Decimal] = mapped_column(QuantityColumn, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_shrinkage_logs_outlet_document"),
        CheckConstraint("qty_lost > 0", name="ck_shrinkage_logs_qty_positive"),
    )
