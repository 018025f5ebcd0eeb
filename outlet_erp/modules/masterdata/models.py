"""Read-only master data: outlets, suppliers, items and categories.

Rows are maintained by the master-data service; the engine only reads them to
validate commands.
"""

from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Boolean, CheckConstraint, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from outlet_erp.core.database.base import BaseModel, MoneyColumn


class Outlet(BaseModel):
    """Physical business location."""

    __tablename__ = "outlets"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_holding: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Supplier(BaseModel):
    __tablename__ = "suppliers"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Item(BaseModel):
    """Stock item. Quantities are tracked in `base_unit`; suppliers sell in `purchase_unit`."""

    __tablename__ = "items"

    sku: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_unit: Mapped[str] = mapped_column(String(20), nullable=False)
    purchase_unit: Mapped[str] = mapped_column(String(20), nullable=False)
    # base units per purchase unit, e.g. 24 pcs per box
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False, default=Decimal("1"))
    buy_price: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    sell_price: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (CheckConstraint("conversion_rate > 0", name="ck_items_conversion_rate_positive"),)


class UsageCategory(BaseModel):
    """Reason category for internal usage and returns."""

    __tablename__ = "usage_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ShrinkageCategory(BaseModel):
    __tablename__ = "shrinkage_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class TransactionDirection(StrEnum):
    IN = "IN"
    OUT = "OUT"


class TransactionCategory(BaseModel):
    """Category of a general (non-settlement) account transaction."""

    __tablename__ = "transaction_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    direction: Mapped[str] = mapped_column(String(3), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (UniqueConstraint("name", "direction", name="uq_transaction_categories_name_direction"),)
