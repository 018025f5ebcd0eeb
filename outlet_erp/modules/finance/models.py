"""Finance models: outlet accounts, their ledger, general transactions and supplier settlements."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from outlet_erp.core.database.base import Base, BaseModel, BigIntPK, MoneyColumn


class AccountType(StrEnum):
    CASH = "CASH"
    BANK = "BANK"


class Direction(StrEnum):
    IN = "IN"
    OUT = "OUT"


class FinancialAccount(BaseModel):
    """Cash drawer or bank account of an outlet."""

    __tablename__ = "financial_accounts"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_type: Mapped[str] = mapped_column(String(10), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    balance: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("outlet_code", "account_name", name="uq_financial_accounts_outlet_name"),
        CheckConstraint("balance >= 0", name="ck_financial_accounts_balance_non_negative"),
    )


class AccountTransaction(Base):
    """Append-only ledger of every balance change."""

    __tablename__ = "account_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("financial_accounts.id"), nullable=False, index=True
    )
    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    direction: Mapped[str] = mapped_column(String(3), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_account_transactions_amount_non_negative"),)


class GeneralTransaction(BaseModel):
    """Money in or out of an account that is not a supplier settlement."""

    __tablename__ = "general_transactions"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    financial_account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("financial_accounts.id"), nullable=False, index=True
    )
    transaction_type: Mapped[str] = mapped_column(String(3), nullable=False)
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("transaction_categories.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_general_transactions_outlet_document"),
        CheckConstraint("amount > 0", name="ck_general_transactions_amount_positive"),
    )


class Payment(BaseModel):
    """One cash payment to a supplier, allocated across its open invoices."""

    __tablename__ = "payments"

    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("suppliers.id"), nullable=False, index=True
    )
    financial_account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("financial_accounts.id"), nullable=False, index=True
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_cash_amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    total_discount_amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # client token; replays with the same key return the original payment
    idempotency_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        "PaymentAllocation", back_populates="payment", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("outlet_code", "document_number", name="uq_payments_outlet_document"),
        UniqueConstraint("outlet_code", "idempotency_key", name="uq_payments_outlet_idempotency_key"),
    )


class PaymentAllocation(BaseModel):
    __tablename__ = "payment_allocations"

    payment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("invoices.id"), nullable=False, index=True)
    remaining_before: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    cash_amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False, default=Decimal("0.00"))

    payment: Mapped["Payment"] = relationship("Payment", back_populates="allocations")

    __table_args__ = (
        UniqueConstraint("payment_id", "invoice_id", name="uq_payment_allocations_payment_invoice"),
        CheckConstraint("cash_amount >= 0", name="ck_payment_allocations_cash_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_payment_allocations_discount_non_negative"),
    )
