from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Index, Integer, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from outlet_erp.core.database.base import Base, BigIntPK


class EventStatus(StrEnum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class EventType(StrEnum):
    """Post-commit events emitted by engine operations."""

    PURCHASE_ORDER_ISSUED = "PurchaseOrderIssued"
    PURCHASE_ORDER_CANCELLED = "PurchaseOrderCancelled"
    RECEIPT_POSTED = "ReceiptPosted"
    INVOICE_GENERATED = "InvoiceGenerated"
    INVOICE_PAID = "InvoicePaid"
    SETTLEMENT_POSTED = "SettlementPosted"
    GENERAL_TRANSACTION_POSTED = "GeneralTransactionPosted"
    STOCK_OPNAME_POSTED = "StockOpnamePosted"
    SHRINKAGE_RECORDED = "ShrinkageRecorded"
    INTERNAL_USAGE_POSTED = "InternalUsagePosted"
    INTERNAL_RETURN_POSTED = "InternalReturnPosted"


class DomainEvent(Base):
    """Outbox row written in the same transaction as the change it describes."""

    __tablename__ = "domain_events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False)
    aggregate_type: Mapped[str] = mapped_column(String(60), nullable=False)
    aggregate_id: Mapped[int] = mapped_column(BigIntPK, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=EventStatus.PENDING.value)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_domain_events_status_id", "status", "id"),)
