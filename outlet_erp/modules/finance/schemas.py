"""Schemas for finance: accounts, general transactions, settlements and reports."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from outlet_erp.modules.finance.models import AccountType, Direction
from outlet_erp.shared.schemas import BaseSchema


class FinancialAccountCreate(BaseSchema):
    account_name: str = Field(..., min_length=1, max_length=200)
    account_type: AccountType
    bank_name: str | None = Field(None, max_length=100)
    account_number: str | None = Field(None, max_length=50)
    opening_balance: Decimal = Field(default=Decimal("0.00"), ge=0)


class FinancialAccountResponse(BaseSchema):
    id: int
    outlet_code: str
    account_name: str
    account_type: str
    bank_name: str | None
    account_number: str | None
    balance: Decimal
    is_active: bool


class AccountTransactionResponse(BaseSchema):
    id: int
    account_id: int
    direction: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    transaction_date: date
    reference_type: str
    reference_id: int | None
    description: str | None
    created_by: str
    created_at: datetime


class GeneralTransactionCreate(BaseSchema):
    financial_account_id: int
    transaction_type: Direction
    category_id: int
    amount: Decimal = Field(..., gt=0)
    transaction_date: date | None = None
    description: str | None = None


class GeneralTransactionResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    financial_account_id: int
    transaction_type: str
    category_id: int
    amount: Decimal
    transaction_date: date
    description: str | None
    created_by: str
    created_at: datetime


# --- Settlement (paydown) ---


class SettlementAllocationCreate(BaseSchema):
    invoice_id: int
    discount_amount: Decimal = Decimal("0.00")


class SettlementCreate(BaseSchema):
    supplier_id: int
    financial_account_id: int
    payment_date: date | None = None
    notes: str | None = None
    idempotency_key: str | None = Field(None, min_length=1, max_length=100)
    allocations: list[SettlementAllocationCreate] = Field(default_factory=list)


class SettlementPreviewLine(BaseSchema):
    invoice_id: int
    document_number: str
    remaining_balance: Decimal
    discount_amount: Decimal
    cash_amount: Decimal
    remaining_after: Decimal


class SettlementPreview(BaseSchema):
    supplier_id: int
    financial_account_id: int
    total_cash_amount: Decimal
    total_discount_amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    sufficient_funds: bool
    lines: list[SettlementPreviewLine]


class PaymentAllocationResponse(BaseSchema):
    id: int
    invoice_id: int
    remaining_before: Decimal
    cash_amount: Decimal
    discount_amount: Decimal


class PaymentResponse(BaseSchema):
    id: int
    outlet_code: str
    document_number: str
    supplier_id: int
    financial_account_id: int
    payment_date: date
    total_cash_amount: Decimal
    total_discount_amount: Decimal
    notes: str | None
    idempotency_key: str | None
    created_by: str
    created_at: datetime
    allocations: list[PaymentAllocationResponse]


class PaymentFilters(BaseSchema):
    supplier_id: int | None = None
    financial_account_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)


# --- Reports ---


class ApAgingRow(BaseSchema):
    supplier_id: int
    supplier_name: str
    invoice_count: int
    buckets: dict[str, Decimal]
    total: Decimal


class ApAgingReport(BaseSchema):
    as_of: date
    bucket_labels: list[str]
    rows: list[ApAgingRow]
    totals: dict[str, Decimal]
    grand_total: Decimal


class CashFlowReport(BaseSchema):
    date_from: date
    date_to: date
    total_in: Decimal
    total_out: Decimal
    net: Decimal
    transactions: list[AccountTransactionResponse]
