"""Service for finance: account ledger, general transactions, supplier settlement and reports."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from outlet_erp.core.audit import AuditAction, AuditService
from outlet_erp.core.config import settings
from outlet_erp.core.context import OperationContext
from outlet_erp.core.database import atomic, flush_or_conflict
from outlet_erp.core.documents import get_document_number
from outlet_erp.core.events import EventType, record_event
from outlet_erp.core.exceptions import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    StateError,
    ValidationError,
)
from outlet_erp.modules.finance.models import (
    AccountTransaction,
    Direction,
    FinancialAccount,
    GeneralTransaction,
    Payment,
    PaymentAllocation,
)
from outlet_erp.modules.finance.schemas import (
    AccountTransactionResponse,
    ApAgingReport,
    ApAgingRow,
    CashFlowReport,
    FinancialAccountCreate,
    GeneralTransactionCreate,
    PaymentFilters,
    SettlementCreate,
    SettlementPreview,
    SettlementPreviewLine,
)
from outlet_erp.modules.invoices.models import OPEN_STATUSES, Invoice, InvoiceStatus
from outlet_erp.modules.masterdata.models import Supplier
from outlet_erp.modules.masterdata.service import MasterDataService
from outlet_erp.shared.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)


class FinancialAccountService:
    """Per-outlet cash/bank accounts. Every balance change writes one ledger row."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.masterdata = MasterDataService(db)

    async def create_account(self, ctx: OperationContext, data: FinancialAccountCreate) -> FinancialAccount:
        async with atomic(self.db):
            await self.masterdata.get_outlet(ctx.outlet_code)
            account = FinancialAccount(
                outlet_code=ctx.outlet_code,
                account_name=data.account_name,
                account_type=data.account_type.value,
                bank_name=data.bank_name,
                account_number=data.account_number,
                balance=Decimal("0.00"),
                is_active=True,
            )
            self.db.add(account)
            await flush_or_conflict(self.db, f"Account '{data.account_name}' already exists")

            opening = round_money(data.opening_balance)
            if opening > 0:
                self.credit(
                    account,
                    opening,
                    date.today(),
                    ctx.user_id,
                    reference_type="opening_balance",
                    description="Opening balance",
                )
            await self.db.flush()
            await self.audit.log(
                action=AuditAction.CREATE,
                entity_type="FinancialAccount",
                entity_id=account.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=account.account_name,
                new_values={"account_type": account.account_type, "balance": str(account.balance)},
            )

        return await self.get_account(ctx, account.id)

    async def lock_account(self, ctx: OperationContext, account_id: int) -> FinancialAccount:
        """Load an active account of the caller's outlet with its row locked."""
        result = await self.db.execute(
            select(FinancialAccount)
            .where(FinancialAccount.id == account_id, FinancialAccount.outlet_code == ctx.outlet_code)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundError("Financial account", account_id)
        if not account.is_active:
            raise ValidationError(f"Account '{account.account_name}' is inactive", "financial_account_id")
        return account

    def _post(
        self,
        account: FinancialAccount,
        direction: Direction,
        amount: Decimal,
        transaction_date: date,
        user_id: str,
        reference_type: str,
        reference_id: int | None = None,
        description: str | None = None,
    ) -> AccountTransaction:
        balance_before = account.balance
        if direction == Direction.IN:
            account.balance = round_money(balance_before + amount)
        else:
            account.balance = round_money(balance_before - amount)
        entry = AccountTransaction(
            account_id=account.id,
            outlet_code=account.outlet_code,
            direction=direction.value,
            amount=amount,
            balance_before=balance_before,
            balance_after=account.balance,
            transaction_date=transaction_date,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            created_by=user_id,
        )
        self.db.add(entry)
        return entry

    def credit(self, account: FinancialAccount, amount: Decimal, transaction_date: date, user_id: str, **kwargs):
        return self._post(account, Direction.IN, amount, transaction_date, user_id, **kwargs)

    def debit(self, account: FinancialAccount, amount: Decimal, transaction_date: date, user_id: str, **kwargs):
        """Take money out; the balance never goes negative."""
        if account.balance < amount:
            raise InsufficientFundsError(account.id, amount, account.balance)
        return self._post(account, Direction.OUT, amount, transaction_date, user_id, **kwargs)

    async def create_general_transaction(
        self, ctx: OperationContext, data: GeneralTransactionCreate
    ) -> GeneralTransaction:
        """Record non-settlement money in (IN) or out (OUT) of an account."""
        amount = round_money(data.amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", "amount")
        transaction_date = data.transaction_date or date.today()
        async with atomic(self.db):
            await self.masterdata.get_transaction_category(data.category_id, data.transaction_type.value)
            account = await self.lock_account(ctx, data.financial_account_id)

            transaction = GeneralTransaction(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "GT", ctx.outlet_code),
                financial_account_id=account.id,
                transaction_type=data.transaction_type.value,
                category_id=data.category_id,
                amount=amount,
                transaction_date=transaction_date,
                description=data.description,
                created_by=ctx.user_id,
            )
            if data.transaction_type == Direction.OUT:
                if account.balance < amount:
                    logger.warning("Rejected %s OUT on account %s: insufficient funds", amount, account.id)
                    raise InsufficientFundsError(account.id, amount, account.balance)

            self.db.add(transaction)
            await flush_or_conflict(self.db, f"Document number {transaction.document_number} already exists")
            self._post(
                account,
                data.transaction_type,
                amount,
                transaction_date,
                ctx.user_id,
                reference_type="general_transaction",
                reference_id=transaction.id,
                description=data.description,
            )
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.ACCOUNT_TRANSACTION,
                entity_type="GeneralTransaction",
                entity_id=transaction.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=transaction.document_number,
                new_values={
                    "account_id": account.id,
                    "type": transaction.transaction_type,
                    "amount": str(amount),
                    "balance_after": str(account.balance),
                },
            )
            await record_event(
                self.db,
                EventType.GENERAL_TRANSACTION_POSTED,
                ctx.outlet_code,
                "GeneralTransaction",
                transaction.id,
                {
                    "document_number": transaction.document_number,
                    "account_id": account.id,
                    "transaction_type": transaction.transaction_type,
                    "amount": str(amount),
                },
            )

        logger.info("Posted %s %s on account %s", transaction.transaction_type, amount, account.id)
        return transaction

    async def get_account(self, ctx: OperationContext, account_id: int) -> FinancialAccount:
        result = await self.db.execute(
            select(FinancialAccount)
            .where(FinancialAccount.id == account_id, FinancialAccount.outlet_code == ctx.outlet_code)
            .execution_options(populate_existing=True)
        )
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundError("Financial account", account_id)
        return account

    async def list_accounts(self, ctx: OperationContext, include_inactive: bool = False) -> list[FinancialAccount]:
        query = select(FinancialAccount).where(FinancialAccount.outlet_code == ctx.outlet_code)
        if not include_inactive:
            query = query.where(FinancialAccount.is_active.is_(True))
        result = await self.db.execute(query.order_by(FinancialAccount.account_name))
        return list(result.scalars().all())

    async def list_general_transactions(
        self, ctx: OperationContext, date_from: date | None = None, date_to: date | None = None
    ) -> list[GeneralTransaction]:
        query = select(GeneralTransaction).where(GeneralTransaction.outlet_code == ctx.outlet_code)
        if date_from:
            query = query.where(GeneralTransaction.transaction_date >= date_from)
        if date_to:
            query = query.where(GeneralTransaction.transaction_date <= date_to)
        result = await self.db.execute(
            query.order_by(GeneralTransaction.transaction_date.desc(), GeneralTransaction.id.desc())
        )
        return list(result.scalars().all())


@dataclass
class _PlannedAllocation:
    invoice: Invoice
    remaining_before: Decimal
    discount_amount: Decimal
    cash_amount: Decimal


class SettlementService:
    """
    Supplier settlement (paydown).

    A single cash payment is allocated across open invoices of one supplier,
    each with an optional discount. For every invoice
    ``cash = max(0, remaining - discount)``; the account is debited once by the
    sum of cash amounts. Invoices, allocations and the debit commit together or
    not at all.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.accounts = FinancialAccountService(db)
        self.masterdata = MasterDataService(db)

    async def _plan(
        self, ctx: OperationContext, data: SettlementCreate, lock: bool
    ) -> tuple[FinancialAccount, list[_PlannedAllocation]]:
        if not data.allocations:
            raise ValidationError("Select at least one invoice to settle", "allocations")

        seen: set[int] = set()
        for idx, allocation in enumerate(data.allocations):
            if allocation.invoice_id in seen:
                raise ValidationError(
                    f"Invoice {allocation.invoice_id} is selected more than once", f"allocations.{idx}.invoice_id"
                )
            seen.add(allocation.invoice_id)
            if allocation.discount_amount < 0:
                raise ValidationError("Discount cannot be negative", f"allocations.{idx}.discount_amount")

        await self.masterdata.get_supplier(data.supplier_id)
        if lock:
            account = await self.accounts.lock_account(ctx, data.financial_account_id)
        else:
            account = await self.accounts.get_account(ctx, data.financial_account_id)
            if not account.is_active:
                raise ValidationError(f"Account '{account.account_name}' is inactive", "financial_account_id")

        query = (
            select(Invoice)
            .where(Invoice.id.in_(seen), Invoice.outlet_code == ctx.outlet_code)
            .order_by(Invoice.id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        invoices = {invoice.id: invoice for invoice in (await self.db.execute(query)).scalars().all()}

        planned = []
        for idx, allocation in enumerate(data.allocations):
            invoice = invoices.get(allocation.invoice_id)
            if invoice is None:
                raise ValidationError(f"Invoice {allocation.invoice_id} not found", f"allocations.{idx}.invoice_id")
            if invoice.supplier_id != data.supplier_id:
                raise ValidationError(
                    f"Invoice {invoice.document_number} belongs to another supplier",
                    f"allocations.{idx}.invoice_id",
                )
            if invoice.status not in OPEN_STATUSES:
                raise StateError(f"invoice {invoice.document_number}", invoice.status, "settle")

            remaining = invoice.remaining_balance
            discount = round_money(allocation.discount_amount)
            if discount > remaining:
                raise ValidationError(
                    f"Discount {discount} exceeds remaining balance {remaining} of invoice {invoice.document_number}",
                    f"allocations.{idx}.discount_amount",
                    details={"invoice_id": invoice.id},
                )
            cash = max(ZERO, round_money(remaining - discount))
            planned.append(_PlannedAllocation(invoice, remaining, discount, cash))
        return account, planned

    async def preview_settlement(self, ctx: OperationContext, data: SettlementCreate) -> SettlementPreview:
        """Validate and compute a settlement without writing anything."""
        account, planned = await self._plan(ctx, data, lock=False)
        total_cash = round_money(sum((p.cash_amount for p in planned), ZERO))
        total_discount = round_money(sum((p.discount_amount for p in planned), ZERO))
        return SettlementPreview(
            supplier_id=data.supplier_id,
            financial_account_id=account.id,
            total_cash_amount=total_cash,
            total_discount_amount=total_discount,
            balance_before=account.balance,
            balance_after=round_money(account.balance - total_cash),
            sufficient_funds=account.balance >= total_cash,
            lines=[
                SettlementPreviewLine(
                    invoice_id=p.invoice.id,
                    document_number=p.invoice.document_number,
                    remaining_balance=p.remaining_before,
                    discount_amount=p.discount_amount,
                    cash_amount=p.cash_amount,
                    remaining_after=round_money(p.remaining_before - p.cash_amount - p.discount_amount),
                )
                for p in planned
            ],
        )

    async def create_settlement(self, ctx: OperationContext, data: SettlementCreate) -> Payment:
        """
        Commit a settlement.

        With an idempotency key, replaying the same request returns the original
        payment instead of debiting the account twice.
        """
        if data.idempotency_key:
            existing = await self._find_by_key(ctx, data.idempotency_key)
            if existing is not None:
                logger.info("Replayed settlement %s for key %s", existing.document_number, data.idempotency_key)
                return existing

        payment_date = data.payment_date or date.today()
        try:
            async with atomic(self.db):
                account, planned = await self._plan(ctx, data, lock=True)
                total_cash = round_money(sum((p.cash_amount for p in planned), ZERO))
                total_discount = round_money(sum((p.discount_amount for p in planned), ZERO))
                if account.balance < total_cash:
                    logger.warning(
                        "Rejected settlement of %s from account %s: balance %s",
                        total_cash,
                        account.id,
                        account.balance,
                    )
                    raise InsufficientFundsError(account.id, total_cash, account.balance)

                payment = Payment(
                    outlet_code=ctx.outlet_code,
                    document_number=await get_document_number(self.db, "PAY", ctx.outlet_code),
                    supplier_id=data.supplier_id,
                    financial_account_id=account.id,
                    payment_date=payment_date,
                    total_cash_amount=total_cash,
                    total_discount_amount=total_discount,
                    notes=data.notes,
                    idempotency_key=data.idempotency_key,
                    created_by=ctx.user_id,
                    allocations=[
                        PaymentAllocation(
                            invoice_id=p.invoice.id,
                            remaining_before=p.remaining_before,
                            cash_amount=p.cash_amount,
                            discount_amount=p.discount_amount,
                        )
                        for p in planned
                    ],
                )
                self.db.add(payment)
                await flush_or_conflict(self.db, "Settlement conflicts with a concurrent payment")

                paid_invoices = []
                for p in planned:
                    invoice = p.invoice
                    invoice.remaining_balance = round_money(p.remaining_before - p.cash_amount - p.discount_amount)
                    invoice.amount_paid = round_money(invoice.amount_paid + p.cash_amount)
                    invoice.discount_total = round_money(invoice.discount_total + p.discount_amount)
                    if invoice.remaining_balance == 0:
                        invoice.status = InvoiceStatus.PAID.value
                        paid_invoices.append(invoice)
                    else:
                        invoice.status = InvoiceStatus.PARTIAL.value

                if total_cash > 0:
                    self.accounts.debit(
                        account,
                        total_cash,
                        payment_date,
                        ctx.user_id,
                        reference_type="payment",
                        reference_id=payment.id,
                        description=f"Settlement {payment.document_number}",
                    )
                await self.db.flush()

                await self.audit.log(
                    action=AuditAction.SETTLE_INVOICES,
                    entity_type="Payment",
                    entity_id=payment.id,
                    user_id=ctx.user_id,
                    outlet_code=ctx.outlet_code,
                    entity_identifier=payment.document_number,
                    new_values={
                        "account_id": account.id,
                        "total_cash_amount": str(total_cash),
                        "total_discount_amount": str(total_discount),
                        "balance_after": str(account.balance),
                        "invoices": [p.invoice.id for p in planned],
                    },
                )
                await record_event(
                    self.db,
                    EventType.SETTLEMENT_POSTED,
                    ctx.outlet_code,
                    "Payment",
                    payment.id,
                    {
                        "document_number": payment.document_number,
                        "supplier_id": payment.supplier_id,
                        "account_id": account.id,
                        "total_cash_amount": str(total_cash),
                    },
                )
                for invoice in paid_invoices:
                    await record_event(
                        self.db,
                        EventType.INVOICE_PAID,
                        ctx.outlet_code,
                        "Invoice",
                        invoice.id,
                        {"document_number": invoice.document_number, "payment_id": payment.id},
                    )
        except ConflictError:
            if data.idempotency_key:
                existing = await self._find_by_key(ctx, data.idempotency_key)
                if existing is not None:
                    return existing
            raise

        logger.info(
            "Posted settlement %s: %s cash across %s invoices",
            payment.document_number,
            total_cash,
            len(planned),
        )
        return await self.get_settlement(ctx, payment.id)

    async def _find_by_key(self, ctx: OperationContext, key: str) -> Payment | None:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.outlet_code == ctx.outlet_code, Payment.idempotency_key == key)
            .options(selectinload(Payment.allocations))
        )
        return result.scalar_one_or_none()

    async def get_settlement(self, ctx: OperationContext, payment_id: int) -> Payment:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.id == payment_id, Payment.outlet_code == ctx.outlet_code)
            .options(selectinload(Payment.allocations))
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment

    async def list_settlements(self, ctx: OperationContext, filters: PaymentFilters) -> tuple[list[Payment], int]:
        query = (
            select(Payment)
            .where(Payment.outlet_code == ctx.outlet_code)
            .options(selectinload(Payment.allocations))
        )
        if filters.supplier_id:
            query = query.where(Payment.supplier_id == filters.supplier_id)
        if filters.financial_account_id:
            query = query.where(Payment.financial_account_id == filters.financial_account_id)
        if filters.date_from:
            query = query.where(Payment.payment_date >= filters.date_from)
        if filters.date_to:
            query = query.where(Payment.payment_date <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(Payment.payment_date.desc(), Payment.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0


def aging_bucket_labels(bounds: list[int]) -> list[str]:
    labels = ["current"]
    lower = 1
    for bound in bounds:
        labels.append(f"{lower}-{bound}")
        lower = bound + 1
    labels.append(f"{lower - 1}+" if bounds else "overdue")
    return labels


def aging_bucket(days_past_due: int, bounds: list[int]) -> str:
    """Bucket label for an invoice that is `days_past_due` days late (<= 0 means not yet due)."""
    if days_past_due <= 0:
        return "current"
    lower = 1
    for bound in bounds:
        if days_past_due <= bound:
            return f"{lower}-{bound}"
        lower = bound + 1
    return f"{lower - 1}+" if bounds else "overdue"


class FinanceReportService:
    """Read-only finance reports."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def ap_aging(self, ctx: OperationContext, as_of: date | None = None) -> ApAgingReport:
        """Open supplier invoices by days past due."""
        as_of = as_of or date.today()
        bounds = settings.aging_buckets
        labels = aging_bucket_labels(bounds)

        result = await self.db.execute(
            select(Invoice, Supplier.name)
            .join(Supplier, Supplier.id == Invoice.supplier_id)
            .where(
                Invoice.outlet_code == ctx.outlet_code,
                Invoice.status.in_(OPEN_STATUSES),
                Invoice.remaining_balance > 0,
            )
            .order_by(Supplier.name, Invoice.due_date)
        )

        rows: dict[int, ApAgingRow] = {}
        totals = {label: ZERO for label in labels}
        for invoice, supplier_name in result.all():
            row = rows.get(invoice.supplier_id)
            if row is None:
                row = ApAgingRow(
                    supplier_id=invoice.supplier_id,
                    supplier_name=supplier_name,
                    invoice_count=0,
                    buckets={label: ZERO for label in labels},
                    total=ZERO,
                )
                rows[invoice.supplier_id] = row
            label = aging_bucket((as_of - invoice.due_date).days, bounds)
            row.invoice_count += 1
            row.buckets[label] = round_money(row.buckets[label] + invoice.remaining_balance)
            row.total = round_money(row.total + invoice.remaining_balance)
            totals[label] = round_money(totals[label] + invoice.remaining_balance)

        return ApAgingReport(
            as_of=as_of,
            bucket_labels=labels,
            rows=list(rows.values()),
            totals=totals,
            grand_total=round_money(sum(totals.values(), ZERO)),
        )

    async def cash_flow(
        self,
        ctx: OperationContext,
        date_from: date,
        date_to: date,
        account_id: int | None = None,
    ) -> CashFlowReport:
        """Account ledger rows of the outlet within a date range."""
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to", "date_from")
        query = select(AccountTransaction).where(
            AccountTransaction.outlet_code == ctx.outlet_code,
            AccountTransaction.transaction_date >= date_from,
            AccountTransaction.transaction_date <= date_to,
        )
        if account_id is not None:
            query = query.where(AccountTransaction.account_id == account_id)
        entries = list(
            (await self.db.execute(query.order_by(AccountTransaction.transaction_date, AccountTransaction.id)))
            .scalars()
            .all()
        )
        total_in = round_money(sum((e.amount for e in entries if e.direction == Direction.IN.value), ZERO))
        total_out = round_money(sum((e.amount for e in entries if e.direction == Direction.OUT.value), ZERO))
        return CashFlowReport(
            date_from=date_from,
            date_to=date_to,
            total_in=total_in,
            total_out=total_out,
            net=round_money(total_in - total_out),
            transactions=[AccountTransactionResponse.model_validate(e) for e in entries],
        )
