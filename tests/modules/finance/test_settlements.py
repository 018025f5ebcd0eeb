from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.events import DomainEvent
from outlet_erp.core.exceptions import InsufficientFundsError, StateError, ValidationError
from outlet_erp.modules.finance.models import AccountTransaction, Payment
from outlet_erp.modules.finance.schemas import PaymentFilters, SettlementAllocationCreate, SettlementCreate
from outlet_erp.modules.finance.service import FinancialAccountService, SettlementService
from outlet_erp.modules.invoices.models import InvoiceStatus
from outlet_erp.modules.invoices.service import InvoiceService


async def _invoice(ctx, master, workflow, qty: str = "100", price: str = "10", supplier_id=None, ref="SUP-INV-1"):
    po = await workflow.issued_po(ctx, [(master.cups_id, qty, price)], supplier_id=supplier_id)
    await workflow.receive(ctx, po, [qty])
    invoice = await workflow.invoice(ctx, po.id, ref=ref)
    return invoice.id


def _settlement(master, account_id: int, *allocations: tuple[int, str], key: str | None = None) -> SettlementCreate:
    return SettlementCreate(
        supplier_id=master.supplier_id,
        financial_account_id=account_id,
        idempotency_key=key,
        allocations=[
            SettlementAllocationCreate(invoice_id=invoice_id, discount_amount=Decimal(discount))
            for invoice_id, discount in allocations
        ],
    )


class TestSettlementService:
    """Tests for supplier settlement (paydown)."""

    async def test_settle_with_discount(self, db_session: AsyncSession, master, ctx, workflow):
        """1000 invoice with 100 discount costs 900 cash and is fully paid."""
        invoice_id = await _invoice(ctx, master, workflow)
        account = await workflow.account(ctx, "5000")

        payment = await SettlementService(db_session).create_settlement(
            ctx, _settlement(master, account.id, (invoice_id, "100"))
        )

        assert payment.document_number.startswith("PAY-OUT01-")
        assert payment.total_cash_amount == Decimal("900.00")
        assert payment.total_discount_amount == Decimal("100.00")
        allocation = payment.allocations[0]
        assert allocation.remaining_before == Decimal("1000.00")
        assert allocation.cash_amount == Decimal("900.00")

        account = await FinancialAccountService(db_session).get_account(ctx, account.id)
        assert account.balance == Decimal("4100.00")
        invoice = await InvoiceService(db_session).get_invoice(ctx, invoice_id)
        assert invoice.status == InvoiceStatus.PAID.value
        assert invoice.remaining_balance == Decimal("0.00")
        assert invoice.amount_paid == Decimal("900.00")
        assert invoice.discount_total == Decimal("100.00")

    async def test_discount_above_remaining_changes_nothing(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "5000")).id

        with pytest.raises(ValidationError) as exc:
            await SettlementService(db_session).create_settlement(
                ctx, _settlement(master, account_id, (invoice_id, "1200"))
            )
        assert exc.value.field == "allocations.0.discount_amount"

        account = await FinancialAccountService(db_session).get_account(ctx, account_id)
        assert account.balance == Decimal("5000.00")
        invoice = await InvoiceService(db_session).get_invoice(ctx, invoice_id)
        assert invoice.status == InvoiceStatus.UNPAID.value
        assert invoice.remaining_balance == Decimal("1000.00")
        assert await db_session.scalar(select(func.count()).select_from(Payment)) == 0

    async def test_insufficient_funds(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "500")).id

        with pytest.raises(InsufficientFundsError) as exc:
            await SettlementService(db_session).create_settlement(
                ctx, _settlement(master, account_id, (invoice_id, "0"))
            )
        assert exc.value.status_code == 402

        account = await FinancialAccountService(db_session).get_account(ctx, account_id)
        assert account.balance == Decimal("500.00")
        invoice = await InvoiceService(db_session).get_invoice(ctx, invoice_id)
        assert invoice.status == InvoiceStatus.UNPAID.value

    async def test_one_debit_for_many_invoices(self, db_session: AsyncSession, master, ctx, workflow):
        first = await _invoice(ctx, master, workflow, qty="100", price="10", ref="A")
        second = await _invoice(ctx, master, workflow, qty="50", price="10", ref="B")
        account_id = (await workflow.account(ctx, "2000")).id

        payment = await SettlementService(db_session).create_settlement(
            ctx, _settlement(master, account_id, (first, "0"), (second, "20"))
        )

        assert payment.total_cash_amount == Decimal("1480.00")
        debits = (
            await db_session.execute(select(AccountTransaction).where(AccountTransaction.reference_type == "payment"))
        ).scalars().all()
        assert len(debits) == 1
        assert debits[0].amount == Decimal("1480.00")
        assert debits[0].balance_after == Decimal("520.00")
        assert debits[0].reference_id == payment.id

        event_types = (
            await db_session.execute(select(DomainEvent.event_type).order_by(DomainEvent.id))
        ).scalars().all()
        assert event_types.count("SettlementPosted") == 1
        assert event_types.count("InvoicePaid") == 2

    async def test_full_discount_needs_no_cash(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow, qty="10", price="10")
        account_id = (await workflow.account(ctx, "0")).id

        payment = await SettlementService(db_session).create_settlement(
            ctx, _settlement(master, account_id, (invoice_id, "100"))
        )

        assert payment.total_cash_amount == Decimal("0.00")
        invoice = await InvoiceService(db_session).get_invoice(ctx, invoice_id)
        assert invoice.status == InvoiceStatus.PAID.value

    async def test_idempotency_key_replays_original(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "5000")).id
        service = SettlementService(db_session)

        first = await service.create_settlement(ctx, _settlement(master, account_id, (invoice_id, "100"), key="k-1"))
        replay = await service.create_settlement(ctx, _settlement(master, account_id, (invoice_id, "100"), key="k-1"))

        assert replay.id == first.id
        account = await FinancialAccountService(db_session).get_account(ctx, account_id)
        assert account.balance == Decimal("4100.00")
        assert await db_session.scalar(select(func.count()).select_from(Payment)) == 1

    async def test_paid_invoice_cannot_be_settled_again(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "5000")).id
        service = SettlementService(db_session)
        await service.create_settlement(ctx, _settlement(master, account_id, (invoice_id, "0")))

        with pytest.raises(StateError):
            await service.create_settlement(ctx, _settlement(master, account_id, (invoice_id, "0")))

    async def test_invoice_of_other_supplier(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow, supplier_id=master.other_supplier_id)
        account_id = (await workflow.account(ctx, "5000")).id

        with pytest.raises(ValidationError) as exc:
            await SettlementService(db_session).create_settlement(
                ctx, _settlement(master, account_id, (invoice_id, "0"))
            )
        assert exc.value.field == "allocations.0.invoice_id"

    async def test_duplicate_and_empty_selection(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "5000")).id
        service = SettlementService(db_session)

        with pytest.raises(ValidationError) as exc:
            await service.create_settlement(ctx, _settlement(master, account_id, (invoice_id, "0"), (invoice_id, "0")))
        assert exc.value.field == "allocations.1.invoice_id"

        with pytest.raises(ValidationError) as exc:
            await service.create_settlement(ctx, _settlement(master, account_id))
        assert exc.value.field == "allocations"

    async def test_preview_writes_nothing(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "500")).id

        preview = await SettlementService(db_session).preview_settlement(
            ctx, _settlement(master, account_id, (invoice_id, "100"))
        )

        assert preview.total_cash_amount == Decimal("900.00")
        assert preview.sufficient_funds is False
        assert preview.balance_after == Decimal("-400.00")
        assert preview.lines[0].remaining_after == Decimal("0.00")
        assert await db_session.scalar(select(func.count()).select_from(Payment)) == 0

    async def test_list_settlements(self, db_session: AsyncSession, master, ctx, workflow):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "5000")).id
        service = SettlementService(db_session)
        await service.create_settlement(ctx, _settlement(master, account_id, (invoice_id, "0")))

        payments, total = await service.list_settlements(ctx, PaymentFilters(supplier_id=master.supplier_id))

        assert total == 1
        assert payments[0].allocations[0].invoice_id == invoice_id


class TestSettlementEndpoints:
    async def test_insufficient_funds_is_402(self, client: AsyncClient, master, ctx, workflow, auth_headers):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "10")).id

        response = await client.post(
            "/api/v1/outlets/OUT01/finance/settlements",
            headers=auth_headers(),
            json={
                "supplier_id": master.supplier_id,
                "financial_account_id": account_id,
                "allocations": [{"invoice_id": invoice_id, "discount_amount": "0"}],
            },
        )

        assert response.status_code == 402
        assert response.json()["details"]["required"] == "1000.00"

    async def test_settle_via_api(self, client: AsyncClient, master, ctx, workflow, auth_headers):
        invoice_id = await _invoice(ctx, master, workflow)
        account_id = (await workflow.account(ctx, "5000")).id

        response = await client.post(
            "/api/v1/outlets/OUT01/finance/settlements",
            headers=auth_headers(),
            json={
                "supplier_id": master.supplier_id,
                "financial_account_id": account_id,
                "idempotency_key": "api-1",
                "allocations": [{"invoice_id": invoice_id, "discount_amount": "100"}],
            },
        )

        assert response.status_code == 201
        assert Decimal(response.json()["data"]["total_cash_amount"]) == Decimal("900")
