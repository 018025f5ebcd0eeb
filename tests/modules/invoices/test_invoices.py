from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.events import DomainEvent
from outlet_erp.core.exceptions import ConflictError, StateError, ValidationError
from outlet_erp.modules.invoices.models import Invoice, InvoiceStatus
from outlet_erp.modules.invoices.schemas import InvoiceFilters, InvoiceGenerate
from outlet_erp.modules.invoices.service import InvoiceService
from outlet_erp.modules.procurement.models import PurchaseOrder, PurchaseOrderStatus
from outlet_erp.modules.procurement.service import GoodsReceiptService, PurchaseOrderService


class TestInvoiceService:
    """Tests for invoice generation from received quantities."""

    async def test_generate_from_completed_po(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.stock(ctx, master.cups_id, "100", "10")

        invoice = await workflow.invoice(ctx, po.id)

        assert invoice.document_number.startswith("INV-OUT01-")
        assert invoice.total_amount == Decimal("1000.00")
        assert invoice.remaining_balance == Decimal("1000.00")
        assert invoice.status == InvoiceStatus.UNPAID.value
        assert invoice.supplier_id == master.supplier_id
        po = await PurchaseOrderService(db_session).get_purchase_order(ctx, po.id)
        assert po.status == PurchaseOrderStatus.INVOICED.value

        event_types = (await db_session.execute(select(DomainEvent.event_type))).scalars().all()
        assert "InvoiceGenerated" in event_types

    async def test_second_generation_conflicts(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.stock(ctx, master.cups_id, "100", "10")
        await workflow.invoice(ctx, po.id)

        with pytest.raises(ConflictError):
            await workflow.invoice(ctx, po.id, ref="SUP-INV-2")

        invoices, total = await InvoiceService(db_session).list_invoices(ctx, InvoiceFilters())
        assert total == 1

    async def test_unique_po_constraint_backs_duplicate_check(
        self, db_session: AsyncSession, master, ctx, workflow, monkeypatch
    ):
        """A writer that slips past the duplicate check still hits the one-invoice-per-PO constraint."""
        po = await workflow.stock(ctx, master.cups_id, "100", "10")
        po_id = po.id
        await workflow.invoice(ctx, po_id)
        await db_session.execute(
            update(PurchaseOrder)
            .where(PurchaseOrder.id == po_id)
            .values(status=PurchaseOrderStatus.COMPLETED.value)
        )
        await db_session.commit()

        async def no_existing_invoice(self, po_id):
            return None

        monkeypatch.setattr(InvoiceService, "existing_invoice_number", no_existing_invoice)

        with pytest.raises(ConflictError) as exc:
            await workflow.invoice(ctx, po_id, ref="SUP-INV-2")

        assert "generated concurrently" in exc.value.message
        assert exc.value.details["retryable"] is True
        assert await db_session.scalar(select(func.count()).select_from(Invoice)) == 1
        po = await PurchaseOrderService(db_session).get_purchase_order(ctx, po_id)
        assert po.status == PurchaseOrderStatus.COMPLETED.value

    async def test_total_uses_received_not_ordered(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10"), (master.milk_id, "3", "120000")])
        await workflow.receive(ctx, po, ["60", "1"])

        invoice = await workflow.invoice(ctx, po.id)

        assert invoice.total_amount == Decimal("120600.00")
        assert sorted((line.item_id, line.qty_received) for line in invoice.lines) == sorted(
            [(master.cups_id, Decimal("60")), (master.milk_id, Decimal("1"))]
        )

    async def test_invoiced_po_takes_no_more_receipts(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10")])
        await workflow.receive(ctx, po, ["60"])
        await workflow.invoice(ctx, po.id)

        with pytest.raises(StateError):
            await GoodsReceiptService(db_session).receive_remaining(ctx, po.id)

    async def test_unreceived_po_cannot_be_invoiced(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10")])

        with pytest.raises(StateError):
            await workflow.invoice(ctx, po.id)

    async def test_due_date_before_invoice_date(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.stock(ctx, master.cups_id, "10", "10")

        with pytest.raises(ValidationError) as exc:
            await InvoiceService(db_session).generate_invoice(
                ctx,
                InvoiceGenerate(
                    po_id=po.id,
                    supplier_invoice_ref="SUP-1",
                    invoice_date=date.today(),
                    due_date=date.today() - timedelta(days=1),
                ),
            )
        assert exc.value.field == "due_date"

    async def test_blank_supplier_reference(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.stock(ctx, master.cups_id, "10", "10")

        with pytest.raises(ValidationError) as exc:
            await InvoiceService(db_session).generate_invoice(
                ctx, InvoiceGenerate(po_id=po.id, supplier_invoice_ref="   ", due_date=date.today())
            )
        assert exc.value.field == "supplier_invoice_ref"

    async def test_open_invoices_oldest_due_first(self, db_session: AsyncSession, master, ctx, workflow):
        later = await workflow.stock(ctx, master.cups_id, "10", "10")
        sooner = await workflow.stock(ctx, master.cups_id, "5", "10")
        await workflow.invoice(ctx, later.id, ref="A", due_in_days=30)
        await workflow.invoice(ctx, sooner.id, ref="B", due_in_days=7)

        open_invoices = await InvoiceService(db_session).list_open_invoices(ctx, master.supplier_id)

        assert [invoice.supplier_invoice_ref for invoice in open_invoices] == ["B", "A"]


class TestInvoiceEndpoints:
    async def test_generate_and_duplicate(self, client: AsyncClient, master, ctx, workflow, auth_headers):
        po = await workflow.stock(ctx, master.cups_id, "100", "10")
        payload = {
            "po_id": po.id,
            "supplier_invoice_ref": "SUP-77",
            "due_date": (date.today() + timedelta(days=14)).isoformat(),
        }

        created = await client.post("/api/v1/outlets/OUT01/invoices", headers=auth_headers(), json=payload)
        assert created.status_code == 201
        assert Decimal(created.json()["data"]["total_amount"]) == Decimal("1000")

        duplicate = await client.post("/api/v1/outlets/OUT01/invoices", headers=auth_headers(), json=payload)
        assert duplicate.status_code == 409
        assert duplicate.json()["details"]["retryable"] is True
