"""Service for generating and querying supplier invoices."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from outlet_erp.core.audit import AuditAction, AuditService
from outlet_erp.core.context import OperationContext
from outlet_erp.core.database import atomic, flush_or_conflict
from outlet_erp.core.documents import get_document_number
from outlet_erp.core.events import EventType, record_event
from outlet_erp.core.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from outlet_erp.modules.invoices.models import OPEN_STATUSES, Invoice, InvoiceLine, InvoiceStatus
from outlet_erp.modules.invoices.schemas import InvoiceFilters, InvoiceGenerate
from outlet_erp.modules.procurement.models import PurchaseOrderStatus
from outlet_erp.modules.procurement.service import PurchaseOrderService
from outlet_erp.shared.utils.money import round_money

logger = logging.getLogger(__name__)

INVOICEABLE_STATUSES = (PurchaseOrderStatus.PARTIAL.value, PurchaseOrderStatus.COMPLETED.value)


class InvoiceService:
    """Turns the received quantities of a purchase order into a payable invoice."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.po_service = PurchaseOrderService(db)

    async def generate_invoice(self, ctx: OperationContext, data: InvoiceGenerate) -> Invoice:
        """
        Generate the single invoice of a PARTIAL/COMPLETED purchase order.

        The total is computed from received quantities, never ordered ones, and
        the purchase order moves to INVOICED so no further receipts are possible.
        """
        if not data.supplier_invoice_ref.strip():
            raise ValidationError("Supplier invoice reference is required", "supplier_invoice_ref")
        invoice_date = data.invoice_date or date.today()
        if data.due_date < invoice_date:
            raise ValidationError("Due date cannot be before the invoice date", "due_date")

        async with atomic(self.db):
            purchase_order = await self.po_service.lock_purchase_order(ctx, data.po_id)

            existing = await self.existing_invoice_number(purchase_order.id)
            if existing:
                raise ConflictError(
                    f"Invoice {existing} already exists for purchase order {purchase_order.document_number}",
                    {"po_id": purchase_order.id, "invoice": existing},
                )
            if purchase_order.status not in INVOICEABLE_STATUSES:
                raise StateError("purchase order", purchase_order.status, "invoice")

            lines = [
                InvoiceLine(
                    po_item_id=item.id,
                    item_id=item.item_id,
                    qty_received=item.qty_received,
                    price_per_unit=item.price_per_unit,
                    line_total=round_money(item.qty_received * item.price_per_unit),
                )
                for item in purchase_order.items
                if item.qty_received > 0
            ]
            total = round_money(sum((line.line_total for line in lines), Decimal("0")))

            invoice = Invoice(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "INV", ctx.outlet_code),
                supplier_id=purchase_order.supplier_id,
                po_id=purchase_order.id,
                supplier_invoice_ref=data.supplier_invoice_ref,
                invoice_date=invoice_date,
                due_date=data.due_date,
                total_amount=total,
                amount_paid=Decimal("0.00"),
                discount_total=Decimal("0.00"),
                remaining_balance=total,
                status=InvoiceStatus.UNPAID.value,
                notes=data.notes,
                created_by=ctx.user_id,
                lines=lines,
            )
            self.db.add(invoice)
            await flush_or_conflict(
                self.db, f"Invoice for purchase order {purchase_order.document_number} was generated concurrently"
            )

            old_status = purchase_order.status
            purchase_order.status = PurchaseOrderStatus.INVOICED.value
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.GENERATE_INVOICE,
                entity_type="Invoice",
                entity_id=invoice.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=invoice.document_number,
                old_values={"po_status": old_status},
                new_values={"po_status": purchase_order.status, "total_amount": str(total)},
            )
            await record_event(
                self.db,
                EventType.INVOICE_GENERATED,
                ctx.outlet_code,
                "Invoice",
                invoice.id,
                {
                    "document_number": invoice.document_number,
                    "po_id": purchase_order.id,
                    "supplier_id": invoice.supplier_id,
                    "total_amount": str(total),
                    "due_date": invoice.due_date.isoformat(),
                },
            )

        logger.info("Generated invoice %s for %s: %s", invoice.document_number, purchase_order.document_number, total)
        return await self.get_invoice(ctx, invoice.id)

    async def existing_invoice_number(self, po_id: int) -> str | None:
        """Document number of the invoice already generated for a purchase order, if any."""
        return await self.db.scalar(select(Invoice.document_number).where(Invoice.po_id == po_id))

    async def get_invoice(self, ctx: OperationContext, invoice_id: int) -> Invoice:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id, Invoice.outlet_code == ctx.outlet_code)
            .options(selectinload(Invoice.lines))
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def list_invoices(self, ctx: OperationContext, filters: InvoiceFilters) -> tuple[list[Invoice], int]:
        query = (
            select(Invoice)
            .where(Invoice.outlet_code == ctx.outlet_code)
            .options(selectinload(Invoice.lines))
        )
        if filters.status:
            query = query.where(Invoice.status == filters.status)
        if filters.supplier_id:
            query = query.where(Invoice.supplier_id == filters.supplier_id)
        if filters.due_before:
            query = query.where(Invoice.due_date <= filters.due_before)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def list_open_invoices(self, ctx: OperationContext, supplier_id: int) -> list[Invoice]:
        """Unpaid and partially paid invoices of a supplier, oldest due first."""
        result = await self.db.execute(
            select(Invoice)
            .where(
                Invoice.outlet_code == ctx.outlet_code,
                Invoice.supplier_id == supplier_id,
                Invoice.status.in_(OPEN_STATUSES),
                Invoice.remaining_balance > 0,
            )
            .options(selectinload(Invoice.lines))
            .order_by(Invoice.due_date, Invoice.id)
        )
        return list(result.scalars().all())
