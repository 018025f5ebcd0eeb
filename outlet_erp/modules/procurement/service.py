"""Service for Procurement module: purchase orders and goods receipts."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from outlet_erp.core.audit import AuditAction, AuditService
from outlet_erp.core.context import OperationContext
from outlet_erp.core.database import atomic, flush_or_conflict
from outlet_erp.core.documents import get_document_number
from outlet_erp.core.events import EventType, record_event
from outlet_erp.core.exceptions import NotFoundError, StateError, ValidationError
from outlet_erp.modules.inventory.service import InventoryService
from outlet_erp.modules.masterdata.service import MasterDataService
from outlet_erp.modules.procurement.models import (
    EDITABLE_STATUSES,
    RECEIVABLE_STATUSES,
    GoodsReceipt,
    GoodsReceiptItem,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from outlet_erp.modules.procurement.schemas import (
    GoodsReceiptCreate,
    GoodsReceiptFilters,
    GoodsReceiptItemCreate,
    GoodsReceiptPreview,
    GoodsReceiptPreviewLine,
    OutstandingItemResponse,
    PurchaseOrderCreate,
    PurchaseOrderFilters,
    PurchaseOrderItemCreate,
    PurchaseOrderUpdate,
    ReceiveRemainingRequest,
)
from outlet_erp.shared.utils.money import round_money, round_quantity, unit_cost_from_purchase

logger = logging.getLogger(__name__)


def derive_receipt_status(items: list[PurchaseOrderItem]) -> PurchaseOrderStatus:
    """PO status as a pure function of per-item remaining quantities."""
    if items and all(item.qty_remaining <= 0 for item in items):
        return PurchaseOrderStatus.COMPLETED
    if any(item.qty_received > 0 for item in items):
        return PurchaseOrderStatus.PARTIAL
    return PurchaseOrderStatus.ISSUED


class PurchaseOrderService:
    """Service for managing purchase orders."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.masterdata = MasterDataService(db)

    async def _build_items(self, items: list[PurchaseOrderItemCreate]) -> list[PurchaseOrderItem]:
        """Validate ordered lines and resolve defaults from the item master. No writes."""
        if not items:
            raise ValidationError("Purchase order must have at least one item", "items")
        for idx, line in enumerate(items):
            if round_quantity(line.qty_ordered) <= 0:
                raise ValidationError("Ordered quantity must be greater than 0", f"items.{idx}.qty_ordered")

        masters = await self.masterdata.resolve_items([line.item_id for line in items], "items")

        po_items = []
        for index, line in enumerate(items, start=1):
            master = masters[line.item_id]
            qty = round_quantity(line.qty_ordered)
            price = round_money(line.price_per_unit if line.price_per_unit is not None else master.buy_price)
            po_items.append(
                PurchaseOrderItem(
                    item_id=master.id,
                    qty_ordered=qty,
                    uom_purchase=line.uom_purchase or master.purchase_unit,
                    conversion_rate=line.conversion_rate or master.conversion_rate,
                    price_per_unit=price,
                    line_total=round_money(qty * price),
                    qty_received=Decimal("0"),
                    line_order=index,
                )
            )
        return po_items

    @staticmethod
    def _recalculate_total(purchase_order: PurchaseOrder) -> None:
        purchase_order.total_amount = round_money(
            sum((item.line_total for item in purchase_order.items), Decimal("0"))
        )

    async def create_purchase_order(self, ctx: OperationContext, data: PurchaseOrderCreate) -> PurchaseOrder:
        """Create a purchase order in DRAFT (or ISSUED when `issue` is set)."""
        async with atomic(self.db):
            await self.masterdata.get_outlet(ctx.outlet_code)
            await self.masterdata.get_active_supplier(data.supplier_id)
            po_items = await self._build_items(data.items)

            status = PurchaseOrderStatus.ISSUED if data.issue else PurchaseOrderStatus.DRAFT
            purchase_order = PurchaseOrder(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "PO", ctx.outlet_code),
                supplier_id=data.supplier_id,
                status=status.value,
                order_date=data.order_date or date.today(),
                expected_delivery_date=data.expected_delivery_date,
                reference_number=data.reference_number,
                notes=data.notes,
                created_by=ctx.user_id,
                items=po_items,
            )
            self._recalculate_total(purchase_order)
            self.db.add(purchase_order)
            await flush_or_conflict(
                self.db, f"Document number {purchase_order.document_number} already exists"
            )

            await self.audit.log(
                action=AuditAction.CREATE,
                entity_type="PurchaseOrder",
                entity_id=purchase_order.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=purchase_order.document_number,
                new_values={"status": purchase_order.status, "total_amount": str(purchase_order.total_amount)},
            )
            if status == PurchaseOrderStatus.ISSUED:
                await self._record_issued(purchase_order)

        logger.info("Created purchase order %s (%s)", purchase_order.document_number, purchase_order.status)
        return await self.get_purchase_order(ctx, purchase_order.id)

    async def update_purchase_order(
        self, ctx: OperationContext, po_id: int, data: PurchaseOrderUpdate
    ) -> PurchaseOrder:
        """Edit header and items of a DRAFT/ISSUED purchase order."""
        async with atomic(self.db):
            purchase_order = await self.lock_purchase_order(ctx, po_id)
            if purchase_order.status not in EDITABLE_STATUSES:
                raise StateError("purchase order", purchase_order.status, "update")

            old_values = {
                "supplier_id": purchase_order.supplier_id,
                "total_amount": str(purchase_order.total_amount),
            }
            update_data = data.model_dump(exclude_unset=True, exclude={"items"})
            if update_data.get("supplier_id") is not None:
                await self.masterdata.get_active_supplier(update_data["supplier_id"])
            elif "supplier_id" in update_data:
                update_data.pop("supplier_id")

            new_items = await self._build_items(data.items) if data.items is not None else None

            for field, value in update_data.items():
                setattr(purchase_order, field, value)
            if new_items is not None:
                purchase_order.items = new_items
            self._recalculate_total(purchase_order)
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.UPDATE,
                entity_type="PurchaseOrder",
                entity_id=purchase_order.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=purchase_order.document_number,
                old_values=old_values,
                new_values={
                    "supplier_id": purchase_order.supplier_id,
                    "total_amount": str(purchase_order.total_amount),
                },
            )

        return await self.get_purchase_order(ctx, po_id)

    async def issue_purchase_order(self, ctx: OperationContext, po_id: int) -> PurchaseOrder:
        """DRAFT -> ISSUED. Makes the PO eligible for receiving."""
        async with atomic(self.db):
            purchase_order = await self.lock_purchase_order(ctx, po_id)
            if purchase_order.status != PurchaseOrderStatus.DRAFT.value:
                raise StateError("purchase order", purchase_order.status, "issue")
            purchase_order.status = PurchaseOrderStatus.ISSUED.value
            await self.db.flush()
            await self.audit.log(
                action=AuditAction.ISSUE,
                entity_type="PurchaseOrder",
                entity_id=purchase_order.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=purchase_order.document_number,
                old_values={"status": PurchaseOrderStatus.DRAFT.value},
                new_values={"status": purchase_order.status},
            )
            await self._record_issued(purchase_order)

        logger.info("Issued purchase order %s", purchase_order.document_number)
        return await self.get_purchase_order(ctx, po_id)

    async def cancel_purchase_order(self, ctx: OperationContext, po_id: int, reason: str) -> PurchaseOrder:
        async with atomic(self.db):
            purchase_order = await self.lock_purchase_order(ctx, po_id)
            if purchase_order.status not in EDITABLE_STATUSES:
                raise StateError("purchase order", purchase_order.status, "cancel")
            old_status = purchase_order.status
            purchase_order.status = PurchaseOrderStatus.CANCELLED.value
            purchase_order.cancelled_reason = reason
            await self.db.flush()
            await self.audit.log(
                action=AuditAction.CANCEL,
                entity_type="PurchaseOrder",
                entity_id=purchase_order.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=purchase_order.document_number,
                old_values={"status": old_status},
                new_values={"status": purchase_order.status},
                comment=reason,
            )
            await record_event(
                self.db,
                EventType.PURCHASE_ORDER_CANCELLED,
                ctx.outlet_code,
                "PurchaseOrder",
                purchase_order.id,
                {"document_number": purchase_order.document_number, "reason": reason},
            )

        return await self.get_purchase_order(ctx, po_id)

    async def _record_issued(self, purchase_order: PurchaseOrder) -> None:
        await record_event(
            self.db,
            EventType.PURCHASE_ORDER_ISSUED,
            purchase_order.outlet_code,
            "PurchaseOrder",
            purchase_order.id,
            {
                "document_number": purchase_order.document_number,
                "supplier_id": purchase_order.supplier_id,
                "total_amount": str(purchase_order.total_amount),
            },
        )

    async def lock_purchase_order(self, ctx: OperationContext, po_id: int) -> PurchaseOrder:
        """Load a purchase order of the caller's outlet with its row locked for the transaction."""
        result = await self.db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == po_id, PurchaseOrder.outlet_code == ctx.outlet_code)
            .options(selectinload(PurchaseOrder.items))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        purchase_order = result.scalar_one_or_none()
        if not purchase_order:
            raise NotFoundError("Purchase order", po_id)
        return purchase_order

    async def get_purchase_order(self, ctx: OperationContext, po_id: int) -> PurchaseOrder:
        result = await self.db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == po_id, PurchaseOrder.outlet_code == ctx.outlet_code)
            .options(selectinload(PurchaseOrder.items))
            .execution_options(populate_existing=True)
        )
        purchase_order = result.scalar_one_or_none()
        if not purchase_order:
            raise NotFoundError("Purchase order", po_id)
        return purchase_order

    async def list_purchase_orders(
        self, ctx: OperationContext, filters: PurchaseOrderFilters
    ) -> tuple[list[PurchaseOrder], int]:
        """List purchase orders with filters."""
        query = (
            select(PurchaseOrder)
            .where(PurchaseOrder.outlet_code == ctx.outlet_code)
            .options(selectinload(PurchaseOrder.items))
        )
        if filters.status:
            query = query.where(PurchaseOrder.status == filters.status)
        if filters.supplier_id:
            query = query.where(PurchaseOrder.supplier_id == filters.supplier_id)
        if filters.date_from:
            query = query.where(PurchaseOrder.order_date >= filters.date_from)
        if filters.date_to:
            query = query.where(PurchaseOrder.order_date <= filters.date_to)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.where(
                or_(
                    PurchaseOrder.document_number.ilike(pattern),
                    PurchaseOrder.reference_number.ilike(pattern),
                )
            )

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def list_outstanding_items(
        self, ctx: OperationContext, supplier_id: int | None = None
    ) -> list[OutstandingItemResponse]:
        """Lines of issued/partial purchase orders that still wait for delivery."""
        query = (
            select(PurchaseOrder, PurchaseOrderItem)
            .join(PurchaseOrderItem, PurchaseOrderItem.po_id == PurchaseOrder.id)
            .where(
                PurchaseOrder.outlet_code == ctx.outlet_code,
                PurchaseOrder.status.in_(RECEIVABLE_STATUSES),
                PurchaseOrderItem.qty_received < PurchaseOrderItem.qty_ordered,
            )
            .order_by(PurchaseOrder.expected_delivery_date, PurchaseOrder.id, PurchaseOrderItem.line_order)
        )
        if supplier_id:
            query = query.where(PurchaseOrder.supplier_id == supplier_id)

        rows = (await self.db.execute(query)).all()
        return [
            OutstandingItemResponse(
                po_id=po.id,
                document_number=po.document_number,
                supplier_id=po.supplier_id,
                expected_delivery_date=po.expected_delivery_date,
                po_item_id=item.id,
                item_id=item.item_id,
                qty_ordered=item.qty_ordered,
                qty_received=item.qty_received,
                qty_remaining=item.qty_remaining,
                uom_purchase=item.uom_purchase,
            )
            for po, item in rows
        ]


class GoodsReceiptService:
    """Receives delivered quantities against purchase orders and posts them to inventory."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.inventory = InventoryService(db)
        self.po_service = PurchaseOrderService(db)

    @staticmethod
    def _ensure_receivable(purchase_order: PurchaseOrder) -> None:
        if purchase_order.status not in RECEIVABLE_STATUSES:
            raise StateError("purchase order", purchase_order.status, "receive goods against")

    @staticmethod
    def _plan_receipt(
        purchase_order: PurchaseOrder, lines: list[GoodsReceiptItemCreate]
    ) -> list[tuple[PurchaseOrderItem, Decimal]]:
        """
        Validate every line against current remaining quantities before any write.

        Returns (po_item, qty) for lines with qty > 0. The whole receipt is
        rejected if any single line over-receives.
        """
        po_items = {item.id: item for item in purchase_order.items}
        seen: set[int] = set()
        planned = []
        for idx, line in enumerate(lines):
            po_item = po_items.get(line.po_item_id)
            if po_item is None:
                raise ValidationError(
                    f"Item line {line.po_item_id} does not belong to purchase order "
                    f"{purchase_order.document_number}",
                    f"items.{idx}.po_item_id",
                )
            if line.po_item_id in seen:
                raise ValidationError(
                    f"Item line {line.po_item_id} appears more than once", f"items.{idx}.po_item_id"
                )
            seen.add(line.po_item_id)

            qty = round_quantity(line.qty_received)
            if qty < 0:
                raise ValidationError("Received quantity cannot be negative", f"items.{idx}.qty_received")
            if qty > po_item.qty_remaining:
                raise ValidationError(
                    f"Quantity {qty} exceeds remaining {po_item.qty_remaining} "
                    f"for item line {po_item.id}",
                    f"items.{idx}.qty_received",
                )
            if qty > 0:
                planned.append((po_item, qty))

        if not planned:
            raise ValidationError("At least one line must have qty_received > 0", "items")
        return planned

    async def preview_goods_receipt(self, ctx: OperationContext, data: GoodsReceiptCreate) -> GoodsReceiptPreview:
        """Validate a receipt and show its effect without writing anything."""
        purchase_order = await self.po_service.get_purchase_order(ctx, data.po_id)
        self._ensure_receivable(purchase_order)
        planned = dict((po_item.id, qty) for po_item, qty in self._plan_receipt(purchase_order, data.items))

        lines = []
        for item in purchase_order.items:
            qty = planned.get(item.id, Decimal("0"))
            lines.append(
                GoodsReceiptPreviewLine(
                    po_item_id=item.id,
                    item_id=item.item_id,
                    qty_ordered=item.qty_ordered,
                    qty_received_before=item.qty_received,
                    qty_to_receive=qty,
                    qty_remaining_after=item.qty_remaining - qty,
                    base_qty=round_quantity(qty * item.conversion_rate),
                )
            )
        all_done = all(line.qty_remaining_after <= 0 for line in lines)
        return GoodsReceiptPreview(
            po_id=purchase_order.id,
            po_status_before=purchase_order.status,
            po_status_after=(
                PurchaseOrderStatus.COMPLETED.value if all_done else PurchaseOrderStatus.PARTIAL.value
            ),
            lines=lines,
        )

    async def create_goods_receipt(self, ctx: OperationContext, data: GoodsReceiptCreate) -> GoodsReceipt:
        """Post a goods receipt: all lines or none."""
        async with atomic(self.db):
            purchase_order = await self.po_service.lock_purchase_order(ctx, data.po_id)
            self._ensure_receivable(purchase_order)
            planned = self._plan_receipt(purchase_order, data.items)
            receipt = await self._post_receipt(ctx, purchase_order, planned, data.supplier_delivery_note, data.notes)

        logger.info(
            "Posted goods receipt %s for %s (%s)",
            receipt.document_number,
            purchase_order.document_number,
            purchase_order.status,
        )
        return await self.get_goods_receipt(ctx, receipt.id)

    async def receive_remaining(
        self, ctx: OperationContext, po_id: int, data: ReceiveRemainingRequest | None = None
    ) -> GoodsReceipt | None:
        """
        Receive every line's current remaining quantity.

        Returns None without writing when nothing remains, so repeating the call
        is harmless.
        """
        data = data or ReceiveRemainingRequest()
        async with atomic(self.db):
            purchase_order = await self.po_service.lock_purchase_order(ctx, po_id)
            nothing_left = all(item.qty_remaining <= 0 for item in purchase_order.items)
            if nothing_left and purchase_order.status in (
                PurchaseOrderStatus.COMPLETED.value,
                PurchaseOrderStatus.INVOICED.value,
            ):
                return None
            self._ensure_receivable(purchase_order)
            planned = [(item, item.qty_remaining) for item in purchase_order.items if item.qty_remaining > 0]
            if not planned:
                return None
            receipt = await self._post_receipt(
                ctx, purchase_order, planned, data.supplier_delivery_note, data.notes
            )

        logger.info("Received remaining quantities of %s as %s", purchase_order.document_number, receipt.document_number)
        return await self.get_goods_receipt(ctx, receipt.id)

    async def _post_receipt(
        self,
        ctx: OperationContext,
        purchase_order: PurchaseOrder,
        planned: list[tuple[PurchaseOrderItem, Decimal]],
        supplier_delivery_note: str | None,
        notes: str | None,
    ) -> GoodsReceipt:
        receipt = GoodsReceipt(
            outlet_code=ctx.outlet_code,
            document_number=await get_document_number(self.db, "GR", ctx.outlet_code),
            po_id=purchase_order.id,
            supplier_delivery_note=supplier_delivery_note,
            received_by=ctx.user_id,
            notes=notes,
            items=[
                GoodsReceiptItem(
                    po_item_id=po_item.id,
                    item_id=po_item.item_id,
                    qty_received=qty,
                    conversion_rate=po_item.conversion_rate,
                )
                for po_item, qty in planned
            ],
        )
        self.db.add(receipt)
        await flush_or_conflict(self.db, f"Document number {receipt.document_number} already exists")

        balances = await self.inventory.lock_balances(
            ctx.outlet_code, [po_item.item_id for po_item, _ in planned]
        )
        posted_items = []
        for po_item, qty in planned:
            po_item.qty_received = round_quantity(po_item.qty_received + qty)
            base_qty = round_quantity(qty * po_item.conversion_rate)
            self.inventory.receive(
                balances[po_item.item_id],
                base_qty,
                unit_cost_from_purchase(po_item.price_per_unit, po_item.conversion_rate),
                ctx.user_id,
                reference_type="goods_receipt",
                reference_id=receipt.id,
                notes=f"GR {receipt.document_number}",
            )
            posted_items.append({"item_id": po_item.item_id, "qty": str(qty), "base_qty": str(base_qty)})

        old_status = purchase_order.status
        purchase_order.status = derive_receipt_status(purchase_order.items).value
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.RECEIVE_GOODS,
            entity_type="GoodsReceipt",
            entity_id=receipt.id,
            user_id=ctx.user_id,
            outlet_code=ctx.outlet_code,
            entity_identifier=receipt.document_number,
            old_values={"po_status": old_status},
            new_values={"po_status": purchase_order.status, "items": posted_items},
        )
        await record_event(
            self.db,
            EventType.RECEIPT_POSTED,
            ctx.outlet_code,
            "GoodsReceipt",
            receipt.id,
            {
                "document_number": receipt.document_number,
                "po_id": purchase_order.id,
                "po_status": purchase_order.status,
                "items": posted_items,
            },
        )
        return receipt

    async def get_goods_receipt(self, ctx: OperationContext, gr_id: int) -> GoodsReceipt:
        result = await self.db.execute(
            select(GoodsReceipt)
            .where(GoodsReceipt.id == gr_id, GoodsReceipt.outlet_code == ctx.outlet_code)
            .options(selectinload(GoodsReceipt.items))
            .execution_options(populate_existing=True)
        )
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise NotFoundError("Goods receipt", gr_id)
        return receipt

    async def list_goods_receipts(
        self, ctx: OperationContext, filters: GoodsReceiptFilters
    ) -> tuple[list[GoodsReceipt], int]:
        query = (
            select(GoodsReceipt)
            .where(GoodsReceipt.outlet_code == ctx.outlet_code)
            .options(selectinload(GoodsReceipt.items))
        )
        if filters.po_id:
            query = query.where(GoodsReceipt.po_id == filters.po_id)
        if filters.date_from:
            query = query.where(func.date(GoodsReceipt.received_at) >= filters.date_from)
        if filters.date_to:
            query = query.where(func.date(GoodsReceipt.received_at) <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(GoodsReceipt.received_at.desc(), GoodsReceipt.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0
