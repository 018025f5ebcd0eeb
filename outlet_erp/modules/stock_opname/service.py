"""Service for stock opname reconciliation and shrinkage write-offs."""

import logging
from dataclasses import dataclass
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
from outlet_erp.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from outlet_erp.modules.inventory.models import InventoryBalance, MovementType
from outlet_erp.modules.inventory.service import InventoryService
from outlet_erp.modules.masterdata.models import Item
from outlet_erp.modules.masterdata.service import MasterDataService
from outlet_erp.modules.stock_opname.models import (
    OpnameMode,
    OpnameStatus,
    ShrinkageLog,
    StockOpname,
    StockOpnameLine,
)
from outlet_erp.modules.stock_opname.schemas import (
    ShrinkageCreate,
    ShrinkageFilters,
    StockOpnameCreate,
    StockOpnameFilters,
    StockOpnameLineInput,
    StockOpnamePreview,
    StockOpnamePreviewLine,
    VarianceReport,
    VarianceRow,
)
from outlet_erp.shared.utils.money import ZERO, round_money, round_quantity

logger = logging.getLogger(__name__)


@dataclass
class _CountedLine:
    item_id: int
    balance: InventoryBalance | None
    system_qty: Decimal
    actual_qty: Decimal
    unit_cost: Decimal
    notes: str | None

    @property
    def difference(self) -> Decimal:
        return self.actual_qty - self.system_qty


def resolve_actual_qty(system_qty: Decimal, line: StockOpnameLineInput | None) -> Decimal:
    """Out of stock counts as zero; a blank count keeps the system quantity."""
    if line is None:
        return system_qty
    if line.out_of_stock:
        return Decimal("0")
    if line.actual_qty is not None:
        return round_quantity(line.actual_qty)
    return system_qty


class StockOpnameService:
    """
    Physical count reconciliation.

    Batch mode counts every balance row of the outlet (lines override single
    items); spot mode counts exactly one item. Lines with a non-zero difference
    overwrite the balance with the counted quantity, all in one transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.inventory = InventoryService(db)
        self.masterdata = MasterDataService(db)

    def _validate_lines(self, data: StockOpnameCreate) -> dict[int, StockOpnameLineInput]:
        overrides: dict[int, StockOpnameLineInput] = {}
        for idx, line in enumerate(data.lines):
            if line.item_id in overrides:
                raise ValidationError(f"Item {line.item_id} is counted more than once", f"lines.{idx}.item_id")
            if line.actual_qty is not None and round_quantity(line.actual_qty) < 0:
                raise ValidationError("Counted quantity cannot be negative", f"lines.{idx}.actual_qty")
            overrides[line.item_id] = line

        if data.mode == OpnameMode.SPOT:
            if len(data.lines) != 1:
                raise ValidationError("Spot opname counts exactly one item", "lines")
            line = data.lines[0]
            if line.actual_qty is None and not line.out_of_stock:
                raise ValidationError("Enter a count or mark the item out of stock", "lines.0.actual_qty")
        return overrides

    async def _count(
        self, ctx: OperationContext, data: StockOpnameCreate, lock: bool
    ) -> list[_CountedLine]:
        overrides = self._validate_lines(data)
        if overrides:
            await self.masterdata.resolve_items([line.item_id for line in data.lines], "lines")

        if lock:
            if data.mode == OpnameMode.BATCH:
                balances = {b.item_id: b for b in await self.inventory.lock_outlet_balances(ctx.outlet_code)}
                missing = [item_id for item_id in overrides if item_id not in balances]
                balances.update(await self.inventory.lock_balances(ctx.outlet_code, missing, create_missing=False))
            else:
                balances = await self.inventory.lock_balances(ctx.outlet_code, overrides, create_missing=False)
        elif data.mode == OpnameMode.BATCH:
            balances = await self.inventory.get_balances(ctx.outlet_code)
        else:
            balances = await self.inventory.get_balances(ctx.outlet_code, overrides)

        item_ids = sorted(set(balances) | set(overrides)) if data.mode == OpnameMode.BATCH else list(overrides)
        if not item_ids:
            raise ValidationError("There is no stock to count", "lines")

        counted = []
        for item_id in item_ids:
            balance = balances.get(item_id)
            system_qty = balance.qty_on_hand if balance else Decimal("0")
            line = overrides.get(item_id)
            counted.append(
                _CountedLine(
                    item_id=item_id,
                    balance=balance,
                    system_qty=system_qty,
                    actual_qty=resolve_actual_qty(system_qty, line),
                    unit_cost=balance.average_cost if balance else Decimal("0.00"),
                    notes=line.notes if line else None,
                )
            )
        return counted

    async def preview_stock_opname(self, ctx: OperationContext, data: StockOpnameCreate) -> StockOpnamePreview:
        counted = await self._count(ctx, data, lock=False)
        lines = [
            StockOpnamePreviewLine(
                item_id=c.item_id,
                system_qty=c.system_qty,
                actual_qty=c.actual_qty,
                difference=c.difference,
                unit_cost=c.unit_cost,
                variance_value=round_money(c.difference * c.unit_cost),
            )
            for c in counted
        ]
        return StockOpnamePreview(
            mode=data.mode.value,
            opname_date=data.opname_date or date.today(),
            items_counted=len(lines),
            items_with_variance=sum(1 for line in lines if line.difference != 0),
            total_variance_value=round_money(sum((line.variance_value for line in lines), ZERO)),
            lines=lines,
        )

    async def create_stock_opname(self, ctx: OperationContext, data: StockOpnameCreate) -> StockOpname:
        """Record the count and apply every non-zero difference to the balances."""
        opname_date = data.opname_date or date.today()
        async with atomic(self.db):
            await self.masterdata.get_outlet(ctx.outlet_code)
            counted = await self._count(ctx, data, lock=True)

            opname = StockOpname(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "SO", ctx.outlet_code),
                mode=data.mode.value,
                opname_date=opname_date,
                status=OpnameStatus.COMPLETED.value,
                notes=data.notes,
                created_by=ctx.user_id,
                lines=[
                    StockOpnameLine(
                        item_id=c.item_id,
                        system_qty=c.system_qty,
                        actual_qty=c.actual_qty,
                        difference=c.difference,
                        unit_cost=c.unit_cost,
                        notes=c.notes,
                        line_order=index,
                    )
                    for index, c in enumerate(counted, start=1)
                ],
            )
            self.db.add(opname)
            await flush_or_conflict(self.db, f"Document number {opname.document_number} already exists")

            adjusted = [c for c in counted if c.difference != 0]
            # items never stocked here only get a balance row when the count differs
            created = await self.inventory.lock_balances(
                ctx.outlet_code, [c.item_id for c in adjusted if c.balance is None]
            )
            for c in adjusted:
                self.inventory.set_counted(
                    c.balance or created[c.item_id],
                    c.actual_qty,
                    opname_date,
                    ctx.user_id,
                    reference_id=opname.id,
                    notes=c.notes,
                )
            await self.db.flush()

            variance_value = round_money(sum((c.difference * c.unit_cost for c in adjusted), ZERO))
            await self.audit.log(
                action=AuditAction.STOCK_OPNAME,
                entity_type="StockOpname",
                entity_id=opname.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=opname.document_number,
                new_values={
                    "mode": opname.mode,
                    "items_counted": len(counted),
                    "items_adjusted": len(adjusted),
                    "variance_value": str(variance_value),
                },
            )
            await record_event(
                self.db,
                EventType.STOCK_OPNAME_POSTED,
                ctx.outlet_code,
                "StockOpname",
                opname.id,
                {
                    "document_number": opname.document_number,
                    "items_adjusted": [c.item_id for c in adjusted],
                    "variance_value": str(variance_value),
                },
            )

        logger.info(
            "Posted stock opname %s: %s items counted, %s adjusted",
            opname.document_number,
            len(counted),
            len(adjusted),
        )
        return await self.get_stock_opname(ctx, opname.id)

    async def get_stock_opname(self, ctx: OperationContext, opname_id: int) -> StockOpname:
        result = await self.db.execute(
            select(StockOpname)
            .where(StockOpname.id == opname_id, StockOpname.outlet_code == ctx.outlet_code)
            .options(selectinload(StockOpname.lines))
            .execution_options(populate_existing=True)
        )
        opname = result.scalar_one_or_none()
        if not opname:
            raise NotFoundError("Stock opname", opname_id)
        return opname

    async def list_stock_opnames(
        self, ctx: OperationContext, filters: StockOpnameFilters
    ) -> tuple[list[StockOpname], int]:
        query = (
            select(StockOpname)
            .where(StockOpname.outlet_code == ctx.outlet_code)
            .options(selectinload(StockOpname.lines))
        )
        if filters.mode:
            query = query.where(StockOpname.mode == filters.mode.value)
        if filters.date_from:
            query = query.where(StockOpname.opname_date >= filters.date_from)
        if filters.date_to:
            query = query.where(StockOpname.opname_date <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(StockOpname.opname_date.desc(), StockOpname.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def variance_report(
        self,
        ctx: OperationContext,
        opname_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        only_discrepancies: bool = False,
    ) -> VarianceReport:
        """Counted vs system quantities with their value at the snapshot unit cost."""
        query = (
            select(StockOpnameLine, StockOpname, Item)
            .join(StockOpname, StockOpname.id == StockOpnameLine.opname_id)
            .join(Item, Item.id == StockOpnameLine.item_id)
            .where(StockOpname.outlet_code == ctx.outlet_code)
        )
        if opname_id is not None:
            query = query.where(StockOpname.id == opname_id)
        if date_from:
            query = query.where(StockOpname.opname_date >= date_from)
        if date_to:
            query = query.where(StockOpname.opname_date <= date_to)
        if only_discrepancies:
            query = query.where(StockOpnameLine.difference != 0)
        query = query.order_by(StockOpname.opname_date.desc(), StockOpname.id.desc(), StockOpnameLine.line_order)

        rows = [
            VarianceRow(
                opname_id=opname.id,
                document_number=opname.document_number,
                opname_date=opname.opname_date,
                item_id=item.id,
                sku=item.sku,
                item_name=item.name,
                system_qty=line.system_qty,
                actual_qty=line.actual_qty,
                difference=line.difference,
                unit_cost=line.unit_cost,
                variance_value=round_money(line.variance_value),
            )
            for line, opname, item in (await self.db.execute(query)).all()
        ]
        return VarianceReport(
            date_from=date_from,
            date_to=date_to,
            items_with_variance=sum(1 for row in rows if row.difference != 0),
            total_variance_value=round_money(sum((row.variance_value for row in rows), ZERO)),
            total_variance_value_abs=round_money(sum((abs(row.variance_value) for row in rows), ZERO)),
            rows=rows,
        )


class ShrinkageService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.inventory = InventoryService(db)
        self.masterdata = MasterDataService(db)

    async def record_shrinkage(self, ctx: OperationContext, data: ShrinkageCreate) -> ShrinkageLog:
        """Write off lost stock; the quantity may not exceed what is on hand."""
        qty = round_quantity(data.qty_lost)
        if qty <= 0:
            raise ValidationError("Quantity lost must be greater than 0", "qty_lost")

        async with atomic(self.db):
            await self.masterdata.resolve_items([data.item_id], "items")
            await self.masterdata.get_shrinkage_category(data.shrinkage_category_id)
            balance = (await self.inventory.lock_balances(ctx.outlet_code, [data.item_id]))[data.item_id]
            if qty > balance.qty_on_hand:
                logger.warning(
                    "Rejected shrinkage of %s for item %s: %s on hand", qty, data.item_id, balance.qty_on_hand
                )
                raise InsufficientStockError(data.item_id, qty, balance.qty_on_hand, field="qty_lost")

            log = ShrinkageLog(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "SH", ctx.outlet_code),
                item_id=data.item_id,
                shrinkage_category_id=data.shrinkage_category_id,
                qty_lost=qty,
                unit_cost=balance.average_cost,
                transaction_date=data.transaction_date or date.today(),
                notes=data.notes,
                created_by=ctx.user_id,
            )
            self.db.add(log)
            await flush_or_conflict(self.db, f"Document number {log.document_number} already exists")
            self.inventory.decrement(
                balance,
                qty,
                MovementType.SHRINKAGE,
                ctx.user_id,
                reference_type="shrinkage",
                reference_id=log.id,
                notes=data.notes,
                field="qty_lost",
            )
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.SHRINKAGE,
                entity_type="ShrinkageLog",
                entity_id=log.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=log.document_number,
                new_values={
                    "item_id": log.item_id,
                    "qty_lost": str(qty),
                    "qty_on_hand": str(balance.qty_on_hand),
                },
            )
            await record_event(
                self.db,
                EventType.SHRINKAGE_RECORDED,
                ctx.outlet_code,
                "ShrinkageLog",
                log.id,
                {
                    "document_number": log.document_number,
                    "item_id": log.item_id,
                    "qty_lost": str(qty),
                    "value": str(round_money(qty * log.unit_cost)),
                },
            )

        logger.info("Recorded shrinkage %s: %s of item %s", log.document_number, qty, log.item_id)
        return log

    async def list_shrinkage(
        self, ctx: OperationContext, filters: ShrinkageFilters
    ) -> tuple[list[ShrinkageLog], int]:
        query = select(ShrinkageLog).where(ShrinkageLog.outlet_code == ctx.outlet_code)
        if filters.item_id:
            query = query.where(ShrinkageLog.item_id == filters.item_id)
        if filters.shrinkage_category_id:
            query = query.where(ShrinkageLog.shrinkage_category_id == filters.shrinkage_category_id)
        if filters.date_from:
            query = query.where(ShrinkageLog.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.where(ShrinkageLog.transaction_date <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(ShrinkageLog.transaction_date.desc(), ShrinkageLog.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0
