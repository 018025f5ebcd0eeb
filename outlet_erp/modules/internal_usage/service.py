"""Service for internal usage (stock consumed without a sale) and internal returns."""

import logging
from collections import defaultdict
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
from outlet_erp.modules.internal_usage.models import (
    InternalReturn,
    InternalReturnLine,
    InternalUsage,
    InternalUsageLine,
)
from outlet_erp.modules.internal_usage.schemas import (
    CategoryTotal,
    InternalLedgerFilters,
    InternalReturnCreate,
    InternalUsageCreate,
    LedgerReport,
    LedgerReportRow,
)
from outlet_erp.modules.inventory.models import MovementType
from outlet_erp.modules.inventory.service import InventoryService
from outlet_erp.modules.masterdata.models import Item, UsageCategory
from outlet_erp.modules.masterdata.service import MasterDataService
from outlet_erp.shared.utils.money import ZERO, round_money, round_quantity

logger = logging.getLogger(__name__)


def _check_lines(lines, qty_field: str) -> None:
    if not lines:
        raise ValidationError("At least one item is required", "lines")
    for idx, line in enumerate(lines):
        if round_quantity(getattr(line, qty_field)) <= 0:
            raise ValidationError("Quantity must be greater than 0", f"lines.{idx}.{qty_field}")


async def _ledger_report(
    db: AsyncSession,
    header_model,
    line_model,
    line_fk,
    qty_column,
    outlet_code: str,
    date_from: date,
    date_to: date,
    category_id: int | None,
) -> LedgerReport:
    if date_from > date_to:
        raise ValidationError("date_from must not be after date_to", "date_from")
    query = (
        select(header_model, line_model, UsageCategory.name, Item)
        .join(line_model, line_fk == header_model.id)
        .join(UsageCategory, UsageCategory.id == header_model.category_id)
        .join(Item, Item.id == line_model.item_id)
        .where(
            header_model.outlet_code == outlet_code,
            header_model.transaction_date >= date_from,
            header_model.transaction_date <= date_to,
        )
        .order_by(header_model.transaction_date, header_model.id, line_model.line_order)
    )
    if category_id is not None:
        query = query.where(header_model.category_id == category_id)

    rows = []
    by_category: dict[int, CategoryTotal] = {}
    for header, line, category_name, item in (await db.execute(query)).all():
        quantity = getattr(line, qty_column)
        value = round_money(quantity * line.unit_cost)
        rows.append(
            LedgerReportRow(
                document_number=header.document_number,
                transaction_date=header.transaction_date,
                category_id=header.category_id,
                category_name=category_name,
                item_id=item.id,
                sku=item.sku,
                item_name=item.name,
                quantity=quantity,
                unit_cost=line.unit_cost,
                total_value=value,
            )
        )
        total = by_category.setdefault(
            header.category_id,
            CategoryTotal(category_id=header.category_id, category_name=category_name, quantity=ZERO, total_value=ZERO),
        )
        total.quantity += quantity
        total.total_value = round_money(total.total_value + value)

    return LedgerReport(
        date_from=date_from,
        date_to=date_to,
        total_quantity=sum((row.quantity for row in rows), ZERO),
        total_value=round_money(sum((row.total_value for row in rows), ZERO)),
        by_category=sorted(by_category.values(), key=lambda c: c.category_name),
        rows=rows,
    )


class InternalUsageService:
    """Stock taken out for internal consumption (staff meals, cleaning, samples)."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.inventory = InventoryService(db)
        self.masterdata = MasterDataService(db)

    async def create_usage(self, ctx: OperationContext, data: InternalUsageCreate) -> InternalUsage:
        """
        Record internal usage and decrement stock.

        The whole submission is rejected when any line (summed per item) asks for
        more than is on hand.
        """
        _check_lines(data.lines, "qty_used")

        async with atomic(self.db):
            await self.masterdata.get_usage_category(data.category_id)
            items = await self.masterdata.resolve_items([line.item_id for line in data.lines], "lines")
            balances = await self.inventory.lock_balances(ctx.outlet_code, items)

            requested: dict[int, Decimal] = defaultdict(Decimal)
            for idx, line in enumerate(data.lines):
                requested[line.item_id] += round_quantity(line.qty_used)
                available = balances[line.item_id].qty_on_hand
                if requested[line.item_id] > available:
                    logger.warning(
                        "Rejected internal usage: item %s needs %s, %s on hand",
                        line.item_id,
                        requested[line.item_id],
                        available,
                    )
                    raise InsufficientStockError(
                        line.item_id, requested[line.item_id], available, field=f"lines.{idx}.qty_used"
                    )

            usage = InternalUsage(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "IU", ctx.outlet_code),
                category_id=data.category_id,
                requested_by=data.requested_by,
                transaction_date=data.transaction_date or date.today(),
                notes=data.notes,
                created_by=ctx.user_id,
                lines=[
                    InternalUsageLine(
                        item_id=line.item_id,
                        qty_used=round_quantity(line.qty_used),
                        unit=line.unit or items[line.item_id].base_unit,
                        unit_cost=balances[line.item_id].average_cost,
                        notes=line.notes,
                        line_order=index,
                    )
                    for index, line in enumerate(data.lines, start=1)
                ],
            )
            self.db.add(usage)
            await flush_or_conflict(self.db, f"Document number {usage.document_number} already exists")

            for idx, line in enumerate(usage.lines):
                self.inventory.decrement(
                    balances[line.item_id],
                    line.qty_used,
                    MovementType.USAGE,
                    ctx.user_id,
                    reference_type="internal_usage",
                    reference_id=usage.id,
                    notes=line.notes,
                    field=f"lines.{idx}.qty_used",
                )
            await self.db.flush()

            expense_value = round_money(sum((line.qty_used * line.unit_cost for line in usage.lines), ZERO))
            await self.audit.log(
                action=AuditAction.INTERNAL_USAGE,
                entity_type="InternalUsage",
                entity_id=usage.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=usage.document_number,
                new_values={"lines": len(usage.lines), "expense_value": str(expense_value)},
            )
            await record_event(
                self.db,
                EventType.INTERNAL_USAGE_POSTED,
                ctx.outlet_code,
                "InternalUsage",
                usage.id,
                {"document_number": usage.document_number, "expense_value": str(expense_value)},
            )

        logger.info("Posted internal usage %s (%s lines)", usage.document_number, len(data.lines))
        return await self.get_usage(ctx, usage.id)

    async def get_usage(self, ctx: OperationContext, usage_id: int) -> InternalUsage:
        result = await self.db.execute(
            select(InternalUsage)
            .where(InternalUsage.id == usage_id, InternalUsage.outlet_code == ctx.outlet_code)
            .options(selectinload(InternalUsage.lines))
            .execution_options(populate_existing=True)
        )
        usage = result.scalar_one_or_none()
        if not usage:
            raise NotFoundError("Internal usage", usage_id)
        return usage

    async def list_usages(
        self, ctx: OperationContext, filters: InternalLedgerFilters
    ) -> tuple[list[InternalUsage], int]:
        query = (
            select(InternalUsage)
            .where(InternalUsage.outlet_code == ctx.outlet_code)
            .options(selectinload(InternalUsage.lines))
        )
        if filters.category_id:
            query = query.where(InternalUsage.category_id == filters.category_id)
        if filters.date_from:
            query = query.where(InternalUsage.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.where(InternalUsage.transaction_date <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(InternalUsage.transaction_date.desc(), InternalUsage.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def usage_report(
        self, ctx: OperationContext, date_from: date, date_to: date, category_id: int | None = None
    ) -> LedgerReport:
        """Expense value (qty_used x unit cost) per line and per category."""
        return await _ledger_report(
            self.db,
            InternalUsage,
            InternalUsageLine,
            InternalUsageLine.usage_id,
            "qty_used",
            ctx.outlet_code,
            date_from,
            date_to,
            category_id,
        )


class InternalReturnService:
    """Stock brought back from internal use; there is no upper bound on returned quantity."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.inventory = InventoryService(db)
        self.masterdata = MasterDataService(db)

    async def create_return(self, ctx: OperationContext, data: InternalReturnCreate) -> InternalReturn:
        _check_lines(data.lines, "qty_returned")

        async with atomic(self.db):
            await self.masterdata.get_usage_category(data.category_id)
            items = await self.masterdata.resolve_items([line.item_id for line in data.lines], "lines")
            balances = await self.inventory.lock_balances(ctx.outlet_code, items)

            internal_return = InternalReturn(
                outlet_code=ctx.outlet_code,
                document_number=await get_document_number(self.db, "IR", ctx.outlet_code),
                category_id=data.category_id,
                returned_by=data.returned_by,
                transaction_date=data.transaction_date or date.today(),
                notes=data.notes,
                created_by=ctx.user_id,
                lines=[
                    InternalReturnLine(
                        item_id=line.item_id,
                        qty_returned=round_quantity(line.qty_returned),
                        unit=line.unit or items[line.item_id].base_unit,
                        unit_cost=balances[line.item_id].average_cost,
                        condition_notes=line.condition_notes,
                        line_order=index,
                    )
                    for index, line in enumerate(data.lines, start=1)
                ],
            )
            self.db.add(internal_return)
            await flush_or_conflict(
                self.db, f"Document number {internal_return.document_number} already exists"
            )

            for line in internal_return.lines:
                self.inventory.increment(
                    balances[line.item_id],
                    line.qty_returned,
                    MovementType.RETURN,
                    ctx.user_id,
                    reference_type="internal_return",
                    reference_id=internal_return.id,
                    notes=line.condition_notes,
                )
            await self.db.flush()

            recovered_value = round_money(
                sum((line.qty_returned * line.unit_cost for line in internal_return.lines), ZERO)
            )
            await self.audit.log(
                action=AuditAction.INTERNAL_RETURN,
                entity_type="InternalReturn",
                entity_id=internal_return.id,
                user_id=ctx.user_id,
                outlet_code=ctx.outlet_code,
                entity_identifier=internal_return.document_number,
                new_values={"lines": len(internal_return.lines), "recovered_value": str(recovered_value)},
            )
            await record_event(
                self.db,
                EventType.INTERNAL_RETURN_POSTED,
                ctx.outlet_code,
                "InternalReturn",
                internal_return.id,
                {"document_number": internal_return.document_number, "recovered_value": str(recovered_value)},
            )

        logger.info("Posted internal return %s (%s lines)", internal_return.document_number, len(data.lines))
        return await self.get_return(ctx, internal_return.id)

    async def get_return(self, ctx: OperationContext, return_id: int) -> InternalReturn:
        result = await self.db.execute(
            select(InternalReturn)
            .where(InternalReturn.id == return_id, InternalReturn.outlet_code == ctx.outlet_code)
            .options(selectinload(InternalReturn.lines))
            .execution_options(populate_existing=True)
        )
        internal_return = result.scalar_one_or_none()
        if not internal_return:
            raise NotFoundError("Internal return", return_id)
        return internal_return

    async def list_returns(
        self, ctx: OperationContext, filters: InternalLedgerFilters
    ) -> tuple[list[InternalReturn], int]:
        query = (
            select(InternalReturn)
            .where(InternalReturn.outlet_code == ctx.outlet_code)
            .options(selectinload(InternalReturn.lines))
        )
        if filters.category_id:
            query = query.where(InternalReturn.category_id == filters.category_id)
        if filters.date_from:
            query = query.where(InternalReturn.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.where(InternalReturn.transaction_date <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(InternalReturn.transaction_date.desc(), InternalReturn.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def return_report(
        self, ctx: OperationContext, date_from: date, date_to: date, category_id: int | None = None
    ) -> LedgerReport:
        """Recovered value (qty_returned x unit cost) per line and per category."""
        return await _ledger_report(
            self.db,
            InternalReturn,
            InternalReturnLine,
            InternalReturnLine.return_id,
            "qty_returned",
            ctx.outlet_code,
            date_from,
            date_to,
            category_id,
        )
