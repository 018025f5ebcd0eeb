"""Service for the inventory balance store.

Balance-mutating helpers never commit: they run inside the transaction of the
operation that calls them (goods receipt, opname, usage, return, shrinkage).
"""

from collections.abc import Iterable
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.database import flush_or_conflict
from outlet_erp.core.exceptions import InsufficientStockError, NotFoundError
from outlet_erp.modules.inventory.models import InventoryBalance, MovementType, StockMovement
from outlet_erp.modules.inventory.schemas import BalanceFilters, MovementFilters
from outlet_erp.shared.utils.money import round_money, round_quantity


class InventoryService:
    """Reads and mutates per-outlet inventory balances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_balances(
        self, outlet_code: str, item_ids: Iterable[int], create_missing: bool = True
    ) -> dict[int, InventoryBalance]:
        """
        Lock the balance rows of the given items (SELECT ... FOR UPDATE).

        Missing rows are created at zero so every requested item has a balance,
        unless `create_missing` is False, in which case they are left out.
        Rows are locked in item_id order to keep lock acquisition consistent.
        """
        ids = sorted(set(item_ids))
        if not ids:
            return {}
        stmt = (
            select(InventoryBalance)
            .where(InventoryBalance.outlet_code == outlet_code, InventoryBalance.item_id.in_(ids))
            .order_by(InventoryBalance.item_id)
            .with_for_update()
        )
        balances = {b.item_id: b for b in (await self.db.execute(stmt)).scalars().all()}

        missing = [item_id for item_id in ids if item_id not in balances]
        if missing and create_missing:
            for item_id in missing:
                balance = InventoryBalance(
                    outlet_code=outlet_code,
                    item_id=item_id,
                    qty_on_hand=Decimal("0"),
                    average_cost=Decimal("0.00"),
                    opening_balance=Decimal("0"),
                )
                self.db.add(balance)
                balances[item_id] = balance
            await flush_or_conflict(self.db, "Inventory balance was created concurrently")
        return balances

    async def lock_outlet_balances(self, outlet_code: str) -> list[InventoryBalance]:
        """Lock every balance row of an outlet (batch opname)."""
        stmt = (
            select(InventoryBalance)
            .where(InventoryBalance.outlet_code == outlet_code)
            .order_by(InventoryBalance.item_id)
            .with_for_update()
        )
        return list((await self.db.execute(stmt)).scalars().all())

    def _movement(
        self,
        balance: InventoryBalance,
        movement_type: MovementType,
        quantity: Decimal,
        quantity_before: Decimal,
        average_cost_before: Decimal,
        user_id: str,
        unit_cost: Decimal | None = None,
        reference_type: str | None = None,
        reference_id: int | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        balance.last_movement_at = datetime.now(timezone.utc)
        movement = StockMovement(
            balance_id=balance.id,
            outlet_code=balance.outlet_code,
            item_id=balance.item_id,
            movement_type=movement_type.value,
            quantity=quantity,
            unit_cost=unit_cost,
            quantity_before=quantity_before,
            quantity_after=balance.qty_on_hand,
            average_cost_before=average_cost_before,
            average_cost_after=balance.average_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=user_id,
        )
        self.db.add(movement)
        return movement

    def receive(
        self,
        balance: InventoryBalance,
        quantity: Decimal,
        unit_cost: Decimal,
        user_id: str,
        reference_type: str | None = None,
        reference_id: int | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        """Add received base units and re-weight the average cost.

        new_avg = (old_qty * old_avg + qty * unit_cost) / (old_qty + qty)
        """
        quantity_before = balance.qty_on_hand
        average_cost_before = balance.average_cost
        new_quantity = round_quantity(quantity_before + quantity)
        if new_quantity > 0:
            balance.average_cost = round_money(
                (quantity_before * average_cost_before + quantity * unit_cost) / new_quantity
            )
        else:
            balance.average_cost = round_money(unit_cost)
        balance.qty_on_hand = new_quantity
        return self._movement(
            balance,
            MovementType.RECEIPT,
            quantity,
            quantity_before,
            average_cost_before,
            user_id,
            unit_cost=unit_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        )

    def increment(
        self,
        balance: InventoryBalance,
        quantity: Decimal,
        movement_type: MovementType,
        user_id: str,
        reference_type: str | None = None,
        reference_id: int | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        """Add stock at the current average cost (returns)."""
        quantity_before = balance.qty_on_hand
        balance.qty_on_hand = round_quantity(quantity_before + quantity)
        return self._movement(
            balance,
            movement_type,
            quantity,
            quantity_before,
            balance.average_cost,
            user_id,
            unit_cost=balance.average_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        )

    def decrement(
        self,
        balance: InventoryBalance,
        quantity: Decimal,
        movement_type: MovementType,
        user_id: str,
        reference_type: str | None = None,
        reference_id: int | None = None,
        notes: str | None = None,
        field: str | None = None,
    ) -> StockMovement:
        """Remove stock; never lets qty_on_hand go below zero."""
        quantity_before = balance.qty_on_hand
        if quantity > quantity_before:
            raise InsufficientStockError(balance.item_id, quantity, quantity_before, field=field)
        balance.qty_on_hand = round_quantity(quantity_before - quantity)
        return self._movement(
            balance,
            movement_type,
            -quantity,
            quantity_before,
            balance.average_cost,
            user_id,
            unit_cost=balance.average_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        )

    def set_counted(
        self,
        balance: InventoryBalance,
        actual_qty: Decimal,
        count_date: date,
        user_id: str,
        reference_id: int | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        """Overwrite qty_on_hand with a physical count and restart the opening balance."""
        quantity_before = balance.qty_on_hand
        balance.qty_on_hand = round_quantity(actual_qty)
        balance.opening_balance = balance.qty_on_hand
        balance.date_ob = count_date
        return self._movement(
            balance,
            MovementType.OPNAME,
            balance.qty_on_hand - quantity_before,
            quantity_before,
            balance.average_cost,
            user_id,
            unit_cost=balance.average_cost,
            reference_type="stock_opname",
            reference_id=reference_id,
            notes=notes,
        )

    async def get_balance(self, outlet_code: str, item_id: int) -> InventoryBalance:
        result = await self.db.execute(
            select(InventoryBalance).where(
                InventoryBalance.outlet_code == outlet_code,
                InventoryBalance.item_id == item_id,
            )
        )
        balance = result.scalar_one_or_none()
        if not balance:
            raise NotFoundError("Inventory balance", item_id)
        return balance

    async def get_balances(
        self, outlet_code: str, item_ids: Iterable[int] | None = None
    ) -> dict[int, InventoryBalance]:
        """Unlocked read of balance rows; all rows of the outlet when `item_ids` is None."""
        stmt = select(InventoryBalance).where(InventoryBalance.outlet_code == outlet_code)
        if item_ids is not None:
            stmt = stmt.where(InventoryBalance.item_id.in_(set(item_ids)))
        result = await self.db.execute(stmt.order_by(InventoryBalance.item_id))
        return {b.item_id: b for b in result.scalars().all()}

    async def get_quantities(self, outlet_code: str, item_ids: Iterable[int]) -> dict[int, Decimal]:
        """Unlocked read of quantities on hand; missing items read as zero."""
        ids = set(item_ids)
        result = await self.db.execute(
            select(InventoryBalance.item_id, InventoryBalance.qty_on_hand).where(
                InventoryBalance.outlet_code == outlet_code,
                InventoryBalance.item_id.in_(ids),
            )
        )
        quantities = {item_id: Decimal("0") for item_id in ids}
        quantities.update({row.item_id: row.qty_on_hand for row in result})
        return quantities

    async def list_balances(
        self, outlet_code: str, filters: BalanceFilters
    ) -> tuple[list[InventoryBalance], int]:
        conditions = [InventoryBalance.outlet_code == outlet_code]
        if filters.item_id is not None:
            conditions.append(InventoryBalance.item_id == filters.item_id)
        if filters.only_in_stock:
            conditions.append(InventoryBalance.qty_on_hand > 0)

        total = (
            await self.db.execute(select(func.count()).select_from(InventoryBalance).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(InventoryBalance)
            .where(*conditions)
            .order_by(InventoryBalance.item_id)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        return list(result.scalars().all()), total

    async def list_movements(
        self, outlet_code: str, filters: MovementFilters
    ) -> tuple[list[StockMovement], int]:
        conditions = [StockMovement.outlet_code == outlet_code]
        if filters.item_id is not None:
            conditions.append(StockMovement.item_id == filters.item_id)
        if filters.movement_type:
            conditions.append(StockMovement.movement_type == filters.movement_type)
        if filters.date_from:
            conditions.append(
                StockMovement.created_at >= datetime.combine(filters.date_from, time.min, tzinfo=timezone.utc)
            )
        if filters.date_to:
            conditions.append(
                StockMovement.created_at <= datetime.combine(filters.date_to, time.max, tzinfo=timezone.utc)
            )

        total = (
            await self.db.execute(select(func.count()).select_from(StockMovement).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(StockMovement)
            .where(*conditions)
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        return list(result.scalars().all()), total
