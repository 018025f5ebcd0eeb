from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.exceptions import NotFoundError, ValidationError
from outlet_erp.modules.masterdata.models import (
    Item,
    Outlet,
    ShrinkageCategory,
    Supplier,
    TransactionCategory,
    UsageCategory,
)


class MasterDataService:
    """Lookups with existence and active checks used to validate engine commands."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_outlet(self, code: str) -> Outlet:
        result = await self.db.execute(select(Outlet).where(Outlet.code == code))
        outlet = result.scalar_one_or_none()
        if not outlet or not outlet.is_active:
            raise NotFoundError("Outlet", code)
        return outlet

    async def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = await self.db.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    async def get_active_supplier(self, supplier_id: int, field: str = "supplier_id") -> Supplier:
        supplier = await self.get_supplier(supplier_id)
        if not supplier.is_active:
            raise ValidationError(f"Supplier '{supplier.name}' is inactive", field)
        return supplier

    async def get_items(self, item_ids: Iterable[int]) -> dict[int, Item]:
        ids = set(item_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Item).where(Item.id.in_(ids)))
        return {item.id: item for item in result.scalars().all()}

    async def resolve_items(self, item_ids: list[int], field_prefix: str = "lines") -> dict[int, Item]:
        """Resolve every referenced item; unknown or inactive items name the offending line."""
        items = await self.get_items(item_ids)
        for idx, item_id in enumerate(item_ids):
            item = items.get(item_id)
            if item is None:
                raise ValidationError(f"Item {item_id} not found", f"{field_prefix}.{idx}.item_id")
            if not item.is_active:
                raise ValidationError(f"Item '{item.name}' is inactive", f"{field_prefix}.{idx}.item_id")
        return items

    async def get_usage_category(self, category_id: int) -> UsageCategory:
        category = await self.db.get(UsageCategory, category_id)
        if not category or not category.is_active:
            raise ValidationError(f"Usage category {category_id} not found or inactive", "category_id")
        return category

    async def get_shrinkage_category(self, category_id: int) -> ShrinkageCategory:
        category = await self.db.get(ShrinkageCategory, category_id)
        if not category or not category.is_active:
            raise ValidationError(
                f"Shrinkage category {category_id} not found or inactive", "shrinkage_category_id"
            )
        return category

    async def get_transaction_category(self, category_id: int, direction: str) -> TransactionCategory:
        category = await self.db.get(TransactionCategory, category_id)
        if not category or not category.is_active:
            raise ValidationError(f"Transaction category {category_id} not found or inactive", "category_id")
        if category.direction != direction:
            raise ValidationError(
                f"Category '{category.name}' is for {category.direction} transactions", "category_id"
            )
        return category
