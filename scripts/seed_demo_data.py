#!/usr/bin/env python3
"""
Seed master data for a demo outlet group: outlets, suppliers, items and categories.

The engine only reads master data; this script stands in for the external
master-data service on a fresh database.

Usage:
    python scripts/seed_demo_data.py --dry-run   # roll back at the end
    python scripts/seed_demo_data.py --confirm   # commit

Requires: migrations applied (alembic upgrade head), database reachable.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.config import settings
from outlet_erp.core.database.session import async_session
from outlet_erp.modules.masterdata.models import (
    Item,
    Outlet,
    ShrinkageCategory,
    Supplier,
    TransactionCategory,
    TransactionDirection,
    UsageCategory,
)

OUTLETS = [
    # code, name, is_holding
    (settings.holding_outlet_code, "Head Office", True),
    ("OUT01", "Kemang Coffee Bar", False),
    ("OUT02", "Senopati Kitchen", False),
]

SUPPLIERS = [
    ("SUP-BEAN", "Java Bean Roasters", "Andi Saputra", "+62 811 1000 001"),
    ("SUP-DAIRY", "Fresh Dairy Nusantara", "Rina Wulandari", "+62 811 1000 002"),
    ("SUP-PACK", "Packindo Supplies", "Budi Hartono", "+62 811 1000 003"),
]

# sku, name, base_unit, purchase_unit, conversion_rate, buy_price (per purchase unit), sell_price
ITEMS = [
    ("BEAN-ARB-1KG", "Arabica Beans", "gram", "kg", Decimal("1000"), Decimal("180000.00"), Decimal("0.00")),
    ("MILK-UHT-1L", "UHT Milk 1L", "carton", "box", Decimal("12"), Decimal("216000.00"), Decimal("0.00")),
    ("CUP-12OZ", "Paper Cup 12oz", "pcs", "pack", Decimal("50"), Decimal("45000.00"), Decimal("0.00")),
    ("SUGAR-SYR", "Sugar Syrup 750ml", "bottle", "bottle", Decimal("1"), Decimal("65000.00"), Decimal("0.00")),
]

USAGE_CATEGORIES = ["Staff Meal", "Cleaning", "Sampling / Tasting", "Training"]
SHRINKAGE_CATEGORIES = ["Expired", "Damaged", "Spillage", "Lost"]
TRANSACTION_CATEGORIES = [
    ("Owner Capital", TransactionDirection.IN),
    ("Bank Interest", TransactionDirection.IN),
    ("Utilities", TransactionDirection.OUT),
    ("Rent", TransactionDirection.OUT),
    ("Petty Cash", TransactionDirection.OUT),
]


async def _existing(session: AsyncSession, column) -> set:
    result = await session.execute(select(column))
    return set(result.scalars().all())


async def seed_outlets(session: AsyncSession) -> None:
    existing = await _existing(session, Outlet.code)
    for code, name, is_holding in OUTLETS:
        if code not in existing:
            session.add(Outlet(code=code, name=name, is_holding=is_holding, is_active=True))
    await session.flush()
    print(f"  Outlets: {len(OUTLETS)} ensured.")


async def seed_suppliers(session: AsyncSession) -> None:
    existing = await _existing(session, Supplier.code)
    for code, name, contact, phone in SUPPLIERS:
        if code not in existing:
            session.add(Supplier(code=code, name=name, contact_name=contact, phone=phone, is_active=True))
    await session.flush()
    print(f"  Suppliers: {len(SUPPLIERS)} ensured.")


async def seed_items(session: AsyncSession) -> None:
    existing = await _existing(session, Item.sku)
    for sku, name, base_unit, purchase_unit, rate, buy_price, sell_price in ITEMS:
        if sku not in existing:
            session.add(
                Item(
                    sku=sku,
                    name=name,
                    base_unit=base_unit,
                    purchase_unit=purchase_unit,
                    conversion_rate=rate,
                    buy_price=buy_price,
                    sell_price=sell_price,
                    is_active=True,
                )
            )
    await session.flush()
    print(f"  Items: {len(ITEMS)} ensured.")


async def seed_categories(session: AsyncSession) -> None:
    existing = await _existing(session, UsageCategory.name)
    for name in USAGE_CATEGORIES:
        if name not in existing:
            session.add(UsageCategory(name=name, is_active=True))

    existing = await _existing(session, ShrinkageCategory.name)
    for name in SHRINKAGE_CATEGORIES:
        if name not in existing:
            session.add(ShrinkageCategory(name=name, is_active=True))

    result = await session.execute(select(TransactionCategory.name, TransactionCategory.direction))
    existing = set(result.all())
    for name, direction in TRANSACTION_CATEGORIES:
        if (name, direction.value) not in existing:
            session.add(TransactionCategory(name=name, direction=direction.value, is_active=True))
    await session.flush()
    print("  Usage, shrinkage and transaction categories ensured.")


async def run_seed(session: AsyncSession, dry_run: bool) -> None:
    await seed_outlets(session)
    await seed_suppliers(session)
    await seed_items(session)
    await seed_categories(session)

    if dry_run:
        await session.rollback()
        print("\n[DRY-RUN] Rolled back, no data written.")
    else:
        await session.commit()
        print("\nSeed completed successfully.")


async def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Seed master data for a demo outlet group")
    parser.add_argument("--dry-run", action="store_true", help="Do not commit")
    parser.add_argument("--confirm", action="store_true", help="Commit changes")
    args = parser.parse_args()
    if not args.dry_run and not args.confirm:
        print("Use --dry-run or --confirm")
        sys.exit(1)

    print("Database:", settings.database_url.split("@")[-1] if "@" in settings.database_url else "?")
    print("Mode:", "DRY-RUN" if args.dry_run else "CONFIRM")
    async with async_session() as session:
        await run_seed(session, dry_run=args.dry_run)
    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
