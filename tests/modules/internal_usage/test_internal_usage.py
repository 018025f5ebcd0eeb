from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context import OperationContext
from outlet_erp.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from outlet_erp.modules.internal_usage.schemas import (
    InternalLedgerFilters,
    InternalReturnCreate,
    InternalReturnLineCreate,
    InternalUsageCreate,
    InternalUsageLineCreate,
)
from outlet_erp.modules.internal_usage.service import InternalReturnService, InternalUsageService
from outlet_erp.modules.inventory.models import MovementType, StockMovement
from outlet_erp.modules.inventory.service import InventoryService


def _usage(category_id: int, *lines: tuple[int, str]) -> InternalUsageCreate:
    return InternalUsageCreate(
        category_id=category_id,
        requested_by="Barista Dewi",
        lines=[InternalUsageLineCreate(item_id=item_id, qty_used=Decimal(qty)) for item_id, qty in lines],
    )


def _return(category_id: int, *lines: tuple[int, str]) -> InternalReturnCreate:
    return InternalReturnCreate(
        category_id=category_id,
        returned_by="Barista Dewi",
        lines=[InternalReturnLineCreate(item_id=item_id, qty_returned=Decimal(qty)) for item_id, qty in lines],
    )


class TestInternalUsage:
    """Tests for internal usage postings."""

    async def test_usage_beyond_stock_rejected(self, db_session: AsyncSession, master, ctx, workflow):
        """Asking for 5 with 3 on hand rejects the whole submission."""
        await workflow.stock(ctx, master.cups_id, "3", "10")

        with pytest.raises(InsufficientStockError) as exc:
            await InternalUsageService(db_session).create_usage(ctx, _usage(master.staff_meal_id, (master.cups_id, "5")))

        assert exc.value.field == "lines.0.qty_used"
        assert Decimal(exc.value.details["available"]) == 3
        quantities = await InventoryService(db_session).get_quantities("OUT01", [master.cups_id])
        assert quantities[master.cups_id] == Decimal("3")

    async def test_lines_for_same_item_are_summed(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "3", "10")

        with pytest.raises(InsufficientStockError) as exc:
            await InternalUsageService(db_session).create_usage(
                ctx, _usage(master.staff_meal_id, (master.cups_id, "2"), (master.cups_id, "2"))
            )

        assert exc.value.field == "lines.1.qty_used"
        quantities = await InventoryService(db_session).get_quantities("OUT01", [master.cups_id])
        assert quantities[master.cups_id] == Decimal("3")

    async def test_usage_decrements_stock(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "3", "10")

        usage = await InternalUsageService(db_session).create_usage(
            ctx, _usage(master.staff_meal_id, (master.cups_id, "2"))
        )

        assert usage.document_number.startswith("IU-OUT01-")
        line = usage.lines[0]
        assert line.unit == "pcs"
        assert line.unit_cost == Decimal("10.00")
        quantities = await InventoryService(db_session).get_quantities("OUT01", [master.cups_id])
        assert quantities[master.cups_id] == Decimal("1")

        movement = (
            await db_session.execute(select(StockMovement).where(StockMovement.movement_type == MovementType.USAGE.value))
        ).scalar_one()
        assert movement.quantity == Decimal("-2")
        assert movement.reference_id == usage.id

    async def test_requires_lines(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await InternalUsageService(db_session).create_usage(ctx, _usage(master.staff_meal_id))
        assert exc.value.field == "lines"

    async def test_non_positive_quantity(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await InternalUsageService(db_session).create_usage(
                ctx, _usage(master.staff_meal_id, (master.cups_id, "1"), (master.milk_id, "0"))
            )
        assert exc.value.field == "lines.1.qty_used"

    async def test_quantity_rounding_to_zero(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "3", "10")

        with pytest.raises(ValidationError) as exc:
            await InternalUsageService(db_session).create_usage(
                ctx, _usage(master.staff_meal_id, (master.cups_id, "0.0004"))
            )
        assert exc.value.field == "lines.0.qty_used"

        balance = await InventoryService(db_session).get_balance("OUT01", master.cups_id)
        assert balance.qty_on_hand == Decimal("3")

    async def test_unknown_category(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await InternalUsageService(db_session).create_usage(ctx, _usage(999, (master.cups_id, "1")))
        assert exc.value.field == "category_id"

    async def test_other_outlet_cannot_read_usage(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "3", "10")
        usage = await InternalUsageService(db_session).create_usage(
            ctx, _usage(master.staff_meal_id, (master.cups_id, "1"))
        )
        usage_id = usage.id

        other = OperationContext(outlet_code="OUT02", user_id="user-2", home_outlet_code="OUT02")
        with pytest.raises(NotFoundError):
            await InternalUsageService(db_session).get_usage(other, usage_id)

        usages, total = await InternalUsageService(db_session).list_usages(other, InternalLedgerFilters())
        assert total == 0
        assert usages == []


class TestInternalReturn:
    async def test_return_increments_stock(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "3", "10")

        internal_return = await InternalReturnService(db_session).create_return(
            ctx, _return(master.staff_meal_id, (master.cups_id, "2"))
        )

        assert internal_return.document_number.startswith("IR-OUT01-")
        quantities = await InventoryService(db_session).get_quantities("OUT01", [master.cups_id])
        assert quantities[master.cups_id] == Decimal("5")

    async def test_return_has_no_upper_bound(self, db_session: AsyncSession, master, ctx):
        """An item never stocked at the outlet can still be returned."""
        await InternalReturnService(db_session).create_return(ctx, _return(master.cleaning_id, (master.beans_id, "250")))

        quantities = await InventoryService(db_session).get_quantities("OUT01", [master.beans_id])
        assert quantities[master.beans_id] == Decimal("250")

    async def test_non_positive_quantity(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await InternalReturnService(db_session).create_return(
                ctx, _return(master.staff_meal_id, (master.cups_id, "-1"))
            )
        assert exc.value.field == "lines.0.qty_returned"


class TestLedgerReports:
    async def test_usage_report_by_category(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "100", "10")
        await workflow.stock(ctx, master.milk_id, "2", "120000")
        service = InternalUsageService(db_session)
        await service.create_usage(ctx, _usage(master.staff_meal_id, (master.cups_id, "5")))
        await service.create_usage(ctx, _usage(master.cleaning_id, (master.milk_id, "1")))

        today = date.today()
        report = await service.usage_report(ctx, today, today)

        assert len(report.rows) == 2
        assert report.total_quantity == Decimal("6")
        assert report.total_value == Decimal("10050.00")
        assert [(c.category_name, c.total_value) for c in report.by_category] == [
            ("Cleaning", Decimal("10000.00")),
            ("Staff Meal", Decimal("50.00")),
        ]

        staff_only = await service.usage_report(ctx, today, today, category_id=master.staff_meal_id)
        assert staff_only.total_value == Decimal("50.00")

    async def test_return_report(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.cups_id, "10", "10")
        await InternalReturnService(db_session).create_return(ctx, _return(master.staff_meal_id, (master.cups_id, "3")))

        today = date.today()
        report = await InternalReturnService(db_session).return_report(ctx, today, today)

        assert report.total_value == Decimal("30.00")
        assert report.rows[0].sku == "CUP-12OZ"

    async def test_inverted_range(self, db_session: AsyncSession, master, ctx):
        today = date.today()
        with pytest.raises(ValidationError):
            await InternalUsageService(db_session).usage_report(ctx, today, today - timedelta(days=1))


class TestInternalUsageEndpoints:
    async def test_post_usage_and_report(self, client: AsyncClient, master, ctx, workflow, auth_headers):
        await workflow.stock(ctx, master.cups_id, "10", "10")

        response = await client.post(
            "/api/v1/outlets/OUT01/internal/usages",
            headers=auth_headers(),
            json={
                "category_id": master.staff_meal_id,
                "requested_by": "Barista Dewi",
                "lines": [{"item_id": master.cups_id, "qty_used": "4"}],
            },
        )
        assert response.status_code == 201
        assert response.json()["data"]["document_number"].startswith("IU-OUT01-")

        today = date.today().isoformat()
        response = await client.get(
            "/api/v1/outlets/OUT01/internal/usages/report",
            headers=auth_headers(),
            params={"date_from": today, "date_to": today},
        )
        assert response.status_code == 200
        assert Decimal(response.json()["data"]["total_value"]) == Decimal("40")

    async def test_post_return(self, client: AsyncClient, master, auth_headers):
        response = await client.post(
            "/api/v1/outlets/OUT01/internal/returns",
            headers=auth_headers(),
            json={
                "category_id": master.cleaning_id,
                "returned_by": "Kitchen",
                "lines": [{"item_id": master.cups_id, "qty_returned": "2", "condition_notes": "unopened"}],
            },
        )

        assert response.status_code == 201
        assert response.json()["data"]["lines"][0]["condition_notes"] == "unopened"

    async def test_usage_without_stock_is_422(self, client: AsyncClient, master, auth_headers):
        response = await client.post(
            "/api/v1/outlets/OUT01/internal/usages",
            headers=auth_headers(),
            json={
                "category_id": master.staff_meal_id,
                "requested_by": "Barista Dewi",
                "lines": [{"item_id": master.cups_id, "qty_used": "1"}],
            },
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "lines.0.qty_used"
