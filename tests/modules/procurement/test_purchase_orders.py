from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.audit.models import AuditLog
from outlet_erp.core.context import OperationContext
from outlet_erp.core.events import DomainEvent
from outlet_erp.core.exceptions import NotFoundError, StateError, ValidationError
from outlet_erp.modules.procurement.models import PurchaseOrderStatus
from outlet_erp.modules.procurement.schemas import (
    PurchaseOrderCreate,
    PurchaseOrderFilters,
    PurchaseOrderItemCreate,
    PurchaseOrderUpdate,
)
from outlet_erp.modules.procurement.service import PurchaseOrderService


class TestPurchaseOrderService:
    """Tests for purchase order lifecycle."""

    async def test_create_draft_with_master_defaults(self, db_session: AsyncSession, master, ctx):
        """Unit, conversion rate and price default from the item master."""
        po = await PurchaseOrderService(db_session).create_purchase_order(
            ctx,
            PurchaseOrderCreate(
                supplier_id=master.supplier_id,
                items=[PurchaseOrderItemCreate(item_id=master.beans_id, qty_ordered=Decimal("2"))],
            ),
        )

        year = date.today().year
        assert po.document_number == f"PO-OUT01-{year}-000001"
        assert po.status == PurchaseOrderStatus.DRAFT.value
        assert po.outlet_code == "OUT01"
        line = po.items[0]
        assert line.uom_purchase == "kg"
        assert line.conversion_rate == Decimal("1000")
        assert line.price_per_unit == Decimal("180000.00")
        assert line.line_total == Decimal("360000.00")
        assert line.qty_received == Decimal("0")
        assert po.total_amount == Decimal("360000.00")

    async def test_create_issued_records_event(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10"), (master.milk_id, "2", "120000")])

        assert po.status == PurchaseOrderStatus.ISSUED.value
        assert po.total_amount == Decimal("241000.00")
        events = (await db_session.execute(select(DomainEvent.event_type))).scalars().all()
        assert events == ["PurchaseOrderIssued"]

    async def test_create_requires_items(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await PurchaseOrderService(db_session).create_purchase_order(
                ctx, PurchaseOrderCreate(supplier_id=master.supplier_id, items=[])
            )
        assert exc.value.field == "items"

    async def test_create_rejects_non_positive_quantity(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await PurchaseOrderService(db_session).create_purchase_order(
                ctx,
                PurchaseOrderCreate(
                    supplier_id=master.supplier_id,
                    items=[
                        PurchaseOrderItemCreate(item_id=master.cups_id, qty_ordered=Decimal("5")),
                        PurchaseOrderItemCreate(item_id=master.milk_id, qty_ordered=Decimal("0")),
                    ],
                ),
            )
        assert exc.value.field == "items.1.qty_ordered"

    async def test_create_rejects_quantity_rounding_to_zero(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await PurchaseOrderService(db_session).create_purchase_order(
                ctx,
                PurchaseOrderCreate(
                    supplier_id=master.supplier_id,
                    items=[PurchaseOrderItemCreate(item_id=master.cups_id, qty_ordered=Decimal("0.0004"))],
                ),
            )
        assert exc.value.field == "items.0.qty_ordered"

    async def test_create_rejects_inactive_item(self, db_session: AsyncSession, master, ctx):
        with pytest.raises(ValidationError) as exc:
            await PurchaseOrderService(db_session).create_purchase_order(
                ctx,
                PurchaseOrderCreate(
                    supplier_id=master.supplier_id,
                    items=[PurchaseOrderItemCreate(item_id=master.inactive_item_id, qty_ordered=Decimal("1"))],
                ),
            )
        assert exc.value.field == "items.0.item_id"

    async def test_create_for_unknown_outlet(self, db_session: AsyncSession, master, ctx):
        stranger = OperationContext(outlet_code="NOPE", user_id="user-1")
        with pytest.raises(NotFoundError):
            await PurchaseOrderService(db_session).create_purchase_order(
                stranger,
                PurchaseOrderCreate(
                    supplier_id=master.supplier_id,
                    items=[PurchaseOrderItemCreate(item_id=master.cups_id, qty_ordered=Decimal("1"))],
                ),
            )

    async def test_issue_draft(self, db_session: AsyncSession, master, ctx):
        service = PurchaseOrderService(db_session)
        po = await service.create_purchase_order(
            ctx,
            PurchaseOrderCreate(
                supplier_id=master.supplier_id,
                items=[PurchaseOrderItemCreate(item_id=master.cups_id, qty_ordered=Decimal("10"))],
            ),
        )

        issued = await service.issue_purchase_order(ctx, po.id)
        assert issued.status == PurchaseOrderStatus.ISSUED.value

        with pytest.raises(StateError):
            await service.issue_purchase_order(ctx, po.id)

    async def test_update_replaces_items(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])

        updated = await PurchaseOrderService(db_session).update_purchase_order(
            ctx,
            po.id,
            PurchaseOrderUpdate(
                reference_number="REF-7",
                items=[PurchaseOrderItemCreate(item_id=master.milk_id, qty_ordered=Decimal("3"))],
            ),
        )

        assert updated.reference_number == "REF-7"
        assert [line.item_id for line in updated.items] == [master.milk_id]
        assert updated.total_amount == Decimal("360000.00")

    async def test_update_after_receipt_is_rejected(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        await workflow.receive(ctx, po, ["4"])

        with pytest.raises(StateError):
            await PurchaseOrderService(db_session).update_purchase_order(
                ctx, po.id, PurchaseOrderUpdate(notes="too late")
            )

    async def test_cancel(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        service = PurchaseOrderService(db_session)

        cancelled = await service.cancel_purchase_order(ctx, po.id, "Supplier out of stock")

        assert cancelled.status == PurchaseOrderStatus.CANCELLED.value
        assert cancelled.cancelled_reason == "Supplier out of stock"
        actions = (await db_session.execute(select(AuditLog.action).order_by(AuditLog.id))).scalars().all()
        assert actions == ["CREATE", "CANCEL"]

        with pytest.raises(StateError):
            await service.cancel_purchase_order(ctx, po.id, "again")

    async def test_other_outlet_cannot_see_po(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        other = OperationContext(outlet_code="OUT02", user_id="user-2")

        with pytest.raises(NotFoundError):
            await PurchaseOrderService(db_session).get_purchase_order(other, po.id)

    async def test_list_and_outstanding(self, db_session: AsyncSession, master, ctx, workflow):
        first = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000"), (master.milk_id, "2", "120000")])
        await workflow.issued_po(ctx, [(master.cups_id, "5", "1000")], supplier_id=master.other_supplier_id)
        await workflow.receive(ctx, first, ["10", "0"])

        service = PurchaseOrderService(db_session)
        items, total = await service.list_purchase_orders(ctx, PurchaseOrderFilters(supplier_id=master.supplier_id))
        assert total == 1
        assert items[0].status == PurchaseOrderStatus.PARTIAL.value

        outstanding = await service.list_outstanding_items(ctx, supplier_id=master.supplier_id)
        assert [(row.item_id, row.qty_remaining) for row in outstanding] == [(master.milk_id, Decimal("2"))]


class TestPurchaseOrderEndpoints:
    async def test_create_po_via_api(self, client: AsyncClient, master, auth_headers):
        response = await client.post(
            "/api/v1/outlets/OUT01/procurement/purchase-orders",
            headers=auth_headers(),
            json={
                "supplier_id": master.supplier_id,
                "issue": True,
                "items": [{"item_id": master.cups_id, "qty_ordered": "100", "price_per_unit": "10"}],
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "ISSUED"
        assert Decimal(data["total_amount"]) == Decimal("1000")
        assert Decimal(data["items"][0]["qty_remaining"]) == Decimal("100")

    async def test_validation_error_names_field(self, client: AsyncClient, master, auth_headers):
        response = await client.post(
            "/api/v1/outlets/OUT01/procurement/purchase-orders",
            headers=auth_headers(),
            json={
                "supplier_id": master.supplier_id,
                "items": [{"item_id": master.cups_id, "qty_ordered": "-1"}],
            },
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "items.0.qty_ordered"

    async def test_unknown_po_is_404(self, client: AsyncClient, master, auth_headers):
        response = await client.get(
            "/api/v1/outlets/OUT01/procurement/purchase-orders/999", headers=auth_headers()
        )
        assert response.status_code == 404
