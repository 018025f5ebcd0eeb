from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.exceptions import StateError, ValidationError
from outlet_erp.modules.inventory.models import MovementType, StockMovement
from outlet_erp.modules.inventory.service import InventoryService
from outlet_erp.modules.procurement.models import GoodsReceipt, PurchaseOrderStatus
from outlet_erp.modules.procurement.schemas import (
    GoodsReceiptCreate,
    GoodsReceiptItemCreate,
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
)
from outlet_erp.modules.procurement.service import GoodsReceiptService, PurchaseOrderService


class TestGoodsReceiptService:
    """Tests for receiving goods against purchase orders."""

    async def test_partial_then_complete(self, db_session: AsyncSession, master, ctx, workflow):
        """100 ordered: 60 received is PARTIAL, the other 40 complete the PO."""
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10")])
        assert po.total_amount == Decimal("1000.00")

        receipt = await workflow.receive(ctx, po, ["60"])
        assert receipt.document_number.startswith("GR-OUT01-")

        po_service = PurchaseOrderService(db_session)
        po = await po_service.get_purchase_order(ctx, po.id)
        assert po.status == PurchaseOrderStatus.PARTIAL.value
        assert po.items[0].qty_remaining == Decimal("40")

        inventory = InventoryService(db_session)
        balance = await inventory.get_balance("OUT01", master.cups_id)
        assert balance.qty_on_hand == Decimal("60")
        assert balance.average_cost == Decimal("10.00")

        await workflow.receive(ctx, po, ["40"])
        po = await po_service.get_purchase_order(ctx, po.id)
        assert po.status == PurchaseOrderStatus.COMPLETED.value
        assert po.items[0].qty_remaining == Decimal("0")
        balance = await inventory.get_balance("OUT01", master.cups_id)
        assert balance.qty_on_hand == Decimal("100")

    async def test_purchase_units_convert_to_base_units(self, db_session: AsyncSession, master, ctx, workflow):
        """2 kg of beans land as 2000 grams costed per gram."""
        await workflow.stock(ctx, master.beans_id, "2", "180000")

        balance = await InventoryService(db_session).get_balance("OUT01", master.beans_id)
        assert balance.qty_on_hand == Decimal("2000")
        assert balance.average_cost == Decimal("180.00")

    async def test_weighted_average_cost(self, db_session: AsyncSession, master, ctx, workflow):
        await workflow.stock(ctx, master.beans_id, "2", "180000")
        await workflow.stock(ctx, master.beans_id, "1", "210000")

        balance = await InventoryService(db_session).get_balance("OUT01", master.beans_id)
        assert balance.qty_on_hand == Decimal("3000")
        assert balance.average_cost == Decimal("190.00")

    async def test_over_receipt_rejects_whole_receipt(self, db_session: AsyncSession, master, ctx, workflow):
        """One line above its remaining quantity rejects every line."""
        po = await workflow.issued_po(
            ctx,
            [(master.cups_id, "50", "1000"), (master.milk_id, "5", "120000"), (master.beans_id, "2", "180000")],
        )
        po_id = po.id

        with pytest.raises(ValidationError) as exc:
            await workflow.receive(ctx, po, ["50", "5", "3"])
        assert exc.value.field == "items.2.qty_received"

        quantities = await InventoryService(db_session).get_quantities(
            "OUT01", [master.cups_id, master.milk_id, master.beans_id]
        )
        assert all(qty == 0 for qty in quantities.values())
        po = await PurchaseOrderService(db_session).get_purchase_order(ctx, po_id)
        assert po.status == PurchaseOrderStatus.ISSUED.value
        assert all(line.qty_received == 0 for line in po.items)
        assert await db_session.scalar(select(func.count()).select_from(GoodsReceipt)) == 0

    async def test_duplicate_line_rejected(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        line_id = po.items[0].id

        with pytest.raises(ValidationError) as exc:
            await GoodsReceiptService(db_session).create_goods_receipt(
                ctx,
                GoodsReceiptCreate(
                    po_id=po.id,
                    items=[
                        GoodsReceiptItemCreate(po_item_id=line_id, qty_received=Decimal("5")),
                        GoodsReceiptItemCreate(po_item_id=line_id, qty_received=Decimal("5")),
                    ],
                ),
            )
        assert exc.value.field == "items.1.po_item_id"

    async def test_line_of_another_po_rejected(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        other = await workflow.issued_po(ctx, [(master.milk_id, "1", "120000")])

        with pytest.raises(ValidationError) as exc:
            await GoodsReceiptService(db_session).create_goods_receipt(
                ctx,
                GoodsReceiptCreate(
                    po_id=po.id,
                    items=[GoodsReceiptItemCreate(po_item_id=other.items[0].id, qty_received=Decimal("1"))],
                ),
            )
        assert exc.value.field == "items.0.po_item_id"

    async def test_all_zero_lines_rejected(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])

        with pytest.raises(ValidationError) as exc:
            await workflow.receive(ctx, po, ["0"])
        assert exc.value.field == "items"

    async def test_draft_po_cannot_be_received(self, db_session: AsyncSession, master, ctx):
        po = await PurchaseOrderService(db_session).create_purchase_order(
            ctx,
            PurchaseOrderCreate(
                supplier_id=master.supplier_id,
                items=[PurchaseOrderItemCreate(item_id=master.cups_id, qty_ordered=Decimal("10"))],
            ),
        )

        with pytest.raises(StateError):
            await GoodsReceiptService(db_session).create_goods_receipt(
                ctx,
                GoodsReceiptCreate(
                    po_id=po.id,
                    items=[GoodsReceiptItemCreate(po_item_id=po.items[0].id, qty_received=Decimal("1"))],
                ),
            )

    async def test_receive_remaining_is_idempotent(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10"), (master.milk_id, "2", "120000")])
        await workflow.receive(ctx, po, ["60", "0"])
        service = GoodsReceiptService(db_session)

        receipt = await service.receive_remaining(ctx, po.id)
        assert sorted((line.item_id, line.qty_received) for line in receipt.items) == sorted(
            [(master.cups_id, Decimal("40")), (master.milk_id, Decimal("2"))]
        )

        assert await service.receive_remaining(ctx, po.id) is None

        po = await PurchaseOrderService(db_session).get_purchase_order(ctx, po.id)
        assert po.status == PurchaseOrderStatus.COMPLETED.value
        balance = await InventoryService(db_session).get_balance("OUT01", master.milk_id)
        assert balance.qty_on_hand == Decimal("24")

    async def test_preview_writes_nothing(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "100", "10")])

        preview = await GoodsReceiptService(db_session).preview_goods_receipt(
            ctx,
            GoodsReceiptCreate(
                po_id=po.id,
                items=[GoodsReceiptItemCreate(po_item_id=po.items[0].id, qty_received=Decimal("100"))],
            ),
        )

        assert preview.po_status_before == "ISSUED"
        assert preview.po_status_after == "COMPLETED"
        assert preview.lines[0].qty_remaining_after == Decimal("0")
        assert await db_session.scalar(select(func.count()).select_from(GoodsReceipt)) == 0

    async def test_receipt_writes_movement(self, db_session: AsyncSession, master, ctx, workflow):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        receipt = await workflow.receive(ctx, po, ["10"])

        movement = (await db_session.execute(select(StockMovement))).scalar_one()
        assert movement.movement_type == MovementType.RECEIPT.value
        assert movement.reference_type == "goods_receipt"
        assert movement.reference_id == receipt.id
        assert movement.quantity_before == Decimal("0")
        assert movement.quantity_after == Decimal("10")


class TestGoodsReceiptEndpoints:
    async def test_receive_remaining_endpoint(self, client: AsyncClient, master, ctx, workflow, auth_headers):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])
        url = f"/api/v1/outlets/OUT01/procurement/purchase-orders/{po.id}/receive-remaining"

        first = await client.post(url, headers=auth_headers())
        assert first.status_code == 200
        assert Decimal(first.json()["data"]["items"][0]["qty_received"]) == Decimal("10")

        second = await client.post(url, headers=auth_headers())
        assert second.status_code == 200
        assert second.json()["data"] is None

    async def test_over_receipt_is_422(self, client: AsyncClient, master, ctx, workflow, auth_headers):
        po = await workflow.issued_po(ctx, [(master.cups_id, "10", "1000")])

        response = await client.post(
            "/api/v1/outlets/OUT01/procurement/goods-receipts",
            headers=auth_headers(),
            json={"po_id": po.id, "items": [{"po_item_id": po.items[0].id, "qty_received": "11"}]},
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "items.0.qty_received"
