"""API endpoints for Procurement (purchase orders and goods receipts)."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context.dependencies import OutletContext
from outlet_erp.core.database import get_db
from outlet_erp.modules.procurement.schemas import (
    CancelPurchaseOrderRequest,
    GoodsReceiptCreate,
    GoodsReceiptFilters,
    GoodsReceiptPreview,
    GoodsReceiptResponse,
    OutstandingItemResponse,
    PurchaseOrderCreate,
    PurchaseOrderFilters,
    PurchaseOrderResponse,
    PurchaseOrderUpdate,
    ReceiveRemainingRequest,
)
from outlet_erp.modules.procurement.service import GoodsReceiptService, PurchaseOrderService
from outlet_erp.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/outlets/{outlet_code}/procurement", tags=["Procurement"])


def _po_to_response(po) -> PurchaseOrderResponse:
    return PurchaseOrderResponse.model_validate(po)


def _gr_to_response(receipt) -> GoodsReceiptResponse:
    return GoodsReceiptResponse.model_validate(receipt)


@router.post(
    "/purchase-orders",
    response_model=ApiResponse[PurchaseOrderResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_purchase_order(
    data: PurchaseOrderCreate,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    """Create a purchase order."""
    po = await PurchaseOrderService(db).create_purchase_order(ctx, data)
    return ApiResponse(success=True, message="Purchase order created successfully", data=_po_to_response(po))


@router.get(
    "/purchase-orders",
    response_model=ApiResponse[PaginatedResponse[PurchaseOrderResponse]],
)
async def list_purchase_orders(
    ctx: OutletContext,
    status: str | None = Query(None),
    supplier_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List purchase orders with filters."""
    filters = PurchaseOrderFilters(
        status=status,
        supplier_id=supplier_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        limit=limit,
    )
    pos, total = await PurchaseOrderService(db).list_purchase_orders(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[_po_to_response(po) for po in pos],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get(
    "/purchase-orders/outstanding",
    response_model=ApiResponse[list[OutstandingItemResponse]],
)
async def list_outstanding_items(
    ctx: OutletContext,
    supplier_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Ordered lines still waiting for delivery."""
    rows = await PurchaseOrderService(db).list_outstanding_items(ctx, supplier_id)
    return ApiResponse(success=True, data=rows)


@router.get("/purchase-orders/{po_id}", response_model=ApiResponse[PurchaseOrderResponse])
async def get_purchase_order(po_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    po = await PurchaseOrderService(db).get_purchase_order(ctx, po_id)
    return ApiResponse(success=True, data=_po_to_response(po))


@router.put("/purchase-orders/{po_id}", response_model=ApiResponse[PurchaseOrderResponse])
async def update_purchase_order(
    po_id: int,
    data: PurchaseOrderUpdate,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    """Update a DRAFT/ISSUED purchase order."""
    po = await PurchaseOrderService(db).update_purchase_order(ctx, po_id, data)
    return ApiResponse(success=True, message="Purchase order updated successfully", data=_po_to_response(po))


@router.post("/purchase-orders/{po_id}/issue", response_model=ApiResponse[PurchaseOrderResponse])
async def issue_purchase_order(po_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    po = await PurchaseOrderService(db).issue_purchase_order(ctx, po_id)
    return ApiResponse(success=True, message="Purchase order issued successfully", data=_po_to_response(po))


@router.post("/purchase-orders/{po_id}/cancel", response_model=ApiResponse[PurchaseOrderResponse])
async def cancel_purchase_order(
    po_id: int,
    data: CancelPurchaseOrderRequest,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).cancel_purchase_order(ctx, po_id, data.reason)
    return ApiResponse(success=True, message="Purchase order cancelled", data=_po_to_response(po))


@router.post(
    "/purchase-orders/{po_id}/receive-remaining",
    response_model=ApiResponse[GoodsReceiptResponse | None],
)
async def receive_remaining(
    po_id: int,
    ctx: OutletContext,
    data: ReceiveRemainingRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Receive every remaining quantity; a no-op when nothing remains."""
    receipt = await GoodsReceiptService(db).receive_remaining(ctx, po_id, data)
    if receipt is None:
        return ApiResponse(success=True, message="Nothing left to receive", data=None)
    return ApiResponse(success=True, message="Goods received successfully", data=_gr_to_response(receipt))


@router.post("/goods-receipts/preview", response_model=ApiResponse[GoodsReceiptPreview])
async def preview_goods_receipt(
    data: GoodsReceiptCreate,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    preview = await GoodsReceiptService(db).preview_goods_receipt(ctx, data)
    return ApiResponse(success=True, data=preview)


@router.post(
    "/goods-receipts",
    response_model=ApiResponse[GoodsReceiptResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_goods_receipt(
    data: GoodsReceiptCreate,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    """Post a goods receipt against an issued or partially received PO."""
    receipt = await GoodsReceiptService(db).create_goods_receipt(ctx, data)
    return ApiResponse(success=True, message="Goods received successfully", data=_gr_to_response(receipt))


@router.get("/goods-receipts", response_model=ApiResponse[PaginatedResponse[GoodsReceiptResponse]])
async def list_goods_receipts(
    ctx: OutletContext,
    po_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = GoodsReceiptFilters(po_id=po_id, date_from=date_from, date_to=date_to, page=page, limit=limit)
    receipts, total = await GoodsReceiptService(db).list_goods_receipts(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[_gr_to_response(r) for r in receipts], total=total, page=page, limit=limit
        ),
    )


@router.get("/goods-receipts/{gr_id}", response_model=ApiResponse[GoodsReceiptResponse])
async def get_goods_receipt(gr_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    receipt = await GoodsReceiptService(db).get_goods_receipt(ctx, gr_id)
    return ApiResponse(success=True, data=_gr_to_response(receipt))
