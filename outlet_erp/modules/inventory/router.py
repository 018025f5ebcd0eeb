"""API endpoints for inventory balances and the movement ledger."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context.dependencies import OutletContext
from outlet_erp.core.database import get_db
from outlet_erp.modules.inventory.schemas import (
    BalanceFilters,
    InventoryBalanceResponse,
    MovementFilters,
    StockMovementResponse,
)
from outlet_erp.modules.inventory.service import InventoryService
from outlet_erp.shared.schemas import ApiResponse, PaginatedResponse
from outlet_erp.shared.utils.money import round_money

router = APIRouter(prefix="/outlets/{outlet_code}/inventory", tags=["Inventory"])


def _balance_to_response(balance) -> InventoryBalanceResponse:
    response = InventoryBalanceResponse.model_validate(balance)
    response.stock_value = round_money(balance.qty_on_hand * balance.average_cost)
    return response


@router.get("/balances", response_model=ApiResponse[PaginatedResponse[InventoryBalanceResponse]])
async def list_balances(
    ctx: OutletContext,
    item_id: int | None = Query(None),
    only_in_stock: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List quantity on hand per item for the outlet."""
    filters = BalanceFilters(item_id=item_id, only_in_stock=only_in_stock, page=page, limit=limit)
    balances, total = await InventoryService(db).list_balances(ctx.outlet_code, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[_balance_to_response(b) for b in balances], total=total, page=page, limit=limit
        ),
    )


@router.get("/balances/{item_id}", response_model=ApiResponse[InventoryBalanceResponse])
async def get_balance(item_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    balance = await InventoryService(db).get_balance(ctx.outlet_code, item_id)
    return ApiResponse(success=True, data=_balance_to_response(balance))


@router.get("/movements", response_model=ApiResponse[PaginatedResponse[StockMovementResponse]])
async def list_movements(
    ctx: OutletContext,
    item_id: int | None = Query(None),
    movement_type: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Stock movement ledger, newest first."""
    filters = MovementFilters(
        item_id=item_id,
        movement_type=movement_type,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    movements, total = await InventoryService(db).list_movements(ctx.outlet_code, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[StockMovementResponse.model_validate(m) for m in movements],
            total=total,
            page=page,
            limit=limit,
        ),
    )
