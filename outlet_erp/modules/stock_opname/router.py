"""API endpoints for stock opname and shrinkage."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context.dependencies import OutletContext
from outlet_erp.core.database import get_db
from outlet_erp.modules.stock_opname.models import OpnameMode
from outlet_erp.modules.stock_opname.schemas import (
    ShrinkageCreate,
    ShrinkageFilters,
    ShrinkageResponse,
    StockOpnameCreate,
    StockOpnameFilters,
    StockOpnamePreview,
    StockOpnameResponse,
    VarianceReport,
)
from outlet_erp.modules.stock_opname.service import ShrinkageService, StockOpnameService
from outlet_erp.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/outlets/{outlet_code}/stock", tags=["Stock Opname"])


@router.post("/opnames/preview", response_model=ApiResponse[StockOpnamePreview])
async def preview_stock_opname(data: StockOpnameCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    """Show system vs counted quantities without adjusting stock."""
    preview = await StockOpnameService(db).preview_stock_opname(ctx, data)
    return ApiResponse(success=True, data=preview)


@router.post(
    "/opnames",
    response_model=ApiResponse[StockOpnameResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_stock_opname(data: StockOpnameCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    """Finalize a batch or spot count."""
    opname = await StockOpnameService(db).create_stock_opname(ctx, data)
    return ApiResponse(
        success=True,
        message="Stock opname finalized successfully",
        data=StockOpnameResponse.model_validate(opname),
    )


@router.get("/opnames", response_model=ApiResponse[PaginatedResponse[StockOpnameResponse]])
async def list_stock_opnames(
    ctx: OutletContext,
    mode: OpnameMode | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = StockOpnameFilters(mode=mode, date_from=date_from, date_to=date_to, page=page, limit=limit)
    opnames, total = await StockOpnameService(db).list_stock_opnames(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[StockOpnameResponse.model_validate(o) for o in opnames],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/opnames/variance", response_model=ApiResponse[VarianceReport])
async def variance_report(
    ctx: OutletContext,
    opname_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    only_discrepancies: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    report = await StockOpnameService(db).variance_report(ctx, opname_id, date_from, date_to, only_discrepancies)
    return ApiResponse(success=True, data=report)


@router.get("/opnames/{opname_id}", response_model=ApiResponse[StockOpnameResponse])
async def get_stock_opname(opname_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    opname = await StockOpnameService(db).get_stock_opname(ctx, opname_id)
    return ApiResponse(success=True, data=StockOpnameResponse.model_validate(opname))


@router.post(
    "/shrinkage",
    response_model=ApiResponse[ShrinkageResponse],
    status_code=status.HTTP_201_CREATED,
)
async def record_shrinkage(data: ShrinkageCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    log = await ShrinkageService(db).record_shrinkage(ctx, data)
    return ApiResponse(success=True, message="Shrinkage recorded", data=ShrinkageResponse.model_validate(log))


@router.get("/shrinkage", response_model=ApiResponse[PaginatedResponse[ShrinkageResponse]])
async def list_shrinkage(
    ctx: OutletContext,
    item_id: int | None = Query(None),
    shrinkage_category_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = ShrinkageFilters(
        item_id=item_id,
        shrinkage_category_id=shrinkage_category_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    logs, total = await ShrinkageService(db).list_shrinkage(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[ShrinkageResponse.model_validate(log) for log in logs],
            total=total,
            page=page,
            limit=limit,
        ),
    )
