"""API endpoints for internal usage and internal returns."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context.dependencies import OutletContext
from outlet_erp.core.database import get_db
from outlet_erp.modules.internal_usage.schemas import (
    InternalLedgerFilters,
    InternalReturnCreate,
    InternalReturnResponse,
    InternalUsageCreate,
    InternalUsageResponse,
    LedgerReport,
)
from outlet_erp.modules.internal_usage.service import InternalReturnService, InternalUsageService
from outlet_erp.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/outlets/{outlet_code}/internal", tags=["Internal Usage"])


@router.post(
    "/usages",
    response_model=ApiResponse[InternalUsageResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_usage(data: InternalUsageCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    usage = await InternalUsageService(db).create_usage(ctx, data)
    return ApiResponse(
        success=True,
        message="Internal usage recorded",
        data=InternalUsageResponse.model_validate(usage),
    )


@router.get("/usages", response_model=ApiResponse[PaginatedResponse[InternalUsageResponse]])
async def list_usages(
    ctx: OutletContext,
    category_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = InternalLedgerFilters(
        category_id=category_id, date_from=date_from, date_to=date_to, page=page, limit=limit
    )
    usages, total = await InternalUsageService(db).list_usages(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[InternalUsageResponse.model_validate(u) for u in usages],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/usages/report", response_model=ApiResponse[LedgerReport])
async def usage_report(
    ctx: OutletContext,
    date_from: date = Query(...),
    date_to: date = Query(...),
    category_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Expense value of internal usage grouped by category."""
    report = await InternalUsageService(db).usage_report(ctx, date_from, date_to, category_id)
    return ApiResponse(success=True, data=report)


@router.get("/usages/{usage_id}", response_model=ApiResponse[InternalUsageResponse])
async def get_usage(usage_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    usage = await InternalUsageService(db).get_usage(ctx, usage_id)
    return ApiResponse(success=True, data=InternalUsageResponse.model_validate(usage))


@router.post(
    "/returns",
    response_model=ApiResponse[InternalReturnResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_return(data: InternalReturnCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    internal_return = await InternalReturnService(db).create_return(ctx, data)
    return ApiResponse(
        success=True,
        message="Internal return recorded",
        data=InternalReturnResponse.model_validate(internal_return),
    )


@router.get("/returns", response_model=ApiResponse[PaginatedResponse[InternalReturnResponse]])
async def list_returns(
    ctx: OutletContext,
    category_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = InternalLedgerFilters(
        category_id=category_id, date_from=date_from, date_to=date_to, page=page, limit=limit
    )
    returns, total = await InternalReturnService(db).list_returns(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[InternalReturnResponse.model_validate(r) for r in returns],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/returns/report", response_model=ApiResponse[LedgerReport])
async def return_report(
    ctx: OutletContext,
    date_from: date = Query(...),
    date_to: date = Query(...),
    category_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Recovered value of internal returns grouped by category."""
    report = await InternalReturnService(db).return_report(ctx, date_from, date_to, category_id)
    return ApiResponse(success=True, data=report)


@router.get("/returns/{return_id}", response_model=ApiResponse[InternalReturnResponse])
async def get_return(return_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    internal_return = await InternalReturnService(db).get_return(ctx, return_id)
    return ApiResponse(success=True, data=InternalReturnResponse.model_validate(internal_return))
