"""API endpoints for finance: accounts, general transactions, settlements and reports."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context.dependencies import OutletContext
from outlet_erp.core.database import get_db
from outlet_erp.modules.finance.schemas import (
    ApAgingReport,
    CashFlowReport,
    FinancialAccountCreate,
    FinancialAccountResponse,
    GeneralTransactionCreate,
    GeneralTransactionResponse,
    PaymentFilters,
    PaymentResponse,
    SettlementCreate,
    SettlementPreview,
)
from outlet_erp.modules.finance.service import (
    FinanceReportService,
    FinancialAccountService,
    SettlementService,
)
from outlet_erp.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/outlets/{outlet_code}/finance", tags=["Finance"])


@router.post(
    "/accounts",
    response_model=ApiResponse[FinancialAccountResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_account(data: FinancialAccountCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    account = await FinancialAccountService(db).create_account(ctx, data)
    return ApiResponse(
        success=True,
        message="Account created successfully",
        data=FinancialAccountResponse.model_validate(account),
    )


@router.get("/accounts", response_model=ApiResponse[list[FinancialAccountResponse]])
async def list_accounts(
    ctx: OutletContext,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    accounts = await FinancialAccountService(db).list_accounts(ctx, include_inactive)
    return ApiResponse(success=True, data=[FinancialAccountResponse.model_validate(a) for a in accounts])


@router.get("/accounts/{account_id}", response_model=ApiResponse[FinancialAccountResponse])
async def get_account(account_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    account = await FinancialAccountService(db).get_account(ctx, account_id)
    return ApiResponse(success=True, data=FinancialAccountResponse.model_validate(account))


@router.post(
    "/transactions",
    response_model=ApiResponse[GeneralTransactionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_general_transaction(
    data: GeneralTransactionCreate,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    """Record money in or out of an account."""
    transaction = await FinancialAccountService(db).create_general_transaction(ctx, data)
    return ApiResponse(
        success=True,
        message="Transaction recorded",
        data=GeneralTransactionResponse.model_validate(transaction),
    )


@router.get("/transactions", response_model=ApiResponse[list[GeneralTransactionResponse]])
async def list_general_transactions(
    ctx: OutletContext,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    rows = await FinancialAccountService(db).list_general_transactions(ctx, date_from, date_to)
    return ApiResponse(success=True, data=[GeneralTransactionResponse.model_validate(r) for r in rows])


@router.post("/settlements/preview", response_model=ApiResponse[SettlementPreview])
async def preview_settlement(data: SettlementCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    """Compute cash per invoice and the resulting account balance without posting."""
    preview = await SettlementService(db).preview_settlement(ctx, data)
    return ApiResponse(success=True, data=preview)


@router.post(
    "/settlements",
    response_model=ApiResponse[PaymentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_settlement(data: SettlementCreate, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    """Pay off selected invoices of one supplier from one account."""
    payment = await SettlementService(db).create_settlement(ctx, data)
    return ApiResponse(
        success=True,
        message="Settlement posted successfully",
        data=PaymentResponse.model_validate(payment),
    )


@router.get("/settlements", response_model=ApiResponse[PaginatedResponse[PaymentResponse]])
async def list_settlements(
    ctx: OutletContext,
    supplier_id: int | None = Query(None),
    financial_account_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = PaymentFilters(
        supplier_id=supplier_id,
        financial_account_id=financial_account_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    payments, total = await SettlementService(db).list_settlements(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[PaymentResponse.model_validate(p) for p in payments],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/settlements/{payment_id}", response_model=ApiResponse[PaymentResponse])
async def get_settlement(payment_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    payment = await SettlementService(db).get_settlement(ctx, payment_id)
    return ApiResponse(success=True, data=PaymentResponse.model_validate(payment))


@router.get("/reports/ap-aging", response_model=ApiResponse[ApAgingReport])
async def ap_aging(
    ctx: OutletContext,
    as_of: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    report = await FinanceReportService(db).ap_aging(ctx, as_of)
    return ApiResponse(success=True, data=report)


@router.get("/reports/cash-flow", response_model=ApiResponse[CashFlowReport])
async def cash_flow(
    ctx: OutletContext,
    date_from: date = Query(...),
    date_to: date = Query(...),
    account_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    report = await FinanceReportService(db).cash_flow(ctx, date_from, date_to, account_id)
    return ApiResponse(success=True, data=report)
