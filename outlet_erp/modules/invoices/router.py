"""API endpoints for supplier invoices."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.context.dependencies import OutletContext
from outlet_erp.core.database import get_db
from outlet_erp.modules.invoices.schemas import InvoiceFilters, InvoiceGenerate, InvoiceResponse
from outlet_erp.modules.invoices.service import InvoiceService
from outlet_erp.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/outlets/{outlet_code}/invoices", tags=["Invoices"])


@router.post("", response_model=ApiResponse[InvoiceResponse], status_code=status.HTTP_201_CREATED)
async def generate_invoice(
    data: InvoiceGenerate,
    ctx: OutletContext,
    db: AsyncSession = Depends(get_db),
):
    """Generate the invoice of a partially or fully received purchase order."""
    invoice = await InvoiceService(db).generate_invoice(ctx, data)
    return ApiResponse(
        success=True,
        message="Invoice generated successfully",
        data=InvoiceResponse.model_validate(invoice),
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[InvoiceResponse]])
async def list_invoices(
    ctx: OutletContext,
    status: str | None = Query(None),
    supplier_id: int | None = Query(None),
    due_before: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    filters = InvoiceFilters(status=status, supplier_id=supplier_id, due_before=due_before, page=page, limit=limit)
    invoices, total = await InvoiceService(db).list_invoices(ctx, filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[InvoiceResponse.model_validate(i) for i in invoices], total=total, page=page, limit=limit
        ),
    )


@router.get("/open", response_model=ApiResponse[list[InvoiceResponse]])
async def list_open_invoices(
    ctx: OutletContext,
    supplier_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Invoices of a supplier that can be settled, oldest due first."""
    invoices = await InvoiceService(db).list_open_invoices(ctx, supplier_id)
    return ApiResponse(success=True, data=[InvoiceResponse.model_validate(i) for i in invoices])


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(invoice_id: int, ctx: OutletContext, db: AsyncSession = Depends(get_db)):
    invoice = await InvoiceService(db).get_invoice(ctx, invoice_id)
    return ApiResponse(success=True, data=InvoiceResponse.model_validate(invoice))
