"""Outlet ERP FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import DBAPIError, IntegrityError

from outlet_erp.core.config import settings
from outlet_erp.core.exceptions import AppException
from outlet_erp.core.exceptions.handlers import (
    app_exception_handler,
    http_exception_handler,
    sqlalchemy_db_error_handler,
    validation_exception_handler,
)
from outlet_erp.core.logging import configure_logging
from outlet_erp.modules.finance.router import router as finance_router
from outlet_erp.modules.internal_usage.router import router as internal_usage_router
from outlet_erp.modules.inventory.router import router as inventory_router
from outlet_erp.modules.invoices.router import router as invoices_router
from outlet_erp.modules.procurement.router import router as procurement_router
from outlet_erp.modules.stock_opname.router import router as stock_opname_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Outlet ERP starting (env=%s)", settings.app_env)
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Outlet ERP",
        description="Procure-to-pay and inventory reconciliation for multi-outlet businesses",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, sqlalchemy_db_error_handler)
    app.add_exception_handler(DBAPIError, sqlalchemy_db_error_handler)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    app.include_router(procurement_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(finance_router, prefix="/api/v1")
    app.include_router(inventory_router, prefix="/api/v1")
    app.include_router(stock_opname_router, prefix="/api/v1")
    app.include_router(internal_usage_router, prefix="/api/v1")

    return app


app = create_app()
