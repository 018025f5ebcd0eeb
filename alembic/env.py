import asyncio
from logging.config import fileConfig

# ruff: noqa: F401

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from outlet_erp.core.config import settings
from outlet_erp.core.database.base import Base

# Import all models here so they are registered with Base.metadata
from outlet_erp.core.audit.models import AuditLog
from outlet_erp.core.documents.models import DocumentSequence
from outlet_erp.core.events.models import DomainEvent
from outlet_erp.modules.masterdata.models import (
    Item,
    Outlet,
    ShrinkageCategory,
    Supplier,
    TransactionCategory,
    UsageCategory,
)
from outlet_erp.modules.inventory.models import InventoryBalance, StockMovement
from outlet_erp.modules.procurement.models import (
    GoodsReceipt,
    GoodsReceiptItem,
    PurchaseOrder,
    PurchaseOrderItem,
)
from outlet_erp.modules.invoices.models import Invoice, InvoiceLine
from outlet_erp.modules.finance.models import (
    AccountTransaction,
    FinancialAccount,
    GeneralTransaction,
    Payment,
    PaymentAllocation,
)
from outlet_erp.modules.stock_opname.models import ShrinkageLog, StockOpname, StockOpnameLine
from outlet_erp.modules.internal_usage.models import (
    InternalReturn,
    InternalReturnLine,
    InternalUsage,
    InternalUsageLine,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    return settings.database_url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with async engine."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
