from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from outlet_erp.core.context import OperationContext
from outlet_erp.core.context.jwt import create_access_token
from outlet_erp.core.database import get_db
from outlet_erp.core.database.base import Base
from outlet_erp.main import app
from outlet_erp.modules.finance.models import AccountType
from outlet_erp.modules.finance.schemas import FinancialAccountCreate
from outlet_erp.modules.finance.service import FinancialAccountService
from outlet_erp.modules.invoices.schemas import InvoiceGenerate
from outlet_erp.modules.invoices.service import InvoiceService
from outlet_erp.modules.masterdata.models import (
    Item,
    Outlet,
    ShrinkageCategory,
    Supplier,
    TransactionCategory,
    TransactionDirection,
    UsageCategory,
)
from outlet_erp.modules.procurement.schemas import (
    GoodsReceiptCreate,
    GoodsReceiptItemCreate,
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
)
from outlet_erp.modules.procurement.service import GoodsReceiptService, PurchaseOrderService

# In-memory SQLite shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
test_async_session = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

OUTLET = "OUT01"


@dataclass(frozen=True)
class MasterData:
    """Ids of the seeded master rows; plain ints survive a rolled-back session."""

    supplier_id: int
    other_supplier_id: int
    beans_id: int
    milk_id: int
    cups_id: int
    inactive_item_id: int
    staff_meal_id: int
    cleaning_id: int
    expired_id: int
    capital_in_id: int
    utilities_out_id: int


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    async with test_async_session() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def master(db_session: AsyncSession) -> MasterData:
    """Outlets, suppliers, items and categories the engine reads."""
    db_session.add_all(
        [
            Outlet(code="111", name="Head Office", is_holding=True),
            Outlet(code=OUTLET, name="Kemang Coffee Bar"),
            Outlet(code="OUT02", name="Senopati Kitchen"),
        ]
    )
    supplier = Supplier(code="SUP-BEAN", name="Java Bean Roasters")
    other_supplier = Supplier(code="SUP-DAIRY", name="Fresh Dairy Nusantara")
    beans = Item(
        sku="BEAN-1KG",
        name="Arabica Beans",
        base_unit="gram",
        purchase_unit="kg",
        conversion_rate=Decimal("1000"),
        buy_price=Decimal("180000.00"),
    )
    milk = Item(
        sku="MILK-1L",
        name="UHT Milk",
        base_unit="carton",
        purchase_unit="box",
        conversion_rate=Decimal("12"),
        buy_price=Decimal("120000.00"),
    )
    cups = Item(
        sku="CUP-12OZ",
        name="Paper Cup",
        base_unit="pcs",
        purchase_unit="pcs",
        conversion_rate=Decimal("1"),
        buy_price=Decimal("1000.00"),
    )
    inactive = Item(
        sku="OLD-001",
        name="Discontinued Syrup",
        base_unit="bottle",
        purchase_unit="bottle",
        conversion_rate=Decimal("1"),
        buy_price=Decimal("50000.00"),
        is_active=False,
    )
    staff_meal = UsageCategory(name="Staff Meal")
    cleaning = UsageCategory(name="Cleaning")
    expired = ShrinkageCategory(name="Expired")
    capital_in = TransactionCategory(name="Owner Capital", direction=TransactionDirection.IN.value)
    utilities_out = TransactionCategory(name="Utilities", direction=TransactionDirection.OUT.value)
    db_session.add_all(
        [supplier, other_supplier, beans, milk, cups, inactive, staff_meal, cleaning, expired, capital_in, utilities_out]
    )
    await db_session.commit()

    return MasterData(
        supplier_id=supplier.id,
        other_supplier_id=other_supplier.id,
        beans_id=beans.id,
        milk_id=milk.id,
        cups_id=cups.id,
        inactive_item_id=inactive.id,
        staff_meal_id=staff_meal.id,
        cleaning_id=cleaning.id,
        expired_id=expired.id,
        capital_in_id=capital_in.id,
        utilities_out_id=utilities_out.id,
    )


@pytest.fixture
def ctx() -> OperationContext:
    return OperationContext(outlet_code=OUTLET, user_id="user-1", home_outlet_code=OUTLET)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a caller of the given outlet."""

    def _headers(outlet_code: str = OUTLET, user_id: str = "user-1", role: str = "staff") -> dict[str, str]:
        token = create_access_token(user_id, outlet_code, role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


class Workflow:
    """Shortcuts for the procure-to-pay steps that many tests start from."""

    def __init__(self, db: AsyncSession, master: MasterData):
        self.db = db
        self.master = master

    async def issued_po(self, ctx: OperationContext, lines: list[tuple[int, str, str]], supplier_id: int | None = None):
        """Create an ISSUED purchase order from (item_id, qty, price) lines."""
        return await PurchaseOrderService(self.db).create_purchase_order(
            ctx,
            PurchaseOrderCreate(
                supplier_id=supplier_id or self.master.supplier_id,
                issue=True,
                items=[
                    PurchaseOrderItemCreate(item_id=item_id, qty_ordered=Decimal(qty), price_per_unit=Decimal(price))
                    for item_id, qty, price in lines
                ],
            ),
        )

    async def receive(self, ctx: OperationContext, po, quantities: list[str]):
        """Receive `quantities` against the PO lines, in line order."""
        return await GoodsReceiptService(self.db).create_goods_receipt(
            ctx,
            GoodsReceiptCreate(
                po_id=po.id,
                items=[
                    GoodsReceiptItemCreate(po_item_id=line.id, qty_received=Decimal(qty))
                    for line, qty in zip(po.items, quantities)
                ],
            ),
        )

    async def invoice(self, ctx: OperationContext, po_id: int, ref: str = "SUP-INV-1", due_in_days: int = 30):
        today = date.today()
        return await InvoiceService(self.db).generate_invoice(
            ctx,
            InvoiceGenerate(
                po_id=po_id,
                supplier_invoice_ref=ref,
                invoice_date=today,
                due_date=today + timedelta(days=due_in_days),
            ),
        )

    async def account(self, ctx: OperationContext, opening_balance: str, name: str = "Main Cash"):
        return await FinancialAccountService(self.db).create_account(
            ctx,
            FinancialAccountCreate(
                account_name=name,
                account_type=AccountType.CASH,
                opening_balance=Decimal(opening_balance),
            ),
        )

    async def stock(self, ctx: OperationContext, item_id: int, qty: str, price: str):
        """Put `qty` purchase units of an item on hand through a fully received PO."""
        po = await self.issued_po(ctx, [(item_id, qty, price)])
        await self.receive(ctx, po, [qty])
        return po


@pytest.fixture
def workflow(db_session: AsyncSession, master: MasterData) -> Workflow:
    return Workflow(db_session, master)
