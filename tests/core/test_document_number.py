from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.documents import get_document_number
from outlet_erp.core.documents.models import DocumentSequence
from outlet_erp.core.exceptions import ConflictError
from outlet_erp.modules.procurement.models import PurchaseOrder
from outlet_erp.modules.procurement.schemas import PurchaseOrderCreate, PurchaseOrderItemCreate
from outlet_erp.modules.procurement.service import PurchaseOrderService


class TestDocumentNumberGenerator:
    """Tests for outlet-scoped document numbers."""

    async def test_generate_first_number(self, db_session: AsyncSession):
        """First number of a sequence carries prefix, outlet and year."""
        number = await get_document_number(db_session, "PO", "OUT01", year=2026)
        assert number == "PO-OUT01-2026-000001"

    async def test_generate_sequential_numbers(self, db_session: AsyncSession):
        num1 = await get_document_number(db_session, "GR", "OUT01", year=2026)
        num2 = await get_document_number(db_session, "GR", "OUT01", year=2026)
        num3 = await get_document_number(db_session, "GR", "OUT01", year=2026)

        assert num1 == "GR-OUT01-2026-000001"
        assert num2 == "GR-OUT01-2026-000002"
        assert num3 == "GR-OUT01-2026-000003"

    async def test_outlets_have_independent_sequences(self, db_session: AsyncSession):
        """Each outlet numbers its own documents."""
        first = await get_document_number(db_session, "INV", "OUT01", year=2026)
        other = await get_document_number(db_session, "INV", "OUT02", year=2026)
        second = await get_document_number(db_session, "INV", "OUT01", year=2026)

        assert first == "INV-OUT01-2026-000001"
        assert other == "INV-OUT02-2026-000001"
        assert second == "INV-OUT01-2026-000002"

    async def test_different_prefixes(self, db_session: AsyncSession):
        inv = await get_document_number(db_session, "INV", "OUT01", year=2026)
        pay = await get_document_number(db_session, "PAY", "OUT01", year=2026)

        assert inv == "INV-OUT01-2026-000001"
        assert pay == "PAY-OUT01-2026-000001"

    async def test_different_years(self, db_session: AsyncSession):
        num_2026 = await get_document_number(db_session, "SO", "OUT01", year=2026)
        num_2027 = await get_document_number(db_session, "SO", "OUT01", year=2027)

        assert num_2026 == "SO-OUT01-2026-000001"
        assert num_2027 == "SO-OUT01-2027-000001"

    async def test_format_with_leading_zeros(self, db_session: AsyncSession):
        for _ in range(99):
            await get_document_number(db_session, "IU", "OUT01", year=2026)

        num_100 = await get_document_number(db_session, "IU", "OUT01", year=2026)
        assert num_100 == "IU-OUT01-2026-000100"


class TestDocumentNumberCollisions:
    async def test_repeated_number_is_a_conflict(self, db_session: AsyncSession, master, ctx):
        """A sequence that hands out a number twice ends in a retryable ConflictError."""
        service = PurchaseOrderService(db_session)
        command = PurchaseOrderCreate(
            supplier_id=master.supplier_id,
            items=[PurchaseOrderItemCreate(item_id=master.cups_id, qty_ordered=Decimal("1"))],
        )
        first = await service.create_purchase_order(ctx, command)
        first_number = first.document_number

        await db_session.execute(
            update(DocumentSequence)
            .where(DocumentSequence.prefix == "PO", DocumentSequence.outlet_code == "OUT01")
            .values(last_number=0)
        )
        await db_session.commit()
        db_session.expire_all()

        with pytest.raises(ConflictError) as exc:
            await service.create_purchase_order(ctx, command)

        assert exc.value.message == f"Document number {first_number} already exists"
        assert exc.value.details["retryable"] is True
        assert await db_session.scalar(select(func.count()).select_from(PurchaseOrder)) == 1
