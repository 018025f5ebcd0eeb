from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.database import flush_or_conflict
from outlet_erp.core.documents.models import DocumentSequence


class DocumentNumberGenerator:
    """
    Generates outlet-scoped sequential document numbers: PREFIX-OUTLET-YYYY-NNNNNN

    Examples:
        PO-OUT01-2026-000001
        GR-OUT01-2026-000042
        SO-111-2026-000003
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def generate(self, prefix: str, outlet_code: str, year: int | None = None) -> str:
        """
        Generate next document number for a prefix within one outlet and year.

        Uses SELECT FOR UPDATE so concurrent callers serialize on the sequence row.
        Two callers racing to create the first row of a sequence end in a
        ConflictError for the loser, who is expected to retry.
        """
        if year is None:
            year = datetime.now().year

        stmt = (
            select(DocumentSequence)
            .where(
                DocumentSequence.prefix == prefix,
                DocumentSequence.outlet_code == outlet_code,
                DocumentSequence.year == year,
            )
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        sequence = result.scalar_one_or_none()

        if sequence is None:
            sequence = DocumentSequence(prefix=prefix, outlet_code=outlet_code, year=year, last_number=0)
            self.session.add(sequence)
            await flush_or_conflict(self.session, f"Document sequence {prefix} was created concurrently")

            result = await self.session.execute(stmt)
            sequence = result.scalar_one()

        sequence.last_number += 1
        await self.session.flush()

        return f"{prefix}-{outlet_code}-{year}-{sequence.last_number:06d}"


async def get_document_number(
    session: AsyncSession, prefix: str, outlet_code: str, year: int | None = None
) -> str:
    """Convenience function to generate a document number."""
    generator = DocumentNumberGenerator(session)
    return await generator.generate(prefix, outlet_code, year)
