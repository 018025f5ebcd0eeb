from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.audit.models import AuditLog


class AuditAction(StrEnum):
    """Standard audit actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    CANCEL = "CANCEL"
    ISSUE = "ISSUE"

    # Engine actions
    RECEIVE_GOODS = "RECEIVE_GOODS"
    GENERATE_INVOICE = "GENERATE_INVOICE"
    SETTLE_INVOICES = "SETTLE_INVOICES"
    ACCOUNT_TRANSACTION = "ACCOUNT_TRANSACTION"
    STOCK_OPNAME = "STOCK_OPNAME"
    SHRINKAGE = "SHRINKAGE"
    INTERNAL_USAGE = "INTERNAL_USAGE"
    INTERNAL_RETURN = "INTERNAL_RETURN"


class AuditService:
    """Service for creating audit logs inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        user_id: str | None = None,
        outlet_code: str | None = None,
        entity_identifier: str | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        audit_log = AuditLog(
            user_id=user_id,
            outlet_code=outlet_code,
            action=str(action),
            entity_type=entity_type,
            entity_id=entity_id,
            entity_identifier=entity_identifier,
            old_values=old_values,
            new_values=new_values,
            comment=comment,
        )

        self.db.add(audit_log)
        await self.db.flush()

        return audit_log


async def list_audit_entries(
    session: AsyncSession,
    *,
    outlet_code: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """List audit log entries with optional filters, newest first."""
    filters = []
    if outlet_code is not None:
        filters.append(AuditLog.outlet_code == outlet_code)
    if date_from is not None:
        filters.append(AuditLog.created_at >= date_from)
    if date_to is not None:
        filters.append(AuditLog.created_at <= date_to)
    if entity_type is not None:
        filters.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        filters.append(AuditLog.entity_id == entity_id)
    if action is not None:
        filters.append(AuditLog.action == action)

    total = (await session.execute(select(func.count()).select_from(AuditLog).where(*filters))).scalar_one()

    q = (
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(q)
    return list(result.scalars().all()), total
