from outlet_erp.core.database.session import async_session, atomic, engine, flush_or_conflict, get_db
from outlet_erp.core.database.base import Base, BaseModel, BigIntPK, MoneyColumn, QuantityColumn

__all__ = [
    "async_session",
    "atomic",
    "engine",
    "flush_or_conflict",
    "get_db",
    "Base",
    "BaseModel",
    "BigIntPK",
    "MoneyColumn",
    "QuantityColumn",
]
