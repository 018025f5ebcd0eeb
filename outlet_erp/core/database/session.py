import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from outlet_erp.core.config import settings
from outlet_erp.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

if not settings.database_url:
    raise ValueError("DATABASE_URL environment variable is not set")

_url_for_log = settings.database_url.split("@")[-1]
logger.info("Connecting to database ...@%s", _url_for_log)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run one engine operation as a single transaction.

    Commits when the block exits cleanly and rolls back on any exception, so a
    rejected command never leaves partial writes behind. Unique/check constraint
    violations raised at commit time surface as ConflictError.
    """
    try:
        yield session
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("Constraint violation, transaction rolled back: %s", exc.orig)
        raise ConflictError("Conflicting concurrent write, retry the operation") from exc
    except Exception:
        await session.rollback()
        raise


def is_unique_violation(exc: IntegrityError) -> bool:
    # asyncpg: "duplicate key value violates unique constraint", sqlite: "UNIQUE constraint failed"
    return "unique" in str(exc.orig).lower()


async def flush_or_conflict(session: AsyncSession, message: str) -> None:
    """
    Flush pending rows, translating integrity errors into ConflictError.

    `message` describes the duplicate the caller guards against and is only used
    for unique violations; any other constraint failure gets a generic message.
    """
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("Constraint violation on flush: %s", exc.orig)
        if is_unique_violation(exc):
            raise ConflictError(message) from exc
        raise ConflictError("Write violated a database constraint, retry the operation") from exc
