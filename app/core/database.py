from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy import Enum as SQLEnum
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, TypeVar
import asyncio
import logging
import weakref

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL Async Engine
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20
)

# Async Session Factory
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current time, used as the Python-side column default"""
    return datetime.now(timezone.utc)


def enum_column_type(enum_cls, name: str) -> SQLEnum:
    """Enum column persisted by member value ('Open', 'Fully Funded', ...)"""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Per-loan locks serialize read-modify-write on a loan's funding row within
# this process. Entries disappear once no coroutine holds the lock.
_loan_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


@asynccontextmanager
async def loan_lock(loan_id: int) -> AsyncIterator[None]:
    """Hold the in-process lock for a single loan"""
    lock = _loan_locks.get(loan_id)
    if lock is None:
        lock = asyncio.Lock()
        _loan_locks[loan_id] = lock
    async with lock:
        yield


async def run_serialized(
    db: AsyncSession,
    loan_id: int,
    work: Callable[[], Awaitable[T]],
    max_attempts: Optional[int] = None
) -> T:
    """
    Run one unit of work against a loan and commit it.

    The work runs under the loan's lock. Any exception rolls the session
    back before propagating. A stale optimistic version is retried up to
    ``max_attempts`` times, then surfaced as ConcurrencyConflictError.
    """
    attempts = max_attempts or settings.FUNDING_MAX_RETRIES

    for attempt in range(1, attempts + 1):
        async with loan_lock(loan_id):
            try:
                result = await work()
                await db.commit()
                return result
            except StaleDataError:
                await db.rollback()
                logger.warning(f"Stale funding version on loan {loan_id} (attempt {attempt}/{attempts})")
            except Exception:
                await db.rollback()
                raise

    raise ConcurrencyConflictError(
        f"Loan {loan_id} is being modified concurrently; gave up after {attempts} attempts"
    )
