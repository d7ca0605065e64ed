"""Database engine, session factory, and declarative base.

All five entity kinds (lots, harvests, test results, processing batches,
certificates) live in one schema and share a single DeclarativeBase.

Session dependency for FastAPI:
  - get_db()  → one transaction per request; committed when the handler
                returns, rolled back on any exception.  Services only flush,
                so a multi-step mutation (e.g. test result + harvest status +
                lot workflow flag) is persisted all-or-nothing.
  - after_commit(session, cb) → work that must only happen once the
                transaction is durable (notification fan-out).  Hooks run
                after the commit and are dropped on rollback.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from herbtrace.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for every herbtrace table."""
    pass


# ── After-commit hooks ──────────────────────────────────────

AFTER_COMMIT_KEY = "herbtrace.after_commit"


def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """Queue `callback` to run once the session's transaction has committed."""
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(callback)


async def run_after_commit(session: AsyncSession) -> None:
    callbacks = session.info.pop(AFTER_COMMIT_KEY, [])
    for callback in callbacks:
        try:
            await callback()
        except Exception:
            # Already committed; report and carry on.
            logger.exception("After-commit hook failed")


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit on success and run after-commit hooks, or roll back and drop them."""
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        session.info.pop(AFTER_COMMIT_KEY, None)
        raise
    await run_after_commit(session)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session whose work is committed as a single transaction."""
    async with async_session() as session:
        async with transaction(session):
            yield session


async def create_tables() -> None:
    """Create any missing tables (development / first boot convenience)."""
    import herbtrace.models  # noqa: F401  (registers every mapper)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
