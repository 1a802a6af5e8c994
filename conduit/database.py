from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


AFTER_COMMIT_KEY = "after_commit"


def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """
    Run *callback* once the request's transaction has committed.  Nothing
    runs if it rolls back.  Used for side effects outside the database,
    such as dropping a cache entry, that must not race the commit.
    """
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(callback)


def session_dependency(factory: async_sessionmaker[AsyncSession]):
    """Build a request-scoped session dependency on top of *factory*."""

    async def _get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                callbacks = session.info.pop(AFTER_COMMIT_KEY, [])
            for callback in callbacks:
                await callback()

    return _get_db


# Yields a session whose transaction spans the whole request.  Services only
# flush; the commit happens once the handler has returned, so a
# multi-statement operation is visible all-or-nothing.
get_db = session_dependency(async_session)


async def create_schema() -> None:
    """Create any missing tables on the production engine."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
