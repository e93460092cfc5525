from collections.abc import AsyncIterator

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True)

async_session_factory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Dialects whose insert() construct supports ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def supports_native_upsert(dialect_name: str) -> bool:
    return dialect_name in _UPSERT_INSERTS


def upsert_insert(dialect_name: str, table):
    """Return a dialect-specific insert() for ``table`` that has on_conflict_do_update."""
    try:
        return _UPSERT_INSERTS[dialect_name](table)
    except KeyError:
        raise NotImplementedError(f"Dialect '{dialect_name}' has no native upsert") from None


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory
