from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from . import config
from .models import Base


def make_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the async SQLAlchemy engine (defaults to config.DATABASE_URL)."""
    return create_async_engine(
        database_url or config.DATABASE_URL,
        echo=config.DATABASE_ECHO,  # True if you want to see SQL
        future=True,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create tables (dev-time; there are no migrations for the documents table)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
