from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


_engine = None
_async_session = None


def _get_engine():
    global _engine
    if _engine is None:
        from zoning_feasibility.config import settings
        _engine = create_async_engine(settings.database_url, echo=False)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _async_session
    if _async_session is None:
        _async_session = async_sessionmaker(
            _get_engine(), class_=AsyncSession, expire_on_commit=False,
        )
    return _async_session


async def create_tables() -> None:
    """Create the report tables if they do not exist yet."""
    import zoning_feasibility.models.report  # noqa: F401  register tables

    async with _get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
