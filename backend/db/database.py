from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def build_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    return create_async_engine(url, echo=echo, **kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables(engine: AsyncEngine):
    # Import models so every table is registered on Base.metadata
    import db.users  # noqa: F401
    import db.inventory  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_maker: Optional[async_sessionmaker[AsyncSession]] = getattr(request.app.state, "session_maker", None)
    if session_maker is None:
        raise RuntimeError("Database is not initialised; app lifespan has not run")
    async with session_maker() as session:
        yield session
