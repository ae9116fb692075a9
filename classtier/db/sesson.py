# classtier/db/sesson.py
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from classtier.core.settings import settings


def build_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(
        url or settings.DATABASE_ASYNC_URL,
        echo=settings.DATABASE_ECHO,  # bật True chỉ khi debug
        pool_pre_ping=True,  # tự kiểm tra connection còn sống
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # giữ dữ liệu object sau commit, tránh lỗi greenlet
    )


# ✅ Dependency cho FastAPI: mỗi request một session, factory nằm ở app.state
async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
