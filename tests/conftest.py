"""
Cấu hình test và fixtures dùng chung.
Mỗi test có một database SQLite (aiosqlite) riêng trong thư mục tạm.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.db.models.init_db import init_models
from classtier.db.sesson import build_engine, build_session_factory, get_session
from classtier.main import app


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Engine SQLite tạm cho một test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'classtier_test.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client gọi thẳng ASGI app, session lấy từ database tạm."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http:
        yield http
    app.dependency_overrides.clear()
