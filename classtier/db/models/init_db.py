import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from classtier.db.models.database import Base
from classtier.db.sesson import build_engine


async def init_models(engine: AsyncEngine) -> None:
    """Tạo bảng còn thiếu (không xóa, không migrate)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"✅ Đã tạo {len(Base.metadata.tables)} bảng (nếu chưa có)")


async def main() -> None:
    engine = build_engine()
    try:
        await init_models(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
