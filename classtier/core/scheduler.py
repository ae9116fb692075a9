from datetime import datetime

from apscheduler.jobstores.base import ConflictingIdError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classtier.core.settings import settings
from classtier.services.shares.membership import MembershipService

scheduler = AsyncIOScheduler()


# ================================
# JOB: Hết hạn đăng ký lớp trả phí
# ================================
async def subscription_expiry_job(
    session_factory: async_sessionmaker[AsyncSession],
) -> dict | None:
    logger.info("⌛ Running subscription expiry job...")

    async with session_factory() as session:
        service = MembershipService(session)
        try:
            result = await service.expire_subscriptions_async()
            logger.success(f"✔ Subscription expiry result: {result}")
            return result
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"❌ Subscription expiry job error: {e}")
            return None


# ================================
# START ALL JOBS
# ================================
def start_scheduler(session_factory: async_sessionmaker[AsyncSession]):
    try:
        scheduler.add_job(
            subscription_expiry_job,  # truyền function, không gọi ()
            trigger=IntervalTrigger(minutes=settings.SUBSCRIPTION_EXPIRY_SWEEP_MINUTES),
            next_run_time=datetime.now(),
            id="subscription_expiry_job",
            kwargs={"session_factory": session_factory},
            replace_existing=True,
            max_instances=1,
        )
    except ConflictingIdError:
        logger.warning("⚠ subscription_expiry_job existed")

    scheduler.start()
    logger.info("🔔 Scheduler started (subscription expiry)")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("🛑 Scheduler stopped")
