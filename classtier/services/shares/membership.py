import uuid
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.enum import ClassSubscriptionStatus, MembershipStatus
from classtier.db.models.database import ClassSubscriptions, Memberships
from classtier.db.sesson import get_session
from classtier.libs.formats.datetime import now as get_now


class MembershipService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def get_membership_async(
        self, user_id: uuid.UUID, class_id: uuid.UUID
    ) -> Optional[Memberships]:
        return await self.db.scalar(
            select(Memberships).where(
                Memberships.user_id == user_id,
                Memberships.class_id == class_id,
            )
        )

    async def is_class_member_async(self, user_id: uuid.UUID, class_id: uuid.UUID) -> bool:
        membership_id = await self.db.scalar(
            select(Memberships.id).where(
                Memberships.user_id == user_id,
                Memberships.class_id == class_id,
                Memberships.status == MembershipStatus.ACTIVE.value,
            )
        )
        return membership_id is not None

    async def expire_subscriptions_async(self) -> dict:
        """
        Hết hạn các thành viên trả phí đã quá subscription_expires_at:
        - memberships ACTIVE → EXPIRED
        - class_subscriptions active → expired
        """
        now = get_now()
        memberships = await self.db.execute(
            update(Memberships)
            .where(
                Memberships.status == MembershipStatus.ACTIVE.value,
                Memberships.subscription_paid.is_(True),
                Memberships.subscription_expires_at.is_not(None),
                Memberships.subscription_expires_at < now,
            )
            .values(status=MembershipStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        ledger = await self.db.execute(
            update(ClassSubscriptions)
            .where(
                ClassSubscriptions.status == ClassSubscriptionStatus.ACTIVE.value,
                ClassSubscriptions.expires_at < now,
            )
            .values(status=ClassSubscriptionStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        result = {
            "memberships_expired": memberships.rowcount or 0,
            "subscriptions_expired": ledger.rowcount or 0,
        }
        if result["memberships_expired"] or result["subscriptions_expired"]:
            logger.info(f"⌛ Hết hạn đăng ký lớp: {result}")
        return result
