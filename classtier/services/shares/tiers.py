import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from fastapi import Depends, HTTPException
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classtier.core.enum import TierLevel
from classtier.core.exceptions import NotFound, UnexpectedError
from classtier.db.models.database import Classes, SubscriptionTiers, TierPurchases
from classtier.db.sesson import get_session
from classtier.libs.formats.datetime import now as get_now


@dataclass(frozen=True)
class DefaultTier:
    tier_level: TierLevel
    name: str
    price: Decimal
    lesson_unlock_count: Optional[int]


# Giá trị mặc định khi tạo lớp; giáo viên chỉnh lại được
DEFAULT_TIERS: tuple[DefaultTier, ...] = (
    DefaultTier(TierLevel.FREE, "Miễn phí", Decimal("0"), 0),
    DefaultTier(TierLevel.BASIC, "Cơ bản", Decimal("50000"), 5),
    DefaultTier(TierLevel.STANDARD, "Tiêu chuẩn", Decimal("100000"), 10),
    DefaultTier(TierLevel.UNLIMITED, "Trọn bộ", Decimal("200000"), None),
)


def validate_tier_ladder(
    ladder: Iterable[tuple[int, Optional[int]]],
) -> Optional[str]:
    """
    Kiểm tra (tier_level, lesson_unlock_count) của một lớp:
    - mỗi cấp chỉ xuất hiện một lần
    - số bài mở khóa không giảm khi cấp tăng (None = không giới hạn, là lớn nhất)
    Trả về thông báo lỗi hoặc None.
    """
    rows = sorted(ladder, key=lambda r: r[0])
    levels = [level for level, _ in rows]
    if len(levels) != len(set(levels)):
        return "Mỗi cấp gói chỉ được có một gói"

    previous: Optional[int] = 0
    unlimited_seen = False
    for _, count in rows:
        if count is None:
            unlimited_seen = True
            continue
        if unlimited_seen or (previous is not None and count < previous):
            return "Số bài mở khóa của gói cao hơn không được ít hơn gói thấp hơn"
        previous = count
    return None


class TierService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def get_tier_async(self, tier_id: uuid.UUID) -> Optional[SubscriptionTiers]:
        return await self.db.get(SubscriptionTiers, tier_id)

    async def list_tiers_async(self, class_id: uuid.UUID) -> list[SubscriptionTiers]:
        result = await self.db.execute(
            select(SubscriptionTiers)
            .where(SubscriptionTiers.class_id == class_id)
            .order_by(SubscriptionTiers.tier_level.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def seed_default_tiers_async(
        self, class_id: uuid.UUID, commit: bool = True
    ) -> list[SubscriptionTiers]:
        now = get_now()
        tiers = [
            SubscriptionTiers(
                id=uuid.uuid4(),
                class_id=class_id,
                tier_level=int(d.tier_level),
                name=d.name,
                price=d.price,
                lesson_unlock_count=d.lesson_unlock_count,
                is_enabled=True,
                created_at=now,
                updated_at=now,
            )
            for d in DEFAULT_TIERS
        ]
        self.db.add_all(tiers)
        await self.db.flush()
        if commit:
            await self.db.commit()
        logger.info(f"🧱 Tạo {len(tiers)} gói mặc định cho lớp {class_id}")
        return tiers

    async def get_class_tiers_async(self, class_id: uuid.UUID) -> list[SubscriptionTiers]:
        """Danh sách gói theo tier_level tăng dần; lớp cũ chưa có gói thì tạo mặc định."""
        try:
            class_ = await self.db.get(Classes, class_id)
            if not class_:
                raise NotFound("Lớp học không tồn tại")

            tiers = await self.list_tiers_async(class_id)
            if tiers:
                return tiers

            logger.warning(f"Lớp {class_id} chưa có gói, tạo gói mặc định")
            try:
                await self.seed_default_tiers_async(class_id)
            except IntegrityError:
                # request khác vừa tạo xong
                await self.db.rollback()
            return await self.list_tiers_async(class_id)

        except HTTPException:
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"[TIERS] Lỗi lấy gói của lớp {class_id}")
            raise UnexpectedError("Không thể tải thông tin gói")

    async def get_user_tier_purchase_async(
        self, user_id: uuid.UUID, class_id: uuid.UUID
    ) -> Optional[TierPurchases]:
        return await self.db.scalar(
            select(TierPurchases)
            .where(
                TierPurchases.user_id == user_id,
                TierPurchases.class_id == class_id,
            )
            .options(selectinload(TierPurchases.tier))
            .execution_options(populate_existing=True)
        )
