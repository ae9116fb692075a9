from decimal import Decimal

from fastapi import Depends, HTTPException
from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.exceptions import NotFound, UnexpectedError, ValidationFailed
from classtier.db.models.database import Classes, SubscriptionTiers
from classtier.db.sesson import get_session
from classtier.libs.formats.datetime import now as get_now
from classtier.schemas.lecturer.tiers import TierUpdateItem, TierUpdateSchema
from classtier.services.shares.tiers import TierService, validate_tier_ladder

NEGATIVE_PRICE_MESSAGE = "Giá phải là số không âm"
NEGATIVE_COUNT_MESSAGE = "Số bài mở khóa phải là số không âm"
UNKNOWN_TIER_MESSAGE = "Không tìm thấy gói trong lớp học này"


class TierPricingService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db
        self.tiers = TierService(db)

    @staticmethod
    def _validate_items(items: list[TierUpdateItem]) -> None:
        for item in items:
            if Decimal(item.price) < 0:
                raise ValidationFailed(NEGATIVE_PRICE_MESSAGE)
            if item.lesson_unlock_count is not None and item.lesson_unlock_count < 0:
                raise ValidationFailed(NEGATIVE_COUNT_MESSAGE)

    @staticmethod
    def _changes_of(item: TierUpdateItem) -> dict:
        """Chỉ các field client thực sự gửi lên (lesson_unlock_count=null là hợp lệ)."""
        values = {"price": Decimal(item.price), "updated_at": get_now()}
        if "lesson_unlock_count" in item.model_fields_set:
            values["lesson_unlock_count"] = item.lesson_unlock_count
        if "is_enabled" in item.model_fields_set and item.is_enabled is not None:
            values["is_enabled"] = item.is_enabled
        return values

    async def update_tiers_async(
        self, class_: Classes, schema: TierUpdateSchema
    ) -> list[SubscriptionTiers]:
        """
        Giáo viên cập nhật giá / số bài của các gói:
        - kiểm tra toàn bộ dữ liệu trước, lỗi thì không cập nhật gì
        - mỗi UPDATE lọc theo cả id lẫn class_id
        """
        self._validate_items(schema.tiers)
        class_id = class_.id

        try:
            current = {t.id: t for t in await self.tiers.list_tiers_async(class_id)}
            if any(item.id not in current for item in schema.tiers):
                raise NotFound(UNKNOWN_TIER_MESSAGE)

            changes = {item.id: self._changes_of(item) for item in schema.tiers}

            ladder = []
            for tier_id, tier in current.items():
                count = changes.get(tier_id, {}).get(
                    "lesson_unlock_count", tier.lesson_unlock_count
                )
                ladder.append((tier.tier_level, count))
            error = validate_tier_ladder(ladder)
            if error:
                raise ValidationFailed(error)

            for tier_id, values in changes.items():
                await self.db.execute(
                    update(SubscriptionTiers)
                    .where(
                        SubscriptionTiers.id == tier_id,
                        SubscriptionTiers.class_id == class_id,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()

            logger.info(f"🏷️ Cập nhật {len(changes)} gói của lớp {class_id}")
            return await self.tiers.list_tiers_async(class_id)

        except HTTPException:
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"[TIERS] Lỗi cập nhật gói của lớp {class_id}")
            raise UnexpectedError("Không thể cập nhật gói")
