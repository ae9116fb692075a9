import uuid

from fastapi import Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.exceptions import UnexpectedError
from classtier.db.models.database import Classes, SubscriptionTiers, User
from classtier.db.sesson import get_session
from classtier.libs.formats.datetime import now as get_now
from classtier.schemas.lecturer.classes import ClassCreateSchema
from classtier.services.shares.tiers import TierService


class ClassService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db
        self.tiers = TierService(db)

    async def create_class_async(
        self, teacher: User, schema: ClassCreateSchema
    ) -> tuple[Classes, list[SubscriptionTiers]]:
        """Tạo lớp học cho giáo viên, kèm 4 gói mặc định trong cùng transaction."""
        teacher_id = teacher.id
        try:
            class_ = Classes(
                id=uuid.uuid4(),
                teacher_id=teacher_id,
                name=schema.name.strip(),
                description=schema.description,
                subscription_price=schema.subscription_price,
                free_tier_lesson_count=schema.free_tier_lesson_count,
                created_at=get_now(),
            )
            self.db.add(class_)
            await self.db.flush()

            tiers = await self.tiers.seed_default_tiers_async(class_.id, commit=False)
            await self.db.commit()

            logger.success(f"🏫 Giáo viên {teacher_id} tạo lớp {class_.id}")
            return class_, tiers

        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"[CLASSES] Lỗi tạo lớp cho giáo viên {teacher_id}")
            raise UnexpectedError("Không thể tạo lớp học")
