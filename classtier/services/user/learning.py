import uuid

from fastapi import Depends, HTTPException
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.exceptions import AuthorizationError, NotFound, UnexpectedError
from classtier.db.models.database import Classes, Courses, Lessons, User
from classtier.db.sesson import get_session
from classtier.libs.access.entitlement import course_access_summary
from classtier.services.shares.membership import MembershipService
from classtier.services.shares.tiers import TierService


class LearningAccessService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db
        self.tiers = TierService(db)
        self.memberships = MembershipService(db)

    async def get_course_access_async(
        self, user: User, class_id: uuid.UUID, course_id: uuid.UUID
    ) -> dict:
        """
        Trạng thái mở/khóa của một khóa học và từng bài học với user hiện tại.
        Giáo viên của lớp thấy mọi thứ; người ngoài lớp bị chặn.
        """
        user_id = user.id
        try:
            class_ = await self.db.get(Classes, class_id)
            if not class_:
                raise NotFound("Lớp học không tồn tại")

            course = await self.db.scalar(
                select(Courses).where(
                    Courses.id == course_id, Courses.class_id == class_id
                )
            )
            if not course:
                raise NotFound("Không tìm thấy khóa học")

            is_teacher = class_.teacher_id == user_id
            if not is_teacher and not await self.memberships.is_class_member_async(
                user_id, class_id
            ):
                raise AuthorizationError("Bạn chưa tham gia lớp học này")

            purchase = None
            if not is_teacher:
                purchase = await self.tiers.get_user_tier_purchase_async(user_id, class_id)

            lessons = (
                await self.db.scalars(
                    select(Lessons)
                    .where(Lessons.course_id == course_id)
                    .order_by(Lessons.position.asc(), Lessons.created_at.asc())
                )
            ).all()

            summary = course_access_summary(
                required_tier=course.required_tier_level,
                total_lessons=len(lessons),
                purchase=purchase,
                is_teacher=is_teacher,
                free_tier_lesson_count=class_.free_tier_lesson_count or 0,
            )
            statuses = summary.pop("lesson_statuses")

            return {
                "class_id": str(class_id),
                "course_id": str(course_id),
                "course_title": course.title,
                "required_tier_level": course.required_tier_level,
                "is_teacher": is_teacher,
                **summary,
                "lessons": [
                    {
                        "id": str(lesson.id),
                        "title": lesson.title,
                        "position": lesson.position,
                        "status": status,
                    }
                    for lesson, status in zip(lessons, statuses)
                ],
            }

        except HTTPException:
            raise
        except SQLAlchemyError:
            logger.exception(
                f"[LEARNING] Lỗi lấy quyền truy cập khóa {course_id} cho user {user_id}"
            )
            raise UnexpectedError("Không thể tải quyền truy cập khóa học")
