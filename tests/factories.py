"""Hàm tạo dữ liệu test (user, lớp, gói, khóa học)."""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.enum import MembershipStatus
from classtier.core.security import SecurityService
from classtier.db.models.database import (
    Classes,
    Courses,
    Lessons,
    Memberships,
    SubscriptionTiers,
    User,
)
from classtier.libs.formats.datetime import now as get_now
from classtier.services.shares.tiers import TierService


def valid_card(number: str = "4111111111111111") -> dict:
    """Thẻ còn hạn (tháng 12 năm sau) với số thẻ tùy chọn."""
    year = (get_now().year + 1) % 100
    return {"number": number, "expMonth": "12", "expYear": f"{year:02d}", "cvv": "123"}


async def create_user(db: AsyncSession, email: Optional[str] = None) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email or f"{uuid.uuid4().hex[:8]}@classtier.test",
        fullname="Người dùng test",
    )
    db.add(user)
    await db.commit()
    return user


async def create_class(
    db: AsyncSession,
    teacher: User,
    subscription_price: Decimal = Decimal("0"),
    free_tier_lesson_count: int = 0,
    seed_tiers: bool = True,
) -> Classes:
    class_ = Classes(
        id=uuid.uuid4(),
        teacher_id=teacher.id,
        name="Lớp Python cơ bản",
        subscription_price=subscription_price,
        free_tier_lesson_count=free_tier_lesson_count,
    )
    db.add(class_)
    await db.flush()
    if seed_tiers:
        await TierService(db).seed_default_tiers_async(class_.id, commit=False)
    await db.commit()
    return class_


async def add_member(
    db: AsyncSession,
    user: User,
    class_: Classes,
    status: MembershipStatus = MembershipStatus.ACTIVE,
) -> Memberships:
    membership = Memberships(
        id=uuid.uuid4(),
        class_id=class_.id,
        user_id=user.id,
        status=status.value,
        subscription_paid=False,
        joined_at=get_now(),
    )
    db.add(membership)
    await db.commit()
    return membership


async def create_course(
    db: AsyncSession, class_: Classes, required_tier_level: int = 0, lesson_count: int = 0
) -> Courses:
    course = Courses(
        id=uuid.uuid4(),
        class_id=class_.id,
        title="Khóa học test",
        required_tier_level=required_tier_level,
    )
    db.add(course)
    for position in range(lesson_count):
        db.add(
            Lessons(
                id=uuid.uuid4(),
                course_id=course.id,
                title=f"Bài {position + 1}",
                position=position,
            )
        )
    await db.commit()
    return course


async def tier_of(db: AsyncSession, class_: Classes, level: int) -> SubscriptionTiers:
    tiers = await TierService(db).list_tiers_async(class_.id)
    return next(t for t in tiers if t.tier_level == level)


async def auth_headers(user: User) -> dict:
    token = await SecurityService().create_access_token(str(user.id))
    return {"Authorization": f"Bearer {token}"}
