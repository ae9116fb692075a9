"""
Quyền truy cập nội dung theo gói (tier).

Tất cả là hàm thuần, không I/O. ``purchase`` là bất kỳ object nào có
``purchase.tier.tier_level`` và ``purchase.tier.lesson_unlock_count``
(ORM ``TierPurchases`` đã load ``tier``), hoặc ``None`` nếu chưa mua gói.

Hai lớp chặn, áp dụng theo thứ tự:
1. Khóa học có ``required_tier_level`` → ``content_access_status``.
2. Bài học trong khóa học mở được → ``lesson_access_status`` theo vị trí.
"""

import math
from typing import Any, Literal, Optional

from classtier.core.enum import MAX_TIER_LEVEL, AccessStatus, TierLevel


def _tier_of(purchase: Any) -> Any:
    if purchase is None:
        return None
    return getattr(purchase, "tier", None)


def _unlock_count_of(tier: Any) -> Optional[int]:
    return getattr(tier, "lesson_unlock_count", None)


def user_tier_level(purchase: Any) -> TierLevel:
    """Cấp độ hiện tại của user trong lớp; chưa mua hoặc thiếu dữ liệu → 0."""
    tier = _tier_of(purchase)
    if tier is None:
        return TierLevel.FREE
    return TierLevel.coerce(getattr(tier, "tier_level", None))


def content_access_status(
    required_tier: int, purchase: Any, is_teacher: bool
) -> AccessStatus:
    if is_teacher:
        return AccessStatus.UNLOCKED
    if user_tier_level(purchase) >= required_tier:
        return AccessStatus.UNLOCKED
    return AccessStatus.LOCKED


def lesson_access_status(
    lesson_index: int,
    purchase: Any,
    is_teacher: bool,
    free_tier_lesson_count: int = 0,
) -> AccessStatus:
    """
    - Giáo viên → mở
    - N bài đầu (free_tier_lesson_count) → mở
    - Chưa mua gói → khóa
    - Gói không giới hạn (lesson_unlock_count = None) → mở
    - Còn lại: mở nếu lesson_index < lesson_unlock_count
    """
    if is_teacher:
        return AccessStatus.UNLOCKED
    if lesson_index < free_tier_lesson_count:
        return AccessStatus.UNLOCKED

    tier = _tier_of(purchase)
    if tier is None:
        return AccessStatus.LOCKED

    unlock_count = _unlock_count_of(tier)
    if unlock_count is None:
        return AccessStatus.UNLOCKED
    if lesson_index < unlock_count:
        return AccessStatus.UNLOCKED
    return AccessStatus.LOCKED


def accessible_lesson_count(
    total_lessons: int,
    purchase: Any,
    is_teacher: bool,
    free_tier_lesson_count: int = 0,
) -> int:
    """Số bài mở được trong ``total_lessons`` bài; khớp với lesson_access_status
    cho từng vị trí 0..total_lessons-1."""
    total_lessons = max(total_lessons, 0)
    free = max(free_tier_lesson_count, 0)
    if is_teacher:
        return total_lessons

    tier = _tier_of(purchase)
    if tier is None:
        return min(free, total_lessons)

    unlock_count = _unlock_count_of(tier)
    if unlock_count is None:
        return total_lessons

    # bài miễn phí vẫn mở dù gói đã mua mở ít bài hơn
    return min(max(free, unlock_count), total_lessons)


def can_upgrade(purchase: Any) -> bool:
    return user_tier_level(purchase) < MAX_TIER_LEVEL


def next_tier_level(purchase: Any) -> TierLevel:
    return TierLevel(min(user_tier_level(purchase) + 1, MAX_TIER_LEVEL))


def accessible_tier_levels(purchase: Any) -> list[TierLevel]:
    current = user_tier_level(purchase)
    return [level for level in TierLevel if level <= current]


def unlocked_lesson_count(
    purchase: Any, free_tier_lesson_count: int = 0
) -> int | Literal["all"]:
    """Giá trị hiển thị: số bài, hoặc "all" với gói không giới hạn."""
    tier = _tier_of(purchase)
    if tier is None:
        return free_tier_lesson_count
    unlock_count = _unlock_count_of(tier)
    return "all" if unlock_count is None else unlock_count


def unlockable_count(tier: Any, free_tier_lesson_count: int = 0) -> float:
    if tier is None:
        return free_tier_lesson_count
    unlock_count = _unlock_count_of(tier)
    return math.inf if unlock_count is None else unlock_count


def format_lesson_access(accessible_count: int, total_count: int) -> str:
    shown = min(accessible_count, total_count)
    return f"{shown}/{total_count} bài học"


def course_lesson_statuses(
    required_tier: int,
    total_lessons: int,
    purchase: Any,
    is_teacher: bool,
    free_tier_lesson_count: int = 0,
) -> list[AccessStatus]:
    if content_access_status(required_tier, purchase, is_teacher) is AccessStatus.LOCKED:
        return [AccessStatus.LOCKED] * max(total_lessons, 0)
    return [
        lesson_access_status(i, purchase, is_teacher, free_tier_lesson_count)
        for i in range(max(total_lessons, 0))
    ]


def course_accessible_lesson_count(
    required_tier: int,
    total_lessons: int,
    purchase: Any,
    is_teacher: bool,
    free_tier_lesson_count: int = 0,
) -> int:
    if content_access_status(required_tier, purchase, is_teacher) is AccessStatus.LOCKED:
        return 0
    return accessible_lesson_count(
        total_lessons, purchase, is_teacher, free_tier_lesson_count
    )


def course_access_summary(
    required_tier: int,
    total_lessons: int,
    purchase: Any,
    is_teacher: bool,
    free_tier_lesson_count: int = 0,
) -> dict:
    """Tổng hợp quyền truy cập một khóa học cho màn hình học."""
    course_status = content_access_status(required_tier, purchase, is_teacher)
    statuses = course_lesson_statuses(
        required_tier, total_lessons, purchase, is_teacher, free_tier_lesson_count
    )
    accessible = course_accessible_lesson_count(
        required_tier, total_lessons, purchase, is_teacher, free_tier_lesson_count
    )
    return {
        "tier_level": int(user_tier_level(purchase)),
        "course_status": course_status.value,
        "lesson_statuses": [s.value for s in statuses],
        "accessible_count": accessible,
        "total_count": max(total_lessons, 0),
        "display": format_lesson_access(accessible, max(total_lessons, 0)),
        "can_upgrade": can_upgrade(purchase),
        "next_tier_level": int(next_tier_level(purchase)),
        "accessible_tier_levels": [int(level) for level in accessible_tier_levels(purchase)],
    }
