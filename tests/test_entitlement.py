"""Quyền truy cập theo gói: hàm thuần, không cần database."""

import itertools
import math
from types import SimpleNamespace

import pytest

from classtier.core.enum import AccessStatus, TierLevel
from classtier.libs.access.entitlement import (
    accessible_lesson_count,
    accessible_tier_levels,
    can_upgrade,
    content_access_status,
    course_access_summary,
    course_accessible_lesson_count,
    course_lesson_statuses,
    format_lesson_access,
    lesson_access_status,
    next_tier_level,
    unlockable_count,
    unlocked_lesson_count,
    user_tier_level,
)


def purchase_at(level, lesson_unlock_count=None):
    return SimpleNamespace(
        tier=SimpleNamespace(tier_level=level, lesson_unlock_count=lesson_unlock_count)
    )


class TestTierLevel:
    def test_no_purchase_is_level_zero(self):
        assert user_tier_level(None) == TierLevel.FREE

    @pytest.mark.parametrize(
        "purchase",
        [
            SimpleNamespace(tier=None),
            SimpleNamespace(),
            purchase_at(None),
            purchase_at("abc"),
            purchase_at(9),
        ],
    )
    def test_broken_tier_data_falls_back_to_free(self, purchase):
        assert user_tier_level(purchase) == TierLevel.FREE

    def test_reads_level_from_purchase_tier(self):
        assert user_tier_level(purchase_at(2, 10)) == TierLevel.STANDARD


class TestContentAccess:
    def test_higher_tier_unlocks_every_lower_level(self):
        for owned, required in itertools.product(TierLevel, TierLevel):
            status = content_access_status(required, purchase_at(owned, 5), False)
            expected = AccessStatus.UNLOCKED if required <= owned else AccessStatus.LOCKED
            assert status is expected

    def test_teacher_always_unlocked(self):
        for required in TierLevel:
            assert content_access_status(required, None, True) is AccessStatus.UNLOCKED
            assert (
                content_access_status(required, purchase_at(0, 0), True)
                is AccessStatus.UNLOCKED
            )

    def test_level_zero_content_open_without_purchase(self):
        assert content_access_status(0, None, False) is AccessStatus.UNLOCKED
        assert content_access_status(1, None, False) is AccessStatus.LOCKED


class TestLessonAccess:
    def test_free_lessons_without_purchase(self):
        statuses = [lesson_access_status(i, None, False, 3) for i in range(10)]
        assert statuses[:3] == [AccessStatus.UNLOCKED] * 3
        assert statuses[3:] == [AccessStatus.LOCKED] * 7
        assert accessible_lesson_count(10, None, False, 3) == 3

    def test_limited_tier_unlocks_first_lessons(self):
        purchase = purchase_at(1, 5)
        assert accessible_lesson_count(10, purchase, False, 0) == 5
        assert lesson_access_status(4, purchase, False) is AccessStatus.UNLOCKED
        assert lesson_access_status(5, purchase, False) is AccessStatus.LOCKED

    def test_unlimited_tier_opens_everything(self):
        purchase = purchase_at(3, None)
        for total in (0, 1, 10, 250):
            assert accessible_lesson_count(total, purchase, False, 0) == total
        assert lesson_access_status(10_000, purchase, False) is AccessStatus.UNLOCKED

    def test_teacher_sees_all_lessons(self):
        assert accessible_lesson_count(7, None, True, 0) == 7
        assert lesson_access_status(6, None, True) is AccessStatus.UNLOCKED

    def test_free_lessons_stay_open_with_smaller_tier(self):
        purchase = purchase_at(1, 2)
        assert accessible_lesson_count(10, purchase, False, 4) == 4
        assert lesson_access_status(3, purchase, False, 4) is AccessStatus.UNLOCKED

    def test_count_matches_statuses(self):
        purchases = [
            None,
            purchase_at(0, 0),
            purchase_at(1, 2),
            purchase_at(1, 5),
            purchase_at(2, 10),
            purchase_at(3, None),
        ]
        for total, purchase, free in itertools.product(range(0, 13), purchases, range(0, 8)):
            unlocked = sum(
                lesson_access_status(i, purchase, False, free) is AccessStatus.UNLOCKED
                for i in range(total)
            )
            assert accessible_lesson_count(total, purchase, False, free) == unlocked


class TestUpgradePath:
    def test_can_upgrade_until_top_tier(self):
        assert can_upgrade(None)
        assert can_upgrade(purchase_at(2, 10))
        assert not can_upgrade(purchase_at(3, None))

    def test_next_tier_level_is_capped(self):
        assert next_tier_level(None) == TierLevel.BASIC
        assert next_tier_level(purchase_at(2, 10)) == TierLevel.UNLIMITED
        assert next_tier_level(purchase_at(3, None)) == TierLevel.UNLIMITED

    def test_accessible_tier_levels_always_include_free(self):
        assert accessible_tier_levels(None) == [TierLevel.FREE]
        assert accessible_tier_levels(purchase_at(2, 10)) == [
            TierLevel.FREE,
            TierLevel.BASIC,
            TierLevel.STANDARD,
        ]


class TestDisplayHelpers:
    def test_unlocked_lesson_count(self):
        assert unlocked_lesson_count(None, 3) == 3
        assert unlocked_lesson_count(purchase_at(1, 5)) == 5
        assert unlocked_lesson_count(purchase_at(3, None)) == "all"

    def test_unlockable_count(self):
        assert unlockable_count(None, 2) == 2
        assert unlockable_count(SimpleNamespace(lesson_unlock_count=10)) == 10
        assert unlockable_count(SimpleNamespace(lesson_unlock_count=None)) == math.inf

    def test_format_lesson_access_caps_at_total(self):
        assert format_lesson_access(3, 10) == "3/10 bài học"
        assert format_lesson_access(12, 10) == "10/10 bài học"


class TestCourseGate:
    def test_locked_course_locks_every_lesson(self):
        statuses = course_lesson_statuses(2, 4, purchase_at(1, 5), False, 2)
        assert statuses == [AccessStatus.LOCKED] * 4
        assert course_accessible_lesson_count(2, 4, purchase_at(1, 5), False, 2) == 0

    def test_open_course_uses_lesson_gate(self):
        statuses = course_lesson_statuses(1, 8, purchase_at(1, 5), False, 0)
        assert statuses.count(AccessStatus.UNLOCKED) == 5
        assert course_accessible_lesson_count(1, 8, purchase_at(1, 5), False, 0) == 5

    def test_summary(self):
        summary = course_access_summary(1, 10, purchase_at(1, 5), False, 0)
        assert summary["tier_level"] == 1
        assert summary["course_status"] == "unlocked"
        assert summary["accessible_count"] == 5
        assert summary["display"] == "5/10 bài học"
        assert summary["can_upgrade"] is True
        assert summary["next_tier_level"] == 2
        assert summary["accessible_tier_levels"] == [0, 1]
        assert summary["lesson_statuses"][:6] == ["unlocked"] * 5 + ["locked"]
