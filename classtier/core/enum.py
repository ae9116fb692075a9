from enum import Enum, IntEnum


class TierLevel(IntEnum):
    """Cấp độ gói trong một lớp học. Cấp cao bao gồm mọi cấp thấp hơn."""
    FREE = 0       # mặc định, chưa mua gói
    BASIC = 1      # Cơ bản
    STANDARD = 2   # Tiêu chuẩn
    UNLIMITED = 3  # Trọn bộ

    @classmethod
    def coerce(cls, value) -> "TierLevel":
        """Dữ liệu cấp độ thiếu hoặc sai → FREE."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.FREE


MAX_TIER_LEVEL = TierLevel.UNLIMITED


class AccessStatus(str, Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class PaymentStatus(str, Enum):
    """pending → completed | failed. Hai trạng thái cuối không đổi nữa."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class ClassSubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class PaymentKind(str, Enum):
    """Giá trị metadata.type của payment."""
    TIER = "tier"
    SUBSCRIPTION = "subscription"
