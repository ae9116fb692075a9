import calendar
from datetime import datetime, timedelta, timezone

# Múi giờ Việt Nam (UTC+7)
VIETNAM_TIMEZONE = timezone(timedelta(hours=7))


def now() -> datetime:
    """Lấy datetime hiện tại với múi giờ Hồ Chí Minh (UTC+7) và bỏ tzinfo (naive).
    Đây là hàm chuẩn cho toàn bộ dự án.
    """
    return datetime.now(VIETNAM_TIMEZONE).replace(tzinfo=None)


def now_tzinfo() -> datetime:
    return datetime.now(VIETNAM_TIMEZONE)


def add_months(dt: datetime, months: int = 1) -> datetime:
    """Cộng tháng theo lịch. Ngày vượt quá cuối tháng đích được kẹp về ngày cuối
    (31/01 + 1 tháng → 28/02 hoặc 29/02)."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def isoformat(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None
