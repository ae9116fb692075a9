import re
from datetime import datetime

from classtier.core.settings import settings


def get_card_last_four(card_number: str) -> str:
    if len(card_number) < 4:
        return ""
    return card_number[-4:]


def expiry_full_year(exp_year: str, today: datetime) -> int:
    """Đổi năm YY sang năm đầy đủ, lấy cửa sổ ±50 năm quanh năm hiện tại
    (năm nay 2095 thì "03" là 2103)."""
    century = today.year - today.year % 100
    year = century + int(exp_year)
    if year < today.year - 50:
        year += 100
    elif year > today.year + 50:
        year -= 100
    return year


def is_card_expired(exp_month: str, exp_year: str, today: datetime) -> bool:
    """Thẻ hết hạn khi (năm, tháng) hết hạn nhỏ hơn tháng hiện tại."""
    year = expiry_full_year(exp_year, today)
    return (year, int(exp_month)) < (today.year, today.month)


def is_card_expiry_too_far(exp_year: str, today: datetime) -> bool:
    year = expiry_full_year(exp_year, today)
    return year > today.year + settings.CARD_MAX_EXPIRY_YEARS


# ============================================
# KIỂM TRA ĐỊNH DẠNG (trả về thông báo lỗi hoặc None)
# ============================================
_MONTH_RE = re.compile(r"0[1-9]|1[0-2]")
# chỉ chữ số ASCII 0-9
_DIGITS_RE = re.compile(r"[0-9]+")


def is_ascii_digits(value: str) -> bool:
    return _DIGITS_RE.fullmatch(value) is not None


def check_card_number(value: str) -> str | None:
    if len(value) != 16:
        return "Số thẻ phải có 16 chữ số"
    if not is_ascii_digits(value):
        return "Số thẻ chỉ được chứa chữ số"
    return None


def check_exp_month(value: str) -> str | None:
    if not _MONTH_RE.fullmatch(value):
        return "Tháng không hợp lệ (01-12)"
    return None


def check_exp_year(value: str) -> str | None:
    if len(value) != 2:
        return "Năm phải có 2 chữ số"
    if not is_ascii_digits(value):
        return "Năm chỉ được chứa chữ số"
    return None


def check_cvv(value: str) -> str | None:
    if len(value) < 3:
        return "CVV phải có ít nhất 3 chữ số"
    if len(value) > 4:
        return "CVV tối đa 4 chữ số"
    if not is_ascii_digits(value):
        return "CVV chỉ được chứa chữ số"
    return None


def card_format_error(number: str, exp_month: str, exp_year: str, cvv: str) -> str | None:
    """Lỗi định dạng đầu tiên của thẻ (theo thứ tự số thẻ → tháng → năm → CVV)."""
    return (
        check_card_number(number)
        or check_exp_month(exp_month)
        or check_exp_year(exp_year)
        or check_cvv(cvv)
    )
