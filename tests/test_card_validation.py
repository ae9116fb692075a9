from datetime import datetime

import pytest

from classtier.core.enum import PaymentStatus
from classtier.libs.formats.card import (
    card_format_error,
    check_exp_month,
    expiry_full_year,
    is_card_expired,
    is_card_expiry_too_far,
)
from classtier.services.shares.payment import (
    DECLINED_MESSAGE,
    EXPIRED_MESSAGE,
    EXPIRY_TOO_FAR_MESSAGE,
    TEST_CARDS,
    CardDetails,
    authorize_test_card,
    card_validation_error,
)

TODAY = datetime(2026, 6, 15, 10, 0)


class TestCardFormat:
    @pytest.mark.parametrize(
        "number, message",
        [
            ("411111111111111", "Số thẻ phải có 16 chữ số"),
            ("41111111111111112", "Số thẻ phải có 16 chữ số"),
            ("4111-1111-111111", "Số thẻ chỉ được chứa chữ số"),
        ],
    )
    def test_card_number(self, number, message):
        assert card_format_error(number, "12", "30", "123") == message

    @pytest.mark.parametrize("month", ["00", "13", "1", "ab", "12\n"])
    def test_invalid_month(self, month):
        assert check_exp_month(month) == "Tháng không hợp lệ (01-12)"

    @pytest.mark.parametrize(
        "number, exp_year, cvv",
        [
            ("४१११४१११४१११४१११", "30", "123"),
            ("4111111111111111", "²⁹", "123"),
            ("4111111111111111", "30", "１２３"),
        ],
    )
    def test_only_ascii_digits_accepted(self, number, exp_year, cvv):
        assert card_format_error(number, "12", exp_year, cvv) is not None

    @pytest.mark.parametrize("month", ["01", "09", "10", "12"])
    def test_valid_month(self, month):
        assert check_exp_month(month) is None

    @pytest.mark.parametrize("cvv", ["12", "12345", "12a"])
    def test_invalid_cvv(self, cvv):
        assert card_format_error("4111111111111111", "12", "30", cvv) is not None

    @pytest.mark.parametrize("cvv", ["123", "1234"])
    def test_valid_cvv(self, cvv):
        assert card_format_error("4111111111111111", "12", "30", cvv) is None


class TestCardExpiry:
    def test_current_month_is_still_valid(self):
        assert not is_card_expired("06", "26", TODAY)
        assert is_card_expired("05", "26", TODAY)

    def test_expiry_horizon(self):
        assert not is_card_expiry_too_far("36", TODAY)
        assert is_card_expiry_too_far("37", TODAY)

    def test_century_rollover(self):
        late_century = datetime(2095, 3, 1)
        assert expiry_full_year("03", late_century) == 2103
        assert not is_card_expired("01", "03", late_century)
        assert not is_card_expiry_too_far("03", late_century)

    def test_superscript_year_is_format_error(self):
        card = CardDetails("4111111111111111", "12", "²⁹", "123")
        assert card_validation_error(card, TODAY) == "Năm chỉ được chứa chữ số"

    def test_validation_order(self):
        expired = CardDetails("4111111111111111", "01", "25", "123")
        too_far = CardDetails("4111111111111111", "01", "40", "123")
        assert card_validation_error(expired, TODAY) == EXPIRED_MESSAGE
        assert card_validation_error(too_far, TODAY) == EXPIRY_TOO_FAR_MESSAGE


class TestTestCards:
    def test_success_prefix(self):
        assert authorize_test_card(TEST_CARDS["SUCCESS"]) == (PaymentStatus.COMPLETED, None)

    def test_declined_prefix(self):
        assert authorize_test_card(TEST_CARDS["DECLINED"]) == (
            PaymentStatus.FAILED,
            DECLINED_MESSAGE,
        )

    def test_unknown_number_defaults_to_success(self):
        assert authorize_test_card("5555555555554444") == (PaymentStatus.COMPLETED, None)
