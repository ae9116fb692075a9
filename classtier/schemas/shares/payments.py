import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from classtier.libs.formats.card import (
    check_card_number,
    check_cvv,
    check_exp_month,
    check_exp_year,
)


def _parse_uuid(value, message: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValueError(message)


def _raise_if(error: str | None, value: str) -> str:
    if error:
        raise ValueError(error)
    return value


class CardDetailsSchema(BaseModel):
    """Thẻ dùng cho mua gói: kiểm tra định dạng ngay ở request."""

    model_config = ConfigDict(populate_by_name=True)

    number: str = Field(..., description="16 chữ số")
    exp_month: str = Field(..., alias="expMonth", description="MM (01-12)")
    exp_year: str = Field(..., alias="expYear", description="YY")
    cvv: str = Field(..., description="3-4 chữ số")

    @field_validator("number")
    @classmethod
    def _number(cls, v: str) -> str:
        return _raise_if(check_card_number(v), v)

    @field_validator("exp_month")
    @classmethod
    def _exp_month(cls, v: str) -> str:
        return _raise_if(check_exp_month(v), v)

    @field_validator("exp_year")
    @classmethod
    def _exp_year(cls, v: str) -> str:
        return _raise_if(check_exp_year(v), v)

    @field_validator("cvv")
    @classmethod
    def _cvv(cls, v: str) -> str:
        return _raise_if(check_cvv(v), v)


class LooseCardDetailsSchema(BaseModel):
    """Thẻ cho đăng ký lớp: lớp miễn phí có thể gửi chuỗi rỗng,
    lớp trả phí sẽ được bộ xử lý thanh toán kiểm tra."""

    model_config = ConfigDict(populate_by_name=True)

    number: str = ""
    exp_month: str = Field("", alias="expMonth")
    exp_year: str = Field("", alias="expYear")
    cvv: str = ""


class TierPurchaseRequestSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: uuid.UUID = Field(..., alias="classId")
    tier_id: uuid.UUID = Field(..., alias="tierId")
    card: CardDetailsSchema

    @field_validator("class_id", mode="before")
    @classmethod
    def _class_id(cls, v):
        return _parse_uuid(v, "ID lớp học không hợp lệ")

    @field_validator("tier_id", mode="before")
    @classmethod
    def _tier_id(cls, v):
        return _parse_uuid(v, "ID gói không hợp lệ")


class SubscriptionRequestSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: uuid.UUID = Field(..., alias="classId")
    card: LooseCardDetailsSchema

    @field_validator("class_id", mode="before")
    @classmethod
    def _class_id(cls, v):
        return _parse_uuid(v, "ID lớp học không hợp lệ")
