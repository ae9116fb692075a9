import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.enum import PaymentStatus
from classtier.core.exceptions import (
    NotFound,
    PaymentAlreadyProcessed,
    UnexpectedError,
    ValidationFailed,
)
from classtier.core.settings import settings
from classtier.db.models.database import Classes, Payments
from classtier.db.sesson import get_session
from classtier.libs.formats.card import (
    card_format_error,
    get_card_last_four,
    is_ascii_digits,
    is_card_expired,
    is_card_expiry_too_far,
)
from classtier.libs.formats.datetime import now as get_now
from classtier.libs.formats.serializers import payment_to_dict

DECLINED_MESSAGE = "Thẻ bị từ chối. Vui lòng thử thẻ khác."
EXPIRED_MESSAGE = "Thẻ đã hết hạn"
EXPIRY_TOO_FAR_MESSAGE = "Ngày hết hạn thẻ không hợp lệ"

# Thẻ thử nghiệm
TEST_CARDS = {
    "SUCCESS": "4111111111111111",
    "DECLINED": "4000000000000002",
}


@dataclass
class CardDetails:
    number: str
    exp_month: str
    exp_year: str
    cvv: str

    @classmethod
    def from_schema(cls, schema: Any) -> "CardDetails":
        return cls(
            number=schema.number,
            exp_month=schema.exp_month,
            exp_year=schema.exp_year,
            cvv=schema.cvv,
        )


@dataclass
class PaymentResult:
    success: bool
    payment: Payments
    error: Optional[str] = None


def card_validation_error(card: CardDetails, today: datetime) -> Optional[str]:
    """Lỗi định dạng, thẻ hết hạn, hoặc hạn quá xa; None nếu hợp lệ."""
    error = card_format_error(card.number, card.exp_month, card.exp_year, card.cvv)
    if error:
        return error
    if is_card_expired(card.exp_month, card.exp_year, today):
        return EXPIRED_MESSAGE
    if is_card_expiry_too_far(card.exp_year, today):
        return EXPIRY_TOO_FAR_MESSAGE
    return None


def authorize_test_card(card_number: str) -> tuple[PaymentStatus, Optional[str]]:
    """
    Kết quả theo đầu số thẻ (test mode, không gọi cổng thanh toán):
    - 4111… → completed
    - 4000… → failed (bị từ chối)
    - số khác hợp lệ → completed
    """
    if card_number.startswith(settings.TEST_CARD_SUCCESS_PREFIX):
        return PaymentStatus.COMPLETED, None
    if card_number.startswith(settings.TEST_CARD_DECLINED_PREFIX):
        return PaymentStatus.FAILED, DECLINED_MESSAGE
    return PaymentStatus.COMPLETED, None


class PaymentService:
    """
    Bộ xử lý thanh toán giả lập:
    - create_payment_async: tạo payment pending
    - process_payment_async: pending → completed | failed, đúng một lần
    """

    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def create_payment_async(
        self,
        user_id: uuid.UUID,
        class_id: uuid.UUID,
        amount: Decimal,
        tier_id: Optional[uuid.UUID] = None,
        metadata: Optional[dict] = None,
        commit: bool = True,
    ) -> Payments:
        amount = Decimal(str(amount))
        if amount < 0:
            raise ValidationFailed("Số tiền thanh toán không hợp lệ")

        payment = Payments(
            id=uuid.uuid4(),
            user_id=user_id,
            class_id=class_id,
            tier_id=tier_id,
            amount=amount,
            currency=settings.PAYMENT_CURRENCY,
            status=PaymentStatus.PENDING.value,
            test_mode=True,
            metadata_=metadata or {},
            created_at=get_now(),
        )
        self.db.add(payment)
        await self.db.flush()
        if commit:
            await self.db.commit()

        logger.info(f"💳 Tạo payment {payment.id} ({amount} {payment.currency}) cho user {user_id}")
        return payment

    async def get_payment_async(self, payment_id: uuid.UUID) -> Optional[Payments]:
        return await self.db.scalar(
            select(Payments)
            .where(Payments.id == payment_id)
            .execution_options(populate_existing=True)
        )

    async def _finalize_async(
        self,
        payment_id: uuid.UUID,
        status: PaymentStatus,
        card_last_four: Optional[str],
        error_message: Optional[str],
    ) -> Payments:
        """Một câu UPDATE duy nhất, chỉ áp dụng khi payment còn pending."""
        now = get_now()
        result = await self.db.execute(
            update(Payments)
            .where(
                Payments.id == payment_id,
                Payments.status == PaymentStatus.PENDING.value,
            )
            .values(
                status=status.value,
                card_last_four=card_last_four,
                error_message=error_message,
                completed_at=now if status is PaymentStatus.COMPLETED else None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise PaymentAlreadyProcessed()

        payment = await self.get_payment_async(payment_id)
        logger.info(f"💳 Payment {payment_id} → {status.value}")
        return payment

    async def process_payment_async(
        self,
        payment_id: uuid.UUID,
        card: CardDetails,
        commit: bool = True,
    ) -> PaymentResult:
        """
        Xác thực thẻ giả lập rồi chuyển trạng thái payment.
        - Thẻ sai định dạng / hết hạn / hạn quá xa → failed kèm lỗi cụ thể
        - Payment đã ở trạng thái cuối → PaymentAlreadyProcessed, không đổi gì
        commit=False để caller gộp việc cấp quyền vào cùng transaction.
        """
        payment = await self.get_payment_async(payment_id)
        if payment is None:
            raise NotFound("Không tìm thấy giao dịch")
        if payment.status != PaymentStatus.PENDING.value:
            raise PaymentAlreadyProcessed()

        error = card_validation_error(card, get_now())
        if error:
            status = PaymentStatus.FAILED
            last_four = get_card_last_four(card.number) if is_ascii_digits(card.number) else None
        else:
            status, error = authorize_test_card(card.number)
            last_four = get_card_last_four(card.number)

        try:
            payment = await self._finalize_async(payment_id, status, last_four, error)
        except PaymentAlreadyProcessed:
            # payment vừa được request khác xử lý
            await self.db.rollback()
            raise
        if commit:
            await self.db.commit()

        if status is PaymentStatus.FAILED:
            logger.warning(f"💳 Payment {payment_id} thất bại: {error}")

        return PaymentResult(
            success=status is PaymentStatus.COMPLETED,
            payment=payment,
            error=error,
        )

    async def mark_failed_async(self, payment_id: uuid.UUID, reason: str) -> Payments:
        """Đóng một payment còn pending với lý do thất bại (không qua thẻ)."""
        payment = await self._finalize_async(payment_id, PaymentStatus.FAILED, None, reason)
        await self.db.commit()
        return payment

    async def fail_if_pending_async(self, payment_id: uuid.UUID, reason: str) -> bool:
        """Sau lỗi DB ở bước cấp quyền: cố đóng payment còn pending thành failed.
        Không ném lỗi; trả về True nếu đã đóng được."""
        try:
            await self.mark_failed_async(payment_id, reason)
            return True
        except PaymentAlreadyProcessed:
            await self.db.rollback()
            return False
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"💳 Không đóng được payment {payment_id} sau lỗi DB")
            return False

    async def get_user_payments_async(self, user_id: uuid.UUID) -> list[dict]:
        """Lịch sử thanh toán của user, kèm tên lớp, mới nhất trước."""
        try:
            result = await self.db.execute(
                select(Payments, Classes.name)
                .join(Classes, Classes.id == Payments.class_id)
                .where(Payments.user_id == user_id)
                .order_by(Payments.created_at.desc())
            )
            return [
                payment_to_dict(payment, class_name=class_name)
                for payment, class_name in result.all()
            ]
        except SQLAlchemyError:
            logger.exception(f"[PAYMENTS] Lỗi lấy lịch sử thanh toán của user {user_id}")
            raise UnexpectedError("Đã xảy ra lỗi khi lấy lịch sử thanh toán")

    async def get_user_payment_detail_async(
        self, user_id: uuid.UUID, payment_id: uuid.UUID
    ) -> dict:
        try:
            row = (
                await self.db.execute(
                    select(Payments, Classes.name)
                    .join(Classes, Classes.id == Payments.class_id)
                    .where(Payments.id == payment_id, Payments.user_id == user_id)
                )
            ).first()
        except SQLAlchemyError:
            logger.exception(f"[PAYMENTS] Lỗi lấy payment {payment_id}")
            raise UnexpectedError("Đã xảy ra lỗi khi lấy thông tin thanh toán")

        if row is None:
            raise NotFound("Không tìm thấy giao dịch")
        payment, class_name = row
        return payment_to_dict(payment, class_name=class_name)
