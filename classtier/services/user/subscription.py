import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from fastapi import Depends, HTTPException
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.enum import ClassSubscriptionStatus, MembershipStatus, PaymentKind
from classtier.core.exceptions import BusinessRuleViolation, NotFound, UnexpectedError
from classtier.core.settings import settings
from classtier.db.models.database import (
    Classes,
    ClassSubscriptions,
    Memberships,
    Payments,
    User,
)
from classtier.db.sesson import get_session
from classtier.libs.formats.datetime import add_months
from classtier.libs.formats.datetime import now as get_now
from classtier.libs.formats.serializers import subscription_to_dict
from classtier.services.shares.membership import MembershipService
from classtier.services.shares.payment import CardDetails, PaymentService

CLASS_NOT_FOUND_MESSAGE = "Lớp học không tồn tại"
ALREADY_MEMBER_MESSAGE = "Bạn đã là thành viên của lớp này"
PAYMENT_FAILED_MESSAGE = "Thanh toán thất bại"
SYSTEM_ERROR_MESSAGE = "Đã xảy ra lỗi khi đăng ký lớp học"


@dataclass
class SubscriptionSuccess:
    membership: Memberships
    subscription: Optional[ClassSubscriptions] = None
    payment: Optional[Payments] = None
    is_free: bool = False
    success: bool = True


@dataclass
class SubscriptionDeclined:
    payment: Payments
    error: str
    success: bool = False


SubscriptionResult = Union[SubscriptionSuccess, SubscriptionDeclined]


class SubscriptionService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db
        self.payments = PaymentService(db)
        self.memberships = MembershipService(db)

    async def _reject_duplicate_async(
        self, payment_id: Optional[uuid.UUID] = None
    ) -> None:
        """Request song song đã tạo membership trước: hủy payment (nếu có) rồi báo lỗi."""
        await self.db.rollback()
        if payment_id is not None:
            await self.payments.mark_failed_async(payment_id, ALREADY_MEMBER_MESSAGE)
        raise BusinessRuleViolation(ALREADY_MEMBER_MESSAGE)

    async def _join_free_async(
        self, user: User, class_: Classes, membership: Optional[Memberships]
    ) -> SubscriptionSuccess:
        if membership is None:
            membership = Memberships(
                id=uuid.uuid4(),
                class_id=class_.id,
                user_id=user.id,
                status=MembershipStatus.ACTIVE.value,
                subscription_paid=False,
                joined_at=get_now(),
            )
            self.db.add(membership)
        else:
            membership.status = MembershipStatus.ACTIVE.value
            membership.subscription_paid = False
            membership.subscription_expires_at = None

        try:
            await self.db.commit()
        except IntegrityError:
            await self._reject_duplicate_async()

        logger.info(f"👋 User {user.id} tham gia lớp miễn phí {class_.id}")
        return SubscriptionSuccess(membership=membership, is_free=True)

    async def _record_ledger_async(
        self,
        user_id: uuid.UUID,
        class_id: uuid.UUID,
        payment: Payments,
        membership: Memberships,
        starts_at,
        expires_at,
    ) -> Optional[ClassSubscriptions]:
        """Ghi sổ class_subscriptions. Lỗi chỉ log, membership đã commit giữ nguyên."""
        payment_id = payment.id
        subscription = ClassSubscriptions(
            id=uuid.uuid4(),
            user_id=user_id,
            class_id=class_id,
            payment_id=payment_id,
            amount=payment.amount,
            currency=payment.currency,
            status=ClassSubscriptionStatus.ACTIVE.value,
            starts_at=starts_at,
            expires_at=expires_at,
            created_at=starts_at,
        )
        try:
            self.db.add(subscription)
            await self.db.commit()
            return subscription
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(
                f"[SUBSCRIPTION] Không ghi được class_subscriptions cho payment {payment_id}"
            )
            # rollback làm expire object, nạp lại bản đã commit
            await self.db.refresh(membership)
            await self.db.refresh(payment)
            return None

    async def subscribe_async(
        self, user: User, class_id: uuid.UUID, card: CardDetails
    ) -> SubscriptionResult:
        """
        Tham gia lớp:
        - lớp miễn phí → tạo membership ACTIVE, không tạo payment
        - lớp trả phí → payment + xử lý thẻ; thành công thì membership có hạn 1 tháng,
          sau đó ghi sổ class_subscriptions (best-effort)
        Membership EXPIRED được gia hạn trên chính dòng cũ.
        """
        user_id = user.id
        payment_id: Optional[uuid.UUID] = None
        try:
            class_ = await self.db.get(Classes, class_id)
            if not class_:
                raise NotFound(CLASS_NOT_FOUND_MESSAGE)

            membership = await self.memberships.get_membership_async(user_id, class_id)
            if membership and membership.status != MembershipStatus.EXPIRED.value:
                raise BusinessRuleViolation(ALREADY_MEMBER_MESSAGE)

            price = Decimal(str(class_.subscription_price or 0))
            if price == 0:
                return await self._join_free_async(user, class_, membership)

            payment = await self.payments.create_payment_async(
                user_id=user_id,
                class_id=class_id,
                amount=price,
                metadata={"type": PaymentKind.SUBSCRIPTION.value},
            )
            payment_id = payment.id
            result = await self.payments.process_payment_async(
                payment_id, card, commit=False
            )
            if not result.success:
                await self.db.commit()
                return SubscriptionDeclined(
                    payment=result.payment,
                    error=result.error or PAYMENT_FAILED_MESSAGE,
                )

            starts_at = get_now()
            expires_at = add_months(starts_at, settings.SUBSCRIPTION_PERIOD_MONTHS)

            if membership is None:
                membership = Memberships(
                    id=uuid.uuid4(),
                    class_id=class_id,
                    user_id=user_id,
                    joined_at=starts_at,
                )
                self.db.add(membership)
            membership.status = MembershipStatus.ACTIVE.value
            membership.subscription_paid = True
            membership.subscription_expires_at = expires_at
            membership.last_payment_id = payment_id

            try:
                await self.db.commit()
            except IntegrityError:
                await self._reject_duplicate_async(payment_id)

            logger.success(
                f"🎉 User {user_id} đăng ký lớp {class_id} đến {expires_at:%Y-%m-%d}"
            )

            subscription = await self._record_ledger_async(
                user_id, class_id, result.payment, membership, starts_at, expires_at
            )
            return SubscriptionSuccess(
                membership=membership,
                subscription=subscription,
                payment=result.payment,
            )

        except HTTPException:
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"[SUBSCRIPTION] Lỗi DB user {user_id} lớp {class_id}")
            if payment_id is not None:
                await self.payments.fail_if_pending_async(payment_id, SYSTEM_ERROR_MESSAGE)
            raise UnexpectedError(SYSTEM_ERROR_MESSAGE)

    async def get_user_subscriptions_async(
        self, user_id: uuid.UUID, include_expired: bool = False
    ) -> list[dict]:
        """Các đăng ký lớp của user (mặc định chỉ còn hiệu lực), mới nhất trước."""
        try:
            stmt = (
                select(ClassSubscriptions, Classes.name, Classes.subscription_price)
                .join(Classes, Classes.id == ClassSubscriptions.class_id)
                .where(ClassSubscriptions.user_id == user_id)
                .order_by(ClassSubscriptions.created_at.desc())
            )
            if not include_expired:
                stmt = stmt.where(
                    ClassSubscriptions.status == ClassSubscriptionStatus.ACTIVE.value
                )
            result = await self.db.execute(stmt)
            return [
                subscription_to_dict(sub, class_name=name, subscription_price=price)
                for sub, name, price in result.all()
            ]
        except SQLAlchemyError:
            logger.exception(f"[SUBSCRIPTION] Lỗi lấy danh sách đăng ký của user {user_id}")
            raise UnexpectedError("Đã xảy ra lỗi khi lấy danh sách đăng ký")
