import uuid
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends, HTTPException
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classtier.core.enum import PaymentKind, TierLevel
from classtier.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolation,
    NotFound,
    UnexpectedError,
)
from classtier.db.models.database import Payments, SubscriptionTiers, TierPurchases, User
from classtier.db.sesson import get_session
from classtier.db.upsert import insert_for
from classtier.libs.access.entitlement import user_tier_level
from classtier.libs.formats.datetime import now as get_now
from classtier.services.shares.membership import MembershipService
from classtier.services.shares.payment import CardDetails, PaymentService
from classtier.services.shares.tiers import TierService

NOT_MEMBER_MESSAGE = "Bạn cần tham gia lớp học trước khi mua gói"
TIER_NOT_FOUND_MESSAGE = "Gói không tồn tại"
TIER_OTHER_CLASS_MESSAGE = "Gói không thuộc lớp học này"
TIER_DISABLED_MESSAGE = "Gói này hiện không được mở bán"
SAME_TIER_MESSAGE = "Bạn đã sở hữu gói này"
HIGHER_TIER_MESSAGE = "Bạn đã sở hữu gói cao hơn"
SYSTEM_ERROR_MESSAGE = "Đã xảy ra lỗi khi xử lý thanh toán"


@dataclass
class PurchaseSuccess:
    payment: Payments
    purchase: TierPurchases
    success: bool = True


@dataclass
class PurchaseDeclined:
    payment: Payments
    error: Optional[str]
    success: bool = False


PurchaseResult = Union[PurchaseSuccess, PurchaseDeclined]


class TierPurchaseService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db
        self.payments = PaymentService(db)
        self.tiers = TierService(db)
        self.memberships = MembershipService(db)

    async def _check_purchasable_async(
        self, user_id: uuid.UUID, class_id: uuid.UUID, tier_id: uuid.UUID
    ) -> SubscriptionTiers:
        """Mọi điều kiện nghiệp vụ, kiểm tra trước khi tạo payment."""
        if not await self.memberships.is_class_member_async(user_id, class_id):
            raise AuthorizationError(NOT_MEMBER_MESSAGE)

        tier = await self.tiers.get_tier_async(tier_id)
        if tier is None:
            raise NotFound(TIER_NOT_FOUND_MESSAGE)
        if tier.class_id != class_id:
            raise BusinessRuleViolation(TIER_OTHER_CLASS_MESSAGE)
        if not tier.is_enabled:
            raise BusinessRuleViolation(TIER_DISABLED_MESSAGE)

        existing = await self.tiers.get_user_tier_purchase_async(user_id, class_id)
        current_level = user_tier_level(existing)
        target_level = TierLevel.coerce(tier.tier_level)

        # chỉ được nâng cấp, không mua lại / hạ cấp
        if current_level == target_level:
            raise BusinessRuleViolation(SAME_TIER_MESSAGE)
        if current_level > target_level:
            raise BusinessRuleViolation(HIGHER_TIER_MESSAGE)
        return tier

    async def _upsert_purchase_async(
        self,
        user_id: uuid.UUID,
        class_id: uuid.UUID,
        tier: SubscriptionTiers,
        payment_id: uuid.UUID,
    ) -> Optional[TierPurchases]:
        """
        Một dòng duy nhất cho (user, class): tạo mới hoặc nâng cấp.
        Dòng hiện có chỉ bị ghi đè khi cấp đang lưu thấp hơn cấp mới;
        trả về None nếu không ghi được (request song song đã mua cấp cao hơn).
        """
        now = get_now()
        stmt = insert_for(self.db, TierPurchases).values(
            id=uuid.uuid4(),
            user_id=user_id,
            class_id=class_id,
            tier_id=tier.id,
            payment_id=payment_id,
            tier_level=tier.tier_level,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "class_id"],
            set_={
                "tier_id": stmt.excluded.tier_id,
                "payment_id": stmt.excluded.payment_id,
                "tier_level": stmt.excluded.tier_level,
                "updated_at": stmt.excluded.updated_at,
            },
            where=TierPurchases.tier_level < stmt.excluded.tier_level,
        )
        await self.db.execute(stmt)

        purchase = await self.db.scalar(
            select(TierPurchases)
            .where(
                TierPurchases.user_id == user_id,
                TierPurchases.class_id == class_id,
            )
            .options(selectinload(TierPurchases.tier))
            .execution_options(populate_existing=True)
        )
        if purchase is None or purchase.payment_id != payment_id:
            return None
        return purchase

    async def purchase_tier_async(
        self,
        user: User,
        class_id: uuid.UUID,
        tier_id: uuid.UUID,
        card: CardDetails,
    ) -> PurchaseResult:
        """
        Mua / nâng cấp gói:
        1) kiểm tra thành viên, gói, cấp hiện tại (trước khi tạo payment)
        2) tạo payment pending + xử lý thẻ
        3) thất bại → trả về payment failed, không đụng tới quyền truy cập
        4) thành công → cập nhật payment và upsert tier_purchase trong cùng transaction
        """
        user_id = user.id
        payment_id: Optional[uuid.UUID] = None
        try:
            tier = await self._check_purchasable_async(user_id, class_id, tier_id)

            target_level = TierLevel.coerce(tier.tier_level)
            payment = await self.payments.create_payment_async(
                user_id=user_id,
                class_id=class_id,
                amount=tier.price,
                tier_id=tier.id,
                metadata={"type": PaymentKind.TIER.value, "tier_id": str(tier.id)},
            )
            payment_id = payment.id
            result = await self.payments.process_payment_async(
                payment_id, card, commit=False
            )

            if not result.success:
                await self.db.commit()
                return PurchaseDeclined(payment=result.payment, error=result.error)

            purchase = await self._upsert_purchase_async(
                user_id, class_id, tier, payment_id
            )
            if purchase is None:
                await self.db.rollback()
                stored = await self.tiers.get_user_tier_purchase_async(user_id, class_id)
                reason = (
                    SAME_TIER_MESSAGE
                    if user_tier_level(stored) == target_level
                    else HIGHER_TIER_MESSAGE
                )
                await self.payments.mark_failed_async(payment_id, reason)
                logger.warning(
                    f"[TIER PURCHASE] user {user_id} lớp {class_id}: upsert bị bỏ qua, "
                    f"payment {payment_id} → failed"
                )
                raise BusinessRuleViolation(reason)

            await self.db.commit()
            logger.success(
                f"🎉 User {user_id} sở hữu gói cấp {tier.tier_level} của lớp {class_id} "
                f"(payment {payment_id})"
            )
            return PurchaseSuccess(payment=result.payment, purchase=purchase)

        except HTTPException:
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"[TIER PURCHASE] Lỗi DB user {user_id} lớp {class_id}")
            if payment_id is not None:
                await self.payments.fail_if_pending_async(payment_id, SYSTEM_ERROR_MESSAGE)
            raise UnexpectedError(SYSTEM_ERROR_MESSAGE)
