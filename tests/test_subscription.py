import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from classtier.core.enum import ClassSubscriptionStatus, MembershipStatus, PaymentStatus
from classtier.core.exceptions import BusinessRuleViolation, NotFound, UnexpectedError
from classtier.core.scheduler import subscription_expiry_job
from classtier.db.models.database import ClassSubscriptions, Memberships, Payments
from classtier.libs.formats.datetime import add_months
from classtier.libs.formats.datetime import now as get_now
from classtier.services.shares.membership import MembershipService
from classtier.services.shares.payment import DECLINED_MESSAGE, CardDetails
from classtier.services.user import subscription as subscription_module
from classtier.services.user.subscription import (
    ALREADY_MEMBER_MESSAGE,
    SubscriptionDeclined,
    SubscriptionService,
    SubscriptionSuccess,
)
from tests.factories import add_member, create_class, create_user, valid_card

EMPTY_CARD = CardDetails("", "", "", "")


def card(number: str = "4111111111111111") -> CardDetails:
    data = valid_card(number)
    return CardDetails(data["number"], data["expMonth"], data["expYear"], data["cvv"])


async def count_rows(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


@pytest.fixture
def service(db):
    return SubscriptionService(db)


class TestFreeClass:
    @pytest.mark.asyncio
    async def test_join_free_class_without_payment(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher)

        result = await service.subscribe_async(student, class_.id, EMPTY_CARD)

        assert isinstance(result, SubscriptionSuccess)
        assert result.is_free is True
        assert result.payment is None
        assert result.membership.status == MembershipStatus.ACTIVE.value
        assert result.membership.subscription_paid is False
        assert result.membership.subscription_expires_at is None
        assert await count_rows(db, Payments) == 0

    @pytest.mark.asyncio
    async def test_already_member(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher)
        await service.subscribe_async(student, class_.id, EMPTY_CARD)

        with pytest.raises(BusinessRuleViolation) as exc:
            await service.subscribe_async(student, class_.id, EMPTY_CARD)
        assert exc.value.detail == ALREADY_MEMBER_MESSAGE

    @pytest.mark.asyncio
    async def test_unknown_class(self, db, service):
        student = await create_user(db)

        with pytest.raises(NotFound):
            await service.subscribe_async(student, uuid.uuid4(), EMPTY_CARD)


class TestPaidClass:
    @pytest.mark.asyncio
    async def test_paid_subscription(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))

        result = await service.subscribe_async(student, class_.id, card())

        assert isinstance(result, SubscriptionSuccess)
        assert result.is_free is False
        assert result.payment.status == PaymentStatus.COMPLETED.value
        assert result.payment.amount == Decimal("99000")
        assert result.payment.metadata_ == {"type": "subscription"}

        membership = result.membership
        assert membership.subscription_paid is True
        assert membership.last_payment_id == result.payment.id

        ledger = result.subscription
        assert ledger is not None
        assert ledger.status == ClassSubscriptionStatus.ACTIVE.value
        assert ledger.payment_id == result.payment.id
        assert ledger.expires_at == add_months(ledger.starts_at, 1)
        assert membership.subscription_expires_at == ledger.expires_at

    @pytest.mark.asyncio
    async def test_declined_card_creates_no_membership(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))

        result = await service.subscribe_async(
            student, class_.id, card("4000000000000002")
        )

        assert isinstance(result, SubscriptionDeclined)
        assert result.error == DECLINED_MESSAGE
        assert result.payment.status == PaymentStatus.FAILED.value
        assert await count_rows(db, Memberships) == 0

    @pytest.mark.asyncio
    async def test_empty_card_on_paid_class_fails_payment(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))

        result = await service.subscribe_async(student, class_.id, EMPTY_CARD)

        assert result.success is False
        assert result.error == "Số thẻ phải có 16 chữ số"
        assert result.payment.status == PaymentStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_expired_membership_is_renewed_in_place(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))
        old = await add_member(db, student, class_, MembershipStatus.EXPIRED)

        result = await service.subscribe_async(student, class_.id, card())

        assert result.membership.id == old.id
        assert result.membership.status == MembershipStatus.ACTIVE.value
        assert result.membership.last_payment_id == result.payment.id
        assert await count_rows(db, Memberships) == 1

    @pytest.mark.asyncio
    async def test_ledger_failure_keeps_membership(self, db, service, monkeypatch):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))
        student_id, class_id = student.id, class_.id

        def broken_ledger(**values):
            values["payment_id"] = None
            return ClassSubscriptions(**values)

        monkeypatch.setattr(subscription_module, "ClassSubscriptions", broken_ledger)

        result = await service.subscribe_async(student, class_id, card())

        assert isinstance(result, SubscriptionSuccess)
        assert result.subscription is None
        assert result.membership.status == MembershipStatus.ACTIVE.value
        assert await MembershipService(db).is_class_member_async(student_id, class_id)
        assert await count_rows(db, ClassSubscriptions) == 0

    @pytest.mark.asyncio
    async def test_list_subscriptions(self, db, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))
        await service.subscribe_async(student, class_.id, card())

        rows = await service.get_user_subscriptions_async(student.id)

        assert len(rows) == 1
        assert rows[0]["class"]["name"] == class_.name
        assert rows[0]["class"]["subscription_price"] == 99000.0
        assert rows[0]["status"] == "active"


    @pytest.mark.asyncio
    async def test_db_error_after_payment_marks_it_failed(self, db, service, monkeypatch):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))
        class_id = class_.id

        def broken_period(*args):
            raise OperationalError("UPDATE memberships", {}, Exception("db down"))

        monkeypatch.setattr(subscription_module, "add_months", broken_period)

        with pytest.raises(UnexpectedError):
            await service.subscribe_async(student, class_id, card())

        statuses = (
            await db.execute(
                select(Payments.status).execution_options(populate_existing=True)
            )
        ).scalars().all()
        assert statuses == [PaymentStatus.FAILED.value]
        assert await count_rows(db, Memberships) == 0


class TestSubscriptionExpiry:
    @pytest.mark.asyncio
    async def test_expiry_job(self, db, session_factory, service):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher, subscription_price=Decimal("99000"))
        result = await service.subscribe_async(student, class_.id, card())
        student_id, class_id = student.id, class_.id

        past = get_now() - timedelta(days=1)
        result.membership.subscription_expires_at = past
        result.subscription.expires_at = past
        await db.commit()

        summary = await subscription_expiry_job(session_factory)

        assert summary == {"memberships_expired": 1, "subscriptions_expired": 1}
        memberships = MembershipService(db)
        assert not await memberships.is_class_member_async(student_id, class_id)
        assert await service.get_user_subscriptions_async(student_id) == []
        expired = await service.get_user_subscriptions_async(
            student_id, include_expired=True
        )
        assert [row["status"] for row in expired] == ["expired"]

    @pytest.mark.asyncio
    async def test_free_members_never_expire(self, db):
        teacher = await create_user(db)
        student = await create_user(db)
        class_ = await create_class(db, teacher)
        await add_member(db, student, class_)

        summary = await MembershipService(db).expire_subscriptions_async()

        assert summary == {"memberships_expired": 0, "subscriptions_expired": 0}
        assert await MembershipService(db).is_class_member_async(student.id, class_.id)
