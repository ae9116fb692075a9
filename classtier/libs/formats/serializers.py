"""Chuyển ORM → dict JSON cho response (tiền tệ trả về dạng số)."""

from decimal import Decimal
from typing import Any

from classtier.db.models.database import (
    Classes,
    ClassSubscriptions,
    Memberships,
    Payments,
    SubscriptionTiers,
    TierPurchases,
)
from classtier.libs.formats.datetime import isoformat


def _money(value: Decimal | None) -> float:
    return float(value or 0)


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def class_to_dict(class_: Classes) -> dict:
    return {
        "id": str(class_.id),
        "teacher_id": str(class_.teacher_id),
        "name": class_.name,
        "description": class_.description,
        "subscription_price": _money(class_.subscription_price),
        "free_tier_lesson_count": class_.free_tier_lesson_count,
        "created_at": isoformat(class_.created_at),
    }


def tier_to_dict(tier: SubscriptionTiers) -> dict:
    return {
        "id": str(tier.id),
        "class_id": str(tier.class_id),
        "tier_level": tier.tier_level,
        "name": tier.name,
        "description": tier.description,
        "price": _money(tier.price),
        "lesson_unlock_count": tier.lesson_unlock_count,
        "is_enabled": tier.is_enabled,
    }


def payment_to_dict(payment: Payments, class_name: str | None = None) -> dict:
    data = {
        "id": str(payment.id),
        "user_id": str(payment.user_id),
        "class_id": str(payment.class_id),
        "tier_id": _str_or_none(payment.tier_id),
        "amount": _money(payment.amount),
        "currency": payment.currency,
        "status": payment.status,
        "card_last_four": payment.card_last_four,
        "error_message": payment.error_message,
        "test_mode": payment.test_mode,
        "metadata": payment.metadata_ or {},
        "created_at": isoformat(payment.created_at),
        "completed_at": isoformat(payment.completed_at),
    }
    if class_name is not None:
        data["class"] = {"id": str(payment.class_id), "name": class_name}
    return data


def purchase_to_dict(purchase: TierPurchases) -> dict:
    return {
        "id": str(purchase.id),
        "user_id": str(purchase.user_id),
        "class_id": str(purchase.class_id),
        "tier_id": str(purchase.tier_id),
        "payment_id": str(purchase.payment_id),
        "tier_level": purchase.tier_level,
        "created_at": isoformat(purchase.created_at),
        "updated_at": isoformat(purchase.updated_at),
    }


def membership_to_dict(membership: Memberships) -> dict:
    return {
        "id": str(membership.id),
        "class_id": str(membership.class_id),
        "user_id": str(membership.user_id),
        "status": membership.status,
        "subscription_paid": membership.subscription_paid,
        "subscription_expires_at": isoformat(membership.subscription_expires_at),
        "last_payment_id": _str_or_none(membership.last_payment_id),
        "joined_at": isoformat(membership.joined_at),
    }


def subscription_to_dict(
    subscription: ClassSubscriptions,
    class_name: str | None = None,
    subscription_price: Decimal | None = None,
) -> dict:
    data = {
        "id": str(subscription.id),
        "user_id": str(subscription.user_id),
        "class_id": str(subscription.class_id),
        "payment_id": str(subscription.payment_id),
        "amount": _money(subscription.amount),
        "currency": subscription.currency,
        "status": subscription.status,
        "starts_at": isoformat(subscription.starts_at),
        "expires_at": isoformat(subscription.expires_at),
        "created_at": isoformat(subscription.created_at),
    }
    if class_name is not None:
        data["class"] = {
            "id": str(subscription.class_id),
            "name": class_name,
            "subscription_price": _money(subscription_price),
        }
    return data
