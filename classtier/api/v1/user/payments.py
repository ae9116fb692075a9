import uuid

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from classtier.core.deps import get_current_user
from classtier.db.models.database import User
from classtier.libs.formats.serializers import (
    payment_to_dict,
    purchase_to_dict,
    tier_to_dict,
)
from classtier.schemas.shares.payments import TierPurchaseRequestSchema
from classtier.services.shares.payment import CardDetails, PaymentService
from classtier.services.user.tier_purchase import PurchaseDeclined, TierPurchaseService

router = APIRouter(prefix="/payments", tags=["User Payments"])


@router.post("", status_code=status.HTTP_200_OK)
async def purchase_tier(
    user: User = Depends(get_current_user),
    schema: TierPurchaseRequestSchema = Body(),
    purchase_service: TierPurchaseService = Depends(TierPurchaseService),
):
    result = await purchase_service.purchase_tier_async(
        user,
        class_id=schema.class_id,
        tier_id=schema.tier_id,
        card=CardDetails.from_schema(schema.card),
    )

    # Thẻ bị từ chối: vẫn trả payment (failed) để client hiển thị
    if isinstance(result, PurchaseDeclined):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "payment": payment_to_dict(result.payment),
                "error": result.error,
            },
        )

    purchase = purchase_to_dict(result.purchase)
    purchase["tier"] = tier_to_dict(result.purchase.tier)
    return {
        "success": True,
        "payment": payment_to_dict(result.payment),
        "purchase": purchase,
    }


@router.get("")
async def get_payment_history(
    user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(PaymentService),
):
    return await payment_service.get_user_payments_async(user.id)


@router.get("/{payment_id}")
async def get_payment_detail(
    payment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(PaymentService),
):
    return await payment_service.get_user_payment_detail_async(user.id, payment_id)
