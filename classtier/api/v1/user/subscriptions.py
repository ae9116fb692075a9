from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import JSONResponse

from classtier.core.deps import get_current_user
from classtier.db.models.database import User
from classtier.libs.formats.serializers import (
    membership_to_dict,
    payment_to_dict,
    subscription_to_dict,
)
from classtier.schemas.shares.payments import SubscriptionRequestSchema
from classtier.services.shares.payment import CardDetails
from classtier.services.user.subscription import (
    SubscriptionDeclined,
    SubscriptionService,
)

router = APIRouter(prefix="/subscriptions", tags=["User Subscriptions"])


@router.post("", status_code=status.HTTP_200_OK)
async def subscribe_class(
    user: User = Depends(get_current_user),
    schema: SubscriptionRequestSchema = Body(),
    subscription_service: SubscriptionService = Depends(SubscriptionService),
):
    result = await subscription_service.subscribe_async(
        user, schema.class_id, CardDetails.from_schema(schema.card)
    )

    if isinstance(result, SubscriptionDeclined):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "payment": payment_to_dict(result.payment),
                "error": result.error,
            },
        )

    body = {"success": True, "membership": membership_to_dict(result.membership)}
    if result.is_free:
        body["isFree"] = True
    if result.payment is not None:
        body["payment"] = payment_to_dict(result.payment)
    if result.subscription is not None:
        body["subscription"] = subscription_to_dict(result.subscription)
    return body


@router.get("")
async def get_my_subscriptions(
    include_expired: bool = Query(False),
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(SubscriptionService),
):
    return await subscription_service.get_user_subscriptions_async(
        user.id, include_expired=include_expired
    )
