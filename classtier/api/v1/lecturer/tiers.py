import uuid

from fastapi import APIRouter, Body, Depends

from classtier.core.deps import AuthorizationService, get_current_user
from classtier.db.models.database import User
from classtier.libs.formats.serializers import tier_to_dict
from classtier.schemas.lecturer.tiers import TierUpdateSchema
from classtier.services.lecturer.tiers import TierPricingService

router = APIRouter(prefix="/tiers", tags=["Lecturer Tiers"])


@router.put("/{class_id}")
async def update_class_tiers(
    class_id: uuid.UUID,
    user: User = Depends(get_current_user),
    schema: TierUpdateSchema = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    pricing_service: TierPricingService = Depends(TierPricingService),
):
    class_ = await authorization.require_class_teacher(user, class_id)
    tiers = await pricing_service.update_tiers_async(class_, schema)
    return [tier_to_dict(t) for t in tiers]
