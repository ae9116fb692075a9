import uuid

from fastapi import APIRouter, Depends

from classtier.libs.formats.serializers import tier_to_dict
from classtier.services.shares.tiers import TierService

router = APIRouter(prefix="/tiers", tags=["Tiers"])


@router.get("/{class_id}")
async def get_class_tiers(
    class_id: uuid.UUID,
    tier_service: TierService = Depends(TierService),
):
    """Công khai: các gói của lớp theo tier_level tăng dần."""
    tiers = await tier_service.get_class_tiers_async(class_id)
    return [tier_to_dict(t) for t in tiers]
