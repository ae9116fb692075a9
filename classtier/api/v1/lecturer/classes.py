from fastapi import APIRouter, Body, Depends, status

from classtier.core.deps import get_current_user
from classtier.db.models.database import User
from classtier.libs.formats.serializers import class_to_dict, tier_to_dict
from classtier.schemas.lecturer.classes import ClassCreateSchema
from classtier.services.lecturer.classes import ClassService

router = APIRouter(prefix="/lecturer/classes", tags=["Lecturer Classes"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_class(
    user: User = Depends(get_current_user),
    schema: ClassCreateSchema = Body(),
    class_service: ClassService = Depends(ClassService),
):
    class_, tiers = await class_service.create_class_async(user, schema)
    return {
        "class": class_to_dict(class_),
        "tiers": [tier_to_dict(t) for t in tiers],
    }
