import uuid

from fastapi import APIRouter, Depends

from classtier.core.deps import get_current_user
from classtier.db.models.database import User
from classtier.services.user.learning import LearningAccessService

router = APIRouter(prefix="/learning", tags=["User Learning"])


@router.get("/classes/{class_id}/courses/{course_id}/access")
async def get_course_access(
    class_id: uuid.UUID,
    course_id: uuid.UUID,
    user: User = Depends(get_current_user),
    learning_service: LearningAccessService = Depends(LearningAccessService),
):
    return await learning_service.get_course_access_async(user, class_id, course_id)
