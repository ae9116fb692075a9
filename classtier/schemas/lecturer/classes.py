from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from classtier.core.settings import settings


class ClassCreateSchema(BaseModel):
    name: str = Field(..., min_length=1, description="Tên lớp học")
    description: Optional[str] = None
    subscription_price: Decimal = Field(Decimal("0"), ge=0, description="Phí tham gia hằng tháng (VND), 0 = miễn phí")
    free_tier_lesson_count: int = Field(
        default_factory=lambda: settings.FREE_TIER_LESSON_COUNT,
        ge=0,
        description="Số bài học miễn phí đầu tiên",
    )
