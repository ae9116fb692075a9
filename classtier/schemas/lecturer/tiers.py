import uuid
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class TierUpdateItem(BaseModel):
    id: uuid.UUID
    price: Decimal = Field(..., description="Giá (VND), không âm")
    # chỉ cập nhật khi client gửi field; null = không giới hạn
    lesson_unlock_count: Optional[int] = None
    is_enabled: Optional[bool] = None


class TierUpdateSchema(BaseModel):
    tiers: List[TierUpdateItem] = Field(..., min_length=1)
