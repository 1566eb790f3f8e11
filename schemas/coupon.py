from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.base import CamelModel


class CouponCreate(CamelModel):
    store_id: Optional[int] = None
    code: str = Field(min_length=3, max_length=50)
    description: Optional[str] = None
    discount_amount: Optional[float] = Field(default=None, ge=0)
    discount_percentage: Optional[int] = Field(default=None, ge=1, le=100)
    max_usage_count: Optional[int] = Field(default=None, ge=1)
    start_time: datetime
    end_time: datetime


class CouponOut(CamelModel):
    id: int
    store_id: int
    code: str
    description: Optional[str] = None
    discount_amount: Optional[float] = None
    discount_percentage: Optional[int] = None
    max_usage_count: Optional[int] = None
    usage_count: int
    is_active: bool
    start_time: datetime
    end_time: datetime
