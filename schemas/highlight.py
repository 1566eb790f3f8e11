from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from schemas.base import CamelModel


class HighlightItem(CamelModel):
    store_id: int
    store_name: str
    subscription_plan: str
    is_in_trial: bool
    highlight_weight: float
    last_highlighted_at: Optional[datetime] = None
    total_impressions: int
    product_id: int
    product_name: str
    product_price: Optional[float] = None
    product_category: str
    product_created_at: datetime
    images: Optional[List[str]] = None
    promotion_type: Optional[str] = None
    discount_percentage: Optional[int] = None
    promotion_end_time: Optional[datetime] = None
    discounted_price: Optional[float] = None
    trial_end_date: Optional[datetime] = None
    calculated_weight: float


class HomeHighlightsResponse(CamelModel):
    success: bool = True
    highlights: Dict[str, List[HighlightItem]]
    total_sections: int


class ImpressionCreate(CamelModel):
    store_id: int
    product_id: Optional[int] = None
    section: str = Field(min_length=1, max_length=100)


class ImpressionResponse(CamelModel):
    success: bool = True
    message: str
    recorded: bool


class SectionDailyCount(CamelModel):
    section: str
    date: str
    count: int


class HighlightAnalytics(CamelModel):
    success: bool = True
    analytics: List[SectionDailyCount]
    period: str


class WeightUpdate(CamelModel):
    weight: float = Field(ge=0, le=10)


class WeightUpdated(CamelModel):
    success: bool = True
    message: str
    store_id: int
    highlight_weight: float
