from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from schemas.base import CamelModel


class TrialInfo(CamelModel):
    is_active: bool
    is_expired: bool
    has_used_trial: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_remaining: int
    hours_remaining: int
    urgency_level: str
    notifications_sent: Dict[str, bool] = {}


class PlanFeatures(CamelModel):
    max_products: int
    max_promotions: int
    max_coupons_per_month: int
    allows_flash_promotions: bool
    allows_advanced_analytics: bool
    allows_highlights: bool
    highlight_weight: float


class TrialStatus(CamelModel):
    success: bool = True
    store_id: int
    current_plan: str
    trial: TrialInfo
    features: PlanFeatures


class TrialStartRequest(CamelModel):
    plan_id: str = Field(min_length=1)


class TrialConvertRequest(CamelModel):
    plan_id: int
    stripe_subscription_id: Optional[str] = None


class TrialConverted(CamelModel):
    success: bool = True
    message: str
    store_id: int
    new_plan: str
    highlight_weight: float


class TrialStatistics(CamelModel):
    success: bool = True
    total_trials: int
    active_trials: int
    expired_trials: int
    converted_trials: int
    conversion_rate: float


class PlanOut(CamelModel):
    id: str
    plan_id: int
    name: str
    description: str
    price: float
    yearly_price: float
    currency: str
    is_current: bool
    trial_days: int
    features: PlanFeatures


class PlansResponse(CamelModel):
    success: bool = True
    version: str
    plans: List[PlanOut]
