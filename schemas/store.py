from datetime import datetime
from typing import Dict, Optional

from pydantic import Field

from schemas.base import CamelModel
from schemas.trial import TrialInfo


class StoreCreate(CamelModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    category: Optional[str] = None


class StoreOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_open: bool
    subscription_plan: str
    subscription_status: Optional[str] = None
    is_in_trial: bool
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    highlight_weight: float
    total_highlight_impressions: int
    created_at: datetime


class StoreCreated(CamelModel):
    success: bool = True
    store: StoreOut
    trial: Optional[TrialInfo] = None


class ResourceUsage(CamelModel):
    current: int
    max: int


class StoreUsage(CamelModel):
    store_id: int
    plan: str
    is_in_trial: bool
    usage: Dict[str, ResourceUsage]
