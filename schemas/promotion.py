from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from schemas.base import CamelModel


class PromotionCreate(CamelModel):
    product_id: int
    type: Literal["flash", "regular"] = "regular"
    discount_percentage: int = Field(ge=1, le=100)
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class PromotionOut(CamelModel):
    id: int
    product_id: int
    type: str
    discount_percentage: int
    start_time: datetime
    end_time: datetime
