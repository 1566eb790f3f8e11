from datetime import datetime
from typing import List, Optional

from pydantic import Field

from schemas.base import CamelModel


class ProductCreate(CamelModel):
    store_id: Optional[int] = None
    name: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=100)
    price: float = Field(ge=0)
    stock: int = 0
    description: Optional[str] = None
    images: Optional[List[str]] = None


class ProductOut(CamelModel):
    id: int
    store_id: int
    name: str
    category: str
    price: float
    stock: int
    description: Optional[str] = None
    images: Optional[List[str]] = None
    is_active: bool
    created_at: datetime
