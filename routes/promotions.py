import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from core.errors import NotFoundError
from core.tenancy import get_owned_store
from models.product import Product
from models.promotion import Promotion
from models.store import Store
from models.user import User
from routes.auth import get_current_user
from schemas.promotion import PromotionCreate, PromotionOut
from services.plan_limits import ResourceKind, ensure_within_limit, require_plan_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/promotions", tags=["promotions"])


@router.get("", response_model=List[PromotionOut])
def list_promotions(
    store_id: Optional[int] = Query(default=None, alias="storeId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = get_owned_store(db, user.id, store_id)
    return (
        db.query(Promotion)
        .join(Product, Promotion.product_id == Product.id)
        .filter(Product.store_id == store.id)
        .order_by(Promotion.start_time.desc())
        .all()
    )


@router.post("", response_model=PromotionOut, status_code=201)
def create_promotion(data: PromotionCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = (
        db.query(Product)
        .join(Store, Product.store_id == Store.id)
        .filter(Product.id == data.product_id, Store.owner_id == user.id)
        .one_or_none()
    )
    if not product:
        raise NotFoundError("Product not found")

    store = ensure_within_limit(db, user.id, product.store_id, ResourceKind.PROMOTIONS)
    if data.type == "flash":
        require_plan_feature(store, "allows_flash_promotions")

    promotion = Promotion(
        product_id=product.id,
        type=data.type,
        discount_percentage=data.discount_percentage,
        start_time=data.start_time,
        end_time=data.end_time,
    )
    db.add(promotion)
    db.commit()
    db.refresh(promotion)
    logger.info("%s promotion %s created for product %s", data.type.capitalize(), promotion.id, product.id)
    return promotion
