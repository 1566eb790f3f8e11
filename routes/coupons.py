from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from core.errors import InvalidRequestError
from core.tenancy import get_owned_store
from models.coupon import Coupon
from models.user import User
from routes.auth import get_current_user
from schemas.coupon import CouponCreate, CouponOut
from services.plan_limits import ResourceKind, ensure_within_limit

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.get("", response_model=List[CouponOut])
def list_coupons(
    store_id: Optional[int] = Query(default=None, alias="storeId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = get_owned_store(db, user.id, store_id)
    return db.query(Coupon).filter(Coupon.store_id == store.id).order_by(Coupon.created_at.desc()).all()


@router.post("", response_model=CouponOut, status_code=201)
def create_coupon(data: CouponCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if data.discount_amount is None and data.discount_percentage is None:
        raise InvalidRequestError("A coupon needs a discount amount or percentage")
    if data.end_time <= data.start_time:
        raise InvalidRequestError("endTime must be after startTime")

    store = ensure_within_limit(db, user.id, data.store_id, ResourceKind.COUPONS)
    code = data.code.strip().upper()
    if db.query(Coupon.id).filter(Coupon.store_id == store.id, Coupon.code == code).first():
        raise InvalidRequestError("Coupon code already exists in this store")

    coupon = Coupon(
        store_id=store.id,
        code=code,
        description=data.description,
        discount_amount=data.discount_amount,
        discount_percentage=data.discount_percentage,
        max_usage_count=data.max_usage_count,
        start_time=data.start_time,
        end_time=data.end_time,
    )
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon
