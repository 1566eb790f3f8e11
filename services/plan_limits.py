"""
Plan limit evaluation.

Gates product/promotion/coupon creation against the store's effective plan.
While a trial is running the store gets the unlimited trial overlay whatever
its stored ``subscription_plan``.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.errors import ForbiddenError, PlanLimitReachedError
from core.plans import PlanLimits, TRIAL_LIMITS, get_plan, is_unlimited, next_plan_above
from core.tenancy import get_owned_store
from models.coupon import Coupon
from models.product import Product
from models.promotion import Promotion
from models.store import Store

logger = logging.getLogger(__name__)


class ResourceKind(str, enum.Enum):
    PRODUCTS = "products"
    PROMOTIONS = "promotions"
    COUPONS = "coupons"


_LIMIT_FIELDS = {
    ResourceKind.PRODUCTS: "max_products",
    ResourceKind.PROMOTIONS: "max_promotions",
    ResourceKind.COUPONS: "max_coupons_per_month",
}

_LABELS = {
    ResourceKind.PRODUCTS: "products",
    ResourceKind.PROMOTIONS: "promotions",
    ResourceKind.COUPONS: "coupons",
}


@dataclass
class LimitCheckResult:
    allowed: bool
    message: str
    current_count: Optional[int] = None
    max_allowed: Optional[int] = None
    upgrade_suggestion: Optional[str] = None


def is_trial_active(store: Store, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return bool(store.is_in_trial and store.trial_end_date and store.trial_end_date > now)


def get_effective_limits(store: Store, now: Optional[datetime] = None) -> PlanLimits:
    if is_trial_active(store, now):
        return TRIAL_LIMITS
    return get_plan(store.subscription_plan)


def count_resources(db: Session, store_id: int, kind: ResourceKind) -> int:
    # Counts are not bounded to the current month; usage never resets.
    if kind == ResourceKind.PRODUCTS:
        query = db.query(func.count(Product.id)).filter(Product.store_id == store_id)
    elif kind == ResourceKind.PROMOTIONS:
        query = (
            db.query(func.count(Promotion.id))
            .join(Product, Promotion.product_id == Product.id)
            .filter(Product.store_id == store_id)
        )
    else:
        query = db.query(func.count(Coupon.id)).filter(Coupon.store_id == store_id)
    return int(query.scalar() or 0)


def evaluate_store_limit(db: Session, store: Store, kind: ResourceKind, now: Optional[datetime] = None) -> LimitCheckResult:
    limits = get_effective_limits(store, now)
    max_allowed = getattr(limits, _LIMIT_FIELDS[kind])
    label = _LABELS[kind]

    if is_unlimited(max_allowed):
        return LimitCheckResult(allowed=True, message=f"Unlimited {label}", max_allowed=max_allowed)

    current = count_resources(db, store.id, kind)
    if current < max_allowed:
        return LimitCheckResult(
            allowed=True,
            message=f"{label.capitalize()} can be added",
            current_count=current,
            max_allowed=max_allowed,
        )

    upgrade = next_plan_above(store.subscription_plan)
    logger.info(
        "Store %s reached %s limit (%s/%s) on plan %s", store.id, label, current, max_allowed, store.subscription_plan
    )
    return LimitCheckResult(
        allowed=False,
        message=f"Limit of {max_allowed} {label} reached. Upgrade your plan to add more {label}.",
        current_count=current,
        max_allowed=max_allowed,
        upgrade_suggestion=upgrade,
    )


def validate_resource_limit(
    db: Session,
    user_id: int,
    store_id: Optional[int],
    kind: ResourceKind,
    lock: bool = False,
    now: Optional[datetime] = None,
) -> LimitCheckResult:
    """
    Check whether the seller may create one more ``kind`` resource.

    Raises NotFoundError when the user owns no matching store. Never writes;
    the caller creates the resource only when ``allowed`` is true.
    """
    store = get_owned_store(db, user_id, store_id, lock=lock)
    return evaluate_store_limit(db, store, kind, now)


def ensure_within_limit(
    db: Session, user_id: int, store_id: Optional[int], kind: ResourceKind, now: Optional[datetime] = None
) -> Store:
    """
    Lock the seller's store and raise PlanLimitReachedError when one more
    ``kind`` resource would exceed the plan. The caller inserts and commits
    in the same transaction, which releases the lock.
    """
    store = get_owned_store(db, user_id, store_id, lock=True)
    result = evaluate_store_limit(db, store, kind, now)
    if not result.allowed:
        raise PlanLimitReachedError(
            result.message,
            current_count=result.current_count,
            max_allowed=result.max_allowed,
            suggested_upgrade=result.upgrade_suggestion,
        )
    return store


def get_usage_summary(db: Session, store: Store, now: Optional[datetime] = None) -> Dict[str, Dict[str, Optional[int]]]:
    limits = get_effective_limits(store, now)
    return {
        kind.value: {
            "current": count_resources(db, store.id, kind),
            "max": getattr(limits, _LIMIT_FIELDS[kind]),
        }
        for kind in ResourceKind
    }


def has_plan_feature(store: Store, feature: str, now: Optional[datetime] = None) -> bool:
    return bool(getattr(get_effective_limits(store, now), feature, False))


def require_plan_feature(store: Store, feature: str, now: Optional[datetime] = None) -> None:
    if not has_plan_feature(store, feature, now):
        raise ForbiddenError(
            f"This feature is not available on your current plan ({store.subscription_plan or 'freemium'})"
        )
