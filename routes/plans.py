from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_db
from core.plans import catalog, get_plan
from core.tenancy import get_owned_store
from models.store import Store
from models.user import User
from routes.auth import get_current_user, get_optional_user
from schemas.trial import PlanFeatures, PlanOut, PlansResponse, TrialStartRequest, TrialStatus
from services import trial as trial_service
from services.plan_limits import get_effective_limits

router = APIRouter(prefix="/api/plans", tags=["plans"])


def yearly_price(monthly: float, discount: int) -> float:
    return round(monthly * 12 * (100 - discount) / 100, 2)


def build_trial_status(db: Session, store: Store) -> TrialStatus:
    """Trial snapshot of ``store``; an ended trial is downgraded before reporting."""
    trial_service.expire_trial_if_due(db, store)
    return TrialStatus(
        store_id=store.id,
        current_plan=trial_service.get_effective_plan_name(store),
        trial=trial_service.calculate_trial_info(store),
        features=PlanFeatures.model_validate(get_effective_limits(store).model_dump()),
    )


@router.get("", response_model=PlansResponse)
def list_plans(viewer: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    current = None
    if viewer is not None:
        store = db.query(Store).filter(Store.owner_id == viewer.id).order_by(Store.id).first()
        if store is not None:
            current = get_plan(store.subscription_plan).name

    plans = [
        PlanOut(
            id=plan.name,
            plan_id=plan.plan_id,
            name=plan.title,
            description=plan.description,
            price=plan.price,
            yearly_price=yearly_price(plan.price, plan.yearly_discount),
            currency=catalog.currency,
            is_current=plan.name == current,
            trial_days=settings.TRIAL_DAYS if plan.price > 0 else 0,
            features=PlanFeatures.model_validate(plan.model_dump()),
        )
        for plan in catalog.plans
    ]
    return PlansResponse(version=catalog.version, plans=plans)


@router.get("/trial/status", response_model=TrialStatus)
def trial_status(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = get_owned_store(db, user.id)
    return build_trial_status(db, store)


@router.post("/trial/start", response_model=TrialStatus)
def start_trial(data: TrialStartRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = trial_service.start_trial(db, user.id, data.plan_id)
    return build_trial_status(db, store)
