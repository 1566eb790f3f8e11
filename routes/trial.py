from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from core.tenancy import get_store_for_user
from models.user import User
from routes.auth import get_current_user, require_admin
from routes.plans import build_trial_status
from schemas.trial import TrialConverted, TrialConvertRequest, TrialStatistics, TrialStatus
from services import trial as trial_service

router = APIRouter(prefix="/api/trial", tags=["trial"])


@router.get("/statistics", response_model=TrialStatistics)
def trial_statistics(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return TrialStatistics(**trial_service.get_trial_statistics(db))


@router.get("/{store_id}/status", response_model=TrialStatus)
def store_trial_status(store_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = get_store_for_user(db, user, store_id)
    return build_trial_status(db, store)


@router.post("/{store_id}/convert", response_model=TrialConverted)
def convert_trial(
    store_id: int,
    data: TrialConvertRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = trial_service.convert_trial_to_paid(
        db,
        user_id=user.id,
        store_id=store_id,
        plan_id=data.plan_id,
        external_subscription_id=data.stripe_subscription_id,
    )
    return TrialConverted(
        message=f"Trial converted to the {store.subscription_plan} plan",
        store_id=store.id,
        new_plan=store.subscription_plan,
        highlight_weight=store.highlight_weight,
    )
