import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from core.plans import get_plan
from core.tenancy import get_store_for_user
from models.store import Store
from models.user import User
from routes.auth import get_current_user
from schemas.store import StoreCreate, StoreCreated, StoreOut, StoreUsage
from services import plan_limits
from services import trial as trial_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stores", tags=["stores"])


@router.post("", response_model=StoreCreated, status_code=201)
def create_store(data: StoreCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Create a store and start its free trial right away."""
    store = Store(
        owner_id=user.id,
        name=data.name.strip(),
        description=data.description,
        category=data.category,
    )
    db.add(store)
    db.flush()
    trial_service.activate_trial(db, store)
    logger.info("Store %s created by user %s", store.id, user.id)
    return StoreCreated(store=StoreOut.model_validate(store), trial=trial_service.calculate_trial_info(store))


@router.get("/mine", response_model=List[StoreOut])
def my_stores(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Store).filter(Store.owner_id == user.id).order_by(Store.id).all()


@router.get("/{store_id}", response_model=StoreOut)
def get_store(store_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_store_for_user(db, user, store_id)


@router.get("/{store_id}/usage", response_model=StoreUsage)
def store_usage(store_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = get_store_for_user(db, user, store_id)
    return StoreUsage(
        store_id=store.id,
        plan=get_plan(store.subscription_plan).name,
        is_in_trial=plan_limits.is_trial_active(store),
        usage=plan_limits.get_usage_summary(db, store),
    )
