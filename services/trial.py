"""
Trial lifecycle: activation on store signup, staged expiry reminders,
downgrade of expired trials and conversion to a paid plan.

States: no_trial -> trial_active -> trial_expired_downgraded, or
trial_active -> converted_to_paid. The trial is an overlay; the stored
``subscription_plan`` stays ``freemium`` while it runs.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import InvalidPlanError, InvalidRequestError, NotFoundError
from core.plans import DEFAULT_PLAN, TRIAL_LIMITS, TRIAL_TIER, get_plan, get_plan_by_id, require_plan
from core.tenancy import get_owned_store
from models.store import Store
from models.user import User
from services import email as email_service

logger = logging.getLogger(__name__)

FREEMIUM_WEIGHT = 1

# (stage, lower bound exclusive, upper bound inclusive) in days left before the trial ends
NOTIFICATION_STAGES = (
    ("day7", 6, 8),
    ("day12", 2, 4),
    ("day14", 1, 2),
    ("day15", 0, 1),
)


def _trial_has_been_used(store: Store) -> bool:
    return store.trial_start_date is not None


def activate_trial(db: Session, store: Store, now: Optional[datetime] = None, commit: bool = True) -> Store:
    """
    Put ``store`` on the trial overlay. Only valid from the no-trial state:
    an active or previously used trial is rejected.
    """
    if store.is_in_trial:
        raise InvalidRequestError("A trial is already active for this store")
    if _trial_has_been_used(store):
        raise InvalidRequestError("The trial has already been used for this store")

    now = now or datetime.utcnow()
    store.is_in_trial = True
    store.trial_start_date = now
    store.trial_end_date = now + timedelta(days=settings.TRIAL_DAYS)
    store.highlight_weight = TRIAL_LIMITS.highlight_weight
    store.subscription_plan = DEFAULT_PLAN
    store.trial_notifications_sent = {}

    try:
        if commit:
            db.commit()
            db.refresh(store)
        else:
            db.flush()
    except Exception:
        logger.exception("Failed to activate trial for store %s", store.id)
        db.rollback()
        raise

    logger.info("Trial of %s days activated for store %s", settings.TRIAL_DAYS, store.id)
    return store


def start_trial(db: Session, user_id: int, plan_name: str, now: Optional[datetime] = None) -> Store:
    """Seller-initiated trial start for their first store."""
    plan = require_plan(plan_name)
    if plan.name == DEFAULT_PLAN:
        raise InvalidPlanError("Trials are only available for paid plans")

    store = get_owned_store(db, user_id)
    return activate_trial(db, store, now=now)


def calculate_trial_info(store: Store, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    end = store.trial_end_date
    is_active = bool(store.is_in_trial and end and end > now)

    days_remaining = 0
    hours_remaining = 0
    urgency_level = "low"
    if is_active:
        remaining = end - now
        days_remaining = remaining.days
        hours_remaining = remaining.seconds // 3600
        if days_remaining <= 1:
            urgency_level = "critical"
        elif days_remaining <= 3:
            urgency_level = "high"
        elif days_remaining <= 7:
            urgency_level = "medium"

    return {
        "is_active": is_active,
        "is_expired": bool(end and end <= now),
        "has_used_trial": _trial_has_been_used(store),
        "start_date": store.trial_start_date,
        "end_date": end,
        "days_remaining": days_remaining,
        "hours_remaining": hours_remaining,
        "urgency_level": urgency_level,
        "notifications_sent": dict(store.trial_notifications_sent or {}),
    }


def _notification_stage_due(days_left: float, sent: Dict[str, Any]) -> Optional[str]:
    for stage, lower, upper in NOTIFICATION_STAGES:
        if lower < days_left <= upper and not sent.get(stage):
            return stage
    return None


def process_trial_notifications(db: Session, now: Optional[datetime] = None) -> int:
    """
    Send each trial reminder stage at most once per store.

    The stage flag is committed before the email is handed off, so a crash
    between the two loses a reminder rather than duplicating it.
    """
    now = now or datetime.utcnow()
    rows = (
        db.query(Store, User)
        .join(User, Store.owner_id == User.id)
        .filter(Store.is_in_trial.is_(True), Store.trial_end_date > now)
        .all()
    )

    sent_count = 0
    for store, owner in rows:
        days_left = (store.trial_end_date - now).total_seconds() / 86400
        sent = dict(store.trial_notifications_sent or {})
        stage = _notification_stage_due(days_left, sent)
        if stage is None:
            continue

        sent[stage] = True
        store.trial_notifications_sent = sent
        try:
            db.commit()
            email_service.send_trial_notification(owner.email, owner.first_name, store.name, stage, store.id)
        except Exception:
            logger.exception("Trial notification %s failed for store %s", stage, store.id)
            raise
        logger.info("Trial notification %s sent for store %s", stage, store.id)
        sent_count += 1

    logger.info("Processed trial notifications for %s stores, %s sent", len(rows), sent_count)
    return sent_count


def _expired_trial_filter(now: datetime):
    return (Store.is_in_trial.is_(True), Store.trial_end_date <= now)


def _downgrade_values() -> Dict[str, Any]:
    return {"is_in_trial": False, "highlight_weight": FREEMIUM_WEIGHT, "subscription_plan": DEFAULT_PLAN}


def process_expired_trials(db: Session, now: Optional[datetime] = None) -> int:
    """
    Downgrade every store whose trial has ended back to freemium.

    A store already downgraded no longer matches the filter, so running the
    sweep again is a no-op. Notification flags are left as they are.
    """
    now = now or datetime.utcnow()
    try:
        result = db.execute(
            update(Store)
            .where(*_expired_trial_filter(now))
            .values(**_downgrade_values())
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
    except Exception:
        logger.exception("Failed to process expired trials")
        db.rollback()
        raise

    logger.info("Processed %s automatic trial downgrades", result.rowcount)
    return result.rowcount


def expire_trial_if_due(db: Session, store: Store, now: Optional[datetime] = None) -> bool:
    """Downgrade a single store when its trial has ended. Returns True when it did."""
    now = now or datetime.utcnow()
    result = db.execute(
        update(Store)
        .where(Store.id == store.id, *_expired_trial_filter(now))
        .values(**_downgrade_values())
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    if result.rowcount:
        db.refresh(store)
        logger.info("Trial expired for store %s, downgraded to %s", store.id, DEFAULT_PLAN)
    return bool(result.rowcount)


def convert_trial_to_paid(
    db: Session,
    user_id: int,
    store_id: int,
    plan_id: int,
    external_subscription_id: Optional[str],
    now: Optional[datetime] = None,
) -> Store:
    store = (
        db.query(Store)
        .filter(Store.id == store_id, Store.owner_id == user_id, Store.is_in_trial.is_(True))
        .one_or_none()
    )
    if not store:
        raise NotFoundError("Store not found or not in trial")

    plan = get_plan_by_id(plan_id)
    if plan.name == DEFAULT_PLAN:
        raise InvalidPlanError(f"Plan id {plan_id} is not a paid plan")

    store.is_in_trial = False
    store.subscription_plan = plan.name
    store.subscription_status = "active"
    store.external_subscription_id = external_subscription_id
    store.subscription_start_date = now or datetime.utcnow()
    store.highlight_weight = plan.highlight_weight
    try:
        db.commit()
    except Exception:
        logger.exception("Failed to convert trial for store %s", store.id)
        db.rollback()
        raise

    db.refresh(store)
    logger.info("Store %s converted trial to paid plan %s", store.id, plan.name)
    return store


def get_trial_statistics(db: Session) -> Dict[str, Any]:
    used_trial = Store.trial_end_date.isnot(None)
    row = (
        db.query(
            func.count(Store.id),
            func.sum(case((Store.is_in_trial.is_(True), 1), else_=0)),
            func.sum(case(((Store.is_in_trial.is_(False)) & used_trial, 1), else_=0)),
            func.sum(case(((Store.subscription_plan != DEFAULT_PLAN) & used_trial, 1), else_=0)),
        )
        .filter(Store.trial_start_date.isnot(None))
        .one()
    )
    total, active, expired, converted = (int(value or 0) for value in row)
    conversion_rate = round(converted / expired * 100, 2) if expired else 0
    return {
        "total_trials": total,
        "active_trials": active,
        "expired_trials": expired,
        "converted_trials": converted,
        "conversion_rate": conversion_rate,
    }


def get_effective_plan_name(store: Store, now: Optional[datetime] = None) -> str:
    info = calculate_trial_info(store, now)
    return TRIAL_TIER if info["is_active"] else get_plan(store.subscription_plan).name
