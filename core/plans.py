"""
Subscription plan catalog.

Single source of truth for per-plan limits and feature flags. The catalog is
a versioned JSON file (``core/plan_catalog.json`` unless ``PLAN_CATALOG_PATH``
points elsewhere) validated on load; changing limits means shipping a new
catalog, not migrating data. ``-1`` means unlimited.
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from core.config import settings
from core.errors import InvalidPlanError

logger = logging.getLogger(__name__)

UNLIMITED = -1
DEFAULT_PLAN = "freemium"
PLAN_TIERS = ("freemium", "start", "pro", "premium")
TRIAL_TIER = "trial"

_BUNDLED_CATALOG = Path(__file__).with_name("plan_catalog.json")


class PlanLimits(BaseModel):
    max_products: int = Field(ge=UNLIMITED)
    max_promotions: int = Field(ge=UNLIMITED)
    max_coupons_per_month: int = Field(ge=UNLIMITED)
    allows_flash_promotions: bool = False
    allows_advanced_analytics: bool = False
    allows_highlights: bool = False
    highlight_weight: float = Field(default=1, ge=0, le=10)


class Plan(PlanLimits):
    name: str
    plan_id: int
    rank: int = Field(ge=0)
    title: str
    description: str = ""
    price: float = Field(default=0, ge=0)
    yearly_discount: int = Field(default=0, ge=0, le=100)


class PlanCatalog(BaseModel):
    version: str
    currency: str = "BRL"
    plans: List[Plan]

    @model_validator(mode="after")
    def _check_tiers(self):
        names = [plan.name for plan in self.plans]
        missing = set(PLAN_TIERS) - set(names)
        if missing:
            raise ValueError(f"catalog is missing plans: {sorted(missing)}")
        if len(set(names)) != len(names):
            raise ValueError("plan names must be unique")
        if len({plan.rank for plan in self.plans}) != len(self.plans):
            raise ValueError("plan ranks must be unique")
        if len({plan.plan_id for plan in self.plans}) != len(self.plans):
            raise ValueError("plan ids must be unique")
        self.plans.sort(key=lambda plan: plan.rank)
        return self

    def by_name(self) -> Dict[str, Plan]:
        return {plan.name: plan for plan in self.plans}


# Limits applied while a store's trial is running, whatever its stored plan.
TRIAL_LIMITS = PlanLimits(
    max_products=UNLIMITED,
    max_promotions=UNLIMITED,
    max_coupons_per_month=UNLIMITED,
    allows_flash_promotions=True,
    allows_advanced_analytics=True,
    allows_highlights=True,
    highlight_weight=2,
)


def load_plan_catalog(path: Optional[str] = None) -> PlanCatalog:
    """Read and validate a plan catalog file."""
    catalog_path = Path(path) if path else _BUNDLED_CATALOG
    with catalog_path.open(encoding="utf-8") as fh:
        raw = json.load(fh)
    catalog = PlanCatalog.model_validate(raw)
    logger.info("Loaded plan catalog %s from %s", catalog.version, catalog_path)
    return catalog


catalog = load_plan_catalog(settings.PLAN_CATALOG_PATH or None)


def is_unlimited(value: int) -> bool:
    return value == UNLIMITED


def plan_order() -> List[str]:
    return [plan.name for plan in catalog.plans]


def get_plan(name: Optional[str]) -> Plan:
    """Return the plan for ``name``, falling back to freemium for unknown values."""
    normalized = (name or DEFAULT_PLAN).lower()
    plans = catalog.by_name()
    return plans.get(normalized, plans[DEFAULT_PLAN])


def require_plan(name: Optional[str]) -> Plan:
    plan = catalog.by_name().get((name or "").lower())
    if plan is None:
        raise InvalidPlanError(f"Unknown plan: {name}")
    return plan


def get_plan_by_id(plan_id: int) -> Plan:
    for plan in catalog.plans:
        if plan.plan_id == plan_id:
            return plan
    raise InvalidPlanError(f"Unknown plan id: {plan_id}")


def next_plan_above(name: Optional[str]) -> Optional[str]:
    """Name of the tier directly above ``name``, or None at the top."""
    order = plan_order()
    position = order.index(get_plan(name).name) + 1
    return order[position] if position < len(order) else None
