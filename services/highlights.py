"""
Home page highlight distribution.

Each active tier configuration pulls the products of its stores, ranks them
by a fairness-adjusted weight (stores shown a lot are throttled, stores not
shown recently come first) and feeds its top items into the sections it is
configured for. Sections are then de-duplicated, diversified so the same
store doesn't appear twice in a row, and cut to their display size.

Read-only: nothing here writes to the database except the seeding helper and
the admin weight override.
"""
import functools
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import InvalidRequestError, NotFoundError
from core.plans import TRIAL_TIER
from models.highlight import HighlightConfiguration, HighlightSection
from models.product import Product
from models.promotion import Promotion
from models.store import Store
from services.plan_limits import is_trial_active

logger = logging.getLogger(__name__)

MIN_WEIGHT = 0.1
MAX_IMPRESSION_PENALTY = 0.5
IMPRESSIONS_PER_PENALTY_POINT = 1000
DEFAULT_SECTION_SIZE = 10
MAX_ADMIN_WEIGHT = 10
PROMOTION_SECTION = "ofertas_especiais"

_EPOCH = datetime(1970, 1, 1)

DEFAULT_CONFIGURATIONS = (
    {
        "plan_type": "premium",
        "weight": 5,
        "sections": ["em_destaque_premium", "ofertas_especiais", "novidades"],
        "section_limits": {"em_destaque_premium": 10, "ofertas_especiais": 8, "novidades": 6},
    },
    {
        "plan_type": "pro",
        "weight": 4,
        "sections": ["ofertas_especiais", "novidades"],
        "section_limits": {"ofertas_especiais": 6, "novidades": 4},
    },
    {
        "plan_type": "start",
        "weight": 3,
        "sections": ["novidades", "descobrir_lojas_locais"],
        "section_limits": {"novidades": 3, "descobrir_lojas_locais": 2},
    },
    {
        "plan_type": TRIAL_TIER,
        "weight": 2,
        "sections": ["testando_premium", "descobrir_lojas_locais"],
        "section_limits": {"testando_premium": 5, "descobrir_lojas_locais": 1},
    },
    {
        "plan_type": "freemium",
        "weight": 1,
        "sections": ["descobrir_lojas_locais"],
        "section_limits": {"descobrir_lojas_locais": 2},
    },
)

DEFAULT_SECTION_SIZES = {
    "em_destaque_premium": 15,
    "ofertas_especiais": 12,
    "novidades": 10,
    "descobrir_lojas_locais": 8,
    "testando_premium": 6,
}


@dataclass
class HighlightCandidate:
    store_id: int
    store_name: str
    subscription_plan: str
    is_in_trial: bool
    highlight_weight: float
    last_highlighted_at: Optional[datetime]
    total_impressions: int
    product_id: int
    product_name: str
    product_price: float
    product_category: str
    product_created_at: datetime
    images: Optional[list] = None
    promotion_type: Optional[str] = None
    discount_percentage: Optional[int] = None
    promotion_end_time: Optional[datetime] = None
    discounted_price: Optional[float] = None
    trial_end_date: Optional[datetime] = None
    calculated_weight: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_weight(base_weight: Optional[float], total_impressions: Optional[int]) -> float:
    """max(base - min(impressions / 1000, 0.5), 0.1); base defaults to 1."""
    base = base_weight or 1
    penalty = min((total_impressions or 0) / IMPRESSIONS_PER_PENALTY_POINT, MAX_IMPRESSION_PENALTY)
    return max(base - penalty, MIN_WEIGHT)


def discounted_price(price: float, discount_percentage: Optional[int]) -> Optional[float]:
    if not discount_percentage or price is None:
        return None
    value = Decimal(str(price)) * (Decimal(100) - Decimal(discount_percentage)) / Decimal(100)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _seconds_since_epoch(value: Optional[datetime]) -> float:
    return (value - _EPOCH).total_seconds() if value else 0.0


def compare_candidates(a: HighlightCandidate, b: HighlightCandidate) -> int:
    """
    Recency first: when the last highlight times differ by more than the
    recency window, the one shown longer ago wins. Otherwise higher weight wins.
    """
    a_seen = _seconds_since_epoch(a.last_highlighted_at)
    b_seen = _seconds_since_epoch(b.last_highlighted_at)
    if abs(a_seen - b_seen) > settings.HIGHLIGHT_RECENCY_HOURS * 3600:
        return -1 if a_seen < b_seen else 1
    if a.calculated_weight == b.calculated_weight:
        return 0
    return -1 if a.calculated_weight > b.calculated_weight else 1


def rank_candidates(candidates: List[HighlightCandidate], promotions_first: bool = False) -> List[HighlightCandidate]:
    ranked = list(candidates)
    for candidate in ranked:
        candidate.calculated_weight = calculate_weight(candidate.highlight_weight, candidate.total_impressions)
    if promotions_first:
        ranked = [c for c in ranked if c.discounted_price is not None] + [
            c for c in ranked if c.discounted_price is None
        ]
    return sorted(ranked, key=functools.cmp_to_key(compare_candidates))


def diversify(candidates: List[HighlightCandidate]) -> List[HighlightCandidate]:
    """
    Reorder so consecutive entries come from different stores whenever
    another store is still available, preferring a different category too.
    Duplicate products keep their first occurrence only.
    """
    pool: List[HighlightCandidate] = []
    seen_products = set()
    for candidate in candidates:
        if candidate.product_id in seen_products:
            continue
        seen_products.add(candidate.product_id)
        pool.append(candidate)

    result: List[HighlightCandidate] = []
    while pool:
        pick = 0
        if result:
            previous = result[-1]
            other_store = [i for i, c in enumerate(pool) if c.store_id != previous.store_id]
            fresh = [i for i in other_store if pool[i].product_category != previous.product_category]
            if fresh:
                pick = fresh[0]
            elif other_store:
                pick = other_store[0]
        result.append(pool.pop(pick))
    return result


def _matches_tier(candidate: HighlightCandidate, plan_type: str, now: datetime) -> bool:
    if plan_type == TRIAL_TIER:
        # an ended trial not yet swept no longer counts
        return is_trial_active(candidate, now)
    return candidate.subscription_plan == plan_type


def load_candidates(db: Session, category: Optional[str] = None, now: Optional[datetime] = None) -> List[HighlightCandidate]:
    """Active products of open stores, newest first, with any running promotion."""
    now = now or datetime.utcnow()
    query = (
        db.query(Store, Product, Promotion)
        .join(Product, Product.store_id == Store.id)
        .outerjoin(
            Promotion,
            and_(
                Promotion.product_id == Product.id,
                Promotion.start_time <= now,
                Promotion.end_time >= now,
            ),
        )
        .filter(Product.is_active.is_(True), Store.is_open.is_(True))
    )
    if category:
        query = query.filter(Product.category == category)
    rows = query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    candidates: List[HighlightCandidate] = []
    seen = set()
    for store, product, promotion in rows:
        if product.id in seen:
            continue
        seen.add(product.id)
        price = float(product.price) if product.price is not None else None
        candidates.append(
            HighlightCandidate(
                store_id=store.id,
                store_name=store.name,
                subscription_plan=store.subscription_plan,
                is_in_trial=bool(store.is_in_trial),
                trial_end_date=store.trial_end_date,
                highlight_weight=store.highlight_weight,
                last_highlighted_at=store.last_highlighted_at,
                total_impressions=store.total_highlight_impressions or 0,
                product_id=product.id,
                product_name=product.name,
                product_price=price,
                product_category=product.category,
                product_created_at=product.created_at,
                images=product.images,
                promotion_type=promotion.type if promotion else None,
                discount_percentage=promotion.discount_percentage if promotion else None,
                promotion_end_time=promotion.end_time if promotion else None,
                discounted_price=discounted_price(price, promotion.discount_percentage) if promotion else None,
            )
        )
    return candidates


def get_section_sizes(db: Session) -> Dict[str, int]:
    return {section.name: section.max_items for section in db.query(HighlightSection).all()}


def get_home_highlights(
    db: Session, category: Optional[str] = None, now: Optional[datetime] = None
) -> Dict[str, List[HighlightCandidate]]:
    now = now or datetime.utcnow()
    configs = (
        db.query(HighlightConfiguration)
        .filter(HighlightConfiguration.is_active.is_(True))
        .order_by(HighlightConfiguration.weight.desc(), HighlightConfiguration.id)
        .all()
    )
    if not configs:
        logger.info("No active highlight configuration found")
        return {}

    candidates = load_candidates(db, category, now)
    logger.debug("Found %s store/product candidates for highlights", len(candidates))

    by_section: Dict[str, List[HighlightCandidate]] = {}
    for config in configs:
        sections = config.sections or []
        limits = config.section_limits or {}
        tier = [c for c in candidates if _matches_tier(c, config.plan_type, now)]
        ranked = rank_candidates(tier, promotions_first=PROMOTION_SECTION in sections)
        logger.debug("Tier %s: %s products", config.plan_type, len(ranked))

        for section in sections:
            cap = int(limits.get(section, 0))
            by_section.setdefault(section, []).extend(ranked[:cap])

    sizes = get_section_sizes(db)
    highlights = {
        section: diversify(items)[: sizes.get(section, DEFAULT_SECTION_SIZE)]
        for section, items in by_section.items()
    }
    logger.info(
        "Highlight distribution: %s",
        ", ".join(f"{name}: {len(items)}" for name, items in highlights.items()) or "empty",
    )
    return highlights


def seed_default_highlight_configuration(db: Session) -> bool:
    """Insert the default tier/section setup when no configuration exists yet."""
    if db.query(HighlightConfiguration).first():
        return False
    for config in DEFAULT_CONFIGURATIONS:
        db.add(HighlightConfiguration(is_active=True, **config))
    existing = set(get_section_sizes(db))
    for name, size in DEFAULT_SECTION_SIZES.items():
        if name not in existing:
            db.add(HighlightSection(name=name, max_items=size))
    db.commit()
    logger.info("Seeded default highlight configuration")
    return True


def update_highlight_weight(db: Session, store_id: int, weight: float) -> Store:
    """Admin override of a store's highlight weight, bypassing the plan default."""
    if weight < 0 or weight > MAX_ADMIN_WEIGHT:
        raise InvalidRequestError(f"Weight must be between 0 and {MAX_ADMIN_WEIGHT}")
    store = db.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    store.highlight_weight = weight
    db.commit()
    db.refresh(store)
    logger.info("Highlight weight of store %s set to %s", store_id, weight)
    return store
