"""
Highlight impression recording and analytics.

One impression per (store, product, section, ip) every five minutes. The
window check covers sequential repeats; the unique ``dedupe_key`` (same
tuple plus the five-minute bucket) makes concurrent repeats inside one bucket
fail at insert instead of being double counted. The store counters are bumped
with an atomic UPDATE in the same transaction as the insert.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import NotFoundError
from models.highlight import HighlightImpression
from models.product import Product
from models.store import Store

logger = logging.getLogger(__name__)


def build_dedupe_key(
    store_id: int, product_id: Optional[int], section: str, ip_address: Optional[str], now: datetime
) -> str:
    bucket = int((now - datetime(1970, 1, 1)).total_seconds()) // settings.IMPRESSION_DEDUP_SECONDS
    return f"{store_id}:{product_id or '-'}:{section}:{ip_address or '-'}:{bucket}"


def _recent_impression_exists(
    db: Session, store_id: int, product_id: Optional[int], section: str, ip_address: Optional[str], since: datetime
) -> bool:
    query = db.query(HighlightImpression.id).filter(
        HighlightImpression.store_id == store_id,
        HighlightImpression.section == section,
        HighlightImpression.timestamp >= since,
    )
    if product_id:
        query = query.filter(HighlightImpression.product_id == product_id)
    else:
        query = query.filter(HighlightImpression.product_id.is_(None))
    if ip_address:
        query = query.filter(HighlightImpression.ip_address == ip_address)
    else:
        query = query.filter(HighlightImpression.ip_address.is_(None))
    return query.first() is not None


def _dedupe_key_taken(db: Session, dedupe_key: str) -> bool:
    return db.query(HighlightImpression.id).filter(HighlightImpression.dedupe_key == dedupe_key).first() is not None


def record_impression(
    db: Session,
    store_id: int,
    product_id: Optional[int],
    section: str,
    viewer_id: Optional[int] = None,
    viewer_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Record that a store/product was shown in a section.

    Returns False, without writing, when the same viewer IP already produced
    this impression inside the dedup window. Raises NotFoundError for an
    unknown store, or a product that does not belong to it.
    """
    now = now or datetime.utcnow()
    if db.get(Store, store_id) is None:
        raise NotFoundError("Store not found")
    if product_id:
        product = db.get(Product, product_id)
        if product is None or product.store_id != store_id:
            raise NotFoundError("Product not found in this store")

    since = now - timedelta(seconds=settings.IMPRESSION_DEDUP_SECONDS)
    if _recent_impression_exists(db, store_id, product_id, section, viewer_ip, since):
        return False

    dedupe_key = build_dedupe_key(store_id, product_id, section, viewer_ip, now)
    db.add(
        HighlightImpression(
            store_id=store_id,
            product_id=product_id or None,
            section=section,
            timestamp=now,
            user_id=viewer_id,
            ip_address=viewer_ip,
            dedupe_key=dedupe_key,
        )
    )
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        if not _dedupe_key_taken(db, dedupe_key):
            raise
        logger.debug("Concurrent duplicate impression for store %s section %s ignored", store_id, section)
        return False

    db.execute(
        update(Store)
        .where(Store.id == store_id)
        .values(
            total_highlight_impressions=Store.total_highlight_impressions + 1,
            last_highlighted_at=now,
        )
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    return True


def get_impression_analytics(
    db: Session, store_id: int, days: int = 30, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Daily impression counts per section over the last ``days`` days."""
    now = now or datetime.utcnow()
    since = now - timedelta(days=days)
    day = func.date(HighlightImpression.timestamp)
    rows = (
        db.query(HighlightImpression.section, day.label("date"), func.count(HighlightImpression.id).label("count"))
        .filter(HighlightImpression.store_id == store_id, HighlightImpression.timestamp >= since)
        .group_by(HighlightImpression.section, day)
        .order_by(day, HighlightImpression.section)
        .all()
    )
    return [{"section": section, "date": str(date), "count": int(count)} for section, date, count in rows]


def cleanup_old_impressions(db: Session, retention_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    cutoff = now - timedelta(days=retention_days or settings.IMPRESSION_RETENTION_DAYS)
    result = db.execute(
        delete(HighlightImpression)
        .where(HighlightImpression.timestamp < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("Removed %s impressions older than %s", result.rowcount, cutoff.date())
    return result.rowcount
