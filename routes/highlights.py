import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.db import get_db
from core.tenancy import get_store_for_user
from models.user import User
from routes.auth import get_current_user, get_optional_user, require_admin
from schemas.highlight import (
    HighlightAnalytics,
    HomeHighlightsResponse,
    ImpressionCreate,
    ImpressionResponse,
    WeightUpdate,
    WeightUpdated,
)
from services import highlights as highlight_service
from services import impressions as impression_service
from services.plan_limits import require_plan_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["highlights"])


@router.get("/home-highlights", response_model=HomeHighlightsResponse)
def home_highlights(category: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Public home page feed. Failures never surface as an error page: the
    client gets an empty feed with ``success: false``.
    """
    try:
        highlights = highlight_service.get_home_highlights(db, category=category)
    except Exception:
        logger.exception("Failed to build home highlights")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to load highlights", "highlights": {}},
        )
    return HomeHighlightsResponse(
        highlights={section: [item.to_dict() for item in items] for section, items in highlights.items()},
        total_sections=len(highlights),
    )


@router.post("/highlights/impression", response_model=ImpressionResponse)
def record_impression(
    data: ImpressionCreate,
    request: Request,
    viewer: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    recorded = impression_service.record_impression(
        db,
        store_id=data.store_id,
        product_id=data.product_id,
        section=data.section,
        viewer_id=viewer.id if viewer else None,
        viewer_ip=request.client.host if request.client else None,
    )
    message = "Impression recorded" if recorded else "Impression already recorded recently"
    return ImpressionResponse(message=message, recorded=recorded)


@router.get("/highlights/{store_id}/analytics", response_model=HighlightAnalytics)
def highlight_analytics(
    store_id: int,
    days: int = Query(default=30, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = get_store_for_user(db, user, store_id)
    if not user.is_superadmin:
        require_plan_feature(store, "allows_advanced_analytics")
    rows = impression_service.get_impression_analytics(db, store.id, days=days)
    return HighlightAnalytics(analytics=rows, period=f"{days} days")


@router.put("/highlights/{store_id}/weight", response_model=WeightUpdated)
def update_weight(
    store_id: int,
    data: WeightUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    store = highlight_service.update_highlight_weight(db, store_id, data.weight)
    logger.info("Admin %s changed highlight weight of store %s", admin.id, store_id)
    return WeightUpdated(
        message="Highlight weight updated",
        store_id=store.id,
        highlight_weight=store.highlight_weight,
    )
