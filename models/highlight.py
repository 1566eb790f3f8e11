from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, Integer, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


class HighlightConfiguration(Base):
    """Which home sections a tier feeds, and how many items it may place in each."""

    __tablename__ = "highlight_configurations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    plan_type: Mapped[str] = mapped_column(String(50), unique=True)  # freemium, start, pro, premium, trial
    weight: Mapped[int] = mapped_column(Integer, default=0)
    sections: Mapped[list] = mapped_column(JSON, default=list)
    section_limits: Mapped[dict] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class HighlightSection(Base):
    __tablename__ = "highlight_sections"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    max_items: Mapped[int] = mapped_column(Integer, default=10)


class HighlightImpression(Base):
    __tablename__ = "highlight_impressions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=True)
    section: Mapped[str] = mapped_column(String(100), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    # store:product:section:ip:time-bucket, rejects concurrent duplicates inside one window
    dedupe_key: Mapped[str] = mapped_column(String(255), unique=True)

    store = relationship("Store")
