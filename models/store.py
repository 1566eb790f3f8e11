from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Text, JSON, Float, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


class Store(Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(150), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_open: Mapped[bool] = mapped_column(Boolean, default=True)

    # Subscription
    subscription_plan: Mapped[str] = mapped_column(String(20), default="freemium", index=True)  # freemium, start, pro, premium
    subscription_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    subscription_start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    subscription_end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    external_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Trial overlay
    is_in_trial: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    trial_start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    trial_end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    trial_notifications_sent: Mapped[dict | None] = mapped_column(JSON, default=dict)

    # Home highlights
    highlight_weight: Mapped[float] = mapped_column(Float, default=1, index=True)
    last_highlighted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_highlight_impressions: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="stores")
    products = relationship("Product", back_populates="store", cascade="all, delete-orphan", passive_deletes=True)
    coupons = relationship("Coupon", back_populates="store", cascade="all, delete-orphan", passive_deletes=True)
