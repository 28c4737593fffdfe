"""
SQLAlchemy models for providers, orders, quotes, archived orders and reviews.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.config.constants import OrderStatus, QuoteStatus

from .connection import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Provider(Base):
    """
    Independent service provider.

    Rating, review count, jobs done and active jobs are only written by the
    archival transaction; location and availability by the provider.
    """

    __tablename__ = "providers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(100), index=True)
    available: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Aggregate statistics
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    reviews_count: Mapped[int] = mapped_column(Integer, default=0)
    jobs_done: Mapped[int] = mapped_column(Integer, default=0)
    current_active_jobs: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    max_concurrent_jobs: Mapped[Optional[int]] = mapped_column(Integer)
    average_response_time_minutes: Mapped[Optional[float]] = mapped_column(Float)

    # Location
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    geohash: Mapped[Optional[str]] = mapped_column(String(12), index=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, category={self.category}, rating={self.rating})>"


class Order(Base):
    """Active service request. Deleted on archival or cancellation."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    requester_id: Mapped[str] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(100), index=True)
    status: Mapped[str] = mapped_column(
        String(32), default=OrderStatus.SEARCHING.value, index=True
    )
    description: Mapped[str] = mapped_column(Text, default="")

    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    # Monotonic id sets, stored as JSON lists
    contacted_provider_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    rejected_provider_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    targeted_providers: Mapped[List[str]] = mapped_column(JSON, default=list)

    search_radius_km: Mapped[float] = mapped_column(Float, default=1.0)
    is_direct: Mapped[bool] = mapped_column(Boolean, default=False)

    assigned_provider_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    assigned_price: Mapped[Optional[float]] = mapped_column(Float)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    finish_requested_by: Mapped[Optional[str]] = mapped_column(String(32))

    # Urgent intake
    priority: Mapped[Optional[str]] = mapped_column(String(16))
    triage_summary: Mapped[Optional[str]] = mapped_column(Text)
    safety_advice: Mapped[Optional[str]] = mapped_column(Text)
    estimated_price_range: Mapped[Optional[str]] = mapped_column(String(100))

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status}, category={self.category})>"


class Quote(Base):
    """Priced proposal from a provider. Never deleted; rejection is a status."""

    __tablename__ = "quotes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String(64), index=True)
    provider_id: Mapped[str] = mapped_column(String(64), index=True)
    price: Mapped[float] = mapped_column(Float)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(16), default=QuoteStatus.PENDING.value)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        # At most one non-rejected quote per provider and order
        Index(
            "uq_quotes_open_per_provider",
            "order_id",
            "provider_id",
            unique=True,
            postgresql_where=text("status <> 'rejected'"),
            sqlite_where=text("status <> 'rejected'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, order_id={self.order_id}, status={self.status})>"


class ArchivedOrder(Base):
    """Terminal copy of a completed order plus completion metadata."""

    __tablename__ = "archived_orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    requester_id: Mapped[str] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(32), default=OrderStatus.ARCHIVED.value)
    description: Mapped[str] = mapped_column(Text, default="")

    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    contacted_provider_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    rejected_provider_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    targeted_providers: Mapped[List[str]] = mapped_column(JSON, default=list)
    search_radius_km: Mapped[float] = mapped_column(Float, default=1.0)
    is_direct: Mapped[bool] = mapped_column(Boolean, default=False)

    assigned_provider_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    assigned_price: Mapped[Optional[float]] = mapped_column(Float)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    priority: Mapped[Optional[str]] = mapped_column(String(16))
    triage_summary: Mapped[Optional[str]] = mapped_column(Text)
    safety_advice: Mapped[Optional[str]] = mapped_column(Text)
    estimated_price_range: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(DateTime)
    completed_at: Mapped[datetime] = mapped_column(DateTime)
    archived_at: Mapped[datetime] = mapped_column(DateTime)
    finish_requested_by: Mapped[str] = mapped_column(String(32))
    review_id: Mapped[Optional[str]] = mapped_column(String(64))
    result_images: Mapped[List[str]] = mapped_column(JSON, default=list)
    final_review: Mapped[Optional[dict]] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<ArchivedOrder(id={self.id}, provider={self.assigned_provider_id})>"


class Review(Base):
    """Requester review, written once together with archival."""

    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    provider_id: Mapped[str] = mapped_column(String(64), index=True)
    requester_id: Mapped[str] = mapped_column(String(64))
    rating: Mapped[int] = mapped_column(Integer)
    comment: Mapped[str] = mapped_column(Text, default="")
    images: Mapped[List[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, provider_id={self.provider_id}, rating={self.rating})>"


# Columns copied verbatim from an active order into its archive record
ARCHIVED_ORDER_FIELDS = (
    "id",
    "requester_id",
    "category",
    "description",
    "latitude",
    "longitude",
    "contacted_provider_ids",
    "rejected_provider_ids",
    "targeted_providers",
    "search_radius_km",
    "is_direct",
    "assigned_provider_id",
    "assigned_price",
    "assigned_at",
    "priority",
    "triage_summary",
    "safety_advice",
    "estimated_price_range",
    "created_at",
)
