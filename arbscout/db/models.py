"""SQLAlchemy database models."""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


QUEUE_STATUSES = ("pending", "approved", "rejected", "expired", "listed")


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ScoutConfig(Base):
    """Named, independently scheduled scouting policy."""

    __tablename__ = "scout_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # Serialized ScoutPolicy (JSON); parsed defensively on read
    policy_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Runtime counters (written only by the scan engine)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    total_runs: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_opportunities_found: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    queue_items: Mapped[list["ScoutQueueItem"]] = relationship(
        "ScoutQueueItem", back_populates="scout_config"
    )

    __table_args__ = (Index("ix_scout_configs_enabled", "enabled"),)


class ScoutQueueItem(Base):
    """Candidate opportunity discovered by a scout config."""

    __tablename__ = "scout_queue"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    scout_config_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scout_configs.id"), nullable=False
    )
    product_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Economics, computed once at insertion
    source_platform: Mapped[str] = mapped_column(String(64), nullable=False)
    target_platform: Mapped[str] = mapped_column(String(64), nullable=False)
    source_price: Mapped[float] = mapped_column(Float, nullable=False)
    target_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    estimated_margin_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    estimated_profit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Descriptive
    product_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Lifecycle: pending -> approved|rejected|expired, approved -> listed
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    listed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    listing_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    # Relationships
    scout_config: Mapped["ScoutConfig"] = relationship(
        "ScoutConfig", back_populates="queue_items"
    )

    __table_args__ = (
        Index("ix_scout_queue_status", "status"),
        Index("ix_scout_queue_config", "scout_config_id"),
        Index("ix_scout_queue_created_at", "created_at"),
        Index(
            "ix_scout_queue_dedupe",
            "scout_config_id",
            "source_platform",
            "status",
        ),
    )
