import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Numeric, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    campaigns: Mapped[list["Campaign"]] = relationship(back_populates="product")


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (Index("ix_campaigns_status", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="DRAFT")
    daily_budget: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    total_budget: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="USD")
    # platform name -> platform config; keys are stored as entered (any case)
    platforms: Mapped[dict] = mapped_column(
        JSONB().with_variant(JSON, "sqlite"), nullable=False, default=dict
    )
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    product: Mapped["Product | None"] = relationship(back_populates="campaigns")
    snapshots: Mapped[list["PerformanceSnapshot"]] = relationship(back_populates="campaign")


class PerformanceSnapshot(Base):
    __tablename__ = "performance_snapshots"
    __table_args__ = (
        Index("ix_performance_snapshots_campaign_timestamp", "campaign_id", "timestamp"),
        Index(
            "ix_performance_snapshots_campaign_platform_timestamp",
            "campaign_id",
            "platform",
            "timestamp",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hour: Mapped[int] = mapped_column(Integer, nullable=False)

    # raw counters
    spend: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    budget: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    impressions: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    conversions: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    revenue: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    reach: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    profit: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)

    # derived ratios
    ctr: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cpc: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cpm: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    roas: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    conversion_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cpa: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    budget_utilization: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    profit_margin: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    data_source: Mapped[str] = mapped_column(Text, nullable=False, default="SIMULATED")
    is_live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    campaign: Mapped[Campaign] = relationship(back_populates="snapshots")
    alerts: Mapped[list["SnapshotAlert"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        order_by="SnapshotAlert.position",
    )


class SnapshotAlert(Base):
    __tablename__ = "snapshot_alerts"
    __table_args__ = (
        Index("ix_snapshot_alerts_kind_acknowledged", "kind", "acknowledged_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    snapshot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("performance_snapshots.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    snapshot: Mapped[PerformanceSnapshot] = relationship(back_populates="alerts")
