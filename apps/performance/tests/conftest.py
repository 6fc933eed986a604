from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app import models  # noqa: F401  -- ensure all models are registered
from app.db import Base, get_engine, make_session_factory
from app.models import Campaign, PerformanceSnapshot, Product
from app.services.performance.records import AlertSpec, SnapshotRecord

# Tuesday 09:00 UTC: hour multiplier 1.0, day multiplier 1.1
TUESDAY_9AM = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Deterministic collaborators
# ---------------------------------------------------------------------------


class BoundRandom(random.Random):
    """Random source pinned to one end of every ``uniform`` range."""

    def __init__(self, pick: str = "low") -> None:
        super().__init__(0)
        self.pick = pick

    def uniform(self, a, b):
        return a if self.pick == "low" else b


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, moment: datetime = TUESDAY_9AM) -> None:
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> datetime:
        self.moment = self.moment + timedelta(**kwargs)
        return self.moment


# ---------------------------------------------------------------------------
# Sync test DB
# ---------------------------------------------------------------------------


def setup_test_db(create_tables: bool = True):
    """Create an in-memory SQLite engine and session factory for sync tests."""
    engine = get_engine("sqlite+pysqlite:///:memory:")
    TestingSessionLocal = make_session_factory(engine)
    if create_tables:
        Base.metadata.create_all(engine)
    return engine, TestingSessionLocal


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_product(db: Session, **kwargs) -> Product:
    defaults = dict(name="Smart Bottle", price=Decimal("50"))
    defaults.update(kwargs)
    product = Product(**defaults)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_campaign(db: Session, product: Product | None = None, **kwargs) -> Campaign:
    defaults: dict[str, Any] = dict(
        name="Test Campaign",
        status="ACTIVE",
        daily_budget=Decimal("240"),
        platforms={"meta": {"status": "ACTIVE"}},
    )
    defaults.update(kwargs)
    campaign = Campaign(product_id=product.id if product else None, **defaults)
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return campaign


def add_snapshot(
    db: Session,
    campaign_id,
    platform: str = "META",
    timestamp: datetime = TUESDAY_9AM,
    spend: float = 10.0,
    budget: float = 240.0,
    impressions: int = 10_000,
    clicks: int = 300,
    conversions: float = 15.0,
    revenue: float = 750.0,
    reach: int = 8_000,
    profit: float = 515.0,
    alerts: list[AlertSpec] | None = None,
) -> PerformanceSnapshot:
    record = SnapshotRecord(
        campaign_id=campaign_id,
        platform=platform,
        timestamp=timestamp,
        hour=timestamp.hour,
        spend=Decimal(str(spend)),
        budget=Decimal(str(budget)),
        impressions=impressions,
        clicks=clicks,
        conversions=Decimal(str(conversions)),
        revenue=Decimal(str(revenue)),
        reach=reach,
        profit=Decimal(str(profit)),
        alerts=list(alerts or []),
    )
    row = record.to_model()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
