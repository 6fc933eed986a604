"""Read side of the live performance engine.

Used by the dashboard endpoints: latest snapshot, trailing history,
dashboard summary, platform breakdown, active alerts and alert
acknowledgement.  Acknowledgement is the only write, and it only stamps
``acknowledged_at``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import Campaign, PerformanceSnapshot, SnapshotAlert
from app.services.performance.derivation import derive_ratios, to_decimal
from app.services.performance.generator import COST_OF_GOODS_RATE
from app.services.performance.records import (
    COMBINED,
    SCHEDULED_STATUSES,
    SEVERITY_RANK,
    product_price,
)

logger = logging.getLogger(__name__)

_TREND_FIELDS = ("spend", "roas", "conversions", "profit")


def _to_float(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / abs(previous) * 100


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class PerformanceSummary:
    """Latest COMBINED snapshot plus trailing 24h totals and trends."""

    current: PerformanceSnapshot
    previous: PerformanceSnapshot | None = None
    total_spend_24h: float = 0.0
    total_revenue_24h: float = 0.0
    average_roas_24h: float = 0.0
    data_points_24h: int = 0
    trends: dict[str, float] = field(default_factory=dict)
    alerts: list[SnapshotAlert] = field(default_factory=list)


@dataclass(frozen=True)
class ActiveAlert:
    alert: SnapshotAlert
    snapshot_id: Any
    platform: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# QueryFacade
# ---------------------------------------------------------------------------


class QueryFacade:
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.clock = clock or _utcnow

    def _since(self, hours: float) -> datetime:
        return self.clock() - timedelta(hours=hours)

    # ---- snapshots ------------------------------------------------------------

    def latest(
        self, db: Session, campaign_id: Any, platform: str = COMBINED
    ) -> PerformanceSnapshot | None:
        return (
            db.execute(
                select(PerformanceSnapshot)
                .where(
                    PerformanceSnapshot.campaign_id == campaign_id,
                    PerformanceSnapshot.platform == platform.upper(),
                )
                .order_by(PerformanceSnapshot.timestamp.desc())
            )
            .scalars()
            .first()
        )

    def history(
        self,
        db: Session,
        campaign_id: Any,
        hours: float = 24,
        platform: str | None = None,
    ) -> list[PerformanceSnapshot]:
        """Snapshots inside the trailing *hours*, oldest first."""
        query = select(PerformanceSnapshot).where(
            PerformanceSnapshot.campaign_id == campaign_id,
            PerformanceSnapshot.timestamp >= self._since(hours),
        )
        if platform is not None:
            query = query.where(PerformanceSnapshot.platform == platform.upper())
        query = query.order_by(PerformanceSnapshot.timestamp.asc())
        return list(db.execute(query).scalars().all())

    def summary(self, db: Session, campaign_id: Any) -> PerformanceSummary | None:
        combined = (
            db.execute(
                select(PerformanceSnapshot)
                .where(
                    PerformanceSnapshot.campaign_id == campaign_id,
                    PerformanceSnapshot.platform == COMBINED,
                )
                .order_by(PerformanceSnapshot.timestamp.desc())
                .limit(2)
            )
            .scalars()
            .all()
        )
        if not combined:
            return None

        current = combined[0]
        previous = combined[1] if len(combined) > 1 else None

        window = self.history(db, campaign_id, hours=24, platform=COMBINED)
        total_spend = sum((to_decimal(s.spend) for s in window), Decimal("0"))
        total_revenue = sum((to_decimal(s.revenue) for s in window), Decimal("0"))
        average_roas = (
            sum(_to_float(s.roas) for s in window) / len(window) if window else 0.0
        )

        trends: dict[str, float] = {}
        if previous is not None:
            for name in _TREND_FIELDS:
                trends[name] = _percent_change(
                    _to_float(getattr(current, name)), _to_float(getattr(previous, name))
                )

        return PerformanceSummary(
            current=current,
            previous=previous,
            total_spend_24h=float(total_spend),
            total_revenue_24h=float(total_revenue),
            average_roas_24h=average_roas,
            data_points_24h=len(window),
            trends=trends,
            alerts=[a for a in current.alerts if a.triggered and a.acknowledged_at is None],
        )

    def platform_breakdown(
        self, db: Session, campaign_id: Any, hours: float = 1
    ) -> dict[str, dict[str, float]]:
        """Per-platform totals over the trailing *hours*, COMBINED excluded."""
        rows = (
            db.execute(
                select(PerformanceSnapshot).where(
                    PerformanceSnapshot.campaign_id == campaign_id,
                    PerformanceSnapshot.platform != COMBINED,
                    PerformanceSnapshot.timestamp >= self._since(hours),
                )
            )
            .scalars()
            .all()
        )

        buckets: dict[str, dict[str, Decimal]] = defaultdict(
            lambda: {
                "spend": Decimal("0"),
                "revenue": Decimal("0"),
                "conversions": Decimal("0"),
                "impressions": Decimal("0"),
                "clicks": Decimal("0"),
            }
        )
        for row in rows:
            bucket = buckets[row.platform]
            for name in bucket:
                bucket[name] += to_decimal(getattr(row, name))

        breakdown: dict[str, dict[str, float]] = {}
        for platform, bucket in sorted(buckets.items()):
            ratios = derive_ratios(bucket)
            breakdown[platform] = {
                **{name: float(value) for name, value in bucket.items()},
                "roas": ratios.roas,
                "ctr": ratios.ctr,
                "cpc": ratios.cpc,
            }
        return breakdown

    @staticmethod
    def profit_details(snapshot: PerformanceSnapshot, campaign: Any) -> dict[str, float]:
        price, _defaulted = product_price(campaign)
        product_costs = to_decimal(snapshot.conversions) * price * COST_OF_GOODS_RATE
        return {
            "revenue": _to_float(snapshot.revenue),
            "ad_spend": _to_float(snapshot.spend),
            "product_costs": float(product_costs),
            "gross_profit": _to_float(snapshot.profit),
            "profit_margin": _to_float(snapshot.profit_margin),
            "roas": _to_float(snapshot.roas),
        }

    # ---- alerts ---------------------------------------------------------------

    def active_alerts(self, db: Session, campaign_id: Any) -> list[ActiveAlert]:
        """Triggered, unacknowledged alerts; most severe first, then newest."""
        rows = db.execute(
            select(SnapshotAlert, PerformanceSnapshot)
            .join(PerformanceSnapshot, SnapshotAlert.snapshot_id == PerformanceSnapshot.id)
            .where(
                PerformanceSnapshot.campaign_id == campaign_id,
                SnapshotAlert.triggered.is_(True),
                SnapshotAlert.acknowledged_at.is_(None),
            )
            .order_by(PerformanceSnapshot.timestamp.desc(), SnapshotAlert.position)
        ).all()

        active = [
            ActiveAlert(
                alert=alert,
                snapshot_id=snapshot.id,
                platform=snapshot.platform,
                timestamp=snapshot.timestamp,
            )
            for alert, snapshot in rows
        ]
        # stable sort keeps newest-first within a severity
        active.sort(key=lambda a: SEVERITY_RANK.get(a.alert.severity, 0), reverse=True)
        return active

    def acknowledge_alert(
        self,
        db: Session,
        campaign_id: Any,
        kind: str,
        *,
        snapshot_id: Any = None,
    ) -> SnapshotAlert | None:
        """Stamp the most recent matching unacknowledged alert.

        Returns ``None`` (and changes nothing) when no such alert exists.
        An already acknowledged alert is never re-stamped.
        """
        query = (
            select(SnapshotAlert)
            .join(PerformanceSnapshot, SnapshotAlert.snapshot_id == PerformanceSnapshot.id)
            .where(
                PerformanceSnapshot.campaign_id == campaign_id,
                SnapshotAlert.kind == kind.upper(),
                SnapshotAlert.triggered.is_(True),
                SnapshotAlert.acknowledged_at.is_(None),
            )
            .order_by(PerformanceSnapshot.timestamp.desc(), SnapshotAlert.position)
        )
        if snapshot_id is not None:
            query = query.where(SnapshotAlert.snapshot_id == snapshot_id)

        alert = db.execute(query).scalars().first()
        if alert is None:
            logger.info("No open %s alert to acknowledge for campaign %s", kind, campaign_id)
            return None

        alert.acknowledged_at = self.clock()
        db.commit()
        db.refresh(alert)
        return alert

    # ---- system ---------------------------------------------------------------

    def system_counts(self, db: Session) -> dict[str, int]:
        return {
            "total_campaigns": db.execute(
                select(func.count())
                .select_from(Campaign)
                .where(Campaign.status.in_(SCHEDULED_STATUSES))
            ).scalar_one(),
            "total_snapshots": db.execute(
                select(func.count())
                .select_from(PerformanceSnapshot)
                .where(PerformanceSnapshot.is_live.is_(True))
            ).scalar_one(),
            "active_alerts": db.execute(
                select(func.count())
                .select_from(SnapshotAlert)
                .where(
                    SnapshotAlert.triggered.is_(True),
                    SnapshotAlert.acknowledged_at.is_(None),
                )
            ).scalar_one(),
        }
