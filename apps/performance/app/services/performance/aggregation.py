"""Cross-platform rollup into one COMBINED snapshot per campaign and tick."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import PerformanceSnapshot
from app.services.performance.alerts import AlertEvaluator
from app.services.performance.derivation import to_decimal
from app.services.performance.records import (
    COMBINED,
    DATA_SOURCE_SIMULATED,
    SnapshotRecord,
    daily_budget,
)
from app.services.performance.time_factors import local_time
from app.settings import settings

logger = logging.getLogger(__name__)

_SUMMED_DECIMALS = ("spend", "conversions", "revenue", "profit")
_SUMMED_INTEGERS = ("impressions", "clicks", "reach")


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class AggregationEngine:
    """Sums the recent per-platform snapshots of a campaign.

    Only non-COMBINED rows inside the trailing window are read, so a
    COMBINED snapshot never feeds another one.  Several rows for the same
    platform inside the window are all summed.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        *,
        window_minutes: int | None = None,
        tz_name: str | None = None,
        evaluator: AlertEvaluator | None = None,
    ) -> None:
        self.clock = clock or _utcnow
        self.window_minutes = (
            window_minutes
            if window_minutes is not None
            else settings.LIVE_METRICS_AGGREGATION_WINDOW_MINUTES
        )
        self.tz_name = tz_name or settings.LIVE_METRICS_TIMEZONE
        self.evaluator = evaluator or AlertEvaluator()

    def recent_platform_snapshots(
        self, db: Session, campaign_id: Any, now: datetime
    ) -> list[PerformanceSnapshot]:
        since = now - timedelta(minutes=self.window_minutes)
        return list(
            db.execute(
                select(PerformanceSnapshot)
                .where(
                    PerformanceSnapshot.campaign_id == campaign_id,
                    PerformanceSnapshot.platform != COMBINED,
                    PerformanceSnapshot.timestamp >= since,
                )
                .order_by(PerformanceSnapshot.timestamp.desc())
            )
            .scalars()
            .all()
        )

    def combine(
        self,
        campaign: Any,
        snapshots: Sequence[Any],
        now: datetime,
    ) -> SnapshotRecord | None:
        """Build the COMBINED record from *snapshots*; ``None`` if there are none."""
        platform_rows = [s for s in snapshots if s.platform != COMBINED]
        if not platform_rows:
            return None

        totals: dict[str, Any] = {name: Decimal("0") for name in _SUMMED_DECIMALS}
        totals.update({name: 0 for name in _SUMMED_INTEGERS})
        for row in platform_rows:
            for name in _SUMMED_DECIMALS:
                totals[name] += to_decimal(getattr(row, name, None))
            for name in _SUMMED_INTEGERS:
                totals[name] += int(getattr(row, name, None) or 0)

        daily, _defaulted = daily_budget(campaign)
        record = SnapshotRecord(
            campaign_id=getattr(campaign, "id", None),
            platform=COMBINED,
            timestamp=now,
            hour=local_time(now, self.tz_name).hour,
            budget=daily,
            data_source=DATA_SOURCE_SIMULATED,
            is_live=True,
            **totals,
        )
        record.refresh_ratios()
        record.alerts = self.evaluator.evaluate(record, campaign)
        return record

    def aggregate(self, db: Session, campaign: Any) -> PerformanceSnapshot | None:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        snapshots = self.recent_platform_snapshots(db, campaign.id, now)
        record = self.combine(campaign, snapshots, now)
        if record is None:
            logger.info("No platform snapshots in window for campaign %s", campaign.id)
            return None

        row = record.to_model()
        db.add(row)
        db.flush()
        return row
