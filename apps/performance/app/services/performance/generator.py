from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import PerformanceSnapshot
from app.services.performance.alerts import AlertEvaluator
from app.services.performance.evolution import (
    CLICKS_MAX_CHANGE,
    CONVERSIONS_MAX_CHANGE,
    IMPRESSIONS_MAX_CHANGE,
    SPEND_MAX_CHANGE,
    evolve,
)
from app.services.performance.records import (
    DATA_SOURCE_SIMULATED,
    SnapshotRecord,
    daily_budget,
    product_price,
)
from app.services.performance.time_factors import (
    day_multiplier,
    hour_multiplier,
    local_time,
    platform_multiplier,
    sunday_based_weekday,
)
from app.settings import settings

logger = logging.getLogger(__name__)

COST_OF_GOODS_RATE = Decimal("0.30")

SPEND_VARIANCE = (0.8, 1.2)
IMPRESSIONS_PER_SPEND = (800, 1200)
CLICK_RATE = (0.01, 0.05)
CONVERSION_RATE = (0.02, 0.08)
REACH_RATIO = (0.7, 1.0)

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _round(value: Decimal, exp: Decimal) -> Decimal:
    return value.quantize(exp, rounding=ROUND_HALF_UP)


def _round_int(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


class PerformanceGenerator:
    """Synthesizes one snapshot per campaign and platform per tick.

    Each counter is drawn around a time-of-day/day-of-week target and then
    moved from the platform's previous value with ``evolve`` so consecutive
    snapshots stay smooth.  ``rng`` and ``clock`` are injectable so runs
    are reproducible.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        *,
        tz_name: str | None = None,
        evaluator: AlertEvaluator | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.clock = clock or _utcnow
        self.tz_name = tz_name or settings.LIVE_METRICS_TIMEZONE
        self.evaluator = evaluator or AlertEvaluator()

    def _uniform(self, bounds: tuple[float, float]) -> Decimal:
        return Decimal(str(self.rng.uniform(*bounds)))

    def base_hourly_spend(self, daily: Decimal, moment: datetime) -> Decimal:
        local = local_time(moment, self.tz_name)
        return (
            daily
            / Decimal("24")
            * hour_multiplier(local.hour)
            * day_multiplier(sunday_based_weekday(local))
        )

    def generate(
        self,
        campaign: Any,
        platform: str,
        previous: SnapshotRecord | None = None,
        now: datetime | None = None,
    ) -> SnapshotRecord:
        """Build the next snapshot for (*campaign*, *platform*) without persisting it."""
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        previous = previous or SnapshotRecord()

        daily, budget_defaulted = daily_budget(campaign)
        price, price_defaulted = product_price(campaign)
        campaign_id = getattr(campaign, "id", None)
        if budget_defaulted:
            logger.warning(
                "Campaign %s has no daily budget, using default %s", campaign_id, daily
            )
        if price_defaulted:
            logger.warning(
                "Campaign %s has no product price, using default %s", campaign_id, price
            )

        multiplier = platform_multiplier(platform)

        target_spend = self.base_hourly_spend(daily, now) * self._uniform(SPEND_VARIANCE)
        spend = _round(evolve(previous.spend, target_spend, SPEND_MAX_CHANGE), _CENTS)

        target_impressions = spend * self._uniform(IMPRESSIONS_PER_SPEND) * multiplier
        impressions = _round_int(
            evolve(previous.impressions, target_impressions, IMPRESSIONS_MAX_CHANGE)
        )

        target_clicks = Decimal(impressions) * self._uniform(CLICK_RATE) * multiplier
        clicks = _round_int(evolve(previous.clicks, target_clicks, CLICKS_MAX_CHANGE))

        # Conversions are an expected rate, so they keep one decimal.
        target_conversions = Decimal(clicks) * self._uniform(CONVERSION_RATE) * multiplier
        conversions = _round(
            evolve(previous.conversions, target_conversions, CONVERSIONS_MAX_CHANGE),
            _TENTHS,
        )

        revenue = _round(conversions * price, _CENTS)
        reach = _round_int(Decimal(impressions) * self._uniform(REACH_RATIO))
        profit = _round(revenue - spend - conversions * price * COST_OF_GOODS_RATE, _CENTS)

        record = SnapshotRecord(
            campaign_id=campaign_id,
            platform=platform,
            timestamp=now,
            hour=local_time(now, self.tz_name).hour,
            spend=spend,
            budget=daily,
            impressions=impressions,
            clicks=clicks,
            conversions=conversions,
            revenue=revenue,
            reach=reach,
            profit=profit,
            data_source=DATA_SOURCE_SIMULATED,
            is_live=True,
        )
        record.refresh_ratios()
        record.alerts = self.evaluator.evaluate(record, campaign)
        return record

    def load_previous(
        self, db: Session, campaign_id: Any, platform: str
    ) -> PerformanceSnapshot | None:
        return (
            db.execute(
                select(PerformanceSnapshot)
                .where(
                    PerformanceSnapshot.campaign_id == campaign_id,
                    PerformanceSnapshot.platform == platform,
                )
                .order_by(PerformanceSnapshot.timestamp.desc())
            )
            .scalars()
            .first()
        )

    def run(self, db: Session, campaign: Any, platform: str) -> PerformanceSnapshot:
        """Generate and persist the next snapshot for (*campaign*, *platform*)."""
        previous_row = self.load_previous(db, campaign.id, platform)
        previous = SnapshotRecord.from_model(previous_row) if previous_row else None
        record = self.generate(campaign, platform, previous)
        row = record.to_model()
        db.add(row)
        db.flush()
        return row
