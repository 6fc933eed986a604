"""Tests for the simulated per-platform snapshot generator."""

from __future__ import annotations

import logging
import random
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.models import PerformanceSnapshot
from app.services.performance.derivation import derive_ratios
from app.services.performance.generator import PerformanceGenerator
from app.services.performance.records import AlertKind, SnapshotRecord
from tests.conftest import (
    TUESDAY_9AM,
    BoundRandom,
    FixedClock,
    make_campaign,
    make_product,
    setup_test_db,
)


def _campaign(daily_budget=Decimal("240"), price=Decimal("50")):
    return SimpleNamespace(
        id=uuid.uuid4(),
        daily_budget=daily_budget,
        product=SimpleNamespace(price=price) if price is not None else None,
    )


def _generator(pick="low", tz_name="UTC", clock=None):
    return PerformanceGenerator(
        rng=BoundRandom(pick), clock=clock or FixedClock(), tz_name=tz_name
    )


class TestBaseHourlySpend:
    def test_tuesday_morning(self):
        gen = _generator()
        assert gen.base_hourly_spend(Decimal("240"), TUESDAY_9AM) == Decimal("11")

    def test_sunday_night(self):
        gen = _generator()
        sunday_3am = TUESDAY_9AM.replace(day=18, hour=3)
        # 240 / 24 * 0.1 * 0.6
        assert gen.base_hourly_spend(Decimal("240"), sunday_3am) == Decimal("0.6")

    def test_uses_configured_timezone(self):
        gen = _generator(tz_name="America/New_York")
        # 09:00 UTC is 05:00 in New York (EDT) -> hour multiplier 0.2
        assert gen.base_hourly_spend(Decimal("240"), TUESDAY_9AM) == Decimal("2.2")


class TestGenerate:
    def test_first_snapshot_low_draws(self):
        record = _generator("low").generate(_campaign(), "META")

        assert record.platform == "META"
        assert record.timestamp == TUESDAY_9AM
        assert record.hour == 9
        assert record.spend == Decimal("8.80")
        assert record.budget == Decimal("240")
        assert record.impressions == 7040
        assert record.clicks == 70
        assert record.conversions == Decimal("1.4")
        assert record.revenue == Decimal("70.00")
        assert record.reach == 4928
        assert record.profit == Decimal("40.20")
        assert record.data_source == "SIMULATED"
        assert record.is_live is True

    def test_first_snapshot_high_draws(self):
        record = _generator("high").generate(_campaign(), "META")

        assert record.spend == Decimal("13.20")
        assert record.impressions == 15840
        assert record.clicks == 792
        assert record.conversions == Decimal("63.4")
        assert record.revenue == Decimal("3170.00")
        assert record.reach == 15840
        assert record.profit == Decimal("2205.80")

    @pytest.mark.parametrize("seed", [0, 1, 7, 42, 2026])
    def test_first_spend_within_variance(self, seed):
        gen = PerformanceGenerator(rng=random.Random(seed), clock=FixedClock(), tz_name="UTC")
        record = gen.generate(_campaign(), "META")
        assert Decimal("8.80") <= record.spend <= Decimal("13.20")

    def test_seeded_runs_are_reproducible(self):
        first = PerformanceGenerator(rng=random.Random(42), clock=FixedClock(), tz_name="UTC")
        second = PerformanceGenerator(rng=random.Random(42), clock=FixedClock(), tz_name="UTC")
        campaign = _campaign()

        assert first.generate(campaign, "GOOGLE") == second.generate(campaign, "GOOGLE")

    def test_platform_multiplier_applied(self):
        record = _generator("low").generate(_campaign(), "GOOGLE")

        assert record.spend == Decimal("8.80")
        assert record.impressions == 8448
        assert record.clicks == 101
        assert record.conversions == Decimal("2.4")

    def test_evolves_from_previous(self):
        previous = SnapshotRecord(
            platform="META",
            spend=Decimal("20"),
            impressions=1000,
            clicks=10,
            conversions=Decimal("1"),
        )
        record = _generator("low").generate(_campaign(), "META", previous)

        assert record.spend == Decimal("18.00")
        assert record.impressions == 1150
        assert record.clicks == 12
        assert record.conversions == Decimal("0.8")

    @pytest.mark.parametrize("seed", range(5))
    def test_consecutive_snapshots_stay_in_band(self, seed):
        clock = FixedClock()
        gen = PerformanceGenerator(rng=random.Random(seed), clock=clock, tz_name="UTC")
        campaign = _campaign()
        previous = gen.generate(campaign, "META")
        for _ in range(8):
            clock.advance(minutes=15)
            current = gen.generate(campaign, "META", previous)
            # one cent of rounding slack on top of the 10% band
            assert abs(current.spend - previous.spend) <= previous.spend * Decimal("0.10") + Decimal("0.01")
            assert abs(current.impressions - previous.impressions) <= previous.impressions * 0.15 + 1
            assert current.spend >= 0
            previous = current

    def test_ratios_match_counters(self):
        record = PerformanceGenerator(
            rng=random.Random(3), clock=FixedClock(), tz_name="UTC"
        ).generate(_campaign(), "TIKTOK")

        assert derive_ratios(record.counters()).as_dict() == {
            name: getattr(record, name) for name in derive_ratios({}).as_dict()
        }
        assert record.budget_utilization <= 100.0

    def test_revenue_and_profit_follow_price(self):
        record = PerformanceGenerator(
            rng=random.Random(11), clock=FixedClock(), tz_name="UTC"
        ).generate(_campaign(price=Decimal("80")), "META")

        assert record.revenue == (record.conversions * Decimal("80")).quantize(Decimal("0.01"))
        expected_profit = record.revenue - record.spend - record.conversions * Decimal("80") * Decimal("0.30")
        assert record.profit == expected_profit.quantize(Decimal("0.01"))

    def test_alerts_attached(self):
        record = _generator("low").generate(_campaign(), "META")
        # CTR is 70 / 7040 = 0.99%
        assert [a.kind for a in record.alerts] == [AlertKind.LOW_CTR.value]

    def test_missing_budget_and_price_fall_back(self, caplog):
        with caplog.at_level(logging.WARNING, logger="app.services.performance.generator"):
            record = _generator("low").generate(_campaign(daily_budget=None, price=None), "META")

        assert record.budget == Decimal("100")
        assert record.spend > 0
        messages = " ".join(r.getMessage() for r in caplog.records)
        assert "no daily budget" in messages
        assert "no product price" in messages

    def test_zero_budget_counts_as_missing(self):
        record = _generator("low").generate(_campaign(daily_budget=Decimal("0")), "META")
        assert record.budget == Decimal("100")


class TestGeneratorRun:
    def test_run_persists_and_chains(self):
        _, Session = setup_test_db()
        db = Session()
        product = make_product(db)
        campaign = make_campaign(db, product=product)

        clock = FixedClock()
        gen = PerformanceGenerator(rng=BoundRandom("low"), clock=clock, tz_name="UTC")

        first = gen.run(db, campaign, "META")
        db.commit()
        clock.advance(minutes=15)
        second = gen.run(db, campaign, "META")
        db.commit()

        rows = db.query(PerformanceSnapshot).filter_by(campaign_id=campaign.id).all()
        assert len(rows) == 2
        assert first.data_source == "SIMULATED"
        assert first.is_live is True
        assert first.hour == 9
        assert float(first.spend) == pytest.approx(8.80)
        assert abs(float(second.spend) - float(first.spend)) <= float(first.spend) * 0.10 + 0.01
        assert gen.load_previous(db, campaign.id, "META").id == second.id

        db.close()

    def test_previous_is_per_platform(self):
        _, Session = setup_test_db()
        db = Session()
        campaign = make_campaign(db, product=make_product(db))
        gen = PerformanceGenerator(rng=BoundRandom("low"), clock=FixedClock(), tz_name="UTC")

        gen.run(db, campaign, "META")
        db.commit()

        assert gen.load_previous(db, campaign.id, "META") is not None
        assert gen.load_previous(db, campaign.id, "GOOGLE") is None

        db.close()
