"""Tests for derived ratio computation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.services.performance.derivation import DerivedRatios, derive_ratios, to_decimal


def _counters(**overrides):
    counters = dict(
        impressions=10_000,
        clicks=200,
        spend=Decimal("100"),
        revenue=Decimal("400"),
        conversions=Decimal("8"),
        budget=Decimal("200"),
    )
    counters.update(overrides)
    return counters


class TestDeriveRatios:
    def test_basic_ratios(self):
        ratios = derive_ratios(_counters())

        assert ratios.ctr == pytest.approx(2.0)
        assert ratios.cpc == pytest.approx(0.5)
        assert ratios.cpm == pytest.approx(10.0)
        assert ratios.roas == pytest.approx(4.0)
        assert ratios.conversion_rate == pytest.approx(4.0)
        assert ratios.cpa == pytest.approx(12.5)
        assert ratios.budget_utilization == pytest.approx(50.0)
        assert ratios.profit_margin == pytest.approx(75.0)

    def test_all_zero_counters(self):
        ratios = derive_ratios({})
        assert ratios == DerivedRatios()
        assert all(value == 0.0 for value in ratios.as_dict().values())

    def test_zero_impressions(self):
        ratios = derive_ratios(_counters(impressions=0))
        assert ratios.ctr == 0.0
        assert ratios.cpm == 0.0

    def test_zero_clicks(self):
        ratios = derive_ratios(_counters(clicks=0))
        assert ratios.cpc == 0.0
        assert ratios.conversion_rate == 0.0

    def test_zero_spend(self):
        assert derive_ratios(_counters(spend=0)).roas == 0.0

    def test_zero_conversions(self):
        assert derive_ratios(_counters(conversions=0)).cpa == 0.0

    def test_zero_budget(self):
        assert derive_ratios(_counters(budget=0)).budget_utilization == 0.0

    def test_zero_revenue(self):
        assert derive_ratios(_counters(revenue=0)).profit_margin == 0.0

    @pytest.mark.parametrize("spend", [0, 50, 199.99, 200, 1_000, 1_000_000])
    def test_budget_utilization_capped(self, spend):
        utilization = derive_ratios(_counters(spend=spend)).budget_utilization
        assert 0.0 <= utilization <= 100.0

    def test_overspend_is_100(self):
        assert derive_ratios(_counters(spend=500)).budget_utilization == 100.0

    def test_negative_margin_when_spend_exceeds_revenue(self):
        ratios = derive_ratios(_counters(spend=500, revenue=400))
        assert ratios.profit_margin == pytest.approx(-25.0)

    def test_accepts_floats_and_ints(self):
        ratios = derive_ratios({"impressions": 1000, "clicks": 5, "spend": 2.5})
        assert ratios.ctr == pytest.approx(0.5)
        assert ratios.cpc == pytest.approx(0.5)


class TestToDecimal:
    def test_conversions(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(42) == Decimal("42")
        value = Decimal("1.50")
        assert to_decimal(value) is value

    def test_shared_by_engine_modules(self):
        from app.services.performance import aggregation, evolution, queries, records

        for module in (aggregation, evolution, queries, records):
            assert module.to_decimal is to_decimal
