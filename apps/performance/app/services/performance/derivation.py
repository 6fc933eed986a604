"""Derived performance ratios (CTR, CPC, CPM, ROAS, CVR, CPA, utilization, margin).

Decimal arithmetic on the inputs, floats on the way out.  A zero
denominator yields ``0.0`` rather than ``None``, so every snapshot carries
a complete, numeric set of ratios.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

_HUNDRED = Decimal("100")
_THOUSAND = Decimal("1000")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _safe_div(numerator: Decimal, denominator: Decimal) -> float:
    if denominator <= 0:
        return 0.0
    return float(numerator / denominator)


@dataclass(frozen=True)
class DerivedRatios:
    """Ratios computed from one set of raw counters."""

    ctr: float = 0.0  # %
    cpc: float = 0.0
    cpm: float = 0.0
    roas: float = 0.0
    conversion_rate: float = 0.0  # %
    cpa: float = 0.0
    budget_utilization: float = 0.0  # %, capped at 100
    profit_margin: float = 0.0  # %

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def derive_ratios(counters: Mapping[str, Any]) -> DerivedRatios:
    """Compute all ratios from ``impressions``, ``clicks``, ``spend``,
    ``revenue``, ``conversions`` and ``budget``.

    Missing keys count as zero.  Never raises on degenerate input.
    """
    impressions = to_decimal(counters.get("impressions"))
    clicks = to_decimal(counters.get("clicks"))
    spend = to_decimal(counters.get("spend"))
    revenue = to_decimal(counters.get("revenue"))
    conversions = to_decimal(counters.get("conversions"))
    budget = to_decimal(counters.get("budget"))

    utilization = _safe_div(spend * _HUNDRED, budget)

    return DerivedRatios(
        ctr=_safe_div(clicks * _HUNDRED, impressions),
        cpc=_safe_div(spend, clicks),
        cpm=_safe_div(spend * _THOUSAND, impressions),
        roas=_safe_div(revenue, spend),
        conversion_rate=_safe_div(conversions * _HUNDRED, clicks),
        cpa=_safe_div(spend, conversions),
        budget_utilization=min(100.0, utilization),
        profit_margin=_safe_div((revenue - spend) * _HUNDRED, revenue),
    )
