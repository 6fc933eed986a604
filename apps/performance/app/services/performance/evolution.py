"""Bounded random-walk step between consecutive snapshots."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from app.services.performance.derivation import to_decimal

# Max fraction of the previous value a counter may move per tick.
SPEND_MAX_CHANGE = Decimal("0.10")
IMPRESSIONS_MAX_CHANGE = Decimal("0.15")
CLICKS_MAX_CHANGE = Decimal("0.20")
CONVERSIONS_MAX_CHANGE = Decimal("0.25")

MAX_CHANGE_FRACTIONS: dict[str, Decimal] = {
    "spend": SPEND_MAX_CHANGE,
    "impressions": IMPRESSIONS_MAX_CHANGE,
    "clicks": CLICKS_MAX_CHANGE,
    "conversions": CONVERSIONS_MAX_CHANGE,
}


def evolve(previous: Any, target: Any, max_change_fraction: Any) -> Decimal:
    """Move *previous* toward *target* by at most ``previous * max_change_fraction``.

    A previous value of zero is the first observation and returns *target*
    as is.  The result is never negative.
    """
    previous = to_decimal(previous)
    target = to_decimal(target)
    if previous == 0:
        return target

    max_change = abs(previous) * to_decimal(max_change_fraction)
    delta = target - previous
    if delta > max_change:
        delta = max_change
    elif delta < -max_change:
        delta = -max_change

    return max(Decimal("0"), previous + delta)
