"""Threshold alert rules for performance snapshots.

Every rule is evaluated independently on every snapshot, so several
alerts may fire at once.  Output order follows ``DEFAULT_ALERT_RULES``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from app.services.performance.records import (
    AlertKind,
    AlertSeverity,
    AlertSpec,
    product_price,
)

ROAS_THRESHOLD = 2.0
CTR_THRESHOLD = 1.0  # %
BUDGET_UTILIZATION_THRESHOLD = 90.0  # %
CONVERSION_RATE_THRESHOLD = 1.0  # %
CONVERSION_MIN_CLICKS = 50


@dataclass(frozen=True)
class AlertInputs:
    """The slice of a snapshot (plus campaign context) the rules look at."""

    roas: float
    ctr: float
    budget_utilization: float
    cpa: float
    conversion_rate: float
    clicks: int
    profit: float
    product_price: float

    @classmethod
    def build(cls, snapshot: Any, price: Decimal | float) -> "AlertInputs":
        return cls(
            roas=float(snapshot.roas or 0),
            ctr=float(snapshot.ctr or 0),
            budget_utilization=float(snapshot.budget_utilization or 0),
            cpa=float(snapshot.cpa or 0),
            conversion_rate=float(snapshot.conversion_rate or 0),
            clicks=int(snapshot.clicks or 0),
            profit=float(snapshot.profit or 0),
            product_price=float(price),
        )


@dataclass(frozen=True)
class AlertRule:
    kind: AlertKind
    severity: AlertSeverity
    check: Callable[[AlertInputs], bool]
    describe: Callable[[AlertInputs], str]

    def apply(self, inputs: AlertInputs) -> AlertSpec | None:
        if not self.check(inputs):
            return None
        return AlertSpec(
            kind=self.kind.value,
            severity=self.severity.value,
            message=self.describe(inputs),
            triggered=True,
        )


DEFAULT_ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        kind=AlertKind.ROAS_DROP,
        severity=AlertSeverity.HIGH,
        check=lambda i: i.roas < ROAS_THRESHOLD,
        describe=lambda i: f"ROAS dropped to {i.roas:.2f}x - expected {ROAS_THRESHOLD:.1f}x+",
    ),
    AlertRule(
        kind=AlertKind.LOW_CTR,
        severity=AlertSeverity.MEDIUM,
        check=lambda i: i.ctr < CTR_THRESHOLD,
        describe=lambda i: f"CTR {i.ctr:.2f}% below {CTR_THRESHOLD:.1f}%",
    ),
    AlertRule(
        kind=AlertKind.BUDGET_EXHAUSTED,
        severity=AlertSeverity.MEDIUM,
        check=lambda i: i.budget_utilization >= BUDGET_UTILIZATION_THRESHOLD,
        describe=lambda i: f"Budget {i.budget_utilization:.1f}% exhausted",
    ),
    AlertRule(
        kind=AlertKind.HIGH_CPA,
        severity=AlertSeverity.HIGH,
        check=lambda i: i.cpa > i.product_price,
        describe=lambda i: (
            f"CPA {i.cpa:.2f} above product price {i.product_price:.2f}"
        ),
    ),
    AlertRule(
        kind=AlertKind.CONVERSION_DROP,
        severity=AlertSeverity.MEDIUM,
        check=lambda i: (
            i.conversion_rate < CONVERSION_RATE_THRESHOLD
            and i.clicks >= CONVERSION_MIN_CLICKS
        ),
        describe=lambda i: (
            f"Conversion rate {i.conversion_rate:.2f}% on {i.clicks} clicks"
        ),
    ),
    AlertRule(
        kind=AlertKind.PROFIT_NEGATIVE,
        severity=AlertSeverity.CRITICAL,
        check=lambda i: i.profit < 0,
        describe=lambda i: f"Campaign running at {abs(i.profit):.2f} loss",
    ),
)


class AlertEvaluator:
    """Runs a fixed set of ``AlertRule`` objects against a snapshot."""

    def __init__(self, rules: Sequence[AlertRule] = DEFAULT_ALERT_RULES) -> None:
        self.rules = tuple(rules)

    def evaluate(self, snapshot: Any, campaign: Any) -> list[AlertSpec]:
        """Return the alerts that fire for *snapshot*.

        *snapshot* is a ``SnapshotRecord`` or ``PerformanceSnapshot``;
        *campaign* supplies the product price for the CPA rule.
        """
        price, _defaulted = product_price(campaign)
        inputs = AlertInputs.build(snapshot, price)
        alerts: list[AlertSpec] = []
        for rule in self.rules:
            alert = rule.apply(inputs)
            if alert is not None:
                alerts.append(alert)
        return alerts
