"""In-memory snapshot record and the enumerations shared by the engine.

``SnapshotRecord`` always carries every counter and ratio (defaulted to
zero) so that derivation and alert rules never deal with missing fields.
It is converted to a ``PerformanceSnapshot`` row only at persistence time.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.models import PerformanceSnapshot, SnapshotAlert
from app.services.performance.derivation import derive_ratios, to_decimal
from app.settings import settings


class Platform(str, enum.Enum):
    META = "META"
    GOOGLE = "GOOGLE"
    TIKTOK = "TIKTOK"
    LINKEDIN = "LINKEDIN"
    YOUTUBE = "YOUTUBE"
    COMBINED = "COMBINED"


class CampaignStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class AlertKind(str, enum.Enum):
    ROAS_DROP = "ROAS_DROP"
    LOW_CTR = "LOW_CTR"
    BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
    HIGH_CPA = "HIGH_CPA"
    CONVERSION_DROP = "CONVERSION_DROP"
    PROFIT_NEGATIVE = "PROFIT_NEGATIVE"


class AlertSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


SEVERITY_RANK: dict[str, int] = {
    AlertSeverity.LOW.value: 1,
    AlertSeverity.MEDIUM.value: 2,
    AlertSeverity.HIGH.value: 3,
    AlertSeverity.CRITICAL.value: 4,
}

COMBINED = Platform.COMBINED.value
DATA_SOURCE_SIMULATED = "SIMULATED"
SCHEDULED_STATUSES: tuple[str, ...] = (
    CampaignStatus.ACTIVE.value,
    CampaignStatus.DRAFT.value,
)


# ---------------------------------------------------------------------------
# Campaign inputs
# ---------------------------------------------------------------------------


def product_price(campaign: Any) -> tuple[Decimal, bool]:
    """Return ``(price, defaulted)`` for the campaign's product."""
    product = getattr(campaign, "product", None)
    price = getattr(product, "price", None) if product is not None else None
    if price is None:
        return to_decimal(settings.LIVE_METRICS_DEFAULT_PRODUCT_PRICE), True
    return to_decimal(price), False


def daily_budget(campaign: Any) -> tuple[Decimal, bool]:
    """Return ``(daily_budget, defaulted)``; zero counts as unset."""
    budget = to_decimal(getattr(campaign, "daily_budget", None))
    if budget <= 0:
        return to_decimal(settings.LIVE_METRICS_DEFAULT_DAILY_BUDGET), True
    return budget, False


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertSpec:
    """One alert produced by the evaluator, before persistence."""

    kind: str
    severity: str
    message: str
    triggered: bool = True
    acknowledged_at: datetime | None = None


@dataclass
class SnapshotRecord:
    campaign_id: uuid.UUID | None = None
    platform: str = COMBINED
    timestamp: datetime | None = None
    hour: int = 0

    spend: Decimal = Decimal("0")
    budget: Decimal = Decimal("0")
    impressions: int = 0
    clicks: int = 0
    conversions: Decimal = Decimal("0")
    revenue: Decimal = Decimal("0")
    reach: int = 0
    profit: Decimal = Decimal("0")

    ctr: float = 0.0
    cpc: float = 0.0
    cpm: float = 0.0
    roas: float = 0.0
    conversion_rate: float = 0.0
    cpa: float = 0.0
    budget_utilization: float = 0.0
    profit_margin: float = 0.0

    alerts: list[AlertSpec] = field(default_factory=list)
    data_source: str = DATA_SOURCE_SIMULATED
    is_live: bool = True

    def counters(self) -> dict[str, Any]:
        return {
            "impressions": self.impressions,
            "clicks": self.clicks,
            "spend": self.spend,
            "revenue": self.revenue,
            "conversions": self.conversions,
            "budget": self.budget,
        }

    def refresh_ratios(self) -> None:
        """Recompute every ratio from the current counters."""
        ratios = derive_ratios(self.counters())
        for name, value in ratios.as_dict().items():
            setattr(self, name, value)

    @classmethod
    def from_model(cls, row: PerformanceSnapshot) -> "SnapshotRecord":
        return cls(
            campaign_id=row.campaign_id,
            platform=row.platform,
            timestamp=row.timestamp,
            hour=row.hour,
            spend=to_decimal(row.spend),
            budget=to_decimal(row.budget),
            impressions=int(row.impressions or 0),
            clicks=int(row.clicks or 0),
            conversions=to_decimal(row.conversions),
            revenue=to_decimal(row.revenue),
            reach=int(row.reach or 0),
            profit=to_decimal(row.profit),
            ctr=float(row.ctr or 0),
            cpc=float(row.cpc or 0),
            cpm=float(row.cpm or 0),
            roas=float(row.roas or 0),
            conversion_rate=float(row.conversion_rate or 0),
            cpa=float(row.cpa or 0),
            budget_utilization=float(row.budget_utilization or 0),
            profit_margin=float(row.profit_margin or 0),
            alerts=[
                AlertSpec(
                    kind=a.kind,
                    severity=a.severity,
                    message=a.message,
                    triggered=a.triggered,
                    acknowledged_at=a.acknowledged_at,
                )
                for a in row.alerts
            ],
            data_source=row.data_source,
            is_live=row.is_live,
        )

    def to_model(self) -> PerformanceSnapshot:
        """Build the ORM row.  Ratios are recomputed first."""
        self.refresh_ratios()
        row = PerformanceSnapshot(
            campaign_id=self.campaign_id,
            platform=self.platform,
            timestamp=self.timestamp,
            hour=self.hour,
            spend=self.spend,
            budget=self.budget,
            impressions=self.impressions,
            clicks=self.clicks,
            conversions=self.conversions,
            revenue=self.revenue,
            reach=self.reach,
            profit=self.profit,
            ctr=self.ctr,
            cpc=self.cpc,
            cpm=self.cpm,
            roas=self.roas,
            conversion_rate=self.conversion_rate,
            cpa=self.cpa,
            budget_utilization=self.budget_utilization,
            profit_margin=self.profit_margin,
            data_source=self.data_source,
            is_live=self.is_live,
        )
        row.alerts = [
            SnapshotAlert(
                position=position,
                kind=alert.kind,
                severity=alert.severity,
                message=alert.message,
                triggered=alert.triggered,
                acknowledged_at=alert.acknowledged_at,
            )
            for position, alert in enumerate(self.alerts)
        ]
        return row
