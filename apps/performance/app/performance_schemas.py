"""Pydantic schemas for live performance endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class SnapshotAlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: str
    severity: str
    message: str
    triggered: bool
    acknowledged_at: datetime | None = None


class PerformanceSnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    campaign_id: uuid.UUID
    platform: str
    timestamp: datetime
    hour: int
    spend: float
    budget: float
    impressions: int
    clicks: int
    conversions: float
    revenue: float
    reach: int
    profit: float
    ctr: float
    cpc: float
    cpm: float
    roas: float
    conversion_rate: float
    cpa: float
    budget_utilization: float
    profit_margin: float
    data_source: str
    is_live: bool
    alerts: list[SnapshotAlertOut] = []


class SummaryOut(BaseModel):
    current: PerformanceSnapshotOut
    total_spend_24h: float
    total_revenue_24h: float
    average_roas_24h: float
    data_points_24h: int
    trends: dict[str, float] = {}
    alerts: list[SnapshotAlertOut] = []


class LiveMetricsOut(BaseModel):
    timestamp: datetime
    metrics: PerformanceSnapshotOut
    summary: SummaryOut | None = None
    update_interval_minutes: int
    next_update: datetime


class HistoryOut(BaseModel):
    history: list[PerformanceSnapshotOut]
    total_data_points: int
    hours: float
    platform: str | None = None


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class CampaignBriefOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    status: str
    daily_budget: float | None = None
    total_budget: float | None = None
    currency: str


class ProfitDetailsOut(BaseModel):
    revenue: float
    ad_spend: float
    product_costs: float
    gross_profit: float
    profit_margin: float
    roas: float


class PlatformTotalsOut(BaseModel):
    spend: float
    revenue: float
    conversions: float
    impressions: float
    clicks: float
    roas: float
    ctr: float
    cpc: float


class ActiveAlertOut(BaseModel):
    id: uuid.UUID
    snapshot_id: uuid.UUID
    platform: str
    timestamp: datetime
    kind: str
    severity: str
    message: str


class AlertCountsOut(BaseModel):
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class ActiveAlertsOut(BaseModel):
    alerts: list[ActiveAlertOut]
    summary: AlertCountsOut


class DashboardOut(BaseModel):
    timestamp: datetime
    campaign: CampaignBriefOut
    live_metrics: PerformanceSnapshotOut | None = None
    summary: SummaryOut | None = None
    profit_details: ProfitDetailsOut | None = None
    trends: dict[str, float] = {}
    performance_history: list[PerformanceSnapshotOut] = []
    platform_breakdown: dict[str, PlatformTotalsOut] = {}
    alerts: list[ActiveAlertOut] = []
    update_interval_minutes: int


# ---------------------------------------------------------------------------
# Alert acknowledgement
# ---------------------------------------------------------------------------


class AcknowledgeAlertRequest(BaseModel):
    kind: str = Field(min_length=1)
    snapshot_id: uuid.UUID | None = None


class AcknowledgeAlertOut(BaseModel):
    acknowledged: bool
    alert: SnapshotAlertOut | None = None


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class ForceUpdateOut(BaseModel):
    campaign_id: uuid.UUID
    platforms: list[str]
    snapshots_created: int
    combined_snapshot_id: uuid.UUID | None = None
    timestamp: datetime


class SchedulerStatsOut(BaseModel):
    state: str
    is_running: bool
    interval_minutes: int
    last_run_at: datetime | None = None
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: float
    last_error: str | None = None
    last_error_at: datetime | None = None
    last_duration_ms: float
    last_campaigns_processed: int
    last_campaigns_failed: int


class SystemStatusOut(BaseModel):
    scheduler: SchedulerStatsOut
    total_campaigns: int
    total_snapshots: int
    active_alerts: int


class HealthOut(SchedulerStatsOut):
    status: str
