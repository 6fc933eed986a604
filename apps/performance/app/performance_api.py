"""FastAPI router for live performance dashboards and alerts.

Sync endpoints on ``get_db``; the scheduler lives on ``app.state``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.db import SessionLocal, get_db
from app.models import Campaign, SnapshotAlert
from app.performance_schemas import (
    AcknowledgeAlertOut,
    AcknowledgeAlertRequest,
    ActiveAlertOut,
    ActiveAlertsOut,
    AlertCountsOut,
    CampaignBriefOut,
    DashboardOut,
    ForceUpdateOut,
    HealthOut,
    HistoryOut,
    LiveMetricsOut,
    PerformanceSnapshotOut,
    PlatformTotalsOut,
    ProfitDetailsOut,
    SchedulerStatsOut,
    SnapshotAlertOut,
    SummaryOut,
    SystemStatusOut,
)
from app.services.performance import QueryFacade, SchedulerLoop, build_scheduler
from app.services.performance.queries import ActiveAlert, PerformanceSummary
from app.services.performance.records import COMBINED
from app.services.performance.scheduler import normalize_platforms

performance_router = APIRouter(
    prefix="/api/performance",
    tags=["performance"],
)

DASHBOARD_HISTORY_POINTS = 48


def get_scheduler(request: Request) -> SchedulerLoop:
    scheduler = getattr(request.app.state, "live_metrics_scheduler", None)
    if scheduler is None:
        scheduler = build_scheduler(SessionLocal)
        request.app.state.live_metrics_scheduler = scheduler
    return scheduler


def get_queries() -> QueryFacade:
    return QueryFacade()


def _get_campaign(db: Session, campaign_id: uuid.UUID) -> Campaign:
    campaign = db.get(Campaign, campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


def _summary_out(summary: PerformanceSummary | None) -> SummaryOut | None:
    if summary is None:
        return None
    return SummaryOut(
        current=PerformanceSnapshotOut.model_validate(summary.current),
        total_spend_24h=summary.total_spend_24h,
        total_revenue_24h=summary.total_revenue_24h,
        average_roas_24h=summary.average_roas_24h,
        data_points_24h=summary.data_points_24h,
        trends=summary.trends,
        alerts=[SnapshotAlertOut.model_validate(a) for a in summary.alerts],
    )


def _active_alert_out(item: ActiveAlert) -> ActiveAlertOut:
    return ActiveAlertOut(
        id=item.alert.id,
        snapshot_id=item.snapshot_id,
        platform=item.platform,
        timestamp=item.timestamp,
        kind=item.alert.kind,
        severity=item.alert.severity,
        message=item.alert.message,
    )


def _next_update(scheduler: SchedulerLoop) -> datetime:
    return scheduler.next_update_at() or (
        datetime.now(tz=timezone.utc) + timedelta(minutes=scheduler.interval_minutes)
    )


# ---------------------------------------------------------------------------
# Live metrics
# ---------------------------------------------------------------------------


@performance_router.get("/live/{campaign_id}", response_model=LiveMetricsOut)
def get_live_metrics(
    campaign_id: uuid.UUID,
    platform: str = Query(default=COMBINED),
    db: Session = Depends(get_db),
    queries: QueryFacade = Depends(get_queries),
    scheduler: SchedulerLoop = Depends(get_scheduler),
):
    """Latest snapshot for a campaign and platform."""
    _get_campaign(db, campaign_id)

    latest = queries.latest(db, campaign_id, platform)
    if latest is None:
        raise HTTPException(
            status_code=404,
            detail="No live metrics available yet; they appear after the first update",
        )

    return LiveMetricsOut(
        timestamp=datetime.now(tz=timezone.utc),
        metrics=PerformanceSnapshotOut.model_validate(latest),
        summary=_summary_out(queries.summary(db, campaign_id)),
        update_interval_minutes=scheduler.interval_minutes,
        next_update=_next_update(scheduler),
    )


@performance_router.get("/dashboard/{campaign_id}", response_model=DashboardOut)
def get_dashboard(
    campaign_id: uuid.UUID,
    db: Session = Depends(get_db),
    queries: QueryFacade = Depends(get_queries),
    scheduler: SchedulerLoop = Depends(get_scheduler),
):
    """Complete dashboard payload for a campaign."""
    campaign = _get_campaign(db, campaign_id)

    summary = queries.summary(db, campaign_id)
    history = queries.history(db, campaign_id, hours=24, platform=COMBINED)
    breakdown = queries.platform_breakdown(db, campaign_id, hours=1)
    active = queries.active_alerts(db, campaign_id)

    live_metrics = None
    profit_details = None
    trends: dict[str, float] = {}
    if summary is not None:
        live_metrics = PerformanceSnapshotOut.model_validate(summary.current)
        profit_details = ProfitDetailsOut(**queries.profit_details(summary.current, campaign))
        trends = summary.trends

    return DashboardOut(
        timestamp=datetime.now(tz=timezone.utc),
        campaign=CampaignBriefOut.model_validate(campaign),
        live_metrics=live_metrics,
        summary=_summary_out(summary),
        profit_details=profit_details,
        trends=trends,
        performance_history=[
            PerformanceSnapshotOut.model_validate(s)
            for s in history[-DASHBOARD_HISTORY_POINTS:]
        ],
        platform_breakdown={
            name: PlatformTotalsOut(**totals) for name, totals in breakdown.items()
        },
        alerts=[_active_alert_out(item) for item in active],
        update_interval_minutes=scheduler.interval_minutes,
    )


@performance_router.get("/history/{campaign_id}", response_model=HistoryOut)
def get_history(
    campaign_id: uuid.UUID,
    hours: float = Query(default=24, gt=0, le=24 * 30),
    platform: str | None = Query(default=None),
    db: Session = Depends(get_db),
    queries: QueryFacade = Depends(get_queries),
):
    """Snapshots in the trailing window, oldest first."""
    _get_campaign(db, campaign_id)

    history = queries.history(db, campaign_id, hours=hours, platform=platform)
    return HistoryOut(
        history=[PerformanceSnapshotOut.model_validate(s) for s in history],
        total_data_points=len(history),
        hours=hours,
        platform=platform.upper() if platform else None,
    )


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@performance_router.get("/alerts/{campaign_id}", response_model=ActiveAlertsOut)
def get_active_alerts(
    campaign_id: uuid.UUID,
    db: Session = Depends(get_db),
    queries: QueryFacade = Depends(get_queries),
):
    """Open alerts, most severe first."""
    _get_campaign(db, campaign_id)

    active = queries.active_alerts(db, campaign_id)
    counts = AlertCountsOut(total=len(active))
    for item in active:
        severity = item.alert.severity.lower()
        if hasattr(counts, severity):
            setattr(counts, severity, getattr(counts, severity) + 1)

    return ActiveAlertsOut(
        alerts=[_active_alert_out(item) for item in active],
        summary=counts,
    )


@performance_router.post(
    "/alerts/{campaign_id}/acknowledge",
    response_model=AcknowledgeAlertOut,
)
def acknowledge_alert(
    campaign_id: uuid.UUID,
    payload: AcknowledgeAlertRequest,
    db: Session = Depends(get_db),
    queries: QueryFacade = Depends(get_queries),
):
    """Acknowledge the newest open alert of a kind.  No open alert is not an error."""
    _get_campaign(db, campaign_id)

    alert: SnapshotAlert | None = queries.acknowledge_alert(
        db, campaign_id, payload.kind, snapshot_id=payload.snapshot_id
    )
    return AcknowledgeAlertOut(
        acknowledged=alert is not None,
        alert=SnapshotAlertOut.model_validate(alert) if alert is not None else None,
    )


# ---------------------------------------------------------------------------
# Manual updates & system
# ---------------------------------------------------------------------------


@performance_router.post("/force-update/{campaign_id}", response_model=ForceUpdateOut)
def force_update(
    campaign_id: uuid.UUID,
    db: Session = Depends(get_db),
    scheduler: SchedulerLoop = Depends(get_scheduler),
):
    """Generate and aggregate metrics for one campaign immediately."""
    campaign = _get_campaign(db, campaign_id)

    update = scheduler.update_campaign(db, campaign)
    db.commit()

    return ForceUpdateOut(
        campaign_id=campaign_id,
        platforms=normalize_platforms(campaign.platforms),
        snapshots_created=len(update.snapshots),
        combined_snapshot_id=update.combined.id if update.combined is not None else None,
        timestamp=datetime.now(tz=timezone.utc),
    )


@performance_router.get("/system/status", response_model=SystemStatusOut)
def get_system_status(
    db: Session = Depends(get_db),
    queries: QueryFacade = Depends(get_queries),
    scheduler: SchedulerLoop = Depends(get_scheduler),
):
    counts = queries.system_counts(db)
    return SystemStatusOut(
        scheduler=SchedulerStatsOut(**scheduler.get_stats()),
        **counts,
    )


@performance_router.get("/system/health", response_model=HealthOut)
def get_health(scheduler: SchedulerLoop = Depends(get_scheduler)):
    return HealthOut(**scheduler.health_check())
