"""Recurring tick that keeps live performance snapshots up to date.

A tick:
  1. loads every ACTIVE or DRAFT campaign,
  2. runs ``PerformanceGenerator`` once per enabled platform,
  3. runs ``AggregationEngine`` once to write the COMBINED snapshot.

Each campaign is committed on its own; a failure rolls back that campaign
only and the tick moves on.  Ticks never overlap.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import schedule
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Campaign, PerformanceSnapshot
from app.services.performance.aggregation import AggregationEngine
from app.services.performance.generator import PerformanceGenerator
from app.services.performance.records import SCHEDULED_STATUSES
from app.settings import settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def normalize_platforms(platforms: Iterable[str] | None) -> list[str]:
    """Uppercase platform keys, dropping blanks and duplicates (order kept)."""
    seen: list[str] = []
    for name in platforms or ():
        key = str(name).strip().upper()
        if key and key not in seen:
            seen.append(key)
    return seen


# ---------------------------------------------------------------------------
# Result / state dataclasses
# ---------------------------------------------------------------------------


class SchedulerState(str, enum.Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


@dataclass
class CampaignUpdateResult:
    campaign_id: str
    snapshots: list[PerformanceSnapshot] = field(default_factory=list)
    combined: PerformanceSnapshot | None = None


@dataclass
class TickResult:
    started_at: datetime
    skipped: bool = False
    success: bool = True
    campaigns_processed: int = 0
    campaigns_failed: int = 0
    snapshots_created: int = 0
    combined_created: int = 0
    duration_ms: float = 0.0
    errors: list[str] = field(default_factory=list)


@dataclass
class SchedulerStats:
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    last_run_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    last_duration_ms: float = 0.0
    last_campaigns_processed: int = 0
    last_campaigns_failed: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_runs == 0:
            return 0.0
        return round(self.successful_runs / self.total_runs * 100, 2)


# ---------------------------------------------------------------------------
# SchedulerLoop
# ---------------------------------------------------------------------------


class SchedulerLoop:
    """STOPPED/RUNNING state machine around a ``schedule.Scheduler``.

    Every instance owns its own scheduler, thread and statistics, so tests
    can run several side by side.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        generator: PerformanceGenerator | None = None,
        aggregator: AggregationEngine | None = None,
        interval_minutes: int | None = None,
        poll_seconds: float = 1.0,
        join_timeout: float = 5.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.generator = generator or PerformanceGenerator()
        self.aggregator = aggregator or AggregationEngine()
        self.interval_minutes = interval_minutes or settings.LIVE_METRICS_INTERVAL_MINUTES
        self.poll_seconds = poll_seconds
        self.join_timeout = join_timeout
        self.clock = clock or _utcnow
        self.stats = SchedulerStats()

        self._state = SchedulerState.STOPPED
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._scheduler: schedule.Scheduler | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ---- state ----------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_lock.locked()

    def start(self) -> None:
        """Run one tick right away, then every ``interval_minutes``."""
        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                logger.warning("Live metrics scheduler already running")
                return

            self._stop_event = threading.Event()
            self._scheduler = schedule.Scheduler()
            self._scheduler.every(self.interval_minutes).minutes.do(self.run_tick)
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._scheduler, self._stop_event),
                name="live-metrics-scheduler",
                daemon=True,
            )
            self._state = SchedulerState.RUNNING
            self._thread.start()

        logger.info(
            "Live metrics scheduler started - ticking every %d minutes", self.interval_minutes
        )

    def stop(self) -> None:
        """Cancel future ticks.  A tick already running is left to finish."""
        with self._state_lock:
            if self._state is SchedulerState.STOPPED:
                logger.warning("Live metrics scheduler is not running")
                return
            self._state = SchedulerState.STOPPED
            self._stop_event.set()
            if self._scheduler is not None:
                self._scheduler.clear()
            thread = self._thread
            self._thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.join_timeout)
        logger.info("Live metrics scheduler stopped")

    def _run_loop(self, scheduler: schedule.Scheduler, stop_event: threading.Event) -> None:
        self.run_tick()
        while not stop_event.wait(self.poll_seconds):
            try:
                scheduler.run_pending()
            except Exception:
                logger.exception("Live metrics scheduler loop error")

    # ---- ticks ----------------------------------------------------------------

    def run_tick(self) -> TickResult:
        """Run one tick now.  Returns a skipped result if a tick is in flight."""
        result = TickResult(started_at=self.clock())
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous live metrics tick still running, skipping")
            result.skipped = True
            return result

        started = time.monotonic()
        try:
            self._tick(result)
        except Exception as exc:
            logger.exception("Live metrics tick failed")
            result.success = False
            result.errors.append(f"Tick failed: {exc}")
        finally:
            result.duration_ms = round((time.monotonic() - started) * 1000, 2)
            self._record(result)
            self._tick_lock.release()
        return result

    def _tick(self, result: TickResult) -> None:
        try:
            db = self.session_factory()
        except Exception as exc:
            logger.exception("Could not open a session for live metrics tick")
            result.success = False
            result.errors.append(f"Session unavailable: {exc}")
            return

        try:
            try:
                campaign_ids = list(
                    db.execute(
                        select(Campaign.id).where(Campaign.status.in_(SCHEDULED_STATUSES))
                    )
                    .scalars()
                    .all()
                )
            except Exception as exc:
                logger.exception("Could not load campaigns for live metrics tick")
                result.success = False
                result.errors.append(f"Campaign lookup failed: {exc}")
                return

            for campaign_id in campaign_ids:
                try:
                    campaign = db.get(Campaign, campaign_id)
                    if campaign is None:
                        continue
                    update = self.update_campaign(db, campaign)
                    db.commit()
                except Exception as exc:
                    logger.exception("Live metrics update failed for campaign %s", campaign_id)
                    self._rollback(db)
                    result.campaigns_failed += 1
                    result.errors.append(f"Campaign {campaign_id}: {exc}")
                    continue

                result.campaigns_processed += 1
                result.snapshots_created += len(update.snapshots)
                if update.combined is not None:
                    result.combined_created += 1
        finally:
            db.close()

        logger.info(
            "Live metrics tick: %d campaigns updated, %d failed, %d snapshots",
            result.campaigns_processed,
            result.campaigns_failed,
            result.snapshots_created,
        )

    def update_campaign(self, db: Session, campaign: Campaign) -> CampaignUpdateResult:
        """Generate every platform snapshot for *campaign*, then the COMBINED one.

        Does not commit; the caller owns the transaction.
        """
        update = CampaignUpdateResult(campaign_id=str(campaign.id))
        for platform in normalize_platforms(campaign.platforms):
            update.snapshots.append(self.generator.run(db, campaign, platform))
        update.combined = self.aggregator.aggregate(db, campaign)
        return update

    @staticmethod
    def _rollback(db: Session) -> None:
        try:
            db.rollback()
        except Exception:
            logger.exception("Rollback failed after live metrics update error")

    def _record(self, result: TickResult) -> None:
        if result.skipped:
            return
        stats = self.stats
        stats.total_runs += 1
        stats.last_duration_ms = result.duration_ms
        stats.last_campaigns_processed = result.campaigns_processed
        stats.last_campaigns_failed = result.campaigns_failed
        if result.success:
            stats.successful_runs += 1
            stats.last_run_at = self.clock()
        else:
            stats.failed_runs += 1
        if result.errors:
            stats.last_error = result.errors[-1]
            stats.last_error_at = self.clock()

    # ---- reporting ------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        stats = self.stats
        return {
            "state": self._state.value,
            "is_running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "last_run_at": stats.last_run_at,
            "total_runs": stats.total_runs,
            "successful_runs": stats.successful_runs,
            "failed_runs": stats.failed_runs,
            "success_rate": stats.success_rate,
            "last_error": stats.last_error,
            "last_error_at": stats.last_error_at,
            "last_duration_ms": stats.last_duration_ms,
            "last_campaigns_processed": stats.last_campaigns_processed,
            "last_campaigns_failed": stats.last_campaigns_failed,
        }

    def health_check(self) -> dict[str, Any]:
        """HEALTHY only when the loop thread is alive, ticks mostly succeed and
        the last successful tick is recent."""
        stats = self.get_stats()
        last_run = self.stats.last_run_at
        fresh = last_run is None or (
            self.clock() - last_run
            < timedelta(minutes=settings.LIVE_METRICS_STALE_AFTER_MINUTES)
        )
        thread = self._thread
        healthy = (
            self.is_running
            and thread is not None
            and thread.is_alive()
            and self.stats.success_rate > settings.LIVE_METRICS_HEALTHY_SUCCESS_RATE
            and fresh
        )
        return {"status": "HEALTHY" if healthy else "UNHEALTHY", **stats}

    def next_update_at(self) -> datetime | None:
        if self._scheduler is None or not self.is_running:
            return None
        next_run = self._scheduler.next_run
        if next_run is None:
            return None
        # schedule works in naive local time
        return next_run.astimezone(timezone.utc)
