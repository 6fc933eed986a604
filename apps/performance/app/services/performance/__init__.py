"""Live performance engine: simulated metrics and their cross-platform rollup."""

from app.services.performance.aggregation import AggregationEngine
from app.services.performance.alerts import AlertEvaluator
from app.services.performance.generator import PerformanceGenerator
from app.services.performance.queries import QueryFacade
from app.services.performance.scheduler import SchedulerLoop, SchedulerState

__all__ = [
    "AggregationEngine",
    "AlertEvaluator",
    "PerformanceGenerator",
    "QueryFacade",
    "SchedulerLoop",
    "SchedulerState",
    "build_scheduler",
]


def build_scheduler(session_factory) -> SchedulerLoop:
    """Build a scheduler wired with the default generator and aggregator."""
    return SchedulerLoop(
        session_factory,
        generator=PerformanceGenerator(),
        aggregator=AggregationEngine(),
    )
