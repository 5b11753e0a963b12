"""Per-run counters and observability events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from creatorhub.creators.config import RunType, StopReason

logger = logging.getLogger(__name__)

COUNTER_NAMES = (
    "matched",
    "created",
    "already_linked",
    "skipped",
    "errors",
    "not_found",
    "enriched",
    "pages",
)


@dataclass
class RunStats:
    """Aggregate counters for one run.

    Observers only ever see these counts, never raw exceptions.
    """

    run_type: RunType
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    matched: int = 0
    created: int = 0
    already_linked: int = 0
    skipped: int = 0
    errors: int = 0
    not_found: int = 0
    enriched: int = 0
    pages: int = 0

    stop_reason: StopReason | None = None
    # Terminal state of each phase of a composite run, e.g. a full refresh
    phase_stop_reasons: dict[RunType, StopReason] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float | None:
        """Return run duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def increment(self, counter: str, amount: int = 1) -> None:
        """Add to one of the named counters."""
        if counter not in COUNTER_NAMES:
            raise ValueError(f"Unknown counter: {counter}")
        setattr(self, counter, getattr(self, counter) + amount)

    def counters(self) -> dict[str, int]:
        """Return all counters as a dictionary."""
        return {name: getattr(self, name) for name in COUNTER_NAMES}

    def stop_reasons(self) -> dict[str, str]:
        """Return the run's stop reason and each phase's, keyed by run type."""
        reasons = {
            run_type.value: reason.value for run_type, reason in self.phase_stop_reasons.items()
        }
        if self.stop_reason is not None:
            reasons[self.run_type.value] = self.stop_reason.value
        return reasons

    def merge(self, other: RunStats) -> RunStats:
        """Return a new RunStats summing both runs' counters."""
        combined = RunStats(run_type=self.run_type, started_at=min(self.started_at, other.started_at))
        for name in COUNTER_NAMES:
            setattr(combined, name, getattr(self, name) + getattr(other, name))
        combined.completed_at = other.completed_at or self.completed_at
        combined.stop_reason = other.stop_reason or self.stop_reason
        combined.phase_stop_reasons = {**self.phase_stop_reasons, **other.phase_stop_reasons}
        return combined


class ObservabilitySink(Protocol):
    """Receives run lifecycle events (e.g. a pub/sub or Slack bridge)."""

    def run_started(self, run_type: RunType) -> None: ...

    def run_completed(
        self, run_type: RunType, counters: dict[str, int], stop_reasons: dict[str, str]
    ) -> None: ...


class LoggingSink:
    """Sink that writes run events to the log."""

    def run_started(self, run_type: RunType) -> None:
        logger.info(f"Run started: {run_type.value}")

    def run_completed(
        self, run_type: RunType, counters: dict[str, int], stop_reasons: dict[str, str]
    ) -> None:
        summary = ", ".join(f"{k}={v}" for k, v in counters.items())
        stopped = ", ".join(f"{k}:{v}" for k, v in stop_reasons.items())
        logger.info(f"Run completed: {run_type.value} ({summary}) stopped: {stopped or 'n/a'}")


class StatsAggregator:
    """Start, finish and publish run statistics.

    Example:
        >>> aggregator = StatsAggregator()
        >>> stats = aggregator.start(RunType.ENRICHMENT)
        >>> stats.increment("enriched")
        >>> aggregator.complete(stats)
    """

    def __init__(self, sink: ObservabilitySink | None = None):
        self.sink = sink or LoggingSink()

    def start(self, run_type: RunType) -> RunStats:
        """Create counters for a new run and publish the start event."""
        stats = RunStats(run_type=run_type)
        self._publish(lambda: self.sink.run_started(run_type))
        return stats

    def complete(self, stats: RunStats, stop_reason: StopReason | None = None) -> RunStats:
        """Stamp completion, log a summary and publish the completion event."""
        stats.completed_at = datetime.now(UTC)
        if stop_reason is not None:
            stats.stop_reason = stop_reason

        logger.info(
            f"{stats.run_type.value} finished "
            f"(stop_reason={stats.stop_reason.value if stats.stop_reason else 'n/a'})\n"
            f"   - Matched existing creators: {stats.matched}\n"
            f"   - Created new creators: {stats.created}\n"
            f"   - Already linked: {stats.already_linked}\n"
            f"   - Enriched: {stats.enriched}\n"
            f"   - Not found: {stats.not_found}\n"
            f"   - Skipped: {stats.skipped}\n"
            f"   - Errors: {stats.errors}\n"
            f"   - Pages processed: {stats.pages}"
        )

        counters = stats.counters()
        stop_reasons = stats.stop_reasons()
        self._publish(
            lambda: self.sink.run_completed(stats.run_type, counters, stop_reasons=stop_reasons)
        )
        return stats

    def _publish(self, emit: Callable[[], None]) -> None:
        # Sink failures never fail a run
        try:
            emit()
        except Exception as e:
            logger.warning(f"Observability sink failed: {e}")
