"""Run coordination for sample sync and enrichment.

``RunRegistry`` enforces at most one in-flight run per run type.
``EnrichmentJob`` is the batch entrypoint that wires settings, the shop
API, the store and observability together.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime

from creatorhub.creators.client import MarketplaceClient, Pacer, QuotaBudget, RequestExecutor
from creatorhub.creators.config import EnrichmentSettings, RunType, StopReason
from creatorhub.creators.enrichment import CreatorEnricher, EnrichmentScheduler
from creatorhub.creators.ingest import SourceIngestor
from creatorhub.creators.snapshots import SnapshotRecorder
from creatorhub.creators.stats import RunStats, StatsAggregator
from creatorhub.creators.store.base import CreatorStore

logger = logging.getLogger(__name__)

# A full refresh runs both of these, so it holds their slots too
FULL_REFRESH_PHASES = (RunType.SAMPLE_SYNC, RunType.ENRICHMENT)

# Phase endings that outrank a later phase's normal completion
ABNORMAL_STOPS = frozenset(
    {StopReason.API_ERROR, StopReason.QUOTA_EXCEEDED, StopReason.STOPPED}
)


@dataclass
class RunSubmission:
    """Outcome of submitting a run.

    ``accepted`` is False when a run of the same type was already in
    flight; that is a successful no-op, not an error.
    """

    run_type: RunType
    accepted: bool
    stats: RunStats | None = None


class RunRegistry:
    """Tracks in-flight runs, keyed by run type.

    Runs execute in the submitting thread. Different run types may run
    concurrently from different threads. A run may also hold the slots of
    the run types it executes internally, so none of them can start
    alongside it.

    Example:
        >>> registry = RunRegistry()
        >>> submission = registry.submit(RunType.ENRICHMENT, run_enrichment)
        >>> submission.accepted
        True
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[RunType] = set()
        self._last_completed: dict[RunType, datetime] = {}

    def is_running(self, run_type: RunType) -> bool:
        with self._lock:
            return run_type in self._in_flight

    def last_completed_at(self, run_type: RunType) -> datetime | None:
        with self._lock:
            return self._last_completed.get(run_type)

    def submit(
        self,
        run_type: RunType,
        run: Callable[[], RunStats],
        also_holds: Iterable[RunType] = (),
    ) -> RunSubmission:
        """Execute ``run`` unless any run type it needs is in flight.

        Args:
            run_type: The run's own type.
            run: Callable performing the run.
            also_holds: Further run types reserved for the run's duration.
        """
        slots = {run_type, *also_holds}
        with self._lock:
            busy = slots & self._in_flight
            if busy:
                names = ", ".join(sorted(t.value for t in busy))
                logger.info(f"{run_type.value} run skipped, already in flight: {names}")
                return RunSubmission(run_type=run_type, accepted=False)
            self._in_flight |= slots

        try:
            stats = run()
        finally:
            with self._lock:
                self._in_flight -= slots

        with self._lock:
            self._last_completed[run_type] = datetime.now(UTC)
        return RunSubmission(run_type=run_type, accepted=True, stats=stats)


class EnrichmentJob:
    """Scheduled creator sync and enrichment job.

    A full refresh first syncs sample orders, so newly linked creators can
    be enriched in the same run, then enriches a prioritised batch.

    Example:
        >>> settings = EnrichmentSettings.from_env()
        >>> with ShopApiClient(settings) as api:
        ...     job = EnrichmentJob(store, api, settings)
        ...     submission = job.perform(batch_size=500)
    """

    def __init__(
        self,
        store: CreatorStore,
        executor: RequestExecutor,
        settings: EnrichmentSettings,
        quota: QuotaBudget | None = None,
        aggregator: StatsAggregator | None = None,
        registry: RunRegistry | None = None,
    ):
        """Initialize the job.

        Args:
            store: Creator store.
            executor: Authenticated shop API executor.
            settings: Enrichment settings.
            quota: Daily request budget; share one per process.
            aggregator: Stats aggregator with the observability sink.
            registry: Registry enforcing one in-flight run per type.
        """
        self.store = store
        self.executor = executor
        self.settings = settings
        self.quota = quota or QuotaBudget(settings.daily_request_quota)
        self.aggregator = aggregator or StatsAggregator()
        self.registry = registry or RunRegistry()
        self.last_sync_at: datetime | None = None

    def perform(
        self,
        brand_id: str | None = None,
        batch_size: int | None = None,
        sample_sync_pages: int | None = None,
        cutoff: date | datetime | None = None,
        skip_avatar: bool = False,
        stop_event: threading.Event | None = None,
    ) -> RunSubmission:
        """Run a full refresh: sample sync followed by enrichment.

        Args:
            brand_id: Brand that snapshots and new creators belong to.
            batch_size: Maximum creators to enrich.
            sample_sync_pages: Order feed page cap.
            cutoff: Staleness cutoff date overriding the window.
            skip_avatar: Leave stored avatar URLs untouched.
            stop_event: Cooperative stop signal.

        Returns:
            The submission; not accepted if a full refresh is in flight.
        """
        return self.registry.submit(
            RunType.FULL_REFRESH,
            lambda: self._full_refresh(
                brand_id, batch_size, sample_sync_pages, cutoff, skip_avatar, stop_event
            ),
            also_holds=FULL_REFRESH_PHASES,
        )

    def run_sample_sync(
        self,
        brand_id: str | None = None,
        sample_sync_pages: int | None = None,
        stop_event: threading.Event | None = None,
    ) -> RunSubmission:
        """Run only the sample order sync."""

        def run() -> RunStats:
            stats = self.aggregator.start(RunType.SAMPLE_SYNC)
            self._sample_sync(
                brand_id, sample_sync_pages, stop_event,
                Pacer(self.settings.api_delay_seconds), stats,
            )
            return self.aggregator.complete(stats)

        return self.registry.submit(RunType.SAMPLE_SYNC, run)

    def run_enrichment(
        self,
        brand_id: str | None = None,
        batch_size: int | None = None,
        cutoff: date | datetime | None = None,
        skip_avatar: bool = False,
        stop_event: threading.Event | None = None,
    ) -> RunSubmission:
        """Run only marketplace enrichment."""

        def run() -> RunStats:
            stats = self.aggregator.start(RunType.ENRICHMENT)
            self._enrich(
                brand_id, batch_size, cutoff, skip_avatar, stop_event,
                Pacer(self.settings.api_delay_seconds), stats,
            )
            return self.aggregator.complete(stats)

        return self.registry.submit(RunType.ENRICHMENT, run)

    def _full_refresh(
        self,
        brand_id: str | None,
        batch_size: int | None,
        sample_sync_pages: int | None,
        cutoff: date | datetime | None,
        skip_avatar: bool,
        stop_event: threading.Event | None,
    ) -> RunStats:
        stats = self.aggregator.start(RunType.FULL_REFRESH)
        pacer = Pacer(self.settings.api_delay_seconds)

        sample_stats = self._sample_sync(
            brand_id, sample_sync_pages, stop_event, pacer,
            RunStats(run_type=RunType.SAMPLE_SYNC),
        )
        enrich_stats = self._enrich(
            brand_id, batch_size, cutoff, skip_avatar, stop_event, pacer,
            RunStats(run_type=RunType.ENRICHMENT),
        )

        self.last_sync_at = datetime.now(UTC)

        logger.info(
            "Creator enrichment completed\n"
            "   Sample sync:\n"
            f"     - Stopped: {_reason(sample_stats.stop_reason)}\n"
            f"     - Matched: {sample_stats.matched}\n"
            f"     - Created: {sample_stats.created}\n"
            f"     - Already linked: {sample_stats.already_linked}\n"
            "   Marketplace enrichment:\n"
            f"     - Stopped: {_reason(enrich_stats.stop_reason)}\n"
            f"     - Enriched: {enrich_stats.enriched}\n"
            f"     - Not found: {enrich_stats.not_found}\n"
            f"     - Errors: {enrich_stats.errors}\n"
            f"     - Skipped (no handle): {enrich_stats.skipped}"
        )

        combined = stats.merge(sample_stats).merge(enrich_stats)
        combined.phase_stop_reasons = {
            phase.run_type: phase.stop_reason
            for phase in (sample_stats, enrich_stats)
            if phase.stop_reason is not None
        }
        return self.aggregator.complete(
            combined, stop_reason=overall_stop_reason(sample_stats, enrich_stats)
        )

    def _sample_sync(
        self,
        brand_id: str | None,
        sample_sync_pages: int | None,
        stop_event: threading.Event | None,
        pacer: Pacer,
        stats: RunStats,
    ) -> RunStats:
        ingestor = SourceIngestor(
            self.store,
            self.executor,
            self.settings,
            self.quota,
            pacer=pacer,
            brand_id=brand_id,
        )
        return ingestor.sync(max_pages=sample_sync_pages, stop_event=stop_event, stats=stats)

    def _enrich(
        self,
        brand_id: str | None,
        batch_size: int | None,
        cutoff: date | datetime | None,
        skip_avatar: bool,
        stop_event: threading.Event | None,
        pacer: Pacer,
        stats: RunStats,
    ) -> RunStats:
        batch_size = batch_size or self.settings.batch_size
        logger.info(f"Starting creator enrichment (batch_size: {batch_size})")

        scheduler = EnrichmentScheduler(self.store, self.settings, self.quota)
        enricher = CreatorEnricher(
            self.store,
            MarketplaceClient(self.executor, pacer, self.quota),
            self.settings,
            recorder=SnapshotRecorder(self.store, brand_id=brand_id),
        )
        creators = scheduler.select(batch_size=batch_size, cutoff=cutoff)
        return enricher.enrich_batch(
            creators, skip_avatar=skip_avatar, stop_event=stop_event, stats=stats
        )


def overall_stop_reason(*phases: RunStats) -> StopReason | None:
    """Stop reason of a multi-phase run.

    The first phase that ended abnormally decides; otherwise the last
    phase's reason is reported.
    """
    for phase in phases:
        if phase.stop_reason in ABNORMAL_STOPS:
            return phase.stop_reason
    return phases[-1].stop_reason if phases else None


def _reason(stop_reason: StopReason | None) -> str:
    return stop_reason.value if stop_reason else "n/a"
