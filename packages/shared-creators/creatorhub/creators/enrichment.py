"""Marketplace enrichment of creator profiles.

The scheduler picks which creators to refresh; the enricher looks each one
up in the marketplace, overwrites its cached metrics and records a dated
performance snapshot.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, time as dt_time, timedelta

from creatorhub.creators.client import MarketplaceClient, QuotaBudget
from creatorhub.creators.config import EnrichmentSettings, RunType, StopReason
from creatorhub.creators.exceptions import (
    AuthenticationError,
    CreatorSyncError,
    QuotaExceededError,
)
from creatorhub.creators.merge import MergePolicy
from creatorhub.creators.models import Creator
from creatorhub.creators.snapshots import SnapshotRecorder
from creatorhub.creators.stats import RunStats
from creatorhub.creators.store.base import CreatorStore, has_usable_handle

logger = logging.getLogger(__name__)


class EnrichmentScheduler:
    """Select the creators to enrich in one run.

    Eligible creators have a usable handle and metrics that are missing or
    older than the staleness window. Recently sampled creators come first,
    then never-enriched before stale (oldest first), then higher GMV.
    Selection never writes.
    """

    def __init__(
        self,
        store: CreatorStore,
        settings: EnrichmentSettings,
        quota: QuotaBudget,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.store = store
        self.settings = settings
        self.quota = quota
        self._clock = clock

    def stale_before(self, cutoff: date | datetime | None = None) -> datetime:
        """Enrichment timestamp before which a creator counts as stale.

        An explicit cutoff date replaces the staleness window.
        """
        if isinstance(cutoff, datetime):
            return cutoff if cutoff.tzinfo else cutoff.replace(tzinfo=UTC)
        if isinstance(cutoff, date):
            return datetime.combine(cutoff, dt_time.min, tzinfo=UTC)
        return self._clock() - timedelta(days=self.settings.staleness_days)

    def select(
        self,
        batch_size: int | None = None,
        cutoff: date | datetime | None = None,
    ) -> list[Creator]:
        """Return up to ``min(batch_size, quota remaining)`` creators in priority order.

        Args:
            batch_size: Maximum creators; defaults to ``settings.batch_size``.
            cutoff: Optional staleness cutoff overriding the window.
        """
        limit = min(batch_size or self.settings.batch_size, self.quota.remaining())
        if limit <= 0:
            logger.info("No request quota left today, nothing to enrich")
            return []

        recent_sample_after = self._clock() - timedelta(days=self.settings.sample_priority_days)
        creators = self.store.list_enrichment_candidates(
            stale_before=self.stale_before(cutoff),
            recent_sample_after=recent_sample_after,
            limit=limit,
        )
        logger.info(f"Selected {len(creators)} creators for enrichment (limit {limit})")
        return creators


class CreatorEnricher:
    """Refresh creators from the marketplace.

    Transport failures are counted per creator and the batch continues.
    Quota exhaustion or rejected credentials end the batch, keeping what
    was already written. The snapshot and the profile update are written
    independently: either may fail without undoing the other.

    Example:
        >>> enricher = CreatorEnricher(store, marketplace, settings)
        >>> stats = enricher.enrich_batch(scheduler.select())
        >>> stats.enriched, stats.stop_reason
    """

    def __init__(
        self,
        store: CreatorStore,
        marketplace: MarketplaceClient,
        settings: EnrichmentSettings,
        merge_policy: MergePolicy | None = None,
        recorder: SnapshotRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the enricher.

        Args:
            store: Creator store.
            marketplace: Paced, quota-aware marketplace client.
            settings: Enrichment settings.
            merge_policy: Policy for metric overwrites.
            recorder: Snapshot recorder; brand-agnostic by default.
            clock: Monotonic clock for the run time budget.
        """
        self.store = store
        self.marketplace = marketplace
        self.settings = settings
        self.merge_policy = merge_policy or MergePolicy(
            default_country=settings.default_country,
            enrichment_source=settings.enrichment_source,
        )
        self.recorder = recorder or SnapshotRecorder(store)
        self._clock = clock

    def enrich_batch(
        self,
        creators: Iterable[Creator],
        skip_avatar: bool = False,
        stop_event: threading.Event | None = None,
        stats: RunStats | None = None,
    ) -> RunStats:
        """Enrich creators one at a time.

        Args:
            creators: Creators to enrich, in priority order.
            skip_avatar: Leave stored avatar URLs untouched.
            stop_event: Cooperative stop signal, checked between creators.
            stats: Counters to add to; a new ENRICHMENT ``RunStats`` if None.

        Returns:
            The run's counters with ``stop_reason`` set.
        """
        stats = stats or RunStats(run_type=RunType.ENRICHMENT)
        started = self._clock()
        stats.stop_reason = StopReason.COMPLETED

        for creator in creators:
            if stop_event is not None and stop_event.is_set():
                stats.stop_reason = StopReason.STOPPED
                break
            if self._clock() - started >= self.settings.max_run_seconds:
                logger.info("Enrichment time budget exhausted")
                stats.stop_reason = StopReason.STOPPED
                break

            if not has_usable_handle(creator):
                stats.increment("skipped")
                continue

            try:
                updated = self._enrich(creator, skip_avatar)
            except QuotaExceededError as e:
                logger.warning(f"Stopping enrichment: {e}")
                stats.stop_reason = StopReason.QUOTA_EXCEEDED
                break
            except AuthenticationError as e:
                logger.error(f"Stopping enrichment: {e}")
                stats.stop_reason = StopReason.API_ERROR
                break
            except CreatorSyncError as e:
                logger.warning(f"Failed to enrich @{creator.handle}: {e}")
                stats.increment("errors")
                continue
            except Exception:
                logger.exception(f"Unexpected error enriching @{creator.handle}")
                stats.increment("errors")
                continue

            if updated is None:
                stats.increment("not_found")
            else:
                stats.increment("enriched")

        return stats

    def enrich_single(self, creator: Creator, skip_avatar: bool = False) -> Creator | None:
        """Enrich one creator on demand.

        Returns:
            The updated creator, or None if the marketplace has no exact match.

        Raises:
            ValueError: If the creator has no usable handle.
            CreatorSyncError: On API, quota or store failures.
        """
        if not has_usable_handle(creator):
            raise ValueError(f"Creator {creator.id} has no usable handle")
        return self._enrich(creator, skip_avatar)

    def _enrich(self, creator: Creator, skip_avatar: bool) -> Creator | None:
        handle = creator.handle
        if not handle:
            raise ValueError(f"Creator {creator.id} has no usable handle")
        profile = self.marketplace.lookup(handle)
        if profile is None:
            return None

        enriched_at = datetime.now(UTC)
        attrs = self.merge_policy.metric_updates(
            profile, enriched_at=enriched_at, skip_avatar=skip_avatar
        )
        try:
            updated = self.store.update(creator.id, attrs)
        finally:
            # Recorded from fetched data even if the profile update failed
            self.recorder.record_profile(creator.id, profile, enriched_at.date())

        logger.debug(f"Enriched @{creator.handle}: {profile.follower_count} followers")
        return updated
