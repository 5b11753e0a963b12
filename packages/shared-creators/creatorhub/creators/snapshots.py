"""Performance snapshot recording."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime

from creatorhub.creators.exceptions import ValidationError
from creatorhub.creators.models import MarketplaceProfile, PerformanceSnapshot, SnapshotSource
from creatorhub.creators.store.base import CreatorStore

logger = logging.getLogger(__name__)


class SnapshotRecorder:
    """Persist point-in-time creator metrics.

    Writes are idempotent upserts keyed by ``(creator, date, source)``
    so re-running a batch after a partial failure is always safe. A failed
    write is logged and reported as False; it never raises, so the caller's
    profile update is unaffected.
    """

    def __init__(self, store: CreatorStore, brand_id: str | None = None):
        self.store = store
        self.brand_id = brand_id

    def build(
        self,
        creator_id: int,
        profile: MarketplaceProfile,
        snapshot_date: date | None = None,
        source: SnapshotSource | str = SnapshotSource.MARKETPLACE_API,
    ) -> PerformanceSnapshot:
        """Build a snapshot for a creator from a marketplace profile.

        Raises:
            ValidationError: If ``source`` is not a known snapshot source.
        """
        try:
            source = SnapshotSource(source)
        except ValueError as e:
            raise ValidationError(f"Unknown snapshot source: {source}") from e

        return PerformanceSnapshot(
            brand_id=self.brand_id,
            creator_id=creator_id,
            snapshot_date=snapshot_date or datetime.now(UTC).date(),
            source=source,
            follower_count=profile.follower_count,
            gmv_cents=profile.gmv_cents,
            video_gmv_cents=profile.video_gmv_cents,
            avg_video_views=profile.avg_video_views,
        )

    def record(self, snapshot: PerformanceSnapshot) -> bool:
        """Upsert a snapshot.

        Returns:
            True if the snapshot was written.
        """
        try:
            self.store.upsert_snapshot(snapshot)
        except Exception as e:
            logger.warning(f"Failed to record snapshot {snapshot.key}: {e}")
            return False
        return True

    def record_profile(
        self,
        creator_id: int,
        profile: MarketplaceProfile,
        snapshot_date: date | None = None,
    ) -> bool:
        """Build and upsert a marketplace snapshot for a creator."""
        return self.record(self.build(creator_id, profile, snapshot_date))
