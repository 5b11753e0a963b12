"""Creator store abstract class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from creatorhub.creators.masking import is_masked
from creatorhub.creators.models import Creator, PerformanceSnapshot


def has_usable_handle(creator: Creator) -> bool:
    """Return True if the creator's handle can be searched for."""
    return not is_masked(creator.handle)


def is_enrichment_eligible(creator: Creator, stale_before: datetime) -> bool:
    """Return True if the creator has a handle and stale or missing metrics."""
    if not has_usable_handle(creator):
        return False
    return creator.last_enriched_at is None or creator.last_enriched_at < stale_before


def enrichment_priority(
    creator: Creator, recent_sample_after: datetime
) -> tuple[bool, bool, float, int]:
    """Sort key for enrichment candidates; sort with ``reverse=True``.

    Orders by recent sample activity, then never-enriched before stale
    (oldest enrichment first), then by total GMV.
    """
    recently_sampled = (
        creator.last_sample_at is not None and creator.last_sample_at > recent_sample_after
    )
    never_enriched = creator.last_enriched_at is None
    # Negated so older enrichments rank higher under reverse sort
    staleness = -creator.last_enriched_at.timestamp() if creator.last_enriched_at else 0.0
    return (recently_sampled, never_enriched, staleness, creator.total_gmv_cents or 0)


class CreatorStore(ABC):
    """Persistence for creators and their performance snapshots.

    Every write touches a single record and is atomic on its own; no
    cross-record transaction is required by callers.

    Subclasses must implement the lookups, ``create``, ``update`` and the
    snapshot operations. ``get_by_name`` is derived from ``find_by_name``.
    """

    @abstractmethod
    def get(self, creator_id: int) -> Creator | None:
        """Return the creator with this internal id."""
        pass  # pragma: no cover

    @abstractmethod
    def get_by_phone(self, phone: str) -> Creator | None:
        """Return the creator with this exact E.164 phone."""
        pass  # pragma: no cover

    @abstractmethod
    def find_by_name(self, first_name: str, last_name: str | None) -> list[Creator]:
        """Return creators whose normalised first and last name match."""
        pass  # pragma: no cover

    @abstractmethod
    def get_by_external_user_id(self, external_user_id: str) -> Creator | None:
        """Return the creator linked to this third-party user id."""
        pass  # pragma: no cover

    @abstractmethod
    def get_by_handle(self, handle: str) -> Creator | None:
        """Return the creator with this handle (case-insensitive)."""
        pass  # pragma: no cover

    @abstractmethod
    def find_by_phone_pattern(
        self, area_code: str, trailing_digits: str, limit: int = 5
    ) -> list[Creator]:
        """Return creators whose stored phone matches ``+1<area>%<trailing>``.

        The area code is anchored right after the country prefix, so a
        number that merely contains it elsewhere is not a candidate.
        """
        pass  # pragma: no cover

    @abstractmethod
    def list_enrichment_candidates(
        self,
        stale_before: datetime,
        recent_sample_after: datetime,
        limit: int,
    ) -> list[Creator]:
        """Return up to ``limit`` eligible creators in priority order."""
        pass  # pragma: no cover

    @abstractmethod
    def create(self, attrs: dict[str, Any]) -> Creator:
        """Create a creator.

        Raises:
            ValidationError: If the handle or external user id is taken.
        """
        pass  # pragma: no cover

    @abstractmethod
    def update(self, creator_id: int, attrs: dict[str, Any]) -> Creator:
        """Apply attributes to one creator and return the updated record.

        Raises:
            ValidationError: If the creator is missing or a uniqueness
                constraint would be violated.
        """
        pass  # pragma: no cover

    @abstractmethod
    def upsert_snapshot(self, snapshot: PerformanceSnapshot) -> PerformanceSnapshot:
        """Insert a snapshot or update the row with the same key."""
        pass  # pragma: no cover

    @abstractmethod
    def list_snapshots(self, creator_id: int) -> list[PerformanceSnapshot]:
        """Return all snapshots for a creator, oldest first."""
        pass  # pragma: no cover

    def get_by_name(self, first_name: str, last_name: str | None) -> Creator | None:
        """Return the single creator with this name, or None if zero or many."""
        matches = self.find_by_name(first_name, last_name)
        if len(matches) == 1:
            return matches[0]
        return None
