"""In-memory creator store.

Used by tests and local runs. Records are copied on the way in and out so
callers never mutate stored state directly.
"""

from __future__ import annotations

import itertools
import logging
import re
import threading
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from creatorhub.creators.exceptions import ValidationError
from creatorhub.creators.masking import MASKED_PHONE_PREFIX, normalize_handle, normalize_name
from creatorhub.creators.models import Creator, PerformanceSnapshot
from creatorhub.creators.store.base import (
    CreatorStore,
    enrichment_priority,
    is_enrichment_eligible,
)

logger = logging.getLogger(__name__)

_READ_ONLY_FIELDS = frozenset({"id", "created_at", "updated_at"})


class InMemoryCreatorStore(CreatorStore):
    """Thread-safe creator store backed by dictionaries.

    Example:
        >>> store = InMemoryCreatorStore()
        >>> creator = store.create({"handle": "janedoe", "phone": "+18085551234"})
        >>> store.get_by_handle("JaneDoe").id == creator.id
        True
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._creators: dict[int, Creator] = {}
        self._snapshots: dict[tuple[int, Any, str], PerformanceSnapshot] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._creators)

    def all(self) -> list[Creator]:
        """Return copies of every stored creator."""
        with self._lock:
            return [replace(c) for c in self._creators.values()]

    def _find_one(self, predicate: Any) -> Creator | None:
        with self._lock:
            for creator in self._creators.values():
                if predicate(creator):
                    return replace(creator)
        return None

    def _find_all(self, predicate: Any) -> list[Creator]:
        with self._lock:
            return [replace(c) for c in self._creators.values() if predicate(c)]

    def get(self, creator_id: int) -> Creator | None:
        with self._lock:
            creator = self._creators.get(creator_id)
            return replace(creator) if creator else None

    def get_by_phone(self, phone: str) -> Creator | None:
        return self._find_one(lambda c: c.phone == phone)

    def find_by_name(self, first_name: str, last_name: str | None) -> list[Creator]:
        first = normalize_name(first_name)
        last = normalize_name(last_name)
        return self._find_all(
            lambda c: normalize_name(c.first_name) == first
            and normalize_name(c.last_name) == last
        )

    def get_by_external_user_id(self, external_user_id: str) -> Creator | None:
        return self._find_one(lambda c: c.external_user_id == external_user_id)

    def get_by_handle(self, handle: str) -> Creator | None:
        key = normalize_handle(handle)
        if not key:
            return None
        return self._find_one(lambda c: normalize_handle(c.handle) == key)

    def find_by_phone_pattern(
        self, area_code: str, trailing_digits: str, limit: int = 5
    ) -> list[Creator]:
        # Same semantics as SQL LIKE '+1<area>%<trailing>'
        pattern = re.compile(
            rf"{re.escape(MASKED_PHONE_PREFIX + area_code)}.*{re.escape(trailing_digits)}$",
            re.DOTALL,
        )
        matches = self._find_all(lambda c: bool(c.phone and pattern.match(c.phone)))
        return matches[:limit]

    def list_enrichment_candidates(
        self,
        stale_before: datetime,
        recent_sample_after: datetime,
        limit: int,
    ) -> list[Creator]:
        eligible = self._find_all(lambda c: is_enrichment_eligible(c, stale_before))
        eligible.sort(key=lambda c: enrichment_priority(c, recent_sample_after), reverse=True)
        return eligible[:limit]

    def _check_unique(self, attrs: dict[str, Any], exclude_id: int | None) -> None:
        handle = attrs.get("handle")
        external_user_id = attrs.get("external_user_id")
        for creator in self._creators.values():
            if creator.id == exclude_id:
                continue
            if handle and normalize_handle(creator.handle) == normalize_handle(handle):
                raise ValidationError(f"Handle already taken: {handle}")
            if external_user_id and creator.external_user_id == external_user_id:
                raise ValidationError(
                    f"External user id already linked to creator {creator.id}"
                )

    def _check_fields(self, attrs: dict[str, Any]) -> None:
        unknown = set(attrs) - (Creator.field_names() - _READ_ONLY_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown creator fields: {', '.join(sorted(unknown))}")

    def create(self, attrs: dict[str, Any]) -> Creator:
        self._check_fields(attrs)
        now = datetime.now(UTC)
        with self._lock:
            self._check_unique(attrs, exclude_id=None)
            creator = Creator(**attrs)
            creator.id = next(self._ids)
            creator.created_at = now
            creator.updated_at = now
            self._creators[creator.id] = creator
            logger.debug(f"Created creator {creator.id}")
            return replace(creator)

    def update(self, creator_id: int, attrs: dict[str, Any]) -> Creator:
        self._check_fields(attrs)
        with self._lock:
            current = self._creators.get(creator_id)
            if current is None:
                raise ValidationError(f"Creator not found: {creator_id}")
            self._check_unique(attrs, exclude_id=creator_id)
            updated = replace(current, **attrs, updated_at=datetime.now(UTC))
            self._creators[creator_id] = updated
            return replace(updated)

    def upsert_snapshot(self, snapshot: PerformanceSnapshot) -> PerformanceSnapshot:
        with self._lock:
            if snapshot.creator_id not in self._creators:
                raise ValidationError(f"Creator not found: {snapshot.creator_id}")
            existing = self._snapshots.get(snapshot.key)
            if snapshot.brand_id is None and existing is not None and existing.brand_id:
                snapshot = replace(snapshot, brand_id=existing.brand_id)
            self._snapshots[snapshot.key] = snapshot
            return snapshot

    def list_snapshots(self, creator_id: int) -> list[PerformanceSnapshot]:
        with self._lock:
            rows = [s for s in self._snapshots.values() if s.creator_id == creator_id]
        return sorted(rows, key=lambda s: (s.snapshot_date, s.source.value))
