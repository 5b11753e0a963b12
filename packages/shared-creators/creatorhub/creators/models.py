"""Creator and snapshot records.

A ``Creator`` is one real-world content creator tracked as a CRM identity.
``PerformanceSnapshot`` is a date-keyed, insert-only measurement of a
creator's marketplace metrics.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any

from creatorhub.creators.money import parse_money_cents


class SnapshotSource(str, Enum):
    """Where a performance snapshot's numbers came from."""

    MARKETPLACE_API = "marketplace_api"
    TIKTOK_API = "tiktok_api"
    REFUNNEL = "refunnel"
    MANUAL = "manual"
    CSV_IMPORT = "csv_import"


# Identity and contact fields: only ever filled, never overwritten
CONTACT_FIELDS = (
    "phone",
    "first_name",
    "last_name",
    "address_line_1",
    "city",
    "state",
    "zipcode",
    "country",
)

# Metric fields: overwritten on every successful enrichment
METRIC_FIELDS = (
    "follower_count",
    "total_gmv_cents",
    "video_gmv_cents",
    "avg_video_views",
    "nickname",
    "avatar_url",
    "last_enriched_at",
    "enrichment_source",
)


@dataclass
class Creator:
    """A deduplicated creator profile.

    Attributes:
        id: Stable internal identifier, assigned by the store.
        handle: Marketplace username; unique case-insensitively.
        external_user_id: Stable third-party user id. Set at most once.
        phone: E.164 phone number.
        phone_verified: True when the phone came from an unmasked source.
        last_sample_at: Most recent sample-order activity, used to
            prioritise enrichment.
    """

    id: int | None = None
    handle: str | None = None
    external_user_id: str | None = None
    brand_id: str | None = None

    # Contact
    phone: str | None = None
    phone_verified: bool = False
    first_name: str | None = None
    last_name: str | None = None
    address_line_1: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    country: str | None = None

    # Marketplace metrics (cached from latest enrichment)
    nickname: str | None = None
    avatar_url: str | None = None
    follower_count: int | None = None
    total_gmv_cents: int = 0
    video_gmv_cents: int = 0
    avg_video_views: int | None = None

    # Enrichment tracking
    last_enriched_at: datetime | None = None
    enrichment_source: str | None = None
    last_sample_at: datetime | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        """First and last name joined by a space."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict[str, Any]:
        """Return all attributes as a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def field_names(cls) -> frozenset[str]:
        """Names of all writable attributes."""
        return frozenset(f.name for f in fields(cls))


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Point-in-time creator metrics, unique per key.

    The identity key is ``(creator_id, snapshot_date, source)``. ``brand_id``
    records which brand's run wrote the row; it is not part of the key.
    """

    creator_id: int
    snapshot_date: date
    source: SnapshotSource = SnapshotSource.MARKETPLACE_API
    brand_id: str | None = None

    follower_count: int | None = None
    gmv_cents: int | None = None
    video_gmv_cents: int | None = None
    avg_video_views: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> tuple[int, date, str]:
        """Uniqueness key used for idempotent upserts."""
        return (self.creator_id, self.snapshot_date, self.source.value)


@dataclass
class MarketplaceProfile:
    """A creator as returned by the marketplace search API.

    Currency amounts are parsed to integer cents on construction from the
    raw API candidate.
    """

    username: str
    nickname: str | None = None
    avatar_url: str | None = None
    follower_count: int | None = None
    gmv_cents: int | None = None
    video_gmv_cents: int | None = None
    avg_video_views: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_candidate(cls, candidate: dict[str, Any]) -> MarketplaceProfile:
        """Build a profile from one marketplace search candidate."""
        avatar = candidate.get("avatar") or {}
        return cls(
            username=candidate.get("username") or "",
            nickname=candidate.get("nickname"),
            avatar_url=avatar.get("url") if isinstance(avatar, dict) else None,
            follower_count=_as_int(candidate.get("follower_count")),
            gmv_cents=parse_money_cents(candidate.get("gmv")),
            video_gmv_cents=parse_money_cents(candidate.get("video_gmv")),
            avg_video_views=_as_int(candidate.get("avg_ec_video_view_count")),
            raw=candidate,
        )


def _as_int(value: Any) -> int | None:
    """Coerce API integers that may arrive as strings."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
