"""Tests for creatorhub.creators.models."""

from __future__ import annotations

from datetime import date

from creatorhub.creators.models import (
    Creator,
    MarketplaceProfile,
    PerformanceSnapshot,
    SnapshotSource,
)


class TestCreator:
    """Tests for the Creator record."""

    def test_defaults(self) -> None:
        """Test a new creator has no identity and zero GMV."""
        creator = Creator()
        assert creator.id is None
        assert creator.phone_verified is False
        assert creator.total_gmv_cents == 0
        assert creator.last_enriched_at is None

    def test_full_name(self) -> None:
        """Test full_name skips missing parts."""
        assert Creator(first_name="Jane", last_name="Doe").full_name == "Jane Doe"
        assert Creator(first_name="Jane").full_name == "Jane"
        assert Creator().full_name == ""

    def test_to_dict_and_field_names(self) -> None:
        """Test every field is exported."""
        data = Creator(id=3, handle="janedoe").to_dict()
        assert data["id"] == 3
        assert data["handle"] == "janedoe"
        assert set(data) == Creator.field_names()


class TestPerformanceSnapshot:
    """Tests for PerformanceSnapshot."""

    def test_key(self) -> None:
        """Test the uniqueness key leaves out the brand."""
        snapshot = PerformanceSnapshot(
            creator_id=42,
            snapshot_date=date(2026, 2, 20),
            brand_id="pavoi",
        )
        assert snapshot.key == (42, date(2026, 2, 20), "marketplace_api")

    def test_metadata_not_compared(self) -> None:
        """Test metadata does not affect equality."""
        a = PerformanceSnapshot(42, date(2026, 2, 20), metadata={"run": 1})
        b = PerformanceSnapshot(42, date(2026, 2, 20), metadata={"run": 2})
        assert a == b

    def test_source_values(self) -> None:
        """Test snapshot sources round-trip from their string value."""
        assert SnapshotSource("manual") is SnapshotSource.MANUAL


class TestMarketplaceProfile:
    """Tests for MarketplaceProfile.from_candidate."""

    def test_from_candidate(self, marketplace_candidate) -> None:
        """Test metrics and currency are parsed from a candidate."""
        profile = MarketplaceProfile.from_candidate(marketplace_candidate("janedoe"))

        assert profile.username == "janedoe"
        assert profile.nickname == "Janedoe"
        assert profile.avatar_url == "https://cdn.example.com/janedoe.jpg"
        assert profile.follower_count == 12500
        assert profile.gmv_cents == 12345
        assert profile.video_gmv_cents == 2000
        assert profile.avg_video_views == 3400

    def test_string_counts_and_missing_fields(self) -> None:
        """Test numeric strings are coerced and absent fields stay None."""
        profile = MarketplaceProfile.from_candidate(
            {"username": "x", "follower_count": "77", "avatar": None}
        )
        assert profile.follower_count == 77
        assert profile.avatar_url is None
        assert profile.gmv_cents is None
        assert profile.avg_video_views is None

    def test_non_usd_gmv_ignored(self) -> None:
        """Test GMV in another currency is not stored."""
        profile = MarketplaceProfile.from_candidate(
            {"username": "x", "gmv": {"amount": "10.00", "currency": "GBP"}}
        )
        assert profile.gmv_cents is None
