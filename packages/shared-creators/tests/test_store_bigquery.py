"""Tests for creatorhub.creators.store.bigquery."""

from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import MagicMock, patch

import pytest
from creatorhub.creators.exceptions import ValidationError
from creatorhub.creators.models import PerformanceSnapshot
from creatorhub.creators.store.bigquery import BigQueryCreatorStore


def _job(rows=None, affected=None) -> MagicMock:
    """Mock query job whose result() yields rows."""
    result = MagicMock()
    result.__iter__.return_value = iter(rows or [])
    result.num_dml_affected_rows = affected
    job = MagicMock()
    job.result.return_value = result
    return job


def _params(call) -> dict:
    """Query parameters of a client.query call, by name."""
    job_config = call.kwargs["job_config"]
    return {p.name: p.value for p in job_config.query_parameters}


@pytest.fixture
def bq_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def bq_store(bq_client) -> BigQueryCreatorStore:
    return BigQueryCreatorStore(project_id="test-project", client=bq_client)


class TestBigQueryCreatorStoreSetup:
    """Tests for client and table setup."""

    def test_lazy_client(self) -> None:
        """Test the client is created on first use."""
        with patch("google.cloud.bigquery.Client") as mock_client:
            store = BigQueryCreatorStore(project_id="test-project")
            mock_client.assert_not_called()

            client = store.client

            mock_client.assert_called_once_with(project="test-project")
            assert client is mock_client.return_value

    def test_table_ids(self, bq_store) -> None:
        """Test fully qualified table ids."""
        assert bq_store.creators_table_id == "test-project.creatorhub.creators"
        assert bq_store.snapshots_table_id == (
            "test-project.creatorhub.creator_performance_snapshots"
        )

    def test_ensure_tables_exist(self, bq_store, bq_client) -> None:
        """Test both tables are created if missing."""
        bq_store.ensure_tables_exist()

        assert bq_client.query.call_count == 2
        sql = [call.args[0] for call in bq_client.query.call_args_list]
        assert "test-project.creatorhub.creators" in sql[0]
        assert "creator_performance_snapshots" in sql[1]
        assert all("CREATE TABLE IF NOT EXISTS" in s for s in sql)

    def test_ensure_tables_exist_with_default_client(self, mock_bigquery_client) -> None:
        """Test setup goes through the lazily created client."""
        store = BigQueryCreatorStore(project_id="test-project", dataset="brand_x")

        store.ensure_tables_exist()

        assert mock_bigquery_client.query.call_count == 2
        assert "test-project.brand_x.creators" in mock_bigquery_client.query.call_args_list[0].args[0]


class TestBigQueryLookups:
    """Tests for creator lookups."""

    def test_get_by_handle(self, bq_store, bq_client) -> None:
        """Test handle lookup is case-insensitive and ignores extra columns."""
        bq_client.query.return_value = _job(
            rows=[{"id": 7, "handle": "JaneDoe", "ingested_at": "ignored"}]
        )

        creator = bq_store.get_by_handle("@JaneDoe")

        assert creator.id == 7
        assert creator.handle == "JaneDoe"
        call = bq_client.query.call_args
        assert "LOWER(handle) = @handle" in call.args[0]
        assert _params(call) == {"handle": "janedoe"}

    def test_get_missing(self, bq_store, bq_client) -> None:
        """Test an empty result returns None."""
        bq_client.query.return_value = _job(rows=[])
        assert bq_store.get(99) is None

    def test_find_by_phone_pattern(self, bq_store, bq_client) -> None:
        """Test masked phone fragments become a LIKE pattern anchored after +1."""
        bq_client.query.return_value = _job(rows=[{"id": 1}, {"id": 2}])

        creators = bq_store.find_by_phone_pattern("808", "50")

        assert [c.id for c in creators] == [1, 2]
        call = bq_client.query.call_args
        assert "phone LIKE @pattern" in call.args[0]
        assert "LIMIT 5" in call.args[0]
        assert _params(call) == {"pattern": "+1808%50"}

    def test_list_enrichment_candidates(self, bq_store, bq_client, now) -> None:
        """Test eligibility and ordering are pushed down to SQL."""
        bq_client.query.return_value = _job(rows=[{"id": 3, "handle": "janedoe"}])

        creators = bq_store.list_enrichment_candidates(now, now, 25)

        assert [c.id for c in creators] == [3]
        call = bq_client.query.call_args
        assert "ORDER BY" in call.args[0]
        assert "STRPOS(handle, '*') = 0" in call.args[0]
        assert int(_params(call)["limit"]) == 25


class TestBigQueryWrites:
    """Tests for guarded creator writes."""

    def test_create(self, bq_store, bq_client) -> None:
        """Test a guarded insert returns the new creator."""
        bq_client.query.return_value = _job(affected=1)

        creator = bq_store.create({"handle": "janedoe", "external_user_id": "u1"})

        assert creator.id > 0
        assert creator.handle == "janedoe"
        sql = bq_client.query.call_args.args[0]
        assert "INSERT INTO" in sql
        assert "NOT EXISTS" in sql
        params = _params(bq_client.query.call_args)
        assert params["guard_handle"] == "janedoe"
        assert params["guard_external_user_id"] == "u1"

    def test_create_duplicate(self, bq_store, bq_client) -> None:
        """Test a guarded insert that wrote nothing is a uniqueness violation."""
        bq_client.query.return_value = _job(affected=0)
        with pytest.raises(ValidationError):
            bq_store.create({"handle": "janedoe"})

    def test_create_unknown_field(self, bq_store, bq_client) -> None:
        """Test unknown columns are rejected before querying."""
        with pytest.raises(ValidationError, match="Unknown creator fields"):
            bq_store.create({"favourite_colour": "blue"})
        bq_client.query.assert_not_called()

    def test_update(self, bq_store, bq_client) -> None:
        """Test update then re-read of the creator."""
        bq_client.query.side_effect = [
            _job(affected=1),
            _job(rows=[{"id": 7, "city": "Hilo"}]),
        ]

        updated = bq_store.update(7, {"city": "Hilo"})

        assert updated.city == "Hilo"
        update_call = bq_client.query.call_args_list[0]
        assert "UPDATE" in update_call.args[0]
        assert "city = @city" in update_call.args[0]
        assert int(_params(update_call)["id"]) == 7

    def test_update_not_applied(self, bq_store, bq_client) -> None:
        """Test an update that touched no rows fails."""
        bq_client.query.return_value = _job(affected=0)
        with pytest.raises(ValidationError):
            bq_store.update(7, {"external_user_id": "u1"})


class TestBigQuerySnapshots:
    """Tests for snapshot storage."""

    def test_upsert_snapshot_uses_merge(self, bq_store, bq_client) -> None:
        """Test snapshots are written with MERGE on the full key."""
        bq_client.query.return_value = _job()
        snapshot = PerformanceSnapshot(
            creator_id=42, snapshot_date=date(2026, 2, 20), follower_count=10
        )

        bq_store.upsert_snapshot(snapshot)

        call = bq_client.query.call_args
        assert call.args[0].strip().startswith("MERGE")
        params = _params(call)
        assert int(params["creator_id"]) == 42
        assert str(params["snapshot_date"]) == "2026-02-20"
        assert params["source"] == "marketplace_api"
        assert params["brand_id"] is None
        assert int(params["follower_count"]) == 10

    def test_upsert_snapshot_matches_without_brand(self, bq_store, bq_client) -> None:
        """Test the MERGE key is creator, date and source; the brand is only updated."""
        bq_client.query.return_value = _job()
        bq_store.upsert_snapshot(
            PerformanceSnapshot(creator_id=42, snapshot_date=date(2026, 2, 20), brand_id="b1")
        )

        sql = bq_client.query.call_args.args[0]
        on_clause = sql.split(" ON ", 1)[1].split("WHEN MATCHED", 1)[0]
        assert "brand_id" not in on_clause
        assert "target.creator_id = src.creator_id" in on_clause
        assert "brand_id = COALESCE(src.brand_id, target.brand_id)" in sql
        assert _params(bq_client.query.call_args)["brand_id"] == "b1"

    def test_list_snapshots(self, bq_store, bq_client) -> None:
        """Test snapshot rows are converted."""
        bq_client.query.return_value = _job(
            rows=[
                {
                    "brand_id": None,
                    "creator_id": 42,
                    "snapshot_date": date(2026, 2, 20),
                    "source": "marketplace_api",
                    "follower_count": 10,
                    "created_at": datetime(2026, 2, 20, tzinfo=UTC),
                }
            ]
        )

        snapshots = bq_store.list_snapshots(42)

        assert len(snapshots) == 1
        assert snapshots[0].key == (42, date(2026, 2, 20), "marketplace_api")
        assert snapshots[0].brand_id is None
        assert snapshots[0].follower_count == 10
