"""Creator and snapshot storage in BigQuery.

Single-row statements only. Uniqueness of handles and external user ids is
enforced with guarded DML (``INSERT ... WHERE NOT EXISTS``), and snapshots
are written with ``MERGE`` so repeated writes for the same key update the
existing row.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from creatorhub.creators.exceptions import ValidationError
from creatorhub.creators.masking import MASKED_PHONE_PREFIX, normalize_handle, normalize_name
from creatorhub.creators.models import Creator, PerformanceSnapshot, SnapshotSource
from creatorhub.creators.store.base import CreatorStore

if TYPE_CHECKING:
    from google.cloud import bigquery

logger = logging.getLogger(__name__)

CREATE_CREATORS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS `{table_id}` (
    id INT64 NOT NULL,
    handle STRING,
    external_user_id STRING,
    brand_id STRING,
    phone STRING,
    phone_verified BOOL DEFAULT FALSE,
    first_name STRING,
    last_name STRING,
    address_line_1 STRING,
    city STRING,
    state STRING,
    zipcode STRING,
    country STRING,
    nickname STRING,
    avatar_url STRING,
    follower_count INT64,
    total_gmv_cents INT64 DEFAULT 0,
    video_gmv_cents INT64 DEFAULT 0,
    avg_video_views INT64,
    last_enriched_at TIMESTAMP,
    enrichment_source STRING,
    last_sample_at TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP(),
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP()
)
"""

CREATE_SNAPSHOTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS `{table_id}` (
    brand_id STRING,
    creator_id INT64 NOT NULL,
    snapshot_date DATE NOT NULL,
    source STRING NOT NULL,
    follower_count INT64,
    gmv_cents INT64,
    video_gmv_cents INT64,
    avg_video_views INT64,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP(),
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP()
)
"""

# BigQuery parameter types for creator columns
COLUMN_TYPES: dict[str, str] = {
    "id": "INT64",
    "handle": "STRING",
    "external_user_id": "STRING",
    "brand_id": "STRING",
    "phone": "STRING",
    "phone_verified": "BOOL",
    "first_name": "STRING",
    "last_name": "STRING",
    "address_line_1": "STRING",
    "city": "STRING",
    "state": "STRING",
    "zipcode": "STRING",
    "country": "STRING",
    "nickname": "STRING",
    "avatar_url": "STRING",
    "follower_count": "INT64",
    "total_gmv_cents": "INT64",
    "video_gmv_cents": "INT64",
    "avg_video_views": "INT64",
    "last_enriched_at": "TIMESTAMP",
    "enrichment_source": "STRING",
    "last_sample_at": "TIMESTAMP",
    "created_at": "TIMESTAMP",
    "updated_at": "TIMESTAMP",
}


def _new_creator_id() -> int:
    """Random positive INT64 id."""
    return uuid.uuid4().int >> 65


def _param_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class BigQueryCreatorStore(CreatorStore):
    """Creator storage backed by two BigQuery tables.

    Example:
        >>> store = BigQueryCreatorStore(project_id="my-project")
        >>> store.ensure_tables_exist()
        >>> creator = store.get_by_handle("janedoe")
    """

    def __init__(
        self,
        project_id: str,
        dataset: str = "creatorhub",
        client: bigquery.Client | None = None,
    ):
        """Initialize creator storage.

        Args:
            project_id: GCP project ID containing the dataset.
            dataset: Dataset holding the creators and snapshot tables.
            client: Optional BigQuery client. Will be created if not provided.
        """
        self.project_id = project_id
        self.dataset = dataset
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        """Lazy-initialize BigQuery client."""
        if self._client is None:
            from google.cloud import bigquery

            self._client = bigquery.Client(project=self.project_id)
        return self._client

    @property
    def creators_table_id(self) -> str:
        """Full table ID for the creators table."""
        return f"{self.project_id}.{self.dataset}.creators"

    @property
    def snapshots_table_id(self) -> str:
        """Full table ID for the performance snapshots table."""
        return f"{self.project_id}.{self.dataset}.creator_performance_snapshots"

    def ensure_tables_exist(self) -> None:
        """Create the creators and snapshots tables if they don't exist."""
        self.client.query(
            CREATE_CREATORS_TABLE_SQL.format(table_id=self.creators_table_id)
        ).result()
        self.client.query(
            CREATE_SNAPSHOTS_TABLE_SQL.format(table_id=self.snapshots_table_id)
        ).result()
        logger.info(f"Ensured creator tables exist in {self.project_id}.{self.dataset}")

    def _run(self, sql: str, params: list[tuple[str, str, Any]]) -> Any:
        from google.cloud import bigquery

        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter(name, type_, _param_value(value))
                for name, type_, value in params
            ]
        )
        return self.client.query(sql, job_config=job_config).result()

    def _select(
        self,
        where: str,
        params: list[tuple[str, str, Any]],
        limit: int | None = None,
    ) -> list[Creator]:
        sql = f"""
        SELECT *
        FROM `{self.creators_table_id}`
        WHERE {where}
        """
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return [self._row_to_creator(row) for row in self._run(sql, params)]

    def _select_one(self, where: str, params: list[tuple[str, str, Any]]) -> Creator | None:
        rows = self._select(where, params, limit=1)
        return rows[0] if rows else None

    def get(self, creator_id: int) -> Creator | None:
        return self._select_one("id = @id", [("id", "INT64", creator_id)])

    def get_by_phone(self, phone: str) -> Creator | None:
        return self._select_one("phone = @phone", [("phone", "STRING", phone)])

    def find_by_name(self, first_name: str, last_name: str | None) -> list[Creator]:
        return self._select(
            "LOWER(TRIM(first_name)) = @first_name "
            "AND LOWER(TRIM(IFNULL(last_name, ''))) = @last_name",
            [
                ("first_name", "STRING", normalize_name(first_name)),
                ("last_name", "STRING", normalize_name(last_name)),
            ],
        )

    def get_by_external_user_id(self, external_user_id: str) -> Creator | None:
        return self._select_one(
            "external_user_id = @external_user_id",
            [("external_user_id", "STRING", external_user_id)],
        )

    def get_by_handle(self, handle: str) -> Creator | None:
        key = normalize_handle(handle)
        if not key:
            return None
        return self._select_one("LOWER(handle) = @handle", [("handle", "STRING", key)])

    def find_by_phone_pattern(
        self, area_code: str, trailing_digits: str, limit: int = 5
    ) -> list[Creator]:
        return self._select(
            "phone LIKE @pattern",
            [("pattern", "STRING", f"{MASKED_PHONE_PREFIX}{area_code}%{trailing_digits}")],
            limit=limit,
        )

    def list_enrichment_candidates(
        self,
        stale_before: datetime,
        recent_sample_after: datetime,
        limit: int,
    ) -> list[Creator]:
        sql = f"""
        SELECT *
        FROM `{self.creators_table_id}`
        WHERE handle IS NOT NULL
          AND TRIM(handle) != ''
          AND STRPOS(handle, '*') = 0
          AND (last_enriched_at IS NULL OR last_enriched_at < @stale_before)
        ORDER BY
          IFNULL(last_sample_at > @recent_sample_after, FALSE) DESC,
          last_enriched_at IS NULL DESC,
          last_enriched_at ASC,
          total_gmv_cents DESC
        LIMIT @limit
        """
        rows = self._run(
            sql,
            [
                ("stale_before", "TIMESTAMP", stale_before),
                ("recent_sample_after", "TIMESTAMP", recent_sample_after),
                ("limit", "INT64", limit),
            ],
        )
        return [self._row_to_creator(row) for row in rows]

    def _uniqueness_guard(
        self, attrs: dict[str, Any], exclude_id: bool
    ) -> tuple[str, list[tuple[str, str, Any]]]:
        """Build a NOT EXISTS clause rejecting duplicate handles or user ids."""
        conditions = []
        params: list[tuple[str, str, Any]] = []
        if attrs.get("handle"):
            conditions.append("LOWER(handle) = @guard_handle")
            params.append(("guard_handle", "STRING", normalize_handle(attrs["handle"])))
        if attrs.get("external_user_id"):
            conditions.append("external_user_id = @guard_external_user_id")
            params.append(("guard_external_user_id", "STRING", attrs["external_user_id"]))
        if not conditions:
            return "TRUE", params

        exclusion = " AND id != @id" if exclude_id else ""
        clause = (
            f"NOT EXISTS (SELECT 1 FROM `{self.creators_table_id}` "
            f"WHERE ({' OR '.join(conditions)}){exclusion})"
        )
        return clause, params

    def _check_columns(self, attrs: dict[str, Any]) -> None:
        unknown = set(attrs) - set(COLUMN_TYPES)
        if unknown:
            raise ValidationError(f"Unknown creator fields: {', '.join(sorted(unknown))}")

    def create(self, attrs: dict[str, Any]) -> Creator:
        self._check_columns(attrs)
        now = datetime.now(UTC)
        row = {**attrs, "id": _new_creator_id(), "created_at": now, "updated_at": now}

        columns = list(row)
        guard, guard_params = self._uniqueness_guard(attrs, exclude_id=False)
        sql = f"""
        INSERT INTO `{self.creators_table_id}` ({", ".join(columns)})
        SELECT {", ".join(f"@{c}" for c in columns)}
        FROM UNNEST([1])
        WHERE {guard}
        """
        params = [(c, COLUMN_TYPES[c], row[c]) for c in columns] + guard_params

        result = self._run(sql, params)
        if (result.num_dml_affected_rows or 0) == 0:
            raise ValidationError("Handle or external user id already taken")

        logger.info(f"Created creator {row['id']}")
        return Creator(**row)

    def update(self, creator_id: int, attrs: dict[str, Any]) -> Creator:
        self._check_columns(attrs)
        values = {**attrs, "updated_at": datetime.now(UTC)}
        assignments = ", ".join(f"{c} = @{c}" for c in values)
        guard, guard_params = self._uniqueness_guard(attrs, exclude_id=True)
        sql = f"""
        UPDATE `{self.creators_table_id}`
        SET {assignments}
        WHERE id = @id AND {guard}
        """
        params = [(c, COLUMN_TYPES[c], v) for c, v in values.items()]
        params += [("id", "INT64", creator_id)] + guard_params

        result = self._run(sql, params)
        if (result.num_dml_affected_rows or 0) == 0:
            raise ValidationError(
                f"Creator {creator_id} not found or update violates uniqueness"
            )

        updated = self.get(creator_id)
        if updated is None:  # pragma: no cover
            raise ValidationError(f"Creator not found: {creator_id}")
        return updated

    def upsert_snapshot(self, snapshot: PerformanceSnapshot) -> PerformanceSnapshot:
        sql = f"""
        MERGE `{self.snapshots_table_id}` AS target
        USING (
            SELECT
                @brand_id AS brand_id,
                @creator_id AS creator_id,
                @snapshot_date AS snapshot_date,
                @source AS source
        ) AS src
        ON target.creator_id = src.creator_id
            AND target.snapshot_date = src.snapshot_date
            AND target.source = src.source
        WHEN MATCHED THEN
            UPDATE SET
                brand_id = COALESCE(src.brand_id, target.brand_id),
                follower_count = @follower_count,
                gmv_cents = @gmv_cents,
                video_gmv_cents = @video_gmv_cents,
                avg_video_views = @avg_video_views,
                updated_at = @updated_at
        WHEN NOT MATCHED THEN
            INSERT (
                brand_id, creator_id, snapshot_date, source, follower_count,
                gmv_cents, video_gmv_cents, avg_video_views, created_at, updated_at
            )
            VALUES (
                @brand_id, @creator_id, @snapshot_date, @source, @follower_count,
                @gmv_cents, @video_gmv_cents, @avg_video_views, @updated_at, @updated_at
            )
        """
        self._run(
            sql,
            [
                ("brand_id", "STRING", snapshot.brand_id),
                ("creator_id", "INT64", snapshot.creator_id),
                ("snapshot_date", "DATE", snapshot.snapshot_date.isoformat()),
                ("source", "STRING", snapshot.source.value),
                ("follower_count", "INT64", snapshot.follower_count),
                ("gmv_cents", "INT64", snapshot.gmv_cents),
                ("video_gmv_cents", "INT64", snapshot.video_gmv_cents),
                ("avg_video_views", "INT64", snapshot.avg_video_views),
                ("updated_at", "TIMESTAMP", datetime.now(UTC)),
            ],
        )
        logger.debug(f"Upserted snapshot {snapshot.key}")
        return snapshot

    def list_snapshots(self, creator_id: int) -> list[PerformanceSnapshot]:
        sql = f"""
        SELECT *
        FROM `{self.snapshots_table_id}`
        WHERE creator_id = @creator_id
        ORDER BY snapshot_date, source
        """
        rows = self._run(sql, [("creator_id", "INT64", creator_id)])
        return [self._row_to_snapshot(row) for row in rows]

    def _row_to_creator(self, row: Any) -> Creator:
        """Convert a BigQuery row to a Creator, ignoring unknown columns."""
        data = dict(row.items()) if hasattr(row, "items") else dict(row)
        return Creator(**{k: v for k, v in data.items() if k in COLUMN_TYPES})

    def _row_to_snapshot(self, row: Any) -> PerformanceSnapshot:
        """Convert a BigQuery row to a PerformanceSnapshot."""
        snapshot_date = row["snapshot_date"]
        if isinstance(snapshot_date, str):
            snapshot_date = date.fromisoformat(snapshot_date)
        return PerformanceSnapshot(
            brand_id=row.get("brand_id"),
            creator_id=row["creator_id"],
            snapshot_date=snapshot_date,
            source=SnapshotSource(row["source"]),
            follower_count=row.get("follower_count"),
            gmv_cents=row.get("gmv_cents"),
            video_gmv_cents=row.get("video_gmv_cents"),
            avg_video_views=row.get("avg_video_views"),
        )
