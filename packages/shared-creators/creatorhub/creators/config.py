"""Configuration models for creator sync and enrichment runs."""

from __future__ import annotations

import os
from enum import Enum

from pydantic import BaseModel, Field


class RunType(str, Enum):
    """Kinds of runs. At most one run of each kind may be in flight."""

    SAMPLE_SYNC = "sample_sync"
    ENRICHMENT = "enrichment"
    FULL_REFRESH = "full_refresh"  # Sample sync followed by enrichment


class StopReason(str, Enum):
    """Why a paginated or batched run stopped."""

    COMPLETED = "completed"  # Batch exhausted normally
    TOKEN_ABSENT = "token_absent"  # Feed returned no continuation token
    PAGE_CAP = "page_cap"  # Configured page limit reached
    API_ERROR = "api_error"  # Unrecoverable API error
    QUOTA_EXCEEDED = "quota_exceeded"
    STOPPED = "stopped"  # Cooperative stop or time budget exhausted


class EnrichmentSettings(BaseModel):
    """Tunables for sample sync and marketplace enrichment.

    Passed explicitly into the client, scheduler and ingestor constructors.
    """

    api_base_url: str = "https://open-api.tiktokglobalshop.com"
    access_token: str | None = Field(default=None, repr=False)
    shop_cipher: str | None = None
    timeout: float = 30.0

    # With a 10k/day quota and 4 runs/day, 2000 per run leaves headroom
    batch_size: int = Field(default=2000, gt=0)
    api_delay_ms: int = Field(default=300, ge=0)
    daily_request_quota: int = Field(default=10_000, gt=0)
    quota_exceeded_codes: frozenset[int] = frozenset()

    staleness_days: int = Field(default=7, gt=0)
    sample_priority_days: int = Field(default=30, gt=0)

    page_size: int = Field(default=100, gt=0)
    sample_sync_pages: int = Field(default=50, gt=0)
    max_run_seconds: float = 3600.0

    default_country: str = "US"
    enrichment_source: str = "marketplace_api"

    @property
    def api_delay_seconds(self) -> float:
        """Minimum delay between successive API calls, in seconds."""
        return self.api_delay_ms / 1000

    @classmethod
    def from_env(cls) -> EnrichmentSettings:
        """Load settings from environment variables."""
        defaults = cls()
        return cls(
            api_base_url=os.getenv("CREATORHUB_API_BASE_URL", defaults.api_base_url),
            access_token=os.getenv("CREATORHUB_ACCESS_TOKEN"),
            shop_cipher=os.getenv("CREATORHUB_SHOP_CIPHER"),
            batch_size=int(os.getenv("CREATORHUB_BATCH_SIZE", defaults.batch_size)),
            api_delay_ms=int(os.getenv("CREATORHUB_API_DELAY_MS", defaults.api_delay_ms)),
            daily_request_quota=int(
                os.getenv("CREATORHUB_DAILY_QUOTA", defaults.daily_request_quota)
            ),
            staleness_days=int(
                os.getenv("CREATORHUB_STALENESS_DAYS", defaults.staleness_days)
            ),
            sample_sync_pages=int(
                os.getenv("CREATORHUB_SAMPLE_SYNC_PAGES", defaults.sample_sync_pages)
            ),
        )
