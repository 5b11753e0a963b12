"""CreatorHub creator identity resolution and enrichment.

This package keeps one deduplicated record per real-world creator:
- Sample orders from the shop's order feed link creators to their
  marketplace user id, matching on masked or partial identity signals
- Marketplace enrichment refreshes cached metrics and writes dated
  performance snapshots
- Runs are paced, quota-bounded and never overwrite verified contact data

Example:
    from creatorhub.creators import (
        EnrichmentJob,
        EnrichmentSettings,
        InMemoryCreatorStore,
        ShopApiClient,
    )

    settings = EnrichmentSettings.from_env()
    store = InMemoryCreatorStore()

    with ShopApiClient(settings) as api:
        job = EnrichmentJob(store, api, settings)
        submission = job.perform(batch_size=500, sample_sync_pages=10)

    print(submission.stats.counters())
"""

from creatorhub.creators.client import (
    MarketplaceClient,
    Pacer,
    QuotaBudget,
    RequestExecutor,
    ShopApiClient,
    find_exact_match,
)
from creatorhub.creators.config import EnrichmentSettings, RunType, StopReason
from creatorhub.creators.enrichment import CreatorEnricher, EnrichmentScheduler
from creatorhub.creators.exceptions import (
    AuthenticationError,
    CreatorSyncError,
    ExternalApiError,
    QuotaExceededError,
    RateLimitedError,
    TransientExternalError,
    ValidationError,
)
from creatorhub.creators.identity import (
    IdentitySignals,
    MatchOutcome,
    MatchResolver,
    MatchResult,
)
from creatorhub.creators.ingest import OrderFeedPager, SourceIngestor
from creatorhub.creators.merge import MergeDecision, MergePolicy, should_update_field
from creatorhub.creators.models import (
    Creator,
    MarketplaceProfile,
    PerformanceSnapshot,
    SnapshotSource,
)
from creatorhub.creators.runs import EnrichmentJob, RunRegistry, RunSubmission
from creatorhub.creators.snapshots import SnapshotRecorder
from creatorhub.creators.stats import (
    LoggingSink,
    ObservabilitySink,
    RunStats,
    StatsAggregator,
)
from creatorhub.creators.store import (
    BigQueryCreatorStore,
    CreatorStore,
    InMemoryCreatorStore,
)

__all__ = [
    # Models
    "Creator",
    "MarketplaceProfile",
    "PerformanceSnapshot",
    "SnapshotSource",
    # Config
    "EnrichmentSettings",
    "RunType",
    "StopReason",
    # Exceptions
    "AuthenticationError",
    "CreatorSyncError",
    "ExternalApiError",
    "QuotaExceededError",
    "RateLimitedError",
    "TransientExternalError",
    "ValidationError",
    # Store
    "BigQueryCreatorStore",
    "CreatorStore",
    "InMemoryCreatorStore",
    # Identity
    "IdentitySignals",
    "MatchOutcome",
    "MatchResolver",
    "MatchResult",
    # Merge and snapshots
    "MergeDecision",
    "MergePolicy",
    "SnapshotRecorder",
    "should_update_field",
    # Client
    "MarketplaceClient",
    "Pacer",
    "QuotaBudget",
    "RequestExecutor",
    "ShopApiClient",
    "find_exact_match",
    # Runs
    "CreatorEnricher",
    "EnrichmentJob",
    "EnrichmentScheduler",
    "LoggingSink",
    "ObservabilitySink",
    "OrderFeedPager",
    "RunRegistry",
    "RunStats",
    "RunSubmission",
    "SourceIngestor",
    "StatsAggregator",
]
