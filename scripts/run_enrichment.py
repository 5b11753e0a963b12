#!/usr/bin/env python3
"""Run creator sync and enrichment by hand against BigQuery.

This script:
1. Loads settings from CREATORHUB_* environment variables
2. Ensures the creator tables exist in CREATORHUB_GCP_PROJECT
3. Runs a full refresh (sample order sync, then enrichment), or enriches a
   single creator when a handle is given

Usage:
    python scripts/run_enrichment.py            # full refresh
    python scripts/run_enrichment.py janedoe    # one creator
"""

import logging
import os
import sys

from creatorhub.creators import (
    BigQueryCreatorStore,
    CreatorEnricher,
    EnrichmentJob,
    EnrichmentSettings,
    MarketplaceClient,
    Pacer,
    QuotaBudget,
    ShopApiClient,
)


def get_store():
    """Create the BigQuery creator store."""
    project_id = os.getenv("CREATORHUB_GCP_PROJECT")
    if not project_id:
        raise SystemExit("CREATORHUB_GCP_PROJECT is not set")
    store = BigQueryCreatorStore(
        project_id=project_id,
        dataset=os.getenv("CREATORHUB_DATASET", "creatorhub"),
    )
    store.ensure_tables_exist()
    return store


def run_full_refresh(settings):
    """Sync sample orders, then enrich a batch."""
    print("=" * 60)
    print("Full refresh")
    print("=" * 60)

    store = get_store()
    with ShopApiClient(settings) as api:
        job = EnrichmentJob(store, api, settings)
        submission = job.perform(brand_id=os.getenv("CREATORHUB_BRAND_ID"))

    if not submission.accepted:
        print("\nA full refresh is already running")
        return

    stats = submission.stats
    print(f"\nStopped: {stats.stop_reason.value if stats.stop_reason else 'n/a'}")
    for name, value in stats.counters().items():
        print(f"  {name:16} {value}")
    print(f"\nRequests left today: {job.quota.remaining()}")


def enrich_one(settings, handle):
    """Enrich a single creator by handle."""
    print("=" * 60)
    print(f"Enriching @{handle}")
    print("=" * 60)

    store = get_store()
    creator = store.get_by_handle(handle)
    if creator is None:
        print(f"\nNo creator with handle @{handle}")
        return

    with ShopApiClient(settings) as api:
        marketplace = MarketplaceClient(
            api, Pacer(settings.api_delay_seconds), QuotaBudget(settings.daily_request_quota)
        )
        updated = CreatorEnricher(store, marketplace, settings).enrich_single(creator)

    if updated is None:
        print(f"\n@{handle} not found in the marketplace")
        return

    print(f"\n  Followers:       {updated.follower_count}")
    print(f"  Total GMV:       ${updated.total_gmv_cents / 100:,.2f}")
    print(f"  Video GMV:       ${updated.video_gmv_cents / 100:,.2f}")
    print(f"  Avg video views: {updated.avg_video_views}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    settings = EnrichmentSettings.from_env()

    if len(sys.argv) > 1:
        enrich_one(settings, sys.argv[1])
    else:
        run_full_refresh(settings)
