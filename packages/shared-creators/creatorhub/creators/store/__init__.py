"""Creator storage backends.

Example:
    from creatorhub.creators.store import InMemoryCreatorStore

    store = InMemoryCreatorStore()
    creator = store.create({"handle": "janedoe"})
"""

from creatorhub.creators.store.base import (
    CreatorStore,
    enrichment_priority,
    has_usable_handle,
    is_enrichment_eligible,
)
from creatorhub.creators.store.bigquery import BigQueryCreatorStore
from creatorhub.creators.store.memory import InMemoryCreatorStore

__all__ = [
    "BigQueryCreatorStore",
    "CreatorStore",
    "InMemoryCreatorStore",
    "enrichment_priority",
    "has_usable_handle",
    "is_enrichment_eligible",
]
