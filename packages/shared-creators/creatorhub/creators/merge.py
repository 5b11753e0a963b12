"""Non-destructive merge policy for creator records.

Incoming data from order feeds is untrusted and often masked. Contact and
identity fields follow a waterfall rule: a value is only written when the
stored value is empty or masked AND the incoming value is present and
unmasked. Verified data is therefore never overwritten, and applying the
same merge twice changes nothing the second time.

Example:
    >>> policy = MergePolicy()
    >>> existing = Creator(id=1, phone="+18085551234", first_name=None)
    >>> policy.contact_updates(existing, {"phone": "(+1)808*****34", "first_name": "Jane"})
    {'first_name': 'Jane'}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from creatorhub.creators.masking import has_value, is_masked
from creatorhub.creators.models import CONTACT_FIELDS, Creator, MarketplaceProfile

logger = logging.getLogger(__name__)


def should_update_field(current: Any, incoming: Any) -> bool:
    """Return True if ``incoming`` may replace ``current``.

    The stored value must be empty or masked, and the incoming value must be
    present and unmasked.
    """
    has_new = has_value(incoming) and not (isinstance(incoming, str) and is_masked(incoming))
    needs_update = not has_value(current) or (isinstance(current, str) and is_masked(current))
    return has_new and needs_update


@dataclass
class MergeDecision:
    """Attribute diff produced by the merge policy.

    Attributes:
        changes: Minimal set of attributes to write; may be empty.
        already_linked: True when the creator already carries an external
            user id, so no link was made.
        conflicting_user_id: Incoming user id that differs from the stored
            one, if any.
    """

    changes: dict[str, Any] = field(default_factory=dict)
    already_linked: bool = False
    conflicting_user_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.changes


class MergePolicy:
    """Compute safe attribute updates for existing or new creators.

    Example:
        >>> policy = MergePolicy(default_country="US")
        >>> decision = policy.link(creator, "7493000000001", contact)
        >>> if not decision.already_linked:
        ...     store.update(creator.id, decision.changes)
    """

    def __init__(
        self,
        default_country: str | None = "US",
        enrichment_source: str = "marketplace_api",
    ):
        """Initialize the merge policy.

        Args:
            default_country: Country written on new creators when the feed
                has none.
            enrichment_source: Tag stored on creators refreshed by enrichment.
        """
        self.default_country = default_country
        self.enrichment_source = enrichment_source

    def contact_updates(
        self, existing: Creator | None, incoming: dict[str, Any]
    ) -> dict[str, Any]:
        """Return contact fields from ``incoming`` that may be written.

        ``phone_verified`` is set alongside a phone only when the phone
        itself is applied.
        """
        changes: dict[str, Any] = {}
        for name in CONTACT_FIELDS:
            current = getattr(existing, name) if existing is not None else None
            value = incoming.get(name)
            if should_update_field(current, value):
                changes[name] = value.strip() if isinstance(value, str) else value

        if "phone" in changes:
            changes["phone_verified"] = True
        return changes

    def link(
        self,
        existing: Creator,
        external_user_id: str,
        incoming: dict[str, Any],
    ) -> MergeDecision:
        """Link an external user id to a matched creator and backfill contact.

        The external user id is only ever set once. A creator that already
        carries one is reported as already linked, whether or not the ids
        agree, and no changes are made.
        """
        if existing.external_user_id:
            conflicting = None
            if existing.external_user_id != external_user_id:
                conflicting = external_user_id
                logger.warning(
                    f"Creator {existing.id} has different external_user_id: "
                    f"{existing.external_user_id} vs {external_user_id}"
                )
            return MergeDecision(already_linked=True, conflicting_user_id=conflicting)

        changes = {"external_user_id": external_user_id}
        changes.update(self.contact_updates(existing, incoming))
        return MergeDecision(changes=changes)

    def creation_attrs(
        self, external_user_id: str | None, incoming: dict[str, Any]
    ) -> dict[str, Any]:
        """Attributes for a new creator, seeded only from unmasked fields."""
        attrs = self.contact_updates(None, incoming)
        if external_user_id:
            attrs["external_user_id"] = external_user_id
        if "country" not in attrs and self.default_country:
            attrs["country"] = self.default_country
        return attrs

    def metric_updates(
        self,
        profile: MarketplaceProfile,
        enriched_at: datetime | None = None,
        skip_avatar: bool = False,
    ) -> dict[str, Any]:
        """Overwrite attributes for metric fields refreshed by enrichment.

        Metrics are not subject to the fill-missing rule: the latest
        marketplace numbers always win. Absent metrics are left untouched.
        """
        attrs: dict[str, Any] = {
            "last_enriched_at": enriched_at or datetime.now(UTC),
            "enrichment_source": self.enrichment_source,
        }
        if profile.follower_count is not None:
            attrs["follower_count"] = profile.follower_count
        if profile.nickname and not is_masked(profile.nickname):
            attrs["nickname"] = profile.nickname
        if profile.avatar_url and not skip_avatar:
            attrs["avatar_url"] = profile.avatar_url
        if profile.gmv_cents is not None:
            attrs["total_gmv_cents"] = profile.gmv_cents
        if profile.video_gmv_cents is not None:
            attrs["video_gmv_cents"] = profile.video_gmv_cents
        if profile.avg_video_views is not None:
            attrs["avg_video_views"] = profile.avg_video_views
        return attrs
