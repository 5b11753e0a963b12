"""Creator identity resolution.

Matches partial and masked identity signals (phone, name, third-party user
id) from order feeds to stored creators without ever guessing between
equally plausible candidates.

Example:
    from creatorhub.creators.identity import IdentitySignals, MatchResolver

    resolver = MatchResolver(store)
    result = resolver.resolve(
        IdentitySignals(
            raw_or_masked_phone="(+1)808*****50",
            display_name="Jane Doe",
        )
    )
    if result.is_match:
        print(f"Matched creator {result.creator.id} by {result.matched_by}")
"""

from creatorhub.creators.identity.matchers import (
    DEFAULT_MATCHERS,
    Matcher,
    match_exact_phone,
    match_external_user_id,
    match_masked_phone,
    match_name,
)
from creatorhub.creators.identity.resolver import MatchResolver
from creatorhub.creators.identity.signals import (
    IdentitySignals,
    MatchOutcome,
    MatchResult,
)

__all__ = [
    "DEFAULT_MATCHERS",
    "IdentitySignals",
    "MatchOutcome",
    "MatchResolver",
    "MatchResult",
    "Matcher",
    "match_exact_phone",
    "match_external_user_id",
    "match_masked_phone",
    "match_name",
]
