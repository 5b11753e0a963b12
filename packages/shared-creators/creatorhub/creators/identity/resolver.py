"""Creator identity resolution.

Resolves partial identity signals to an existing creator by running an
ordered list of matcher strategies until one gives a definitive answer.

Example:
    >>> resolver = MatchResolver(store)
    >>> result = resolver.resolve(
    ...     IdentitySignals(raw_or_masked_phone="(+1)808*****99")
    ... )
    >>> if result.is_match:
    ...     print(result.creator.id, result.matched_by)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from creatorhub.creators.identity.matchers import DEFAULT_MATCHERS, Matcher
from creatorhub.creators.identity.signals import IdentitySignals, MatchOutcome, MatchResult
from creatorhub.creators.store.base import CreatorStore

logger = logging.getLogger(__name__)


class MatchResolver:
    """Resolve identity signals to at most one stored creator.

    Matchers run in priority order (external user id, exact phone, masked
    phone, name). The first ``MATCH`` or ``AMBIGUOUS`` result wins. When no
    matcher is definitive the outcome is ``NOT_FOUND``.

    The resolver never returns a creator when several are equally
    plausible; callers treat ``AMBIGUOUS`` exactly like ``NOT_FOUND``.
    """

    def __init__(
        self,
        store: CreatorStore,
        matchers: Sequence[Matcher] = DEFAULT_MATCHERS,
    ):
        """Initialize the resolver.

        Args:
            store: Creator store to look candidates up in.
            matchers: Matcher strategies in priority order.
        """
        self.store = store
        self.matchers = tuple(matchers)

    def resolve(self, signals: IdentitySignals) -> MatchResult:
        """Resolve signals to a creator.

        Args:
            signals: Identity signals; any subset may be absent.

        Returns:
            A ``MatchResult`` with outcome MATCH, AMBIGUOUS or NOT_FOUND.
        """
        for matcher in self.matchers:
            result = matcher(signals, self.store)
            if result.outcome.is_definitive:
                if result.outcome == MatchOutcome.AMBIGUOUS:
                    logger.info(
                        f"Ambiguous {result.matched_by} match "
                        f"({len(result.candidates)} candidates), treating as not found"
                    )
                return result
        return MatchResult.not_found()
