"""Matcher strategies for creator identity resolution.

Each matcher is a plain function ``(signals, store) -> MatchResult`` covering
one rule. Matchers never guess: when a signal is usable but points at zero or
several creators they answer ``AMBIGUOUS``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from creatorhub.creators.identity.signals import IdentitySignals, MatchResult
from creatorhub.creators.masking import is_masked, parse_masked_phone
from creatorhub.creators.store.base import CreatorStore

logger = logging.getLogger(__name__)

Matcher = Callable[[IdentitySignals, CreatorStore], MatchResult]

# Candidates fetched for a masked phone; more than one is already ambiguous
MASKED_PHONE_CANDIDATE_LIMIT = 5


def match_external_user_id(signals: IdentitySignals, store: CreatorStore) -> MatchResult:
    """Exact lookup by third-party user id."""
    if not signals.external_user_id:
        return MatchResult.no_signal()
    creator = store.get_by_external_user_id(signals.external_user_id)
    if creator is None:
        return MatchResult.no_signal()
    return MatchResult.match(creator, "external_user_id")


def match_exact_phone(signals: IdentitySignals, store: CreatorStore) -> MatchResult:
    """Exact lookup by normalised E.164 phone, for unmasked phones only."""
    if signals.phone_is_masked:
        return MatchResult.no_signal()
    phone = signals.phone
    if phone is None:
        return MatchResult.no_signal()
    creator = store.get_by_phone(phone)
    if creator is None:
        return MatchResult.no_signal()
    return MatchResult.match(creator, "phone")


def match_masked_phone(signals: IdentitySignals, store: CreatorStore) -> MatchResult:
    """Wildcard lookup using the visible fragments of a masked phone.

    ``"(+1)808*****50"`` searches for stored phones like ``+1808%50``. A single
    candidate is a match; zero or several are ambiguous.
    """
    if not signals.phone_is_masked:
        return MatchResult.no_signal()
    fragments = parse_masked_phone(signals.raw_or_masked_phone)
    if fragments is None:
        return MatchResult.no_signal()

    area_code, trailing = fragments
    candidates = store.find_by_phone_pattern(
        area_code, trailing, limit=MASKED_PHONE_CANDIDATE_LIMIT
    )
    if len(candidates) == 1:
        return MatchResult.match(candidates[0], "masked_phone")

    logger.debug(
        f"Masked phone {signals.raw_or_masked_phone} matched "
        f"{len(candidates)} creators, not linking"
    )
    return MatchResult.ambiguous("masked_phone", candidates)


def match_name(signals: IdentitySignals, store: CreatorStore) -> MatchResult:
    """Exact normalised first+last name lookup.

    Only used for unmasked names whose first name is longer than one
    character.
    """
    first_name = signals.first_name
    last_name = signals.last_name
    if is_masked(first_name) or len(first_name or "") <= 1:
        return MatchResult.no_signal()
    if last_name is not None and is_masked(last_name):
        return MatchResult.no_signal()

    candidates = store.find_by_name(first_name, last_name)
    if not candidates:
        return MatchResult.no_signal()
    if len(candidates) == 1:
        return MatchResult.match(candidates[0], "name")
    return MatchResult.ambiguous("name", candidates)


DEFAULT_MATCHERS: tuple[Matcher, ...] = (
    match_external_user_id,
    match_exact_phone,
    match_masked_phone,
    match_name,
)
