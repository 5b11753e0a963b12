"""Identity signal and match result models.

Identity signals are the partial, possibly masked pieces of identity that an
order feed record carries about a creator. A matcher turns signals into a
``MatchResult``.

Examples:
    Signals from a sample order with a masked phone:
        >>> signals = IdentitySignals(
        ...     raw_or_masked_phone="(+1)808*****50",
        ...     display_name="Jane Doe",
        ...     external_user_id="7493000000001",
        ... )
        >>> signals.phone_is_masked
        True
        >>> signals.first_name, signals.last_name
        ('Jane', 'Doe')
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from creatorhub.creators.masking import is_masked, normalize_phone, parse_name
from creatorhub.creators.models import Creator


class MatchOutcome(str, Enum):
    """Outcome of a single matcher or a full resolution."""

    MATCH = "match"
    """Exactly one stored creator fits the signals"""

    AMBIGUOUS = "ambiguous"
    """The signal was usable but did not single out one creator"""

    NO_SIGNAL = "no_signal"
    """The matcher had nothing to work with; try the next one"""

    NOT_FOUND = "not_found"
    """No matcher produced a definitive result"""

    @property
    def is_definitive(self) -> bool:
        """Return True if evaluation should stop at this outcome."""
        return self in (MatchOutcome.MATCH, MatchOutcome.AMBIGUOUS)


@dataclass
class IdentitySignals:
    """Identity evidence about one creator from an external record.

    Attributes:
        raw_or_masked_phone: Phone exactly as received, possibly masked.
        display_name: Recipient name as received, possibly masked.
        external_user_id: Stable third-party user id, if known.
    """

    raw_or_masked_phone: str | None = None
    display_name: str | None = None
    external_user_id: str | None = None

    @property
    def phone(self) -> str | None:
        """Normalised phone (E.164 when unmasked), or None if malformed."""
        return normalize_phone(self.raw_or_masked_phone)

    @property
    def phone_is_masked(self) -> bool:
        """True when a phone was received but is redacted."""
        return bool(self.raw_or_masked_phone) and is_masked(self.raw_or_masked_phone)

    @property
    def first_name(self) -> str | None:
        return parse_name(self.display_name)[0]

    @property
    def last_name(self) -> str | None:
        return parse_name(self.display_name)[1]

    @classmethod
    def from_recipient(
        cls, recipient: dict[str, Any] | None, user_id: str | None = None
    ) -> IdentitySignals:
        """Build signals from an order's ``recipient_address`` object."""
        recipient = recipient or {}
        return cls(
            raw_or_masked_phone=recipient.get("phone_number") or None,
            display_name=recipient.get("name") or None,
            external_user_id=user_id or None,
        )


@dataclass
class MatchResult:
    """Result of matching identity signals against stored creators.

    ``creator`` is only set when ``outcome`` is ``MATCH``.
    """

    outcome: MatchOutcome
    creator: Creator | None = None
    matched_by: str | None = None
    candidates: list[Creator] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.outcome == MatchOutcome.MATCH

    @classmethod
    def match(cls, creator: Creator, matched_by: str) -> MatchResult:
        return cls(MatchOutcome.MATCH, creator=creator, matched_by=matched_by)

    @classmethod
    def ambiguous(cls, matched_by: str, candidates: list[Creator] | None = None) -> MatchResult:
        return cls(MatchOutcome.AMBIGUOUS, matched_by=matched_by, candidates=candidates or [])

    @classmethod
    def no_signal(cls) -> MatchResult:
        return cls(MatchOutcome.NO_SIGNAL)

    @classmethod
    def not_found(cls) -> MatchResult:
        return cls(MatchOutcome.NOT_FOUND)
