"""Tests for creatorhub.creators.identity."""

from __future__ import annotations

from unittest.mock import MagicMock

from creatorhub.creators.identity import (
    IdentitySignals,
    MatchOutcome,
    MatchResolver,
    MatchResult,
    match_exact_phone,
    match_external_user_id,
    match_masked_phone,
    match_name,
)


class TestIdentitySignals:
    """Tests for IdentitySignals."""

    def test_masked_phone(self) -> None:
        """Test masked phone detection and name parsing."""
        signals = IdentitySignals(
            raw_or_masked_phone="(+1)808*****50",
            display_name="Jane Doe",
        )
        assert signals.phone_is_masked is True
        assert signals.first_name == "Jane"
        assert signals.last_name == "Doe"

    def test_unmasked_phone(self) -> None:
        """Test unmasked phones normalise to E.164."""
        signals = IdentitySignals(raw_or_masked_phone="(+1)8085551234")
        assert signals.phone_is_masked is False
        assert signals.phone == "+18085551234"

    def test_absent_phone_is_not_masked(self) -> None:
        """Test a missing phone is not reported as masked."""
        assert IdentitySignals().phone_is_masked is False

    def test_from_recipient(self) -> None:
        """Test building signals from a recipient address."""
        signals = IdentitySignals.from_recipient(
            {"name": "Jane Doe", "phone_number": "", "address_line1": "1 Main St"},
            user_id="u1",
        )
        assert signals.raw_or_masked_phone is None
        assert signals.display_name == "Jane Doe"
        assert signals.external_user_id == "u1"

    def test_from_missing_recipient(self) -> None:
        """Test a missing recipient yields empty signals."""
        signals = IdentitySignals.from_recipient(None)
        assert signals == IdentitySignals()


class TestMatchers:
    """Tests for the individual matcher strategies."""

    def test_external_user_id(self, store) -> None:
        """Test lookup by external user id."""
        creator = store.create({"external_user_id": "u1"})
        result = match_external_user_id(IdentitySignals(external_user_id="u1"), store)
        assert result.is_match
        assert result.creator.id == creator.id
        assert result.matched_by == "external_user_id"

    def test_external_user_id_unknown(self, store) -> None:
        """Test an unknown user id lets the next matcher run."""
        result = match_external_user_id(IdentitySignals(external_user_id="u9"), store)
        assert result.outcome == MatchOutcome.NO_SIGNAL

    def test_exact_phone(self, store) -> None:
        """Test exact E.164 phone lookup."""
        creator = store.create({"phone": "+18085551234"})
        result = match_exact_phone(IdentitySignals(raw_or_masked_phone="808-555-1234"), store)
        assert result.is_match
        assert result.creator.id == creator.id

    def test_exact_phone_skips_masked(self, store) -> None:
        """Test masked phones are left to the masked matcher."""
        store.create({"phone": "+1808*****50"})
        result = match_exact_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****50"), store)
        assert result.outcome == MatchOutcome.NO_SIGNAL

    def test_exact_phone_malformed(self, store) -> None:
        """Test malformed phones are no signal."""
        result = match_exact_phone(IdentitySignals(raw_or_masked_phone="abc"), store)
        assert result.outcome == MatchOutcome.NO_SIGNAL

    def test_masked_phone_single_candidate(self, store) -> None:
        """Test one candidate for a masked phone is a match."""
        store.create({"phone": "+1808*****50"})
        target = store.create({"phone": "+1808*****99"})

        result = match_masked_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****99"), store)

        assert result.is_match
        assert result.creator.id == target.id
        assert result.matched_by == "masked_phone"

    def test_masked_phone_several_candidates(self, store) -> None:
        """Test several candidates are ambiguous."""
        store.create({"phone": "+18085551250"})
        store.create({"phone": "+18087771250"})

        result = match_masked_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****50"), store)

        assert result.outcome == MatchOutcome.AMBIGUOUS
        assert result.creator is None
        assert len(result.candidates) == 2

    def test_masked_phone_ignores_area_code_elsewhere(self, store) -> None:
        """Test a number containing the area code after another one is not a candidate."""
        store.create({"phone": "+12128085550"})
        target = store.create({"phone": "+18085551250"})

        result = match_masked_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****50"), store)

        assert result.is_match
        assert result.creator.id == target.id

    def test_masked_phone_no_candidates(self, store) -> None:
        """Test a usable masked phone with no candidates is ambiguous."""
        result = match_masked_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****50"), store)
        assert result.outcome == MatchOutcome.AMBIGUOUS

    def test_masked_phone_limits_candidates(self) -> None:
        """Test at most five candidates are fetched."""
        store = MagicMock()
        store.find_by_phone_pattern.return_value = []

        match_masked_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****50"), store)

        store.find_by_phone_pattern.assert_called_once_with("808", "50", limit=5)

    def test_masked_phone_weak_fragment(self, store) -> None:
        """Test a fragment with one trailing digit is no signal."""
        result = match_masked_phone(IdentitySignals(raw_or_masked_phone="(+1)808*****5"), store)
        assert result.outcome == MatchOutcome.NO_SIGNAL

    def test_name(self, store) -> None:
        """Test case-insensitive name match."""
        creator = store.create({"first_name": "Jane", "last_name": "Doe"})
        result = match_name(IdentitySignals(display_name="JANE  doe"), store)
        assert result.is_match
        assert result.creator.id == creator.id

    def test_name_duplicates_are_ambiguous(self, store) -> None:
        """Test two creators with the same name are ambiguous."""
        store.create({"first_name": "Jane", "last_name": "Doe"})
        store.create({"first_name": "Jane", "last_name": "Doe"})
        result = match_name(IdentitySignals(display_name="Jane Doe"), store)
        assert result.outcome == MatchOutcome.AMBIGUOUS

    def test_name_rejects_masked_and_initials(self, store) -> None:
        """Test masked names and single-letter first names are ignored."""
        store.create({"first_name": "J", "last_name": "Doe"})
        assert match_name(IdentitySignals(display_name="J*** D**"), store).outcome == MatchOutcome.NO_SIGNAL
        assert match_name(IdentitySignals(display_name="J Doe"), store).outcome == MatchOutcome.NO_SIGNAL
        assert match_name(IdentitySignals(display_name="Jane D**"), store).outcome == MatchOutcome.NO_SIGNAL
        assert match_name(IdentitySignals(), store).outcome == MatchOutcome.NO_SIGNAL


class TestMatchResolver:
    """Tests for MatchResolver."""

    def test_masked_phone_determinism(self, store) -> None:
        """Test masked phones resolve only to the single fitting creator."""
        store.create({"phone": "+1808*****50"})
        second = store.create({"phone": "+1808*****99"})
        resolver = MatchResolver(store)

        result = resolver.resolve(IdentitySignals(raw_or_masked_phone="(+1)808*****99"))

        assert result.is_match
        assert result.creator.id == second.id

    def test_ambiguous_stops_before_name(self, store) -> None:
        """Test an ambiguous phone is final even if the name would match."""
        store.create({"phone": "+18085551250", "first_name": "Jane", "last_name": "Doe"})
        store.create({"phone": "+18087771250"})
        resolver = MatchResolver(store)

        result = resolver.resolve(
            IdentitySignals(raw_or_masked_phone="(+1)808*****50", display_name="Jane Doe")
        )

        assert result.outcome == MatchOutcome.AMBIGUOUS
        assert result.is_match is False

    def test_priority_order(self, store) -> None:
        """Test the external user id wins over phone."""
        by_user = store.create({"external_user_id": "u1"})
        store.create({"phone": "+18085551234"})
        resolver = MatchResolver(store)

        result = resolver.resolve(
            IdentitySignals(raw_or_masked_phone="(+1)8085551234", external_user_id="u1")
        )

        assert result.creator.id == by_user.id
        assert result.matched_by == "external_user_id"

    def test_falls_through_to_name(self, store) -> None:
        """Test a name match is used when phones give no signal."""
        creator = store.create({"first_name": "Jane", "last_name": "Doe"})
        resolver = MatchResolver(store)

        result = resolver.resolve(IdentitySignals(display_name="Jane Doe"))

        assert result.creator.id == creator.id
        assert result.matched_by == "name"

    def test_not_found(self, store) -> None:
        """Test no definitive matcher means not found."""
        result = MatchResolver(store).resolve(IdentitySignals(display_name="Jane Doe"))
        assert result.outcome == MatchOutcome.NOT_FOUND

    def test_custom_matchers(self, store) -> None:
        """Test matchers can be replaced."""
        creator = store.create({"handle": "janedoe"})
        matcher = MagicMock(return_value=MatchResult.match(creator, "custom"))

        result = MatchResolver(store, matchers=[matcher]).resolve(IdentitySignals())

        assert result.matched_by == "custom"
        matcher.assert_called_once()
