"""Tests for the alternate-name codec."""

from __future__ import annotations

from axonkit.adapters.mock import friend, member
from axonkit.identity.codec import (
    alternate_name,
    collision_set,
    effective_name,
    id_tail,
    match_alternate_name,
    matches,
    split_alternate_name,
)

TOM_A = friend(11234, "Tom")
TOM_B = friend(25678, "Tom")
ANN = friend(30001, "Ann")
FRIENDS = [TOM_A, TOM_B, ANN]


class TestCollisionSet:
    def test_duplicates_and_empty_name(self) -> None:
        assert collision_set(FRIENDS) == frozenset({"Tom", ""})

    def test_empty_scope_still_contains_empty_name(self) -> None:
        assert collision_set([]) == frozenset({""})

    def test_card_takes_precedence(self) -> None:
        members = [member(1, 1, "Tom", card="Tommy"), member(1, 2, "Tom")]
        assert "Tom" not in collision_set(members)


class TestAlternateName:
    def test_colliding_names_get_suffix(self) -> None:
        collisions = collision_set(FRIENDS)
        assert alternate_name(TOM_A, collisions) == "Tom#1234"
        assert alternate_name(TOM_B, collisions) == "Tom#5678"

    def test_unique_name_unchanged(self) -> None:
        assert alternate_name(ANN, collision_set(FRIENDS)) == "Ann"

    def test_empty_name_always_suffixed(self) -> None:
        nameless = friend(90042, "")
        assert alternate_name(nameless, collision_set([nameless])) == "#0042"

    def test_short_id_uses_whole_id(self) -> None:
        a, b = friend(42, "Tom"), friend(7, "Tom")
        assert alternate_name(a, collision_set([a, b])) == "Tom#42"

    def test_effective_name_prefers_card(self) -> None:
        assert effective_name(member(1, 2, "Eve", card="Evie")) == "Evie"
        assert effective_name(member(1, 2, "Eve")) == "Eve"

    def test_id_tail(self) -> None:
        assert id_tail(123456789) == "6789"
        assert id_tail(5) == "5"


class TestSplit:
    def test_suffixed(self) -> None:
        assert split_alternate_name("Tom#1234") == ("Tom", "1234")

    def test_plain(self) -> None:
        assert split_alternate_name("Tom") == ("Tom", None)

    def test_too_many_digits_is_not_a_suffix(self) -> None:
        assert split_alternate_name("Tom#12345") == ("Tom#12345", None)

    def test_name_containing_separator(self) -> None:
        assert split_alternate_name("a#b#0042") == ("a#b", "0042")


class TestMatchAlternateName:
    def test_round_trip_for_every_identity(self) -> None:
        collisions = collision_set(FRIENDS)
        for identity in FRIENDS:
            text = alternate_name(identity, collisions)
            assert match_alternate_name(FRIENDS, text, collisions) == identity

    def test_ambiguous_bare_name_does_not_resolve(self) -> None:
        assert match_alternate_name(FRIENDS, "Tom", collision_set(FRIENDS)) is None

    def test_wrong_tail_does_not_resolve(self) -> None:
        assert match_alternate_name(FRIENDS, "Tom#9999", collision_set(FRIENDS)) is None

    def test_unknown_name(self) -> None:
        assert match_alternate_name(FRIENDS, "Zed", collision_set(FRIENDS)) is None

    def test_name_that_looks_suffixed(self) -> None:
        droid = friend(1000, "R2#42")
        identities = [droid, ANN]
        assert match_alternate_name(identities, "R2#42", collision_set(identities)) == droid

    def test_first_match_wins_when_tails_collide(self) -> None:
        a, b = friend(11234, "Tom"), friend(21234, "Tom")
        identities = [a, b]
        assert match_alternate_name(identities, "Tom#1234", collision_set(identities)) == a


class TestMatches:
    def test_bare_name_matches_every_namesake(self) -> None:
        assert [f for f in FRIENDS if matches(f, "Tom")] == [TOM_A, TOM_B]

    def test_suffixed_name_matches_one(self) -> None:
        assert [f for f in FRIENDS if matches(f, "Tom#5678")] == [TOM_B]
