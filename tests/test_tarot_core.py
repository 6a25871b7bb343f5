"""Tests for tarotgemini.tarot_core — catalog, spreads and the draw engine."""

import random
from types import SimpleNamespace

import pytest

from tarotgemini import tarot_core
from tarotgemini.tarot_core import (
    ArcanaType,
    Card,
    InvalidParameterError,
    InvalidSpreadError,
    SpreadDefinition,
    SpreadPosition,
    Suit,
)


class TestCatalog:

    def test_full_deck_has_78_unique_cards(self):
        deck = tarot_core.get_full_deck()
        assert len(deck) == 78
        assert len({c.id for c in deck}) == 78

    def test_suit_present_only_for_minor_arcana(self):
        for card in tarot_core.get_full_deck():
            if card.arcana_type is ArcanaType.MAJOR:
                assert card.suit is None
            else:
                assert card.suit in set(Suit)

    def test_majors_only(self):
        majors = tarot_core.get_full_deck(include_minor=False)
        assert len(majors) == 22
        assert majors[0].name == "El Loco"
        assert majors[19].name == "El Sol"

    def test_minor_names(self):
        names = {c.name for c in tarot_core.get_full_deck()}
        assert "As de Copas" in names
        assert "Rey de Oros" in names
        assert "Sota de Espadas" in names

    def test_get_card_unknown_id(self):
        with pytest.raises(InvalidParameterError):
            tarot_core.get_card(999)

    def test_major_card_cannot_have_suit(self):
        with pytest.raises(InvalidParameterError):
            Card(id=100, name="X", arcana_type=ArcanaType.MAJOR, suit=Suit.CUPS,
                 image_name="x", upright_meaning="a", reversed_meaning="b")

    def test_minor_card_needs_suit(self):
        with pytest.raises(InvalidParameterError):
            Card(id=101, name="Y", arcana_type=ArcanaType.MINOR, suit=None,
                 image_name="y", upright_meaning="a", reversed_meaning="b")


class TestSpreads:

    def test_registry(self):
        ids = [s.id for s in tarot_core.list_spreads()]
        assert ids == ["single", "three_card", "five_card", "celtic_cross"]

    def test_three_card_positions(self):
        spread = tarot_core.get_spread("three_card")
        assert spread.card_count == 3
        assert [p.meaning for p in spread.positions] == ["Energías actuales", "El problema", "La solución"]
        assert [p.grid.col for p in spread.positions] == [0, 1, 2]

    def test_unknown_spread(self):
        with pytest.raises(InvalidSpreadError):
            tarot_core.get_spread("nope")

    def test_positions_must_be_dense(self):
        with pytest.raises(InvalidSpreadError):
            SpreadDefinition(id="bad", name="Bad", card_count=2,
                             positions=(SpreadPosition(0, "a"), SpreadPosition(2, "b")))

    def test_card_count_must_be_positive(self):
        with pytest.raises(InvalidSpreadError):
            SpreadDefinition(id="empty", name="Empty", card_count=0, positions=())


class TestDraw:

    @pytest.mark.parametrize("spread_id", ["single", "three_card", "five_card", "celtic_cross"])
    def test_draw_completeness(self, spread_id):
        spread = tarot_core.get_spread(spread_id)
        for seed in range(20):
            drawn = tarot_core.draw_cards(tarot_core.get_full_deck(), spread, seed=seed)
            assert len(drawn) == spread.card_count
            assert len({d.card.id for d in drawn}) == spread.card_count
            assert sorted(d.position for d in drawn) == list(range(spread.card_count))

    def test_positions_follow_spread_order(self):
        spread = tarot_core.get_spread("three_card")
        drawn = tarot_core.draw_cards(tarot_core.get_full_deck(), spread, seed=3)
        assert [d.position for d in drawn] == [0, 1, 2]
        assert [d.position_meaning for d in drawn] == [p.meaning for p in spread.positions]

    def test_catalog_too_small_returns_empty(self):
        spread = tarot_core.get_spread("celtic_cross")
        catalog = tarot_core.get_full_deck()[:9]
        assert tarot_core.draw_cards(catalog, spread, seed=1) == []

    def test_empty_catalog_returns_empty(self):
        assert tarot_core.draw_cards([], tarot_core.get_spread("single")) == []

    def test_exact_size_catalog_uses_every_card(self):
        spread = tarot_core.get_spread("three_card")
        catalog = tarot_core.get_full_deck()[:3]
        drawn = tarot_core.draw_cards(catalog, spread, seed="x")
        assert {d.card.id for d in drawn} == {c.id for c in catalog}

    def test_draw_does_not_copy_or_mutate_cards(self):
        catalog = tarot_core.get_full_deck()
        before = list(catalog)
        drawn = tarot_core.draw_cards(catalog, tarot_core.get_spread("five_card"), seed=11)
        assert catalog == before
        for d in drawn:
            assert d.card is tarot_core.get_card(d.card.id)

    def test_same_seed_same_draw(self):
        spread = tarot_core.get_spread("celtic_cross")
        a = tarot_core.draw_cards(tarot_core.get_full_deck(), spread, seed="demo")
        b = tarot_core.draw_cards(tarot_core.get_full_deck(), spread, seed="demo")
        assert a == b

    def test_orientation_is_a_fair_coin(self):
        spread = tarot_core.get_spread("single")
        rng = random.Random(1234)
        trials = 4000
        reversed_count = sum(
            tarot_core.draw_cards(tarot_core.get_full_deck(), spread, rng=rng)[0].is_reversed
            for _ in range(trials)
        )
        # sd = sqrt(0.25 / 4000) ~ 0.0079; 0.04 is about five sd
        assert abs(reversed_count / trials - 0.5) < 0.04

    def test_orientation_prob_extremes(self):
        spread = tarot_core.get_spread("five_card")
        deck = tarot_core.get_full_deck()
        assert all(d.is_reversed for d in tarot_core.draw_cards(deck, spread, seed=1, orientation_prob=1.0))
        assert not any(d.is_reversed for d in tarot_core.draw_cards(deck, spread, seed=1, orientation_prob=0.0))

    def test_invalid_orientation_prob(self):
        with pytest.raises(InvalidParameterError):
            tarot_core.draw_cards(tarot_core.get_full_deck(), tarot_core.get_spread("single"), orientation_prob=1.5)

    def test_missing_positions_fall_back_to_draw_index(self):
        # Duck-typed spread that breaks the dense-positions invariant
        spread = SimpleNamespace(id="loose", card_count=3, positions=(SpreadPosition(0, "Primera"),))
        drawn = tarot_core.draw_cards(tarot_core.get_full_deck(), spread, seed=5)
        assert [(d.position, d.position_meaning) for d in drawn] == [(0, "Primera"), (1, ""), (2, "")]

    def test_drawn_card_meaning_follows_orientation(self):
        sun = tarot_core.get_card(19)
        upright = tarot_core.DrawnCard(card=sun, is_reversed=False, position=0, position_meaning="")
        reversed_ = tarot_core.DrawnCard(card=sun, is_reversed=True, position=0, position_meaning="")
        assert upright.meaning == sun.upright_meaning
        assert upright.orientation_label == "Normal"
        assert reversed_.meaning == sun.reversed_meaning
        assert reversed_.orientation_label == "Invertida"
        assert reversed_.to_dict()["orientation"] == "reversed"
