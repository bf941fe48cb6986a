"""Unit tests for hanabi_variants identity space and clue rules."""

import unittest

from hanabi_variants import (
    Clue,
    ClueType,
    Identity,
    Suit,
    Variant,
    get_variant,
)


def colour(value: int) -> Clue:
    return Clue(ClueType.COLOUR, value)


def rank(value: int) -> Clue:
    return Clue(ClueType.RANK, value)


class TestIdentity(unittest.TestCase):
    """Tests for the Identity value type."""

    def test_ordering(self) -> None:
        ids = [Identity(1, 1), Identity(0, 5), Identity(0, 2)]
        self.assertEqual(
            sorted(ids), [Identity(0, 2), Identity(0, 5), Identity(1, 1)],
        )

    def test_hashable_and_equal(self) -> None:
        self.assertEqual(len({Identity(0, 1), Identity(0, 1)}), 1)

    def test_next(self) -> None:
        self.assertEqual(Identity(2, 3).next(), Identity(2, 4))

    def test_matches(self) -> None:
        self.assertTrue(Identity(3, 4).matches(3, 4))
        self.assertFalse(Identity(3, 4).matches(4, 3))


class TestSuitFlags(unittest.TestCase):
    """Suit properties derived from the suit name."""

    def test_plain_suit(self) -> None:
        suit = Suit.from_name("Red")
        self.assertTrue(suit.colour_cluable)
        self.assertFalse(suit.dark)

    def test_rainbow(self) -> None:
        suit = Suit.from_name("Rainbow")
        self.assertTrue(suit.all_colours)
        self.assertFalse(suit.colour_cluable)

    def test_dark_rainbow(self) -> None:
        suit = Suit.from_name("Dark Rainbow")
        self.assertTrue(suit.all_colours)
        self.assertTrue(suit.dark)

    def test_null(self) -> None:
        suit = Suit.from_name("Null")
        self.assertTrue(suit.no_colour)
        self.assertTrue(suit.no_ranks)

    def test_black_is_dark(self) -> None:
        self.assertTrue(Suit.from_name("Black").dark)


class TestVariant(unittest.TestCase):
    """Tests for Variant construction and identity counts."""

    def test_no_variant_counts(self) -> None:
        variant = get_variant("No Variant")
        self.assertEqual(len(variant.all_identities), 25)
        self.assertEqual(variant.total_cards, 50)
        self.assertEqual(variant.max_score, 25)
        self.assertEqual(variant.card_count(Identity(0, 1)), 3)
        self.assertEqual(variant.card_count(Identity(0, 3)), 2)
        self.assertEqual(variant.card_count(Identity(0, 5)), 1)

    def test_six_suits(self) -> None:
        variant = get_variant("6 Suits")
        self.assertEqual(variant.total_cards, 60)
        self.assertEqual(variant.max_score, 30)

    def test_dark_suit_has_single_copies(self) -> None:
        variant = get_variant("Black (5 Suits)")
        self.assertEqual(variant.card_count(Identity(4, 1)), 1)
        self.assertEqual(variant.card_count(Identity(4, 3)), 1)
        self.assertEqual(variant.total_cards, 45)

    def test_too_few_suits(self) -> None:
        with self.assertRaises(ValueError):
            Variant.from_suit_names("Tiny", ["Red", "Blue", "Green"])

    def test_too_many_suits(self) -> None:
        with self.assertRaises(ValueError):
            Variant.from_suit_names(
                "Huge",
                ["Red", "Yellow", "Green", "Blue", "Purple", "Teal", "Black"],
            )

    def test_unknown_variant(self) -> None:
        with self.assertRaises(KeyError):
            get_variant("Nonexistent")


class TestClueRules(unittest.TestCase):
    """Which clues touch which identities."""

    def test_plain_colour_and_rank(self) -> None:
        variant = get_variant("No Variant")
        self.assertTrue(variant.touches(Identity(0, 3), colour(0)))
        self.assertFalse(variant.touches(Identity(1, 3), colour(0)))
        self.assertTrue(variant.touches(Identity(1, 3), rank(3)))
        self.assertFalse(variant.touches(Identity(1, 3), rank(2)))

    def test_rainbow_touched_by_every_colour(self) -> None:
        variant = get_variant("Rainbow (5 Suits)")
        for value in variant.colour_clue_values:
            self.assertTrue(variant.touches(Identity(4, 2), colour(value)))
        self.assertNotIn(4, variant.colour_clue_values)

    def test_pink_touched_by_every_rank(self) -> None:
        variant = get_variant("Pink (5 Suits)")
        for value in range(1, 6):
            self.assertTrue(variant.touches(Identity(4, 1), rank(value)))
        self.assertTrue(variant.touches(Identity(4, 1), colour(4)))

    def test_white_touched_by_no_colour(self) -> None:
        variant = get_variant("White (5 Suits)")
        for value in variant.colour_clue_values:
            self.assertFalse(variant.touches(Identity(4, 2), colour(value)))
        self.assertTrue(variant.touches(Identity(4, 2), rank(2)))

    def test_colour_exempt_suit_cannot_be_named(self) -> None:
        variant = get_variant("White (5 Suits)")
        self.assertFalse(variant.is_cluable(colour(4)))
        self.assertFalse(variant.touches(Identity(4, 1), colour(4)))
        self.assertNotIn(colour(4), variant.all_clues())

    def test_brown_touched_by_no_rank(self) -> None:
        variant = get_variant("Brown (5 Suits)")
        for value in range(1, 6):
            self.assertFalse(variant.touches(Identity(4, value), rank(value)))
        self.assertTrue(variant.touches(Identity(4, 3), colour(4)))

    def test_prism_cycles_through_colours(self) -> None:
        variant = get_variant("Prism (5 Suits)")
        self.assertEqual(variant.colour_clue_values, (0, 1, 2, 3))
        self.assertTrue(variant.touches(Identity(4, 1), colour(0)))
        self.assertTrue(variant.touches(Identity(4, 2), colour(1)))
        self.assertTrue(variant.touches(Identity(4, 4), colour(3)))
        self.assertTrue(variant.touches(Identity(4, 5), colour(0)))
        self.assertFalse(variant.touches(Identity(4, 2), colour(0)))

    def test_touched_identities(self) -> None:
        variant = get_variant("No Variant")
        touched = variant.touched_identities(rank(5))
        self.assertEqual(touched, frozenset(Identity(s, 5) for s in range(5)))

    def test_all_clues(self) -> None:
        variant = get_variant("No Variant")
        clues = variant.all_clues()
        self.assertEqual(len(clues), 10)
        self.assertEqual(clues[0], colour(0))
        self.assertEqual(clues[-1], rank(5))

    def test_rank_out_of_range_not_cluable(self) -> None:
        variant = get_variant("No Variant")
        self.assertFalse(variant.is_cluable(rank(6)))


class TestNotation(unittest.TestCase):
    """Short card notation."""

    def test_abbreviations(self) -> None:
        variant = get_variant("No Variant")
        self.assertEqual(variant.abbreviations, ("r", "y", "g", "b", "p"))

    def test_abbreviations_unique(self) -> None:
        variant = get_variant("6 Suits")
        self.assertEqual(len(set(variant.abbreviations)), 6)

    def test_short(self) -> None:
        variant = get_variant("No Variant")
        self.assertEqual(variant.short(Identity(3, 4)), "b4")

    def test_parse_card(self) -> None:
        variant = get_variant("No Variant")
        self.assertEqual(variant.parse_card("g2"), Identity(2, 2))
        self.assertEqual(variant.parse_card(" P5 "), Identity(4, 5))
        self.assertIsNone(variant.parse_card("xx"))

    def test_parse_card_rejects_bad_text(self) -> None:
        variant = get_variant("No Variant")
        for text in ("q1", "r6", "r", "red1", "r0"):
            with self.assertRaises(ValueError):
                variant.parse_card(text)

    def test_clue_name(self) -> None:
        variant = get_variant("No Variant")
        self.assertEqual(variant.clue_name(colour(0)), "red")
        self.assertEqual(variant.clue_name(rank(4)), "4")


if __name__ == "__main__":
    unittest.main()
