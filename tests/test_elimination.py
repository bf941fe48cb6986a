"""Unit tests for the elimination engine."""

import unittest

import elimination
import hanabi_state
import hanabi_variants

VARIANT = hanabi_variants.get_variant("No Variant")


def _id(text: str) -> hanabi_variants.Identity:
    return VARIANT.parse_card(text)


def _ids(*texts: str) -> frozenset[hanabi_variants.Identity]:
    return frozenset(_id(t) for t in texts)


def _make_state(
    hands: list[list[str]],
    play_stacks: list[int] | None = None,
    discarded: list[str] | None = None,
) -> hanabi_state.GameState:
    """Helper to deal explicit hands, with player 0 as us.

    Args:
        hands: Short notation per player, slot 1 first.
        play_stacks: Highest rank played per suit.
        discarded: Short notation of discarded cards.

    Returns:
        A GameState after the deal, before any elimination.
    """
    names = ["Alice", "Bob", "Cathy"][:len(hands)]
    state = hanabi_state.GameState.create(VARIANT, names, 0)
    if play_stacks is not None:
        state.play_stacks = list(play_stacks)
    state.discard_pile = [_id(t) for t in discarded or []]
    order = 0
    for player_index, hand in enumerate(hands):
        for text in reversed(hand):
            state.on_draw(hanabi_state.DrawAction(player_index, order, _id(text)))
            order += 1
    return state


def _clue_card(
    state: hanabi_state.GameState,
    order: int,
    inferred: frozenset[hanabi_variants.Identity],
) -> None:
    """Mark a card clued and set its inference in every perspective."""
    state.find_card(order)[1].clued = True
    state.infer(order, inferred)


OUR_HAND = ["xx"] * 5
BOB_HAND = ["r1", "y2", "g3", "b4", "p5"]


class TestPrimitives(unittest.TestCase):

    def test_fix_identity(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        elimination.fix_identity(state, 4, _id("g2"))
        for table in state.tables:
            self.assertEqual(table[4].possible, _ids("g2"))
            self.assertEqual(table[4].inferred, _ids("g2"))

    def test_eliminate(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        changes = elimination.eliminate(state, _id("r1"), [3, 4])
        self.assertEqual(changes, 2 * len(state.tables))
        self.assertNotIn(_id("r1"), state.common[3].possible)
        self.assertIn(_id("r1"), state.common[2].possible)

    def test_eliminate_leaves_certain_cards(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        elimination.fix_identity(state, 4, _id("r1"))
        self.assertEqual(elimination.eliminate(state, _id("r1"), [4]), 0)
        self.assertEqual(state.common[4].known, _id("r1"))


class TestCardElim(unittest.TestCase):
    """Copy-counting elimination."""

    def test_last_copy_visible_to_us_only(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        elimination.team_elim(state)
        for card in state.our_hand:
            self.assertNotIn(_id("p5"), state.me[card.order].possible)
            self.assertIn(_id("p5"), state.common[card.order].possible)
        # Bob cannot see his own p5.
        self.assertIn(_id("p5"), state.players[1][5].possible)

    def test_discarded_copies(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND], discarded=["g4", "g4"])
        elimination.team_elim(state)
        for _, card in state.all_cards():
            for table in state.tables:
                self.assertNotIn(_id("g4"), table[card.order].possible)

    def test_played_and_discarded_copies(self) -> None:
        state = _make_state(
            [OUR_HAND, BOB_HAND], play_stacks=[2, 0, 0, 0, 0],
            discarded=["r2"],
        )
        elimination.team_elim(state)
        self.assertNotIn(_id("r2"), state.common[0].possible)
        self.assertIn(_id("r1"), state.common[0].possible)

    def test_cascade(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        state.common[0] = hanabi_state.Thought.unknown(_ids("r5", "y5"))
        state.common[1] = hanabi_state.Thought.certain(_id("r5"))
        state.common[2] = hanabi_state.Thought.unknown(_ids("y5", "g5"))
        elimination.card_elim(state, state.common)
        self.assertEqual(state.common[0].possible, _ids("y5"))
        self.assertEqual(state.common[2].possible, _ids("g5"))
        self.assertEqual(state.common[1].possible, _ids("r5"))
        self.assertNotIn(_id("g5"), state.common[3].possible)

    def test_fixed_point(self) -> None:
        state = _make_state(
            [OUR_HAND, BOB_HAND], discarded=["y3", "b1", "b1"],
        )
        self.assertGreater(elimination.team_elim(state), 0)
        self.assertEqual(elimination.team_elim(state), 0)
        for table in state.tables:
            for order in table.thoughts:
                self.assertLessEqual(table[order].inferred, table[order].possible)


class TestGoodTouchElim(unittest.TestCase):
    """Good-touch elimination on clued cards."""

    def test_removes_played_identity(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND], play_stacks=[1, 0, 0, 0, 0])
        _clue_card(state, 4, _ids("r1", "y1"))
        elimination.team_elim(state)
        self.assertEqual(state.me[4].inferred, _ids("y1"))
        self.assertEqual(state.common[4].inferred, _ids("y1"))
        self.assertIn(_id("r1"), state.me[4].possible)

    def test_removes_identity_claimed_by_another_clued_card(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        _clue_card(state, 8, _ids("y2"))
        _clue_card(state, 4, _ids("y2", "b2"))
        elimination.team_elim(state)
        self.assertEqual(state.common[4].inferred, _ids("b2"))
        self.assertEqual(state.me[4].inferred, _ids("b2"))

    def test_visible_claim_used_for_own_hand(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND])
        state.find_card(8)[1].clued = True
        _clue_card(state, 4, _ids("y2", "b2"))
        elimination.good_touch_elim(state, state.me)
        elimination.good_touch_elim(state, state.common)
        self.assertEqual(state.me[4].inferred, _ids("b2"))
        self.assertEqual(state.common[4].inferred, _ids("y2", "b2"))

    def test_never_empties_inference(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND], play_stacks=[2, 0, 0, 0, 0])
        _clue_card(state, 4, _ids("r1", "r2"))
        elimination.good_touch_elim(state, state.me)
        self.assertEqual(state.me[4].inferred, _ids("r1", "r2"))

    def test_unclued_cards_untouched(self) -> None:
        state = _make_state([OUR_HAND, BOB_HAND], play_stacks=[1, 0, 0, 0, 0])
        state.infer(3, _ids("r1", "y1"))
        elimination.good_touch_elim(state, state.me)
        self.assertEqual(state.me[3].inferred, _ids("r1", "y1"))


if __name__ == "__main__":
    unittest.main()
