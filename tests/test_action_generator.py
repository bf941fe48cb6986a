"""Unit tests for clue scoring, urgency buckets and the turn decision."""

import unittest

import action_generator
import conventions
import hanabi_bot
import hanabi_config
import hanabi_state
import hanabi_variants

VARIANT = hanabi_variants.get_variant("No Variant")
NAMES = ["Alice", "Bob", "Cathy"]


def _id(text: str, variant: hanabi_variants.Variant = VARIANT):
    return variant.parse_card(text)


def colour(value: int) -> hanabi_variants.Clue:
    return hanabi_variants.Clue(hanabi_variants.ClueType.COLOUR, value)


def rank(value: int) -> hanabi_variants.Clue:
    return hanabi_variants.Clue(hanabi_variants.ClueType.RANK, value)


def _make_state(
    hands: list[list[str]],
    variant: hanabi_variants.Variant = VARIANT,
    **kwargs,
) -> hanabi_state.GameState:
    """Helper to enter a position with Alice (player 0) as us."""
    bot = hanabi_bot.HanabiBot.from_partial_state(
        variant, NAMES[:len(hands)], hands,
        level=hanabi_config.Level.INTERMEDIATE_FINESSES, **kwargs,
    )
    return bot.state


def _mark(
    state: hanabi_state.GameState,
    order: int,
    inferred: list[str],
    clues: list[hanabi_variants.Clue] | None = None,
    finessed: bool = False,
) -> None:
    card = state.find_card(order)[1]
    if finessed:
        card.finessed = True
    else:
        card.clued = True
        card.clues = list(clues or [])
    state.infer(order, frozenset(_id(t) for t in inferred))


def _play(order: int) -> hanabi_state.PerformAction:
    return hanabi_state.PerformAction(hanabi_state.PerformType.PLAY, order)


def _discard(order: int) -> hanabi_state.PerformAction:
    return hanabi_state.PerformAction(hanabi_state.PerformType.DISCARD, order)


# =============================================================================
# Clue value
# =============================================================================

class TestClueValue(unittest.TestCase):

    def _result(self, **kwargs) -> action_generator.ClueResult:
        return action_generator.ClueResult(**kwargs)

    def test_default_weights(self) -> None:
        result = self._result(
            new_touched=2, playables=[(1, _id("r1"))], finesses=1, elim=10,
        )
        self.assertAlmostEqual(action_generator.find_clue_value(result), 2.6)

    def test_more_is_better(self) -> None:
        base = self._result(new_touched=1, elim=4)
        value = action_generator.find_clue_value(base)
        self.assertGreater(
            action_generator.find_clue_value(self._result(new_touched=2, elim=4)),
            value,
        )
        self.assertGreater(
            action_generator.find_clue_value(
                self._result(new_touched=1, elim=4, playables=[(1, _id("g1"))]),
            ),
            value,
        )
        self.assertGreater(
            action_generator.find_clue_value(
                self._result(new_touched=1, elim=4, finesses=1),
            ),
            value,
        )

    def test_bad_touch_penalised(self) -> None:
        clean = self._result(new_touched=2)
        bad = self._result(new_touched=2, bad_touch=1)
        self.assertAlmostEqual(
            action_generator.find_clue_value(clean)
            - action_generator.find_clue_value(bad),
            2.0,
        )

    def test_custom_settings(self) -> None:
        settings = hanabi_config.ConventionSettings(elim_weight=1.0)
        result = self._result(elim=3)
        self.assertAlmostEqual(
            action_generator.find_clue_value(result, settings), 3.0,
        )

    def test_select_first_on_tie(self) -> None:
        result = self._result(new_touched=1)
        first = action_generator.CandidateClue(
            1, colour(0), result, conventions.ClueKind.PLAY, 9,
        )
        second = action_generator.CandidateClue(
            1, rank(1), result, conventions.ClueKind.PLAY, 9,
        )
        best, value = action_generator.select_play_clue([first, second])
        self.assertIs(best, first)
        self.assertAlmostEqual(value, 0.5)

    def test_select_nothing(self) -> None:
        self.assertEqual(action_generator.select_play_clue([]), (None, -99.0))


# =============================================================================
# Clue legality and simulation
# =============================================================================

class TestLegalClues(unittest.TestCase):

    def test_colour_exempt_suit(self) -> None:
        variant = hanabi_variants.get_variant("White (5 Suits)")
        state = _make_state(
            [["xx"] * 5, ["w1", "r2", "y3", "g4", "b4"]],
            variant=variant,
        )
        clues = action_generator.legal_clues(state, 1)
        self.assertEqual(
            clues,
            [colour(0), colour(1), colour(2), colour(3),
             rank(1), rank(2), rank(3), rank(4)],
        )

    def test_illegal_clues(self) -> None:
        state = _make_state([["xx"] * 5, ["r1", "r2", "y3", "g4", "b4"]])
        self.assertFalse(action_generator.is_legal_clue(state, 0, rank(1)))
        self.assertFalse(action_generator.is_legal_clue(state, 1, rank(5)))
        self.assertFalse(action_generator.is_legal_clue(state, 1, colour(4)))
        self.assertTrue(action_generator.is_legal_clue(state, 1, colour(0)))


class TestEvaluateClue(unittest.TestCase):

    def test_play_clue_with_bad_touch(self) -> None:
        state = _make_state(
            [
                ["xx"] * 5,
                ["r1", "r4", "g3", "b3", "y3"],
                ["g4", "b2", "y2", "p3", "p2"],
            ],
            discarded=["r3", "r3"],
        )
        result, interpretation = action_generator.evaluate_clue(
            state, 1, colour(0),
        )
        self.assertEqual(interpretation.kind, conventions.ClueKind.PLAY)
        self.assertEqual(interpretation.focus_order, 9)
        self.assertEqual(result.new_touched, 2)
        self.assertEqual(result.bad_touch, 1)
        self.assertEqual(result.playables, [(1, _id("r1"))])
        self.assertGreater(result.elim, 0)

    def test_real_state_untouched(self) -> None:
        state = _make_state(
            [
                ["xx"] * 5,
                ["r1", "r4", "g3", "b3", "y3"],
                ["g4", "b2", "y2", "p3", "p2"],
            ],
        )
        before = state.common.snapshot()
        action_generator.evaluate_clue(state, 1, colour(0))
        self.assertEqual(state.common.snapshot(), before)
        self.assertFalse(state.hands[1].find_order(9).clued)
        self.assertEqual(state.clue_tokens, hanabi_state.MAX_CLUE_TOKENS)

    def test_bad_touched_card_is_not_playable(self) -> None:
        state = _make_state([
            ["xx"] * 5,
            ["r1", "y4", "g3", "b3", "p4"],
            ["r2", "g4", "y3", "p3", "b4"],
        ])
        _mark(state, 9, ["r1"], clues=[colour(0)])
        result, _ = action_generator.evaluate_clue(state, 2, colour(0))
        self.assertEqual(result.playables, [(2, _id("r2"))])

        # Bob's r1 was a redundant touch, so nothing builds on it.
        state.hands[1].find_order(9).bad_touched = True
        result, _ = action_generator.evaluate_clue(state, 2, colour(0))
        self.assertEqual(result.playables, [])

    def test_illegal_clue_is_none(self) -> None:
        state = _make_state([["xx"] * 5, ["r1", "r4", "g3", "b3", "y3"]])
        self.assertIsNone(action_generator.evaluate_clue(state, 1, rank(5)))


# =============================================================================
# Fix clues
# =============================================================================

class TestFixClues(unittest.TestCase):

    def _misread_state(self, bob: list[str]) -> hanabi_state.GameState:
        state = _make_state([["xx"] * 5, bob, ["g4", "y3", "r2", "p3", "b4"]])
        # Bob's blue card is really b3, but everyone reads it as b1.
        state.restrict(9, VARIANT.touched_identities(colour(3)))
        _mark(state, 9, ["b1"], clues=[colour(3)])
        return state

    def test_rank_clue_fixes_card(self) -> None:
        state = self._misread_state(["b3", "y4", "g4", "r4", "p4"])
        _, _, fix_clues = action_generator.find_clues(state)
        self.assertEqual(
            fix_clues[1], [action_generator.FixClue(1, rank(3), 9, urgent=True)],
        )
        self.assertEqual(fix_clues[2], [])

    def test_fix_that_moves_focus_is_rejected(self) -> None:
        # The 3 clue would also touch the g3, which becomes the focus and
        # has no play or save meaning.
        state = self._misread_state(["b3", "y4", "g3", "r4", "p4"])
        _, _, fix_clues = action_generator.find_clues(state)
        self.assertEqual(fix_clues[1], [])


# =============================================================================
# Urgent actions
# =============================================================================

class TestUrgentActions(unittest.TestCase):

    def _unlock_state(self) -> hanabi_state.GameState:
        state = _make_state([
            ["xx"] * 5,
            ["r2", "y3", "g4", "b4", "p4"],
            ["y4", "g3", "b3", "p3", "y2"],
        ])
        _mark(state, 4, ["r1"])
        _mark(state, 9, ["r2"])
        return state

    def test_unlock(self) -> None:
        state = self._unlock_state()
        self.assertEqual(action_generator.find_unlock(state, 1), _play(4))

    def test_no_unlock_if_target_unsure(self) -> None:
        state = self._unlock_state()
        state.infer(9, frozenset({_id("r2"), _id("y2")}))
        self.assertIsNone(action_generator.find_unlock(state, 1))

    def test_hand_loaded(self) -> None:
        state = self._unlock_state()
        self.assertFalse(action_generator.hand_loaded(state, 2))
        _mark(state, 14, ["y1", "g1"])
        self.assertTrue(action_generator.hand_loaded(state, 2))

    def test_save_critical_chop(self) -> None:
        state = _make_state([
            ["xx"] * 5,
            ["y3", "g4", "r3", "p4", "b5"],
            ["g2", "r4", "y4", "p3", "b3"],
        ])
        _, save_clues, _ = action_generator.find_clues(state)
        self.assertIsNotNone(save_clues[1])
        self.assertIsNone(save_clues[2])
        self.assertEqual(save_clues[1].focus_order, 5)
        self.assertEqual(save_clues[1].kind, conventions.ClueKind.SAVE)

        decision = action_generator.take_action(state)
        self.assertTrue(decision.is_clue)
        self.assertEqual(decision.target, 1)
        self.assertTrue(VARIANT.touches(_id("b5"), decision.clue))


# =============================================================================
# Our playable cards
# =============================================================================

class TestPlayableBuckets(unittest.TestCase):

    def test_buckets(self) -> None:
        state = _make_state(
            [
                ["xx"] * 5,
                ["y2", "r3", "g4", "p4", "r4"],
                ["g3", "y4", "y3", "p3", "r3"],
            ],
            play_stacks=[0, 0, 0, 4, 0],
        )
        _mark(state, 4, ["r1"], finessed=True)
        _mark(state, 3, ["y1"])
        _mark(state, 2, ["g1"])
        _mark(state, 1, ["b5"])
        _mark(state, 0, ["r1", "p1"], clues=[rank(1)])

        playable = action_generator.find_playables(state)
        self.assertEqual([c.order for c in playable], [4, 3, 2, 1, 0])
        priorities = action_generator.determine_playable_card(state, playable)
        self.assertEqual(
            [[c.order for c in bucket] for bucket in priorities],
            [[4], [3], [], [1], [0], [2]],
        )
        self.assertEqual(action_generator.take_action(state), _play(4))

    def test_connects_within_own_hand(self) -> None:
        state = _make_state([["xx"] * 5, ["y3", "g4", "r3", "p4", "b4"]])
        _mark(state, 4, ["g1"])
        _mark(state, 3, ["g2"])
        playable = action_generator.find_playables(state)
        priorities = action_generator.determine_playable_card(state, playable)
        self.assertEqual([c.order for c in priorities[2]], [4])

    def test_no_playables(self) -> None:
        state = _make_state([["xx"] * 5, ["y3", "g4", "r3", "p4", "b4"]])
        self.assertEqual(action_generator.find_playables(state), [])


# =============================================================================
# Turn decision fallbacks
# =============================================================================

class TestTakeAction(unittest.TestCase):

    HANDS = [["xx"] * 5, ["y3", "g4", "r3", "p4", "b4"]]

    def test_discard_chop(self) -> None:
        state = _make_state(self.HANDS, clue_tokens=4)
        self.assertEqual(action_generator.take_action(state), _discard(0))

    def test_known_trash_before_chop(self) -> None:
        state = _make_state(
            self.HANDS, clue_tokens=4, play_stacks=[0, 0, 0, 0, 2],
        )
        _mark(state, 3, ["p1", "p2"])
        self.assertEqual(action_generator.take_action(state), _discard(3))

    def test_stall_at_max_tokens(self) -> None:
        state = _make_state(self.HANDS)
        self.assertEqual(
            action_generator.take_action(state),
            hanabi_state.PerformAction.give(1, colour(0)),
        )

    def test_locked_hand_without_tokens(self) -> None:
        state = _make_state(self.HANDS, clue_tokens=0)
        for card in state.our_hand:
            card.clued = True
        with self.assertLogs("action_generator", level="WARNING"):
            decision = action_generator.take_action(state)
        self.assertEqual(decision, _discard(4))


if __name__ == "__main__":
    unittest.main()
