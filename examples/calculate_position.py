"""Calculator script for a single Hanabi decision.

Demonstrates using ``HanabiBot.from_partial_state()`` to enter a
mid-game position, feeding it the clue that was just given, and asking
the bot what it would do on its turn. Prints the resulting beliefs
about our own hand, every clue the bot considered, and its choice.
"""

import logging
import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import action_generator
import hanabi_bot
import hanabi_config
import hanabi_state
import hanabi_variants

VARIANT = hanabi_variants.get_variant("No Variant")


# ── Main ────────────────────────────────────────────────────

def main() -> None:
    """Finesse analysis from Alice's perspective.

    A 3-player game at the start of the game. Bob clues red to Cathy,
    touching only her r2. Nobody has a clued r1, so the clue is only
    legal as a finesse: the r1 must be Alice's slot 1.

    Hands (slot 1 first):

        Alice: xx xx xx xx xx
        Bob:   r4 y4 g4 r5 b4
        Cathy: g3 b3 r2 y3 p3
    """
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("Finesse position (Alice's perspective)")
    print("=" * 60)
    print()

    # ── Create bot ──────────────────────────────────────────
    bot = hanabi_bot.HanabiBot.from_partial_state(
        VARIANT,
        ["Alice", "Bob", "Cathy"],
        [
            ["xx", "xx", "xx", "xx", "xx"],
            ["r4", "y4", "g4", "r5", "b4"],
            ["g3", "b3", "r2", "y3", "p3"],
        ],
        starting=1,
        level=hanabi_config.Level.INTERMEDIATE_FINESSES,
    )

    # ── Bob's clue ──────────────────────────────────────────
    red = hanabi_variants.Clue(hanabi_variants.ClueType.COLOUR, 0)
    bot.handle_action(
        hanabi_state.ClueAction(1, 2, red, bot.state.clue_touched(2, red)),
        catchup=True,
    )
    bot.handle_action(hanabi_state.TurnAction(2), catchup=True)
    bot.handle_action(hanabi_state.TurnAction(0), catchup=True)

    state = bot.state
    print(state)
    print()

    # ── Our hand ────────────────────────────────────────────
    print("Alice's hand:")
    for slot, card in enumerate(state.our_hand, start=1):
        print(f"  slot {slot}: {bot.note_text(card)}")
    print()

    # ── Candidate clues ─────────────────────────────────────
    play_clues, save_clues, _ = action_generator.find_clues(state)
    print("Play clues considered:")
    for clues in play_clues:
        for clue in clues:
            value = action_generator.find_clue_value(clue.result, state.settings)
            print(
                f"  {VARIANT.clue_name(clue.clue):>6} to "
                f"{state.player_names[clue.target]:<6} value {value:5.2f}"
            )
    for save in save_clues:
        if save is not None:
            print(
                f"  Save needed: {VARIANT.clue_name(save.clue)} to "
                f"{state.player_names[save.target]}"
            )
    print()

    # ── Decision ────────────────────────────────────────────
    decision = action_generator.take_action(state)
    if decision.is_clue:
        described = (
            f"clue {VARIANT.clue_name(decision.clue)} to "
            f"{state.player_names[decision.target]}"
        )
    else:
        described = (
            f"{decision.type.name.lower()} slot "
            f"{state.our_hand.slot_of(decision.target)}"
        )
    print(f"Alice would {described}")


if __name__ == "__main__":
    main()
