"""Self-play simulation for the Hanabi convention bot.

Deals a shuffled deck, seats one ``HanabiBot`` per player, resolves each
chosen action against the true deck, and broadcasts the resulting action
stream to every bot. A bot never sees the identity of its own draws.

Run as a script to play a batch of seeded games and print score
statistics.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import statistics

import tqdm

import hanabi_bot
import hanabi_config
import hanabi_state
import hanabi_variants

logger = logging.getLogger(__name__)

_C = hanabi_state._Colors

PLAYER_NAMES = ["Alice", "Bob", "Cathy", "Donald", "Emily", "Frank"]

NUM_GAMES = 20
NUM_PLAYERS = 3
VARIANT_NAME = "No Variant"
MAX_TURNS = 200


@dataclasses.dataclass
class GameResult:
    """Outcome of one simulated game.

    Attributes:
        seed: Seed used to shuffle the deck.
        score: Final score (0 on a strikeout).
        max_score: Best possible score in the variant.
        strikes: Failed plays.
        turns: Turns taken.
        strikeout: Whether the game ended on strikes.
        rewinds: History replays across all bots.
    """
    seed: int
    score: int
    max_score: int
    strikes: int
    turns: int
    strikeout: bool
    rewinds: int


# ── Deck helpers ────────────────────────────────────────────

def build_deck(
    variant: hanabi_variants.Variant, rng: random.Random,
) -> list[hanabi_variants.Identity]:
    """Every physical card of the variant, shuffled."""
    deck = [
        identity for identity in variant.sorted_identities
        for _ in range(variant.card_count(identity))
    ]
    rng.shuffle(deck)
    return deck


# ── Game ────────────────────────────────────────────────────

class _Table:
    """The true game, as seen by the simulation."""

    def __init__(
        self,
        variant: hanabi_variants.Variant,
        bots: list[hanabi_bot.HanabiBot],
        deck: list[hanabi_variants.Identity],
    ) -> None:
        self.variant = variant
        self.bots = bots
        self.deck = deck
        self.hands: list[list[tuple[int, hanabi_variants.Identity]]] = [
            [] for _ in bots
        ]
        self.play_stacks = [0] * len(variant.suits)
        self.clue_tokens = hanabi_state.MAX_CLUE_TOKENS
        self.strikes = 0
        self.next_order = 0

    @property
    def score(self) -> int:
        return sum(self.play_stacks)

    def broadcast(self, action: hanabi_state.Action, current: int = -1):
        """Send an action to every bot. Returns the current player's decision."""
        decision = None
        for index, bot in enumerate(self.bots):
            result = bot.handle_action(action)
            if index == current:
                decision = result
        return decision

    def draw(self, player_index: int) -> None:
        identity = self.deck.pop()
        order = self.next_order
        self.next_order += 1
        self.hands[player_index].insert(0, (order, identity))
        for index, bot in enumerate(self.bots):
            bot.handle_action(hanabi_state.DrawAction(
                player_index, order, None if index == player_index else identity,
            ))

    def _take_card(
        self, player_index: int, order: int,
    ) -> hanabi_variants.Identity:
        hand = self.hands[player_index]
        for index, (card_order, identity) in enumerate(hand):
            if card_order == order:
                del hand[index]
                return identity
        raise ValueError(
            f"Player {player_index} cannot use card {order}: not in hand"
        )

    def resolve(
        self, player_index: int, decision: hanabi_state.PerformAction | None,
    ) -> hanabi_state.Action:
        """Apply a bot's decision to the true game.

        Raises:
            ValueError: If the decision is illegal.
        """
        if decision is None:
            raise ValueError(f"Player {player_index} did not choose an action")
        kind = decision.type
        if kind == hanabi_state.PerformType.PLAY:
            identity = self._take_card(player_index, decision.target)
            suit_index = identity.suit_index
            if self.play_stacks[suit_index] + 1 == identity.rank:
                self.play_stacks[suit_index] = identity.rank
                if identity.rank == hanabi_variants.MAX_RANK:
                    self.clue_tokens = min(
                        self.clue_tokens + 1, hanabi_state.MAX_CLUE_TOKENS,
                    )
                return hanabi_state.PlayAction(
                    player_index, decision.target, identity,
                )
            self.strikes += 1
            return hanabi_state.DiscardAction(
                player_index, decision.target, identity, failed=True,
            )
        if kind == hanabi_state.PerformType.DISCARD:
            if self.clue_tokens >= hanabi_state.MAX_CLUE_TOKENS:
                raise ValueError("Cannot discard at maximum clue tokens")
            identity = self._take_card(player_index, decision.target)
            self.clue_tokens += 1
            return hanabi_state.DiscardAction(
                player_index, decision.target, identity,
            )

        if self.clue_tokens == 0:
            raise ValueError("Cannot clue with no clue tokens")
        target = decision.target
        if target == player_index or not (0 <= target < len(self.bots)):
            raise ValueError(f"Invalid clue target {target}")
        clue = decision.clue
        touched = tuple(
            order for order, identity in self.hands[target]
            if self.variant.touches(identity, clue)
        )
        if not touched:
            raise ValueError(
                f"Clue {self.variant.clue_name(clue)} touches no cards"
            )
        self.clue_tokens -= 1
        return hanabi_state.ClueAction(player_index, target, clue, touched)


def play_game(
    variant: hanabi_variants.Variant,
    num_players: int,
    seed: int,
    settings: hanabi_config.ConventionSettings | None = None,
    max_turns: int = MAX_TURNS,
) -> GameResult:
    """Play one game between bots.

    Args:
        variant: The variant to play.
        num_players: Number of players, 2-6.
        seed: Seed for the shuffle.
        settings: Convention settings shared by every bot.
        max_turns: Safety cap on the number of turns.

    Returns:
        The game's result.

    Raises:
        ValueError: If a bot chooses an illegal action.
    """
    names = PLAYER_NAMES[:num_players]
    bots = [
        hanabi_bot.HanabiBot(variant, names, index, settings)
        for index in range(num_players)
    ]
    table = _Table(variant, bots, build_deck(variant, random.Random(seed)))
    for player_index in range(num_players):
        for _ in range(hanabi_state.hand_size_for(num_players)):
            table.draw(player_index)

    turns = 0
    final_turns = None
    current = 0
    while True:
        decision = table.broadcast(
            hanabi_state.TurnAction(current, turns), current,
        )
        action = table.resolve(current, decision)
        table.broadcast(action)
        if not isinstance(action, hanabi_state.ClueAction) and table.deck:
            table.draw(current)
            if not table.deck:
                final_turns = num_players + 1
        turns += 1
        if final_turns is not None:
            final_turns -= 1

        if table.strikes >= hanabi_state.MAX_STRIKES:
            break
        if table.score == variant.max_score:
            break
        if final_turns == 0 or turns >= max_turns:
            break
        current = (current + 1) % num_players

    table.broadcast(hanabi_state.GameOverAction(0, current))
    strikeout = table.strikes >= hanabi_state.MAX_STRIKES
    return GameResult(
        seed=seed,
        score=0 if strikeout else table.score,
        max_score=variant.max_score,
        strikes=table.strikes,
        turns=turns,
        strikeout=strikeout,
        rewinds=sum(bot.rewinds for bot in bots),
    )


def run_games(
    num_games: int,
    num_players: int = NUM_PLAYERS,
    variant: hanabi_variants.Variant | None = None,
    settings: hanabi_config.ConventionSettings | None = None,
    seed: int = 0,
    show_progress: bool = True,
) -> list[GameResult]:
    """Play a batch of games with consecutive seeds."""
    variant = variant or hanabi_variants.get_variant(VARIANT_NAME)
    results = []
    for game_seed in tqdm.tqdm(
        range(seed, seed + num_games),
        desc="Simulating",
        unit=" games",
        dynamic_ncols=True,
        disable=not show_progress,
    ):
        results.append(play_game(variant, num_players, game_seed, settings))
    return results


# ── Reporting ───────────────────────────────────────────────

def _color_score(score: float, max_score: int) -> str:
    ratio = score / max_score if max_score else 0.0
    if ratio >= 0.8:
        color = _C.GREEN
    elif ratio >= 0.6:
        color = _C.BLUE
    elif ratio >= 0.4:
        color = _C.YELLOW
    else:
        color = _C.RED
    return f"{color}{score:.2f}{_C.RESET}"


def print_summary(results: list[GameResult]) -> None:
    """Print score statistics for a batch of games."""
    if not results:
        print("No games played")
        return
    scores = [r.score for r in results]
    max_score = results[0].max_score
    mean = statistics.mean(scores)
    stdev = statistics.stdev(scores) if len(scores) > 1 else 0.0
    perfect = sum(1 for r in results if r.score == r.max_score)
    strikeouts = sum(1 for r in results if r.strikeout)

    print()
    print("=" * 60)
    print(f"{_C.BOLD}SELF-PLAY RESULTS{_C.RESET} ({len(results)} games)")
    print("=" * 60)
    print(f"  Mean:       {_color_score(mean, max_score)} / {max_score}")
    print(f"  StdDev:     {stdev:.2f}")
    print(f"  Median:     {statistics.median(scores)}")
    print(f"  Min / Max:  {min(scores)} / {max(scores)}")
    print(f"  Perfect:    {perfect} ({perfect / len(results):.0%})")
    print(f"  Strikeouts: {_C.RED if strikeouts else _C.DIM}"
          f"{strikeouts}{_C.RESET}")
    print(f"  Rewinds:    {sum(r.rewinds for r in results)}")


def main() -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    results = run_games(NUM_GAMES)
    print_summary(results)


if __name__ == "__main__":
    main()
