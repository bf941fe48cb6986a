"""Hanabi game model.

Core classes representing cards, hands, per-perspective belief tables,
action records, and the mutable game state (play stacks, discard pile,
clue tokens) consulted by the convention interpreter and the action
generator.

Beliefs are stored separately from the physical cards: each knowledge
perspective (``common`` plus one table per player) maps card orders to an
immutable ``Thought``. Updating a belief replaces the entry, so no two
perspectives ever share a mutable object.
"""

from __future__ import annotations

import dataclasses
import enum
import logging

import hanabi_config
import hanabi_variants

logger = logging.getLogger(__name__)

MAX_CLUE_TOKENS = 8
MAX_STRIKES = 3


# =============================================================================
# ANSI Color Constants
# =============================================================================

class _Colors:
    """ANSI escape codes for terminal coloring."""
    RED = "\033[91m"
    YELLOW = "\033[93m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"
    DIM = "\033[2m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class ProtocolError(ValueError):
    """The action stream is inconsistent with the tracked game state.

    Raised when an action references a card that is not where it should
    be. State integrity can no longer be trusted, so this propagates to
    the caller.
    """


def hand_size_for(num_players: int) -> int:
    """Number of cards each player holds for a given player count."""
    if num_players <= 3:
        return 5
    if num_players <= 5:
        return 4
    return 3


# =============================================================================
# Outgoing Actions
# =============================================================================

class PerformType(enum.Enum):
    """Type of action the bot sends back on its own turn."""
    PLAY = enum.auto()
    DISCARD = enum.auto()
    COLOUR_CLUE = enum.auto()
    RANK_CLUE = enum.auto()


@dataclasses.dataclass(frozen=True)
class PerformAction:
    """An action chosen by the bot.

    Attributes:
        type: What kind of action to perform.
        target: Card order for plays/discards, player index for clues.
        value: The clue value for clues, None otherwise.
    """
    type: PerformType
    target: int
    value: int | None = None

    @property
    def is_clue(self) -> bool:
        return self.type in (PerformType.COLOUR_CLUE, PerformType.RANK_CLUE)

    @property
    def clue(self) -> hanabi_variants.Clue | None:
        if self.type == PerformType.COLOUR_CLUE:
            return hanabi_variants.Clue(hanabi_variants.ClueType.COLOUR, self.value)
        if self.type == PerformType.RANK_CLUE:
            return hanabi_variants.Clue(hanabi_variants.ClueType.RANK, self.value)
        return None

    @classmethod
    def give(cls, target: int, clue: hanabi_variants.Clue) -> PerformAction:
        """A clue action for a target player."""
        kind = (
            PerformType.COLOUR_CLUE if clue.type == hanabi_variants.ClueType.COLOUR
            else PerformType.RANK_CLUE
        )
        return cls(kind, target, clue.value)


# =============================================================================
# Action Records
# =============================================================================

@dataclasses.dataclass(frozen=True)
class DrawAction:
    """A player draws a card. ``identity`` is None when the drawer is us."""
    player_index: int
    order: int
    identity: hanabi_variants.Identity | None = None


@dataclasses.dataclass(frozen=True)
class ClueAction:
    """A clue given from one player to another.

    Attributes:
        giver: Index of the player giving the clue.
        target: Index of the player receiving the clue.
        clue: The clue descriptor.
        touched: Orders of the cards the clue touched.
    """
    giver: int
    target: int
    clue: hanabi_variants.Clue
    touched: tuple[int, ...]


@dataclasses.dataclass(frozen=True)
class PlayAction:
    """A successful play; the card's identity is revealed."""
    player_index: int
    order: int
    identity: hanabi_variants.Identity


@dataclasses.dataclass(frozen=True)
class DiscardAction:
    """A discard, or a failed play (``failed=True``) that costs a strike."""
    player_index: int
    order: int
    identity: hanabi_variants.Identity
    failed: bool = False


@dataclasses.dataclass(frozen=True)
class TurnAction:
    """The turn passes to ``current_player_index``."""
    current_player_index: int
    num: int = 0


@dataclasses.dataclass(frozen=True)
class GameOverAction:
    end_condition: int = 0
    player_index: int | None = None


@dataclasses.dataclass(frozen=True)
class RewindAction:
    """Pins a card's identity after an earlier inference was disproved."""
    player_index: int
    order: int
    identity: hanabi_variants.Identity


Action = (
    DrawAction | ClueAction | PlayAction | DiscardAction
    | TurnAction | GameOverAction | RewindAction
)


# =============================================================================
# Beliefs
# =============================================================================

@dataclasses.dataclass(frozen=True)
class Thought:
    """What one perspective believes about one card.

    Attributes:
        possible: Identities consistent with all public information.
        inferred: Subset of ``possible`` additionally consistent with the
            convention's reading of the clues so far.
    """
    possible: frozenset[hanabi_variants.Identity]
    inferred: frozenset[hanabi_variants.Identity]

    def __post_init__(self) -> None:
        if not self.inferred <= self.possible:
            raise ValueError("Inferred identities must be a subset of possible")

    @classmethod
    def unknown(cls, identities: frozenset[hanabi_variants.Identity]) -> Thought:
        return cls(identities, identities)

    @classmethod
    def certain(cls, identity: hanabi_variants.Identity) -> Thought:
        single = frozenset({identity})
        return cls(single, single)

    def restrict(self, identities: frozenset[hanabi_variants.Identity]) -> Thought:
        """Intersect ``possible`` with public information.

        If nothing inferred survives, the inference resets to everything
        still possible.
        """
        possible = self.possible & identities
        inferred = self.inferred & possible
        if not inferred:
            inferred = possible
        return Thought(possible, inferred)

    def exclude(self, identities: frozenset[hanabi_variants.Identity]) -> Thought:
        return self.restrict(self.possible - identities)

    def infer(self, identities: frozenset[hanabi_variants.Identity]) -> Thought:
        """Replace ``inferred`` with ``identities``, bounded by ``possible``.

        An empty result leaves the thought unchanged.
        """
        inferred = self.possible & identities
        if not inferred:
            return self
        return Thought(self.possible, inferred)

    @property
    def known(self) -> hanabi_variants.Identity | None:
        """The identity if only one is possible."""
        if len(self.possible) == 1:
            return next(iter(self.possible))
        return None

    @property
    def inferred_identity(self) -> hanabi_variants.Identity | None:
        if len(self.inferred) == 1:
            return next(iter(self.inferred))
        return None

    @property
    def size(self) -> int:
        return len(self.possible) + len(self.inferred)


@dataclasses.dataclass
class BeliefTable:
    """Thoughts about every card, from one knowledge perspective.

    Attributes:
        perspective: Player index whose private knowledge this table may
            use, or None for the common perspective.
        thoughts: Mapping from card order to thought.
    """
    perspective: int | None = None
    thoughts: dict[int, Thought] = dataclasses.field(default_factory=dict)

    def __getitem__(self, order: int) -> Thought:
        return self.thoughts[order]

    def __setitem__(self, order: int, thought: Thought) -> None:
        self.thoughts[order] = thought

    def __contains__(self, order: int) -> bool:
        return order in self.thoughts

    def __len__(self) -> int:
        return len(self.thoughts)

    def get(self, order: int) -> Thought | None:
        return self.thoughts.get(order)

    def pop(self, order: int) -> None:
        self.thoughts.pop(order, None)

    def snapshot(self) -> dict[int, Thought]:
        """A copy of the current thoughts. Thoughts are immutable."""
        return dict(self.thoughts)

    def copy(self) -> BeliefTable:
        return BeliefTable(self.perspective, dict(self.thoughts))


# =============================================================================
# Cards and Hands
# =============================================================================

@dataclasses.dataclass
class Card:
    """A physical card slot and its observable convention state.

    Attributes:
        order: Stable identifier assigned at draw time.
        identity: True identity if visible to us, else None.
        clues: Clues that have touched this card.
        clued: Touched by at least one clue.
        finessed: Believed to be a blind-play owed by its holder.
        chop_moved: Protected from discard by a chop move.
        rewinded: Identity pinned by a rewind.
        bad_touched: Touched by a clue while redundant.
        chop_when_first_clued: Was on chop when first clued.
        drawn_index: Action index of the draw.
        reasoning: Action indices at which the convention narrowed this
            card's inference.
    """
    order: int
    identity: hanabi_variants.Identity | None = None
    clues: list[hanabi_variants.Clue] = dataclasses.field(default_factory=list)
    clued: bool = False
    finessed: bool = False
    chop_moved: bool = False
    rewinded: bool = False
    bad_touched: bool = False
    chop_when_first_clued: bool = False
    drawn_index: int = 0
    reasoning: list[int] = dataclasses.field(default_factory=list)

    @property
    def saved(self) -> bool:
        """Whether the card is protected from being discarded."""
        return self.clued or self.finessed or self.chop_moved

    def copy(self) -> Card:
        return dataclasses.replace(
            self, clues=list(self.clues), reasoning=list(self.reasoning),
        )


@dataclasses.dataclass
class Hand:
    """One player's cards, slot 1 (newest) first.

    Attributes:
        player_index: Index of the player holding the hand.
        cards: Cards in slot order.
    """
    player_index: int
    cards: list[Card] = dataclasses.field(default_factory=list)

    def __iter__(self):
        return iter(self.cards)

    def __len__(self) -> int:
        return len(self.cards)

    def __getitem__(self, index: int) -> Card:
        return self.cards[index]

    def find_order(self, order: int) -> Card | None:
        return next((c for c in self.cards if c.order == order), None)

    def slot_of(self, order: int) -> int:
        """1-based slot of a card, or 0 if it is not in this hand."""
        for index, card in enumerate(self.cards):
            if card.order == order:
                return index + 1
        return 0

    def find_cards(self, identity: hanabi_variants.Identity) -> list[Card]:
        """Cards whose (visible) identity matches."""
        return [c for c in self.cards if c.identity == identity]

    def find_chop(self) -> int:
        """Index of the chop card, or -1 if every card is protected."""
        for index in range(len(self.cards) - 1, -1, -1):
            card = self.cards[index]
            if card.clued or card.chop_moved or card.finessed:
                continue
            return index
        return -1

    def chop(self) -> Card | None:
        index = self.find_chop()
        return self.cards[index] if index != -1 else None

    def is_locked(self) -> bool:
        """Every card is clued, finessed or chop moved."""
        return bool(self.cards) and all(c.saved for c in self.cards)

    def draw(self, card: Card) -> None:
        self.cards.insert(0, card)

    def remove(self, order: int) -> Card:
        """Remove and return a card.

        Raises:
            ProtocolError: If the card is not in this hand.
        """
        for index, card in enumerate(self.cards):
            if card.order == order:
                return self.cards.pop(index)
        raise ProtocolError(
            f"Card {order} is not in player {self.player_index}'s hand"
        )

    def copy(self) -> Hand:
        return Hand(self.player_index, [c.copy() for c in self.cards])


# =============================================================================
# GameState
# =============================================================================

@dataclasses.dataclass
class GameState:
    """The complete state tracked by one bot.

    Attributes:
        variant: Identity space and clue rules.
        player_names: Names of all players in seating order.
        our_player_index: Seat of the bot.
        settings: Convention rule-set and tuning.
        hands: One hand per player.
        common: Beliefs derivable by every player.
        players: Per-player beliefs, additionally using the cards that
            player can see.
        play_stacks: Highest rank played per suit.
        discard_pile: Identities discarded (including failed plays).
        clue_tokens: Remaining clue tokens.
        strikes: Failed plays so far.
        turn_count: Number of the current turn.
        current_player_index: Player whose turn it is.
        cards_left: Cards remaining in the deck.
        action_index: Index of the action currently being handled.
        waiting_connections: Interpretations still awaiting plays.
        rewind_requests: Contradictions found while handling the current
            action, to be resolved by replaying history.
        hypothetical: True for copies used to simulate candidate clues.
        game_over: Whether the game has ended.
    """
    variant: hanabi_variants.Variant
    player_names: list[str]
    our_player_index: int
    settings: hanabi_config.ConventionSettings = dataclasses.field(
        default_factory=hanabi_config.ConventionSettings,
    )
    hands: list[Hand] = dataclasses.field(default_factory=list)
    common: BeliefTable = dataclasses.field(default_factory=BeliefTable)
    players: list[BeliefTable] = dataclasses.field(default_factory=list)
    play_stacks: list[int] = dataclasses.field(default_factory=list)
    discard_pile: list[hanabi_variants.Identity] = dataclasses.field(
        default_factory=list,
    )
    clue_tokens: int = MAX_CLUE_TOKENS
    strikes: int = 0
    turn_count: int = 0
    current_player_index: int = 0
    cards_left: int = 0
    action_index: int = 0
    waiting_connections: list = dataclasses.field(default_factory=list)
    rewind_requests: list = dataclasses.field(default_factory=list)
    hypothetical: bool = False
    game_over: bool = False

    @classmethod
    def create(
        cls,
        variant: hanabi_variants.Variant,
        player_names: list[str],
        our_player_index: int,
        settings: hanabi_config.ConventionSettings | None = None,
    ) -> GameState:
        """Create the state at the start of a game, before any draws.

        Raises:
            ValueError: If the player count is not 2-6 or the seat index
                is out of range.
        """
        num_players = len(player_names)
        if not (2 <= num_players <= 6):
            raise ValueError(f"Player count must be 2-6, got {num_players}")
        if not (0 <= our_player_index < num_players):
            raise ValueError(
                f"Our player index must be 0-{num_players - 1}, "
                f"got {our_player_index}"
            )
        return cls(
            variant=variant,
            player_names=list(player_names),
            our_player_index=our_player_index,
            settings=settings or hanabi_config.ConventionSettings(),
            hands=[Hand(i) for i in range(num_players)],
            common=BeliefTable(None),
            players=[BeliefTable(i) for i in range(num_players)],
            play_stacks=[0] * len(variant.suits),
            cards_left=variant.total_cards,
        )

    # -----------------------------------------------------------------
    # Accessors
    # -----------------------------------------------------------------

    @property
    def num_players(self) -> int:
        return len(self.player_names)

    @property
    def hand_size(self) -> int:
        return hand_size_for(self.num_players)

    @property
    def me(self) -> BeliefTable:
        """Our own private perspective."""
        return self.players[self.our_player_index]

    @property
    def our_hand(self) -> Hand:
        return self.hands[self.our_player_index]

    @property
    def tables(self) -> list[BeliefTable]:
        return [self.common] + self.players

    @property
    def score(self) -> int:
        return sum(self.play_stacks)

    def all_cards(self) -> list[tuple[int, Card]]:
        """Every card in every hand, with its holder."""
        return [(h.player_index, c) for h in self.hands for c in h]

    def find_card(self, order: int) -> tuple[int, Card] | None:
        for hand in self.hands:
            card = hand.find_order(order)
            if card is not None:
                return hand.player_index, card
        return None

    def card_in_hand(self, player_index: int, order: int) -> Card:
        """Look up a card that must be in a specific hand.

        Raises:
            ProtocolError: If the card is not in that hand.
        """
        card = self.hands[player_index].find_order(order)
        if card is None:
            raise ProtocolError(
                f"Card {order} is not in "
                f"{self.player_names[player_index]}'s hand"
            )
        return card

    def thought(self, player_index: int, card: Card) -> Thought:
        """Best belief about a card: our own view for our hand, else common."""
        if player_index == self.our_player_index:
            return self.me[card.order]
        return self.common[card.order]

    def log_card(self, identity: hanabi_variants.Identity | None) -> str:
        return "xx" if identity is None else self.variant.short(identity)

    def log_identities(self, identities) -> str:
        return "[" + ",".join(self.variant.short(i) for i in sorted(identities)) + "]"

    # -----------------------------------------------------------------
    # Belief updates (applied to every perspective)
    # -----------------------------------------------------------------

    def add_thoughts(self, order: int) -> None:
        unknown = Thought.unknown(self.variant.all_identities)
        for table in self.tables:
            table[order] = unknown

    def restrict(
        self, order: int, identities: frozenset[hanabi_variants.Identity],
    ) -> None:
        for table in self.tables:
            if order in table:
                table[order] = table[order].restrict(identities)

    def exclude(
        self, order: int, identities: frozenset[hanabi_variants.Identity],
    ) -> None:
        for table in self.tables:
            if order in table:
                table[order] = table[order].exclude(identities)

    def infer(
        self, order: int, identities: frozenset[hanabi_variants.Identity],
    ) -> None:
        for table in self.tables:
            if order in table:
                table[order] = table[order].infer(identities)

    def reset_inference(self, order: int) -> None:
        for table in self.tables:
            if order in table:
                thought = table[order]
                table[order] = Thought(thought.possible, thought.possible)

    def forget(self, order: int) -> None:
        for table in self.tables:
            table.pop(order)

    # -----------------------------------------------------------------
    # Stack and pile queries
    # -----------------------------------------------------------------

    def discard_count(self, identity: hanabi_variants.Identity) -> int:
        return self.discard_pile.count(identity)

    def played_count(self, identity: hanabi_variants.Identity) -> int:
        return 1 if self.play_stacks[identity.suit_index] >= identity.rank else 0

    @property
    def max_ranks(self) -> list[int]:
        """Highest rank still reachable per suit, given the discards."""
        result = []
        for suit_index, stack in enumerate(self.play_stacks):
            max_rank = hanabi_variants.MAX_RANK
            for rank in range(stack + 1, hanabi_variants.MAX_RANK + 1):
                identity = hanabi_variants.Identity(suit_index, rank)
                if self.discard_count(identity) >= self.variant.card_count(identity):
                    max_rank = rank - 1
                    break
            result.append(max_rank)
        return result

    def playable_away(self, identity: hanabi_variants.Identity) -> int:
        """How many plays are missing before this identity is playable."""
        return identity.rank - (self.play_stacks[identity.suit_index] + 1)

    def is_playable(self, identity: hanabi_variants.Identity) -> bool:
        return self.playable_away(identity) == 0

    def is_basic_trash(self, identity: hanabi_variants.Identity) -> bool:
        """Already played, or can never be played."""
        return (
            identity.rank <= self.play_stacks[identity.suit_index]
            or identity.rank > self.max_ranks[identity.suit_index]
        )

    def is_critical(self, identity: hanabi_variants.Identity) -> bool:
        """Losing this card would make its suit unfinishable."""
        if self.is_basic_trash(identity):
            return False
        return (
            self.discard_count(identity)
            == self.variant.card_count(identity) - 1
        )

    def is_saved(
        self,
        identity: hanabi_variants.Identity,
        exclude_orders: tuple[int, ...] | set[int] = (),
    ) -> bool:
        """Whether some other protected card already holds this identity.

        Our own cards count when our inference has settled on the identity.

        Args:
            identity: The identity to look for.
            exclude_orders: Cards to ignore, e.g. the ones a clue is
                being interpreted for.
        """
        single = frozenset({identity})
        for _, card in self.all_cards():
            if card.order in exclude_orders or not card.saved:
                continue
            if card.identity is not None:
                if card.identity == identity:
                    return True
            else:
                thought = self.me.get(card.order)
                if thought is not None and thought.inferred == single:
                    return True
        return False

    def is_trash(
        self,
        identity: hanabi_variants.Identity,
        exclude_orders: tuple[int, ...] | set[int] = (),
    ) -> bool:
        return (
            self.is_basic_trash(identity)
            or self.is_saved(identity, exclude_orders)
        )

    def in_starting_hand(self, card: Card) -> bool:
        return card.order < self.num_players * self.hand_size

    def visible_elsewhere(
        self, identity: hanabi_variants.Identity, exclude_order: int,
    ) -> bool:
        """Whether another copy is visible in any hand."""
        return any(
            c.identity == identity and c.order != exclude_order
            for _, c in self.all_cards()
        )

    def clue_touched(
        self, target: int, clue: hanabi_variants.Clue,
    ) -> tuple[int, ...]:
        """Orders of the target's cards a clue would touch.

        Only meaningful for hands whose identities are visible.
        """
        return tuple(
            card.order for card in self.hands[target]
            if card.identity is not None
            and self.variant.touches(card.identity, clue)
        )

    # -----------------------------------------------------------------
    # Basic rule mutations
    # -----------------------------------------------------------------

    def on_draw(self, action: DrawAction) -> Card:
        identity = action.identity
        if action.player_index == self.our_player_index:
            identity = None
        card = Card(
            order=action.order, identity=identity,
            drawn_index=self.action_index,
        )
        self.hands[action.player_index].draw(card)
        self.add_thoughts(action.order)
        self.cards_left -= 1
        return card

    def on_clue(self, action: ClueAction) -> None:
        if self.clue_tokens == 0:
            logger.warning("%s gave a clue with no clue tokens",
                           self.player_names[action.giver])
        self.clue_tokens = max(self.clue_tokens - 1, 0)

    def on_play(self, action: PlayAction) -> None:
        self.hands[action.player_index].remove(action.order)
        self.forget(action.order)
        suit_index = action.identity.suit_index
        self.play_stacks[suit_index] = max(
            self.play_stacks[suit_index], action.identity.rank,
        )
        if action.identity.rank == hanabi_variants.MAX_RANK:
            self.clue_tokens = min(self.clue_tokens + 1, MAX_CLUE_TOKENS)

    def on_discard(self, action: DiscardAction) -> None:
        self.hands[action.player_index].remove(action.order)
        self.forget(action.order)
        self.discard_pile.append(action.identity)
        if action.failed:
            self.strikes += 1
        else:
            self.clue_tokens = min(self.clue_tokens + 1, MAX_CLUE_TOKENS)

    # -----------------------------------------------------------------
    # Copying
    # -----------------------------------------------------------------

    def minimal_copy(self) -> GameState:
        """An independent copy for simulating candidate actions."""
        return dataclasses.replace(
            self,
            player_names=list(self.player_names),
            hands=[h.copy() for h in self.hands],
            common=self.common.copy(),
            players=[t.copy() for t in self.players],
            play_stacks=list(self.play_stacks),
            discard_pile=list(self.discard_pile),
            waiting_connections=[
                dataclasses.replace(w, connections=list(w.connections))
                for w in self.waiting_connections
            ],
            rewind_requests=[],
        )

    def hand_str(self, player_index: int) -> str:
        return " ".join(
            self.log_card(c.identity) + ("*" if c.clued else "")
            for c in self.hands[player_index]
        )

    def __str__(self) -> str:
        stacks = " ".join(
            f"{self.variant.abbreviations[i]}{r}"
            for i, r in enumerate(self.play_stacks)
        )
        lines = [
            f"Turn {self.turn_count}  Stacks: {stacks}  "
            f"Clues: {self.clue_tokens}  Strikes: {self.strikes}  "
            f"Deck: {self.cards_left}"
        ]
        for player_index, name in enumerate(self.player_names):
            lines.append(f"  {name}: {self.hand_str(player_index)}")
        return "\n".join(lines)
