"""Hanabi variant definitions.

Defines the identity space of a game: which (suit, rank) pairs exist, how
many physical copies of each are in the deck, and which clues touch which
identities. Suits are described by name; the special clue behaviour of a
suit (rainbow, pink, white, brown, prism, dark) is derived from the name.

Variants are static configuration that every other component consults.
A small registry of common variants is provided in ``VARIANTS``.
"""

from __future__ import annotations

import dataclasses
import enum
import functools


MAX_RANK = 5
RANKS = (1, 2, 3, 4, 5)

# Preferred short-notation letters. Suits not listed here (or whose letter
# is already taken in a variant) fall back to the first free letter of
# their name.
_ABBREVIATIONS = {
    "Red": "r",
    "Yellow": "y",
    "Green": "g",
    "Blue": "b",
    "Purple": "p",
    "Teal": "t",
    "Black": "k",
    "Rainbow": "m",
    "Pink": "i",
    "White": "w",
    "Brown": "n",
    "Omni": "o",
    "Null": "u",
    "Prism": "i",
    "Gray": "a",
}


# =============================================================================
# Clues
# =============================================================================

class ClueType(enum.Enum):
    """Kind of information a clue names."""
    COLOUR = enum.auto()
    RANK = enum.auto()


@dataclasses.dataclass(frozen=True)
class Clue:
    """A clue descriptor.

    Attributes:
        type: Whether the clue names a colour or a rank.
        value: Suit index of the named colour, or the rank (1-5).
    """
    type: ClueType
    value: int


# =============================================================================
# Identity
# =============================================================================

@dataclasses.dataclass(frozen=True, order=True)
class Identity:
    """A card identity: a (suit, rank) pair.

    Attributes:
        suit_index: Index of the suit in the variant's suit list.
        rank: Card rank, 1-5.
    """
    suit_index: int
    rank: int

    def matches(self, suit_index: int, rank: int) -> bool:
        return self.suit_index == suit_index and self.rank == rank

    def next(self) -> Identity:
        """The identity that plays on top of this one."""
        return Identity(self.suit_index, self.rank + 1)


# =============================================================================
# Suits
# =============================================================================

@dataclasses.dataclass(frozen=True)
class Suit:
    """A suit and its special clue properties.

    Attributes:
        name: Display name, e.g. ``"Red"`` or ``"Dark Rainbow"``.
        all_colours: Touched by every colour clue (rainbow).
        no_colour: Touched by no colour clue (white, gray, null).
        all_ranks: Touched by every rank clue (pink).
        no_ranks: Touched by no rank clue (brown, null).
        prism: Colour clues touch it by rank, cycling through the
            variant's clue colours.
        dark: Only one copy of each rank exists, so every card is
            critical.
    """
    name: str
    all_colours: bool = False
    no_colour: bool = False
    all_ranks: bool = False
    no_ranks: bool = False
    prism: bool = False
    dark: bool = False

    @classmethod
    def from_name(cls, name: str) -> Suit:
        """Build a suit, deriving its properties from keywords in its name.

        Args:
            name: Suit name as used by hanabi.live (e.g. ``"Cocoa Rainbow"``).

        Returns:
            A Suit with the matching flags set.
        """
        words = set(name.split())
        return cls(
            name=name,
            all_colours=bool(words & {"Rainbow", "Omni"}),
            no_colour=bool(words & {"White", "Gray", "Null"}),
            all_ranks=bool(words & {"Pink", "Omni"}),
            no_ranks=bool(words & {"Brown", "Null", "Cocoa"}),
            prism="Prism" in words,
            dark=bool(words & {"Dark", "Black", "Gray", "Cocoa"}),
        )

    @property
    def colour_cluable(self) -> bool:
        """Whether this suit's colour can be named by a colour clue."""
        return not (self.all_colours or self.no_colour or self.prism)


# =============================================================================
# Variant
# =============================================================================

@dataclasses.dataclass(frozen=True)
class Variant:
    """An ordered suit list plus the rules derived from it.

    Attributes:
        name: Variant name.
        suits: The suits in play, in index order.
    """
    name: str
    suits: tuple[Suit, ...]

    def __post_init__(self) -> None:
        if not (4 <= len(self.suits) <= 6):
            raise ValueError(
                f"Variant must have 4-6 suits, got {len(self.suits)}"
            )

    @classmethod
    def from_suit_names(cls, name: str, suit_names: list[str]) -> Variant:
        """Create a variant from a list of suit names."""
        return cls(name=name, suits=tuple(Suit.from_name(s) for s in suit_names))

    # -----------------------------------------------------------------
    # Identity space
    # -----------------------------------------------------------------

    @functools.cached_property
    def all_identities(self) -> frozenset[Identity]:
        """Every identity that exists in this variant."""
        return frozenset(
            Identity(suit_index, rank)
            for suit_index in range(len(self.suits))
            for rank in RANKS
        )

    @functools.cached_property
    def sorted_identities(self) -> tuple[Identity, ...]:
        return tuple(sorted(self.all_identities))

    def card_count(self, identity: Identity) -> int:
        """Number of physical copies of an identity in the deck."""
        if self.suits[identity.suit_index].dark:
            return 1
        return {1: 3, 5: 1}.get(identity.rank, 2)

    @functools.cached_property
    def total_cards(self) -> int:
        return sum(self.card_count(i) for i in self.all_identities)

    @property
    def max_score(self) -> int:
        return len(self.suits) * MAX_RANK

    # -----------------------------------------------------------------
    # Clue rules
    # -----------------------------------------------------------------

    @functools.cached_property
    def colour_clue_values(self) -> tuple[int, ...]:
        """Suit indices that can be named by a colour clue."""
        return tuple(
            i for i, suit in enumerate(self.suits) if suit.colour_cluable
        )

    def all_clues(self) -> list[Clue]:
        """Every clue this variant permits, colours first."""
        clues = [Clue(ClueType.COLOUR, v) for v in self.colour_clue_values]
        clues.extend(Clue(ClueType.RANK, r) for r in RANKS)
        return clues

    def is_cluable(self, clue: Clue) -> bool:
        """Whether a clue may legally be given in this variant."""
        if clue.type == ClueType.COLOUR:
            return clue.value in self.colour_clue_values
        return clue.value in RANKS

    def touches(self, identity: Identity, clue: Clue) -> bool:
        """Whether a card of this identity would be touched by a clue."""
        suit = self.suits[identity.suit_index]
        if clue.type == ClueType.COLOUR:
            if not self.is_cluable(clue) or suit.no_colour:
                return False
            if suit.all_colours:
                return True
            if suit.prism:
                colours = self.colour_clue_values
                if not colours:
                    return False
                return colours[(identity.rank - 1) % len(colours)] == clue.value
            return identity.suit_index == clue.value
        if suit.all_ranks:
            return True
        if suit.no_ranks:
            return False
        return identity.rank == clue.value

    @functools.lru_cache(maxsize=None)
    def touched_identities(self, clue: Clue) -> frozenset[Identity]:
        """All identities a clue would touch."""
        return frozenset(
            i for i in self.all_identities if self.touches(i, clue)
        )

    # -----------------------------------------------------------------
    # Notation
    # -----------------------------------------------------------------

    @functools.cached_property
    def abbreviations(self) -> tuple[str, ...]:
        """Unique one-letter abbreviation per suit."""
        taken: list[str] = []
        for suit in self.suits:
            preferred = _ABBREVIATIONS.get(
                suit.name, _ABBREVIATIONS.get(suit.name.split()[-1]),
            )
            candidates = ([preferred] if preferred else []) + [
                ch for ch in suit.name.lower() if ch.isalpha()
            ]
            letter = next((c for c in candidates if c not in taken), None)
            if letter is None:
                letter = next(
                    c for c in "abcdefghijklmnopqrstuvwxyz" if c not in taken
                )
            taken.append(letter)
        return tuple(taken)

    def short(self, identity: Identity) -> str:
        """Short notation for an identity, e.g. ``"r1"``."""
        return f"{self.abbreviations[identity.suit_index]}{identity.rank}"

    def parse_card(self, text: str) -> Identity | None:
        """Parse short notation.

        Args:
            text: Two characters: suit abbreviation and rank, or ``"xx"``
                for a card whose identity is unknown.

        Returns:
            The identity, or None for ``"xx"``.

        Raises:
            ValueError: If the text does not name a card in this variant.
        """
        text = text.strip().lower()
        if text == "xx":
            return None
        if len(text) != 2 or not text[1].isdigit():
            raise ValueError(f"Cannot parse card '{text}'")
        letter, rank = text[0], int(text[1])
        if letter not in self.abbreviations or rank not in RANKS:
            raise ValueError(
                f"Card '{text}' does not exist in variant '{self.name}'"
            )
        return Identity(self.abbreviations.index(letter), rank)

    def clue_name(self, clue: Clue) -> str:
        if clue.type == ClueType.COLOUR:
            return self.suits[clue.value].name.lower()
        return str(clue.value)


# =============================================================================
# Registry
# =============================================================================

_BASE_SUITS = ["Red", "Yellow", "Green", "Blue", "Purple"]

VARIANTS: dict[str, Variant] = {
    variant.name: variant
    for variant in [
        Variant.from_suit_names("No Variant", _BASE_SUITS),
        Variant.from_suit_names("6 Suits", _BASE_SUITS + ["Teal"]),
        Variant.from_suit_names("4 Suits", _BASE_SUITS[:4]),
        Variant.from_suit_names("Rainbow (5 Suits)", _BASE_SUITS[:4] + ["Rainbow"]),
        Variant.from_suit_names("Pink (5 Suits)", _BASE_SUITS[:4] + ["Pink"]),
        Variant.from_suit_names("White (5 Suits)", _BASE_SUITS[:4] + ["White"]),
        Variant.from_suit_names("Brown (5 Suits)", _BASE_SUITS[:4] + ["Brown"]),
        Variant.from_suit_names("Black (5 Suits)", _BASE_SUITS[:4] + ["Black"]),
        Variant.from_suit_names("Null (5 Suits)", _BASE_SUITS[:4] + ["Null"]),
        Variant.from_suit_names("Prism (5 Suits)", _BASE_SUITS[:4] + ["Prism"]),
        Variant.from_suit_names(
            "Dark Rainbow (5 Suits)", _BASE_SUITS[:4] + ["Dark Rainbow"],
        ),
    ]
}


def get_variant(name: str) -> Variant:
    """Look up a registered variant by name.

    Raises:
        KeyError: If no variant with that name is registered.
    """
    if name not in VARIANTS:
        raise KeyError(f"Unknown variant '{name}'")
    return VARIANTS[name]
