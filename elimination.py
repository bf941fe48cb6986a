"""Elimination engine.

Propagates identity facts across every hand and every knowledge
perspective:

- Copy counting: once every copy of an identity is accounted for (played,
  discarded, or held by a card known to be that identity), the identity is
  removed from every other card. Held cards are cards whose ``possible``
  set is a singleton and, in a player's perspective, cards that player can
  see. The common perspective never uses visibility.
- Good-touch elimination: clued and finessed cards drop identities that
  are already played or dead, and identities claimed by another clued or
  finessed card, from ``inferred``.

Both rules cascade, so ``team_elim`` loops until nothing changes.
"""

from __future__ import annotations

import collections
import logging

import hanabi_state
import hanabi_variants

logger = logging.getLogger(__name__)


# =============================================================================
# Primitive Operations
# =============================================================================

def fix_identity(
    state: hanabi_state.GameState,
    order: int,
    identity: hanabi_variants.Identity,
) -> None:
    """Collapse a card to a single identity in every perspective."""
    certain = hanabi_state.Thought.certain(identity)
    for table in state.tables:
        if order in table:
            table[order] = certain


def eliminate(
    state: hanabi_state.GameState,
    identity: hanabi_variants.Identity,
    scope: list[int],
    tables: list[hanabi_state.BeliefTable] | None = None,
) -> int:
    """Remove an identity from a set of cards.

    Cards already certain to be ``identity`` are left alone, as are cards
    for which the removal would leave nothing possible.

    Args:
        state: The game state.
        identity: The identity to remove.
        scope: Orders of the cards to remove it from.
        tables: Perspectives to update. Defaults to all of them.

    Returns:
        The number of thoughts that changed.
    """
    removal = frozenset({identity})
    changes = 0
    for table in tables if tables is not None else state.tables:
        for order in scope:
            thought = table.get(order)
            if thought is None or identity not in thought.possible:
                continue
            if len(thought.possible) == 1:
                continue
            table[order] = thought.exclude(removal)
            changes += 1
    return changes


# =============================================================================
# Copy Counting
# =============================================================================

def _holders(
    state: hanabi_state.GameState,
    table: hanabi_state.BeliefTable,
) -> dict[hanabi_variants.Identity, set[int]]:
    """Cards known to hold each identity, from one perspective."""
    holders = collections.defaultdict(set)
    for player_index, card in state.all_cards():
        thought = table.get(card.order)
        if thought is None:
            continue
        if thought.known is not None:
            holders[thought.known].add(card.order)
        elif (
            table.perspective is not None
            and player_index != table.perspective
            and card.identity is not None
        ):
            holders[card.identity].add(card.order)
    return holders


def card_elim(
    state: hanabi_state.GameState,
    table: hanabi_state.BeliefTable,
) -> int:
    """Run copy-counting elimination in one perspective to a fixed point.

    Returns:
        The number of thoughts that changed.
    """
    variant = state.variant
    changes = 0
    while True:
        holders = _holders(state, table)
        changed = False
        for identity in variant.sorted_identities:
            held = holders.get(identity, set())
            accounted = (
                state.played_count(identity)
                + state.discard_count(identity)
                + len(held)
            )
            if accounted < variant.card_count(identity):
                continue
            scope = [
                card.order for _, card in state.all_cards()
                if card.order not in held
            ]
            removed = eliminate(state, identity, scope, [table])
            if removed:
                changes += removed
                changed = True
        if not changed:
            return changes


# =============================================================================
# Good Touch
# =============================================================================

def good_touch_elim(
    state: hanabi_state.GameState,
    table: hanabi_state.BeliefTable,
) -> int:
    """Narrow the inferences of clued and finessed cards in one perspective.

    A saved card is not trash under good touch, so basic-trash identities
    and identities already claimed by another saved card are removed from
    its ``inferred`` set. Visible claims are only used for cards in the
    perspective holder's own hand. Inferences are never emptied.

    Returns:
        The number of thoughts that changed.
    """
    saved = [
        (player_index, card) for player_index, card in state.all_cards()
        if (card.clued or card.finessed) and card.order in table
    ]
    changes = 0
    for player_index, card in saved:
        thought = table[card.order]
        if len(thought.inferred) <= 1:
            continue
        own_hand = player_index == table.perspective
        claimed = set()
        for other_index, other in saved:
            if other.order == card.order:
                continue
            identity = table[other.order].inferred_identity
            if identity is None and own_hand and other_index != player_index:
                identity = other.identity
            if identity is not None:
                claimed.add(identity)
        remove = {i for i in thought.inferred if state.is_basic_trash(i)}
        remove |= claimed & thought.inferred
        inferred = thought.inferred - remove
        if not remove or not inferred:
            continue
        table[card.order] = hanabi_state.Thought(thought.possible, inferred)
        changes += 1
    return changes


# =============================================================================
# Team Elimination
# =============================================================================

def team_elim(state: hanabi_state.GameState) -> int:
    """Run every elimination rule in every perspective to a fixed point.

    Returns:
        The total number of thoughts that changed.
    """
    total = 0
    while True:
        changes = 0
        for table in state.tables:
            changes += card_elim(state, table)
            changes += good_touch_elim(state, table)
        if not changes:
            if total:
                logger.debug("Elimination changed %d thoughts", total)
            return total
        total += changes
