"""Convention interpreter.

Consumes clue, play and discard actions and mutates beliefs according to
the convention: focus determination, save/play/fix classification,
prompt and finesse connection search, bad-touch detection, Order Chop
Move, and resolution of interpretations that were waiting on other
players' plays.

Every function takes the ``GameState`` it reads and mutates as its first
argument.
"""

from __future__ import annotations

import dataclasses
import enum
import logging

import elimination
import hanabi_config
import hanabi_state
import hanabi_variants

logger = logging.getLogger(__name__)


# =============================================================================
# Interpretation Records
# =============================================================================

class ClueKind(enum.Enum):
    """Meaning assigned to a clue."""
    PLAY = enum.auto()
    SAVE = enum.auto()
    FIX = enum.auto()
    INFORMATION = enum.auto()


class ConnectionType(enum.Enum):
    """How a card bridges the gap between a play stack and a clued card.

    KNOWN: A saved card whose identity is already inferred.
    PLAYABLE: A saved card already known to be playable.
    PROMPT: A clued card its holder will play when prompted.
    FINESSE: An unclued card its holder must blind-play.
    """
    KNOWN = enum.auto()
    PLAYABLE = enum.auto()
    PROMPT = enum.auto()
    FINESSE = enum.auto()


@dataclasses.dataclass(frozen=True)
class Connection:
    type: ConnectionType
    player_index: int
    order: int
    identity: hanabi_variants.Identity


@dataclasses.dataclass
class WaitingConnection:
    """An interpretation of a clued card that depends on pending plays.

    Attributes:
        focus_order: The clued card the interpretation is about.
        target: Holder of the focus card.
        giver: Player who gave the clue.
        identity: The identity the focus card has under this
            interpretation.
        connections: Connecting cards not yet played, in play order.
        action_index: Index of the clue action.
    """
    focus_order: int
    target: int
    giver: int
    identity: hanabi_variants.Identity
    connections: list[Connection]
    action_index: int


@dataclasses.dataclass
class ClueInterpretation:
    """Result of interpreting one clue.

    Attributes:
        kind: Play, save, fix or pure information.
        focus_order: Order of the focus card.
        chop_focus: Whether the focus card was on chop.
        inferences: Identities the focus card was narrowed to.
        connections: Connecting cards required for each play identity.
        bad_touched: Orders of the touched cards that were bad touches.
    """
    kind: ClueKind
    focus_order: int
    chop_focus: bool
    inferences: frozenset[hanabi_variants.Identity] = frozenset()
    connections: dict[hanabi_variants.Identity, list[Connection]] = (
        dataclasses.field(default_factory=dict)
    )
    bad_touched: list[int] = dataclasses.field(default_factory=list)

    def finesses(self, identity: hanabi_variants.Identity) -> int:
        """Number of blind-plays required if the focus is ``identity``."""
        return sum(
            1 for c in self.connections.get(identity, [])
            if c.type == ConnectionType.FINESSE
        )


# =============================================================================
# Hand Queries
# =============================================================================

def determine_focus(
    hand: hanabi_state.Hand,
    touched: tuple[int, ...] | list[int],
) -> tuple[hanabi_state.Card, bool]:
    """Select the focus of a clue, before the clue is applied.

    Priority: the chop card, then the leftmost newly touched card, then
    the leftmost chop-moved card, then the leftmost touched card.

    Args:
        hand: The target's hand.
        touched: Orders of the cards the clue touches.

    Returns:
        The focus card and whether it was on chop.

    Raises:
        ProtocolError: If no card of the hand is touched.
    """
    touched = set(touched)
    candidates = [c for c in hand if c.order in touched]
    if not candidates:
        raise hanabi_state.ProtocolError(
            f"Clue to player {hand.player_index} touches no cards in hand"
        )
    chop = hand.chop()
    if chop is not None and chop.order in touched:
        return chop, True
    for card in candidates:
        if not card.clued:
            return card, False
    for card in candidates:
        if card.chop_moved:
            return card, False
    return candidates[0], False


def find_prompt(
    state: hanabi_state.GameState,
    player_index: int,
    identity: hanabi_variants.Identity,
    ignore: set[int],
) -> hanabi_state.Card | None:
    """Leftmost clued card that could be prompted as ``identity``.

    Known cards and ignored orders are skipped. At least one clue on the
    card must touch the identity.
    """
    for card in state.hands[player_index]:
        if not card.clued or card.order in ignore:
            continue
        thought = state.thought(player_index, card)
        if thought.known is not None or identity not in thought.inferred:
            continue
        if any(state.variant.touches(identity, clue) for clue in card.clues):
            return card
    return None


def find_finesse(
    state: hanabi_state.GameState,
    player_index: int,
    identity: hanabi_variants.Identity,
    ignore: set[int],
) -> hanabi_state.Card | None:
    """Leftmost unclued, unfinessed card that could be ``identity``."""
    for card in state.hands[player_index]:
        if card.clued or card.finessed or card.chop_moved:
            continue
        if card.order in ignore:
            continue
        if identity in state.thought(player_index, card).inferred:
            return card
    return None


def find_bad_touch(
    state: hanabi_state.GameState,
    cards: list[hanabi_state.Card],
    focus_order: int,
) -> list[int]:
    """Orders of newly touched, visible, non-focus cards that are bad touches.

    A card is a bad touch if its identity is already played or dead, is
    already saved elsewhere, is duplicated by the focus or by a lower
    order among the touched cards, or is very likely held in our own hand.

    Args:
        state: The game state, after the clue's touch was applied.
        cards: The newly touched cards.
        focus_order: Order of the clue's focus.
    """
    new_orders = {c.order for c in cards}
    our_hand = state.our_hand
    bad = []
    for card in cards:
        identity = card.identity
        if card.order == focus_order or identity is None:
            continue
        if state.is_basic_trash(identity):
            bad.append(card.order)
        elif state.is_saved(identity, new_orders):
            bad.append(card.order)
        elif any(
            c.identity == identity
            and (c.order == focus_order or c.order < card.order)
            for c in cards if c.order != card.order
        ):
            bad.append(card.order)
        elif any(
            len(state.me[c.order].inferred) <= 2
            and identity in state.me[c.order].inferred
            for c in our_hand
        ):
            bad.append(card.order)
    return bad


def order_1s(
    state: hanabi_state.GameState,
    cards: list[hanabi_state.Card],
) -> list[hanabi_state.Card]:
    """Unknown 1s among ``cards``, in the order they should be played.

    A chop-focused 1 from the starting hand goes first, then fresh 1s
    from newest to oldest, then the remaining starting-hand 1s from
    right to left.
    """
    def key(card):
        in_start = state.in_starting_hand(card)
        if in_start and card.chop_when_first_clued:
            return (0, card.order)
        if not in_start:
            return (1, -card.order)
        return (2, card.order)

    return sorted((c for c in cards if is_unknown_one(c)), key=key)


def is_unknown_one(card: hanabi_state.Card) -> bool:
    """Clued only by 1 clues."""
    return bool(card.clues) and all(
        clue.type == hanabi_variants.ClueType.RANK and clue.value == 1
        for clue in card.clues
    )


# =============================================================================
# Connection Search
# =============================================================================

def _playable_on(stacks: list[int], identity: hanabi_variants.Identity) -> bool:
    return stacks[identity.suit_index] + 1 == identity.rank


def _matches_truth(
    card: hanabi_state.Card, identity: hanabi_variants.Identity,
) -> bool:
    return card.identity is None or card.identity == identity


def _connect_in_hand(
    state: hanabi_state.GameState,
    player_index: int,
    target: int,
    identity: hanabi_variants.Identity,
    ignore: set[int],
) -> Connection | None:
    prompt = find_prompt(state, player_index, identity, ignore)
    if prompt is not None:
        if _matches_truth(prompt, identity):
            return Connection(
                ConnectionType.PROMPT, player_index, prompt.order, identity,
            )
        # A wrong prompt means this player cannot be the connection.
        return None
    if state.settings.level < hanabi_config.Level.FINESSE:
        return None
    if player_index == target:
        return None
    finesse = find_finesse(state, player_index, identity, ignore)
    if finesse is not None and _matches_truth(finesse, identity):
        return Connection(
            ConnectionType.FINESSE, player_index, finesse.order, identity,
        )
    return None


def find_connecting(
    state: hanabi_state.GameState,
    giver: int,
    target: int,
    identity: hanabi_variants.Identity,
    ignore: set[int],
    stacks: list[int] | None = None,
) -> Connection | None:
    """Find the card that will play as ``identity`` before the focus does.

    Known and known-playable saved cards are checked first, then each
    player after the giver in turn order for a prompt or a finesse.
    Cards we can see must actually be ``identity``; our own cards only
    need to be consistent with our beliefs about them.

    Args:
        state: The game state.
        giver: Player who gave the clue. Their hand is never searched.
        target: Player who received the clue. Cannot be finessed.
        identity: The identity needed next.
        ignore: Orders that may not be used.
        stacks: Play stacks after the earlier connections, for
            playability checks. Defaults to the current stacks.
    """
    stacks = stacks if stacks is not None else state.play_stacks
    single = frozenset({identity})
    saved = [
        (player_index, card) for player_index, card in state.all_cards()
        if (card.clued or card.finessed) and card.order not in ignore
        and _matches_truth(card, identity)
    ]
    for player_index, card in saved:
        if state.thought(player_index, card).inferred == single:
            return Connection(
                ConnectionType.KNOWN, player_index, card.order, identity,
            )
    for player_index, card in saved:
        inferred = state.thought(player_index, card).inferred
        if identity in inferred and all(_playable_on(stacks, i) for i in inferred):
            return Connection(
                ConnectionType.PLAYABLE, player_index, card.order, identity,
            )
    for offset in range(1, state.num_players):
        player_index = (giver + offset) % state.num_players
        connection = _connect_in_hand(
            state, player_index, target, identity, ignore,
        )
        if connection is not None:
            return connection
    return None


def find_connections(
    state: hanabi_state.GameState,
    giver: int,
    target: int,
    identity: hanabi_variants.Identity,
    ignore: set[int],
) -> list[Connection] | None:
    """The chain of connections that makes ``identity`` playable.

    Returns:
        The connections in play order (empty if the identity is playable
        now), or None if the chain cannot be completed.
    """
    suit_index = identity.suit_index
    stacks = list(state.play_stacks)
    used = set(ignore)
    connections = []
    for rank in range(state.play_stacks[suit_index] + 1, identity.rank):
        needed = hanabi_variants.Identity(suit_index, rank)
        connection = find_connecting(state, giver, target, needed, used, stacks)
        if connection is None:
            return None
        connections.append(connection)
        used.add(connection.order)
        stacks[suit_index] = rank
    return connections


# =============================================================================
# Clues
# =============================================================================

def apply_touch(
    state: hanabi_state.GameState,
    action: hanabi_state.ClueAction,
) -> None:
    """Apply a clue's positive and negative information to the target hand.

    Raises:
        ProtocolError: If the clue is inconsistent with a visible card, or
            leaves a card with no possible identity.
    """
    variant = state.variant
    touched_ids = variant.touched_identities(action.clue)
    for card in state.hands[action.target]:
        touched = card.order in action.touched
        if card.identity is not None and touched != variant.touches(
            card.identity, action.clue,
        ):
            raise hanabi_state.ProtocolError(
                f"Clue {variant.clue_name(action.clue)} is inconsistent "
                f"with card {card.order} ({variant.short(card.identity)})"
            )
        if touched:
            state.restrict(card.order, touched_ids)
            card.clued = True
            card.clues.append(action.clue)
        else:
            state.exclude(card.order, touched_ids)
        if not state.common[card.order].possible:
            raise hanabi_state.ProtocolError(
                f"Clue {variant.clue_name(action.clue)} contradicts earlier "
                f"clues on card {card.order}"
            )


def _is_save_identity(
    state: hanabi_state.GameState,
    identity: hanabi_variants.Identity,
    clue: hanabi_variants.Clue,
    focus_order: int,
) -> bool:
    if state.is_critical(identity):
        return True
    return (
        state.settings.two_saves
        and clue.type == hanabi_variants.ClueType.RANK
        and clue.value == 2
        and identity.rank == 2
        and not state.visible_elsewhere(identity, focus_order)
    )


def _known_playable_or_trash(
    state: hanabi_state.GameState, thought: hanabi_state.Thought,
) -> bool:
    return all(state.is_playable(i) for i in thought.inferred) or all(
        state.is_basic_trash(i) for i in thought.inferred
    )


def _apply_connections(
    state: hanabi_state.GameState, connections: list[Connection],
) -> None:
    for connection in connections:
        card = state.hands[connection.player_index].find_order(connection.order)
        if connection.type == ConnectionType.FINESSE:
            card.finessed = True
        if connection.type in (ConnectionType.FINESSE, ConnectionType.PROMPT):
            state.infer(connection.order, frozenset({connection.identity}))
        card.reasoning.append(state.action_index)
        logger.debug(
            "%s connection on %s's card %d as %s",
            connection.type.name.lower(),
            state.player_names[connection.player_index],
            connection.order, state.variant.short(connection.identity),
        )


def interpret_clue(
    state: hanabi_state.GameState,
    action: hanabi_state.ClueAction,
) -> ClueInterpretation:
    """Update beliefs for a clue and return how it was read.

    Raises:
        ProtocolError: If a touched order is not in the target's hand, or
            the clue touches nothing.
    """
    giver, target, clue = action.giver, action.target, action.clue
    hand = state.hands[target]
    touched_cards = [state.card_in_hand(target, o) for o in action.touched]
    focus, chop_focus = determine_focus(hand, action.touched)
    chop = hand.chop()
    previously_clued = focus.clued
    before = state.common[focus.order]
    new_cards = [c for c in touched_cards if not c.clued]
    new_orders = {c.order for c in new_cards}
    logger.debug(
        "Focus of %s's clue is card %d (slot %d)%s",
        state.player_names[giver], focus.order, hand.slot_of(focus.order),
        ", on chop" if chop_focus else "",
    )

    apply_touch(state, action)
    if chop is not None and chop.order in new_orders:
        chop.chop_when_first_clued = True
    elimination.team_elim(state)

    bad_touched = []
    if target != state.our_player_index:
        bad_touched = find_bad_touch(state, new_cards, focus.order)
        for card in new_cards:
            if card.order in bad_touched:
                card.bad_touched = True
        if bad_touched:
            logger.debug("Bad touched cards: %s", bad_touched)

    interpretation = ClueInterpretation(
        ClueKind.INFORMATION, focus.order, chop_focus, bad_touched=bad_touched,
    )
    if previously_clued and state.settings.level >= hanabi_config.Level.FIX:
        after = state.common[focus.order]
        if (
            not before.inferred <= after.possible
            or _known_playable_or_trash(state, before)
        ):
            interpretation.kind = ClueKind.FIX
            interpretation.inferences = after.inferred
            focus.reasoning.append(state.action_index)
            logger.debug("Clue is a fix on card %d", focus.order)
            elimination.team_elim(state)
            return interpretation

    ignore = new_orders | {focus.order}
    play_ids = {}
    save_ids = set()
    for identity in sorted(state.common[focus.order].possible):
        if state.is_trash(identity, ignore):
            continue
        connections = find_connections(state, giver, target, identity, ignore)
        if connections is not None:
            play_ids[identity] = connections
        if chop_focus and _is_save_identity(state, identity, clue, focus.order):
            save_ids.add(identity)
    inferences = frozenset(play_ids) | frozenset(save_ids)

    truth = focus.identity
    if not inferences or (truth is not None and truth not in inferences):
        log = logger.debug if state.hypothetical else logger.warning
        log(
            "No interpretation of %s's %s clue to %s fits card %d; "
            "treating it as information",
            state.player_names[giver], state.variant.clue_name(clue),
            state.player_names[target], focus.order,
        )
        state.reset_inference(focus.order)
        focus.reasoning.append(state.action_index)
        elimination.team_elim(state)
        return interpretation

    interpretation.kind = (
        ClueKind.SAVE if chop_focus and save_ids else ClueKind.PLAY
    )
    interpretation.inferences = inferences
    interpretation.connections = {
        i: c for i, c in play_ids.items() if i not in save_ids
    }
    state.infer(focus.order, inferences)
    focus.reasoning.append(state.action_index)
    logger.debug(
        "Card %d interpreted as %s (%s)", focus.order,
        state.log_identities(inferences), interpretation.kind.name.lower(),
    )

    # A saved identity needs no connecting plays, so nobody is finessed.
    if truth is not None:
        connections = [] if truth in save_ids else play_ids.get(truth, [])
        _apply_connections(state, connections)
        if connections:
            state.waiting_connections.append(WaitingConnection(
                focus.order, target, giver, truth, list(connections),
                state.action_index,
            ))
    else:
        pending = {
            i: c for i, c in play_ids.items() if c and i not in save_ids
        }
        for identity, connections in pending.items():
            state.waiting_connections.append(WaitingConnection(
                focus.order, target, giver, identity, list(connections),
                state.action_index,
            ))
        if len(inferences) == 1 and pending:
            _apply_connections(state, next(iter(pending.values())))
        else:
            reasoned = {c.order for cs in pending.values() for c in cs}
            for order in reasoned:
                found = state.find_card(order)
                if found is not None:
                    found[1].reasoning.append(state.action_index)

    elimination.team_elim(state)
    return interpretation


# =============================================================================
# Plays and Discards
# =============================================================================

def _check_contradiction(
    state: hanabi_state.GameState,
    player_index: int,
    card: hanabi_state.Card,
    identity: hanabi_variants.Identity,
) -> None:
    """Request a rewind if one of our cards was inferred wrongly."""
    if player_index != state.our_player_index or state.hypothetical:
        return
    if card.rewinded or not card.saved:
        return
    inferred = state.me[card.order].inferred
    if identity in inferred:
        return
    index = card.reasoning[0] if card.reasoning else card.drawn_index + 1
    logger.warning(
        "Card %d was inferred as %s but is %s; rewinding to action %d",
        card.order, state.log_identities(inferred),
        state.variant.short(identity), index,
    )
    state.rewind_requests.append((
        index, hanabi_state.RewindAction(player_index, card.order, identity),
    ))


def _interpret_order_chop_move(
    state: hanabi_state.GameState,
    player_index: int,
    card: hanabi_state.Card,
) -> None:
    """Chop move the player at the distance of an out-of-order 1."""
    ones = order_1s(state, list(state.hands[player_index]))
    orders = [c.order for c in ones]
    if card.order not in orders:
        return
    distance = orders.index(card.order)
    if distance == 0:
        return
    target = (player_index + distance) % state.num_players
    if target == player_index:
        return
    chop = state.hands[target].chop()
    if chop is None:
        return
    chop.chop_moved = True
    logger.info(
        "%s played a 1 out of order; chop moving %s's slot %d",
        state.player_names[player_index], state.player_names[target],
        state.hands[target].slot_of(chop.order),
    )


def _withdraw_finesses(
    state: hanabi_state.GameState, connections: list[Connection],
) -> None:
    """Unmark finessed cards that no waiting connection relies on."""
    still_needed = {
        c.order for w in state.waiting_connections for c in w.connections
    }
    for connection in connections:
        if connection.type != ConnectionType.FINESSE:
            continue
        if connection.order in still_needed:
            continue
        found = state.find_card(connection.order)
        if found is None or not found[1].finessed:
            continue
        found[1].finessed = False
        state.reset_inference(connection.order)


def _fail_waiting(
    state: hanabi_state.GameState, waiting: WaitingConnection,
) -> None:
    state.waiting_connections.remove(waiting)
    logger.info(
        "Card %d is not %s; a connection did not play",
        waiting.focus_order, state.variant.short(waiting.identity),
    )
    for table in state.tables:
        thought = table.get(waiting.focus_order)
        if thought is not None:
            table[waiting.focus_order] = thought.infer(
                thought.inferred - {waiting.identity},
            )
    _withdraw_finesses(state, waiting.connections)


def _reconnect(
    state: hanabi_state.GameState, waiting: WaitingConnection, order: int,
) -> bool:
    """Search again for a chain after a clued connecting card was wrong.

    Returns:
        Whether the focus can still be ``waiting.identity``.
    """
    connections = find_connections(
        state, waiting.giver, waiting.target, waiting.identity,
        {waiting.focus_order, order},
    )
    if connections is None:
        return False
    old = waiting.connections
    if connections:
        waiting.connections = connections
        found = state.find_card(waiting.focus_order)
        single = frozenset({waiting.identity})
        if found is not None and (
            found[1].identity == waiting.identity
            or state.common[waiting.focus_order].inferred == single
        ):
            _apply_connections(state, connections)
    else:
        state.waiting_connections.remove(waiting)
    _withdraw_finesses(state, old)
    logger.debug(
        "Card %d can still be %s without card %d",
        waiting.focus_order, state.variant.short(waiting.identity), order,
    )
    return True


def _resolve_waiting(
    state: hanabi_state.GameState,
    player_index: int,
    order: int,
    identity: hanabi_variants.Identity,
    played: bool,
) -> None:
    """Advance or invalidate waiting connections after a card leaves a hand."""
    for waiting in list(state.waiting_connections):
        if waiting not in state.waiting_connections:
            continue
        if waiting.focus_order == order:
            state.waiting_connections.remove(waiting)
            _withdraw_finesses(state, waiting.connections)
            continue
        index = next(
            (i for i, c in enumerate(waiting.connections) if c.order == order),
            None,
        )
        if index is not None:
            connection = waiting.connections[index]
            if played and connection.identity == identity:
                waiting.connections.pop(index)
                if not waiting.connections:
                    state.waiting_connections.remove(waiting)
                continue
            if (
                connection.type != ConnectionType.FINESSE
                and _reconnect(state, waiting, order)
            ):
                continue
            _fail_waiting(state, waiting)
            continue
        first = waiting.connections[0]
        if (
            not played
            and first.type == ConnectionType.FINESSE
            and first.player_index == player_index
        ):
            _fail_waiting(state, waiting)


def interpret_play(
    state: hanabi_state.GameState,
    action: hanabi_state.PlayAction,
) -> None:
    """Reveal a played card and propagate what it tells us.

    Raises:
        ProtocolError: If the card is not in the player's hand.
    """
    card = state.card_in_hand(action.player_index, action.order)
    _check_contradiction(state, action.player_index, card, action.identity)
    if state.settings.level >= hanabi_config.Level.BASIC_CM:
        _interpret_order_chop_move(state, action.player_index, card)
    elimination.fix_identity(state, action.order, action.identity)
    _resolve_waiting(
        state, action.player_index, action.order, action.identity, True,
    )
    state.on_play(action)
    elimination.team_elim(state)


def interpret_discard(
    state: hanabi_state.GameState,
    action: hanabi_state.DiscardAction,
) -> None:
    """Reveal a discarded (or misplayed) card and propagate it.

    Raises:
        ProtocolError: If the card is not in the player's hand.
    """
    card = state.card_in_hand(action.player_index, action.order)
    _check_contradiction(state, action.player_index, card, action.identity)
    elimination.fix_identity(state, action.order, action.identity)
    _resolve_waiting(
        state, action.player_index, action.order, action.identity, False,
    )
    state.on_discard(action)
    elimination.team_elim(state)


# =============================================================================
# Turns and Rewinds
# =============================================================================

def update_turn(
    state: hanabi_state.GameState,
    action: hanabi_state.TurnAction,
) -> None:
    state.current_player_index = action.current_player_index
    state.turn_count += 1


def apply_rewind(
    state: hanabi_state.GameState,
    action: hanabi_state.RewindAction,
) -> None:
    """Pin a card to its true identity.

    Raises:
        ProtocolError: If the card is not in the player's hand.
    """
    card = state.hands[action.player_index].find_order(action.order)
    if card is None:
        raise hanabi_state.ProtocolError(
            f"Could not find card {action.order} to rewind"
        )
    elimination.fix_identity(state, action.order, action.identity)
    card.rewinded = True
    elimination.team_elim(state)
