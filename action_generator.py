"""Action generator and scorer.

Enumerates legal clues, simulates each one on a hypothetical copy of the
state, scores the results, classifies our playable cards into priority
buckets, orders urgent actions for the other players, and picks the single
action to perform this turn.

Architecture:
    ``find_clues`` evaluates every legal clue once per turn. The play,
    save and fix clue lists it returns feed ``find_urgent_actions``, which
    sorts per-player emergencies into nine buckets. ``take_action`` then
    walks the buckets, interleaving our own plays and play clues, and
    falls through to a discard.
"""

from __future__ import annotations

import dataclasses
import logging

import conventions
import hanabi_config
import hanabi_state
import hanabi_variants

logger = logging.getLogger(__name__)

NUM_URGENT_BUCKETS = 9
NUM_PLAYABLE_BUCKETS = 6


# =============================================================================
# Clue Results
# =============================================================================

@dataclasses.dataclass
class ClueResult:
    """Simulated effect of a clue.

    Attributes:
        new_touched: Cards touched for the first time.
        bad_touch: Newly touched cards that are bad touches.
        playables: (player index, identity) of cards that become known
            playable, following chains of plays.
        finesses: Cards called to blind-play.
        elim: Possibilities removed from the common perspective.
    """
    new_touched: int = 0
    bad_touch: int = 0
    playables: list[tuple[int, hanabi_variants.Identity]] = dataclasses.field(
        default_factory=list,
    )
    finesses: int = 0
    elim: int = 0


@dataclasses.dataclass
class CandidateClue:
    """A clue we could give, with its simulated result."""
    target: int
    clue: hanabi_variants.Clue
    result: ClueResult
    kind: conventions.ClueKind
    focus_order: int

    def to_perform(self) -> hanabi_state.PerformAction:
        return hanabi_state.PerformAction.give(self.target, self.clue)


@dataclasses.dataclass
class FixClue:
    """A clue that corrects a wrong belief about one card.

    Attributes:
        target: Holder of the card.
        clue: The fixing clue.
        order: The misread card.
        urgent: The holder would misplay the card.
        trash: The card is trash, so the fix also frees a discard.
    """
    target: int
    clue: hanabi_variants.Clue
    order: int
    urgent: bool = False
    trash: bool = False

    def to_perform(self) -> hanabi_state.PerformAction:
        return hanabi_state.PerformAction.give(self.target, self.clue)


def find_clue_value(
    result: ClueResult,
    settings: hanabi_config.ConventionSettings | None = None,
) -> float:
    """Value of a clue result. Higher is better.

    A play clue should reach ``settings.min_clue_value`` (minimum clue
    value principle).
    """
    settings = settings or hanabi_config.ConventionSettings()
    return (
        settings.finesse_weight * result.finesses
        + settings.new_touch_weight * (result.new_touched - result.bad_touch)
        + settings.playable_weight * len(result.playables)
        + settings.elim_weight * result.elim
        - settings.bad_touch_penalty * result.bad_touch
    )


def select_play_clue(
    clues: list[CandidateClue],
    settings: hanabi_config.ConventionSettings | None = None,
) -> tuple[CandidateClue | None, float]:
    """The highest valued clue. The first one seen wins ties."""
    best_clue = None
    best_value = -99.0
    for clue in clues:
        value = find_clue_value(clue.result, settings)
        if value > best_value:
            best_clue, best_value = clue, value
    return best_clue, best_value


# =============================================================================
# Clue Simulation
# =============================================================================

def is_legal_clue(
    state: hanabi_state.GameState, target: int, clue: hanabi_variants.Clue,
) -> bool:
    """A clue must be cluable in the variant and touch at least one card."""
    if target == state.our_player_index:
        return False
    if not state.variant.is_cluable(clue):
        return False
    return bool(state.clue_touched(target, clue))


def legal_clues(
    state: hanabi_state.GameState, target: int,
) -> list[hanabi_variants.Clue]:
    return [
        clue for clue in state.variant.all_clues()
        if is_legal_clue(state, target, clue)
    ]


def _known_playables(
    state: hanabi_state.GameState,
    extra_orders: set[int] = frozenset(),
) -> list[tuple[int, int, hanabi_variants.Identity]]:
    """Visible cards their holders know to be playable, following chains.

    A card counts if it is finessed, if every identity it is inferred as
    is playable or already played, or if it is in ``extra_orders``. Its
    true identity must be playable once the cards before it are. Bad
    touched cards never count.

    Returns:
        (player index, order, identity) tuples in play order.
    """
    stacks = list(state.play_stacks)
    found = []
    seen = set()
    progress = True
    while progress:
        progress = False
        for player_index, card in state.all_cards():
            identity = card.identity
            if player_index == state.our_player_index or card.order in seen:
                continue
            if card.bad_touched and not card.finessed:
                continue
            if identity is None or stacks[identity.suit_index] + 1 != identity.rank:
                continue
            inferred = state.common[card.order].inferred
            known = card.finessed or card.order in extra_orders or all(
                stacks[i.suit_index] + 1 >= i.rank for i in inferred
            )
            if not known:
                continue
            found.append((player_index, card.order, identity))
            seen.add(card.order)
            stacks[identity.suit_index] = identity.rank
            progress = True
    return found


def _simulate_clue(
    state: hanabi_state.GameState,
    target: int,
    clue: hanabi_variants.Clue,
    touched: tuple[int, ...],
) -> tuple[hanabi_state.GameState, conventions.ClueInterpretation]:
    hypo = state.minimal_copy()
    hypo.hypothetical = True
    action = hanabi_state.ClueAction(
        state.our_player_index, target, clue, touched,
    )
    return hypo, conventions.interpret_clue(hypo, action)


def _misreads(
    hypo: hanabi_state.GameState,
    target: int,
    touched: tuple[int, ...],
    interpretation: conventions.ClueInterpretation,
) -> bool:
    """Whether a touched card would be left believing a wrong identity."""
    for order in touched:
        if order in interpretation.bad_touched:
            continue
        card = hypo.hands[target].find_order(order)
        if card.identity not in hypo.common[order].inferred:
            return True
    return False


def evaluate_clue(
    state: hanabi_state.GameState,
    target: int,
    clue: hanabi_variants.Clue,
) -> tuple[ClueResult, conventions.ClueInterpretation] | None:
    """Simulate giving a clue without touching the real state.

    Returns:
        The clue result and interpretation, or None if the clue is illegal
        or would leave a touched card misread.
    """
    if not is_legal_clue(state, target, clue):
        return None
    touched = state.clue_touched(target, clue)
    hand = state.hands[target]
    new_touched = sum(1 for o in touched if not hand.find_order(o).clued)
    before_playable = {order for _, order, _ in _known_playables(state)}
    before_sizes = {o: t.size for o, t in state.common.thoughts.items()}

    hypo, interpretation = _simulate_clue(state, target, clue, touched)
    if _misreads(hypo, target, touched, interpretation):
        return None

    focus = hypo.hands[target].find_order(interpretation.focus_order)
    extra = set()
    if interpretation.kind == conventions.ClueKind.PLAY:
        extra.add(focus.order)
    playables = [
        (player_index, identity)
        for player_index, order, identity in _known_playables(hypo, extra)
        if order not in before_playable
    ]
    elim = sum(
        size - hypo.common[order].size
        for order, size in before_sizes.items() if order in hypo.common
    )
    result = ClueResult(
        new_touched=new_touched,
        bad_touch=len(interpretation.bad_touched),
        playables=playables,
        finesses=interpretation.finesses(focus.identity),
        elim=elim,
    )
    return result, interpretation


def _fixes(
    state: hanabi_state.GameState,
    target: int,
    clue: hanabi_variants.Clue,
    order: int,
) -> bool:
    """Whether a clue would make a misread card's inference correct.

    Every other touched card must also be read correctly, and a clue that
    moves the focus to a new card must give that card a real meaning.
    """
    touched = state.clue_touched(target, clue)
    if order not in touched:
        return False
    hypo, interpretation = _simulate_clue(state, target, clue, touched)
    if (
        interpretation.focus_order != order
        and interpretation.kind == conventions.ClueKind.INFORMATION
    ):
        return False
    return not _misreads(hypo, target, touched, interpretation)


def _needs_save(
    state: hanabi_state.GameState, card: hanabi_state.Card,
) -> bool:
    identity = card.identity
    if state.is_trash(identity, {card.order}):
        return False
    if state.is_critical(identity):
        return True
    return (
        state.settings.two_saves
        and identity.rank == 2
        and not state.visible_elsewhere(identity, card.order)
    )


def find_clues(
    state: hanabi_state.GameState,
) -> tuple[
    list[list[CandidateClue]],
    list[CandidateClue | None],
    list[list[FixClue]],
]:
    """Evaluate every legal clue to every other player.

    Returns:
        Per player: valid play clues, the save clue if the player's chop
        needs saving, and fix clues for misread cards.
    """
    num_players = state.num_players
    play_clues = [[] for _ in range(num_players)]
    save_clues = [None] * num_players
    fix_clues = [[] for _ in range(num_players)]

    for target in range(num_players):
        if target == state.our_player_index:
            continue
        hand = state.hands[target]
        chop = hand.chop()
        save_candidates = []
        clues = legal_clues(state, target)
        for clue in clues:
            evaluated = evaluate_clue(state, target, clue)
            if evaluated is None:
                continue
            result, interpretation = evaluated
            if interpretation.kind == conventions.ClueKind.INFORMATION:
                continue
            candidate = CandidateClue(
                target, clue, result, interpretation.kind,
                interpretation.focus_order,
            )
            logger.debug(
                "Clue %s to %s has value %.2f",
                state.variant.clue_name(clue), state.player_names[target],
                find_clue_value(result, state.settings),
            )
            if interpretation.kind == conventions.ClueKind.PLAY:
                play_clues[target].append(candidate)
            if chop is not None and interpretation.focus_order == chop.order:
                save_candidates.append(candidate)

        if chop is not None and _needs_save(state, chop) and save_candidates:
            save_clues[target], _ = select_play_clue(
                save_candidates, state.settings,
            )

        if state.settings.level < hanabi_config.Level.FIX:
            continue
        for card in hand:
            if not (card.clued or card.finessed):
                continue
            thought = state.common[card.order]
            if card.identity in thought.inferred:
                continue
            fix = next(
                (c for c in clues if _fixes(state, target, c, card.order)),
                None,
            )
            if fix is None:
                continue
            fix_clues[target].append(FixClue(
                target, fix, card.order,
                urgent=card.finessed or all(
                    state.is_playable(i) for i in thought.inferred
                ),
                trash=state.is_basic_trash(card.identity),
            ))
    return play_clues, save_clues, fix_clues


# =============================================================================
# Urgent Actions
# =============================================================================

def hand_loaded(state: hanabi_state.GameState, player_index: int) -> bool:
    """Whether a player already knows of a playable or trash card."""
    for card in state.hands[player_index]:
        inferred = state.common[card.order].inferred
        if card.finessed and card.identity is not None and state.is_playable(
            card.identity,
        ):
            return True
        if all(state.is_playable(i) for i in inferred):
            return True
        if all(state.is_basic_trash(i) for i in inferred):
            return True
    return False


def find_unlock(
    state: hanabi_state.GameState, target: int,
) -> hanabi_state.PerformAction | None:
    """A play of ours that makes one of the target's cards playable.

    The target must know their card will become playable.
    """
    for card in state.hands[target]:
        identity = card.identity
        if identity is None or state.playable_away(identity) != 1:
            continue
        previous = hanabi_variants.Identity(identity.suit_index, identity.rank - 1)
        ours = next(
            (c for c in state.our_hand
             if state.me[c.order].inferred == frozenset({previous})),
            None,
        )
        if ours is None:
            continue
        inferred = state.common[card.order].inferred
        if all(state.is_playable(i) or i == identity for i in inferred):
            return hanabi_state.PerformAction(
                hanabi_state.PerformType.PLAY, ours.order,
            )
    return None


def find_play_over_save(
    state: hanabi_state.GameState,
    target: int,
    play_clues: list[CandidateClue],
    locked: bool = False,
) -> CandidateClue | None:
    """A play clue that gives the endangered target something to play.

    The target's new playable may depend on plays by the players between
    us and them, but not on anyone after them.
    """
    minimum = (
        state.settings.locked_min_clue_value if locked
        else state.settings.min_clue_value
    )
    found = []
    for clue in play_clues:
        if find_clue_value(clue.result, state.settings) < minimum:
            continue
        playables = clue.result.playables
        target_ids = [i for p, i in playables if p == target]
        if any(state.is_playable(i) for i in target_ids):
            found.append(clue)
            continue
        for target_id in target_ids:
            suit_index = target_id.suit_index
            help_given = 0
            reached = False
            for offset in range(1, state.num_players + 1):
                player_index = (state.our_player_index + offset) % state.num_players
                next_rank = state.play_stacks[suit_index] + help_given + 1
                needed = hanabi_variants.Identity(suit_index, next_rank)
                if (player_index, needed) in playables:
                    if player_index == target:
                        reached = True
                        break
                    help_given += 1
                    continue
                if player_index == target:
                    break
            if reached:
                found.append(clue)
                break
    if not found:
        return None
    best, _ = select_play_clue(found, state.settings)
    return best


def find_urgent_actions(
    state: hanabi_state.GameState,
    play_clues: list[list[CandidateClue]],
    save_clues: list[CandidateClue | None],
    fix_clues: list[list[FixClue]],
    playable_priorities: list[list[hanabi_state.Card]],
) -> list[list[hanabi_state.PerformAction]]:
    """Actions that help endangered players, in nine priority buckets.

    For the next player: (0) unlock, (1) save or Order Chop Move, (2) play
    clue or trash fix instead of a save, (3) urgent fix. For later
    players: (4) unlock, (5) save or Order Chop Move, (6) play clue or
    trash fix instead of a save, (7) urgent and other fixes. Finally (8)
    early saves for players who have something else to do.
    """
    urgent = [[] for _ in range(NUM_URGENT_BUCKETS)]
    all_play_clues = [c for clues in play_clues for c in clues]
    num_players = state.num_players

    for offset in range(1, num_players):
        target = (state.our_player_index + offset) % num_players
        next_player = offset == 1
        hand = state.hands[target]
        save = save_clues[target]

        if save is not None or hand.is_locked():
            if hand_loaded(state, target):
                if save is not None:
                    urgent[8].append(save.to_perform())
                continue

            unlock = find_unlock(state, target)
            if unlock is not None:
                urgent[0 if next_player else 4].append(unlock)
                continue

            if state.clue_tokens > 1:
                play_over_save = find_play_over_save(
                    state, target, all_play_clues, hand.is_locked(),
                )
                if play_over_save is not None:
                    logger.debug(
                        "Play clue to %s instead of a save",
                        state.player_names[play_over_save.target],
                    )
                    urgent[2 if next_player else 6].append(
                        play_over_save.to_perform(),
                    )
                    continue

            trash_fix = next(
                (f for f in fix_clues[target] if f.urgent and f.trash), None,
            )
            if trash_fix is not None:
                urgent[2 if next_player else 6].append(trash_fix.to_perform())
                continue

            if (
                state.settings.level >= hanabi_config.Level.BASIC_CM
                and not any(playable_priorities[:4])
            ):
                ordered = conventions.order_1s(state, playable_priorities[4])
                if len(ordered) > offset and _chop_move_safe(state, target):
                    urgent[1 if next_player else 5].append(
                        hanabi_state.PerformAction(
                            hanabi_state.PerformType.PLAY,
                            ordered[offset].order,
                        )
                    )
                    continue

            if save is not None:
                urgent[1 if next_player else 5].append(save.to_perform())

        if fix_clues[target]:
            urgent_fix = next((f for f in fix_clues[target] if f.urgent), None)
            if urgent_fix is not None:
                urgent[3 if next_player else 7].append(urgent_fix.to_perform())
                continue
            urgent[7].append(fix_clues[target][0].to_perform())
    return urgent


def _chop_move_safe(state: hanabi_state.GameState, target: int) -> bool:
    """Whether chop moving the target leaves a non-critical card on chop."""
    hand = state.hands[target]
    chop_index = hand.find_chop()
    if chop_index == -1:
        return False
    for index in range(chop_index - 1, -1, -1):
        card = hand[index]
        if card.clued or card.finessed or card.chop_moved:
            continue
        return not state.is_critical(card.identity)
    return True


# =============================================================================
# Own Cards
# =============================================================================

def find_playables(state: hanabi_state.GameState) -> list[hanabi_state.Card]:
    """Our cards we believe are playable now."""
    return [
        card for card in state.our_hand
        if state.me[card.order].inferred
        and all(state.is_playable(i) for i in state.me[card.order].inferred)
    ]


def find_known_trash(state: hanabi_state.GameState) -> list[hanabi_state.Card]:
    """Our cards we believe are safe to discard."""
    return [
        card for card in state.our_hand
        if state.me[card.order].inferred and all(
            state.is_trash(i, {card.order})
            for i in state.me[card.order].inferred
        )
    ]


def _connects(
    state: hanabi_state.GameState,
    player_index: int,
    identity: hanabi_variants.Identity,
) -> bool:
    if player_index == state.our_player_index:
        single = frozenset({identity})
        return any(state.me[c.order].inferred == single for c in state.our_hand)
    return bool(state.hands[player_index].find_cards(identity))


def determine_playable_card(
    state: hanabi_state.GameState,
    playable_cards: list[hanabi_state.Card],
) -> list[list[hanabi_state.Card]]:
    """Sort our playable cards into six priority buckets.

    (0) finessed, (1) connects to a card in another player's hand,
    (2) connects only within our own hand, (3) a known 5, (4) ambiguous
    unknowns, unknown 1s first in their conventional order,
    (5) everything else by lowest rank, newest first.
    """
    priorities = [[] for _ in range(NUM_PLAYABLE_BUCKETS)]
    num_players = state.num_players
    for card in playable_cards:
        thought = state.me[card.order]
        possibilities = thought.inferred or thought.possible
        if card.finessed:
            priorities[0].append(card)
            continue
        if conventions.is_unknown_one(card) and len(possibilities) > 1:
            priorities[4].append(card)
            continue

        priority = 1
        for inference in possibilities:
            connected = False
            for offset in range(1, num_players + 1):
                player_index = (state.our_player_index + offset) % num_players
                if _connects(state, player_index, inference.next()):
                    connected = True
                    if player_index == state.our_player_index:
                        priority = 2
                    break
            if not connected:
                priority = 3
                break
        if priority < 3:
            priorities[priority].append(card)
            continue

        if min(i.rank for i in possibilities) == hanabi_variants.MAX_RANK:
            priorities[3].append(card)
        elif len(possibilities) > 1:
            priorities[4].append(card)
        else:
            priorities[5].append(card)

    ones = conventions.order_1s(state, priorities[4])
    priorities[4] = ones + [c for c in priorities[4] if c not in ones]
    priorities[5].sort(key=lambda c: (
        min(i.rank for i in state.me[c.order].inferred), -c.order,
    ))
    return priorities


# =============================================================================
# Turn Decision
# =============================================================================

def _play(card: hanabi_state.Card) -> hanabi_state.PerformAction:
    return hanabi_state.PerformAction(hanabi_state.PerformType.PLAY, card.order)


def _discard(card: hanabi_state.Card) -> hanabi_state.PerformAction:
    return hanabi_state.PerformAction(
        hanabi_state.PerformType.DISCARD, card.order,
    )


def _first_legal_clue(
    state: hanabi_state.GameState,
) -> hanabi_state.PerformAction | None:
    for offset in range(1, state.num_players):
        target = (state.our_player_index + offset) % state.num_players
        clues = legal_clues(state, target)
        if clues:
            return hanabi_state.PerformAction.give(target, clues[0])
    return None


def _forced_discard(state: hanabi_state.GameState) -> hanabi_state.Card:
    """The least informative card: no critical inference, lowest rank, leftmost."""
    def key(item):
        index, card = item
        inferred = state.me[card.order].inferred
        return (
            any(state.is_critical(i) for i in inferred),
            min(i.rank for i in inferred),
            index,
        )

    return min(enumerate(state.our_hand), key=key)[1]


def take_action(state: hanabi_state.GameState) -> hanabi_state.PerformAction:
    """Choose the action to perform on our turn."""
    settings = state.settings
    tokens = state.clue_tokens

    play_clues, save_clues, fix_clues = find_clues(state)
    playable = find_playables(state)
    priorities = determine_playable_card(state, playable)
    urgent = find_urgent_actions(
        state, play_clues, save_clues, fix_clues, priorities,
    )
    best_clue, best_value = select_play_clue(
        [c for clues in play_clues for c in clues], settings,
    )
    if best_clue is not None:
        logger.debug(
            "Best play clue: %s to %s (value %.2f)",
            state.variant.clue_name(best_clue.clue),
            state.player_names[best_clue.target], best_value,
        )

    def allowed(action):
        return not action.is_clue or tokens > 0

    def first_allowed(buckets):
        for bucket in buckets:
            for action in bucket:
                if allowed(action):
                    return action
        return None

    def play_clue_worth(minimum_tokens):
        if best_clue is None or tokens < minimum_tokens:
            return False
        minimum = settings.min_clue_value
        if state.hands[best_clue.target].is_locked():
            minimum = settings.locked_min_clue_value
        return best_value >= minimum

    action = first_allowed(urgent[0:4])
    if action is not None:
        return action
    if priorities[0]:
        return _play(priorities[0][0])
    action = first_allowed(urgent[4:5])
    if action is not None:
        return action
    for bucket in priorities[1:]:
        if bucket:
            return _play(bucket[0])
    if play_clue_worth(settings.play_clue_token_threshold):
        return best_clue.to_perform()
    action = first_allowed(urgent[5:8])
    if action is not None:
        return action
    if play_clue_worth(1):
        return best_clue.to_perform()
    action = first_allowed(urgent[8:9])
    if action is not None:
        return action

    if tokens >= hanabi_state.MAX_CLUE_TOKENS:
        if best_clue is not None:
            return best_clue.to_perform()
        stall = _first_legal_clue(state)
        if stall is not None:
            return stall

    trash = find_known_trash(state)
    if trash:
        return _discard(trash[0])
    chop = state.our_hand.chop()
    if chop is not None:
        return _discard(chop)

    if tokens > 0:
        if best_clue is not None and best_value >= settings.locked_min_clue_value:
            return best_clue.to_perform()
        stall = _first_legal_clue(state)
        if stall is not None:
            return stall
    card = _forced_discard(state)
    logger.warning(
        "Hand is locked with no clue available; discarding slot %d",
        state.our_hand.slot_of(card.order),
    )
    return _discard(card)
