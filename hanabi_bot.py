"""Hanabi convention bot.

``HanabiBot`` owns the game state for one seat. It consumes the ordered
action stream one action at a time, dispatches each action to the
convention interpreter, replays history when a contradiction is found,
and chooses an action when the turn passes to it.

Two ways to set up a bot:
    Live mode: construct ``HanabiBot`` and feed every action of the game,
        from the opening draws onwards, to ``handle_action``.
    Calculator mode: ``HanabiBot.from_partial_state`` builds a mid-game
        position from short card notation, play stacks and discards, for
        analysing a single decision.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable

import action_generator
import conventions
import elimination
import hanabi_config
import hanabi_state
import hanabi_variants

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Note:
    """Annotation for one of our cards, written on our turn.

    Attributes:
        turn: Turn number the note was written on.
        slot: 1-based slot of the card at that time.
        order: The card's order.
        text: What we believe about the card.
    """
    turn: int
    slot: int
    order: int
    text: str


class HanabiBot:
    """A bot playing one seat of a Hanabi game.

    Attributes:
        state: The current game state.
        action_list: Every action received, in order.
        pins: (action index, rewind) pairs applied when replaying.
        notes: Every note written so far.
        last_decision: The action chosen on our most recent turn.
        rewinds: How many times history has been replayed.
    """

    def __init__(
        self,
        variant: hanabi_variants.Variant,
        player_names: list[str],
        our_player_index: int,
        settings: hanabi_config.ConventionSettings | None = None,
        send: Callable[[hanabi_state.PerformAction], None] | None = None,
        on_note: Callable[[Note], None] | None = None,
        thinking_delay: float = 0.0,
        play_stacks: list[int] | None = None,
        discarded: list[hanabi_variants.Identity] | None = None,
        clue_tokens: int = hanabi_state.MAX_CLUE_TOKENS,
        starting: int = 0,
    ) -> None:
        """Create a bot.

        Args:
            variant: The variant being played.
            player_names: Names of all players in seating order.
            our_player_index: Our seat.
            settings: Convention settings. Defaults to ``ConventionSettings()``.
            send: Called with the chosen action on our turn. If None,
                ``handle_action`` only returns the decision.
            on_note: Called with each note written on our turn.
            thinking_delay: Seconds to wait before calling ``send``.
            play_stacks: Initial play stacks, for mid-game positions.
            discarded: Initial discard pile, for mid-game positions.
            clue_tokens: Initial clue tokens.
            starting: Player whose turn it is initially.

        Raises:
            ValueError: If any argument is out of range.
        """
        if thinking_delay < 0:
            raise ValueError("thinking_delay must be non-negative")
        if not (0 <= clue_tokens <= hanabi_state.MAX_CLUE_TOKENS):
            raise ValueError(
                f"clue_tokens must be 0-{hanabi_state.MAX_CLUE_TOKENS}, "
                f"got {clue_tokens}"
            )
        if play_stacks is not None and (
            len(play_stacks) != len(variant.suits)
            or not all(0 <= r <= hanabi_variants.MAX_RANK for r in play_stacks)
        ):
            raise ValueError(f"Invalid play stacks {play_stacks}")
        if not (0 <= starting < len(player_names)):
            raise ValueError(f"Starting player {starting} out of range")

        self.variant = variant
        self.player_names = list(player_names)
        self.our_player_index = our_player_index
        self.settings = settings or hanabi_config.ConventionSettings()
        self.send = send
        self.on_note = on_note
        self.thinking_delay = thinking_delay
        self._initial_stacks = list(play_stacks or [0] * len(variant.suits))
        self._initial_discards = list(discarded or [])
        self._initial_tokens = clue_tokens
        self._starting = starting

        self.action_list: list[hanabi_state.Action] = []
        self.pins: list[tuple[int, hanabi_state.RewindAction]] = []
        self.notes: list[Note] = []
        self.last_decision: hanabi_state.PerformAction | None = None
        self.rewinds = 0
        self._replaying = False
        self._timer: threading.Timer | None = None
        self.state = self._new_state()

    @classmethod
    def from_partial_state(
        cls,
        variant: hanabi_variants.Variant,
        player_names: list[str],
        hands: list[list[str]],
        our_player_index: int = 0,
        starting: int = 0,
        play_stacks: list[int] | None = None,
        discarded: list[str] | None = None,
        clue_tokens: int = hanabi_state.MAX_CLUE_TOKENS,
        level: int | None = None,
        settings: hanabi_config.ConventionSettings | None = None,
        **kwargs,
    ) -> HanabiBot:
        """Build a bot at a mid-game position (calculator mode).

        Cards are dealt so that slot 5 of the first player gets order 0
        and slot 1 of the last player gets the highest order.

        Args:
            variant: The variant being played.
            player_names: Names of all players in seating order.
            hands: Per player, short notation for slots 1-5. Our own hand
                is normally all ``"xx"``.
            our_player_index: Our seat.
            starting: Player whose turn it is.
            play_stacks: Highest rank played per suit.
            discarded: Short notation of the discarded cards.
            clue_tokens: Clue tokens available.
            level: Convention level, if ``settings`` is not given.
            settings: Convention settings.
            **kwargs: Passed to the constructor (``send``, ``on_note``...).

        Returns:
            A bot that has seen the deal and the first turn.

        Raises:
            ValueError: If the hands do not fit the player count, or a
                visible card is unknown or unparseable.
        """
        if len(hands) != len(player_names):
            raise ValueError(
                f"Expected {len(player_names)} hands, got {len(hands)}"
            )
        if settings is None:
            settings = hanabi_config.ConventionSettings(
                level=level if level is not None else hanabi_config.Level.BASIC_CM,
            )
        bot = cls(
            variant, player_names, our_player_index, settings,
            play_stacks=play_stacks,
            discarded=[variant.parse_card(c) for c in discarded or []],
            clue_tokens=clue_tokens,
            starting=starting,
            **kwargs,
        )
        size = hanabi_state.hand_size_for(len(player_names))
        order = 0
        for player_index, hand in enumerate(hands):
            if len(hand) != size:
                raise ValueError(
                    f"{player_names[player_index]}'s hand must have "
                    f"{size} cards, got {len(hand)}"
                )
            for text in reversed(hand):
                identity = variant.parse_card(text)
                if player_index == our_player_index:
                    identity = None
                elif identity is None:
                    raise ValueError(
                        f"{player_names[player_index]}'s cards must be known"
                    )
                bot.handle_action(
                    hanabi_state.DrawAction(player_index, order, identity),
                    catchup=True,
                )
                order += 1
        bot.handle_action(hanabi_state.TurnAction(starting), catchup=True)
        return bot

    # -----------------------------------------------------------------
    # Action stream
    # -----------------------------------------------------------------

    def handle_action(
        self,
        action: hanabi_state.Action,
        catchup: bool = False,
    ) -> hanabi_state.PerformAction | None:
        """Process one action from the stream.

        Args:
            action: The next action.
            catchup: If True, do not act even if it becomes our turn.

        Returns:
            The chosen action if the turn passed to us, else None.

        Raises:
            ProtocolError: If the action is inconsistent with the state.
            TypeError: If the action is not a known action type.
        """
        self.action_list.append(action)
        self._process(action, len(self.action_list) - 1)
        self._settle_rewinds()
        if (
            isinstance(action, hanabi_state.TurnAction)
            and action.current_player_index == self.our_player_index
            and not catchup
            and not self.state.game_over
        ):
            return self._take_turn()
        return None

    def _process(self, action: hanabi_state.Action, index: int) -> None:
        self.state.action_index = index
        for pin_index, pin in self.pins:
            if pin_index == index:
                conventions.apply_rewind(self.state, pin)
        self._dispatch(action)

    def _log(self, message: str, *args) -> None:
        logger.log(
            logging.DEBUG if self._replaying else logging.INFO, message, *args,
        )

    def _dispatch(self, action: hanabi_state.Action) -> None:
        state = self.state
        names = state.player_names
        if isinstance(action, hanabi_state.DrawAction):
            state.on_draw(action)
            elimination.team_elim(state)
        elif isinstance(action, hanabi_state.ClueAction):
            self._log(
                "%s clues %s to %s", names[action.giver],
                state.variant.clue_name(action.clue), names[action.target],
            )
            state.on_clue(action)
            conventions.interpret_clue(state, action)
        elif isinstance(action, hanabi_state.PlayAction):
            self._log(
                "%s plays %s", names[action.player_index],
                state.log_card(action.identity),
            )
            conventions.interpret_play(state, action)
        elif isinstance(action, hanabi_state.DiscardAction):
            self._log(
                "%s %s %s", names[action.player_index],
                "bombs" if action.failed else "discards",
                state.log_card(action.identity),
            )
            conventions.interpret_discard(state, action)
        elif isinstance(action, hanabi_state.TurnAction):
            conventions.update_turn(state, action)
        elif isinstance(action, hanabi_state.GameOverAction):
            self._log("Game over (score %d)", state.score)
            state.game_over = True
        elif isinstance(action, hanabi_state.RewindAction):
            conventions.apply_rewind(state, action)
        else:
            raise TypeError(f"Unknown action: {action!r}")

    # -----------------------------------------------------------------
    # Rewinds
    # -----------------------------------------------------------------

    def _new_state(self) -> hanabi_state.GameState:
        state = hanabi_state.GameState.create(
            self.variant, self.player_names, self.our_player_index,
            self.settings,
        )
        state.play_stacks = list(self._initial_stacks)
        state.discard_pile = list(self._initial_discards)
        state.clue_tokens = self._initial_tokens
        state.current_player_index = self._starting
        state.cards_left -= sum(self._initial_stacks) + len(self._initial_discards)
        return state

    def replay(self) -> None:
        """Rebuild the state from the action log with every pin applied."""
        self._replaying = True
        try:
            self.state = self._new_state()
            for index, action in enumerate(self.action_list):
                self._process(action, index)
        finally:
            self._replaying = False

    def _settle_rewinds(self) -> None:
        """Replay history until no new contradictions are found.

        Each card is pinned at most once, so this terminates and replaying
        the same correction again changes nothing.
        """
        while self.state.rewind_requests:
            requests = self.state.rewind_requests
            self.state.rewind_requests = []
            pinned = {pin.order for _, pin in self.pins}
            new_pins = []
            for index, pin in requests:
                if pin.order not in pinned:
                    new_pins.append((index, pin))
                    pinned.add(pin.order)
            if not new_pins:
                return
            self.pins.extend(new_pins)
            self.rewinds += 1
            logger.warning(
                "Replaying %d actions with %d pinned card(s)",
                len(self.action_list), len(self.pins),
            )
            self.replay()

    # -----------------------------------------------------------------
    # Our turn
    # -----------------------------------------------------------------

    def note_text(self, card: hanabi_state.Card) -> str:
        state = self.state
        text = state.log_identities(state.me[card.order].inferred)
        if card.chop_moved and not card.clued:
            text = "cm"
        if card.finessed:
            text = "[f] " + text
        return text

    def _write_notes(self) -> None:
        state = self.state
        for slot, card in enumerate(state.our_hand, start=1):
            if not card.saved:
                continue
            note = Note(state.turn_count, slot, card.order, self.note_text(card))
            self.notes.append(note)
            if self.on_note is not None:
                self.on_note(note)

    def _take_turn(self) -> hanabi_state.PerformAction:
        self._write_notes()
        decision = action_generator.take_action(self.state)
        self.last_decision = decision
        logger.info(
            "%s chooses %s %s", self.state.player_names[self.our_player_index],
            decision.type.name.lower(), self._describe(decision),
        )
        if self.send is not None:
            if self.thinking_delay > 0:
                self._timer = threading.Timer(
                    self.thinking_delay, self.send, args=(decision,),
                )
                self._timer.daemon = True
                self._timer.start()
            else:
                self.send(decision)
        return decision

    def _describe(self, decision: hanabi_state.PerformAction) -> str:
        state = self.state
        if decision.is_clue:
            return (
                f"{state.variant.clue_name(decision.clue)} to "
                f"{state.player_names[decision.target]}"
            )
        return f"slot {state.our_hand.slot_of(decision.target)}"

    def cancel(self) -> None:
        """Cancel a pending delayed send."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
