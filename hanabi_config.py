"""Convention rule-set configuration.

Defines the convention ``Level`` that gates which sub-rules are active and
the ``ConventionSettings`` policy parameters used by the interpreter and the
action generator. The numeric clue-value weights encode one convention's
tuning and are kept here so they can be adjusted without touching the
engine.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import pathlib


class Level(enum.IntEnum):
    """Convention level. Higher levels enable more sub-rules."""
    BEGINNER = 1
    FINESSE = 2
    FIX = 3
    BASIC_CM = 4
    INTERMEDIATE_FINESSES = 5


@dataclasses.dataclass
class ConventionSettings:
    """Policy parameters for interpretation and action selection.

    Attributes:
        level: Convention level (see ``Level``).
        finesse_weight: Clue value per card newly called to blind-play.
        new_touch_weight: Clue value per newly touched, not bad-touched card.
        playable_weight: Clue value per card made playable.
        elim_weight: Clue value per possibility eliminated.
        bad_touch_penalty: Extra clue value lost per bad-touched card.
        min_clue_value: Minimum value for a play clue (MCVP).
        locked_min_clue_value: Minimum value when the target is locked or
            when discarding is not allowed.
        play_clue_token_threshold: With at least this many clue tokens, a
            play clue is preferred over urgent actions for players that
            are not next.
        two_saves: Whether a rank-2 clue on chop carries save meaning.
    """
    level: int = Level.BASIC_CM
    finesse_weight: float = 1.0
    new_touch_weight: float = 0.5
    playable_weight: float = 0.5
    elim_weight: float = 0.01
    bad_touch_penalty: float = 1.5
    min_clue_value: float = 1.0
    locked_min_clue_value: float = 0.0
    play_clue_token_threshold: int = 2
    two_saves: bool = True

    def __post_init__(self) -> None:
        """Validate settings."""
        if not (Level.BEGINNER <= self.level <= Level.INTERMEDIATE_FINESSES):
            raise ValueError(
                f"Convention level must be {int(Level.BEGINNER)}-"
                f"{int(Level.INTERMEDIATE_FINESSES)}, got {self.level}"
            )
        self.level = Level(self.level)
        for name in (
            "finesse_weight", "new_touch_weight", "playable_weight",
            "elim_weight", "bad_touch_penalty",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.locked_min_clue_value > self.min_clue_value:
            raise ValueError(
                "locked_min_clue_value cannot exceed min_clue_value"
            )
        if self.play_clue_token_threshold < 1:
            raise ValueError("play_clue_token_threshold must be at least 1")

    def to_dict(self) -> dict:
        data = dataclasses.asdict(self)
        data["level"] = int(self.level)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> ConventionSettings:
        """Create settings from a dict, ignoring unknown keys."""
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def save(self, path: str | pathlib.Path) -> None:
        pathlib.Path(path).write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | pathlib.Path) -> ConventionSettings:
        return cls.from_dict(json.loads(pathlib.Path(path).read_text()))
