"""
Puzzle Data Models

Defines the question record and the enums shared by the generator,
the session machine and the level ledger.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class MathPuzzleError(Exception):
    """Base error for the puzzle engine."""


class LevelUnavailableError(MathPuzzleError):
    """Raised when a session is requested for a locked or unknown level."""

    def __init__(self, level_number: int, reason: str = "not available or unlocked"):
        self.level_number = level_number
        super().__init__(f"Level {level_number} is {reason}")


class Difficulty(Enum):
    """Difficulty tiers."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GameMode(Enum):
    """Classic game modes."""
    PRACTICE = "practice"
    TIMED = "timed"
    ENDLESS = "endless"


class QuestionCategory(Enum):
    """Question kinds the generator can produce."""
    SUM = "sum"
    DIFFERENCE = "difference"
    PRODUCT = "product"
    QUOTIENT = "quotient"
    FILL_IN_BLANK = "fill_in_blank"
    SEQUENCE = "sequence"


class SessionStatus(Enum):
    """Session lifecycle states."""
    WAITING = "waiting"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(frozen=True)
class Question:
    """A single generated question. Immutable once built."""
    id: str
    prompt: str
    correct_answer: int
    options: Tuple[int, ...]
    category: QuestionCategory
    difficulty: Difficulty
    time_limit: int  # seconds
    operands: Tuple[int, ...] = ()  # numbers shown in the prompt

    def wrong_options(self) -> Tuple[int, ...]:
        """Options that are not the correct answer."""
        return tuple(opt for opt in self.options if opt != self.correct_answer)
