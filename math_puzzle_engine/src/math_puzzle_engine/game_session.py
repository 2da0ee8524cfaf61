"""
Game Session State Machine

One play-through over a pre-generated question list.

States: waiting -> playing <-> paused -> finished

- Only `playing` accepts answers, hints, skips and timer ticks.
- Calls made in any other state are stale UI events and are ignored
  (they return False / None instead of raising).
- The machine keeps no clock of its own; the caller drives time with
  `tick(remaining_seconds)`.

ClassicSession plays a fixed difficulty and game mode. LevelSession plays
one ledger level, enforces its error budget (or elimination mode) and
reports a finished level back to the ledger exactly once.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from math_puzzle_engine.level_catalog import LevelDefinition
from math_puzzle_engine.level_ledger import LevelLedger
from math_puzzle_engine.models import (
    Difficulty,
    GameMode,
    LevelUnavailableError,
    Question,
    SessionStatus,
)
from math_puzzle_engine.question_generator import CLASSIC_TIME_LIMITS, QuestionGenerator
from math_puzzle_engine.randomness import RandomSource, choose, default_source, short_id
from math_puzzle_engine.scoring import calculate_points, difficulty_factor

logger = logging.getLogger(__name__)

CLASSIC_QUESTION_COUNTS = {
    GameMode.PRACTICE: 10,
    GameMode.TIMED: 20,
    GameMode.ENDLESS: 999,
}
CLASSIC_MAX_HINTS = {Difficulty.EASY: 3, Difficulty.MEDIUM: 2, Difficulty.HARD: 1}
CLASSIC_MAX_SKIPS = {Difficulty.EASY: 2, Difficulty.MEDIUM: 1, Difficulty.HARD: 1}

# Endless sessions report progress over the first 50 questions
ENDLESS_PROGRESS_WINDOW = 50

FALLBACK_HINT = "The answer is one of the middle values"


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable copy of session state for display."""
    id: str
    status: SessionStatus
    current_question: Optional[Question]
    question_index: int
    total_questions: int
    score: int
    correct_answers: int
    incorrect_answers: int
    streak: int
    max_streak: int
    time_remaining: float
    hints_used: int
    skips_used: int
    max_hints: int
    max_skips: int
    difficulty: Difficulty
    start_time: datetime
    end_time: Optional[datetime] = None
    game_mode: Optional[GameMode] = None
    # Level sessions only
    level_number: Optional[int] = None
    errors_in_level: int = 0
    max_errors: Optional[int] = None
    elimination_mode: bool = False
    is_eliminated: bool = False
    level_completed: bool = False
    completion_accepted: Optional[bool] = None


@dataclass
class GameScore:
    """Final score summary of a session."""
    id: str
    score: int
    correct_answers: int
    total_questions: int
    time_taken: float  # seconds
    difficulty: str
    game_mode: str
    max_streak: int
    hints_used: int
    skips_used: int
    completed_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LevelGameScore(GameScore):
    """Final score summary of a level session."""
    level_number: int
    elimination_mode: bool
    level_completed: bool
    final_accuracy: float


class GameSession:
    """Shared state machine for classic and level sessions."""

    def __init__(
        self,
        questions: List[Question],
        difficulty: Difficulty,
        time_limit: int,
        max_hints: int,
        max_skips: int,
        rng: Optional[RandomSource] = None,
    ):
        self.rng = rng or default_source()
        self.difficulty = difficulty
        self.max_hints = max_hints
        self.max_skips = max_skips
        self._reset(questions, time_limit)

    def _reset(self, questions: List[Question], time_limit: int):
        self.id = short_id()
        self.questions: List[Question] = list(questions)
        self.question_index = 0
        self.current_question: Optional[Question] = None
        self.score = 0
        self.correct_answers = 0
        self.incorrect_answers = 0
        self.streak = 0
        self.max_streak = 0
        self.status = SessionStatus.WAITING
        self.start_time = datetime.now()
        self.end_time: Optional[datetime] = None
        self.time_remaining: float = time_limit
        self.hints_used = 0
        self.skips_used = 0
        self._answered_current = False
        self._serve_next()

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def questions_served(self) -> int:
        return self.question_index

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        if self.status == SessionStatus.FINISHED and not self._can_restart():
            return False
        if self.status not in (SessionStatus.WAITING, SessionStatus.FINISHED):
            return False
        self.status = SessionStatus.PLAYING
        self.start_time = datetime.now()
        self.end_time = None
        logger.debug(f"Session {self.id} started")
        return True

    def pause(self) -> bool:
        if self.status != SessionStatus.PLAYING:
            return False
        self.status = SessionStatus.PAUSED
        return True

    def resume(self) -> bool:
        if self.status != SessionStatus.PAUSED:
            return False
        self.status = SessionStatus.PLAYING
        return True

    def _finish(self):
        if self.status == SessionStatus.FINISHED:
            return
        self.status = SessionStatus.FINISHED
        if self.end_time is None:
            self.end_time = datetime.now()
        logger.debug(
            f"Session {self.id} finished: score={self.score}, "
            f"correct={self.correct_answers}, incorrect={self.incorrect_answers}"
        )
        self._on_finished()

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------

    def answer(self, selected: int) -> bool:
        """
        Grade an answer to the current question.

        Returns:
            True if correct; False if wrong or if the call was ignored
        """
        question = self.current_question
        if self.status != SessionStatus.PLAYING or question is None or self._answered_current:
            return False

        self._answered_current = True
        if selected == question.correct_answer:
            self.correct_answers += 1
            self.streak += 1
            self.max_streak = max(self.max_streak, self.streak)
            self.score += calculate_points(
                self.streak,
                self.time_remaining,
                question.time_limit,
                self._score_multiplier(),
            )
            return True

        self._register_miss()
        return False

    def advance(self) -> bool:
        """Serve the next question; finishes the session when none are left."""
        if self.status != SessionStatus.PLAYING:
            return False
        return self._serve_next()

    def use_hint(self) -> Optional[str]:
        """Consume a hint naming one wrong option, or None if unavailable."""
        question = self.current_question
        if (
            self.status != SessionStatus.PLAYING
            or question is None
            or self._answered_current
            or not self._assists_allowed()
            or self.hints_used >= self.max_hints
        ):
            return None

        self.hints_used += 1
        wrong = question.wrong_options()
        if wrong:
            return f"Eliminate option: {choose(self.rng, wrong)}"
        return FALLBACK_HINT

    def skip(self) -> bool:
        """Skip the current question; returns whether a new question became current."""
        if (
            self.status != SessionStatus.PLAYING
            or not self._assists_allowed()
            or self.skips_used >= self.max_skips
        ):
            return False

        self.skips_used += 1
        self.streak = 0
        return self._serve_next()

    def tick(self, remaining_seconds: float):
        """
        Caller-driven timer update for the current question.

        Reaching zero counts as a wrong answer and moves play along.
        """
        if self.status != SessionStatus.PLAYING or self.current_question is None:
            return

        self.time_remaining = max(0, remaining_seconds)
        if remaining_seconds > 0 or self._answered_current:
            return

        self._answered_current = True
        if self._register_miss():
            return
        self._on_timeout()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def progress(self) -> float:
        if not self.questions:
            return 1.0
        return self.question_index / self.total_questions

    def accuracy(self) -> float:
        if self.questions_served == 0:
            return 0.0
        return self.correct_answers / self.questions_served

    def time_taken(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(**self._snapshot_fields())

    def _snapshot_fields(self) -> Dict[str, Any]:
        return dict(
            id=self.id,
            status=self.status,
            current_question=self.current_question,
            question_index=self.question_index,
            total_questions=self.total_questions,
            score=self.score,
            correct_answers=self.correct_answers,
            incorrect_answers=self.incorrect_answers,
            streak=self.streak,
            max_streak=self.max_streak,
            time_remaining=self.time_remaining,
            hints_used=self.hints_used,
            skips_used=self.skips_used,
            max_hints=self.max_hints,
            max_skips=self.max_skips,
            difficulty=self.difficulty,
            start_time=self.start_time,
            end_time=self.end_time,
        )

    def _score_fields(self) -> Dict[str, Any]:
        return dict(
            id=self.id,
            score=self.score,
            correct_answers=self.correct_answers,
            total_questions=self.questions_served,
            time_taken=self.time_taken(),
            difficulty=self.difficulty.value,
            max_streak=self.max_streak,
            hints_used=self.hints_used,
            skips_used=self.skips_used,
            completed_at=datetime.now().isoformat(),
        )

    # ------------------------------------------------------------------
    # Internals and subclass hooks
    # ------------------------------------------------------------------

    def _serve_next(self) -> bool:
        if self.question_index >= len(self.questions):
            self._on_exhausted()
            self._finish()
            return False

        self.current_question = self.questions[self.question_index]
        self.question_index += 1
        self.time_remaining = self.current_question.time_limit
        self._answered_current = False
        return True

    def _register_miss(self) -> bool:
        """Count a wrong or timed-out answer. Returns True if the session ended."""
        self.incorrect_answers += 1
        self.streak = 0
        return False

    def _score_multiplier(self) -> float:
        return 1.0

    def _assists_allowed(self) -> bool:
        return True

    def _can_restart(self) -> bool:
        return True

    def _on_timeout(self):
        self._serve_next()

    def _on_exhausted(self):
        pass

    def _on_finished(self):
        pass


class ClassicSession(GameSession):
    """Fixed-difficulty session in practice, timed or endless mode."""

    def __init__(
        self,
        difficulty: Union[Difficulty, str] = Difficulty.EASY,
        game_mode: Union[GameMode, str] = GameMode.PRACTICE,
        rng: Optional[RandomSource] = None,
    ):
        difficulty = Difficulty(difficulty)
        self.game_mode = GameMode(game_mode)
        rng = rng or default_source()
        self.generator = QuestionGenerator(rng)

        super().__init__(
            questions=self._generate_questions(difficulty),
            difficulty=difficulty,
            time_limit=CLASSIC_TIME_LIMITS[difficulty],
            max_hints=CLASSIC_MAX_HINTS[difficulty],
            max_skips=CLASSIC_MAX_SKIPS[difficulty],
            rng=rng,
        )

    def _generate_questions(self, difficulty: Difficulty) -> List[Question]:
        return self.generator.generate_classic_questions(difficulty, CLASSIC_QUESTION_COUNTS[self.game_mode])

    def restart(self) -> SessionSnapshot:
        """Fresh questions and counters with the same difficulty and mode."""
        self._reset(self._generate_questions(self.difficulty), CLASSIC_TIME_LIMITS[self.difficulty])
        return self.snapshot()

    def progress(self) -> float:
        if self.game_mode == GameMode.ENDLESS:
            return min(self.question_index / ENDLESS_PROGRESS_WINDOW, 1.0)
        return super().progress()

    def calculate_final_score(self) -> GameScore:
        return GameScore(game_mode=self.game_mode.value, **self._score_fields())

    def _score_multiplier(self) -> float:
        return difficulty_factor(self.difficulty)

    def _on_timeout(self):
        # Endless play ends on the first timeout
        if self.game_mode == GameMode.ENDLESS:
            self._finish()
        else:
            self._serve_next()

    def _snapshot_fields(self) -> Dict[str, Any]:
        fields = super()._snapshot_fields()
        fields["game_mode"] = self.game_mode
        return fields


class LevelSession(GameSession):
    """
    Session bound to one ledger level.

    Raises:
        LevelUnavailableError: if the level is unknown or still locked
    """

    def __init__(
        self,
        ledger: LevelLedger,
        level_number: Optional[int] = None,
        rng: Optional[RandomSource] = None,
    ):
        target = level_number if level_number is not None else ledger.get_progress().current_level
        level = ledger.get_level(target)
        if level is None:
            raise LevelUnavailableError(target, "unknown")
        if not level.unlocked:
            raise LevelUnavailableError(target, "locked")

        self.ledger = ledger
        self.level: LevelDefinition = level
        self.errors_in_level = 0
        self.is_eliminated = False
        self.level_completed = False
        self.completion_accepted: Optional[bool] = None

        rng = rng or default_source()
        if level.elimination_mode:
            max_hints, max_skips = 0, 0
        else:
            max_hints = 2 if level.difficulty == Difficulty.EASY else 1
            max_skips = 1

        super().__init__(
            questions=QuestionGenerator(rng).generate_level_questions(level),
            difficulty=level.difficulty,
            time_limit=level.time_per_question,
            max_hints=max_hints,
            max_skips=max_skips,
            rng=rng,
        )

    def calculate_final_score(self) -> LevelGameScore:
        return LevelGameScore(
            game_mode=GameMode.PRACTICE.value,
            level_number=self.level.level,
            elimination_mode=self.level.elimination_mode,
            level_completed=self.level_completed,
            final_accuracy=self.accuracy(),
            **self._score_fields(),
        )

    def _register_miss(self) -> bool:
        super()._register_miss()
        self.errors_in_level += 1

        if self.level.elimination_mode or self.errors_in_level > self.level.max_errors:
            self.is_eliminated = True
            logger.debug(f"Session {self.id} eliminated on level {self.level.level}")
            self._finish()
            return True
        return False

    def _score_multiplier(self) -> float:
        return self.level.points_multiplier

    def _assists_allowed(self) -> bool:
        return not self.level.elimination_mode

    def _can_restart(self) -> bool:
        # The level outcome is final once eliminated or reported
        return not (self.is_eliminated or self.level_completed)

    def _on_exhausted(self):
        self.level_completed = True

    def _on_finished(self):
        if not self.level_completed or self.is_eliminated or self.completion_accepted is not None:
            return
        self.completion_accepted = self.ledger.complete_level(
            self.level.level,
            self.score,
            self.questions_served,
            self.correct_answers,
        )

    def _snapshot_fields(self) -> Dict[str, Any]:
        fields = super()._snapshot_fields()
        fields.update(
            level_number=self.level.level,
            errors_in_level=self.errors_in_level,
            max_errors=self.level.max_errors,
            elimination_mode=self.level.elimination_mode,
            is_eliminated=self.is_eliminated,
            level_completed=self.level_completed,
            completion_accepted=self.completion_accepted,
        )
        return fields
