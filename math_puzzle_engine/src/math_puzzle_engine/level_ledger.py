"""
Level Progression Ledger

Owns the level catalog and the player's progress record, and applies the
unlock/advance rule when a level is completed.

A ledger is constructed by the caller and passed explicitly to the code
that needs it. Persistence is pluggable: attach any ProgressStore and the
ledger saves after every accepted completion.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from math_puzzle_engine.level_catalog import MAX_LEVEL, LevelDefinition, build_level_catalog
from math_puzzle_engine.progress_record import ProgressPayload, ProgressRecord
from math_puzzle_engine.progress_store import ProgressStore
from math_puzzle_engine.scoring import floor_points

logger = logging.getLogger(__name__)

ELIMINATION_ACCURACY = 1.0
STANDARD_ACCURACY = 0.6

# (title, minimum completion rate, minimum lifetime accuracy), best first
RANK_TIERS = [
    ("Grandmaster", 1.0, 0.95),
    ("Master", 0.9, 0.9),
    ("Expert", 0.8, 0.85),
    ("Advanced", 0.6, 0.8),
    ("Skilled", 0.4, 0.75),
    ("Intermediate", 0.2, 0.7),
    ("Beginner", 0.1, 0.6),
]
DEFAULT_RANK = "Novice"


@dataclass(frozen=True)
class LevelStatus:
    """Completion and unlock state of one level."""
    completed: bool
    unlocked: bool


class LevelLedger:
    """
    99-level progression ledger.

    Usage:
        ledger = LevelLedger.load(LocalProgressStore(), "player-1")
        level = ledger.get_level(ledger.get_progress().current_level)
        ...
        ledger.complete_level(level.level, score, answered, correct)
    """

    def __init__(
        self,
        progress: Optional[ProgressRecord] = None,
        store: Optional[ProgressStore] = None,
        progress_key: Optional[str] = None,
    ):
        """
        Initialize the ledger.

        Args:
            progress: Previously saved progress (fresh progress if None)
            store: Persistence strategy used after each accepted completion
            progress_key: Opaque per-player key for the store
        """
        if store is not None and not progress_key:
            raise ValueError("progress_key is required when a store is attached")

        self._levels: List[LevelDefinition] = build_level_catalog()
        self._progress = progress.copy() if progress else ProgressRecord()
        self.store = store
        self.progress_key = progress_key
        self._update_unlocked_levels()

    @classmethod
    def load(cls, store: ProgressStore, progress_key: str) -> "LevelLedger":
        """Build a ledger from whatever the store holds for `progress_key`."""
        saved = store.load(progress_key)
        if saved is None:
            logger.info(f"No saved progress for {progress_key[:20]}, starting at level 1")
        return cls(progress=saved, store=store, progress_key=progress_key)

    def save(self) -> bool:
        """Checkpoint progress to the attached store (no-op without one)."""
        if self.store is None:
            return False
        return self.store.save(self.progress_key, self._progress.copy())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_level(self, level_number: int) -> Optional[LevelDefinition]:
        if 1 <= level_number <= len(self._levels):
            return self._levels[level_number - 1]
        return None

    def get_all_levels(self) -> List[LevelDefinition]:
        return list(self._levels)

    def get_current_level(self) -> Optional[LevelDefinition]:
        return self.get_level(self._progress.current_level)

    def get_unlocked_levels(self) -> List[LevelDefinition]:
        return [level for level in self._levels if level.unlocked]

    def get_progress(self) -> ProgressRecord:
        """Copy of the progress record; mutating it does not affect the ledger."""
        return self._progress.copy()

    def get_level_status(self, level_number: int) -> LevelStatus:
        level = self.get_level(level_number)
        return LevelStatus(
            completed=level_number in self._progress.levels_completed,
            unlocked=bool(level and level.unlocked),
        )

    def get_accuracy(self) -> float:
        if self._progress.total_questions_answered == 0:
            return 0.0
        return self._progress.total_correct_answers / self._progress.total_questions_answered

    def get_completion_rate(self) -> float:
        return len(self._progress.levels_completed) / MAX_LEVEL

    def get_rank_title(self) -> str:
        """Presentational rank from completion rate and lifetime accuracy."""
        completion_rate = self.get_completion_rate()
        accuracy = self.get_accuracy()
        for title, min_completion, min_accuracy in RANK_TIERS:
            if completion_rate >= min_completion and accuracy >= min_accuracy:
                return title
        return DEFAULT_RANK

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_current_level(self, level_number: int) -> bool:
        """Point the player at an unlocked level (for replays)."""
        level = self.get_level(level_number)
        if not level or not level.unlocked:
            return False

        self._progress.current_level = level_number
        self._progress.last_played_at = datetime.now()
        return True

    def complete_level(
        self,
        level_number: int,
        score: int,
        questions_answered: int,
        correct_answers: int,
    ) -> bool:
        """
        Record a finished level if it meets the acceptance rule.

        Elimination levels need perfect accuracy, others at least 60%;
        in both cases at least the level's required question count must
        have been answered.

        Args:
            level_number: Level that was played
            score: Session score (scaled by the level multiplier before totalling)
            questions_answered: Questions served during the session
            correct_answers: Correct answers during the session

        Returns:
            True if accepted, False if rejected (no state change)
        """
        level = self.get_level(level_number)
        if not level:
            logger.warning(f"Rejected completion of unknown level {level_number}")
            return False

        if questions_answered <= 0 or questions_answered < level.questions_required:
            logger.info(
                f"Rejected level {level_number}: {questions_answered} answered, "
                f"{level.questions_required} required"
            )
            return False

        required = ELIMINATION_ACCURACY if level.elimination_mode else STANDARD_ACCURACY
        accuracy = correct_answers / questions_answered
        if accuracy < required:
            logger.info(f"Rejected level {level_number}: accuracy {accuracy:.2f} below {required:.2f}")
            return False

        progress = self._progress
        progress.levels_completed.add(level_number)
        progress.total_score += floor_points(score * level.points_multiplier)
        progress.total_questions_answered += questions_answered
        progress.total_correct_answers += correct_answers

        if correct_answers == questions_answered:
            progress.streak += 1
            progress.longest_streak = max(progress.longest_streak, progress.streak)
        else:
            progress.streak = 0

        if level_number >= progress.highest_level_reached:
            next_level = min(MAX_LEVEL, level_number + 1)
            progress.highest_level_reached = next_level
            progress.current_level = next_level
            self._update_unlocked_levels()

        progress.last_played_at = datetime.now()
        logger.info(
            f"Level {level_number} completed (accuracy {accuracy:.2f}), "
            f"highest reached {progress.highest_level_reached}"
        )

        if self.store is not None and not self.save():
            logger.warning(f"Progress for {self.progress_key[:20]} was not saved")
        return True

    def reset_progress(self):
        """Start over from level 1."""
        self._progress = ProgressRecord()
        self._update_unlocked_levels()

    def export_progress(self) -> str:
        return json.dumps(self._progress.to_dict())

    def import_progress(self, progress_data: str) -> bool:
        """
        Merge exported progress JSON into the current record.

        Fields missing from the payload keep their current values; the
        merged result is validated as a whole.

        Returns:
            True if imported, False if the payload was not valid progress JSON
        """
        try:
            merged = {**self._progress.to_dict(), **json.loads(progress_data)}
            payload = ProgressPayload.model_validate(merged)
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Could not import progress: {e}")
            return False

        self._progress = payload.to_record()
        self._update_unlocked_levels()
        return True

    def _update_unlocked_levels(self):
        highest = self._progress.highest_level_reached
        for level in self._levels:
            level.unlocked = level.level <= highest + 1
