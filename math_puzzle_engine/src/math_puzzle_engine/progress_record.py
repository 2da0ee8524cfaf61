"""
Progress Record

Durable, cross-session summary of a player's advancement through the
level catalog, plus the validated payload shape used when the record is
exported, imported or handed to a progress store.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

from math_puzzle_engine.level_catalog import MAX_LEVEL


@dataclass
class ProgressRecord:
    """Player progress owned by a LevelLedger."""
    current_level: int = 1
    highest_level_reached: int = 1
    total_score: int = 0
    total_questions_answered: int = 0
    total_correct_answers: int = 0
    streak: int = 0  # consecutive perfect level completions
    longest_streak: int = 0
    levels_completed: Set[int] = field(default_factory=set)
    last_played_at: datetime = field(default_factory=datetime.now)

    def copy(self) -> "ProgressRecord":
        return replace(self, levels_completed=set(self.levels_completed))

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with JSON-friendly values."""
        return ProgressPayload.from_record(self).model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        """Validate a stored dict and build a record (missing fields use defaults)."""
        return ProgressPayload.model_validate(data).to_record()


class ProgressPayload(BaseModel):
    """Serialized progress record."""
    model_config = ConfigDict(extra="ignore")

    current_level: int = Field(default=1, ge=1, le=MAX_LEVEL)
    highest_level_reached: int = Field(default=1, ge=1, le=MAX_LEVEL)
    total_score: int = Field(default=0, ge=0)
    total_questions_answered: int = Field(default=0, ge=0)
    total_correct_answers: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    levels_completed: List[Annotated[int, Field(ge=1, le=MAX_LEVEL)]] = Field(default_factory=list)
    last_played_at: Optional[datetime] = None

    @model_validator(mode="after")
    def current_level_is_unlocked(self) -> "ProgressPayload":
        if self.current_level > self.highest_level_reached + 1:
            raise ValueError(
                f"current_level {self.current_level} is beyond the unlocked range "
                f"(highest_level_reached {self.highest_level_reached})"
            )
        return self

    @classmethod
    def from_record(cls, record: ProgressRecord) -> "ProgressPayload":
        return cls(
            current_level=record.current_level,
            highest_level_reached=record.highest_level_reached,
            total_score=record.total_score,
            total_questions_answered=record.total_questions_answered,
            total_correct_answers=record.total_correct_answers,
            streak=record.streak,
            longest_streak=record.longest_streak,
            levels_completed=sorted(record.levels_completed),
            last_played_at=record.last_played_at,
        )

    def to_record(self) -> ProgressRecord:
        return ProgressRecord(
            current_level=self.current_level,
            highest_level_reached=self.highest_level_reached,
            total_score=self.total_score,
            total_questions_answered=self.total_questions_answered,
            total_correct_answers=self.total_correct_answers,
            streak=self.streak,
            longest_streak=self.longest_streak,
            levels_completed=set(self.levels_completed),
            last_played_at=self.last_played_at or datetime.now(),
        )
