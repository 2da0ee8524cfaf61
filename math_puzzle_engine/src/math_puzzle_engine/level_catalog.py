"""
Level Catalog

Builds the 99 level definitions that make up the progression curve.

Each level derives its settings from its number:
- difficulty tier: 1-20 easy, 21-60 medium, 61-99 hard
- operations expand as the level number grows
- time per question shrinks every ten levels (never below 5s)
- elimination mode (zero tolerated errors) from level 21 upward
- score multiplier grows by 0.1 per level
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from math_puzzle_engine.models import Difficulty, QuestionCategory

MAX_LEVEL = 99

_BASE_TIME = {
    Difficulty.EASY: 15,
    Difficulty.MEDIUM: 12,
    Difficulty.HARD: 8,
}

_BASE_OPERATIONS = {
    Difficulty.EASY: [QuestionCategory.SUM, QuestionCategory.DIFFERENCE],
    Difficulty.MEDIUM: [
        QuestionCategory.SUM,
        QuestionCategory.DIFFERENCE,
        QuestionCategory.PRODUCT,
        QuestionCategory.QUOTIENT,
    ],
    Difficulty.HARD: list(QuestionCategory),
}

# (category, first level number *after* which it is unlocked)
_OPERATION_UNLOCKS: List[Tuple[QuestionCategory, int]] = [
    (QuestionCategory.PRODUCT, 10),
    (QuestionCategory.QUOTIENT, 15),
    (QuestionCategory.FILL_IN_BLANK, 30),
    (QuestionCategory.SEQUENCE, 50),
]

_THEMES: List[Tuple[str, str]] = [
    ("Arithmetic Academy", "Master the basics of calculation"),
    ("Number Navigator", "Navigate through numerical challenges"),
    ("Math Warrior", "Battle against complex problems"),
    ("Calculation Champion", "Prove your computational prowess"),
    ("Logic Master", "Master the art of mathematical reasoning"),
    ("Pattern Seeker", "Discover hidden mathematical patterns"),
    ("Speed Calculator", "Calculate at lightning speed"),
    ("Brain Challenger", "Challenge your mental abilities"),
    ("Math Genius", "Showcase your mathematical genius"),
    ("Ultimate Solver", "Solve the ultimate math challenges"),
]

_MILESTONES: Dict[int, str] = {
    1: "Getting Started",
    5: "First Steps",
    10: "Building Momentum",
    15: "Making Progress",
    20: "Reaching Heights",
    25: "Advanced Player",
    30: "Math Expert",
    40: "Calculation Master",
    50: "Logic Genius",
    60: "Pattern Expert",
    70: "Speed Demon",
    80: "Math Wizard",
    90: "Ultimate Challenger",
    99: "Grand Master",
}


@dataclass
class LevelDefinition:
    """Settings for one level. Only `unlocked` changes after construction."""
    level: int
    name: str
    description: str
    questions_required: int
    time_per_question: int
    difficulty: Difficulty
    elimination_mode: bool
    points_multiplier: float
    max_errors: int
    operations: List[QuestionCategory] = field(default_factory=list)
    unlocked: bool = False

    @property
    def range_multiplier(self) -> float:
        """Operand range scaling used by the question generator."""
        return 1 + (self.level - 1) * 0.1


def difficulty_for_level(level_number: int) -> Difficulty:
    if level_number <= 20:
        return Difficulty.EASY
    if level_number <= 60:
        return Difficulty.MEDIUM
    return Difficulty.HARD


def operations_for_level(level_number: int, difficulty: Difficulty) -> List[QuestionCategory]:
    operations = list(_BASE_OPERATIONS[difficulty])
    for category, after_level in _OPERATION_UNLOCKS:
        if level_number > after_level and category not in operations:
            operations.append(category)
    return operations


def level_name_and_description(
    level_number: int,
    difficulty: Difficulty,
    elimination_mode: bool,
) -> Tuple[str, str]:
    milestone = _MILESTONES.get(level_number)
    if milestone:
        if elimination_mode:
            description = f"{milestone} - No mistakes allowed! One wrong answer eliminates you."
        else:
            description = f"{milestone} - Build your foundation with {difficulty.value} difficulty."
        return f"Level {level_number}: {milestone}", description

    theme_name, theme_desc = _THEMES[((level_number - 1) // 10) % len(_THEMES)]
    if elimination_mode:
        description = f"{theme_desc} - Elimination mode: One mistake ends the game!"
    else:
        description = f"{theme_desc} - {difficulty.value.capitalize()} difficulty."
    return f"Level {level_number}: {theme_name}", description


def build_level(level_number: int) -> LevelDefinition:
    """Derive the definition of a single level from its number."""
    if not 1 <= level_number <= MAX_LEVEL:
        raise ValueError(f"Level number must be between 1 and {MAX_LEVEL}, got {level_number}")

    difficulty = difficulty_for_level(level_number)
    elimination_mode = level_number > 20
    max_errors = 0 if elimination_mode else max(1, 3 - level_number // 10)
    name, description = level_name_and_description(level_number, difficulty, elimination_mode)

    return LevelDefinition(
        level=level_number,
        name=name,
        description=description,
        questions_required=min(20, 3 + level_number // 5),
        time_per_question=max(5, _BASE_TIME[difficulty] - level_number // 10),
        difficulty=difficulty,
        elimination_mode=elimination_mode,
        points_multiplier=1 + (level_number - 1) * 0.1,
        max_errors=max_errors,
        operations=operations_for_level(level_number, difficulty),
        unlocked=level_number == 1,
    )


def build_level_catalog() -> List[LevelDefinition]:
    """Fresh catalog of all levels; callers own the returned objects."""
    return [build_level(n) for n in range(1, MAX_LEVEL + 1)]
