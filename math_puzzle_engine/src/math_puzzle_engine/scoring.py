"""
Scoring Rules

Points for a correct answer:
- 10 base points
- +5 once the answer streak reaches 5
- +3 when more than 70% of the question's time budget is left
- the subtotal is scaled (difficulty factor or level multiplier) and floored

Wrong, skipped and timed-out questions earn nothing.
"""

import math

from math_puzzle_engine.models import Difficulty

BASE_POINTS = 10
STREAK_BONUS = 5
STREAK_BONUS_THRESHOLD = 5
TIME_BONUS = 3
TIME_BONUS_FRACTION = 0.7

DIFFICULTY_FACTORS = {
    Difficulty.EASY: 1.0,
    Difficulty.MEDIUM: 1.5,
    Difficulty.HARD: 2.0,
}

# Absorbs float noise from multipliers such as 1 + 0.1 * 6
_FLOOR_EPSILON = 1e-9


def floor_points(value: float) -> int:
    return int(math.floor(value + _FLOOR_EPSILON))


def bonus_subtotal(streak: int, time_remaining: float, time_limit: float) -> int:
    """Unscaled points for a correct answer; `streak` is the post-increment value."""
    points = BASE_POINTS
    if streak >= STREAK_BONUS_THRESHOLD:
        points += STREAK_BONUS
    if time_remaining > time_limit * TIME_BONUS_FRACTION:
        points += TIME_BONUS
    return points


def calculate_points(streak: int, time_remaining: float, time_limit: float, multiplier: float = 1.0) -> int:
    """Scaled, floored points for one correct answer."""
    return floor_points(bonus_subtotal(streak, time_remaining, time_limit) * multiplier)


def difficulty_factor(difficulty: Difficulty) -> float:
    return DIFFICULTY_FACTORS[difficulty]
