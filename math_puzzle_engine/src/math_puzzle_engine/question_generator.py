"""
Question Generator

Procedurally builds arithmetic questions for classic and level play.

Every question carries a shuffled set of four unique, non-negative options
that contains the correct answer exactly once. All randomness flows through
an injectable RandomSource so test suites can replay exact sequences.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from math_puzzle_engine.level_catalog import LevelDefinition
from math_puzzle_engine.models import Difficulty, Question, QuestionCategory
from math_puzzle_engine.randomness import (
    RandomSource,
    choose,
    coin_flip,
    default_source,
    rand_between,
    shuffled,
    short_id,
)

logger = logging.getLogger(__name__)

OPTION_COUNT = 4

CLASSIC_TIME_LIMITS = {
    Difficulty.EASY: 15,
    Difficulty.MEDIUM: 12,
    Difficulty.HARD: 8,
}

CLASSIC_CATEGORIES = {
    Difficulty.EASY: [QuestionCategory.SUM, QuestionCategory.DIFFERENCE],
    Difficulty.MEDIUM: [
        QuestionCategory.SUM,
        QuestionCategory.DIFFERENCE,
        QuestionCategory.PRODUCT,
        QuestionCategory.QUOTIENT,
        QuestionCategory.FILL_IN_BLANK,
    ],
    Difficulty.HARD: [
        QuestionCategory.SUM,
        QuestionCategory.DIFFERENCE,
        QuestionCategory.PRODUCT,
        QuestionCategory.QUOTIENT,
        QuestionCategory.FILL_IN_BLANK,
        QuestionCategory.SEQUENCE,
    ],
}

# Classic operand ranges: (low, span) pairs per difficulty
_CLASSIC_SUM = {
    Difficulty.EASY: ((1, 20), (1, 20)),
    Difficulty.MEDIUM: ((10, 50), (10, 50)),
    Difficulty.HARD: ((100, 500), (100, 500)),
}
_CLASSIC_DIFFERENCE = {
    Difficulty.EASY: ((10, 30), (1, 15)),
    Difficulty.MEDIUM: ((20, 80), (5, 50)),
    Difficulty.HARD: ((200, 500), (50, 300)),
}

# Distractor spread as a fraction of the answer
CLASSIC_SPREAD_RATIO = 0.5
LEVEL_SPREAD_RATIO = 0.3
_MAX_OPTION_ATTEMPTS = 200

# Perfect-square sequences only appear from this level upward
SQUARE_SEQUENCE_MIN_LEVEL = 40


@dataclass(frozen=True)
class DifficultyContext:
    """Everything the generator needs to size a question."""
    difficulty: Difficulty
    time_limit: int
    level_number: Optional[int] = None
    range_multiplier: float = 1.0

    @property
    def is_level(self) -> bool:
        return self.level_number is not None

    @property
    def spread_ratio(self) -> float:
        return LEVEL_SPREAD_RATIO if self.is_level else CLASSIC_SPREAD_RATIO

    @classmethod
    def for_classic(cls, difficulty: Difficulty) -> "DifficultyContext":
        return cls(difficulty=difficulty, time_limit=CLASSIC_TIME_LIMITS[difficulty])

    @classmethod
    def for_level(cls, level: LevelDefinition) -> "DifficultyContext":
        return cls(
            difficulty=level.difficulty,
            time_limit=level.time_per_question,
            level_number=level.level,
            range_multiplier=level.range_multiplier,
        )


class QuestionGenerator:
    """
    Builds questions for a given category and difficulty context.

    Usage:
        generator = QuestionGenerator(seeded_source(7))
        question = generator.generate(QuestionCategory.SUM, DifficultyContext.for_classic(Difficulty.EASY))
    """

    def __init__(self, rng: Optional[RandomSource] = None):
        self.rng = rng or default_source()
        self._builders: Dict[QuestionCategory, Callable[[DifficultyContext], Tuple[str, int, Tuple[int, ...]]]] = {
            QuestionCategory.SUM: self._sum,
            QuestionCategory.DIFFERENCE: self._difference,
            QuestionCategory.PRODUCT: self._product,
            QuestionCategory.QUOTIENT: self._quotient,
            QuestionCategory.FILL_IN_BLANK: self._fill_in_blank,
            QuestionCategory.SEQUENCE: self._sequence,
        }

    def generate(
        self,
        category: QuestionCategory,
        context: DifficultyContext,
        question_id: Optional[str] = None,
    ) -> Question:
        """
        Generate one question.

        Args:
            category: Kind of question to build
            context: Difficulty tier, time budget and (level mode) level scaling
            question_id: Identifier to use (random if omitted)

        Returns:
            Immutable Question record
        """
        prompt, answer, operands = self._builders[category](context)
        options = self.generate_options(answer, OPTION_COUNT, context.spread_ratio)
        return Question(
            id=question_id or f"q-{short_id()}",
            prompt=prompt,
            correct_answer=answer,
            options=tuple(options),
            category=category,
            difficulty=context.difficulty,
            time_limit=context.time_limit,
            operands=operands,
        )

    def generate_classic_questions(self, difficulty: Difficulty, count: int) -> List[Question]:
        """Question list for a classic session; categories widen with difficulty."""
        context = DifficultyContext.for_classic(difficulty)
        categories = CLASSIC_CATEGORIES[difficulty]
        questions = [
            self.generate(choose(self.rng, categories), context, f"q-{i}-{short_id()}")
            for i in range(count)
        ]
        logger.debug(f"Generated {count} classic questions ({difficulty.value})")
        return questions

    def generate_level_questions(self, level: LevelDefinition) -> List[Question]:
        """Question list for a level session, drawn from the level's operations."""
        context = DifficultyContext.for_level(level)
        questions = [
            self.generate(
                choose(self.rng, level.operations),
                context,
                f"level-{level.level}-q-{i}-{short_id()}",
            )
            for i in range(level.questions_required)
        ]
        logger.debug(f"Generated {len(questions)} questions for level {level.level}")
        return questions

    def generate_options(self, correct: int, count: int, spread_ratio: float) -> List[int]:
        """
        Build a shuffled option list around the correct answer.

        Offsets are drawn within +/- max(10, spread_ratio * |correct|) and
        clamped at zero; collisions are rejected. If the source keeps
        colliding, the remaining slots take the next free values above the
        answer.
        """
        spread = max(10, int(abs(correct) * spread_ratio))
        options = [correct]
        attempts = 0

        while len(options) < count and attempts < _MAX_OPTION_ATTEMPTS:
            attempts += 1
            offset = rand_between(self.rng, -spread, spread * 2)
            candidate = max(0, correct + offset)
            if candidate not in options:
                options.append(candidate)

        candidate = correct
        while len(options) < count:
            candidate += 1
            if candidate not in options:
                options.append(candidate)

        return shuffled(self.rng, options)

    # ------------------------------------------------------------------
    # Operand ranges
    # ------------------------------------------------------------------

    def _sum_operands(self, context: DifficultyContext) -> Tuple[int, int]:
        rng = self.rng
        if context.is_level:
            level, mult = context.level_number, context.range_multiplier
            if level <= 10:
                low, span = 1, 10 * mult
            elif level <= 30:
                low, span = 10, 50 * mult
            else:
                low, span = 50, 200 * mult
            return rand_between(rng, low, span), rand_between(rng, low, span)

        (a_low, a_span), (b_low, b_span) = _CLASSIC_SUM[context.difficulty]
        return rand_between(rng, a_low, a_span), rand_between(rng, b_low, b_span)

    def _difference_operands(self, context: DifficultyContext) -> Tuple[int, int]:
        rng = self.rng
        if context.is_level:
            level, mult = context.level_number, context.range_multiplier
            if level <= 10:
                a = rand_between(rng, 10, 20 * mult)
                b = rand_between(rng, 1, 15 * mult)
            elif level <= 30:
                a = rand_between(rng, 30, 100 * mult)
                b = rand_between(rng, 10, 70 * mult)
            else:
                a = rand_between(rng, 100, 500 * mult)
                b = rand_between(rng, 50, 300 * mult)
            return a, b

        (a_low, a_span), (b_low, b_span) = _CLASSIC_DIFFERENCE[context.difficulty]
        return rand_between(rng, a_low, a_span), rand_between(rng, b_low, b_span)

    def _product_operands(self, context: DifficultyContext) -> Tuple[int, int]:
        rng = self.rng
        if context.is_level:
            level, mult = context.level_number, context.range_multiplier
            if level <= 20:
                return rand_between(rng, 2, 10), rand_between(rng, 2, 10)
            if level <= 50:
                return rand_between(rng, 3, 15 * mult), rand_between(rng, 3, 15 * mult)
            return rand_between(rng, 5, 25 * mult), rand_between(rng, 5, 25 * mult)

        if context.difficulty == Difficulty.HARD:
            return rand_between(rng, 6, 25), rand_between(rng, 6, 25)
        return rand_between(rng, 2, 12), rand_between(rng, 2, 12)

    def _quotient_operands(self, context: DifficultyContext) -> Tuple[int, int]:
        """Returns (divisor, quotient)."""
        rng = self.rng
        if context.is_level:
            level, mult = context.level_number, context.range_multiplier
            if level <= 20:
                return rand_between(rng, 2, 8), rand_between(rng, 2, 12)
            if level <= 50:
                return rand_between(rng, 3, 12 * mult), rand_between(rng, 3, 20 * mult)
            return rand_between(rng, 5, 20 * mult), rand_between(rng, 5, 30 * mult)

        if context.difficulty == Difficulty.HARD:
            return rand_between(rng, 3, 15), rand_between(rng, 5, 20)
        return rand_between(rng, 2, 10), rand_between(rng, 2, 15)

    # ------------------------------------------------------------------
    # Category builders: each returns (prompt, answer, operands)
    # ------------------------------------------------------------------

    def _sum(self, context: DifficultyContext) -> Tuple[str, int, Tuple[int, ...]]:
        a, b = self._sum_operands(context)
        return f"{a} + {b} = ?", a + b, (a, b)

    def _difference(self, context: DifficultyContext) -> Tuple[str, int, Tuple[int, ...]]:
        a, b = self._difference_operands(context)
        if b > a:
            a, b = b, a
        return f"{a} - {b} = ?", a - b, (a, b)

    def _product(self, context: DifficultyContext) -> Tuple[str, int, Tuple[int, ...]]:
        a, b = self._product_operands(context)
        return f"{a} × {b} = ?", a * b, (a, b)

    def _quotient(self, context: DifficultyContext) -> Tuple[str, int, Tuple[int, ...]]:
        divisor, quotient = self._quotient_operands(context)
        dividend = divisor * quotient
        return f"{dividend} ÷ {divisor} = ?", quotient, (dividend, divisor)

    def _fill_in_blank(self, context: DifficultyContext) -> Tuple[str, int, Tuple[int, ...]]:
        rng = self.rng
        op = choose(rng, ["+", "-", "×"])

        if context.is_level:
            level, mult = context.level_number, context.range_multiplier
            span = min(50, 10 + level * mult)
            product_span = 10 + level
        else:
            span = 20
            product_span = 10

        if op == "+":
            a = rand_between(rng, 1, span)
            b = rand_between(rng, 1, span)
            result = a + b
        elif op == "-":
            result = rand_between(rng, 10, span if context.is_level else 30)
            b = rand_between(rng, 1, span / 2 if context.is_level else 15)
            a = result + b
        else:
            a = rand_between(rng, 2, product_span)
            b = rand_between(rng, 2, product_span)
            result = a * b

        if coin_flip(rng):
            return f"? {op} {b} = {result}", a, (b, result)
        return f"{a} {op} ? = {result}", b, (a, result)

    def _sequence(self, context: DifficultyContext) -> Tuple[str, int, Tuple[int, ...]]:
        kinds = [self._arithmetic_sequence, self._geometric_sequence, self._fibonacci_sequence]
        if context.is_level:
            kinds.append(self._square_sequence)
        terms, answer = choose(self.rng, kinds)(context)
        return f"{', '.join(str(t) for t in terms)}, ?", answer, tuple(terms)

    def _arithmetic_sequence(self, context: DifficultyContext) -> Tuple[List[int], int]:
        if context.is_level:
            level = context.level_number
            start = rand_between(self.rng, 1, 10 + level)
            step = rand_between(self.rng, 2, 5 + level // 10)
        else:
            start = rand_between(self.rng, 1, 10)
            step = rand_between(self.rng, 2, 5)
        return [start + i * step for i in range(4)], start + 4 * step

    def _geometric_sequence(self, context: DifficultyContext) -> Tuple[List[int], int]:
        start = rand_between(self.rng, 2, 5 if context.is_level else 3)
        ratio = rand_between(self.rng, 2, 3)
        return [start, start * ratio, start * ratio ** 2], start * ratio ** 3

    def _fibonacci_sequence(self, context: DifficultyContext) -> Tuple[List[int], int]:
        a = rand_between(self.rng, 1, 5)
        b = rand_between(self.rng, 1, 5)
        c = a + b
        d = b + c
        return [a, b, c, d], c + d

    def _square_sequence(self, context: DifficultyContext) -> Tuple[List[int], int]:
        if context.level_number < SQUARE_SEQUENCE_MIN_LEVEL:
            return self._arithmetic_sequence(context)
        base = rand_between(self.rng, 2, 8)
        return [(base + i) ** 2 for i in range(3)], (base + 3) ** 2
