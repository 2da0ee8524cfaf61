"""
Unit Tests for the Question Generator

Tests option-set guarantees and per-category construction rules.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "math_puzzle_engine", "src"))

from math_puzzle_engine.level_catalog import build_level
from math_puzzle_engine.models import Difficulty, QuestionCategory
from math_puzzle_engine.question_generator import (
    CLASSIC_CATEGORIES,
    DifficultyContext,
    OPTION_COUNT,
    QuestionGenerator,
)
from math_puzzle_engine.randomness import seeded_source


ALL_CONTEXTS = [
    DifficultyContext.for_classic(Difficulty.EASY),
    DifficultyContext.for_classic(Difficulty.MEDIUM),
    DifficultyContext.for_classic(Difficulty.HARD),
    DifficultyContext.for_level(build_level(3)),
    DifficultyContext.for_level(build_level(25)),
    DifficultyContext.for_level(build_level(45)),
    DifficultyContext.for_level(build_level(99)),
]


class TestQuestionGenerator:
    """Test suite for QuestionGenerator."""

    @pytest.fixture
    def generator(self):
        """Create a generator with a seeded random source."""
        return QuestionGenerator(seeded_source(1234))

    @pytest.mark.parametrize("category", list(QuestionCategory))
    def test_options_unique_and_contain_answer_once(self, generator, category):
        """Every option set has four unique non-negative values including the answer once."""
        for context in ALL_CONTEXTS:
            for _ in range(40):
                question = generator.generate(category, context)
                assert len(question.options) == OPTION_COUNT
                assert len(set(question.options)) == OPTION_COUNT
                assert question.options.count(question.correct_answer) == 1
                assert all(opt >= 0 for opt in question.options)

    def test_quotient_is_exact(self, generator):
        """Quotient questions always divide exactly."""
        for context in ALL_CONTEXTS:
            for _ in range(50):
                question = generator.generate(QuestionCategory.QUOTIENT, context)
                dividend, divisor = question.operands
                assert dividend == divisor * question.correct_answer
                assert question.correct_answer >= 0
                assert question.prompt == f"{dividend} ÷ {divisor} = ?"

    def test_difference_never_negative(self, generator):
        """Difference answers are never below zero."""
        for context in ALL_CONTEXTS:
            for _ in range(50):
                question = generator.generate(QuestionCategory.DIFFERENCE, context)
                a, b = question.operands
                assert a >= b
                assert question.correct_answer == a - b >= 0

    def test_sum_matches_operands(self, generator):
        """Sum prompts show the operands that produce the answer."""
        question = generator.generate(QuestionCategory.SUM, ALL_CONTEXTS[0])
        a, b = question.operands
        assert question.correct_answer == a + b
        assert question.prompt == f"{a} + {b} = ?"

    def test_classic_easy_sum_range(self, generator):
        """Easy classic sums draw operands from 1..20."""
        context = DifficultyContext.for_classic(Difficulty.EASY)
        for _ in range(100):
            a, b = generator.generate(QuestionCategory.SUM, context).operands
            assert 1 <= a <= 20
            assert 1 <= b <= 20

    def test_fill_in_blank_hides_one_operand(self, generator):
        """Fill-in-the-blank prompts contain exactly one placeholder and a solvable equation."""
        context = DifficultyContext.for_classic(Difficulty.MEDIUM)
        for _ in range(100):
            question = generator.generate(QuestionCategory.FILL_IN_BLANK, context)
            prompt = question.prompt
            assert prompt.count("?") == 1
            left, result = prompt.split(" = ")
            x, op, y = left.split(" ")
            x = question.correct_answer if x == "?" else int(x)
            y = question.correct_answer if y == "?" else int(y)
            expected = {"+": x + y, "-": x - y, "×": x * y}[op]
            assert expected == int(result)

    def test_sequence_answer_continues_pattern(self, generator):
        """Sequence answers extend one of the known progressions."""
        context = DifficultyContext.for_level(build_level(70))
        for _ in range(100):
            question = generator.generate(QuestionCategory.SEQUENCE, context)
            terms = list(question.operands)
            nxt = question.correct_answer
            arithmetic = len(terms) == 4 and len({terms[i + 1] - terms[i] for i in range(3)}) == 1 \
                and nxt - terms[-1] == terms[1] - terms[0]
            geometric = len(terms) == 3 and terms[1] * terms[1] == terms[0] * terms[2] \
                and nxt * terms[1] == terms[2] * terms[2]
            fibonacci = len(terms) == 4 and terms[2] == terms[0] + terms[1] \
                and terms[3] == terms[1] + terms[2] and nxt == terms[2] + terms[3]
            roots = [round(t ** 0.5) for t in terms]
            squares = len(terms) == 3 and all(r * r == t for r, t in zip(roots, terms)) \
                and nxt == (roots[-1] + 1) ** 2
            assert arithmetic or geometric or fibonacci or squares

    def test_square_sequences_fall_back_below_level_40(self):
        """Low levels never produce perfect-square sequences."""
        generator = QuestionGenerator(seeded_source(5))
        context = DifficultyContext.for_level(build_level(35))
        for _ in range(200):
            terms, _answer = generator._square_sequence(context)
            assert len(terms) == 4

    def test_question_carries_time_limit(self, generator):
        """Questions inherit the time budget of their context."""
        level = build_level(42)
        question = generator.generate(QuestionCategory.SUM, DifficultyContext.for_level(level))
        assert question.time_limit == level.time_per_question
        assert question.difficulty == Difficulty.MEDIUM

    def test_degenerate_random_source_still_terminates(self):
        """A source that always returns the same value cannot stall option generation."""
        generator = QuestionGenerator(lambda: 0.5)
        options = generator.generate_options(50, OPTION_COUNT, 0.3)
        assert len(set(options)) == OPTION_COUNT
        assert 50 in options

    def test_zero_answer_options(self, generator):
        """A zero answer still gets three distinct non-negative distractors."""
        options = generator.generate_options(0, OPTION_COUNT, 0.5)
        assert sorted(options)[0] == 0
        assert len(set(options)) == OPTION_COUNT

    def test_seeded_sources_are_reproducible(self):
        """Two generators with the same seed produce identical questions."""
        context = DifficultyContext.for_classic(Difficulty.HARD)
        first = QuestionGenerator(seeded_source(99)).generate(QuestionCategory.PRODUCT, context, "q-1")
        second = QuestionGenerator(seeded_source(99)).generate(QuestionCategory.PRODUCT, context, "q-1")
        assert first == second

    def test_classic_question_list_uses_difficulty_categories(self, generator):
        """Easy classic lists only contain sums and differences."""
        questions = generator.generate_classic_questions(Difficulty.EASY, 30)
        assert len(questions) == 30
        assert {q.category for q in questions} <= set(CLASSIC_CATEGORIES[Difficulty.EASY])

    def test_level_question_list_matches_level(self, generator):
        """Level lists have the required length and only allowed operations."""
        level = build_level(55)
        questions = generator.generate_level_questions(level)
        assert len(questions) == level.questions_required
        assert {q.category for q in questions} <= set(level.operations)
        assert all(q.id.startswith("level-55-q-") for q in questions)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
