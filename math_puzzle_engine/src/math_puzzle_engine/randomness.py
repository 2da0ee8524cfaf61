"""Random source helpers for question generation and seeding."""

import math
import random
import uuid
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

# A callable returning a float in [0, 1)
RandomSource = Callable[[], float]


def default_source() -> RandomSource:
    """Ambient module-level randomness."""
    return random.random


def seeded_source(seed: int) -> RandomSource:
    """Deterministic source for tests and replays."""
    return random.Random(seed).random


def source_from_seed(seed: Optional[int]) -> RandomSource:
    """Seeded source when a seed is given, ambient otherwise."""
    if seed is None:
        return default_source()
    return seeded_source(seed)


def rand_below(rng: RandomSource, upper: float) -> int:
    """Integer in [0, upper) for a possibly fractional upper bound."""
    return int(math.floor(rng() * upper))


def rand_between(rng: RandomSource, low: int, span: float) -> int:
    """Integer in [low, low + span)."""
    return rand_below(rng, span) + low


def coin_flip(rng: RandomSource) -> bool:
    return rng() < 0.5


def choose(rng: RandomSource, items: Sequence[T]) -> T:
    """Pick one element; index is clamped so a source returning 1.0 stays in range."""
    if not items:
        raise ValueError("cannot choose from an empty sequence")
    index = min(rand_below(rng, len(items)), len(items) - 1)
    return items[index]


def shuffled(rng: RandomSource, items: Sequence[T]) -> List[T]:
    """Fisher-Yates shuffle driven by the given source."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = min(rand_below(rng, i + 1), i)
        result[i], result[j] = result[j], result[i]
    return result


def short_id() -> str:
    """Nine character identifier for sessions and questions."""
    return uuid.uuid4().hex[:9]
