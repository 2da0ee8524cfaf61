"""
Session Factory

Entry points for callers: configure the engine, open a player's ledger,
and create classic or level sessions.

Everything is passed explicitly; there is no shared engine instance.
"""

from typing import Optional, Union

from math_puzzle_engine.config import EngineConfig
from math_puzzle_engine.game_session import ClassicSession, LevelSession
from math_puzzle_engine.level_ledger import LevelLedger
from math_puzzle_engine.logger import get_logger, setup_logging
from math_puzzle_engine.models import Difficulty, GameMode, LevelUnavailableError
from math_puzzle_engine.progress_store import build_progress_store
from math_puzzle_engine.randomness import RandomSource, source_from_seed

logger = get_logger(__name__)


def setup_engine(config: Optional[EngineConfig] = None) -> EngineConfig:
    """Load config (from the environment if not given) and install logging."""
    config = config or EngineConfig.from_env()
    setup_logging(level=config.log_level, use_colors=config.use_colors)
    logger.debug("Engine configured", data={
        "progress_backend": config.progress_backend,
        "seeded": config.seed is not None,
    })
    return config


def random_source_for(config: EngineConfig) -> RandomSource:
    return source_from_seed(config.seed)


def open_ledger(config: EngineConfig, progress_key: str, supabase_client=None) -> LevelLedger:
    """
    Load a player's ledger through the configured persistence strategy.

    Args:
        config: Engine configuration (selects memory/local/supabase storage)
        progress_key: Opaque per-player key
        supabase_client: Existing Supabase client for the supabase backend

    Returns:
        LevelLedger bound to the store
    """
    if config.progress_backend == "memory":
        logger.warning("In-memory progress store selected; progress is lost when the process exits", data={
            "progress_key": progress_key,
        })

    store = build_progress_store(config, supabase_client=supabase_client)
    ledger = LevelLedger.load(store, progress_key)
    progress = ledger.get_progress()
    logger.success("Ledger opened", data={
        "backend": config.progress_backend,
        "current_level": progress.current_level,
        "highest_level_reached": progress.highest_level_reached,
    })
    return ledger


def create_classic_session(
    difficulty: Union[Difficulty, str] = Difficulty.EASY,
    mode: Union[GameMode, str] = GameMode.PRACTICE,
    rng: Optional[RandomSource] = None,
) -> ClassicSession:
    """Create a classic session in the `waiting` state."""
    session = ClassicSession(difficulty, mode, rng=rng)
    logger.info("Classic session created", data={
        "session_id": session.id,
        "difficulty": session.difficulty.value,
        "mode": session.game_mode.value,
        "questions": session.total_questions,
    })
    return session


def create_level_session(
    ledger: LevelLedger,
    level_number: Optional[int] = None,
    rng: Optional[RandomSource] = None,
) -> LevelSession:
    """
    Create a session for a ledger level (the ledger's current level by default).

    Raises:
        LevelUnavailableError: if the level is unknown or locked
    """
    try:
        session = LevelSession(ledger, level_number, rng=rng)
    except LevelUnavailableError as e:
        logger.error("Level session refused", error=e)
        raise

    logger.info("Level session created", data={
        "session_id": session.id,
        "level": session.level.level,
        "elimination_mode": session.level.elimination_mode,
        "questions": session.total_questions,
    })
    return session
