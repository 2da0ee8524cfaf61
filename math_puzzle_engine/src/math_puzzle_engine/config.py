"""
Engine configuration loaded from the environment (and `.env` files).
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

PROGRESS_BACKENDS = ("memory", "local", "supabase")


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EngineConfig:
    """Runtime settings for the puzzle engine."""
    progress_backend: str = "local"
    progress_dir: str = ".math_progress"
    log_level: int = logging.INFO
    use_colors: bool = True
    seed: Optional[int] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    def __post_init__(self):
        if self.progress_backend not in PROGRESS_BACKENDS:
            raise ValueError(
                f"Unknown progress backend '{self.progress_backend}' "
                f"(expected one of {', '.join(PROGRESS_BACKENDS)})"
            )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "EngineConfig":
        """
        Build a config from environment variables.

        Args:
            dotenv_path: Explicit .env file to load (defaults to searching upward from cwd)

        Returns:
            EngineConfig
        """
        load_dotenv(dotenv_path)

        seed_value = os.getenv("SEED")
        seed = None
        if seed_value:
            try:
                seed = int(seed_value)
            except ValueError:
                logging.getLogger(__name__).warning(f"Ignoring non-integer SEED value: {seed_value!r}")

        level_name = os.getenv("MATH_LOG_LEVEL", "INFO").upper()
        log_level = logging.getLevelName(level_name)
        if not isinstance(log_level, int):
            log_level = logging.INFO

        return cls(
            progress_backend=os.getenv("MATH_PROGRESS_BACKEND", "local").strip().lower(),
            progress_dir=os.getenv("MATH_PROGRESS_DIR", ".math_progress"),
            log_level=log_level,
            use_colors=_env_flag("MATH_LOG_COLORS"),
            seed=seed,
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
        )
