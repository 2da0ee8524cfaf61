"""
Supabase client factory for remote progress storage
"""
from typing import Optional

from supabase import Client, create_client

from math_puzzle_engine.config import EngineConfig


def create_supabase_client(config: Optional[EngineConfig] = None) -> Client:
    """Create a Supabase client from the engine config (or the environment)."""
    config = config or EngineConfig.from_env()

    if not config.supabase_url or not config.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment")

    return create_client(config.supabase_url, config.supabase_key)
