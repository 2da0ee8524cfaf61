"""
Progress Stores

Pluggable persistence strategies for the level ledger's progress record:
- InMemoryProgressStore: process-local dict (tests, single-run play)
- LocalProgressStore: one JSON file per player key
- SupabaseProgressStore: remote tables, synced at session boundaries

Stores never raise on I/O problems; failures are logged and reported
through `None` / `False` return values.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from math_puzzle_engine.config import EngineConfig
from math_puzzle_engine.progress_record import ProgressRecord

logger = logging.getLogger(__name__)

PROGRESS_KEY_PREFIX = "math_level_progress_"


class ProgressStore(Protocol):
    """Persistence collaborator consumed by LevelLedger."""

    def load(self, progress_key: str) -> Optional[ProgressRecord]:
        ...

    def save(self, progress_key: str, record: ProgressRecord) -> bool:
        ...


class InMemoryProgressStore:
    """Keeps copies of progress records in a dict."""

    def __init__(self):
        self._records: Dict[str, ProgressRecord] = {}

    def load(self, progress_key: str) -> Optional[ProgressRecord]:
        record = self._records.get(progress_key)
        return record.copy() if record else None

    def save(self, progress_key: str, record: ProgressRecord) -> bool:
        self._records[progress_key] = record.copy()
        return True

    def delete(self, progress_key: str) -> bool:
        return self._records.pop(progress_key, None) is not None


class LocalProgressStore:
    """
    Stores each player's progress as a JSON file.

    Files are named `math_level_progress_<key>.json` inside `directory`.
    """

    def __init__(self, directory: str = ".math_progress"):
        self.directory = Path(directory)

    def path_for(self, progress_key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", progress_key)
        return self.directory / f"{PROGRESS_KEY_PREFIX}{safe_key}.json"

    def load(self, progress_key: str) -> Optional[ProgressRecord]:
        path = self.path_for(progress_key)
        if not path.exists():
            return None

        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return ProgressRecord.from_dict(data)
        except (OSError, ValueError) as e:
            logger.error(f"❌ [LocalProgressStore] Error loading progress from {path}: {e}")
            return None

    def save(self, progress_key: str, record: ProgressRecord) -> bool:
        path = self.path_for(progress_key)
        tmp_path = path.with_suffix(".json.tmp")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
            os.replace(tmp_path, path)
            return True
        except OSError as e:
            logger.error(f"❌ [LocalProgressStore] Error saving progress to {path}: {e}")
            return False


class SupabaseProgressStore:
    """
    Remote progress storage in Supabase.

    Tables:
        math_user_progress: one row per user (user_id plus the record's scalar fields)
        math_level_completions: one row per (user_id, level_number)
        math_scores: final score summaries of finished sessions
    """

    PROGRESS_TABLE = "math_user_progress"
    COMPLETIONS_TABLE = "math_level_completions"
    SCORES_TABLE = "math_scores"

    def __init__(self, supabase_client):
        """
        Args:
            supabase_client: Supabase client instance
        """
        self.supabase = supabase_client

    def load(self, progress_key: str) -> Optional[ProgressRecord]:
        try:
            result = self.supabase.table(self.PROGRESS_TABLE) \
                .select('*') \
                .eq('user_id', progress_key) \
                .execute()

            if not result.data:
                return None

            row = dict(result.data[0])

            completions = self.supabase.table(self.COMPLETIONS_TABLE) \
                .select('level_number') \
                .eq('user_id', progress_key) \
                .execute()
            row['levels_completed'] = [c['level_number'] for c in (completions.data or [])]

            return ProgressRecord.from_dict(row)
        except Exception as e:
            logger.error(f"❌ [SupabaseProgressStore] Error loading progress for {progress_key[:20]}: {e}")
            return None

    def save(self, progress_key: str, record: ProgressRecord) -> bool:
        row = record.to_dict()
        levels = row.pop('levels_completed')
        row['user_id'] = progress_key

        try:
            self.supabase.table(self.PROGRESS_TABLE) \
                .upsert(row, on_conflict='user_id') \
                .execute()

            # Completion rows mirror the record's set, including after a reset
            self.supabase.table(self.COMPLETIONS_TABLE) \
                .delete() \
                .eq('user_id', progress_key) \
                .execute()

            if levels:
                self.supabase.table(self.COMPLETIONS_TABLE) \
                    .upsert(
                        [{'user_id': progress_key, 'level_number': n} for n in levels],
                        on_conflict='user_id,level_number',
                    ) \
                    .execute()

            logger.info(f"✅ [SupabaseProgressStore] Saved progress for {progress_key[:20]} (level {record.current_level})")
            return True
        except Exception as e:
            logger.error(f"❌ [SupabaseProgressStore] Error saving progress for {progress_key[:20]}: {e}", exc_info=True)
            return False

    def record_score(self, progress_key: str, score_data: Dict[str, Any]) -> bool:
        """
        Insert a final score summary (see GameScore.to_dict) into math_scores.

        Args:
            progress_key: User identifier
            score_data: Score fields to store

        Returns:
            True if the row was inserted
        """
        row = dict(score_data)
        row['user_id'] = progress_key

        try:
            result = self.supabase.table(self.SCORES_TABLE).insert(row).execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"❌ [SupabaseProgressStore] Error saving score for {progress_key[:20]}: {e}")
            return False


def build_progress_store(config: EngineConfig, supabase_client=None) -> ProgressStore:
    """
    Select a persistence strategy from the config.

    Args:
        config: Engine configuration
        supabase_client: Existing client for the supabase backend (created from config if omitted)

    Returns:
        A ProgressStore implementation
    """
    if config.progress_backend == "memory":
        return InMemoryProgressStore()
    if config.progress_backend == "supabase":
        if supabase_client is None:
            from math_puzzle_engine.supabase_client import create_supabase_client
            supabase_client = create_supabase_client(config)
        return SupabaseProgressStore(supabase_client)
    return LocalProgressStore(config.progress_dir)
